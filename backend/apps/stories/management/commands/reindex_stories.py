"""
Django management command to re-embed stories whose vectors are missing or stale.
"""

from django.core.management.base import BaseCommand, CommandError

from apps.stories.exceptions import InvalidIdentifier
from apps.stories.models import Story
from apps.stories.services.stories import parse_story_id
from apps.stories.tasks import reembed_stories


class Command(BaseCommand):
    help = 'Re-embed stories that are pending or failed (or all stories with --force)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--story-id',
            type=str,
            help='Re-embed a specific story ID (optional)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be done without actually doing it',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Re-embed stories even if they are already indexed',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=100,
            help='Stories per re-embedding task (default: 100)',
        )

    def handle(self, *args, **options):
        batch_size = options['batch_size']
        if batch_size < 1:
            raise CommandError("--batch-size must be a positive integer")

        stories = Story.objects.without_embedding().order_by('created_on')

        if options['story_id']:
            try:
                story_id = parse_story_id(options['story_id'])
            except InvalidIdentifier as exc:
                raise CommandError(str(exc))
            stories = stories.filter(pk=story_id)
            if not stories.exists():
                raise CommandError(f"Story {story_id} not found")
        elif not options['force']:
            stories = stories.needs_embedding()

        story_ids = [str(pk) for pk in stories.values_list('pk', flat=True)]

        if not story_ids:
            self.stdout.write(self.style.SUCCESS("All stories already have embeddings!"))
            return

        self.stdout.write(f"Found {len(story_ids)} stories to re-embed")

        if options['dry_run']:
            for story in stories:
                self.stdout.write(f"  - {story} ({story.embedding_status})")
            self.stdout.write(
                self.style.WARNING(f"[DRY RUN] Would re-embed {len(story_ids)} stories")
            )
            return

        scheduled = 0
        for start in range(0, len(story_ids), batch_size):
            batch = story_ids[start:start + batch_size]
            try:
                reembed_stories.delay(batch)
                scheduled += len(batch)
            except Exception as e:
                self.stdout.write(
                    self.style.ERROR(f"  Failed to schedule batch starting at {start}: {e}")
                )

        self.stdout.write("\n" + "=" * 50)
        self.stdout.write(
            self.style.SUCCESS(f"Scheduled re-embedding for {scheduled} stories")
        )
