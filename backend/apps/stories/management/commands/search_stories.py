"""
Django management command to run a semantic story search from the command line.
Usage: python manage.py search_stories "your search query here"
"""

import json

from django.core.management.base import BaseCommand, CommandError

from apps.stories.exceptions import StoryError
from apps.stories.services.container import get_story_services


class Command(BaseCommand):
    help = 'Search stories with a query string'

    def add_arguments(self, parser):
        parser.add_argument(
            'query',
            type=str,
            help='Search query string'
        )
        parser.add_argument(
            '-k',
            type=int,
            default=None,
            help='Number of results to return (default: SEARCH_DEFAULT_K)'
        )
        parser.add_argument(
            '--json',
            action='store_true',
            help='Output results in JSON format'
        )

    def handle(self, *args, **options):
        query = options['query']

        try:
            results = get_story_services().search_service().search(query, k=options['k'])
        except StoryError as e:
            raise CommandError(f"Search failed: {e}")

        if options['json']:
            self.stdout.write(json.dumps(results, indent=2, default=str))
            return

        self.stdout.write(f"Found {len(results)} stories for '{query}'")
        for i, result in enumerate(results, 1):
            body = result['body'] or ''
            preview = body[:150] + "..." if len(body) > 150 else body
            self.stdout.write(f"\n{i}. {result['title'] or '(untitled)'}  [{result['id']}]")
            self.stdout.write(f"   Score: {result['score']:.4f}")
            self.stdout.write(f"   {preview}")
