#!/usr/bin/env python3
"""
Setup script - creates a superuser and a handful of indexed sample stories.
"""
import os
import sys

import django

sys.path.insert(0, os.path.dirname(__file__))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')
django.setup()

from django.contrib.auth import get_user_model

from apps.stories.exceptions import StoryError
from apps.stories.models import Story
from apps.stories.services.container import get_story_services


SAMPLE_STORIES = [
    ('Children playing in the park',
     'A group of kids played tag in the park all afternoon, enjoying the outdoor sunshine.'),
    ('Quarterly financial report',
     'Revenue grew eight percent this quarter while operating costs stayed flat.'),
    ('A walk by the river',
     'An old man walked his dog along the river every morning before sunrise.'),
]


def setup():
    print('=== Setting up sample stories ===')

    User = get_user_model()
    if not User.objects.filter(is_superuser=True).exists():
        User.objects.create_superuser('admin', 'admin@example.com', 'admin123')
        print('Superuser created: admin / admin123')
    else:
        print('Superuser already exists')

    service = get_story_services().story_service()
    for title, body in SAMPLE_STORIES:
        if Story.objects.filter(title=title).exists():
            print(f'Story exists: {title}')
            continue
        try:
            story = service.create_story(title=title, body=body)
        except StoryError as e:
            print(f'Failed to create "{title}": {e}')
            continue
        print(f'Story created: {title} ({story.pk})')

    print(f'\n=== Done ===')
    print(f'  Stories: {Story.objects.count()}')
    print(f'  Indexed: {Story.objects.filter(embedding_status=Story.EmbeddingStatus.INDEXED).count()}')
    print(f'  Admin: http://127.0.0.1:5001/admin/ (admin / admin123)')


if __name__ == '__main__':
    setup()

    print('\nStarting Django dev server at http://127.0.0.1:5001 ...')
    from django.core.management import call_command
    call_command('runserver', '127.0.0.1:5001')
