import factory

from apps.stories.models import Story


class StoryFactory(factory.django.DjangoModelFactory):
    """Stored story with no index entry (embedding_status stays pending)."""

    class Meta:
        model = Story

    title = factory.Sequence(lambda n: f"Story {n}")
    body = factory.Faker("paragraph")
