import atexit

from django.apps import AppConfig


class StoriesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.stories"
    label = "stories"
    verbose_name = "Stories"

    services = None

    def ready(self):
        from apps.stories.services.container import StoryServices

        self.services = StoryServices()
        atexit.register(self.services.close)
