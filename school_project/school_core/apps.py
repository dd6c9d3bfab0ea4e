from django.apps import AppConfig


class SchoolCoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "school_core"

    # ensure receivers are registered
    def ready(self):
        import school_core.signals  # noqa: F401
