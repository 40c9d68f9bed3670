"""Django app configuration for files app."""

from typing_extensions import override

from django.apps import AppConfig


class FilesConfig(AppConfig):
    """Configuration for files app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.files'
    verbose_name = 'Files'

    @override
    def ready(self) -> None:
        """Connect handlers that release stored content of deleted files."""
        from server.apps.files import signals  # noqa: F401
