"""Django app configuration for owners app."""

from django.apps import AppConfig


class OwnersConfig(AppConfig):
    """Configuration for owners app."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'server.apps.owners'
    verbose_name = 'Owners'
