"""Django app configuration for conversions app."""

from django.apps import AppConfig


class ConversionsConfig(AppConfig):
    """Configuration for conversions app."""

    name = 'server.apps.conversions'
    verbose_name = 'Conversions'
