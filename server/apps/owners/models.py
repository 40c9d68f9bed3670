"""Database models for owners app.

An owner entry maps the identifier users see (project id, user id)
to the internal key every file record is scoped by.
"""

from typing import Final, final

from typing_extensions import override

from django.db import models

# Constants for field max lengths
_EXTERNAL_KEY_MAX_LENGTH: Final = 255
_DESCRIPTION_MAX_LENGTH: Final = 2000


@final
class ProjectEntry(models.Model):
    """Named project holding shared web form templates."""

    project_id = models.CharField(
        max_length=_EXTERNAL_KEY_MAX_LENGTH,
        unique=True,
        help_text='User facing project identifier',
    )

    description = models.CharField(
        max_length=_DESCRIPTION_MAX_LENGTH,
        blank=True,
        default='',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Project'  # type: ignore[mutable-override]
        verbose_name_plural = 'Projects'  # type: ignore[mutable-override]
        ordering = ['created_at', 'id']

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.project_id


@final
class UserEntry(models.Model):
    """Scope for files uploaded by a single (externally authenticated) user."""

    user_id = models.CharField(
        max_length=_EXTERNAL_KEY_MAX_LENGTH,
        unique=True,
        help_text='Identifier issued by the authentication provider',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'User'  # type: ignore[mutable-override]
        verbose_name_plural = 'Users'  # type: ignore[mutable-override]
        ordering = ['created_at', 'id']

    @override
    def __str__(self) -> str:
        """String representation."""
        return self.user_id
