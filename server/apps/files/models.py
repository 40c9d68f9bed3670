"""Database models for files app."""

from functools import partial
from pathlib import Path
from typing import Any, Final, final

from typing_extensions import override

from django.db import models

from server.apps.files.lazy_content import (
    ContentState,
    LazyContent,
    current_scope,
)
from server.apps.owners.models import ProjectEntry, UserEntry

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_URL_MAX_LENGTH: Final = 255
_DESCRIPTION_MAX_LENGTH: Final = 2000
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length


@final
class ContentBlob(models.Model):
    """Binary content of a stored file.

    The bytes live in S3-compatible storage, this row is the opaque
    numeric reference file records point to. Keeping it apart from
    file metadata means listing files never touches the content.
    """

    data = models.FileField(
        upload_to='',
        help_text='Object name in storage: content/<uuid>',
    )

    size_bytes = models.BigIntegerField(
        help_text='Content size in bytes',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        help_text='SHA256 hash for integrity verification',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Content blob'  # type: ignore[mutable-override]
        verbose_name_plural = 'Content blobs'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='content_blob_size_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.data.name} ({self.size_bytes} bytes)'

    def read_bytes(self) -> bytes:
        """Read the whole content from storage.

        Returns:
            Content bytes.
        """
        with self.data.open('rb') as stream:
            return stream.read()


def _read_blob(blob_id: int) -> bytes:
    return ContentBlob.objects.get(pk=blob_id).read_bytes()


class StoredFile(models.Model):
    """Metadata shared by project files and user files.

    ``content`` is not a column: it is a ``LazyContent`` attached to
    the instance, deferred for records read from the database.
    """

    title = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    file_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
    )

    description = models.CharField(
        max_length=_DESCRIPTION_MAX_LENGTH,
        blank=True,
        default='',
    )

    xml_schema = models.CharField(
        max_length=_URL_MAX_LENGTH,
        blank=True,
        default='',
        help_text='URL of the XML Schema the document conforms to',
    )

    user_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Name of the user who last changed the file',
    )

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='Content size in bytes, always equal to the blob size',
    )

    blob = models.OneToOneField(
        ContentBlob,
        on_delete=models.PROTECT,
        related_name='+',
    )

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        """Model metadata."""

        abstract = True
        ordering = ['created_at', 'id']

    @override
    @classmethod
    def from_db(
        cls,
        db: str | None,
        field_names: Any,
        values: Any,
    ) -> 'StoredFile':
        """Attach deferred content to records read from the database."""
        instance = super().from_db(db, field_names, values)
        blob_id = instance.__dict__.get('blob_id')
        if blob_id is None:
            instance._content = LazyContent.absent()  # noqa: WPS437
        else:
            instance._content = LazyContent.deferred(  # noqa: WPS437
                partial(_read_blob, blob_id),
                current_scope(),
            )
        return instance

    @property
    def content_accessor(self) -> LazyContent:
        """Lazy content holder of this record."""
        accessor = self.__dict__.get('_content')
        if accessor is None:
            accessor = LazyContent.absent()
            self._content = accessor
        return accessor

    @property
    def content(self) -> bytes | None:
        """Content bytes, loading deferred content if possible.

        Raises:
            ContentNotLoadedError: If content is deferred and the unit
                of work it was fetched in is closed.
        """
        return self.content_accessor.get(self.pk)

    @content.setter
    def content(self, data: bytes | None) -> None:
        if data is None:
            self._content = LazyContent.absent()
        else:
            self._content = LazyContent.loaded(data)

    @property
    def content_loaded(self) -> bool:
        """Whether content bytes are in memory."""
        return self.content_accessor.state is ContentState.LOADED

    def is_new(self) -> bool:
        """Whether the record has not been saved yet."""
        return self.pk is None

    def is_empty(self) -> bool:
        """Whether the stored content has zero length.

        Defined by size only, loaded or not.
        """
        return self.size_bytes == 0

    def get_extension(self) -> str:
        """Extract file extension.

        Example: 'report.XML' -> 'xml'

        Returns:
            Extension without dot (lowercase).
        """
        extension = Path(self.file_name).suffix
        return extension.lstrip('.').lower()


@final
class ProjectFile(StoredFile):
    """Web form or template file shared within a project."""

    project = models.ForeignKey(
        ProjectEntry,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    active = models.BooleanField(default=False)

    is_main_form = models.BooleanField(
        default=False,
        help_text='Form opened by default for the project schema',
    )

    new_xml_file_name = models.CharField(
        max_length=_NAME_MAX_LENGTH,
        blank=True,
        default='',
        help_text='File name suggested for new instances of the form',
    )

    empty_instance_url = models.CharField(
        max_length=_URL_MAX_LENGTH,
        blank=True,
        default='',
        help_text='URL of an empty XML instance for the form',
    )

    class Meta(StoredFile.Meta):
        """Model metadata."""

        verbose_name = 'Project file'  # type: ignore[mutable-override]
        verbose_name_plural = 'Project files'  # type: ignore[mutable-override]

        indexes = [
            models.Index(
                fields=['project', 'created_at'],
                name='project_files_listing_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.project_id}:{self.file_name}'


@final
class UserFile(StoredFile):
    """XML document uploaded by a user."""

    owner = models.ForeignKey(
        UserEntry,
        on_delete=models.CASCADE,
        related_name='files',
        db_index=True,
    )

    downloaded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text='Last time the file was downloaded',
    )

    class Meta(StoredFile.Meta):
        """Model metadata."""

        verbose_name = 'User file'  # type: ignore[mutable-override]
        verbose_name_plural = 'User files'  # type: ignore[mutable-override]

        indexes = [
            models.Index(
                fields=['owner', 'created_at'],
                name='user_files_listing_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.file_name}'
