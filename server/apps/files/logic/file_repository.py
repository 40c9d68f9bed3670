"""Owner-scoped file repository.

One algorithm serves both kinds of files. What differs between project
files and user files (model, owner model, owner field, editable
metadata) is described by a ``FileVariant``; ``project_files`` and
``user_files`` are the two repositories built from it.

Every read, update and delete that takes an owner filters on it, so a
record of another owner is indistinguishable from a missing one.
"""

import logging
from dataclasses import dataclass
from typing import Generic, TypeVar, final

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from server.apps.files.infrastructure.content_store import (
    discard_content,
    load_content,
    release_content,
    store_content,
)
from server.apps.files.lazy_content import unit_of_work
from server.apps.files.models import ProjectFile, StoredFile, UserFile
from server.apps.owners.models import ProjectEntry, UserEntry

_OwnerT = TypeVar('_OwnerT', bound=models.Model)
_FileT = TypeVar('_FileT', bound=StoredFile)

# Metadata every file variant can change
_COMMON_METADATA_FIELDS = (
    'title',
    'xml_schema',
    'description',
    'user_name',
)

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True)
class FileVariant(Generic[_OwnerT, _FileT]):
    """Field mapping of one kind of stored file."""

    model: type[_FileT]
    owner_model: type[_OwnerT]
    owner_field: str
    metadata_fields: tuple[str, ...]


def get_max_content_bytes() -> int:
    """Get the largest accepted content size.

    Returns:
        Limit in bytes from settings or default of 10 MB.
    """
    return getattr(settings, 'WEBFORMS_MAX_CONTENT_BYTES', 10 * 1024 * 1024)


@final
class FileRepository(Generic[_OwnerT, _FileT]):
    """CRUD over file records, scoped to an owner."""

    def __init__(self, variant: FileVariant[_OwnerT, _FileT]) -> None:
        """Initialize repository.

        Args:
            variant: Field mapping of the stored file kind.
        """
        self.variant = variant

    def save(self, file: _FileT, owner: _OwnerT) -> int:
        """Insert a new file record with its content.

        Transaction safety: content is uploaded first, then the record is
        created. If the record cannot be created the upload is released.

        Args:
            file: File to store. A preset id is ignored, missing content
                is stored as empty content.
            owner: Owner entry the file belongs to.

        Returns:
            Id assigned to the new record.

        Raises:
            ValidationError: If required fields are missing, values are
                too long, content is too large or owner is malformed.
        """
        self._check_owner(owner)
        content = file.content or b''
        self._check_content_size(content)

        file.pk = None
        file._state.adding = True  # noqa: WPS437
        setattr(file, self.variant.owner_field, owner)
        file.size_bytes = len(content)
        file.full_clean(exclude=['blob'])

        # Step 1: Upload content first
        blob = store_content(content)

        # Step 2: Create file record (in transaction)
        try:
            with unit_of_work():
                file.blob = blob
                file.save(force_insert=True)
        except Exception:
            logger.exception(
                'Failed to create %s record, releasing content: blob ID=%d',
                self._name,
                blob.pk,
            )
            release_content(blob)
            raise

        file.content = content
        logger.info(
            'Saved %s: %s (ID: %d, owner ID: %d, %d bytes)',
            self._name,
            file.file_name,
            file.pk,
            owner.pk,
            file.size_bytes,
        )
        return file.pk

    def file_by_id(self, file_id: int) -> _FileT:
        """Get file metadata by id, without checking the owner.

        Only for callers that established ownership elsewhere. Content
        stays deferred.

        Args:
            file_id: Id of the record.

        Returns:
            File instance with deferred content.

        Raises:
            DoesNotExist: If no record has this id.
        """
        with unit_of_work():
            return self.variant.model.objects.get(pk=file_id)

    def file_content_by(self, file_id: int, owner: _OwnerT) -> _FileT:
        """Get a file with its content, if it belongs to the owner.

        This is the only call guaranteed to return loaded content.

        Args:
            file_id: Id of the record.
            owner: Owner entry the file must belong to.

        Returns:
            File instance with loaded content.

        Raises:
            DoesNotExist: If no record has this id or the record belongs
                to another owner.
        """
        self._check_owner(owner)
        with unit_of_work():
            file = self._owned_by(owner).get(pk=file_id)
            file.content = load_content(file.blob_id)

        logger.debug('Loaded %s content: ID=%d', self._name, file_id)
        return file

    def all_files_for(self, owner: _OwnerT) -> list[_FileT]:
        """List files of the owner, oldest first.

        Content is never loaded. Inside the caller's unit of work it can
        still be loaded on access; otherwise reading it raises
        ``ContentNotLoadedError``.

        Args:
            owner: Owner entry.

        Returns:
            Files ordered by creation time, then id.
        """
        self._check_owner(owner)
        with unit_of_work():
            return list(
                self._owned_by(owner).order_by('created_at', 'id'),
            )

    def update(self, file: _FileT, owner: _OwnerT) -> int:
        """Update a file record of the owner.

        Without loaded content only metadata changes and content, size
        and file name are kept. With loaded content they are replaced
        together with the metadata in one transaction.

        A record that does not exist or belongs to another owner is left
        alone and nothing is reported.

        Args:
            file: File with id, new metadata and optionally new content.
            owner: Owner entry the record must belong to.

        Returns:
            Number of updated records (0 or 1).

        Raises:
            ValidationError: If values are too long, content is too large
                or owner is malformed.
        """
        self._check_owner(owner)
        values = {
            field_name: getattr(file, field_name)
            for field_name in self.variant.metadata_fields
        }
        values['updated_at'] = timezone.now()

        if not file.content_loaded:
            self._validate_fields(file, list(self.variant.metadata_fields))
            with unit_of_work():
                updated = self._owned_by(owner).filter(pk=file.pk).update(
                    **values,
                )
            self._log_update(file.pk, updated, with_content=False)
            return updated

        content = file.content or b''
        self._check_content_size(content)
        self._validate_fields(
            file,
            [*self.variant.metadata_fields, 'file_name'],
        )
        return self._replace_content(file, owner, content, values)

    def remove(self, owner: _OwnerT, *file_ids: int) -> int:
        """Delete files of the owner.

        Ids of missing files or files of other owners are skipped.
        Content of removed files is released by signal handlers.

        Args:
            owner: Owner entry.
            file_ids: Ids of the records to delete.

        Returns:
            Number of deleted records.
        """
        self._check_owner(owner)
        if not file_ids:
            return 0

        with unit_of_work():
            _, per_model = self._owned_by(owner).filter(
                pk__in=file_ids,
            ).delete()

        removed = per_model.get(self.variant.model._meta.label, 0)  # noqa: WPS437
        if removed < len(set(file_ids)):
            logger.warning(
                'Removed %d of %d requested %s records for owner ID=%d',
                removed,
                len(set(file_ids)),
                self._name,
                owner.pk,
            )
        else:
            logger.info(
                'Removed %d %s records for owner ID=%d',
                removed,
                self._name,
                owner.pk,
            )
        return removed

    @property
    def _name(self) -> str:
        return self.variant.model.__name__

    def _owned_by(self, owner: _OwnerT) -> 'models.QuerySet[_FileT]':
        return self.variant.model.objects.filter(
            **{self.variant.owner_field: owner},
        )

    def _check_owner(self, owner: _OwnerT) -> None:
        if not isinstance(owner, self.variant.owner_model) or owner.pk is None:
            raise ValidationError(
                {
                    self.variant.owner_field: ValidationError(
                        'Owner must be a saved %(model)s.',
                        code='invalid_owner',
                        params={'model': self.variant.owner_model.__name__},
                    ),
                },
            )

    def _check_content_size(self, content: bytes) -> None:
        limit = get_max_content_bytes()
        if len(content) > limit:
            raise ValidationError(
                {
                    'content': ValidationError(
                        'Content is %(size)d bytes, the limit is %(limit)d.',
                        code='content_too_large',
                        params={'size': len(content), 'limit': limit},
                    ),
                },
            )

    def _validate_fields(self, file: _FileT, field_names: list[str]) -> None:
        excluded = [
            field.name
            for field in self.variant.model._meta.fields  # noqa: WPS437
            if field.name not in field_names
        ]
        file.clean_fields(exclude=excluded)

    def _replace_content(
        self,
        file: _FileT,
        owner: _OwnerT,
        content: bytes,
        values: dict[str, object],
    ) -> int:
        scoped = self._owned_by(owner).filter(pk=file.pk)
        if not scoped.exists():
            self._log_update(file.pk, 0, with_content=True)
            return 0

        # Step 1: Upload new content first
        blob = store_content(content)

        # Step 2: Point the record to it (in transaction)
        try:
            with unit_of_work():
                # Locked read: a concurrent update may have replaced it
                old_blob_id = scoped.select_for_update().values_list(
                    'blob_id',
                    flat=True,
                ).first()
                updated = 0
                if old_blob_id is not None:
                    updated = scoped.update(
                        blob=blob,
                        size_bytes=blob.size_bytes,
                        file_name=file.file_name,
                        **values,
                    )
                if updated:
                    # Step 3: Old content goes only with a committed update
                    transaction.on_commit(
                        lambda: discard_content(old_blob_id),
                    )
        except Exception:
            logger.exception(
                'Failed to update %s content, releasing new content: ID=%d',
                self._name,
                file.pk,
            )
            release_content(blob)
            raise

        if not updated:
            # Removed between lookup and update
            release_content(blob)
        else:
            file.size_bytes = blob.size_bytes
            file.blob = blob
        self._log_update(file.pk, updated, with_content=True)
        return updated

    def _log_update(
        self,
        file_id: int | None,
        updated: int,
        with_content: bool,
    ) -> None:
        if updated:
            logger.info(
                'Updated %s %s: ID=%s',
                self._name,
                'metadata and content' if with_content else 'metadata',
                file_id,
            )
        else:
            logger.warning(
                'No %s updated, not found for owner: ID=%s',
                self._name,
                file_id,
            )


PROJECT_FILES: FileVariant[ProjectEntry, ProjectFile] = FileVariant(
    model=ProjectFile,
    owner_model=ProjectEntry,
    owner_field='project',
    metadata_fields=(
        *_COMMON_METADATA_FIELDS,
        'active',
        'is_main_form',
        'new_xml_file_name',
        'empty_instance_url',
    ),
)

USER_FILES: FileVariant[UserEntry, UserFile] = FileVariant(
    model=UserFile,
    owner_model=UserEntry,
    owner_field='owner',
    metadata_fields=_COMMON_METADATA_FIELDS,
)

project_files: FileRepository[ProjectEntry, ProjectFile] = FileRepository(
    PROJECT_FILES,
)

user_files: FileRepository[UserEntry, UserFile] = FileRepository(USER_FILES)


def update_download_time(file_id: int) -> None:
    """Record that a user file has just been downloaded.

    Args:
        file_id: Id of the user file.
    """
    updated = UserFile.objects.filter(pk=file_id).update(
        downloaded_at=timezone.now(),
    )
    if not updated:
        logger.warning('Download time not updated, no user file: ID=%d', file_id)
