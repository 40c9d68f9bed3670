"""Business logic for owner registries.

The registry is the only path from a user supplied identifier
(project id, user id) to the entry that scopes file records.
It is also where existence and uniqueness of those identifiers
are decided.
"""

import logging
from typing import Generic, TypeVar, final

from django.db import IntegrityError, models, transaction

from server.apps.owners.exceptions import DuplicateKeyError
from server.apps.owners.models import ProjectEntry, UserEntry

_EntryT = TypeVar('_EntryT', bound=models.Model)

logger = logging.getLogger(__name__)


@final
class OwnerRegistry(Generic[_EntryT]):
    """Create, resolve, rename and remove owner entries of one kind."""

    def __init__(self, model: type[_EntryT], key_field: str) -> None:
        """Initialize registry.

        Args:
            model: Owner entry model.
            key_field: Name of the unique external key field.
        """
        self.model = model
        self.key_field = key_field

    def resolve_by_external_key(self, key: str) -> _EntryT:
        """Get entry by its external key.

        Args:
            key: External identifier.

        Returns:
            Matching entry.

        Raises:
            DoesNotExist: If no entry has this key.
        """
        return self.model.objects.get(**{self.key_field: key})

    def get(self, internal_id: int) -> _EntryT:
        """Get entry by its internal id.

        Raises:
            DoesNotExist: If no entry has this id.
        """
        return self.model.objects.get(pk=internal_id)

    def all_entries(self) -> list[_EntryT]:
        """All entries, oldest first."""
        return list(self.model.objects.order_by('created_at', 'id'))

    def create(self, entry: _EntryT) -> int:
        """Insert a new entry.

        Args:
            entry: Unsaved entry. A preset id is ignored.

        Returns:
            Internal id of the new entry.

        Raises:
            ValidationError: If fields are missing or too long.
            DuplicateKeyError: If the external key is already taken.
        """
        entry.pk = None
        entry._state.adding = True  # noqa: WPS437
        key = getattr(entry, self.key_field)
        entry.full_clean(validate_unique=False)
        self._check_key_is_free(key, exclude_id=None)

        try:
            with transaction.atomic():
                entry.save(force_insert=True)
        except IntegrityError as error:
            logger.warning(
                'Concurrent insert of %s key: %s',
                self.model.__name__,
                key,
            )
            raise DuplicateKeyError(self.key_field, key) from error

        logger.info(
            'Created %s: %s (ID: %d)',
            self.model.__name__,
            key,
            entry.pk,
        )
        return entry.pk

    def update(self, entry: _EntryT) -> None:
        """Save changes of an existing entry, key included.

        Args:
            entry: Entry with its internal id set.

        Raises:
            DoesNotExist: If the entry no longer exists.
            ValidationError: If fields are missing or too long.
            DuplicateKeyError: If the new key is taken by another entry.
        """
        if not self.model.objects.filter(pk=entry.pk).exists():
            raise self.model.DoesNotExist(
                f'{self.model.__name__} not found: ID={entry.pk}',
            )
        key = getattr(entry, self.key_field)
        entry.full_clean(validate_unique=False)
        self._check_key_is_free(key, exclude_id=entry.pk)

        try:
            with transaction.atomic():
                entry.save(update_fields=self._editable_fields())
        except IntegrityError as error:
            raise DuplicateKeyError(self.key_field, key) from error

        logger.info('Updated %s: ID=%d', self.model.__name__, entry.pk)

    def rename(self, internal_id: int, new_key: str) -> None:
        """Change the external key of an entry.

        Args:
            internal_id: Internal id of the entry.
            new_key: New external identifier.

        Raises:
            DoesNotExist: If the entry does not exist.
            ValidationError: If the new key is empty or too long.
            DuplicateKeyError: If the new key is taken by another entry.
        """
        entry = self.get(internal_id)
        setattr(entry, self.key_field, new_key)
        self.update(entry)

    def remove(self, internal_id: int) -> None:
        """Delete an entry together with every file it owns.

        Unknown ids are ignored.

        Args:
            internal_id: Internal id of the entry.
        """
        with transaction.atomic():
            deleted, _ = self.model.objects.filter(pk=internal_id).delete()

        if deleted:
            logger.info(
                'Removed %s and owned records: ID=%d (%d rows)',
                self.model.__name__,
                internal_id,
                deleted,
            )
        else:
            logger.warning(
                'Nothing to remove, %s not found: ID=%d',
                self.model.__name__,
                internal_id,
            )

    def resolve_or_register(self, key: str) -> _EntryT:
        """Get entry by external key, creating it on first use.

        Args:
            key: External identifier.

        Returns:
            Existing or newly created entry.
        """
        try:
            return self.resolve_by_external_key(key)
        except self.model.DoesNotExist:
            logger.info('Registering new %s: %s', self.model.__name__, key)

        entry = self.model(**{self.key_field: key})
        try:
            self.create(entry)
        except DuplicateKeyError:
            # Registered concurrently by another request
            return self.resolve_by_external_key(key)
        return entry

    def _editable_fields(self) -> list[str]:
        return [
            field.name
            for field in self.model._meta.concrete_fields  # noqa: WPS437
            if field.editable and not field.primary_key
        ]

    def _check_key_is_free(self, key: str, exclude_id: int | None) -> None:
        others = self.model.objects.filter(**{self.key_field: key})
        if exclude_id is not None:
            others = others.exclude(pk=exclude_id)
        if others.exists():
            logger.warning(
                'Duplicate %s key rejected: %s',
                self.model.__name__,
                key,
            )
            raise DuplicateKeyError(self.key_field, key)


project_registry: OwnerRegistry[ProjectEntry] = OwnerRegistry(
    ProjectEntry,
    key_field='project_id',
)

user_registry: OwnerRegistry[UserEntry] = OwnerRegistry(
    UserEntry,
    key_field='user_id',
)
