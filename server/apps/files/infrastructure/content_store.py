"""Content store: binary bodies of stored files.

Bodies are written to S3-compatible storage and referenced by the
numeric id of a ``ContentBlob`` row. File records only ever hold that
reference, so metadata and content travel separately.
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Final

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.db import transaction

from server.apps.files.infrastructure.metadata import (
    CONTENT_PREFIX,
    calculate_checksum,
    generate_object_name,
)
from server.apps.files.models import ContentBlob

if TYPE_CHECKING:
    from server.apps.files.infrastructure.storage import FileStorage

# Names looked up in the database per query
_LOOKUP_BATCH_SIZE: Final = 500

logger = logging.getLogger(__name__)


def _get_storage() -> 'FileStorage':
    """Get the configured default storage backend.

    Returns:
        FileStorage instance with proper S3 configuration.
    """
    return default_storage  # type: ignore[return-value]


def store_content(data: bytes) -> ContentBlob:
    """Upload content and register it as a new blob.

    Transaction safety: upload to storage first, then create the DB row.
    If the DB insert fails the upload is deleted again.

    Args:
        data: Content bytes, may be empty.

    Returns:
        Created ContentBlob instance.

    Raises:
        Exception: If upload or DB operation fails.
    """
    storage = _get_storage()
    object_name = generate_object_name()
    checksum = calculate_checksum(data)

    # Step 1: Upload to storage first
    saved_name = storage.save(object_name, ContentFile(data, name=object_name))

    # Step 2: Register blob (in transaction)
    try:
        with transaction.atomic():
            blob = ContentBlob.objects.create(
                data=saved_name,
                size_bytes=len(data),
                checksum_sha256=checksum,
            )
    except Exception:
        logger.exception(
            'Blob registration failed, rolling back storage upload: %s',
            saved_name,
        )
        storage.rollback_upload(saved_name)
        raise

    logger.info(
        'Stored content: %s (ID: %d, %d bytes)',
        saved_name,
        blob.id,
        blob.size_bytes,
    )
    return blob


def load_content(blob_id: int) -> bytes:
    """Read content by blob id.

    Args:
        blob_id: Id of the ContentBlob.

    Returns:
        Content bytes.

    Raises:
        ContentBlob.DoesNotExist: If the blob does not exist.
    """
    blob = ContentBlob.objects.get(pk=blob_id)
    logger.debug('Reading content: %s (ID: %d)', blob.data.name, blob_id)
    return blob.read_bytes()


def release_content(blob: ContentBlob) -> None:
    """Remove a blob whose file record could not be written.

    Deletes the row; the storage object follows once the deletion is
    committed (post_delete signal handler). Best-effort: failures are
    logged, never raised, so the original error reaches the caller.
    A row that cannot be deleted is left to ``purge_orphaned_content``.

    Args:
        blob: Blob returned by ``store_content``.
    """
    try:
        with transaction.atomic():
            ContentBlob.objects.filter(pk=blob.pk).delete()
    except Exception:
        logger.exception(
            'Failed to release blob, left for purge: ID=%s',
            blob.pk,
        )
    else:
        logger.info('Released content: blob ID=%d', blob.pk)


def discard_content(blob_id: int) -> None:
    """Delete a blob that is no longer referenced.

    The storage object is removed by the post_delete signal handler
    once the transaction commits.

    Args:
        blob_id: Id of the ContentBlob.
    """
    deleted, _ = ContentBlob.objects.filter(pk=blob_id).delete()
    if deleted:
        logger.info('Discarded content: blob ID=%d', blob_id)
    else:
        logger.warning('Content already gone: blob ID=%d', blob_id)


def find_stray_objects(cutoff: datetime, limit: int) -> list[str]:
    """Find uploads no blob row references.

    Such objects are left behind when the transaction that registered
    them is rolled back. Objects modified after ``cutoff`` are skipped,
    their row may still be on its way.

    Args:
        cutoff: Only objects last modified at or before this time.
        limit: Maximum number of names to return.

    Returns:
        Storage names of unreferenced objects.
    """
    candidates = [
        name
        for name, modified_at in _get_storage().iter_objects(
            f'{CONTENT_PREFIX}/',
        )
        if modified_at <= cutoff
    ]

    strays: list[str] = []
    for start in range(0, len(candidates), _LOOKUP_BATCH_SIZE):
        batch = candidates[start:start + _LOOKUP_BATCH_SIZE]
        known = set(
            ContentBlob.objects.filter(data__in=batch).values_list(
                'data',
                flat=True,
            ),
        )
        strays.extend(name for name in batch if name not in known)
        if len(strays) >= limit:
            break
    return strays[:limit]


def delete_stray_object(name: str) -> None:
    """Delete an object found by ``find_stray_objects``.

    Args:
        name: Storage name of the object.

    Raises:
        Exception: If the storage delete fails.
    """
    _get_storage().delete(name)
    logger.info('Deleted stray content object: %s', name)
