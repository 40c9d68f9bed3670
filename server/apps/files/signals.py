"""Signal handlers for files app."""

import logging

from django.core.files.storage import default_storage
from django.db import transaction
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.files.models import ContentBlob, ProjectFile, UserFile

logger = logging.getLogger(__name__)


@receiver(post_delete, sender=ProjectFile)
@receiver(post_delete, sender=UserFile)
def delete_file_content(
    sender: type[ProjectFile | UserFile],
    instance: ProjectFile | UserFile,
    **kwargs: object,
) -> None:
    """Delete the content blob when a file record is deleted.

    Fires for direct deletes, owner-scoped bulk deletes and cascades
    from a removed project or user, so content never outlives its record.

    Args:
        sender: The file model class.
        instance: The file instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if instance.blob_id is None:
        return

    ContentBlob.objects.filter(pk=instance.blob_id).delete()
    logger.debug(
        'Deleted blob of %s: file ID=%d, blob ID=%d',
        sender.__name__,
        instance.pk,
        instance.blob_id,
    )


@receiver(post_delete, sender=ContentBlob)
def delete_blob_from_storage(
    sender: type[ContentBlob],
    instance: ContentBlob,
    **kwargs: object,
) -> None:
    """Delete the storage object once the blob deletion is committed.

    A rolled back transaction keeps both the row and the object.

    Args:
        sender: The ContentBlob model class.
        instance: The ContentBlob instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.data:
        return

    storage_name = instance.data.name
    transaction.on_commit(lambda: _delete_from_storage(storage_name))


def _delete_from_storage(storage_name: str) -> None:
    logger.info('Deleting content from storage after DB delete: %s', storage_name)

    try:
        if default_storage.exists(storage_name):
            default_storage.delete(storage_name)
        else:
            logger.warning(
                'Content not found in storage (already deleted?): %s',
                storage_name,
            )
    except Exception:
        # Log error but don't raise - DB delete already succeeded
        # Orphaned object can be cleaned up by a bucket lifecycle rule
        logger.exception(
            'Failed to delete content from storage (orphaned): %s',
            storage_name,
        )
