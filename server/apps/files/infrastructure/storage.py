"""Custom storage backend for S3-compatible storage."""

import logging
from collections.abc import Iterator
from datetime import datetime
from typing import final

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """S3 storage backend for document content.

    Adds what the content store needs on top of S3Storage: undoing an
    upload whose row was never written, and listing objects so uploads
    without any row can be found later.
    """

    def rollback_upload(self, name: str) -> None:
        """Delete uploaded object after a failed DB transaction.

        Best-effort: if deletion fails the error is logged, not raised,
        since the DB rollback has already happened. The object is then
        orphaned until ``purge_orphaned_content`` removes it.

        Args:
            name: Storage path of the object.
        """
        logger.warning('Rolling back upload, deleting object: %s', name)
        try:
            self.delete(name)
        except Exception:
            logger.exception(
                'Failed to rollback upload, orphaned object: %s',
                name,
            )

    def iter_objects(self, prefix: str) -> Iterator[tuple[str, datetime]]:
        """Iterate over objects whose name starts with ``prefix``.

        Args:
            prefix: Name prefix (e.g., 'content/').

        Yields:
            Object name and its last modification time (timezone aware).
        """
        for summary in self.bucket.objects.filter(Prefix=prefix):
            yield summary.key, summary.last_modified
