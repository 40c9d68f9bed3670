"""Management command to purge content no file record references."""

import logging
from datetime import datetime, timedelta
from typing import Any, Final

from django.core.management.base import BaseCommand
from django.db.models import Exists, OuterRef
from django.utils import timezone

from server.apps.files.infrastructure.content_store import (
    delete_stray_object,
    discard_content,
    find_stray_objects,
)
from server.apps.files.models import ContentBlob, ProjectFile, UserFile

_DEFAULT_MIN_AGE_MINUTES: Final = 60
_DEFAULT_BATCH_SIZE: Final = 1000

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Delete content left behind by rolled back transactions.

    Two kinds of leftovers are purged: blob rows no file record
    references, and storage objects no blob row references (uploads
    whose registering transaction was rolled back).
    """

    help = 'Purge content that no project or user file references'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be purged without deleting',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=_DEFAULT_BATCH_SIZE,
            help=f'Max blobs to process (default: {_DEFAULT_BATCH_SIZE})',
        )
        parser.add_argument(
            '--min-age-minutes',
            type=int,
            default=_DEFAULT_MIN_AGE_MINUTES,
            help=(
                'Skip blobs younger than this, they may belong to a save '
                f'in progress (default: {_DEFAULT_MIN_AGE_MINUTES})'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the purge command.

        Args:
            args: Positional arguments (unused).
            options: Command options.
        """
        dry_run = options['dry_run']
        batch_size = options['batch_size']
        cutoff = timezone.now() - timedelta(minutes=options['min_age_minutes'])

        self.stdout.write(f'Looking for orphaned content created before {cutoff}')

        purged_names = self._purge_blobs(cutoff, batch_size, dry_run)
        self._purge_stray_objects(cutoff, batch_size, dry_run, purged_names)

    def _purge_blobs(
        self,
        cutoff: datetime,
        batch_size: int,
        dry_run: bool,
    ) -> set[str]:
        orphans = ContentBlob.objects.filter(
            created_at__lte=cutoff,
        ).exclude(
            Exists(ProjectFile.objects.filter(blob=OuterRef('pk'))),
        ).exclude(
            Exists(UserFile.objects.filter(blob=OuterRef('pk'))),
        ).order_by('created_at')[:batch_size]

        purged_names: set[str] = set()
        failed = 0

        for blob in orphans:
            if dry_run:
                self.stdout.write(
                    f'Would purge: {blob.data.name} ({blob.size_bytes} bytes)',
                )
                purged_names.add(blob.data.name)
                continue

            try:
                discard_content(blob.id)
            except Exception as exc:
                self.stderr.write(f'Failed to purge {blob.id}: {exc}')
                logger.exception('Failed to purge orphaned blob: %d', blob.id)
                failed += 1
            else:
                purged_names.add(blob.data.name)

        count = len(purged_names)
        if dry_run:
            self.stdout.write(
                self.style.SUCCESS(f'Would purge {count} orphaned blobs'),
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(
                    f'Purged {count} orphaned blobs, {failed} failed',
                ),
            )
        return purged_names

    def _purge_stray_objects(
        self,
        cutoff: datetime,
        batch_size: int,
        dry_run: bool,
        skip_names: set[str],
    ) -> None:
        # Objects of blobs purged above go with their rows
        strays = [
            name
            for name in find_stray_objects(cutoff, batch_size + len(skip_names))
            if name not in skip_names
        ][:batch_size]

        if dry_run:
            for name in strays:
                self.stdout.write(f'Would delete stray object: {name}')
            self.stdout.write(
                self.style.SUCCESS(f'Would delete {len(strays)} stray objects'),
            )
            return

        count = 0
        failed = 0
        for name in strays:
            try:
                delete_stray_object(name)
            except Exception as exc:
                self.stderr.write(f'Failed to delete {name}: {exc}')
                logger.exception('Failed to delete stray object: %s', name)
                failed += 1
            else:
                count += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'Deleted {count} stray objects, {failed} failed',
            ),
        )
