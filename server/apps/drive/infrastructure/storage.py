"""Custom storage backend for S3-compatible storage."""

import logging
from typing import final

from typing_extensions import override

from storages.backends.s3 import S3Storage

logger = logging.getLogger(__name__)


@final
class DriveStorage(S3Storage):
    """S3 storage backend holding drive blobs.

    Extends django-storages S3Storage with logging around deletes, the
    only blob mutation the drive core performs.
    """

    @override
    def delete(self, name: str) -> None:
        """Delete blob from S3 with error handling and logging.

        Args:
            name: Storage path of blob to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting blob from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted blob: %s', name)
        except Exception:
            logger.exception('Failed to delete blob from storage: %s', name)
            raise
