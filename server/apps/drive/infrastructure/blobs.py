"""Blob store access used by the drive core."""

import logging

from django.core.files.storage import Storage, default_storage

from server.apps.drive.exceptions import BlobDeletionError

logger = logging.getLogger(__name__)


def get_blob_storage() -> Storage:
    """Get the configured blob storage backend.

    Returns:
        Default storage (DriveStorage outside of tests).
    """
    return default_storage


def delete_blob(blob_ref: str) -> bool:
    """Delete blob bytes from storage.

    A missing blob is not an error: purges may be retried after a
    partial failure, and the bytes may already be gone.

    Args:
        blob_ref: Opaque storage reference of the blob.

    Returns:
        True if bytes were deleted, False if nothing was stored.

    Raises:
        BlobDeletionError: If the storage backend failed.
    """
    storage = get_blob_storage()
    try:
        if not storage.exists(blob_ref):
            logger.warning(
                'Blob not found in storage (already deleted?): %s',
                blob_ref,
            )
            return False
        storage.delete(blob_ref)
    except Exception as exc:
        raise BlobDeletionError(blob_ref) from exc
    return True
