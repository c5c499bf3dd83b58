"""Signal handlers for drive app."""

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete
from django.dispatch import receiver

from server.apps.drive.exceptions import BlobDeletionError
from server.apps.drive.infrastructure.blobs import delete_blob
from server.apps.drive.models import Item

logger = logging.getLogger(__name__)


def _delete_orphaned_blob(blob_ref: str) -> None:
    try:
        delete_blob(blob_ref)
    except BlobDeletionError:
        # Row is gone already, orphaned bytes can be swept later
        logger.exception(
            'Failed to delete blob from storage (orphaned): %s',
            blob_ref,
        )


@receiver(post_delete, sender=Item)
def delete_blob_from_storage(
    sender: type[Item],
    instance: Item,
    **kwargs: object,
) -> None:
    """Delete blob bytes once the removal of an Item row is committed.

    Runs once per removed row, so a purged folder deletes the blob of
    every file below it. Nothing is deleted when the surrounding
    transaction rolls back. Storage failures never block the row
    removal, otherwise trash could never drain.

    Args:
        sender: The Item model class.
        instance: The Item instance being deleted.
        **kwargs: Additional signal arguments.
    """
    if not instance.is_file or not instance.blob_ref:
        return

    logger.info(
        'Deleting blob after item purge: %s (item %d)',
        instance.blob_ref,
        instance.pk,
    )

    transaction.on_commit(partial(_delete_orphaned_blob, instance.blob_ref))
