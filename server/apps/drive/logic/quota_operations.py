"""Business logic for storage quota operations.

The ledger follows the lazy accounting policy: bytes enter the ledger
when a file row is created and leave it only when the row is purged.
Moving items to trash or restoring them never touches ``used_bytes``.

``create_file`` reserves through ``try_reserve``, which checks and
commits in one statement. ``check_quota`` (read-only check) and
``increment_usage`` (unconditional commit) are public ledger API for
callers that account bytes outside ``create_file``; the lifecycle
operations in this package do not use them.
"""

import logging
from typing import Any

from django.db import transaction
from django.db.models import F, Sum  # noqa: WPS347

from server.apps.drive.exceptions import QuotaExceededError
from server.apps.drive.models import Item, ItemKind, UserQuota

# User type for Django's dynamic user model
_User = Any

# Field name constants to avoid string literal over-use
_USED_BYTES_FIELD = 'used_bytes'  # noqa: WPS226
_QUOTA_BYTES_FIELD = 'quota_bytes'

logger = logging.getLogger(__name__)


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(user=user)
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def get_usage(user: _User) -> tuple[int, int]:
    """Get user's current usage and limit.

    Args:
        user: User to read the ledger for.

    Returns:
        Tuple of (used_bytes, quota_bytes).
    """
    quota = get_or_create_quota(user)
    return quota.used_bytes, quota.quota_bytes


def check_quota(user: _User, size_bytes: int) -> None:
    """Check if user has enough quota for a new file.

    Read-only check, nothing is reserved. Creates quota on-demand if it
    doesn't exist.

    Args:
        user: User to check quota for.
        size_bytes: Size of the new file in bytes.

    Raises:
        QuotaExceededError: If the file would exceed quota.
    """
    quota = get_or_create_quota(user)

    if not quota.has_space_for(size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.username,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )


def try_reserve(user: _User, size_bytes: int) -> bool:
    """Atomically reserve space for a new file.

    The limit check and the increment run as one conditional UPDATE,
    so two concurrent reservations can never both pass a check made
    against the same old value. Callers run this inside the transaction
    that inserts the file row, a rollback returns the space.

    Args:
        user: User to reserve space for.
        size_bytes: Bytes to reserve.

    Returns:
        True if the bytes were added to usage, False if over quota.
    """
    get_or_create_quota(user)

    reserved = UserQuota.objects.filter(
        user=user,
        used_bytes__lte=F(_QUOTA_BYTES_FIELD) - size_bytes,
    ).update(
        used_bytes=F(_USED_BYTES_FIELD) + size_bytes,
    )

    if reserved:
        logger.debug(
            'Reserved %d bytes for user %s',
            size_bytes,
            user.username,
        )
        return True

    logger.warning(
        'Reservation of %d bytes refused for user %s',
        size_bytes,
        user.username,
    )
    return False


def increment_usage(user: _User, size_bytes: int) -> None:
    """Atomically increment user's storage usage.

    Args:
        user: User to increment usage for.
        size_bytes: Bytes to add to usage.
    """
    with transaction.atomic():
        updated = UserQuota.objects.filter(user=user).update(
            used_bytes=F(_USED_BYTES_FIELD) + size_bytes,
        )

        if updated == 0:
            # Quota doesn't exist yet, create it
            quota = get_or_create_quota(user)
            quota.used_bytes = size_bytes
            quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Incremented usage for user %s by %d bytes',
        user.username,
        size_bytes,
    )


def decrement_usage(user: _User, size_bytes: int) -> None:
    """Atomically decrement user's storage usage.

    Prevents negative values by clamping to 0.

    Args:
        user: User to decrement usage for.
        size_bytes: Bytes to subtract from usage.
    """
    with transaction.atomic():
        # Lock the row so concurrent releases serialize
        try:
            quota = UserQuota.objects.select_for_update().get(user=user)
        except UserQuota.DoesNotExist:
            logger.debug(
                'No quota exists for user %s, skipping decrement',
                user.username,
            )
            return

        if size_bytes > quota.used_bytes:
            logger.warning(
                'Ledger drift for user %s: releasing %d bytes, only %d used',
                user.username,
                size_bytes,
                quota.used_bytes,
            )

        new_usage = max(0, quota.used_bytes - size_bytes)
        quota.used_bytes = new_usage
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Decremented usage for user %s by %d bytes (new: %d)',
        user.username,
        size_bytes,
        new_usage,
    )


def calculate_stored_bytes(user: _User) -> int:
    """Sum the size of every file row the user still has.

    Trashed files are included, they are released only on purge.

    Args:
        user: Owner of the files.

    Returns:
        Total bytes of stored files.
    """
    return Item.all_objects.filter(
        owner=user,
        kind=ItemKind.FILE,
    ).aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from actual items.

    This is useful for fixing inconsistencies left by interrupted
    operations.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    total = calculate_stored_bytes(user)

    with transaction.atomic():
        quota = get_or_create_quota(user)
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        total,
    )

    return total
