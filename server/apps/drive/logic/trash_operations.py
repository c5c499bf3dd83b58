"""Business logic for trash (soft delete) operations.

Soft delete and restore cascade over the whole subtree of an item and
never touch the quota ledger: trashed files keep counting against the
owner's quota. Only a permanent delete releases bytes.

Every operation treats descendants that are already in the target
state as done, so re-running an operation over a partially mutated
subtree converges instead of failing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import Any, Final

from django.conf import settings
from django.db import transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from server.apps.drive.exceptions import ItemNotFoundError
from server.apps.drive.logic.item_operations import item_exists
from server.apps.drive.logic.quota_operations import decrement_usage
from server.apps.drive.logic.tree import chunked, load_subtree
from server.apps.drive.models import Item

# User type for Django's dynamic user model
_User = Any

_DEFAULT_RETENTION_DAYS: Final = 15
_TRASH_FIELDS: Final = ('is_deleted', 'deleted_at', 'modified_at')

logger = logging.getLogger(__name__)


def get_retention_days() -> int:
    """Get trash retention window.

    Returns:
        Retention in days from settings or default of 15.
    """
    return getattr(
        settings,
        'DRIVE_TRASH_RETENTION_DAYS',
        _DEFAULT_RETENTION_DAYS,
    )


@dataclass(frozen=True, slots=True)
class TrashEntry:
    """Trashed item annotated with its remaining retention."""

    item: Item
    days_remaining: int


def _get_trashed_item(user: _User, item_id: int, *, lock: bool = False) -> Item:
    queryset = Item.all_objects.filter(pk=item_id, owner=user, is_deleted=True)
    if lock:
        queryset = queryset.select_for_update()
    item = queryset.first()
    if item is None:
        raise ItemNotFoundError(item_id, 'not in trash')
    return item


def soft_delete_item(user: _User, item_id: int) -> Item:
    """Move an item and everything below it to trash.

    The item and every active descendant get the same ``deleted_at``.
    Descendants trashed earlier keep their own timestamp. Quota is NOT
    decremented, trashed files count toward quota.

    Args:
        user: Owner of the item.
        item_id: ID of item to soft delete.

    Returns:
        Updated item.

    Raises:
        ItemNotFoundError: If missing, foreign or already in trash.
    """
    with transaction.atomic():
        item = Item.all_objects.select_for_update().filter(
            pk=item_id,
            owner=user,
            is_deleted=False,
        ).first()
        if item is None:
            raise ItemNotFoundError(item_id, 'not active')

        deleted_at = timezone.now()
        subtree = load_subtree(item)
        # Pre-order: the item itself first, then active descendants
        active_ids = [node.pk for node in subtree.walk() if not node.is_deleted]

        for chunk in chunked(active_ids):
            Item.all_objects.filter(
                pk__in=chunk,
                is_deleted=False,
            ).update(
                is_deleted=True,
                deleted_at=deleted_at,
                modified_at=deleted_at,
            )

    item.is_deleted = True
    item.deleted_at = deleted_at
    item.modified_at = deleted_at

    logger.info(
        'Item moved to trash: %s (ID: %d, %d items affected)',
        item.name,
        item_id,
        len(active_ids),
    )

    return item


def _free_restore_name(user: _User, node: Item, parent_id: int | None) -> str:
    """Pick a name that does not collide with active siblings.

    Args:
        user: Owner of the item.
        node: Item being restored.
        parent_id: Folder the item is restored into.

    Returns:
        Original name, or '<stem> (restored)<suffix>' style variant.
    """
    if not item_exists(user, node.name, parent_id, node.pk):
        return node.name

    if node.is_file:
        path = PurePosixPath(node.name)
        stem, suffix = path.stem, path.suffix
    else:
        stem, suffix = node.name, ''

    candidate = f'{stem} (restored){suffix}'
    attempt = 1
    while item_exists(user, candidate, parent_id, node.pk):
        attempt += 1
        candidate = f'{stem} (restored {attempt}){suffix}'
    return candidate


def _restore_node(user: _User, node: Item, parent_id: int | None) -> None:
    new_name = _free_restore_name(user, node, parent_id)
    if new_name != node.name:
        logger.info(
            "Restore conflict, renamed '%s' to '%s' (ID: %d)",
            node.name,
            new_name,
            node.pk,
        )
        node.name = new_name

    node.parent_id = parent_id
    node.is_deleted = False
    node.deleted_at = None
    node.save(update_fields=['name', 'parent', *_TRASH_FIELDS])


def restore_item(user: _User, item_id: int) -> Item:
    """Restore an item and its trashed descendants from trash.

    If the item's parent folder is no longer active the item is restored
    to the root level. Items whose name collides with an active sibling
    get a '(restored)' suffix. Quota is not changed.

    Args:
        user: Owner of the item.
        item_id: ID of item to restore.

    Returns:
        Updated item.

    Raises:
        ItemNotFoundError: If not in trash or owned by someone else.
    """
    with transaction.atomic():
        item = _get_trashed_item(user, item_id, lock=True)

        target_parent_id = item.parent_id
        if target_parent_id is not None and not Item.objects.filter(
            pk=target_parent_id,
            owner=user,
        ).exists():
            logger.info(
                'Parent %d of item %d is not active, restoring to root',
                target_parent_id,
                item_id,
            )
            target_parent_id = None

        subtree = load_subtree(item)
        restored = 0
        # Pre-order so each folder is active before its children
        for node in subtree.walk():
            if not node.is_deleted:
                continue
            parent_id = target_parent_id if node.pk == item.pk else node.parent_id
            _restore_node(user, node, parent_id)
            restored += 1

    logger.info(
        'Item restored: %s (ID: %d, %d items affected)',
        item.name,
        item_id,
        restored,
    )

    return item


def permanent_delete_item(user: _User, item_id: int) -> int:
    """Permanently delete a trashed item and everything below it.

    Removes the rows, deletes blob bytes of every file (through the
    post_delete signal, failures are logged only) and releases the
    subtree's bytes from the quota exactly once.

    The row is locked and re-checked inside the transaction, so when
    two callers race on the same item the loser gets ItemNotFoundError
    and the ledger is decremented once.

    Args:
        user: Owner of the item.
        item_id: ID of item to permanently delete.

    Returns:
        Number of bytes released from the quota.

    Raises:
        ItemNotFoundError: If not in trash or owned by someone else.
    """
    with transaction.atomic():
        item = _get_trashed_item(user, item_id, lock=True)
        subtree = load_subtree(item)
        released_bytes = subtree.total_file_bytes()
        ids = subtree.ids()

        # Children before parents, so every chunk deletes leaves first
        ids.reverse()
        removed = 0
        for chunk in chunked(ids):
            removed += Item.all_objects.filter(pk__in=chunk).delete()[0]

        decrement_usage(user, released_bytes)

    logger.info(
        'Item permanently deleted: %s (ID: %d, %d rows, %d bytes released)',
        item.name,
        item_id,
        removed,
        released_bytes,
    )

    return released_bytes


def list_trash(user: _User, now: datetime | None = None) -> list[TrashEntry]:
    """List all items in user's trash.

    Args:
        user: User whose trash to list.
        now: Reference time for the remaining days, defaults to now.

    Returns:
        Trash entries, newest deletion first.
    """
    now = now or timezone.now()
    retention_days = get_retention_days()
    trashed = Item.all_objects.filter(
        owner=user,
        is_deleted=True,
        deleted_at__isnull=False,
    ).order_by('-deleted_at', 'pk')

    return [
        TrashEntry(
            item=item,
            days_remaining=item.days_remaining(retention_days, now),  # type: ignore[arg-type]
        )
        for item in trashed
    ]


def trash_roots() -> QuerySet[Item]:
    """Trashed items that are not inside another trashed folder.

    Purging these covers every trashed row exactly once.

    Returns:
        QuerySet over all users.
    """
    return Item.all_objects.filter(
        Q(parent__isnull=True) | Q(parent__is_deleted=False),
        is_deleted=True,
    )


def empty_trash(user: _User) -> int:
    """Permanently delete all items in user's trash.

    Args:
        user: User whose trash to empty.

    Returns:
        Number of top-level trash entries deleted.
    """
    root_ids = list(
        trash_roots().filter(owner=user).values_list('pk', flat=True),
    )
    count = 0

    for item_id in root_ids:
        try:
            permanent_delete_item(user, item_id)
        except ItemNotFoundError:
            # Purged concurrently, nothing left to do
            logger.info('Trash item already purged: %d', item_id)
            continue
        except Exception:
            logger.exception(
                'Failed to permanently delete item: %d',
                item_id,
            )
            raise
        count += 1

    logger.info(
        'Trash emptied for user %s: %d items deleted',
        user.username,
        count,
    )

    return count
