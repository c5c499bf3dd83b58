"""Business logic for creating, browsing, renaming and moving items."""

import logging
from typing import Any, Final

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from server.apps.drive.exceptions import (
    InvalidMoveError,
    ItemNotFoundError,
    NameConflictError,
    QuotaExceededError,
)
from server.apps.drive.logic.quota_operations import (
    get_or_create_quota,
    try_reserve,
)
from server.apps.drive.logic.tree import is_same_or_descendant, load_subtree
from server.apps.drive.models import Item, ItemKind

# User type for Django's dynamic user model
_User = Any

# Sort keys accepted by list_children
_SORT_FIELDS: Final = {
    'name': 'name',
    'date': 'created_at',
    'size': 'size_bytes',
}

logger = logging.getLogger(__name__)


def validate_name(name: str) -> str:
    """Normalize and validate an item name.

    Args:
        name: Proposed name.

    Returns:
        Name with surrounding whitespace removed.

    Raises:
        ValidationError: If the name is empty or contains a slash.
    """
    cleaned = (name or '').strip()
    if not cleaned:
        raise ValidationError('Item name cannot be empty')
    if '/' in cleaned:
        raise ValidationError('Item name cannot contain "/"')
    if cleaned in {'.', '..'}:
        raise ValidationError(f'Item name cannot be "{cleaned}"')
    return cleaned


def get_item(user: _User, item_id: int) -> Item:
    """Get an active item owned by the user.

    Args:
        user: Owner of the item.
        item_id: ID of the item.

    Returns:
        Item instance.

    Raises:
        ItemNotFoundError: If missing, trashed or owned by someone else.
    """
    try:
        return Item.objects.get(pk=item_id, owner=user)
    except Item.DoesNotExist as exc:
        raise ItemNotFoundError(item_id) from exc


def get_folder(user: _User, folder_id: int | None) -> Item | None:
    """Resolve a destination folder id.

    Args:
        user: Owner of the folder.
        folder_id: Folder ID, None for the root level.

    Returns:
        Folder instance, or None for the root level.

    Raises:
        ItemNotFoundError: If the folder is missing, trashed, foreign
            or is a file.
    """
    if folder_id is None:
        return None
    folder = get_item(user, folder_id)
    if not folder.is_folder:
        raise ItemNotFoundError(folder_id, 'not a folder')
    return folder


def item_exists(
    user: _User,
    name: str,
    parent_id: int | None,
    exclude_id: int | None = None,
) -> bool:
    """Check whether an active sibling already uses the name.

    Args:
        user: Owner of the items.
        name: Name to look for.
        parent_id: Parent folder ID, None for the root level.
        exclude_id: Item to ignore (the one being renamed or moved).

    Returns:
        True if an active item with that name exists at the location.
    """
    siblings = Item.objects.filter(owner=user, parent_id=parent_id, name=name)
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    return siblings.exists()


def _ensure_name_available(
    user: _User,
    name: str,
    parent_id: int | None,
    exclude_id: int | None = None,
) -> None:
    if item_exists(user, name, parent_id, exclude_id):
        raise NameConflictError(name, parent_id)


def create_folder(
    user: _User,
    name: str,
    parent_id: int | None = None,
    description: str = '',
) -> Item:
    """Create a folder.

    Args:
        user: Owner of the folder.
        name: Folder name.
        parent_id: Parent folder ID, None for the root level.
        description: Optional free text.

    Returns:
        Created folder.

    Raises:
        ValidationError: If the name is invalid.
        ItemNotFoundError: If the parent folder is unusable.
        NameConflictError: If an active sibling has the same name.
    """
    name = validate_name(name)

    try:
        with transaction.atomic():
            get_folder(user, parent_id)
            _ensure_name_available(user, name, parent_id)
            folder = Item.all_objects.create(
                owner=user,
                parent_id=parent_id,
                name=name,
                description=description,
                kind=ItemKind.FOLDER,
            )
    except IntegrityError as exc:
        # Lost a race against a concurrent insert of the same name
        raise NameConflictError(name, parent_id) from exc

    logger.info(
        "Folder '%s' created by user %s (ID: %d)",
        name,
        user.username,
        folder.pk,
    )
    return folder


def create_file(  # noqa: WPS211
    user: _User,
    name: str,
    size_bytes: int,
    blob_ref: str,
    parent_id: int | None = None,
    mime_type: str = '',
    checksum: str = '',
    description: str = '',
) -> Item:
    """Register a file whose bytes already live in blob storage.

    Quota is reserved and the row inserted in one transaction: if the
    insert fails the reservation is rolled back with it.

    Args:
        user: Owner of the file.
        name: File name.
        size_bytes: Size of the blob in bytes.
        blob_ref: Opaque blob storage reference.
        parent_id: Parent folder ID, None for the root level.
        mime_type: Optional MIME type.
        checksum: Optional content hash.
        description: Optional free text.

    Returns:
        Created file.

    Raises:
        ValidationError: If the name or size is invalid.
        ItemNotFoundError: If the parent folder is unusable.
        NameConflictError: If an active sibling has the same name.
        QuotaExceededError: If the file would exceed the user's quota.
    """
    name = validate_name(name)
    if size_bytes < 0:
        raise ValidationError('File size cannot be negative')

    try:
        with transaction.atomic():
            get_folder(user, parent_id)
            _ensure_name_available(user, name, parent_id)

            if not try_reserve(user, size_bytes):
                quota = get_or_create_quota(user)
                raise QuotaExceededError(
                    quota_bytes=quota.quota_bytes,
                    used_bytes=quota.used_bytes,
                    required_bytes=size_bytes,
                )

            file_instance = Item.all_objects.create(
                owner=user,
                parent_id=parent_id,
                name=name,
                description=description,
                kind=ItemKind.FILE,
                size_bytes=size_bytes,
                blob_ref=blob_ref,
                mime_type=mime_type,
                checksum=checksum,
            )
    except IntegrityError as exc:
        raise NameConflictError(name, parent_id) from exc

    logger.info(
        "File '%s' created by user %s (ID: %d, size: %d)",
        name,
        user.username,
        file_instance.pk,
        size_bytes,
    )
    return file_instance


def rename_item(
    user: _User,
    item_id: int,
    new_name: str,
    description: str | None = None,
) -> Item:
    """Rename an active item.

    Args:
        user: Owner of the item.
        item_id: ID of the item.
        new_name: New name.
        description: New description, None keeps the current one.

    Returns:
        Updated item.

    Raises:
        ValidationError: If the name is invalid.
        ItemNotFoundError: If the item is unusable.
        NameConflictError: If an active sibling has the new name.
    """
    new_name = validate_name(new_name)

    try:
        with transaction.atomic():
            item = get_item(user, item_id)
            _ensure_name_available(user, new_name, item.parent_id, item.pk)
            old_name = item.name
            item.name = new_name
            update_fields = ['name', 'modified_at']
            if description is not None:
                item.description = description
                update_fields.append('description')
            item.save(update_fields=update_fields)
    except IntegrityError as exc:
        raise NameConflictError(new_name, item.parent_id) from exc

    logger.info(
        "Item %d renamed '%s' -> '%s' by user %s",
        item_id,
        old_name,
        new_name,
        user.username,
    )
    return item


def move_item(user: _User, item_id: int, new_parent_id: int | None) -> Item:
    """Move an active item under another folder (or the root level).

    Args:
        user: Owner of the item.
        item_id: ID of the item to move.
        new_parent_id: Destination folder ID, None for the root level.

    Returns:
        Updated item.

    Raises:
        ItemNotFoundError: If the item or destination is unusable.
        InvalidMoveError: If the destination is the item itself, one of
            its descendants, or a file.
        NameConflictError: If the destination has a like-named item.
    """
    try:
        with transaction.atomic():
            item = get_item(user, item_id)

            destination = None
            if new_parent_id is not None:
                destination = get_item(user, new_parent_id)
                if is_same_or_descendant(destination, item.pk):
                    raise InvalidMoveError(
                        item_id,
                        new_parent_id,
                        'destination is inside the item',
                    )
                if not destination.is_folder:
                    raise InvalidMoveError(
                        item_id,
                        new_parent_id,
                        'destination is not a folder',
                    )

            if item.parent_id == new_parent_id:
                return item

            _ensure_name_available(user, item.name, new_parent_id, item.pk)

            old_parent_id = item.parent_id
            item.parent = destination
            item.save(update_fields=['parent', 'modified_at'])
    except IntegrityError as exc:
        raise NameConflictError(item.name, new_parent_id) from exc

    logger.info(
        'Item %d moved from folder %s to folder %s by user %s',
        item_id,
        old_parent_id,
        new_parent_id,
        user.username,
    )
    return item


def list_children(
    user: _User,
    parent_id: int | None = None,
    sort_by: str = 'name',
    descending: bool = False,
) -> QuerySet[Item]:
    """List active items directly inside a folder.

    Folders always come before files.

    Args:
        user: Owner of the items.
        parent_id: Folder ID, None for the root level.
        sort_by: One of 'name', 'date', 'size'; unknown keys sort by name.
        descending: Reverse the order inside each kind.

    Returns:
        QuerySet of items.

    Raises:
        ItemNotFoundError: If the folder is unusable.
    """
    get_folder(user, parent_id)

    field = _SORT_FIELDS.get(sort_by, 'name')
    ordering = f'-{field}' if descending else field

    # 'folder' sorts after 'file', so reverse kind to list folders first
    return Item.objects.filter(
        owner=user,
        parent_id=parent_id,
    ).order_by('-kind', ordering, 'pk')


def get_breadcrumbs(user: _User, folder_id: int | None) -> list[Item]:
    """Get the folder chain from the root level down to a folder.

    Args:
        user: Owner of the folders.
        folder_id: Folder ID, None for the root level.

    Returns:
        Folders ordered root first, ending with ``folder_id``.

    Raises:
        ItemNotFoundError: If the folder is unusable.
    """
    breadcrumbs: list[Item] = []
    seen: set[int] = set()
    current = get_folder(user, folder_id)

    while current is not None and current.pk not in seen:
        seen.add(current.pk)
        breadcrumbs.append(current)
        if current.parent_id is None:
            break
        current = Item.objects.filter(
            pk=current.parent_id,
            owner=user,
        ).first()

    breadcrumbs.reverse()
    return breadcrumbs


def get_folder_size(user: _User, folder_id: int) -> int:
    """Compute a folder's size from the active files below it.

    Folder sizes are never stored.

    Args:
        user: Owner of the folder.
        folder_id: Folder ID.

    Returns:
        Total size in bytes.

    Raises:
        ItemNotFoundError: If the folder is unusable.
    """
    folder = get_folder(user, folder_id)
    return load_subtree(folder).active_file_bytes()  # type: ignore[arg-type]
