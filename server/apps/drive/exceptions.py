"""Exceptions for drive app."""


class DriveError(Exception):
    """Base class for drive lifecycle errors."""


class ItemNotFoundError(DriveError):
    """Raised when an item is absent, foreign or in the wrong state."""

    def __init__(self, item_id: int | None, reason: str = '') -> None:
        """Initialize ItemNotFoundError.

        Args:
            item_id: Requested item ID.
            reason: Optional detail on why the lookup failed.
        """
        self.item_id = item_id
        message = f'Item not found: {item_id}'
        if reason:
            message = f'{message} ({reason})'
        super().__init__(message)


class QuotaExceededError(DriveError):
    """Raised when upload would exceed user's storage quota."""

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = quota_bytes - used_bytes
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )


class NameConflictError(DriveError):
    """Raised when an active sibling already uses the name."""

    def __init__(self, name: str, parent_id: int | None) -> None:
        """Initialize NameConflictError.

        Args:
            name: Conflicting item name.
            parent_id: Folder holding the conflict (None for root).
        """
        self.name = name
        self.parent_id = parent_id
        location = 'root' if parent_id is None else f'folder {parent_id}'
        super().__init__(
            f"An item named '{name}' already exists in {location}",
        )


class InvalidMoveError(DriveError):
    """Raised when a move would create a cycle or target a file."""

    def __init__(self, item_id: int, target_id: int | None, reason: str) -> None:
        """Initialize InvalidMoveError.

        Args:
            item_id: Item being moved.
            target_id: Requested destination folder.
            reason: Why the move was refused.
        """
        self.item_id = item_id
        self.target_id = target_id
        super().__init__(
            f'Cannot move item {item_id} into {target_id}: {reason}',
        )


class BlobDeletionError(DriveError):
    """Raised when blob bytes could not be removed from storage."""

    def __init__(self, blob_ref: str) -> None:
        """Initialize BlobDeletionError.

        Args:
            blob_ref: Storage reference that failed to delete.
        """
        self.blob_ref = blob_ref
        super().__init__(f'Failed to delete blob: {blob_ref}')
