"""Database models for drive app."""

from datetime import datetime, timedelta
from typing import ClassVar, Final, final

from typing_extensions import override

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()

# Constants for field max lengths
_NAME_MAX_LENGTH: Final = 255
_DESCRIPTION_MAX_LENGTH: Final = 500
_BLOB_REF_MAX_LENGTH: Final = 500
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length

# Fallback quota when settings do not define one: 5 GB in bytes
_DEFAULT_QUOTA_BYTES: Final = 5_000_000_000


class ItemKind(models.TextChoices):
    """Kind of entry stored in the item tree."""

    FILE = 'file', 'File'
    FOLDER = 'folder', 'Folder'


class ActiveItemManager(models.Manager['Item']):
    """Default manager that hides trashed items."""

    @override
    def get_queryset(self) -> models.QuerySet['Item']:
        """Return only items that are not in trash."""
        return super().get_queryset().filter(is_deleted=False)


@final
class Item(models.Model):
    """File or folder in a user's drive.

    Items form a forest through the nullable ``parent`` link; a null
    parent means the item sits at the owner's root. Folders never store
    a size, their size is the sum of the files below them.

    Trashed items keep their row (``is_deleted=True``) until they are
    purged, so they keep counting against the owner's quota.
    """

    owner = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='drive_items',
        db_index=True,
    )

    # Self reference, purge removes subtrees explicitly
    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
    )

    name = models.CharField(max_length=_NAME_MAX_LENGTH)

    description = models.CharField(
        max_length=_DESCRIPTION_MAX_LENGTH,
        blank=True,
        default='',
    )

    kind = models.CharField(
        max_length=6,
        choices=ItemKind.choices,
    )

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='File size in bytes (always 0 for folders)',
    )

    blob_ref = models.CharField(
        max_length=_BLOB_REF_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Opaque reference to the bytes in blob storage',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    checksum = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Caller supplied content hash',
    )

    # Trash state
    is_deleted = models.BooleanField(default=False, db_index=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    modified_at = models.DateTimeField(auto_now=True)

    objects: ClassVar[ActiveItemManager] = ActiveItemManager()
    all_objects: ClassVar[models.Manager['Item']] = models.Manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'Item'  # type: ignore[mutable-override]
        verbose_name_plural = 'Items'  # type: ignore[mutable-override]
        ordering = ['kind', 'name']
        default_manager_name = 'all_objects'
        base_manager_name = 'all_objects'

        indexes = [
            # Optimize folder listing queries
            models.Index(
                fields=['owner', 'parent', 'is_deleted'],
                name='drive_owner_parent_idx',
            ),
            # Optimize reaper scans
            models.Index(
                fields=['is_deleted', 'deleted_at'],
                name='drive_trash_age_idx',
            ),
        ]

        constraints = [
            # Active siblings must have distinct names
            models.UniqueConstraint(
                fields=['owner', 'parent', 'name'],
                condition=models.Q(is_deleted=False),
                name='drive_active_sibling_name_unique',
            ),
            # NULL parents never compare equal, root needs its own constraint
            models.UniqueConstraint(
                fields=['owner', 'name'],
                condition=models.Q(parent__isnull=True, is_deleted=False),
                name='drive_active_root_name_unique',
            ),
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='drive_size_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.owner_id}:{self.name}'

    @property
    def is_folder(self) -> bool:
        """Whether the item is a folder."""
        return self.kind == ItemKind.FOLDER

    @property
    def is_file(self) -> bool:
        """Whether the item is a file."""
        return self.kind == ItemKind.FILE

    def trash_expires_at(self, retention_days: int) -> datetime | None:
        """Moment the item becomes eligible for automatic purge.

        Args:
            retention_days: Trash retention window in days.

        Returns:
            Expiry timestamp, or None when the item is not trashed.
        """
        if self.deleted_at is None:
            return None
        return self.deleted_at + timedelta(days=retention_days)

    def days_remaining(self, retention_days: int, now: datetime) -> int | None:
        """Whole days left before the item is purged.

        Negative values mean the item is overdue for reaping.

        Args:
            retention_days: Trash retention window in days.
            now: Reference time.

        Returns:
            Days remaining, or None when the item is not trashed.
        """
        expires_at = self.trash_expires_at(retention_days)
        if expires_at is None:
            return None
        return (expires_at - now).days


def _default_quota_bytes() -> int:
    return getattr(
        settings,
        'DRIVE_DEFAULT_QUOTA_BYTES',
        _DEFAULT_QUOTA_BYTES,
    )


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Tracks user's storage limit and current usage. Usage includes every
    file row still stored, trashed files included, so moving data to
    trash never frees space. Only a purge releases bytes.

    When over quota, users can still read and delete items, but new
    files are refused until usage falls below the limit.
    """

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='drive_quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_default_quota_bytes,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='drive_quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='drive_used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user.username}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.quota_bytes - self.used_bytes
        return max(0, available)
