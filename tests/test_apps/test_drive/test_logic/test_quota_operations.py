"""Tests for quota operations business logic."""

import pytest

from server.apps.drive.exceptions import QuotaExceededError
from server.apps.drive.logic.item_operations import create_file, create_folder
from server.apps.drive.logic.quota_operations import (
    calculate_stored_bytes,
    check_quota,
    decrement_usage,
    get_or_create_quota,
    get_usage,
    increment_usage,
    recalculate_usage,
    try_reserve,
)
from server.apps.drive.logic.trash_operations import soft_delete_item
from server.apps.drive.models import UserQuota

_MB = 1024 * 1024


@pytest.mark.django_db
def test_get_or_create_quota_creates_new(user):
    """Test get_or_create_quota creates quota when none exists."""
    assert not UserQuota.objects.filter(user=user).exists()

    quota = get_or_create_quota(user)

    assert quota.user == user
    assert quota.quota_bytes == 5_000_000_000
    assert quota.used_bytes == 0


@pytest.mark.django_db
def test_get_or_create_quota_returns_existing(user):
    """Test get_or_create_quota returns existing quota."""
    existing_quota = UserQuota.objects.create(
        user=user,
        quota_bytes=5000,
        used_bytes=1000,
    )

    quota = get_or_create_quota(user)

    assert quota.pk == existing_quota.pk
    assert quota.used_bytes == 1000


@pytest.mark.django_db
def test_get_usage(user, quota_100mb):
    """Test get_usage returns used and limit."""
    create_file(user, 'a.bin', 3 * _MB, 'blobs/a')

    assert get_usage(user) == (3 * _MB, 100 * _MB)


@pytest.mark.django_db
def test_check_quota_passes_at_exact_limit(user):
    """Test check_quota doesn't raise when at exact limit."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=400)

    check_quota(user, 600)


@pytest.mark.django_db
def test_check_quota_raises_when_exceeded(user):
    """Test check_quota raises QuotaExceededError when exceeded."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=400)

    with pytest.raises(QuotaExceededError) as exc_info:
        check_quota(user, 700)

    assert exc_info.value.quota_bytes == 1000
    assert exc_info.value.used_bytes == 400
    assert exc_info.value.required_bytes == 700


@pytest.mark.django_db
def test_check_quota_does_not_reserve(user):
    """Test check_quota leaves usage untouched."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=400)

    check_quota(user, 100)

    assert UserQuota.objects.get(user=user).used_bytes == 400


@pytest.mark.django_db
class TestTryReserve:
    """Tests for try_reserve function."""

    def test_second_reservation_refused(self, user, quota_100mb):
        """Test two 60 MB reservations cannot both fit in 100 MB."""
        first = try_reserve(user, 60 * _MB)
        second = try_reserve(user, 60 * _MB)

        assert first is True
        assert second is False
        quota_100mb.refresh_from_db()
        assert quota_100mb.used_bytes == 60 * _MB

    def test_reserve_up_to_limit(self, user, quota_100mb):
        """Test the last byte of the quota can be reserved."""
        assert try_reserve(user, 100 * _MB) is True
        assert try_reserve(user, 1) is False

    def test_reserve_zero_bytes_when_full(self, user, quota_100mb):
        """Test empty files fit even into a full quota."""
        try_reserve(user, 100 * _MB)

        assert try_reserve(user, 0) is True

    def test_reserve_creates_quota(self, user):
        """Test the ledger is created on demand."""
        assert try_reserve(user, 10) is True

        assert UserQuota.objects.get(user=user).used_bytes == 10


@pytest.mark.django_db
def test_increment_usage(user):
    """Test increment_usage increases used_bytes."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=100)

    increment_usage(user, 50)

    assert UserQuota.objects.get(user=user).used_bytes == 150


@pytest.mark.django_db
def test_increment_usage_creates_quota_if_missing(user):
    """Test increment_usage creates quota if missing."""
    increment_usage(user, 500)

    assert UserQuota.objects.get(user=user).used_bytes == 500


@pytest.mark.django_db
def test_decrement_usage(user):
    """Test decrement_usage decreases used_bytes."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=100)

    decrement_usage(user, 50)

    assert UserQuota.objects.get(user=user).used_bytes == 50


@pytest.mark.django_db
def test_decrement_usage_clamps_at_zero(user, caplog):
    """Test decrement_usage never goes negative and logs the drift."""
    UserQuota.objects.create(user=user, quota_bytes=1000, used_bytes=100)

    decrement_usage(user, 200)

    assert UserQuota.objects.get(user=user).used_bytes == 0
    assert 'Ledger drift' in caplog.text


@pytest.mark.django_db
def test_decrement_usage_without_quota(user):
    """Test decrement_usage is a no-op without a ledger."""
    decrement_usage(user, 100)

    assert not UserQuota.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_calculate_stored_bytes_counts_trash(user, quota_100mb):
    """Test stored bytes include trashed files."""
    folder = create_folder(user, 'Docs')
    create_file(user, 'a.bin', 1 * _MB, 'blobs/a', folder.pk)
    trashed = create_file(user, 'b.bin', 2 * _MB, 'blobs/b')
    soft_delete_item(user, trashed.pk)

    assert calculate_stored_bytes(user) == 3 * _MB


@pytest.mark.django_db
def test_recalculate_usage(user, quota_100mb):
    """Test recalculate_usage repairs a drifted ledger."""
    create_file(user, 'a.bin', 1 * _MB, 'blobs/a')
    UserQuota.objects.filter(user=user).update(used_bytes=42)

    total = recalculate_usage(user)

    assert total == 1 * _MB
    assert UserQuota.objects.get(user=user).used_bytes == 1 * _MB


@pytest.mark.django_db
def test_recalculate_usage_user_isolation(user, other_user, quota_100mb):
    """Test recalculation only counts the user's own files."""
    create_file(user, 'a.bin', 1 * _MB, 'blobs/a')
    create_file(other_user, 'b.bin', 2 * _MB, 'blobs/b')

    assert recalculate_usage(other_user) == 2 * _MB
    assert recalculate_usage(user) == 1 * _MB
