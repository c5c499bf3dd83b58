"""Randomized operation sequences keeping the quota ledger consistent."""

import random

import pytest

from server.apps.drive.exceptions import (
    InvalidMoveError,
    ItemNotFoundError,
    NameConflictError,
    QuotaExceededError,
)
from server.apps.drive.logic.item_operations import (
    create_file,
    create_folder,
    move_item,
)
from server.apps.drive.logic.quota_operations import (
    calculate_stored_bytes,
    get_usage,
)
from server.apps.drive.logic.trash_operations import (
    empty_trash,
    permanent_delete_item,
    restore_item,
    soft_delete_item,
)
from server.apps.drive.models import Item, UserQuota

_STEPS = 120
_EXPECTED_ERRORS = (
    InvalidMoveError,
    ItemNotFoundError,
    NameConflictError,
    QuotaExceededError,
)


def _random_step(rng: random.Random, user, step: int) -> None:
    item_ids = list(
        Item.all_objects.filter(owner=user).values_list('pk', flat=True),
    )
    folder_ids = list(
        Item.objects.filter(owner=user, kind='folder').values_list(
            'pk',
            flat=True,
        ),
    )
    parent_id = rng.choice([None, *folder_ids])
    action = rng.choice(
        ['folder', 'file', 'file', 'trash', 'restore', 'purge', 'move', 'empty'],
    )

    if action == 'folder':
        create_folder(user, f'folder-{rng.randint(0, 5)}', parent_id)
    elif action == 'file':
        create_file(
            user,
            f'file-{rng.randint(0, 5)}.bin',
            rng.randint(0, 400),
            f'blobs/{step}',
            parent_id,
        )
    elif action == 'empty':
        empty_trash(user)
    elif item_ids:
        item_id = rng.choice(item_ids)
        if action == 'trash':
            soft_delete_item(user, item_id)
        elif action == 'restore':
            restore_item(user, item_id)
        elif action == 'purge':
            permanent_delete_item(user, item_id)
        else:
            move_item(user, item_id, parent_id)


@pytest.mark.django_db
@pytest.mark.parametrize('seed', [1, 7, 42])
def test_ledger_matches_stored_files(user, seed):
    """Test used bytes equal the size of all stored files after each step."""
    UserQuota.objects.create(user=user, quota_bytes=4000, used_bytes=0)
    rng = random.Random(seed)

    for step in range(_STEPS):
        try:
            _random_step(rng, user, step)
        except _EXPECTED_ERRORS:
            pass

        used_bytes, quota_bytes = get_usage(user)
        assert used_bytes == calculate_stored_bytes(user)
        assert 0 <= used_bytes <= quota_bytes
