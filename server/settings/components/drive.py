"""Drive app settings: trash retention, reaper schedule and quotas."""

from server.settings.components import config

# Days a trashed item stays restorable before the reaper purges it
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=15,
)

# Hours between two reaper sweeps
DRIVE_SWEEP_INTERVAL_HOURS = config(
    'DRIVE_SWEEP_INTERVAL_HOURS',
    cast=float,
    default=24,
)

# Max top-level trash entries purged in one sweep
DRIVE_REAPER_BATCH_SIZE = config(
    'DRIVE_REAPER_BATCH_SIZE',
    cast=int,
    default=1000,
)

# Quota given to users without an explicit one: 5 GB
DRIVE_DEFAULT_QUOTA_BYTES = config(
    'DRIVE_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=5_000_000_000,
)
