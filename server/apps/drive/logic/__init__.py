"""Business logic layer for drive app.

This package contains all business logic for drive items:
- Folder and file creation, renaming, moving and browsing
- Trash lifecycle: soft delete, restore, permanent delete
- Storage quota accounting
- Background purge of expired trash

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).
"""
