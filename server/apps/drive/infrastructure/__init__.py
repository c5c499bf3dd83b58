"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- S3-compatible storage backend holding blob bytes
- Blob deletion used when trash is purged

Keep infrastructure concerns separate from business logic.
"""
