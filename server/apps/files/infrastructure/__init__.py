"""Infrastructure layer for files app.

This package contains integrations with external systems:
- S3-compatible storage backend (MinIO/S3/R2)
- Content store for binary bodies of stored files
- Metadata helpers (checksum, object names, file extensions)

Keep infrastructure concerns separate from business logic.
"""
