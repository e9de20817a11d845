"""Infrastructure layer for vault app.

This package contains integrations with external systems:
- Custom storage backend for item blobs (S3/MinIO/R2)
- Metadata extraction (MIME type, checksum, size)

Keep infrastructure concerns separate from business logic.
"""
