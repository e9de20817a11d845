"""Django storage configuration for S3-compatible backends.

Item blobs (uploaded images and PDFs) live in an S3-compatible bucket:
- MinIO for local development
- Cloudflare R2 or AWS S3 for production

All of them use the same S3Storage backend.
"""

from typing import Any, Final

from server.settings.components import config

# Blob storage for vault items, local storage for static files
STORAGES: Final[dict[str, dict[str, Any]]] = {
    'default': {
        'BACKEND': 'server.apps.vault.infrastructure.storage.FileStorage',
        'OPTIONS': {
            'bucket_name': config(
                'AWS_STORAGE_BUCKET_NAME',
                default='vault',
            ),
            'access_key': config('AWS_ACCESS_KEY_ID', default='minioadmin'),
            'secret_key': config(
                'AWS_SECRET_ACCESS_KEY',
                default='minioadmin',
            ),
            'endpoint_url': config(
                'AWS_S3_ENDPOINT_URL',
                default=None,
            ),
            'region_name': config(
                'AWS_S3_REGION_NAME',
                default='us-east-1',
            ),
            'file_overwrite': False,  # Prevent accidental overwrites
            'default_acl': None,  # Inherit bucket ACL
        },
    },
    'staticfiles': {
        # Keep static files separate from item blobs
        'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
    },
}
