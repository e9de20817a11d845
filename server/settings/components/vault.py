"""Storage vault settings: quotas and upload limits."""

from decouple import Csv

from server.settings.components import config

# Limit given to every new user (15 GB)
VAULT_DEFAULT_QUOTA_BYTES = config(
    'VAULT_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=15 * 1024 * 1024 * 1024,
)

# Largest single image or PDF upload (5 MB)
VAULT_MAX_UPLOAD_BYTES = config(
    'VAULT_MAX_UPLOAD_BYTES',
    cast=int,
    default=5 * 1024 * 1024,
)

VAULT_ALLOWED_IMAGE_TYPES = config(
    'VAULT_ALLOWED_IMAGE_TYPES',
    cast=Csv(),
    default='image/jpeg,image/png,image/gif,image/webp',
)

VAULT_ALLOWED_PDF_TYPES = config(
    'VAULT_ALLOWED_PDF_TYPES',
    cast=Csv(),
    default='application/pdf',
)
