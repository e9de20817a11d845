"""S3 blob storage for vault items."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, final, override

from storages.backends.s3 import S3Storage
from storages.utils import clean_name

logger = logging.getLogger(__name__)


@contextmanager
def _blob_call(action: str, description: str) -> Iterator[None]:
    """Log one S3 call on the way in, out and on failure.

    Args:
        action: Verb for the log lines, e.g. 'store'.
        description: Blob key, or 'source -> destination' for copies.

    Yields:
        Nothing; the wrapped block performs the call.
    """
    logger.debug('Blob %s started: %s', action, description)
    try:
        yield
    except Exception:
        logger.exception('Blob %s failed: %s', action, description)
        raise
    logger.info('Blob %s done: %s', action, description)


@final
class FileStorage(S3Storage):
    """Blob backend behind image and PDF items.

    Keys look like ``<user_id>/<kind>/<filename>``. On top of the plain
    S3 backend it logs every write, removes blobs left behind by a
    failed transaction and copies blobs inside the bucket when an item
    is duplicated.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Store an uploaded blob.

        Returns:
            The key actually written, which differs from ``name`` when
            the key was already taken.
        """
        with _blob_call('store', name):
            return super().save(name, content, max_length)

    @override
    def delete(self, name: str) -> None:
        with _blob_call('delete', name):
            super().delete(name)

    def rollback_upload(self, name: str) -> None:
        """Remove a blob whose item row was never committed.

        Failures are logged only: the transaction is already rolled back
        and the blob just stays orphaned under the user's prefix.

        Args:
            name: Key written by ``save``.
        """
        logger.warning('Removing blob of a failed transaction: %s', name)
        try:
            self.delete(name)
        except Exception:
            logger.error('Orphaned blob left in storage: %s', name)

    def copy_object(self, source: str, destination: str) -> None:
        """Copy a blob to a new key without downloading it.

        Args:
            source: Key of the existing blob.
            destination: Free key for the copy.

        Raises:
            ClientError: If the copy fails, including a missing source.
        """
        source_key = self._normalize_name(clean_name(source))
        destination_key = self._normalize_name(clean_name(destination))
        with _blob_call('copy', f'{source} -> {destination}'):
            self.bucket.copy(
                {'Bucket': self.bucket_name, 'Key': source_key},
                destination_key,
            )
