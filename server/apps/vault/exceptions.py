"""Exceptions for vault app."""

from server.apps.vault.logic.quota_ledger import available, format_bytes


class VaultError(Exception):
    """Base class for vault errors surfaced to callers."""


class NotFoundError(VaultError):
    """Raised when an item or folder does not exist for the user.

    A wrong id and a row owned by somebody else look exactly the same.
    """

    def __init__(self, resource: str) -> None:
        """Initialize NotFoundError.

        Args:
            resource: Human readable resource name (e.g., 'Folder').
        """
        self.resource = resource
        super().__init__(f'{resource} not found')


class QuotaExceededError(VaultError):
    """Raised when an operation would exceed user's storage quota."""

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        super().__init__(
            'Storage limit exceeded: need {required} ({required_bytes} bytes), '
            'only {free} ({free_bytes} bytes) available'.format(
                required=format_bytes(required_bytes),
                required_bytes=required_bytes,
                free=format_bytes(self.available_bytes),
                free_bytes=self.available_bytes,
            ),
        )

    @property
    def available_bytes(self) -> int:
        """Bytes that were still available, never negative."""
        return available(self.used_bytes, self.quota_bytes)


class InvalidInputError(VaultError):
    """Raised when a request is well formed but not acceptable."""


class FolderNameConflictError(InvalidInputError):
    """Raised when a sibling folder with the same name already exists."""

    def __init__(self, name: str) -> None:
        """Initialize FolderNameConflictError.

        Args:
            name: Conflicting folder name.
        """
        self.name = name
        super().__init__(f'A folder named "{name}" already exists here')


class InternalStorageError(VaultError):
    """Raised when blob storage fails in a way the operation can't absorb."""
