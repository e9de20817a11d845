"""Pure storage quota accounting.

Nothing in this module touches the database or the blob storage.
Every function works on plain byte counts, so the same rules apply to
the persisted ``UserQuota`` rows and to any snapshot a caller holds.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Final, TypedDict

_UNIT_STEP: Final = 1024
_UNITS: Final = ('B', 'KB', 'MB', 'GB', 'TB')


class StorageInfo(TypedDict):
    """Snapshot of a user's ledger, ready to be rendered."""

    used: int
    limit: int
    available: int
    percentage_used: int
    used_formatted: str
    limit_formatted: str
    available_formatted: str


def available(used: int, limit: int) -> int:
    """Get remaining space, never negative.

    Args:
        used: Bytes currently accounted to the user.
        limit: User's storage limit in bytes.

    Returns:
        Available bytes (0 when the user is over the limit).
    """
    return max(limit - used, 0)


def percentage_used(used: int, limit: int) -> int:
    """Get rounded percentage of the limit already used.

    Args:
        used: Bytes currently accounted to the user.
        limit: User's storage limit in bytes.

    Returns:
        Whole percentage, 0 for a zero limit.
    """
    if limit <= 0:
        return 0
    percentage = Decimal(used * 100) / Decimal(limit)
    return int(percentage.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def fits(used: int, limit: int, delta: int) -> bool:
    """Check whether ``delta`` more bytes stay within the limit.

    This is the single gate in front of every operation that grows
    the stored bytes. Reaching the limit exactly is allowed.

    Args:
        used: Bytes currently accounted to the user.
        limit: User's storage limit in bytes.
        delta: Bytes the operation wants to add.

    Returns:
        True if the operation fits, False otherwise.
    """
    return used + delta <= limit


def apply_delta(used: int, delta: int) -> int:
    """Apply a signed change to the used bytes, clamping at zero.

    Clamping keeps the ledger non-negative when deletes race or when
    historical data is inconsistent. It does not prevent overshooting
    the limit.

    Args:
        used: Bytes currently accounted to the user.
        delta: Signed change in bytes.

    Returns:
        New used bytes.
    """
    return max(used + delta, 0)


def note_size(title: str, content: str) -> int:
    """Get quota size of a text note: UTF-8 length of title and content."""
    return len((title + content).encode('utf-8'))


def format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable binary units.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '0 B', '512 B', '2.50 MB').
    """
    if size_bytes < _UNIT_STEP:
        return f'{size_bytes} B'

    size = float(size_bytes)
    unit_index = 0
    while size >= _UNIT_STEP and unit_index < len(_UNITS) - 1:
        size /= _UNIT_STEP
        unit_index += 1
    return f'{size:.2f} {_UNITS[unit_index]}'


def storage_info(used: int, limit: int) -> StorageInfo:
    """Build the ledger summary returned with every storage response.

    Args:
        used: Bytes currently accounted to the user.
        limit: User's storage limit in bytes.

    Returns:
        Raw and formatted usage figures.
    """
    free = available(used, limit)
    return StorageInfo(
        used=used,
        limit=limit,
        available=free,
        percentage_used=percentage_used(used, limit),
        used_formatted=format_bytes(used),
        limit_formatted=format_bytes(limit),
        available_formatted=format_bytes(free),
    )
