"""Django admin configuration for vault app."""

from typing import Final

from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.vault.logic import quota_ledger
from server.apps.vault.models import Folder, Item, UserQuota

_WARNING_PERCENTAGE: Final = 90
_FULL_PERCENTAGE: Final = 100


@admin.register(Item)
class ItemAdmin(admin.ModelAdmin):
    """Admin interface for Item model."""

    list_display = [
        'title',
        'kind',
        'user',
        'folder',
        'size_display',
        'is_favorite',
        'created_at',
    ]

    list_filter = [
        'kind',
        'is_favorite',
        'created_at',
        'user',
    ]

    search_fields = [
        'title',
        'content',
        'blob',  # Searches blob.name field
        'checksum_sha256',
    ]

    # Byte counts are derived; editing them would desync the ledger
    readonly_fields = [
        'kind',
        'blob',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'created_at',
        'updated_at',
        'last_accessed_at',
    ]

    fieldsets = (
        ('Item Information', {
            'fields': ('title', 'kind', 'user', 'folder', 'is_favorite'),
        }),
        ('Content', {
            'fields': ('content', 'blob'),
        }),
        ('Metadata', {
            'fields': (
                'size_bytes',
                'mime_type',
                'checksum_sha256',
            ),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at', 'last_accessed_at'),
        }),
    )

    def size_display(self, obj: Item) -> str:
        """Display item size in human-readable format.

        Args:
            obj: Item instance.

        Returns:
            Formatted size string (e.g., '1.50 MB', '234 B').
        """
        return quota_ledger.format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Item]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user', 'folder')


@admin.register(Folder)
class FolderAdmin(admin.ModelAdmin):
    """Admin interface for Folder model."""

    list_display = [
        'name',
        'user',
        'parent',
        'item_count',
        'is_favorite',
        'created_at',
    ]

    list_filter = [
        'is_favorite',
        'user',
    ]

    search_fields = [
        'name',
    ]

    readonly_fields = ['created_at', 'updated_at']

    def item_count(self, obj: Folder) -> int:
        """Count of items directly inside the folder.

        Args:
            obj: Folder instance.

        Returns:
            Number of items.
        """
        return obj.items.count()
    item_count.short_description = 'Items'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[Folder]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user', 'parent')


@admin.register(UserQuota)
class UserQuotaAdmin(admin.ModelAdmin):
    """Admin interface for UserQuota model."""

    list_display = [
        'user',
        'quota_display',
        'used_display',
        'percentage_display',
        'status_display',
    ]

    search_fields = [
        'user__username',
        'user__email',
    ]

    readonly_fields = [
        'user',
        'used_bytes',
    ]

    fieldsets = (
        ('User', {
            'fields': ('user',),
        }),
        ('Quota Settings', {
            'fields': ('quota_bytes',),
        }),
        ('Current Usage', {
            'fields': ('used_bytes',),
        }),
    )

    def quota_display(self, obj: UserQuota) -> str:
        """Display quota in human-readable format."""
        return quota_ledger.format_bytes(obj.quota_bytes)
    quota_display.short_description = 'Quota'  # type: ignore[attr-defined]

    def used_display(self, obj: UserQuota) -> str:
        """Display used bytes in human-readable format."""
        return quota_ledger.format_bytes(obj.used_bytes)
    used_display.short_description = 'Used'  # type: ignore[attr-defined]

    def percentage_display(self, obj: UserQuota) -> str:
        """Display percentage of quota used.

        Args:
            obj: UserQuota instance.

        Returns:
            Percentage string.
        """
        percentage = quota_ledger.percentage_used(obj.used_bytes, obj.quota_bytes)
        return f'{percentage}%'
    percentage_display.short_description = '%'  # type: ignore[attr-defined]

    def status_display(self, obj: UserQuota) -> str:
        """Display status indicator based on usage.

        Args:
            obj: UserQuota instance.

        Returns:
            HTML formatted status indicator.
        """
        percentage = quota_ledger.percentage_used(obj.used_bytes, obj.quota_bytes)

        if percentage >= _FULL_PERCENTAGE:
            color = '#dc3545'  # Red - full or over
            status = 'Full'
        elif percentage >= _WARNING_PERCENTAGE:
            color = '#ffc107'  # Yellow - warning
            status = 'Warning'
        else:
            color = '#28a745'  # Green - ok
            status = 'OK'

        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status,
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserQuota]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user')
