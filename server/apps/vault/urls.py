"""URL routes of the vault JSON API."""

from django.urls import path

from server.apps.vault import views
from server.apps.vault.models import Item

app_name = 'vault'

# URL prefix -> item kind served under it
_ITEM_PREFIXES = (
    ('notes', Item.Kind.NOTE.value),
    ('images', Item.Kind.IMAGE.value),
    ('pdfs', Item.Kind.PDF.value),
)

urlpatterns = [
    path(
        'upload/image/',
        views.upload,
        {'kind': Item.Kind.IMAGE.value},
        name='upload-image',
    ),
    path(
        'upload/pdf/',
        views.upload,
        {'kind': Item.Kind.PDF.value},
        name='upload-pdf',
    ),
    path('folders/', views.folder_collection, name='folder-list'),
    path('folders/<int:folder_id>/', views.folder_detail, name='folder-detail'),
    path(
        'folders/<int:folder_id>/duplicate/',
        views.folder_duplicate,
        name='folder-duplicate',
    ),
    path(
        'folders/<int:folder_id>/favorite/',
        views.folder_favorite,
        name='folder-favorite',
    ),
    path('storage/stats/', views.storage_stats, name='storage-stats'),
    path('storage/recent/', views.storage_recent, name='storage-recent'),
]

for prefix, kind in _ITEM_PREFIXES:
    urlpatterns += [
        path(
            f'{prefix}/',
            views.item_collection,
            {'kind': kind},
            name=f'{kind}-list',
        ),
        path(
            f'{prefix}/<int:item_id>/',
            views.item_detail,
            {'kind': kind},
            name=f'{kind}-detail',
        ),
        path(
            f'{prefix}/<int:item_id>/duplicate/',
            views.item_duplicate,
            {'kind': kind},
            name=f'{kind}-duplicate',
        ),
        path(
            f'{prefix}/<int:item_id>/favorite/',
            views.item_favorite,
            {'kind': kind},
            name=f'{kind}-favorite',
        ),
    ]
