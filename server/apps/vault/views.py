"""JSON API over the vault storage operations.

Every response uses the envelope ``{"success", "message", "data"}``.
Views only parse and validate requests; all quota and ownership rules
live in ``storage_operations``.
"""

import heapq
import json
import logging
from collections.abc import Callable, Iterable
from functools import wraps
from itertools import islice
from operator import itemgetter
from typing import Any, Final

from django import forms as django_forms
from django.core.paginator import Page, Paginator
from django.db.models import QuerySet
from django.http import HttpRequest, JsonResponse

from server.apps.vault import forms
from server.apps.vault.exceptions import (
    FolderNameConflictError,
    InternalStorageError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    VaultError,
)
from server.apps.vault.logic import item_store, storage_operations
from server.apps.vault.models import Item
from server.apps.vault.serializers import serialize_folder, serialize_item

_View = Callable[..., JsonResponse]
_Serializer = Callable[[Any], dict[str, Any]]

_HTTP_BAD_REQUEST: Final = 400
_HTTP_UNAUTHORIZED: Final = 401
_HTTP_NOT_FOUND: Final = 404
_HTTP_METHOD_NOT_ALLOWED: Final = 405
_HTTP_CONFLICT: Final = 409
_HTTP_INTERNAL_ERROR: Final = 500
_HTTP_INSUFFICIENT_STORAGE: Final = 507  # WebDAV status for quota

# Most specific first: a name conflict is also invalid input
_ERROR_STATUSES: Final = (
    (NotFoundError, _HTTP_NOT_FOUND),
    (QuotaExceededError, _HTTP_INSUFFICIENT_STORAGE),
    (FolderNameConflictError, _HTTP_CONFLICT),
    (InvalidInputError, _HTTP_BAD_REQUEST),
    (InternalStorageError, _HTTP_INTERNAL_ERROR),
)

_RECENT_TYPES: Final = frozenset((*Item.Kind.values, 'folder'))

logger = logging.getLogger(__name__)


def _envelope(
    message: str,
    data: Any = None,
    *,
    success: bool = True,
    status: int = 200,
) -> JsonResponse:
    return JsonResponse(
        {'success': success, 'message': message, 'data': data},
        status=status,
    )


def _error_response(error: VaultError) -> JsonResponse:
    status = _HTTP_INTERNAL_ERROR
    for error_class, error_status in _ERROR_STATUSES:
        if isinstance(error, error_class):
            status = error_status
            break

    data = None
    if isinstance(error, QuotaExceededError):
        data = {
            'required_bytes': error.required_bytes,
            'available_bytes': error.available_bytes,
            'used_bytes': error.used_bytes,
            'quota_bytes': error.quota_bytes,
        }
    return _envelope(str(error), data, success=False, status=status)


def api_view(*methods: str) -> Callable[[_View], _View]:
    """Wrap a view with method, authentication and error handling.

    Args:
        methods: Allowed HTTP methods.

    Returns:
        Decorator producing the wrapped view.
    """
    def decorator(view: _View) -> _View:
        @wraps(view)
        def wrapper(
            request: HttpRequest,
            *args: Any,
            **kwargs: Any,
        ) -> JsonResponse:
            if request.method not in methods:
                return _envelope(
                    f'Method {request.method} not allowed',
                    success=False,
                    status=_HTTP_METHOD_NOT_ALLOWED,
                )
            if not request.user.is_authenticated:
                return _envelope(
                    'Authentication required',
                    success=False,
                    status=_HTTP_UNAUTHORIZED,
                )
            try:
                return view(request, *args, **kwargs)
            except VaultError as error:
                if isinstance(error, InternalStorageError):
                    logger.error('Storage failure in %s: %s', request.path, error)
                return _error_response(error)
        return wrapper
    return decorator


def _json_body(request: HttpRequest) -> dict[str, Any]:
    try:
        body = json.loads(request.body or b'{}')
    except ValueError as error:
        raise InvalidInputError('Request body must be valid JSON') from error
    if not isinstance(body, dict):
        raise InvalidInputError('Request body must be a JSON object')
    return body


def _validate(form: django_forms.Form) -> django_forms.Form:
    """Raise InvalidInputError with the form's messages if it is invalid."""
    if not form.is_valid():
        raise InvalidInputError('; '.join(
            f'{field_name}: {" ".join(messages)}'
            for field_name, messages in form.errors.items()
        ))
    return form


def _list_query(request: HttpRequest) -> dict[str, Any]:
    return _validate(forms.ListQueryForm(request.GET)).cleaned_data


def _folder_filter(query: dict[str, Any]) -> dict[str, Any]:
    folder_id = query['folder_id']
    if folder_id == forms.ROOT_FOLDER:
        return {'root_only': True}
    return {'folder_id': folder_id}


def _paginate(
    rows: Iterable[Any],
    query: dict[str, Any],
    serialize: _Serializer,
) -> dict[str, Any]:
    page = Paginator(rows, query['limit']).get_page(query['page'])
    return {
        'results': [serialize(row) for row in page.object_list],
        'pagination': _pagination(page, query['limit']),
    }


def _pagination(page: Page, limit: int) -> dict[str, Any]:
    return {
        'page': page.number,
        'limit': limit,
        'total': page.paginator.count,
        'pages': page.paginator.num_pages,
        'has_next': page.has_next(),
        'has_previous': page.has_previous(),
    }


def _with_storage(request: HttpRequest, data: dict[str, Any]) -> dict[str, Any]:
    data['storage'] = storage_operations.get_storage_info(request.user)
    return data


@api_view('GET', 'POST')
def item_collection(request: HttpRequest, kind: str) -> JsonResponse:
    """List items of one kind, or create a note."""
    if request.method == 'POST':
        if kind != Item.Kind.NOTE:
            raise InvalidInputError(f'Use the upload endpoint to add a {kind}')
        form = _validate(forms.NoteForm(_json_body(request)))
        note = storage_operations.create_note(
            request.user,
            title=form.cleaned_data['title'],
            content=form.cleaned_data['content'],
            folder_id=form.cleaned_data['folder_id'],
        )
        return _envelope(
            'Note created',
            _with_storage(request, {'item': serialize_item(note)}),
            status=201,
        )

    query = _list_query(request)
    items = item_store.list_items(
        request.user,
        kind=kind,
        search=query['search'] or None,
        is_favorite=query['is_favorite'],
        **_folder_filter(query),
    )
    return _envelope('OK', _paginate(items, query, serialize_item))


@api_view('GET', 'PATCH', 'DELETE')
def item_detail(request: HttpRequest, kind: str, item_id: int) -> JsonResponse:
    """Open, update or delete one item."""
    if request.method == 'GET':
        item = storage_operations.open_item(request.user, item_id, kind)
        return _envelope('OK', {'item': serialize_item(item)})

    if request.method == 'DELETE':
        item = storage_operations.delete_item(request.user, item_id, kind)
        return _envelope(
            f'{item.get_kind_display()} deleted',
            _with_storage(request, {'freed_bytes': item.size_bytes}),
        )

    form = _validate(forms.ItemUpdateForm(_json_body(request)))
    item = storage_operations.update_item(
        request.user,
        item_id,
        form.changes(),
        kind,
    )
    return _envelope(
        f'{item.get_kind_display()} updated',
        _with_storage(request, {'item': serialize_item(item)}),
    )


@api_view('POST')
def item_duplicate(request: HttpRequest, kind: str, item_id: int) -> JsonResponse:
    """Duplicate one item together with its blob."""
    duplicate = storage_operations.duplicate_item(request.user, item_id, kind)
    return _envelope(
        f'{duplicate.get_kind_display()} duplicated',
        _with_storage(request, {'item': serialize_item(duplicate)}),
        status=201,
    )


@api_view('PATCH')
def item_favorite(request: HttpRequest, kind: str, item_id: int) -> JsonResponse:
    """Flip an item's favorite flag."""
    item = storage_operations.toggle_item_favorite(request.user, item_id, kind)
    return _envelope(
        'Added to favorites' if item.is_favorite else 'Removed from favorites',
        {'item': serialize_item(item)},
    )


@api_view('POST')
def upload(request: HttpRequest, kind: str) -> JsonResponse:
    """Upload an image or PDF (multipart)."""
    form = _validate(forms.UploadForm(request.POST, request.FILES))
    item = storage_operations.upload_file(
        request.user,
        kind,
        form.cleaned_data['file'],
        title=form.cleaned_data['title'] or None,
        folder_id=form.cleaned_data['folder_id'],
    )
    return _envelope(
        f'{item.get_kind_display()} uploaded',
        _with_storage(request, {'item': serialize_item(item)}),
        status=201,
    )


@api_view('GET', 'POST')
def folder_collection(request: HttpRequest) -> JsonResponse:
    """List folders, or create one."""
    if request.method == 'POST':
        form = _validate(forms.FolderForm(_json_body(request)))
        folder = storage_operations.create_folder(
            request.user,
            form.cleaned_data['name'],
            form.cleaned_data['parent_id'],
        )
        return _envelope(
            'Folder created',
            {'folder': serialize_folder(folder)},
            status=201,
        )

    query = _list_query(request)
    folder_filter = _folder_filter(query)
    folders = item_store.list_folders(
        request.user,
        parent_id=folder_filter.get('folder_id'),
        root_only=folder_filter.get('root_only', False),
        search=query['search'] or None,
        is_favorite=query['is_favorite'],
    )
    return _envelope('OK', _paginate(folders, query, serialize_folder))


@api_view('GET', 'PATCH', 'DELETE')
def folder_detail(request: HttpRequest, folder_id: int) -> JsonResponse:
    """Show a folder with its contents, update or delete it."""
    if request.method == 'GET':
        folder = item_store.get_folder(request.user, folder_id)
        return _envelope('OK', {
            'folder': serialize_folder(folder),
            'folders': [
                serialize_folder(child)
                for child in item_store.list_subfolders(request.user, folder.id)
            ],
            'items': [
                serialize_item(item)
                for item in item_store.find_in_folder(request.user, folder.id)
            ],
        })

    if request.method == 'DELETE':
        deletion = storage_operations.delete_folder(request.user, folder_id)
        return _envelope(
            'Folder deleted',
            _with_storage(request, {
                'deleted_item_count': deletion.deleted_item_count,
                'deleted_folder_count': deletion.deleted_folder_count,
                'freed_bytes': deletion.freed_bytes,
            }),
        )

    form = _validate(forms.FolderUpdateForm(_json_body(request)))
    folder = storage_operations.update_folder(
        request.user,
        folder_id,
        form.changes(),
    )
    return _envelope('Folder updated', {'folder': serialize_folder(folder)})


@api_view('POST')
def folder_duplicate(request: HttpRequest, folder_id: int) -> JsonResponse:
    """Duplicate a folder with the notes directly inside it."""
    duplication = storage_operations.duplicate_folder(request.user, folder_id)
    return _envelope(
        'Folder duplicated',
        _with_storage(request, {
            'folder': serialize_folder(duplication.folder),
            'duplicated_item_count': duplication.duplicated_item_count,
        }),
        status=201,
    )


@api_view('PATCH')
def folder_favorite(request: HttpRequest, folder_id: int) -> JsonResponse:
    """Flip a folder's favorite flag."""
    folder = storage_operations.toggle_folder_favorite(request.user, folder_id)
    return _envelope(
        'Added to favorites' if folder.is_favorite else 'Removed from favorites',
        {'folder': serialize_folder(folder)},
    )


@api_view('GET')
def storage_stats(request: HttpRequest) -> JsonResponse:
    """Ledger summary with a per-kind breakdown."""
    return _envelope('OK', storage_operations.get_storage_stats(request.user))


@api_view('GET')
def storage_recent(request: HttpRequest) -> JsonResponse:
    """Recently used items of every kind and folders, newest first.

    Only the newest ``page * limit`` rows of each table are loaded;
    the sorted slices are merged and the requested page is cut from
    the merge.
    """
    query = _list_query(request)
    entry_type = query['type'] or None
    if entry_type is not None and entry_type not in _RECENT_TYPES:
        raise InvalidInputError(f'Unknown type: {entry_type}')

    sources: list[tuple[QuerySet[Any], str, _Serializer]] = []
    if entry_type != 'folder':
        sources.append((
            item_store.list_items(request.user, kind=entry_type),
            'last_accessed_at',
            serialize_item,
        ))
    if entry_type in {None, 'folder'}:
        sources.append((
            item_store.list_folders(request.user),
            'updated_at',
            serialize_folder,
        ))

    total = sum(queryset.count() for queryset, _, _ in sources)
    page = Paginator(range(total), query['limit']).get_page(query['page'])
    newest_first = [
        [
            (getattr(row, field), row, serialize)
            for row in queryset.order_by(f'-{field}')[:page.end_index()]
        ]
        for queryset, field, serialize in sources
    ]
    merged = heapq.merge(*newest_first, key=itemgetter(0), reverse=True)
    start = max(page.start_index() - 1, 0)
    page_entries = islice(merged, start, page.end_index())

    return _envelope('OK', {
        'results': [serialize(row) for _, row, serialize in page_entries],
        'pagination': _pagination(page, query['limit']),
    })
