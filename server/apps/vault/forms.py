"""Request validation for the vault JSON API."""

from typing import Any, Final

from django import forms

_TITLE_MAX_LENGTH: Final = 200
_FOLDER_NAME_MAX_LENGTH: Final = 100
_DEFAULT_PAGE_SIZE: Final = 20
_MAX_PAGE_SIZE: Final = 100

# Query value selecting top-level rows
ROOT_FOLDER: Final = 'null'


class PartialForm(forms.Form):
    """Form whose cleaned data only keeps the fields the client sent.

    Used for PATCH bodies: a missing key means "leave unchanged", while
    an explicit ``null`` still reaches the cleaned data.
    """

    def changes(self) -> dict[str, Any]:
        """Get cleaned values of the submitted fields.

        Returns:
            Mapping of field name to cleaned value.
        """
        return {
            field_name: field_value
            for field_name, field_value in self.cleaned_data.items()
            if field_name in self.data
        }


class NoteForm(forms.Form):
    """Body of a note create request."""

    title = forms.CharField(max_length=_TITLE_MAX_LENGTH)
    content = forms.CharField(required=False, strip=False)
    folder_id = forms.IntegerField(required=False, min_value=1)


class ItemUpdateForm(PartialForm):
    """Body of an item update request."""

    title = forms.CharField(required=False, max_length=_TITLE_MAX_LENGTH)
    content = forms.CharField(required=False, strip=False)
    folder_id = forms.IntegerField(required=False, min_value=1)
    is_favorite = forms.BooleanField(required=False)


class UploadForm(forms.Form):
    """Multipart body of an image or PDF upload."""

    file = forms.FileField(allow_empty_file=True)
    title = forms.CharField(required=False, max_length=_TITLE_MAX_LENGTH)
    folder_id = forms.IntegerField(required=False, min_value=1)


class FolderForm(forms.Form):
    """Body of a folder create request."""

    name = forms.CharField(max_length=_FOLDER_NAME_MAX_LENGTH)
    parent_id = forms.IntegerField(required=False, min_value=1)


class FolderUpdateForm(PartialForm):
    """Body of a folder update request."""

    name = forms.CharField(required=False, max_length=_FOLDER_NAME_MAX_LENGTH)
    is_favorite = forms.BooleanField(required=False)


class ListQueryForm(forms.Form):
    """Query string of list endpoints."""

    page = forms.IntegerField(required=False, min_value=1)
    limit = forms.IntegerField(
        required=False,
        min_value=1,
        max_value=_MAX_PAGE_SIZE,
    )
    search = forms.CharField(required=False)
    folder_id = forms.CharField(required=False)
    is_favorite = forms.NullBooleanField(required=False)
    type = forms.CharField(required=False)  # noqa: WPS125

    def clean_page(self) -> int:
        return self.cleaned_data['page'] or 1

    def clean_limit(self) -> int:
        return self.cleaned_data['limit'] or _DEFAULT_PAGE_SIZE

    def clean_folder_id(self) -> int | str | None:
        """Parse the folder filter: an id, 'null' for the root, or none."""
        folder_id = self.cleaned_data['folder_id']
        if not folder_id:
            return None
        if folder_id == ROOT_FOLDER:
            return ROOT_FOLDER
        try:
            return int(folder_id)
        except ValueError as error:
            raise forms.ValidationError(
                'Enter a folder id or "null".',
            ) from error
