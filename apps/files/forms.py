from django import forms

from .services.token_service import EXPIRY_PATTERN


class FileUploadForm(forms.Form):
    """
    Form for uploading a file to be stored behind a token.
    Field names follow the JSON API rather than Python conventions.
    """
    file = forms.FileField(
        label="Select file",
        required=True,
    )

    expiredAt = forms.RegexField(
        label="Expiry (epoch milliseconds, optional)",
        regex=EXPIRY_PATTERN,
        required=False,
        error_messages={'invalid': "Invalid expiredAt format"},
    )

    def clean_expiredAt(self):
        # Empty means the token never expires
        return self.cleaned_data.get('expiredAt') or None


class ImageUploadForm(forms.Form):
    """
    Form for the scramble endpoint. The image type is checked by the obfuscator.
    """
    file = forms.FileField(
        label="Select image",
        required=True,
    )

