import re

from django import forms

from .capture import decode_image
from .errors import InvalidImageError


def format_phone_number(value):
    """
    Keep digits and a leading '+'.

    "+1 (555) 010-2000" -> "+15550102000", "555+0102" -> "5550102"
    """
    cleaned = re.sub(r'[^\d+]', '', value or '')
    if cleaned.startswith('+'):
        return cleaned
    return cleaned.replace('+', '')


class PhoneLookupForm(forms.Form):
    """Phone number entry on the welcome screen."""

    phone_number = forms.CharField(
        max_length=32,
        widget=forms.TextInput(attrs={
            'class': 'form-control',
            'type': 'tel',
            'inputmode': 'tel',
            'autocomplete': 'tel',
            'placeholder': 'Enter your phone number',
        })
    )

    def clean_phone_number(self):
        phone = format_phone_number(self.cleaned_data.get('phone_number', ''))
        if not phone.lstrip('+'):
            raise forms.ValidationError("Please enter the phone number used for your reservation.")
        return phone


class IDImageUploadForm(forms.Form):
    """Photo of an ID picked from the device gallery."""

    image = forms.FileField(
        widget=forms.ClearableFileInput(attrs={'accept': 'image/*'})
    )

    def clean_image(self):
        upload = self.cleaned_data['image']
        content_type = getattr(upload, 'content_type', '') or ''
        if not content_type.startswith('image/'):
            raise forms.ValidationError("Please choose an image file.")

        data = upload.read()
        try:
            decode_image(data)
        except InvalidImageError:
            raise forms.ValidationError("The selected file could not be read as an image.")

        self.image_bytes = data
        return upload
