import io

from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError

from travel_app.core.errors import ExternalServiceError, ValidationError
from travel_app.utils.cloudinary_utils import delete_image, public_id_from_url, upload_image

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
MAX_PHOTO_BYTES = 5 * 1024 * 1024


# ===== CONVERT ANY IMAGE TO JPEG =====
def convert_to_jpeg(upload_file: UploadFile, field: str = "photo") -> bytes:
    if upload_file.content_type and upload_file.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError({field: "Photo must be a valid image file (JPEG, PNG, or WebP)"})

    contents = upload_file.file.read()
    if len(contents) > MAX_PHOTO_BYTES:
        raise ValidationError({field: "Photo size must not exceed 5MB"})

    try:
        img = Image.open(io.BytesIO(contents)).convert("RGB")
    except (UnidentifiedImageError, OSError):
        raise ValidationError({field: "Invalid image file"})

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=90)
    buffer.seek(0)

    return buffer.read()


# ===== UPLOAD / REPLACE =====
def store_photo(upload_file: UploadFile | None, subfolder: str, field: str = "photo") -> str | None:
    """Convert and upload an optional photo, returning its URL."""
    if upload_file is None or not upload_file.filename:
        return None

    result = upload_image(convert_to_jpeg(upload_file, field), subfolder)
    if not result or not result.get("url"):
        raise ExternalServiceError("Photo upload failed, please retry")
    return result["url"]


def discard_photo(url: str | None):
    public_id = public_id_from_url(url)
    if public_id:
        delete_image(public_id)
