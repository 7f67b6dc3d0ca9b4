import os
from urllib.parse import urlparse

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from dotenv import load_dotenv

from travel_app.core.logging_config import get_logger

load_dotenv()

logger = get_logger()

CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "travel_app")

cloudinary.config(
    cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME"),
    api_key=os.getenv("CLOUDINARY_API_KEY"),
    api_secret=os.getenv("CLOUDINARY_API_SECRET"),
    secure=True,
)


def upload_image(image_bytes: bytes, subfolder: str):
    """Upload a JPEG and return {"url", "public_id"}, or None on failure."""
    try:
        result = cloudinary.uploader.upload(
            image_bytes,
            folder=f"{CLOUDINARY_FOLDER}/{subfolder}",
            resource_type="image",
            format="jpg",
            quality="90",
        )
        return {
            "url": result.get("secure_url"),
            "public_id": result.get("public_id"),
        }
    except (CloudinaryError, OSError, ValueError) as e:
        logger.error(f"Cloudinary upload error: {e}")
        return None


def delete_image(public_id: str):
    try:
        cloudinary.uploader.destroy(public_id, invalidate=True)
        return True
    except (CloudinaryError, OSError, ValueError) as e:
        logger.warning(f"Cloudinary delete error for {public_id}: {e}")
        return False


def public_id_from_url(url: str | None):
    """.../image/upload/v1712/travel_app/hotels/abc.jpg -> travel_app/hotels/abc"""
    if not url:
        return None
    path = urlparse(url).path
    if "/upload/" not in path:
        return None
    tail = path.split("/upload/", 1)[1].split("/")
    if tail and tail[0].startswith("v") and tail[0][1:].isdigit():
        tail = tail[1:]
    if not tail:
        return None
    return os.path.splitext("/".join(tail))[0]
