"""
File storage under ``UPLOAD_FOLDER``.

Images are resized with Pillow to fit inside 1200x800 (never enlarged) and
re-encoded at quality 80. Stored names are random so client filenames never
reach the filesystem; documents keep the sanitized original name as a suffix.
"""
import logging
import os
import uuid

from flask import current_app
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from ..errors import UploadError

log = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}
PROPERTY_IMAGE_MAX_BYTES = 10 * 1024 * 1024
WORK_IMAGE_MAX_BYTES = 5 * 1024 * 1024
DOCUMENT_MAX_BYTES = 25 * 1024 * 1024

IMAGE_MAX_SIZE = (1200, 800)
IMAGE_QUALITY = 80

PIL_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "gif": "GIF", "webp": "WEBP"}


def upload_root():
    return current_app.config["UPLOAD_FOLDER"]


def _extension(filename):
    return filename.rsplit(".", 1)[1].lower() if "." in filename else ""


def _file_size(file_storage):
    stream = file_storage.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def _target_dir(subdir):
    path = os.path.join(upload_root(), subdir)
    os.makedirs(path, exist_ok=True)
    return path


def public_url(relative_path):
    return "/uploads/" + relative_path.replace(os.sep, "/")


def _save_image(file_storage, subdir, max_bytes, require_image_mimetype=False):
    if file_storage is None or not file_storage.filename:
        raise UploadError("No image file provided")

    ext = _extension(file_storage.filename)
    if ext not in IMAGE_EXTENSIONS:
        raise UploadError("Only image files are allowed!")
    if require_image_mimetype and not (file_storage.mimetype or "").startswith("image/"):
        raise UploadError("Only image files are allowed!")
    if _file_size(file_storage) > max_bytes:
        raise UploadError(f"Image exceeds the {max_bytes // (1024 * 1024)}MB limit")

    try:
        image = Image.open(file_storage.stream)
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise UploadError("Uploaded file is not a readable image") from e

    image.thumbnail(IMAGE_MAX_SIZE)
    fmt = PIL_FORMATS[ext]
    if fmt == "JPEG" and image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    filename = f"{uuid.uuid4().hex}.{ext}"
    destination = os.path.join(_target_dir(subdir), filename)
    save_kwargs = {"quality": IMAGE_QUALITY} if fmt in ("JPEG", "WEBP") else {}
    image.save(destination, format=fmt, **save_kwargs)

    log.info("Stored image %s/%s", subdir, filename)
    return public_url(f"{subdir}/{filename}")


def save_property_image(file_storage):
    return _save_image(file_storage, "properties", PROPERTY_IMAGE_MAX_BYTES)


def save_work_image(file_storage):
    return _save_image(file_storage, "work-images", WORK_IMAGE_MAX_BYTES, require_image_mimetype=True)


def save_document(file_storage, user_id):
    """Store an uploaded document; returns (relative_path, size, file_type)."""
    if file_storage is None or not file_storage.filename:
        raise UploadError("No file uploaded")

    safe_name = secure_filename(file_storage.filename) or "document"
    size = _file_size(file_storage)
    if size > DOCUMENT_MAX_BYTES:
        raise UploadError("File exceeds the 25MB limit")

    subdir = f"documents/{user_id}"
    filename = f"{uuid.uuid4().hex}_{safe_name}"
    file_storage.save(os.path.join(_target_dir(subdir), filename))

    return f"{subdir}/{filename}", size, _extension(safe_name) or "bin"


def delete_upload(relative_path):
    if not relative_path:
        return False
    path = os.path.join(upload_root(), relative_path)
    try:
        os.remove(path)
    except FileNotFoundError:
        log.warning("Stored file already missing: %s", relative_path)
        return False
    return True
