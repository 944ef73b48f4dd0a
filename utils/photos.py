"""
Photo pipeline: upload conversion, per-user quota, removal and the
maintenance helpers used by cleanup_photos.py.

Files live under <UPLOAD_FOLDER>/<user_id>/ and are referenced in the
users.photos list as "/uploads/<user_id>/<filename>". The database list is
the source of truth for what is visible; files are removed best-effort.
"""
import logging
import posixpath
import secrets
import shutil
import time
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit, unquote

from flask import current_app
from PIL import Image, ImageOps, UnidentifiedImageError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from models import db, User
from models.users import MAX_PHOTOS
from utils.cache import CacheManager
from utils.errors import (
    ApiError,
    NotFound,
    PhotoProcessingError,
    QuotaExceeded,
    Unavailable,
    ValidationError,
)

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    'image/jpeg',
    'image/png',
    'image/webp',
    'image/gif',
    'image/bmp',
})
MAX_DIMENSIONS = (1920, 1080)
OUTPUT_FORMAT = 'WEBP'
OUTPUT_EXTENSION = '.webp'
OUTPUT_QUALITY = 80
PHOTO_URL_PREFIX = '/uploads/'
TMP_DIRNAME = 'tmp'

# Decompression bomb guard; Pillow raises beyond twice this many pixels
Image.MAX_IMAGE_PIXELS = 50_000_000


def upload_root() -> Path:
    return Path(current_app.config['UPLOAD_FOLDER']).resolve()


def unique_filename(extension: str) -> str:
    """Millisecond timestamp plus random suffix, e.g. 1718000000000-9f2c1a7b.webp"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"


def photo_ref_for(user_id: int, filename: str) -> str:
    return f"{PHOTO_URL_PREFIX}{user_id}/{filename}"


def normalize_photo_reference(photo) -> str:
    """
    Turn a client supplied photo path or URL into a stored reference.

    "http://localhost:3000/uploads/3/a.webp" -> "/uploads/3/a.webp"
    """
    if not photo or not isinstance(photo, str):
        raise ValidationError("photo is required")

    base_url = current_app.config.get('PUBLIC_BASE_URL')
    if base_url and photo.startswith(base_url):
        photo = photo[len(base_url):]

    path = unquote(urlsplit(photo.strip()).path)
    if not path.startswith('/'):
        path = '/' + path
    normalized = posixpath.normpath(path)

    if not normalized.startswith(PHOTO_URL_PREFIX):
        raise ValidationError("Photo path is outside the uploads directory")
    return normalized


def resolve_photo_path(photo_ref: str, root: Optional[Path] = None) -> Path:
    """Map a stored reference to a file, refusing anything outside the uploads root"""
    root = root or upload_root()
    if not photo_ref.startswith(PHOTO_URL_PREFIX):
        raise ValidationError("Photo path is outside the uploads directory")

    candidate = (root / photo_ref[len(PHOTO_URL_PREFIX):]).resolve()
    if candidate == root or not candidate.is_relative_to(root):
        raise ValidationError("Photo path is outside the uploads directory")
    return candidate


def _remove_quietly(path: Optional[Path]):
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove file {path}: {str(e)}")


def convert_image(source: Path, destination: Path):
    """
    Decode source, fit it inside MAX_DIMENSIONS without upscaling and write
    it to destination as WEBP.
    """
    try:
        with Image.open(source) as original:
            img = ImageOps.exif_transpose(original)
            img.thumbnail(MAX_DIMENSIONS, Image.Resampling.LANCZOS)
            if img.mode not in ('RGB', 'RGBA'):
                img = img.convert('RGBA' if 'transparency' in img.info or img.mode in ('LA', 'PA') else 'RGB')
            img.save(destination, OUTPUT_FORMAT, quality=OUTPUT_QUALITY)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        _remove_quietly(destination)
        logger.error(f"Image conversion failed for {source.name}: {str(e)}")
        raise PhotoProcessingError("Could not process the uploaded image") from e


def _save_temp_upload(file_storage, root: Path) -> Path:
    tmp_dir = root / TMP_DIRNAME
    tmp_dir.mkdir(parents=True, exist_ok=True)
    temp_path = tmp_dir / unique_filename('.upload')
    file_storage.save(str(temp_path))
    return temp_path


def _lock_user(user_id: int) -> Optional[User]:
    """Reload the user row, locking it where the backend supports FOR UPDATE"""
    return db.session.execute(
        select(User)
        .where(User.id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _append_photo(user_id: int, photo_ref: str) -> Tuple[List[str], User]:
    try:
        user = _lock_user(user_id)
        if user is None:
            raise NotFound("User not found")

        photos = list(user.photos or [])
        if len(photos) >= MAX_PHOTOS:
            raise QuotaExceeded(f"Maximum {MAX_PHOTOS} photos allowed")

        photos.append(photo_ref)
        user.photos = photos
        db.session.commit()
        return photos, user
    except ApiError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error saving photo reference for user {user_id}: {str(e)}")
        raise Unavailable() from e


def upload_photo(user_id: int, file_storage) -> Tuple[str, List[str], User]:
    """
    Convert an uploaded image and append it to the user's photos.

    The quota is checked before any work is done and again under the row
    lock at commit time. Temporary and converted files never outlive a
    failed request.

    Returns:
        (photo_ref, photos, user)
    """
    if file_storage is None or not file_storage.filename:
        raise ValidationError("No photo uploaded")

    mimetype = (file_storage.mimetype or '').lower()
    if mimetype not in ALLOWED_MIME_TYPES:
        raise ValidationError(
            "Unsupported image type",
            {'allowed': sorted(ALLOWED_MIME_TYPES)},
        )

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if len(user.photos or []) >= MAX_PHOTOS:
        logger.warning(f"User {user_id} is at the {MAX_PHOTOS} photo limit")
        raise QuotaExceeded(f"Maximum {MAX_PHOTOS} photos allowed")

    root = upload_root()
    temp_path = None
    final_path = None
    try:
        temp_path = _save_temp_upload(file_storage, root)

        user_dir = root / str(user_id)
        user_dir.mkdir(parents=True, exist_ok=True)
        filename = unique_filename(OUTPUT_EXTENSION)
        final_path = user_dir / filename

        convert_image(temp_path, final_path)

        photo_ref = photo_ref_for(user_id, filename)
        photos, user = _append_photo(user_id, photo_ref)
    except Exception:
        _remove_quietly(final_path)
        raise
    finally:
        _remove_quietly(temp_path)

    logger.info(f"Photo {photo_ref} added for user {user_id} ({len(photos)}/{MAX_PHOTOS})")
    CacheManager.invalidate_user_cache(user_id)
    return photo_ref, photos, user


def delete_photo_file(photo_ref: str, root: Optional[Path] = None) -> bool:
    """Best-effort removal of the file behind a reference; failures are only logged"""
    try:
        path = resolve_photo_path(photo_ref, root)
        path.unlink()
        return True
    except (OSError, ValidationError) as e:
        logger.warning(f"Could not delete photo file {photo_ref}: {str(e)}")
        return False


def delete_photo(user_id: int, photo) -> Tuple[List[str], User]:
    """
    Remove a photo reference from the user's list, then delete the file.

    A reference that is not in the list leaves everything untouched and
    still succeeds.
    """
    photo_ref = normalize_photo_reference(photo)
    resolve_photo_path(photo_ref)

    try:
        user = _lock_user(user_id)
        if user is None:
            raise NotFound("User not found")

        photos = list(user.photos or [])
        if photo_ref not in photos:
            db.session.rollback()
            logger.info(f"Photo {photo_ref} not present for user {user_id}; nothing to delete")
            return photos, user

        photos.remove(photo_ref)
        user.photos = photos
        db.session.commit()
    except ApiError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Error removing photo reference for user {user_id}: {str(e)}")
        raise Unavailable() from e

    delete_photo_file(photo_ref)
    logger.info(f"Photo {photo_ref} removed for user {user_id}")
    CacheManager.invalidate_user_cache(user_id)
    return photos, user


def delete_user_photos(user_id: int, photos: Iterable[str]):
    """Remove every file of a deleted user along with their directory"""
    root = upload_root()
    for photo_ref in photos or []:
        delete_photo_file(photo_ref, root)

    user_dir = root / str(user_id)
    if user_dir.is_dir():
        try:
            shutil.rmtree(user_dir)
        except OSError as e:
            logger.warning(f"Could not remove photo directory {user_dir}: {str(e)}")


def find_orphaned_photos(root: Path, referenced: Iterable[str], min_age_seconds: int = 3600,
                         now: Optional[float] = None) -> List[Path]:
    """
    Files no user references any more (left behind by failed commits) plus
    stale temporary uploads. Files younger than min_age_seconds are skipped
    so in-flight uploads are never touched.
    """
    root = Path(root).resolve()
    if not root.is_dir():
        return []
    now = now if now is not None else time.time()

    referenced_paths = set()
    for photo_ref in referenced:
        try:
            referenced_paths.add(resolve_photo_path(photo_ref, root))
        except ValidationError:
            logger.warning(f"Ignoring stored reference outside uploads root: {photo_ref}")

    orphans = []
    for directory in sorted(root.iterdir()):
        if not directory.is_dir():
            continue
        is_tmp = directory.name == TMP_DIRNAME
        for path in sorted(directory.iterdir()):
            if not path.is_file():
                continue
            if now - path.stat().st_mtime < min_age_seconds:
                continue
            if is_tmp or path.resolve() not in referenced_paths:
                orphans.append(path)
    return orphans


def remove_empty_directories(root: Path) -> List[Path]:
    """Remove empty per-user directories directly under the uploads root"""
    root = Path(root).resolve()
    if not root.is_dir():
        return []

    removed = []
    for directory in sorted(root.iterdir()):
        if not directory.is_dir() or directory.name == TMP_DIRNAME:
            continue
        if any(directory.iterdir()):
            continue
        try:
            directory.rmdir()
            removed.append(directory)
        except OSError as e:
            logger.warning(f"Could not remove directory {directory}: {str(e)}")
    return removed
