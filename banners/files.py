"""
banners/files.py -- On-disk storage for uploaded banner images.

Files are written under a single upload directory and exposed by URL as
/uploads/banners/<filename>. Only image/* content types are accepted and the
size is capped (5 MB by default).

Filenames are generated, never taken from the client: bannerImage-<ms>-<hex>
plus the original extension when it is a short alphanumeric suffix. This
keeps client-controlled path segments out of the filesystem.

Deleting an image that is already gone is not an error; other OS errors are
logged and the banner operation continues, since the database row is the
source of truth.
"""

import logging
import re
import secrets
import time
from pathlib import Path
from typing import Optional

from core.errors import InvalidInput, PayloadTooLarge

logger = logging.getLogger("bannerboard.banners")

URL_PREFIX = "/uploads/banners/"
FIELD_NAME = "bannerImage"
_EXT_RE = re.compile(r"^\.[a-z0-9]{1,10}$")


class BannerImageStore:
    def __init__(self, upload_dir: Path, max_bytes: int = 5 * 1024 * 1024) -> None:
        self.upload_dir = Path(upload_dir)
        self.max_bytes = max_bytes
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    def save(self, original_name: Optional[str], content_type: Optional[str], data: bytes) -> str:
        """Validate and write an image. Returns its public URL."""
        if not content_type or not content_type.startswith("image/"):
            raise InvalidInput("Only image files are allowed!")
        if not data:
            raise InvalidInput("No image file uploaded.")
        if len(data) > self.max_bytes:
            raise PayloadTooLarge(f"Image exceeds the {self.max_bytes // (1024 * 1024)} MB limit.")

        ext = Path(original_name or "").suffix.lower()
        if not _EXT_RE.match(ext):
            ext = ""
        filename = f"{FIELD_NAME}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"
        (self.upload_dir / filename).write_bytes(data)
        return URL_PREFIX + filename

    def path_for(self, image_url: str) -> Optional[Path]:
        """Map an image URL back to a file path inside upload_dir, or None."""
        if not image_url or not image_url.startswith(URL_PREFIX):
            return None
        name = image_url[len(URL_PREFIX) :]
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            return None
        return self.upload_dir / name

    def delete(self, image_url: str) -> bool:
        """Remove the file behind image_url. Returns True if a file was removed."""
        path = self.path_for(image_url)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not delete banner image %s: %s", path.name, exc)
            return False
        return True
