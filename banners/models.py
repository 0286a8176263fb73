"""
banners/models.py -- Domain dataclass for promotional banners.

Pure data container with zero logic. Persistence lives in banners/store.py,
image files in banners/files.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Banner:
    """An image plus display metadata.

    image_url always has the form /uploads/banners/<filename>; the file itself
    is owned by BannerImageStore. id is None before the record is written.
    """

    title: str
    image_url: str
    description: Optional[str] = None
    link: Optional[str] = None
    is_active: bool = True
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
    updated_at: str = ""  # ISO 8601, refreshed on every update
