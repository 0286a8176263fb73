"""
api/routes/v1/banners.py -- Banner CRUD routes for the BannerBoard REST API.

Routes:
  GET    /banners         -- list banners (public; ?active=true filters)
  GET    /banners/{id}    -- one banner (public)
  POST   /banners         -- create (admin; multipart, bannerImage required)
  PUT    /banners/{id}    -- update (admin; multipart, bannerImage optional)
  DELETE /banners/{id}    -- delete record and image file (admin)

File uploads:
  Create and update accept multipart/form-data with the image in the
  "bannerImage" field. Size is capped by MAX_UPLOAD_BYTES (5 MB default) and
  only image/* content types are stored. If the database write fails after
  the file is written, the new file is removed again. Replacing an image
  deletes the old file only after the row points at the new one.

isActive arrives as a form string; "true" (any case) is true, anything else
false. Omitted on create means active.
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from api.models import BannerMutationResponse, BannerResponse, MessageResponse, RowId
from auth.dependencies import require_admin
from auth.models import User
from banners.files import BannerImageStore
from banners.models import Banner
from banners.store import BannerStore
from core.errors import InvalidInput, NotFound

router = APIRouter()


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    return value.strip().lower() == "true"


async def _read_upload(images: BannerImageStore, upload: Optional[UploadFile]) -> Optional[bytes]:
    if upload is None:
        return None
    # Read limit + 1 byte so an oversized upload is detected without reading it all
    return await upload.read(images.max_bytes + 1)


def _get_or_404(store: BannerStore, banner_id: int) -> Banner:
    banner = store.get_banner(banner_id)
    if banner is None:
        raise NotFound("Banner not found")
    return banner


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------


@router.get("/banners", response_model=list[BannerResponse])
def list_banners(request: Request, active: bool = False) -> list[BannerResponse]:
    store: BannerStore = request.app.state.banner_store
    return [BannerResponse.from_banner(b) for b in store.list_banners(active_only=active)]


@router.get("/banners/{banner_id}", response_model=BannerResponse)
def get_banner(request: Request, banner_id: RowId) -> BannerResponse:
    return BannerResponse.from_banner(_get_or_404(request.app.state.banner_store, banner_id))


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


@router.post("/banners", response_model=BannerMutationResponse, status_code=201)
async def create_banner(
    request: Request,
    title: str = Form(..., min_length=1, max_length=255),
    description: Optional[str] = Form(None, max_length=2000),
    link: Optional[str] = Form(None, max_length=2048),
    is_active: Optional[str] = Form(None, alias="isActive"),
    banner_image: Optional[UploadFile] = File(None, alias="bannerImage"),
    current_user: User = Depends(require_admin),
) -> BannerMutationResponse:
    """Upload an image and create a banner pointing at it."""
    store: BannerStore = request.app.state.banner_store
    images: BannerImageStore = request.app.state.banner_images

    data = await _read_upload(images, banner_image)
    if data is None:
        raise InvalidInput("No image file uploaded")
    title = title.strip()
    if not title:
        raise InvalidInput("Title is required")

    image_url = images.save(banner_image.filename, banner_image.content_type, data)
    active = _parse_bool(is_active)
    try:
        banner_id = store.create_banner(
            Banner(
                title=title,
                description=description.strip() if description else None,
                link=link.strip() if link else None,
                image_url=image_url,
                is_active=True if active is None else active,
            )
        )
    except Exception:
        images.delete(image_url)
        raise
    return BannerMutationResponse(
        message="Banner created successfully",
        banner=BannerResponse.from_banner(_get_or_404(store, banner_id)),
    )


@router.put("/banners/{banner_id}", response_model=BannerMutationResponse)
async def update_banner(
    request: Request,
    banner_id: RowId,
    title: Optional[str] = Form(None, max_length=255),
    description: Optional[str] = Form(None, max_length=2000),
    link: Optional[str] = Form(None, max_length=2048),
    is_active: Optional[str] = Form(None, alias="isActive"),
    banner_image: Optional[UploadFile] = File(None, alias="bannerImage"),
    current_user: User = Depends(require_admin),
) -> BannerMutationResponse:
    """Update metadata and optionally replace the image. Blank fields are left unchanged."""
    store: BannerStore = request.app.state.banner_store
    images: BannerImageStore = request.app.state.banner_images

    existing = _get_or_404(store, banner_id)

    fields: dict = {}
    if title and title.strip():
        fields["title"] = title.strip()
    if description and description.strip():
        fields["description"] = description.strip()
    if link and link.strip():
        fields["link"] = link.strip()
    active = _parse_bool(is_active)
    if active is not None:
        fields["is_active"] = active

    new_image_url: Optional[str] = None
    data = await _read_upload(images, banner_image)
    if data is not None:
        new_image_url = images.save(banner_image.filename, banner_image.content_type, data)
        fields["image_url"] = new_image_url

    try:
        updated = store.update_banner(banner_id, **fields)
    except Exception:
        if new_image_url:
            images.delete(new_image_url)
        raise
    if not updated:
        if new_image_url:
            images.delete(new_image_url)
        raise NotFound("Banner not found")
    if new_image_url:
        images.delete(existing.image_url)

    return BannerMutationResponse(
        message="Banner updated successfully",
        banner=BannerResponse.from_banner(_get_or_404(store, banner_id)),
    )


@router.delete("/banners/{banner_id}", response_model=MessageResponse)
def delete_banner(
    request: Request,
    banner_id: RowId,
    current_user: User = Depends(require_admin),
) -> MessageResponse:
    store: BannerStore = request.app.state.banner_store
    images: BannerImageStore = request.app.state.banner_images

    banner = _get_or_404(store, banner_id)
    if not store.delete_banner(banner_id):
        raise NotFound("Banner not found")
    images.delete(banner.image_url)
    return MessageResponse(message="Banner deleted successfully")
