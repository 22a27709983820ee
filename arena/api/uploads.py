"""Image upload endpoints.

Files are forwarded to the image host; only the returned URL is kept.
"""

from fastapi import APIRouter, File, UploadFile

from arena.api.deps import CurrentUser, ImageHost
from arena.schemas.common import UploadResponse
from arena.utils.image_host import ImageKind

router = APIRouter(prefix="/uploads", tags=["Uploads"])


@router.post("/proof", response_model=UploadResponse)
async def upload_proof(
    image_host: ImageHost,
    _user: CurrentUser,
    file: UploadFile = File(...),
) -> UploadResponse:
    """Upload a payment proof image (max 5MB)."""
    content = await file.read()
    url = await image_host.upload(content, file.filename, file.content_type, ImageKind.PROOF)
    return UploadResponse(url=url)
