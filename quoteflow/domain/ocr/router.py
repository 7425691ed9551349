"""OCR router - business card scanning"""

import base64
import binascii
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from ...file_validator import MAX_FILE_SIZE, detect_mime_type, validate_image_file
from ...models import User
from ...permissions import require_permission
from ...responses import ok
from .schemas import Base64ImageRequest
from .service import OCRError, scan_business_card

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ocr", tags=["OCR"])


async def read_multipart_image(request: Request) -> str:
    form = await request.form()
    upload = form.get("file") or form.get("image")
    if upload is None or isinstance(upload, str):
        raise HTTPException(status_code=400, detail="No file provided")

    content = await upload.read()
    result = validate_image_file(content, upload.filename or "", upload.content_type or "")
    if not result.is_valid:
        raise HTTPException(status_code=400, detail={"message": result.error, "code": "INVALID_FILE"})
    return base64.b64encode(content).decode("ascii")


async def read_base64_image(request: Request) -> str:
    try:
        body = Base64ImageRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail="Request body must be JSON with an 'image' field") from e

    try:
        content = base64.b64decode(body.image, validate=True)
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail="Invalid base64 image") from e

    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail=f"File size exceeds {MAX_FILE_SIZE // 1024 // 1024}MB limit")
    detected = detect_mime_type(content)
    if not detected.is_valid or not detected.detected_mime_type.startswith("image/"):
        raise HTTPException(status_code=400, detail={"message": "Unsupported image format", "code": "INVALID_FILE"})
    return body.image


async def read_raw_image(request: Request, content_type: str) -> str:
    mime_type = content_type.split(";")[0].strip()
    content = await request.body()
    result = validate_image_file(content, f"upload.{mime_type.split('/')[-1]}", mime_type)
    if not result.is_valid:
        raise HTTPException(status_code=400, detail={"message": result.error, "code": "INVALID_FILE"})
    return base64.b64encode(content).decode("ascii")


@router.post("/business-card")
async def scan_card(
    request: Request,
    user: User = Depends(require_permission("customers:write")),
):
    """Read contact details off a business card (multipart upload, raw image body or JSON base64)"""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        image_base64 = await read_multipart_image(request)
    elif content_type.startswith("image/"):
        image_base64 = await read_raw_image(request, content_type)
    else:
        image_base64 = await read_base64_image(request)

    try:
        card = await scan_business_card(image_base64)
    except OCRError as e:
        logger.error(f"❌ Business card OCR failed for user {user.id}")
        raise HTTPException(status_code=502, detail={"message": str(e), "code": "OCR_FAILED"}) from e

    return ok(card.model_dump())


__all__ = ["router"]
