import re
import shutil
from pathlib import Path
from typing import Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from recyclehub.core.auth import get_current_user
from recyclehub.core.config import UPLOADS_DIR
from recyclehub.models.user import User
from recyclehub.schemas.pickup_order import UploadOut

router = APIRouter(prefix="/upload", tags=["Uploads"])

ALLOWED_IMAGE_SUFFIXES = {".jpg", ".jpeg", ".png", ".webp"}


def get_uploads_base_dir() -> Path:
    if UPLOADS_DIR:
        base_dir = Path(UPLOADS_DIR)
    else:
        base_dir = Path(__file__).resolve().parents[2] / "uploads"
    base_dir.mkdir(parents=True, exist_ok=True)
    return base_dir


def get_pickups_dir() -> Path:
    pickups_dir = get_uploads_base_dir() / "pickups"
    pickups_dir.mkdir(parents=True, exist_ok=True)
    return pickups_dir


def sanitize_stem(value: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9_-]+", "_", value or "")
    cleaned = cleaned.strip("_")
    return cleaned[:60] or "image"


def build_upload_url(relative_path: Optional[str]) -> Optional[str]:
    if not relative_path:
        return None
    if relative_path.startswith(("http://", "https://", "/")):
        return relative_path
    return f"/uploads/{relative_path}"


def ensure_image(upload: UploadFile) -> str:
    filename = upload.filename or ""
    suffix = Path(filename).suffix.lower()
    if suffix not in ALLOWED_IMAGE_SUFFIXES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The image must be a .jpg, .jpeg, .png or .webp file."
        )
    content_type = (upload.content_type or "").lower()
    if content_type and not content_type.startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type for the image."
        )
    return suffix


def save_image(upload: UploadFile) -> str:
    suffix = ensure_image(upload)
    pickups_dir = get_pickups_dir()
    original_name = upload.filename or f"image{suffix}"
    stem = sanitize_stem(Path(original_name).stem)
    target_name = f"pickup_{uuid4().hex}_{stem}{suffix}"
    target_path = pickups_dir / target_name
    with target_path.open("wb") as buffer:
        shutil.copyfileobj(upload.file, buffer)
    relative_path = Path("pickups") / target_name
    return relative_path.as_posix()


@router.post("/", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
def upload_image(
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user)
):
    relative_path = save_image(image)
    return UploadOut(filename=relative_path, image_url=build_upload_url(relative_path))
