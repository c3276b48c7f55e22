from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class PhotoResponse(BaseModel):
    position: int
    key: str
    url: str
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None


class GalleryResponse(BaseModel):
    id: str
    name: str
    created_at: datetime
    photos: List[PhotoResponse]


class UploadFileResult(BaseModel):
    filename: str
    status: str
    key: Optional[str] = None
    url: Optional[str] = None
    error: Optional[str] = None
    message: Optional[str] = None


class UploadResponse(BaseModel):
    uploaded: int
    failed: int
    results: List[UploadFileResult]
