from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Role(str, Enum):
    ADMIN = "admin"
    GUEST = "guest"


class ProviderTag(str, Enum):
    """Which storage account holds a document's file. Deletion dispatches on it."""

    IMAGEKIT_SMALL = "imagekit-small"
    IMAGEKIT_LARGE = "imagekit-large"
    # Records written before the account split
    IMAGEKIT = "imagekit"
    EXTERNAL = "external"


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str
    name: str
    role: Role = Role.GUEST
    password_hash: str
    created_at: Optional[datetime] = None


class Document(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    title: str
    author: str
    description: str = ""
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    pdf_url: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    upload_provider: ProviderTag
    imagekit_file_id: Optional[str] = None
    view_count: int = 0
    download_count: int = 0
    created_at: datetime
    updated_at: datetime
    uploaded_by: str


class Category(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    created_at: datetime


class UploadResult(BaseModel):
    """What a storage account reports back after a successful upload."""

    file_id: str
    url: str
    size: int
    name: str
    file_path: str
    provider: ProviderTag
