from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import ProviderTag

TITLE_MAX_LENGTH = 18

class RegisterIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=8)

class Token(BaseModel):
    access_token: str
    token_type: str

class DocumentFieldsIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    author: str = Field(..., min_length=1)
    description: str = ""
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

class LinkUploadIn(DocumentFieldsIn):
    pdf_url: str

class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=TITLE_MAX_LENGTH)
    author: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    categories: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator("title", "author", "description", "categories", "tags")
    @classmethod
    def not_null(cls, value):
        # Omit a field to leave it unchanged; stored documents never hold null here
        if value is None:
            raise ValueError("must not be null")
        return value

class DocumentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    author: str
    description: str
    categories: List[str]
    tags: List[str]
    pdf_url: str
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    upload_provider: ProviderTag
    view_count: int
    download_count: int
    created_at: datetime
    updated_at: datetime
    uploaded_by: str

class CreatedOut(BaseModel):
    id: str

class DownloadOut(BaseModel):
    url: str
    file_name: str

class ProviderInfoOut(BaseModel):
    provider: Optional[ProviderTag]
    description: str

class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None

class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    color: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value

class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: Optional[str] = None
    color: Optional[str] = None
    created_at: datetime

class DedupeOut(BaseModel):
    removed: int

class AccessRequestIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    reason: str = Field(..., min_length=1)

class CategoryRequestIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    category_name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    examples: str = ""
