"""
Pydantic schemas for request and response data validation.
Every endpoint answers with the ApiResponse envelope: {"success": bool, "data": ...}.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime
from typing import Generic, List, Literal, Optional, TypeVar

T = TypeVar("T")

ImageType = Literal["main", "gallery"]
ContactSide = Literal["groom", "bride"]
ContactRelationship = Literal["person", "father", "mother", "brother", "sister", "other"]


class ApiResponse(BaseModel, Generic[T]):
    """Uniform success envelope. Errors are rendered by the exception handlers in main."""
    success: bool = True
    data: Optional[T] = None


class CreatedResponse(BaseModel):
    id: int


# Gallery

class GalleryItemResponse(BaseModel):
    """Public gallery row. `url` is derived from the stored filename."""
    id: int
    filename: Optional[str] = None
    url: str
    image_type: ImageType
    order_index: Optional[int] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GalleryItemAdminResponse(GalleryItemResponse):
    """Admin gallery row, including soft-deleted rows awaiting purge."""
    deleted_at: Optional[datetime] = None


class GalleryItemCreate(BaseModel):
    """
    Request schema for registering an already uploaded file.
    Used by POST /api/gallery.
    """
    filename: str = Field(min_length=1)
    image_type: ImageType = "gallery"


class GalleryReorderRequest(BaseModel):
    """
    Request schema for PUT /api/admin/gallery.
    Either move one item onto another item's position (sourceId/targetId),
    or give the full desired order (sortedIds).
    """
    sourceId: Optional[int] = None
    targetId: Optional[int] = None
    sortedIds: Optional[List[int]] = None

    @field_validator("sortedIds")
    @classmethod
    def validate_unique_ids(cls, v):
        if v is not None and len(v) != len(set(v)):
            raise ValueError("Duplicate image IDs are not allowed")
        return v

    @model_validator(mode="after")
    def validate_mode(self):
        if self.sortedIds:
            return self
        if self.sourceId is None or self.targetId is None:
            raise ValueError("Invalid data: sortedIds array or sourceId/targetId is required")
        return self


class CoverImageResponse(BaseModel):
    url: str


class UploadResponse(BaseModel):
    filename: str


class ImageUploadResponse(BaseModel):
    fileUrl: str
    fileName: str


class CleanupResponse(BaseModel):
    cleaned: int
    errors: List[str]


# Guestbook

class GuestbookEntryResponse(BaseModel):
    """Public guestbook entry. The password is never exposed."""
    id: int
    name: str
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class GuestbookAdminEntryResponse(BaseModel):
    id: int
    name: str
    content: str
    created_at: str  # "YYYY. MM. DD HH:mm"
    deleted_at: Optional[str] = None


class GuestbookCreate(BaseModel):
    name: str = Field(max_length=100)
    password: str = Field(max_length=128)
    content: str = Field(max_length=2000)

    @field_validator("name", "content")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        # Stored as typed: edits and deletes compare against the raw value
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class GuestbookUpdate(BaseModel):
    password: str
    content: str = Field(max_length=2000)

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


class GuestbookPasswordReset(BaseModel):
    newPassword: str = Field(min_length=1, max_length=128)


# Contacts

class ContactResponse(BaseModel):
    id: int
    side: ContactSide
    relationship: ContactRelationship
    name: str
    phone: str = ""
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    kakaopay_link: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ContactCreate(BaseModel):
    side: ContactSide
    relationship: ContactRelationship
    name: str
    phone: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    kakaopay_link: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Side, relationship, and name are required")
        return v.strip()


class ContactUpdate(BaseModel):
    name: str
    phone: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    kakaopay_link: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()


# Invitation

class InvitationPayload(BaseModel):
    groom: Optional[str] = None
    bride: Optional[str] = None
    wedding_date: Optional[str] = None
    main_img: Optional[str] = None
    message: Optional[str] = None


class InvitationResponse(InvitationPayload):
    id: int

    model_config = ConfigDict(from_attributes=True)


# Admin session

class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class LoginResponse(BaseModel):
    token: str


class SessionStatusResponse(BaseModel):
    authenticated: bool
