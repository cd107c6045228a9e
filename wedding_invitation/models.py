"""
SQLAlchemy models for the application.
All database models inherit from Base (declarative base).
"""
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime
from wedding_invitation.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GalleryItem(Base):
    """
    Gallery photo or the main cover photo.
    `filename` is relative to the uploads directory; `order_index` is only
    set for `gallery` rows and is kept in sync with the filename.
    """
    __tablename__ = "gallery"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(512), nullable=True)
    image_type = Column(String(16), nullable=False, default="gallery", index=True)
    order_index = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def url(self) -> str:
        return f"/uploads/{self.filename}"


class GuestbookEntry(Base):
    """
    Guestbook message.
    `password` holds a PBKDF2 `salt:hash` string, or plaintext for entries
    written before hashing was introduced.
    """
    __tablename__ = "guestbook"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    password = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class ContactPerson(Base):
    __tablename__ = "contacts"

    id = Column(Integer, primary_key=True, index=True)
    side = Column(String(16), nullable=False)
    relationship = Column(String(16), nullable=False)
    name = Column(String(100), nullable=False)
    phone = Column(String(32), nullable=False, default="")
    bank_name = Column(String(100), nullable=True)
    account_number = Column(String(100), nullable=True)
    kakaopay_link = Column(String(512), nullable=True)


class Invitation(Base):
    """Single-row invitation record (id = 1)."""
    __tablename__ = "invitation"

    id = Column(Integer, primary_key=True)
    groom = Column(String(100), nullable=True)
    bride = Column(String(100), nullable=True)
    wedding_date = Column(String(64), nullable=True)
    main_img = Column(String(512), nullable=True)
    message = Column(Text, nullable=True)


class AdminAccount(Base):
    __tablename__ = "admin"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(64), nullable=False, unique=True, default="admin")
    password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ImageAsset(Base):
    """
    Target-keyed uploaded image.
    Superseded by the gallery table; only written by /api/upload/image.
    """
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String(512), nullable=False)
    original_name = Column(String(512), nullable=True)
    target_id = Column(String(128), nullable=True, index=True)
    file_size = Column(Integer, nullable=False, default=0)
    image_type = Column(String(16), nullable=False, default="other")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)
