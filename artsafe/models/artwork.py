from sqlalchemy import Column, String, Integer, BigInteger, DateTime, ForeignKey, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from artsafe.database import Base
import uuid
from enum import Enum


class ArtworkStatus(str, Enum):
    DRAFT = "draft"
    AVAILABLE = "available"
    RESERVED = "reserved"
    SOLD = "sold"
    ARCHIVED = "archived"


class Artwork(Base):
    __tablename__ = "artworks"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    artist_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    price_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), default="DKK", nullable=False)
    medium = Column(String(255))
    dimensions = Column(String(100))
    year_created = Column(Integer)
    status = Column(SQLEnum(ArtworkStatus, name="artwork_status"), default=ArtworkStatus.AVAILABLE, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    artist = relationship("Profile")


class Gallery(Base):
    __tablename__ = "galleries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("Profile")
    artists = relationship("GalleryArtist", back_populates="gallery")


class GalleryArtist(Base):
    __tablename__ = "gallery_artists"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    gallery_id = Column(Uuid(as_uuid=True), ForeignKey("galleries.id"), nullable=False, index=True)
    artist_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    status = Column(String(20), default="active", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    gallery = relationship("Gallery", back_populates="artists")
