from sqlalchemy import Column, String, DateTime, Uuid, Enum as SQLEnum
from sqlalchemy.sql import func
from artsafe.database import Base
from artsafe.core.permissions import Role
import uuid


class Profile(Base):
    """Public profile row keyed by the Supabase auth user id."""
    __tablename__ = "profiles"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), index=True)
    name = Column(String(255))
    role = Column(SQLEnum(Role, name="profile_role"), default=Role.BUYER, nullable=False)
    stripe_account_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
