"""Profile model for an owner's public identity."""

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base
from models.timestamps import utc_now


class Profile(Base):
    """Display name and contact email shown on the owner's shared dashboard."""

    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    display_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=utc_now)

    # Relationships
    user = relationship("User", back_populates="profile")

    @property
    def public_name(self) -> str:
        return self.display_name or self.email or "Anonymous"
