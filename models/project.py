"""Project model for portfolio entries."""

from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from database import Base
from models.timestamps import utc_now


class Project(Base):
    """A delivered project: client, live URL and source repository."""

    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    client = Column(String, nullable=False)
    project_url = Column(String, nullable=False)
    github_url = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=utc_now)

    user = relationship("User", back_populates="projects")
