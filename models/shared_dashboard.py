"""SharedDashboard model for tokenized public portfolio links."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.timestamps import utc_now


class SharedDashboard(Base):
    """Public share link token for one owner's portfolio.

    Records are never deleted by the application: issuing a new link
    deactivates the previous one. ``expires_at`` of ``None`` never expires.
    """

    __tablename__ = "shared_dashboards"
    __table_args__ = (
        Index("idx_shared_dashboards_user_active", "user_id", "is_active"),
        # At most one active link per owner.
        Index(
            "uq_shared_dashboards_user_active",
            "user_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    share_token = Column(String, nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now, server_default=func.now()
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)
    view_count = Column(Integer, nullable=False, default=0, server_default="0")

    user = relationship("User", back_populates="shared_dashboards")
    views = relationship("DashboardView", back_populates="shared_dashboard", cascade="all, delete-orphan")
