"""DashboardView model: one recorded visit to a shared dashboard."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from models.timestamps import utc_now


class DashboardView(Base):
    """Immutable analytics row written by view tracking."""

    __tablename__ = "dashboard_views"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    shared_dashboard_id = Column(
        String, ForeignKey("shared_dashboards.id", ondelete="CASCADE"), nullable=False, index=True
    )
    viewer_ip = Column(String, nullable=True, index=True)  # free text, never validated
    viewer_user_agent = Column(Text, nullable=True)
    viewed_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, server_default=func.now(), index=True)
    referrer = Column(Text, nullable=True)
    # Reserved; nothing populates these yet.
    country = Column(String, nullable=True)
    city = Column(String, nullable=True)

    shared_dashboard = relationship("SharedDashboard", back_populates="views")

    def __repr__(self):
        return (
            f"<DashboardView(id={self.id}, shared_dashboard_id={self.shared_dashboard_id}, "
            f"viewed_at={self.viewed_at})>"
        )
