"""Models package."""

from .user import User
from .profile import Profile
from .project import Project
from .shared_dashboard import SharedDashboard
from .dashboard_view import DashboardView
