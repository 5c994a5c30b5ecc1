from sqlalchemy import Column, String, Boolean, DateTime
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class AdminUser(Base):
    """Legacy admin registry, only read by the deprecated role lookup."""

    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36))
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(32), default="superadmin")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
