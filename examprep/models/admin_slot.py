from sqlalchemy import Column, String, DateTime
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

SUPERADMIN_SLOT = "superadmin"

class AdminSlot(Base):
    """Singleton marker row; the fixed primary key allows one admin only."""

    __tablename__ = "admin_slot"

    slot = Column(String(20), primary_key=True, default=SUPERADMIN_SLOT)
    identity_id = Column(String(36), nullable=False, unique=True)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
