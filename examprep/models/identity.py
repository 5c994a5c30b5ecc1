from sqlalchemy import Column, String, Text, Boolean, DateTime, Enum
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class Identity(Base):
    __tablename__ = "identities"

    id = Column(String(36), primary_key=True)
    # stored lower-cased, so uniqueness is case-insensitive
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(Enum("admin", "student", name="identity_role_enum"), nullable=False)
    password_hash = Column(Text, nullable=False)
    first_name = Column(String(100))
    last_name = Column(String(100))
    phone = Column(String(20))
    class_type = Column(String(20))
    exam_preference = Column(String(20))
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)
