from sqlalchemy import Column, String, DateTime
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class StudentProfile(Base):
    __tablename__ = "student_profiles"

    user_id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    class_type = Column(String(20))
    exam_preference = Column(String(20))
    phone = Column(String(20))
    school_name = Column(String(200))
    city = Column(String(100))
    state = Column(String(100))
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)
