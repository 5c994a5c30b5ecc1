from sqlalchemy import Column, String, Text, Integer, DateTime
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class EmailOTP(Base):
    __tablename__ = "email_otps"

    id = Column(String(36), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    otp_hash = Column(String(64), nullable=False)
    purpose = Column(String(32), nullable=False, default="email_verification")
    # Fernet token of the pending registration (password already hashed)
    payload = Column(Text, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified_at = Column(DateTime)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
