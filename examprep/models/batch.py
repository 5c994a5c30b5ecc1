from sqlalchemy import Column, String, Text, Integer, Numeric, Date, DateTime
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class Batch(Base):
    __tablename__ = "batches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    category = Column(String(20), default="general")
    class_type = Column(String(20))
    fees = Column(Numeric(10, 2), nullable=False, default=0)
    capacity = Column(Integer)
    teacher_name = Column(String(100))
    start_date = Column(Date)
    end_date = Column(Date)
    status = Column(String(20), default="active", nullable=False)
    thumbnail = Column(Text)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)
