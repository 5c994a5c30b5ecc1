from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class BatchSubject(Base):
    __tablename__ = "batch_subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(Integer, ForeignKey("batches.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    order_index = Column(Integer, default=0)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
