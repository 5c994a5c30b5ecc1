from sqlalchemy import Column, String, Text, Integer, DateTime, ForeignKey
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class BatchChapter(Base):
    __tablename__ = "batch_subject_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(Integer, ForeignKey("batch_subjects.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    content = Column(Text)
    order_index = Column(Integer, default=0)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
