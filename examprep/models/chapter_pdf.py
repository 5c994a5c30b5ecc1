from sqlalchemy import Column, String, Text, Integer, BigInteger, Boolean, DateTime, Enum, ForeignKey
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class ChapterPdf(Base):
    __tablename__ = "chapter_pdfs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("batch_subject_topics.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    pdf_url = Column(Text, nullable=False)
    pdf_type = Column(Enum("notes", "dpp_pdf", name="pdf_type_enum"), nullable=False, default="notes")
    file_size = Column(BigInteger)
    order_index = Column(Integer, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
