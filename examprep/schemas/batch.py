from datetime import date
from pydantic import BaseModel
from typing import Literal, Optional


class BatchCreate(BaseModel):
    name: str
    description: Optional[str] = None
    category: str = "general"
    class_type: Optional[str] = None
    fees: float = 0
    capacity: Optional[int] = None
    teacher_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str = "active"
    thumbnail: Optional[str] = None


class BatchUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    class_type: Optional[str] = None
    fees: Optional[float] = None
    capacity: Optional[int] = None
    teacher_name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    thumbnail: Optional[str] = None


class SubjectCreate(BaseModel):
    name: str
    description: Optional[str] = None
    order_index: int = 0


class ChapterCreate(BaseModel):
    title: str
    description: Optional[str] = None
    content: Optional[str] = None
    order_index: int = 0


class VideoCreate(BaseModel):
    title: str
    video_url: str
    video_type: Literal["lecture", "dpp_video"]
    video_source: str
    description: Optional[str] = None
    file_size: Optional[int] = None
    order_index: int = 0


class PdfCreate(BaseModel):
    title: str
    pdf_url: str
    pdf_type: Literal["notes", "dpp_pdf"] = "notes"
    description: Optional[str] = None
    file_size: Optional[int] = None
    order_index: int = 0
