"""
Catalog Service
Batch listings and the subject / chapter / video / PDF tree under a batch
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from examprep.core.exceptions import NotFound
from examprep.models.batch import Batch
from examprep.models.batch_chapter import BatchChapter
from examprep.models.batch_subject import BatchSubject
from examprep.models.chapter_pdf import ChapterPdf
from examprep.models.chapter_video import ChapterVideo

# Columns withheld from viewers without access
SUBJECT_GATED_FIELDS = ("description",)
CHAPTER_GATED_FIELDS = ("description", "content")
VIDEO_GATED_FIELDS = ("description", "video_url", "video_source", "file_size")
PDF_GATED_FIELDS = ("description", "pdf_url", "file_size")


def _money(value) -> Optional[float]:
    return float(value) if value is not None else None


def matches_student_profile(batch: Batch, exam_preference: Optional[str], class_type: Optional[str]) -> bool:
    """Whether a batch should be listed for a student with this profile."""
    if exam_preference and batch.category:
        category = batch.category.lower()
        preference = exam_preference.lower()
        if not (preference in category or category in ("both", "general") or preference == "both"):
            return False

    if class_type and batch.class_type:
        batch_class = batch.class_type.lower()
        if not (class_type.lower() in batch_class or batch_class == "all"):
            return False

    return True


def serialize_batch(batch: Batch, current_students: int = 0) -> dict:
    return {
        "id": batch.id,
        "name": batch.name,
        "title": batch.name,
        "description": batch.description,
        "category": batch.category,
        "class_type": batch.class_type,
        "fees": _money(batch.fees),
        "capacity": batch.capacity,
        "current_students": current_students,
        "teacher_name": batch.teacher_name,
        "start_date": batch.start_date.isoformat() if batch.start_date else None,
        "end_date": batch.end_date.isoformat() if batch.end_date else None,
        "status": batch.status,
        "thumbnail": batch.thumbnail,
    }


def serialize_subject(subject: BatchSubject) -> dict:
    return {
        "id": subject.id,
        "batch_id": subject.batch_id,
        "name": subject.name,
        "description": subject.description,
        "order_index": subject.order_index,
    }


def serialize_chapter(chapter: BatchChapter) -> dict:
    return {
        "id": chapter.id,
        "subject_id": chapter.subject_id,
        "title": chapter.title,
        "description": chapter.description,
        "content": chapter.content,
        "order_index": chapter.order_index,
    }


def serialize_video(video: ChapterVideo) -> dict:
    return {
        "id": video.id,
        "topic_id": video.topic_id,
        "title": video.title,
        "description": video.description,
        "video_type": video.video_type,
        "video_source": video.video_source,
        "video_url": video.video_url,
        "file_size": video.file_size,
        "order_index": video.order_index,
    }


def serialize_pdf(pdf: ChapterPdf) -> dict:
    return {
        "id": pdf.id,
        "topic_id": pdf.topic_id,
        "title": pdf.title,
        "description": pdf.description,
        "pdf_type": pdf.pdf_type,
        "pdf_url": pdf.pdf_url,
        "file_size": pdf.file_size,
        "order_index": pdf.order_index,
    }


class CatalogService:

    @staticmethod
    def list_active_batches(db: Session, category: Optional[str] = None, class_type: Optional[str] = None) -> List[Batch]:
        query = db.query(Batch).filter(Batch.status == "active")
        if category:
            query = query.filter(Batch.category == category)
        if class_type:
            query = query.filter(Batch.class_type == class_type)
        return query.order_by(Batch.created_at.desc(), Batch.id.desc()).all()

    @staticmethod
    def get_batch(db: Session, batch_id: int) -> Batch:
        batch = db.get(Batch, batch_id)
        if not batch:
            raise NotFound("Batch not found")
        return batch

    @staticmethod
    def get_subject(db: Session, batch_id: int, subject_id: int) -> BatchSubject:
        subject = (
            db.query(BatchSubject)
            .filter(BatchSubject.id == subject_id, BatchSubject.batch_id == batch_id)
            .first()
        )
        if not subject:
            raise NotFound("Subject not found")
        return subject

    @staticmethod
    def get_chapter(db: Session, batch_id: int, subject_id: int, chapter_id: int) -> BatchChapter:
        chapter = (
            db.query(BatchChapter)
            .join(BatchSubject, BatchSubject.id == BatchChapter.subject_id)
            .filter(
                BatchChapter.id == chapter_id,
                BatchSubject.id == subject_id,
                BatchSubject.batch_id == batch_id,
            )
            .first()
        )
        if not chapter:
            raise NotFound("Chapter not found")
        return chapter

    @staticmethod
    def subjects(db: Session, batch_id: int) -> List[BatchSubject]:
        return (
            db.query(BatchSubject)
            .filter(BatchSubject.batch_id == batch_id)
            .order_by(BatchSubject.order_index, BatchSubject.id)
            .all()
        )

    @staticmethod
    def chapters(db: Session, subject_id: int) -> List[BatchChapter]:
        return (
            db.query(BatchChapter)
            .filter(BatchChapter.subject_id == subject_id)
            .order_by(BatchChapter.order_index, BatchChapter.id)
            .all()
        )

    @staticmethod
    def videos(db: Session, chapter_id: int) -> List[ChapterVideo]:
        return (
            db.query(ChapterVideo)
            .filter(ChapterVideo.topic_id == chapter_id, ChapterVideo.is_active == True)
            .order_by(ChapterVideo.video_type, ChapterVideo.order_index, ChapterVideo.id)
            .all()
        )

    @staticmethod
    def pdfs(db: Session, chapter_id: int) -> List[ChapterPdf]:
        return (
            db.query(ChapterPdf)
            .filter(ChapterPdf.topic_id == chapter_id, ChapterPdf.is_active == True)
            .order_by(ChapterPdf.order_index, ChapterPdf.id)
            .all()
        )
