from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examprep.core.auth import get_current_viewer
from examprep.core.database import get_db
from examprep.services.access_service import Viewer, authorize, shape
from examprep.services.catalog_service import (
    CHAPTER_GATED_FIELDS,
    PDF_GATED_FIELDS,
    SUBJECT_GATED_FIELDS,
    VIDEO_GATED_FIELDS,
    CatalogService,
    matches_student_profile,
    serialize_batch,
    serialize_chapter,
    serialize_pdf,
    serialize_subject,
    serialize_video,
)
from examprep.services.enrollment_service import EnrollmentLedger
from examprep.services.identity_service import IdentityService

router = APIRouter(prefix="/api/v1/batches", tags=["batches"])


@router.get("")
def list_batches(
    category: Optional[str] = Query(None, description="Filter by category: JEE, NEET, general"),
    class_type: Optional[str] = Query(None, description="Filter by class, e.g. 11th"),
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    """
    Active batches, newest first, with enrollment counts.

    Students only see batches matching their exam preference and class,
    plus their own enrollment status per batch.
    """
    batches = CatalogService.list_active_batches(db, category=category, class_type=class_type)

    student_profile = None
    if viewer.role == "student":
        student = IdentityService.get(db, viewer.student_id)
        student_profile = {
            "exam_preference": student.exam_preference,
            "class_type": student.class_type,
        }
        batches = [
            batch for batch in batches
            if matches_student_profile(batch, student.exam_preference, student.class_type)
        ]

    batch_ids = [batch.id for batch in batches]
    counts = EnrollmentLedger.enrollment_counts(db, batch_ids)
    items = [serialize_batch(batch, counts.get(batch.id, 0)) for batch in batches]

    if viewer.role == "student":
        statuses = EnrollmentLedger.get_statuses(db, viewer.student_id, batch_ids)
        for item in items:
            item["enrollment"] = statuses[item["id"]].to_dict()

    return {"batches": items, "student_profile": student_profile}


@router.get("/{batch_id}")
def get_batch(
    batch_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    batch = CatalogService.get_batch(db, batch_id)
    decision = authorize(db, viewer, batch.id)
    counts = EnrollmentLedger.enrollment_counts(db, [batch.id])
    return {
        "batch": serialize_batch(batch, counts.get(batch.id, 0)),
        "access": {"allowed": decision.allowed, "reason": decision.reason},
    }


@router.get("/{batch_id}/subjects")
def list_subjects(
    batch_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    batch = CatalogService.get_batch(db, batch_id)
    decision = authorize(db, viewer, batch.id)
    subjects = [
        shape(serialize_subject(subject), decision, SUBJECT_GATED_FIELDS)
        for subject in CatalogService.subjects(db, batch.id)
    ]
    return {
        "success": True,
        "subjects": subjects,
        "isEnrolled": decision.allowed,
        "reason": decision.reason,
    }


@router.get("/{batch_id}/subjects/{subject_id}/chapters")
def list_chapters(
    batch_id: int,
    subject_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    subject = CatalogService.get_subject(db, batch_id, subject_id)
    decision = authorize(db, viewer, batch_id)
    chapters = [
        shape(serialize_chapter(chapter), decision, CHAPTER_GATED_FIELDS)
        for chapter in CatalogService.chapters(db, subject.id)
    ]
    return {
        "success": True,
        "subject": shape(serialize_subject(subject), decision, SUBJECT_GATED_FIELDS),
        "chapters": chapters,
        "isEnrolled": decision.allowed,
        "reason": decision.reason,
    }


@router.get("/{batch_id}/subjects/{subject_id}/chapters/{chapter_id}")
def get_chapter(
    batch_id: int,
    subject_id: int,
    chapter_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    chapter = CatalogService.get_chapter(db, batch_id, subject_id, chapter_id)
    decision = authorize(db, viewer, batch_id)
    return {
        "success": True,
        "chapter": shape(serialize_chapter(chapter), decision, CHAPTER_GATED_FIELDS),
        "isEnrolled": decision.allowed,
        "reason": decision.reason,
    }


@router.get("/{batch_id}/subjects/{subject_id}/chapters/{chapter_id}/videos")
def list_videos(
    batch_id: int,
    subject_id: int,
    chapter_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    chapter = CatalogService.get_chapter(db, batch_id, subject_id, chapter_id)
    decision = authorize(db, viewer, batch_id)
    videos = [
        shape(serialize_video(video), decision, VIDEO_GATED_FIELDS)
        for video in CatalogService.videos(db, chapter.id)
    ]
    return {
        "success": True,
        "videos": {
            "lectures": [video for video in videos if video["video_type"] == "lecture"],
            "dpp_videos": [video for video in videos if video["video_type"] == "dpp_video"],
        },
        "total": len(videos),
        "isEnrolled": decision.allowed,
        "reason": decision.reason,
    }


@router.get("/{batch_id}/subjects/{subject_id}/chapters/{chapter_id}/pdfs")
def list_pdfs(
    batch_id: int,
    subject_id: int,
    chapter_id: int,
    viewer: Viewer = Depends(get_current_viewer),
    db: Session = Depends(get_db),
):
    chapter = CatalogService.get_chapter(db, batch_id, subject_id, chapter_id)
    decision = authorize(db, viewer, batch_id)
    pdfs = [
        shape(serialize_pdf(pdf), decision, PDF_GATED_FIELDS)
        for pdf in CatalogService.pdfs(db, chapter.id)
    ]
    return {
        "success": True,
        "pdfs": pdfs,
        "total": len(pdfs),
        "isEnrolled": decision.allowed,
        "reason": decision.reason,
    }
