import hmac
import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from examprep.core.auth import require_admin
from examprep.core.config import settings
from examprep.core.database import get_db
from examprep.core.exceptions import Forbidden, NotFound
from examprep.models.batch import Batch
from examprep.models.batch_chapter import BatchChapter
from examprep.models.batch_subject import BatchSubject
from examprep.models.chapter_pdf import ChapterPdf
from examprep.models.chapter_video import ChapterVideo
from examprep.models.identity import Identity
from examprep.schemas.auth import AdminSetupRequest
from examprep.schemas.batch import BatchCreate, BatchUpdate, ChapterCreate, PdfCreate, SubjectCreate, VideoCreate
from examprep.schemas.enrollment import GrantEnrollmentRequest
from examprep.services.catalog_service import (
    CatalogService,
    serialize_batch,
    serialize_chapter,
    serialize_pdf,
    serialize_subject,
    serialize_video,
)
from examprep.services.enrollment_service import EnrollmentLedger
from examprep.services.identity_service import IdentityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/admin", tags=["admin"])


@router.post("/setup")
def create_superadmin(
    body: AdminSetupRequest,
    db: Session = Depends(get_db),
    x_setup_key: Optional[str] = Header(None),
):
    """Create the one superadmin. Refused once it exists."""
    if settings.ADMIN_SETUP_KEY and not hmac.compare_digest(x_setup_key or "", settings.ADMIN_SETUP_KEY):
        raise Forbidden("Invalid setup key")

    identity = IdentityService.create_admin(db, body.email, body.password, body.firstName, body.lastName)
    return {
        "success": True,
        "message": "Superadmin account created successfully",
        "admin": {
            "id": identity.id,
            "email": identity.email,
            "firstName": identity.first_name,
            "lastName": identity.last_name,
            "role": "superadmin",
        },
    }


@router.post("/batches")
def create_batch(
    body: BatchCreate,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    batch = Batch(**{**body.model_dump(), "fees": Decimal(str(body.fees))})
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info("Batch %s created by %s", batch.id, admin.email)
    return {"success": True, "batch": serialize_batch(batch)}


@router.put("/batches/{batch_id}")
def update_batch(
    batch_id: int,
    body: BatchUpdate,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    batch = CatalogService.get_batch(db, batch_id)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("fees") is not None:
        changes["fees"] = Decimal(str(changes["fees"]))
    for field, value in changes.items():
        setattr(batch, field, value)
    db.commit()
    db.refresh(batch)
    logger.info("Batch %s updated by %s", batch.id, admin.email)
    return {"success": True, "batch": serialize_batch(batch)}


@router.delete("/batches/{batch_id}")
def delete_batch(
    batch_id: int,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    batch = CatalogService.get_batch(db, batch_id)
    db.delete(batch)
    db.commit()
    logger.info("Batch %s deleted by %s", batch_id, admin.email)
    return {"success": True, "message": "Batch deleted successfully"}


@router.post("/batches/{batch_id}/subjects")
def create_subject(
    batch_id: int,
    body: SubjectCreate,
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    batch = CatalogService.get_batch(db, batch_id)
    subject = BatchSubject(batch_id=batch.id, **body.model_dump())
    db.add(subject)
    db.commit()
    db.refresh(subject)
    return {"success": True, "subject": serialize_subject(subject)}


@router.post("/batches/{batch_id}/subjects/{subject_id}/chapters")
def create_chapter(
    batch_id: int,
    subject_id: int,
    body: ChapterCreate,
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    subject = CatalogService.get_subject(db, batch_id, subject_id)
    chapter = BatchChapter(subject_id=subject.id, **body.model_dump())
    db.add(chapter)
    db.commit()
    db.refresh(chapter)
    return {"success": True, "chapter": serialize_chapter(chapter)}


@router.post("/batches/{batch_id}/subjects/{subject_id}/chapters/{chapter_id}/videos")
def create_video(
    batch_id: int,
    subject_id: int,
    chapter_id: int,
    body: VideoCreate,
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    chapter = CatalogService.get_chapter(db, batch_id, subject_id, chapter_id)
    video = ChapterVideo(topic_id=chapter.id, **body.model_dump())
    db.add(video)
    db.commit()
    db.refresh(video)
    return {"success": True, "video": serialize_video(video)}


@router.post("/batches/{batch_id}/subjects/{subject_id}/chapters/{chapter_id}/pdfs")
def create_pdf(
    batch_id: int,
    subject_id: int,
    chapter_id: int,
    body: PdfCreate,
    _admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    chapter = CatalogService.get_chapter(db, batch_id, subject_id, chapter_id)
    pdf = ChapterPdf(topic_id=chapter.id, **body.model_dump())
    db.add(pdf)
    db.commit()
    db.refresh(pdf)
    return {"success": True, "pdf": serialize_pdf(pdf)}


@router.post("/enrollments")
def grant_enrollment(
    body: GrantEnrollmentRequest,
    admin: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Reserve a seat for a student. Access still requires payment."""
    student = IdentityService.get(db, body.student_id)
    if not student or student.role != "student":
        raise NotFound("Student not found")
    CatalogService.get_batch(db, body.batch_id)

    enrollment, created = EnrollmentLedger.grant_pending(db, student.id, body.batch_id)
    logger.info("Enrollment %s for student %s batch %s granted by %s", enrollment.id, student.id, body.batch_id, admin.email)
    return {
        "success": True,
        "created": created,
        "enrollment": {
            "id": enrollment.id,
            "batch_id": enrollment.batch_id,
            "student_id": enrollment.student_id,
            "status": enrollment.status,
            "payment_status": enrollment.payment_status,
        },
    }
