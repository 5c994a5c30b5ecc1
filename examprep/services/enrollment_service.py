"""
Enrollment Ledger
Per (student, batch) enrollment / payment state
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from examprep.core.timezone import get_ist_now
from examprep.models.batch import Batch
from examprep.models.batch_enrollment import BatchEnrollment

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COUNTED_STATUSES = ("active", "pending")


@dataclass(frozen=True)
class EnrollmentStatus:
    is_enrolled: bool
    status: Optional[str] = None
    payment_status: Optional[str] = None
    enrolled_at: Optional[datetime] = None
    paid_amount: Optional[Decimal] = None

    @classmethod
    def from_row(cls, row: Optional[BatchEnrollment]) -> "EnrollmentStatus":
        if row is None:
            return cls(is_enrolled=False)
        return cls(
            is_enrolled=row.has_access,
            status=row.status,
            payment_status=row.payment_status,
            enrolled_at=row.enrolled_at,
            paid_amount=row.payment_amount,
        )

    def to_dict(self) -> dict:
        return {
            "isEnrolled": self.is_enrolled,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "enrolledAt": self.enrolled_at.isoformat() if self.enrolled_at else None,
            "paidAmount": float(self.paid_amount) if self.paid_amount is not None else None,
        }


class EnrollmentLedger:
    """Enrollment state. `paid` is only ever written by upsert_on_payment_success."""

    @staticmethod
    def _find(db: Session, student_id: str, batch_id: int) -> Optional[BatchEnrollment]:
        return (
            db.query(BatchEnrollment)
            .filter(
                BatchEnrollment.student_id == student_id,
                BatchEnrollment.batch_id == batch_id,
            )
            .first()
        )

    @staticmethod
    def get_status(db: Session, student_id: str, batch_id: int) -> EnrollmentStatus:
        return EnrollmentStatus.from_row(EnrollmentLedger._find(db, student_id, batch_id))

    @staticmethod
    def get_statuses(db: Session, student_id: str, batch_ids: Iterable[int]) -> Dict[int, EnrollmentStatus]:
        batch_ids = list(batch_ids)
        statuses = {batch_id: EnrollmentStatus(is_enrolled=False) for batch_id in batch_ids}
        if not batch_ids:
            return statuses

        rows = (
            db.query(BatchEnrollment)
            .filter(
                BatchEnrollment.student_id == student_id,
                BatchEnrollment.batch_id.in_(batch_ids),
            )
            .all()
        )
        for row in rows:
            statuses[row.batch_id] = EnrollmentStatus.from_row(row)
        return statuses

    @staticmethod
    def ensure_pending(db: Session, student_id: str, batch_id: int) -> BatchEnrollment:
        """
        Record a payment attempt. Does not commit; the caller owns the
        transaction together with its payment record.
        """
        row = EnrollmentLedger._find(db, student_id, batch_id)
        if row is None:
            row = BatchEnrollment(
                batch_id=batch_id,
                student_id=student_id,
                status="pending",
                payment_status="pending",
            )
            db.add(row)
        elif not row.has_access:
            if row.status == "cancelled":
                row.status = "pending"
            row.payment_status = "pending"
        return row

    @staticmethod
    def grant_pending(db: Session, student_id: str, batch_id: int) -> Tuple[BatchEnrollment, bool]:
        """
        Admin-reserved seat, left pending/unpaid until the student pays.

        Returns:
            (enrollment, created)
        """
        row = EnrollmentLedger._find(db, student_id, batch_id)
        if row is not None:
            if row.status == "cancelled":
                row.status = "pending"
                db.commit()
            return row, False

        row = BatchEnrollment(
            batch_id=batch_id,
            student_id=student_id,
            status="pending",
            payment_status="unpaid",
        )
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return EnrollmentLedger._find(db, student_id, batch_id), False
        db.refresh(row)
        return row, True

    @staticmethod
    def upsert_on_payment_success(
        db: Session,
        student_id: str,
        batch_id: int,
        amount: Decimal,
        gateway_payment_id: str,
    ) -> BatchEnrollment:
        """
        Promote (student, batch) to active/paid, inserting the row if needed.

        The same gateway_payment_id applied twice is a no-op. A concurrent
        insert losing the (student_id, batch_id) unique race is retried as an update.
        """
        for _ in range(2):
            row = EnrollmentLedger._find(db, student_id, batch_id)

            if row is not None and row.has_access and row.gateway_payment_id == gateway_payment_id:
                return row

            if row is None:
                row = BatchEnrollment(
                    batch_id=batch_id,
                    student_id=student_id,
                    enrolled_at=get_ist_now(),
                )
                db.add(row)

            row.status = "active"
            row.payment_status = "paid"
            row.payment_amount = amount
            row.gateway_payment_id = gateway_payment_id
            row.updated_at = get_ist_now()

            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.info("Enrollment insert raced for student %s batch %s, retrying as update", student_id, batch_id)
                continue

            db.refresh(row)
            logger.info("Enrollment active/paid for student %s batch %s", student_id, batch_id)
            return row

        raise RuntimeError(f"Could not upsert enrollment for student {student_id} batch {batch_id}")

    @staticmethod
    def enrollment_counts(db: Session, batch_ids: Iterable[int]) -> Dict[int, int]:
        """Rows in active/pending per batch, for capacity display."""
        batch_ids = list(batch_ids)
        if not batch_ids:
            return {}
        rows = (
            db.query(BatchEnrollment.batch_id, func.count(BatchEnrollment.id))
            .filter(
                BatchEnrollment.batch_id.in_(batch_ids),
                BatchEnrollment.status.in_(COUNTED_STATUSES),
            )
            .group_by(BatchEnrollment.batch_id)
            .all()
        )
        counts = {batch_id: 0 for batch_id in batch_ids}
        counts.update({batch_id: count for batch_id, count in rows})
        return counts

    @staticmethod
    def enrolled_batches(db: Session, student_id: str) -> List[Tuple[BatchEnrollment, Batch]]:
        return (
            db.query(BatchEnrollment, Batch)
            .join(Batch, Batch.id == BatchEnrollment.batch_id)
            .filter(
                BatchEnrollment.student_id == student_id,
                BatchEnrollment.status == "active",
                BatchEnrollment.payment_status == "paid",
            )
            .order_by(BatchEnrollment.enrolled_at.desc())
            .all()
        )
