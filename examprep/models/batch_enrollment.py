from sqlalchemy import Column, String, Integer, Numeric, DateTime, Enum, UniqueConstraint
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class BatchEnrollment(Base):
    __tablename__ = "batch_enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "batch_id", name="uq_enrollment_student_batch"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    batch_id = Column(Integer, nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    status = Column(
        Enum("pending", "active", "cancelled", name="enrollment_status_enum"),
        default="pending",
        nullable=False,
    )
    payment_status = Column(
        Enum("unpaid", "pending", "paid", name="enrollment_payment_status_enum"),
        default="unpaid",
        nullable=False,
    )
    payment_amount = Column(Numeric(10, 2))
    # payment that made this row active/paid, the reconciliation idempotency key
    gateway_payment_id = Column(String(64))
    enrolled_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)

    @property
    def has_access(self) -> bool:
        return self.status == "active" and self.payment_status == "paid"
