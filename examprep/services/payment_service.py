"""
Payment Reconciliation
Creates gateway orders and turns verified callbacks into enrollments
"""

import logging
import secrets
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from examprep.core.exceptions import (
    Conflict,
    NotFound,
    ReconciliationError,
    SignatureInvalid,
    ValidationError,
)
from examprep.core.gateway import RazorpayGateway
from examprep.core.timezone import get_ist_now
from examprep.models.batch import Batch
from examprep.models.payment_record import PaymentRecord
from examprep.services.enrollment_service import EnrollmentLedger

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderResult:
    gateway_order_id: str
    payment_record_id: str
    receipt_number: str
    amount_minor_units: int
    currency: str
    batch: Batch


@dataclass(frozen=True)
class CallbackResult:
    payment_record_id: str
    gateway_order_id: str
    gateway_payment_id: str
    receipt_number: str
    already_processed: bool = False


def _to_amount(value) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("Amount must be a number") from None
    if not amount.is_finite() or amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount.quantize(Decimal("0.01"))


def _format_address(billing: dict) -> Optional[str]:
    if not billing.get("address"):
        return None
    parts = [billing.get("address"), billing.get("city"), billing.get("state")]
    address = ", ".join(part for part in parts if part)
    if billing.get("pincode"):
        address = f"{address} {billing['pincode']}"
    return address


class PaymentService:

    @staticmethod
    def create_order(
        db: Session,
        gateway: RazorpayGateway,
        student_id: str,
        batch_id: int,
        amount,
        billing: dict,
        currency: str = "INR",
    ) -> OrderResult:
        """
        Open a pending payment and a gateway order for it.

        The payment record is committed before the gateway call. If the
        gateway fails the record stays pending and GatewayUnavailable propagates.
        """
        amount = _to_amount(amount)
        billing = billing or {}

        batch = db.get(Batch, batch_id)
        if not batch:
            raise NotFound("Batch not found")
        if batch.status != "active":
            raise ValidationError("Batch is not open for enrollment")
        if batch.fees and Decimal(batch.fees) > 0 and amount != Decimal(batch.fees).quantize(Decimal("0.01")):
            raise ValidationError("Amount does not match batch fees")

        if EnrollmentLedger.get_status(db, student_id, batch_id).is_enrolled:
            raise Conflict("Already enrolled in this batch", code="ALREADY_ENROLLED")

        millis = int(time.time() * 1000)
        receipt_number = f"RCP{millis}_{student_id[:8]}_{secrets.token_hex(3)}"
        billing_name = " ".join(
            part for part in (billing.get("first_name"), billing.get("last_name")) if part
        ) or None

        record = PaymentRecord(
            id=str(uuid4()),
            user_id=student_id,
            batch_id=batch_id,
            amount=amount,
            currency=currency,
            receipt_number=receipt_number,
            payment_method="pending",
            status="pending",
            billing_name=billing_name,
            billing_email=billing.get("email"),
            billing_phone=billing.get("phone"),
            billing_address=_format_address(billing),
        )
        db.add(record)
        EnrollmentLedger.ensure_pending(db, student_id, batch_id)
        db.commit()

        order = gateway.create_order(
            amount_minor_units=int((amount * 100).to_integral_value()),
            currency=currency,
            receipt=receipt_number,
            notes={
                "batch_id": str(batch.id),
                "batch_name": batch.name,
                "user_id": student_id,
                "payment_record_id": record.id,
            },
        )

        record.gateway_order_id = order["orderId"]
        record.payment_provider = "razorpay"
        db.commit()

        logger.info(
            "Order %s created for payment %s (student %s, batch %s)",
            order["orderId"], record.id, student_id, batch_id,
        )
        return OrderResult(
            gateway_order_id=order["orderId"],
            payment_record_id=record.id,
            receipt_number=receipt_number,
            amount_minor_units=order["amount"],
            currency=order["currency"],
            batch=batch,
        )

    @staticmethod
    def verify_callback(
        db: Session,
        gateway: RazorpayGateway,
        student_id: str,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
        payment_record_id: str,
        payment_method: str = "card",
    ) -> CallbackResult:
        """
        Check the gateway signature and, when it holds, mark the payment
        successful and activate the enrollment.

        gateway_payment_id is the idempotency key: a repeated valid callback
        is a no-op success that re-applies the (idempotent) ledger update.
        """
        if not gateway_order_id or not gateway_payment_id or not signature or not payment_record_id:
            raise ValidationError("Missing required payment verification fields")

        record = (
            db.query(PaymentRecord)
            .filter(PaymentRecord.id == payment_record_id, PaymentRecord.user_id == student_id)
            .first()
        )
        if not record:
            raise NotFound("Payment record not found")

        is_valid = (
            record.gateway_order_id == gateway_order_id
            and gateway.verify_signature(gateway_order_id, gateway_payment_id, signature)
        )

        if record.status == "success":
            if not is_valid:
                PaymentService._log_signature_event(record, gateway_order_id, gateway_payment_id)
                raise SignatureInvalid()
            if record.gateway_payment_id != gateway_payment_id:
                raise Conflict("Payment already completed for this order", code="PAYMENT_ALREADY_COMPLETED")
            PaymentService._apply_to_ledger(db, record)
            return PaymentService._result(record, already_processed=True)

        if record.status == "failed":
            raise Conflict("Payment has already failed. Please start a new payment.", code="PAYMENT_FAILED")

        now = get_ist_now()
        if not is_valid:
            record.status = "failed"
            record.gateway_signature = signature[:128]
            record.description = f"Payment signature verification failed (payment id {gateway_payment_id[:64]})"
            record.updated_at = now
            db.commit()
            PaymentService._log_signature_event(record, gateway_order_id, gateway_payment_id)
            raise SignatureInvalid()

        record.status = "success"
        record.payment_method = payment_method
        record.gateway_payment_id = gateway_payment_id
        record.gateway_signature = signature
        record.paid_at = now
        record.updated_at = now
        try:
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.warning("Payment id %s already recorded on another payment", gateway_payment_id)
            raise Conflict("Payment already recorded", code="PAYMENT_DUPLICATE") from e

        PaymentService._apply_to_ledger(db, record)
        logger.info("Payment %s verified for student %s batch %s", record.id, student_id, record.batch_id)
        return PaymentService._result(record)

    @staticmethod
    def _apply_to_ledger(db: Session, record: PaymentRecord):
        payment_record_id = record.id
        student_id = record.user_id
        batch_id = record.batch_id
        try:
            EnrollmentLedger.upsert_on_payment_success(
                db,
                student_id=student_id,
                batch_id=batch_id,
                amount=record.amount,
                gateway_payment_id=record.gateway_payment_id,
            )
        except (SQLAlchemyError, RuntimeError) as e:
            db.rollback()
            logger.error(
                "RECONCILIATION GAP: payment captured but enrollment not granted "
                "(payment_record_id=%s, student_id=%s, batch_id=%s): %s",
                payment_record_id, student_id, batch_id, str(e),
            )
            raise ReconciliationError() from e

    @staticmethod
    def _log_signature_event(record: PaymentRecord, gateway_order_id: str, gateway_payment_id: str):
        logger.warning(
            "SECURITY: payment signature mismatch (payment_record_id=%s, student_id=%s, "
            "order_id=%s, payment_id=%s)",
            record.id, record.user_id, gateway_order_id, gateway_payment_id,
        )

    @staticmethod
    def _result(record: PaymentRecord, already_processed: bool = False) -> CallbackResult:
        return CallbackResult(
            payment_record_id=record.id,
            gateway_order_id=record.gateway_order_id,
            gateway_payment_id=record.gateway_payment_id,
            receipt_number=record.receipt_number,
            already_processed=already_processed,
        )

    @staticmethod
    def payment_history(
        db: Session,
        student_id: str,
        page: int = 1,
        limit: int = 10,
        status: Optional[str] = None,
        batch_id: Optional[int] = None,
    ) -> Tuple[List[Tuple[PaymentRecord, Optional[Batch]]], int]:
        query = (
            db.query(PaymentRecord, Batch)
            .outerjoin(Batch, Batch.id == PaymentRecord.batch_id)
            .filter(PaymentRecord.user_id == student_id)
        )
        if status:
            query = query.filter(PaymentRecord.status == status)
        if batch_id:
            query = query.filter(PaymentRecord.batch_id == batch_id)

        total = query.count()
        rows = (
            query.order_by(PaymentRecord.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total
