from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from examprep.core.auth import require_student
from examprep.core.config import settings
from examprep.core.database import get_db
from examprep.core.gateway import RazorpayGateway, get_gateway
from examprep.models.identity import Identity
from examprep.schemas.enrollment import (
    CreateOrderRequest,
    CreateOrderResponse,
    EnrollmentStatusRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from examprep.services.enrollment_service import EnrollmentLedger
from examprep.services.payment_service import PaymentService

router = APIRouter(prefix="/api/v1", tags=["enrollment"])


@router.post("/enrollment/order", response_model=CreateOrderResponse)
def create_order(
    body: CreateOrderRequest,
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    order = PaymentService.create_order(
        db,
        gateway,
        student_id=student.id,
        batch_id=body.batch_id,
        amount=body.amount,
        billing=body.billing_info.model_dump(),
        currency=body.currency,
    )
    batch = order.batch
    return CreateOrderResponse(
        orderId=order.gateway_order_id,
        amount=order.amount_minor_units,
        currency=order.currency,
        key=settings.RAZORPAY_KEY_ID,
        paymentRecordId=order.payment_record_id,
        receiptNumber=order.receipt_number,
        batch={
            "id": batch.id,
            "name": batch.name,
            "class_type": batch.class_type,
            "fees": float(batch.fees) if batch.fees is not None else None,
            "description": batch.description,
        },
    )


@router.post("/enrollment/verify", response_model=VerifyPaymentResponse)
def verify_payment(
    body: VerifyPaymentRequest,
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_gateway),
):
    result = PaymentService.verify_callback(
        db,
        gateway,
        student_id=student.id,
        gateway_order_id=body.gateway_order_id,
        gateway_payment_id=body.gateway_payment_id,
        signature=body.signature,
        payment_record_id=body.payment_record_id,
        payment_method=body.payment_method,
    )
    return VerifyPaymentResponse(
        message="Payment verified and enrollment completed",
        paymentId=result.gateway_payment_id,
        orderId=result.gateway_order_id,
        receiptNumber=result.receipt_number,
        alreadyProcessed=result.already_processed,
    )


@router.get("/enrollment/status")
def enrollment_status(
    batch_id: int = Query(..., alias="batchId"),
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    status = EnrollmentLedger.get_status(db, student.id, batch_id)
    return {"success": True, "batchId": batch_id, **status.to_dict()}


@router.post("/enrollment/status")
def enrollment_statuses(
    body: EnrollmentStatusRequest,
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    statuses = EnrollmentLedger.get_statuses(db, student.id, body.batch_ids)
    return {
        "success": True,
        "enrollmentStatus": {str(batch_id): status.to_dict() for batch_id, status in statuses.items()},
    }


@router.get("/enrollment/batches")
def enrolled_batches(
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    rows = EnrollmentLedger.enrolled_batches(db, student.id)
    batches = [
        {
            "id": batch.id,
            "name": batch.name,
            "title": batch.name,
            "description": batch.description,
            "category": batch.category,
            "class_type": batch.class_type,
            "fees": float(batch.fees) if batch.fees is not None else None,
            "thumbnail": batch.thumbnail,
            "teacher_name": batch.teacher_name,
            "enrollment_id": enrollment.id,
            "enrolled_at": enrollment.enrolled_at.isoformat() if enrollment.enrolled_at else None,
            "payment_amount": float(enrollment.payment_amount) if enrollment.payment_amount is not None else None,
        }
        for enrollment, batch in rows
    ]
    return {"success": True, "batches": batches, "count": len(batches)}


@router.get("/payments/history")
def payment_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[str] = Query(None, description="Filter by status: success, pending, failed"),
    batch_id: Optional[int] = Query(None, alias="batchId"),
    student: Identity = Depends(require_student),
    db: Session = Depends(get_db),
):
    rows, total = PaymentService.payment_history(
        db, student.id, page=page, limit=limit, status=status, batch_id=batch_id
    )
    payments = [
        {
            "id": record.id,
            "batch_id": record.batch_id,
            "batch_name": batch.name if batch else None,
            "amount": float(record.amount),
            "currency": record.currency,
            "status": record.status,
            "receipt_number": record.receipt_number,
            "payment_method": record.payment_method,
            "gateway_order_id": record.gateway_order_id,
            "gateway_payment_id": record.gateway_payment_id,
            "paid_at": record.paid_at.isoformat() if record.paid_at else None,
            "created_at": record.created_at.isoformat() if record.created_at else None,
        }
        for record, batch in rows
    ]
    return {
        "success": True,
        "payments": payments,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": (total + limit - 1) // limit,
        },
    }
