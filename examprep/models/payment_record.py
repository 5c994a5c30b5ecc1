from sqlalchemy import Column, String, Text, Integer, Numeric, DateTime, Enum
from examprep.core.database import Base
from examprep.core.timezone import get_ist_now

class PaymentRecord(Base):
    __tablename__ = "payment_history"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    batch_id = Column(Integer, nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    receipt_number = Column(String(64), nullable=False, unique=True)
    payment_provider = Column(String(32), default="razorpay")
    payment_method = Column(String(32), default="pending")
    gateway_order_id = Column(String(64), index=True)
    gateway_payment_id = Column(String(64), unique=True)
    gateway_signature = Column(String(128))
    status = Column(
        Enum("pending", "success", "failed", name="payment_status_enum"),
        default="pending",
        nullable=False,
    )
    billing_name = Column(String(200))
    billing_email = Column(String(255))
    billing_phone = Column(String(20))
    billing_address = Column(Text)
    description = Column(Text)
    paid_at = Column(DateTime)
    created_at = Column(DateTime, default=get_ist_now, nullable=False)
    updated_at = Column(DateTime, default=get_ist_now, onupdate=get_ist_now, nullable=False)
