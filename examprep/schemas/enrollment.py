from pydantic import BaseModel, Field
from typing import List, Optional


class BillingInfo(BaseModel):
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    pincode: Optional[str] = None

    class Config:
        populate_by_name = True


class CreateOrderRequest(BaseModel):
    batch_id: int = Field(..., alias="batchId")
    amount: float
    currency: str = "INR"
    billing_info: BillingInfo = Field(default_factory=BillingInfo, alias="billingInfo")

    class Config:
        populate_by_name = True


class CreateOrderResponse(BaseModel):
    success: bool = True
    orderId: str
    amount: int
    currency: str
    key: str
    paymentRecordId: str
    receiptNumber: str
    batch: dict


class VerifyPaymentRequest(BaseModel):
    gateway_order_id: Optional[str] = Field(None, alias="gatewayOrderId")
    gateway_payment_id: Optional[str] = Field(None, alias="gatewayPaymentId")
    signature: Optional[str] = None
    payment_record_id: Optional[str] = Field(None, alias="paymentRecordId")
    payment_method: str = Field("card", alias="paymentMethod")

    class Config:
        populate_by_name = True


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str
    paymentId: str
    orderId: str
    receiptNumber: str
    alreadyProcessed: bool = False


class EnrollmentStatusRequest(BaseModel):
    batch_ids: List[int] = Field(..., alias="batchIds")

    class Config:
        populate_by_name = True


class GrantEnrollmentRequest(BaseModel):
    student_id: str = Field(..., alias="studentId")
    batch_id: int = Field(..., alias="batchId")

    class Config:
        populate_by_name = True
