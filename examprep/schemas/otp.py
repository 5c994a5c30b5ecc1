from pydantic import BaseModel, Field
from typing import Optional


class OTPIssueRequest(BaseModel):
    email: Optional[str] = None
    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    class_type: Optional[str] = Field(None, alias="classType")
    exam_preference: Optional[str] = Field(None, alias="examPreference")
    phone: Optional[str] = None
    password: Optional[str] = None

    class Config:
        populate_by_name = True


class OTPResendRequest(BaseModel):
    email: Optional[str] = None


class OTPVerifyRequest(BaseModel):
    email: Optional[str] = None
    otp: Optional[str] = None


class OTPIssueResponse(BaseModel):
    success: bool = True
    message: str
    email: str
    expiresIn: int


class VerifiedUser(BaseModel):
    id: str
    email: str
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    classType: Optional[str] = None
    examPreference: Optional[str] = None
    role: str


class OTPVerifyResponse(BaseModel):
    success: bool = True
    message: str
    user: VerifiedUser
    access_token: str
    token_type: str = "bearer"


class OTPStatusResponse(BaseModel):
    hasPendingOTP: bool
    message: str
    timeRemaining: Optional[int] = None
    attempts: Optional[int] = None
