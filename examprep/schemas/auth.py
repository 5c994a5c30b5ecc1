from pydantic import BaseModel
from typing import Optional


class RoleCheckRequest(BaseModel):
    email: Optional[str] = None


class RoleCheckResponse(BaseModel):
    success: bool
    userType: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str


class AdminSetupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None


class IdentityResponse(BaseModel):
    id: str
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    class_type: Optional[str] = None
    exam_preference: Optional[str] = None

    class Config:
        from_attributes = True
