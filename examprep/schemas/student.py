from pydantic import BaseModel
from typing import Optional


class ProfileUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    class_type: Optional[str] = None
    exam_preference: Optional[str] = None
    school_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


class StudentProfileResponse(BaseModel):
    user_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    class_type: Optional[str] = None
    exam_preference: Optional[str] = None
    school_name: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    is_active: bool = True


class ProfileResponse(BaseModel):
    success: bool = True
    profile: StudentProfileResponse
