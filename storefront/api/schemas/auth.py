from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from storefront.config import settings


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class OtpSendRequest(BaseModel):
    email: EmailStr


class OtpVerifyRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1)


class GoogleAuthRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: EmailStr
    name: Optional[str] = None
    google_id: str = Field(..., alias="googleId")


class AuthUser(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role_id: Optional[str] = Field(None, alias="roleId")

    @property
    def role(self) -> str:
        # the backend only distinguishes the customer role by id
        return "CUSTOMER" if self.role_id == settings.CUSTOMER_ROLE_ID else "ADMIN"


class AuthResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: bool = True
    token: Optional[str] = None
    user: Optional[AuthUser] = None
    message: Optional[str] = None
