from typing import Literal
from pydantic import BaseModel, EmailStr, Field


class CheckoutForm(BaseModel):
    name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=10)
    payment_method: Literal["razorpay", "COD"] = "COD"
