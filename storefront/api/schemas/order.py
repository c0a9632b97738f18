from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class RefundDetailsRequest(BaseModel):
    """Where a cancelled order's money goes: a UPI id, or bank account details."""
    model_config = ConfigDict(populate_by_name=True)

    order_id: str = Field(..., alias="orderId", min_length=1)
    full_name: str = Field(..., alias="fullName", min_length=1)
    upi_id: Optional[str] = Field(None, alias="upiId")
    account_number: Optional[str] = Field(None, alias="accountNumber")
    ifsc_code: Optional[str] = Field(None, alias="ifscCode")
    bank_name: Optional[str] = Field(None, alias="bankName")

    @model_validator(mode="after")
    def _upi_or_bank(self):
        has_bank = all([self.account_number, self.ifsc_code, self.bank_name])
        if not self.upi_id and not has_bank:
            raise ValueError("Provide a UPI id or account number, IFSC code and bank name")
        return self


class OrderLinePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(..., alias="productId")
    quantity: int = Field(..., ge=1)
    size_id: Optional[str] = Field(None, alias="sizeId")


class CodOrderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address_id: str = Field(..., alias="addressId", min_length=1)
    items: List[OrderLinePayload] = Field(..., min_length=1)
    total: float = Field(..., ge=0.0)
