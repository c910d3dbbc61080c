"""Estimate, invoice and purchase order schemas"""

from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

DocumentPath = Literal["estimates", "invoices", "purchase-orders"]


class LineItem(BaseModel):
    description: str = Field(..., min_length=1, max_length=1000)
    quantity: float = Field(1, ge=0)
    unit_price: float = Field(0, ge=0)

    @property
    def amount(self) -> float:
        return round(self.quantity * self.unit_price, 2)


class DocumentCreate(BaseModel):
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    project_id: Optional[int] = None
    line_items: list[LineItem] = Field(..., min_length=1)
    tax_rate: float = Field(0, ge=0, le=100)  # percent
    notes: Optional[str] = None
    due_date: Optional[date] = None
    valid_until: Optional[date] = None


class SendDocumentRequest(BaseModel):
    to_email: Optional[str] = None
    message: Optional[str] = Field(None, max_length=2000)
    attach_pdf: bool = True

    @field_validator("to_email")
    @classmethod
    def lower_email(cls, v):
        return v.strip().lower() if v else v


class DocumentResponse(BaseModel):
    id: int
    number: str
    status: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    vendor_id: Optional[int] = None
    vendor_name: Optional[str] = None
    project_id: Optional[int] = None
    line_items: list[dict] = []
    subtotal: float = 0
    tax_amount: float = 0
    total: float = 0
    amount_paid: Optional[float] = None
    notes: Optional[str] = None
    due_date: Optional[date] = None
    valid_until: Optional[date] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
