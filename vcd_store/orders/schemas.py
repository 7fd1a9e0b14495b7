from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from vcd_store.shared.security_config import sanitize_input

class OrderItemIn(BaseModel):
    item_ref: str = Field(..., min_length=1)
    quantity: int = Field(1, gt=0)
    price: float = Field(0, ge=0)
    title: str = ""

    @field_validator('item_ref', 'title')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class OrderCreate(BaseModel):
    items: List[OrderItemIn] = Field(..., min_length=1)
    payment_method: Optional[str] = None
    address: Optional[str] = None
    clear_cart: bool = True
    # Only consulted when the token carries no email
    email: Optional[str] = None

    @field_validator('payment_method', 'address')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class OrderItemResponse(BaseModel):
    item_ref: str
    title: str
    price: float
    quantity: int

class OrderResponse(BaseModel):
    id: str
    user_id: str
    email: str
    items: List[OrderItemResponse]
    total: float
    payment_method: str
    address: str
    status: str
    placed_at: datetime
    updated_at: Optional[datetime] = None

class OrderCreateResponse(BaseModel):
    message: str
    order_id: str
    order: OrderResponse
    warnings: List[str] = []

class OrderListResponse(BaseModel):
    count: int
    orders: List[OrderResponse]
