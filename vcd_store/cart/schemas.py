from pydantic import BaseModel, Field, StrictFloat, StrictInt, field_validator
from typing import List, Union
from vcd_store.shared.security_config import sanitize_input

# JSON numbers only; range and whole-number checks live in CartService
Quantity = Union[StrictInt, StrictFloat]

class CartItemAdd(BaseModel):
    item_ref: str = Field(..., min_length=1)
    quantity: Quantity

    @field_validator('item_ref')
    def sanitize_ref(cls, v):
        return sanitize_input(v)

class CartItemUpdate(BaseModel):
    item_id: str = Field(..., min_length=1)
    quantity: Quantity

    @field_validator('item_id')
    def sanitize_ref(cls, v):
        return sanitize_input(v)

class CartItemRemove(BaseModel):
    item_ref: str = Field(..., min_length=1)

    @field_validator('item_ref')
    def sanitize_ref(cls, v):
        return sanitize_input(v)

class CartLine(BaseModel):
    item_ref: str
    quantity: int

class CartResponse(BaseModel):
    message: str
    cart: List[CartLine]

class CartUpdateResponse(BaseModel):
    success: bool = True
    cart: List[CartLine]

class CartCountResponse(BaseModel):
    email: str
    line_count: int
    total_quantity: int
