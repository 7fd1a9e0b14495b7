from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

class CartLineDB(BaseModel):
    item_ref: str
    quantity: int = Field(..., ge=1)

class AccountDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    email: str
    password_hash: str
    role: str = "user"  # user, admin
    cart: List[CartLineDB] = []
    created_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        populate_by_name = True
