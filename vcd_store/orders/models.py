from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

ORDER_STATUSES = ("placed", "processing", "shipped", "delivered", "cancelled")

class OrderItemDB(BaseModel):
    item_ref: str
    title: str = ""
    price: float = 0
    quantity: int = Field(..., ge=1)

class OrderDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    user_id: str
    email: str
    items: List[OrderItemDB] = []
    total: float = 0  # frozen at checkout, never recomputed
    payment_method: str = "card"
    address: str = ""
    status: str = Field("placed", pattern=f"^({'|'.join(ORDER_STATUSES)})$")
    placed_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
