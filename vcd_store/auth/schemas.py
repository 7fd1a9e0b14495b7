from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime
from vcd_store.shared.security_config import sanitize_input

class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator('first_name', 'last_name', 'phone_number')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class RefreshTokenRequest(BaseModel):
    refresh_token: str

class CartLineResponse(BaseModel):
    item_ref: str
    quantity: int

class UserResponse(BaseModel):
    id: Optional[str] = None
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    cart: List[CartLineResponse] = []
    created_at: Optional[datetime] = None

class AuthResponse(BaseModel):
    message: str
    user: UserResponse
    token: str
    refresh_token: str
    token_type: str = "bearer"

class TokenPair(BaseModel):
    token: str
    refresh_token: str
    token_type: str = "bearer"
