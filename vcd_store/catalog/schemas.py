from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import datetime
from vcd_store.shared.security_config import sanitize_input

Category = Literal["Hollywood", "Bollywood", "Regional"]

# Fields a partial update may change but never clear
NOT_NULLABLE = {"item_ref", "name", "images", "summary", "cast", "genre", "director", "quantity", "cost"}

class CastSchema(BaseModel):
    leads: List[str] = []
    featured: List[str] = []

class GenreSchema(BaseModel):
    primary: str = ""
    tags: List[str] = []

class CatalogItemCreate(BaseModel):
    item_ref: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    images: List[str] = []
    summary: str = ""
    year: Optional[int] = Field(None, ge=1878)
    cast: CastSchema = Field(default_factory=CastSchema)
    genre: GenreSchema = Field(default_factory=GenreSchema)
    language: Optional[str] = None
    category: Optional[Category] = None
    rating: Optional[float] = Field(None, ge=1, le=5)
    director: str = ""
    runtime_minutes: Optional[int] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    cost: float = Field(..., ge=0)

    @field_validator('item_ref', 'name', 'summary', 'director')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

class CatalogItemUpdate(BaseModel):
    item_ref: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    images: Optional[List[str]] = None
    summary: Optional[str] = None
    year: Optional[int] = Field(None, ge=1878)
    cast: Optional[CastSchema] = None
    genre: Optional[GenreSchema] = None
    language: Optional[str] = None
    category: Optional[Category] = None
    rating: Optional[float] = Field(None, ge=1, le=5)
    director: Optional[str] = None
    runtime_minutes: Optional[int] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    cost: Optional[float] = Field(None, ge=0)

    @field_validator('item_ref', 'name', 'summary', 'director')
    def sanitize_fields(cls, v):
        return sanitize_input(v)

    @model_validator(mode="after")
    def reject_null_required(self):
        # Only the optional metadata may be cleared with null
        nulled = sorted(f for f in self.model_fields_set & NOT_NULLABLE if getattr(self, f) is None)
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self

class CatalogItemResponse(CatalogItemCreate):
    id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class StockDecrease(BaseModel):
    item_ref: Optional[str] = None
    name: Optional[str] = None
    quantity: int = Field(..., gt=0)

    @model_validator(mode="after")
    def require_key(self):
        if not (self.item_ref or self.name):
            raise ValueError("item_ref or name is required")
        return self

class ImagesResponse(BaseModel):
    item_ref: str
    name: str
    images: List[str]
