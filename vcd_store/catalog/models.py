from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field

class CastDB(BaseModel):
    leads: List[str] = []
    featured: List[str] = []

class GenreDB(BaseModel):
    primary: str = ""
    tags: List[str] = []

class CatalogItemDB(BaseModel):
    id: Optional[str] = Field(None, alias="_id")
    item_ref: str
    name: str
    images: List[str] = []
    summary: str = ""
    year: Optional[int] = None
    cast: CastDB = Field(default_factory=CastDB)
    genre: GenreDB = Field(default_factory=GenreDB)
    language: Optional[str] = None
    category: Optional[str] = None  # Hollywood, Bollywood, Regional
    rating: Optional[float] = None
    director: str = ""
    runtime_minutes: Optional[int] = None
    quantity: int = 0
    cost: float
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        populate_by_name = True
