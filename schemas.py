from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field

# Each class name is the collection name: Product -> "Product", User -> "User"

class Product(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Unique product name")
    description: str = Field(..., min_length=1, max_length=250)
    category: str = Field(..., min_length=1, max_length=250)
    price: float = Field(..., ge=0, le=10000, description="Price in USD")
    createdOn: datetime
    lastUpdatedOn: datetime

class User(BaseModel):
    fullName: str = Field(..., min_length=1, max_length=50)
    email: EmailStr = Field(..., description="Unique, stored lower-cased")
    password: str = Field(..., description="Salted SHA-256 hash, never plaintext")
    role: str = Field(..., min_length=1, max_length=50)
    creationDate: datetime
    lastUpdated: Optional[datetime] = None
    lastUpdatedBy: Optional[str] = None
