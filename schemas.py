"""
Database Schemas for the E‑commerce backend

Each Pydantic model corresponds to a MongoDB collection. The collection name is the lowercase of the class name.

Example: class User -> collection "user"
"""
from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

# Core domain models

class CartItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product: ObjectId
    quantity: int = Field(1, ge=1)


class User(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., description="bcrypt hash, never the plain password")
    role: Literal["customer", "admin"] = "customer"
    cart_items: List[CartItem] = Field(default_factory=list)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class Product(BaseModel):
    name: str
    description: str
    price: float = Field(..., ge=0)
    image: str = Field("", description="Hosted image secure URL, empty when none was uploaded")
    category: str
    is_featured: bool = False


class Coupon(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: str
    discount_percentage: float = Field(..., ge=0, le=100)
    expiration_date: datetime
    is_active: bool = True
    user_id: ObjectId


class OrderItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product: ObjectId
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class Order(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    user: ObjectId
    products: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    stripe_session_id: Optional[str] = None
