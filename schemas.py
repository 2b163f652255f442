"""
Database Schemas for the storefront

Each Pydantic model corresponds to a MongoDB collection or to a request body
stored into one. Collection names: "product", "customer", "order",
"out_of_stock".
"""
import math
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, Field, field_validator

ORDER_STATUSES = ["Placed", "Packed", "On the way", "Reached location", "Delivered", "Cancelled"]

PRODUCT_NULLABLE_TEXT_FIELDS = ("imageUrl", "description", "details", "specifications")

ORDER_UPDATABLE_FIELDS = ("status", "address", "mapLink", "location")


def _finite_values(value: Any) -> Any:
    """Reject NaN and Infinity anywhere inside a free-form JSON value."""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError("must be a finite number")
    if isinstance(value, dict):
        for v in value.values():
            _finite_values(v)
    elif isinstance(value, list):
        for v in value:
            _finite_values(v)
    return value


FiniteJsonObject = Annotated[Dict[str, Any], AfterValidator(_finite_values)]


# Products

class Product(BaseModel):
    name: str
    category: str = "General"
    price: float = Field(..., allow_inf_nan=False)
    originalPrice: Optional[float] = Field(None, allow_inf_nan=False)
    stock: int = 0
    availability: bool = True
    available: bool = True
    featured: bool = False
    imageUrl: Optional[str] = None
    description: Optional[str] = None
    details: Optional[str] = None
    specifications: Optional[str] = None


class ProductUpdate(BaseModel):
    """Fields an admin may change; anything else in the body is dropped."""
    name: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = Field(None, allow_inf_nan=False)
    originalPrice: Optional[float] = Field(None, allow_inf_nan=False)
    stock: Optional[int] = None
    availability: Optional[bool] = None
    available: Optional[bool] = None
    featured: Optional[bool] = None
    imageUrl: Optional[str] = None
    description: Optional[str] = None
    details: Optional[str] = None
    specifications: Optional[str] = None

    @field_validator("name", "category", "price", "stock", "availability", "available", "featured")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("may not be null")
        return v


class RestockRequest(BaseModel):
    quantity: int = Field(..., ge=1)


# Customers

class Customer(BaseModel):
    name: str
    phone: str
    password: str = Field(..., description="passlib hash")
    address: str = ""


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, validation_alias=AliasChoices("firstName", "name"))
    phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    address: str = ""


class LoginRequest(BaseModel):
    identifier: str = Field(..., min_length=1, validation_alias=AliasChoices("identifier", "mobile", "phone"))
    password: str = Field(..., min_length=1)


# Orders

class OrderLine(BaseModel):
    productId: str
    quantity: int = 1


class OrderIn(BaseModel):
    customer: Optional[str] = None
    customer_name: Optional[str] = None
    products: List[OrderLine] = Field(default_factory=list)
    total: float = Field(0, allow_inf_nan=False)
    address: Optional[str] = None
    status: str = "Placed"
    phone: Optional[str] = None
    paymentMethod: Literal["cod", "qr"]
    location: Optional[FiniteJsonObject] = Field(None, description="latitude, longitude, city, region, country")


class OrderUpdate(BaseModel):
    status: Optional[str] = None
    address: Optional[str] = None
    mapLink: Optional[str] = None
    location: Optional[FiniteJsonObject] = None


# Out-of-stock searches

class OutOfStockSearchIn(BaseModel):
    searchTerm: str = ""


class OutOfStockSearch(BaseModel):
    searchTerm: str
    customer: Optional[str] = None
    userAgent: Optional[str] = None
    ipAddress: Optional[str] = None
    sessionId: Optional[str] = None
