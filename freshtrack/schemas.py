"""Request bodies accepted by the HTTP API."""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    name: str
    category: str = ""
    unit: str = ""
    current_stock: int = 0
    min_stock: int = 0
    expiry_date: str = ""
    location: str = ""
    supplier: str = ""
    barcode: Optional[str] = None
    batch_number: Optional[str] = None
    price: Optional[float] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    min_stock: Optional[int] = None
    expiry_date: Optional[str] = None
    location: Optional[str] = None
    supplier: Optional[str] = None
    barcode: Optional[str] = None
    batch_number: Optional[str] = None
    price: Optional[float] = None


class MovementCreate(BaseModel):
    product_id: str
    type: Literal["in", "out", "adjustment"]
    quantity: int = Field(..., ge=0)
    reason: str
    user: Optional[str] = None
    notes: Optional[str] = None
    batch_number: Optional[str] = None


class ScanEvent(BaseModel):
    code: str


class ScanCreateProduct(BaseModel):
    name: str
    category: str = ""
    unit: str = ""
    current_stock: int = 0
    min_stock: int = 0
    expiry_date: str = ""
    location: str = ""
    supplier: str = ""


class ImportRequest(BaseModel):
    document: Dict[str, Any]
    mode: Literal["merge", "replace"] = "merge"
