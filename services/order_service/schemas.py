from typing import List, Optional
from pydantic import BaseModel, Field, field_validator
from .phone import is_bangladesh_mobile

MAX_CART_ITEMS = 50
MAX_QUANTITY = 99


class ShippingInfo(BaseModel):
    name: str = ""
    phone: str = ""
    address: str = ""

    class Config:
        validate_default = True

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 100:
            raise ValueError("Invalid name")
        return v

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 30 or not is_bangladesh_mobile(v):
            raise ValueError("Invalid phone number")
        return v

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 300:
            raise ValueError("Invalid address")
        return v


class CartItem(BaseModel):
    product_id: str = Field(alias="productId")
    variation_id: Optional[str] = Field(default=None, alias="variationId")
    quantity: int
    product_name: Optional[str] = Field(default=None, alias="productName")
    product_image: Optional[str] = Field(default=None, alias="productImage")
    price: Optional[float] = None  # only honoured for custom items

    class Config:
        populate_by_name = True

    @field_validator("product_id")
    @classmethod
    def check_product_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Invalid items")
        return v

    @field_validator("variation_id", "product_name", "product_image")
    @classmethod
    def strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

    @field_validator("quantity")
    @classmethod
    def check_quantity(cls, v: int) -> int:
        if v < 1 or v > MAX_QUANTITY:
            raise ValueError("Invalid items")
        return v


class PlaceOrderRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    shipping: ShippingInfo
    items: List[CartItem]
    shipping_zone: Optional[str] = Field(default=None, alias="shippingZone")
    notes: Optional[str] = None
    order_source: Optional[str] = Field(default=None, alias="orderSource")

    class Config:
        populate_by_name = True

    @field_validator("items")
    @classmethod
    def check_items(cls, v: List[CartItem]) -> List[CartItem]:
        if not v or len(v) > MAX_CART_ITEMS:
            raise ValueError("Cart is empty")
        return v

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip()[:500]

    @property
    def source(self) -> str:
        return "manual" if self.order_source == "manual" else "web"


class ResolvedItem(BaseModel):
    product_id: Optional[str] = Field(default=None, alias="productId")
    variation_id: Optional[str] = Field(default=None, alias="variationId")
    variation_name: Optional[str] = Field(default=None, alias="variationName")
    name: str
    image: Optional[str] = None
    price: float
    quantity: int

    class Config:
        populate_by_name = True

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class PlaceOrderResponse(BaseModel):
    order_id: str = Field(alias="orderId")
    order_number: str = Field(alias="orderNumber")
    subtotal: float
    shipping_cost: float = Field(alias="shippingCost")
    total: float
    items: List[ResolvedItem]

    class Config:
        populate_by_name = True
