"""Pydantic models for eBay Sell Fulfillment and OAuth responses."""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

FulfillmentStatus = Literal["NOT_STARTED", "IN_PROGRESS", "FULFILLED"]


class BuyerSchema(BaseModel):
    """Buyer block of an order."""

    username: Optional[str] = None

    class Config:
        extra = "allow"


class LineItemSchema(BaseModel):
    """Single line item of an order."""

    title: Optional[str] = None
    sku: Optional[str] = None
    quantity: Optional[int] = None

    class Config:
        extra = "allow"


class EbayOrder(BaseModel):
    """Order from the getOrders endpoint."""

    orderId: str = Field(min_length=1)
    creationDate: Optional[str] = None
    lastModifiedDate: Optional[str] = None
    orderFulfillmentStatus: FulfillmentStatus
    sellerId: Optional[str] = None
    buyer: Optional[BuyerSchema] = None
    lineItems: List[LineItemSchema] = Field(default_factory=list)

    class Config:
        extra = "allow"


class GetOrdersResponse(BaseModel):
    """Page of orders."""

    orders: List[EbayOrder] = Field(default_factory=list)
    total: Optional[int] = None
    next: Optional[str] = None

    class Config:
        extra = "allow"


class ShippingFulfillment(BaseModel):
    """Shipping fulfillment attached to an order."""

    fulfillmentId: str = Field(min_length=1)
    shipmentTrackingNumber: Optional[str] = None
    shippedDate: Optional[str] = None
    shippingCarrierCode: Optional[str] = None

    class Config:
        extra = "allow"


class GetShippingFulfillmentsResponse(BaseModel):
    """Fulfillments of one order."""

    fulfillments: List[ShippingFulfillment] = Field(default_factory=list)

    class Config:
        extra = "allow"


class TokenResponse(BaseModel):
    """OAuth token endpoint response."""

    access_token: str = Field(min_length=1)
    expires_in: int = Field(gt=0)
    refresh_token: Optional[str] = None
    refresh_token_expires_in: Optional[int] = None
    token_type: str
