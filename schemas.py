"""
Database Schemas for the Palaniappa Jewellers billing service

Product, Bill and Shipment correspond to MongoDB collections (lowercased class
name). Documents and request/response bodies use camelCase keys; Python code
uses the snake_case attribute names.
"""
from typing import Annotated, Any, List, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

Currency = Literal["INR", "BHD"]


def _as_decimal_string(value: Any) -> Any:
    # Numbers arrive from JSON clients; amounts are kept as decimal strings.
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value


DecimalStr = Annotated[str, BeforeValidator(_as_decimal_string)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Product(CamelModel):
    id: Optional[str] = Field(None, description="Catalog id")
    name: str = Field(..., description="Display name")
    description: str = ""
    category: str = ""
    product_code: Optional[str] = Field(None, description="Shop product code")
    barcode: Optional[str] = None
    price_inr: DecimalStr = Field("0", description="Catalog unit price in INR")
    price_bhd: DecimalStr = Field("0", description="Catalog unit price in BHD")
    gross_weight: DecimalStr = "0"
    net_weight: DecimalStr = "0"
    stock: int = Field(0, ge=0, description="Available quantity")


class SelectionEntry(CamelModel):
    product: Product
    quantity: int = Field(1, ge=1)


class BillConfiguration(CamelModel):
    currency: Currency = "INR"
    making_charges_percent: DecimalStr = "12.0"
    gst_percent: DecimalStr = "3.0"
    vat_percent: DecimalStr = "10.0"
    amount_inr: DecimalStr = Field("0.00", description="Override subtotal in INR")
    amount_bhd: DecimalStr = Field("0.00", description="Override subtotal in BHD")

    @property
    def override_amount(self) -> str:
        return self.amount_inr if self.currency == "INR" else self.amount_bhd


class CustomerInfo(CamelModel):
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str = ""
    customer_address: str = ""


class BillLineItem(CamelModel):
    product_id: str
    product_name: str
    quantity: int = Field(..., ge=1)
    price_inr: DecimalStr
    price_bhd: DecimalStr
    gross_weight: DecimalStr
    net_weight: DecimalStr
    making_charges: DecimalStr
    discount: DecimalStr = "0"
    sgst: DecimalStr = "0"
    cgst: DecimalStr = "0"
    vat: DecimalStr = "0"
    total: DecimalStr


class BillTotals(CamelModel):
    subtotal: DecimalStr
    making_charges: DecimalStr
    gst: DecimalStr
    vat: DecimalStr
    total: DecimalStr


class BillCalculation(CamelModel):
    items: List[BillLineItem]
    totals: BillTotals


class BillPayload(CustomerInfo):
    currency: Currency = "INR"
    subtotal: DecimalStr
    making_charges: DecimalStr
    gst: DecimalStr
    vat: DecimalStr = "0"
    discount: DecimalStr = "0"
    total: DecimalStr
    paid_amount: DecimalStr
    payment_method: str = "CASH"
    items: List[BillLineItem] = []


class Bill(BillPayload):
    id: Optional[str] = None
    bill_number: Optional[str] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None


class BillSelectionItem(CamelModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class BillCalculationRequest(CamelModel):
    configuration: Optional[BillConfiguration] = None
    items: List[BillSelectionItem] = []


class EditBillState(CamelModel):
    """What the admin form needs to reopen a stored bill."""
    bill_id: Optional[str] = None
    customer: CustomerInfo
    configuration: BillConfiguration
    items: List[BillSelectionItem]


class TrackingEvent(CamelModel):
    status: str
    timestamp: str
    description: Optional[str] = None
    location: Optional[str] = None


class Shipment(CamelModel):
    order_id: Optional[str] = None
    tracking_number: str = Field(..., description="Carrier tracking number")
    carrier: str
    status: str = "CREATED"
    recipient_name: str = ""
    recipient_phone: str = ""
    recipient_address: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_country: str = ""
    estimated_delivery_date: Optional[str] = None
    actual_delivery_date: Optional[str] = None
    tracking_events: List[TrackingEvent] = []
    last_tracking_update: Optional[str] = None
    notes: Optional[str] = None


class ShipmentStatusUpdate(CamelModel):
    status: str
    tracking_events: Optional[List[TrackingEvent]] = None
    estimated_delivery_date: Optional[str] = None
    actual_delivery_date: Optional[str] = None
    notes: Optional[str] = None


class TrackingInfo(CamelModel):
    """Public view of a shipment, safe to show to customers."""
    tracking_number: str
    status: str = ""
    carrier: str = ""
    recipient_city: str = ""
    recipient_state: str = ""
    recipient_country: str = ""
    estimated_delivery_date: Optional[str] = None
    actual_delivery_date: Optional[str] = None
    tracking_events: List[TrackingEvent] = []
    last_tracking_update: Optional[str] = None
