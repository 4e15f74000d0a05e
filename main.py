import os
import re
from typing import Dict, List, Optional

from bson import ObjectId
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic.alias_generators import to_camel

from billing import (
    calculate_bill,
    catalog_amounts,
    default_configuration,
    reconstruct_configuration,
    reconstruct_customer,
    reconstruct_selection,
    selection_from_products,
)
from database import db, create_document, get_documents, update_document, utcnow
from logger import get_logger, setup_logging
from schemas import (
    BillCalculation,
    BillCalculationRequest,
    BillPayload,
    BillSelectionItem,
    EditBillState,
    Product,
    Shipment,
    ShipmentStatusUpdate,
    TrackingInfo,
)
from settings import load_settings

logger = get_logger(__name__)

settings = load_settings()

app = FastAPI(title="Palaniappa Jewellers Billing API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Utility

def to_oid(id_str: str):
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id")


def serialize(doc: dict) -> dict:
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def contains(text: str) -> dict:
    return {"$regex": re.escape(text), "$options": "i"}


def load_products(product_ids: List[str]) -> Dict[str, Product]:
    products = {}
    for pid in product_ids:
        doc = db["product"].find_one({"_id": to_oid(pid)})
        if not doc:
            raise HTTPException(status_code=404, detail=f"Product {pid} not found")
        products[pid] = Product.model_validate(serialize(doc))
    return products


@app.get("/")
def read_root():
    return {"message": "Palaniappa Jewellers Billing API"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if db is not None:
            response["database"] = "✅ Connected & Working"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = db.name
            response["connection_status"] = "Connected"
            response["collections"] = db.list_collection_names()
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

# ----- Catalog -----
@app.post("/api/products", response_model=dict)
def create_product(product: Product):
    inserted_id = create_document("product", product)
    logger.info(f"Product {product.name} added to catalog ({inserted_id})")
    return {"id": inserted_id}

@app.get("/api/products", response_model=List[dict])
def list_products(search: Optional[str] = None):
    filt = {}
    if search and search.strip():
        filt = {"$or": [{"name": contains(search)},
                        {"description": contains(search)},
                        {"category": contains(search)}]}
    return [serialize(p) for p in get_documents("product", filt)]

@app.get("/api/products/{product_id}", response_model=dict)
def get_product(product_id: str):
    p = db["product"].find_one({"_id": to_oid(product_id)})
    if not p:
        raise HTTPException(status_code=404, detail="Product not found")
    return serialize(p)

# ----- Bills -----

def validate_stock(items: List[BillSelectionItem]) -> List[str]:
    errors = []
    for item in items:
        doc = db["product"].find_one({"_id": to_oid(item.product_id)})
        if not doc:
            errors.append(f"Product {item.product_id} not found")
            continue
        stock = int(doc.get("stock", 0))
        if stock < item.quantity:
            errors.append(f"Insufficient stock for {doc.get('name')}. "
                          f"Available: {stock}, Requested: {item.quantity}")
    return errors


def deduct_stock(items: List[BillSelectionItem]) -> None:
    for item in items:
        doc = db["product"].find_one({"_id": to_oid(item.product_id)})
        if not doc:
            logger.error(f"Product {item.product_id} not found during stock deduction")
            continue
        old_stock = int(doc.get("stock", 0))
        new_stock = max(0, old_stock - item.quantity)
        update_document("product", {"_id": doc["_id"]}, {"stock": new_stock})
        logger.info(f"Stock update - {doc.get('name')}: {old_stock} -> {new_stock} (deducted {item.quantity})")


def next_bill_number() -> str:
    count = db["bill"].count_documents({})
    return f"PJ/{utcnow():%Y%m%d}-{count + 1:03d}"


def require_items(payload: BillPayload) -> List[BillSelectionItem]:
    if not payload.items:
        raise HTTPException(status_code=400, detail="Please select at least one product.")
    return [BillSelectionItem(product_id=i.product_id, quantity=i.quantity) for i in payload.items]


@app.post("/api/bills/calculate", response_model=BillCalculation)
def calculate_bill_preview(payload: BillCalculationRequest):
    quantities = {item.product_id: item.quantity for item in payload.items}
    products = load_products(list(quantities))
    selection = selection_from_products(products, quantities)
    configuration = payload.configuration
    if configuration is None:
        # Same as a fresh form: configured rates, catalog prices as the subtotal
        amount_inr, amount_bhd = catalog_amounts(selection)
        configuration = default_configuration(settings.billing).model_copy(
            update={"amount_inr": amount_inr, "amount_bhd": amount_bhd})
    return calculate_bill(configuration, selection)

@app.get("/api/bills", response_model=List[dict])
def list_bills(search: Optional[str] = None):
    filt = {"customerName": contains(search)} if search and search.strip() else {}
    bills = get_documents("bill", filt, sort=[("createdAt", -1)])
    return [serialize(b) for b in bills]

@app.get("/api/bills/{bill_id}", response_model=dict)
def get_bill(bill_id: str):
    b = db["bill"].find_one({"_id": to_oid(bill_id)})
    if not b:
        raise HTTPException(status_code=404, detail="Bill not found")
    return serialize(b)

@app.post("/api/bills", response_model=dict, status_code=201)
def create_bill(payload: BillPayload):
    items = require_items(payload)

    errors = validate_stock(items)
    if errors:
        raise HTTPException(status_code=400, detail={"message": "Insufficient stock", "errors": errors})

    bill_doc = payload.to_document()
    bill_doc["billNumber"] = next_bill_number()
    inserted_id = create_document("bill", bill_doc)
    logger.info(f"Bill {bill_doc['billNumber']} created for {payload.customer_name} ({payload.total} {payload.currency})")

    # The bill stands even if the stock update fails
    try:
        deduct_stock(items)
    except Exception as e:
        logger.error(f"Failed to deduct stock for bill {bill_doc['billNumber']}: {e}")

    return serialize(db["bill"].find_one({"_id": ObjectId(inserted_id)}))

@app.put("/api/bills/{bill_id}", response_model=dict)
def update_bill(bill_id: str, payload: BillPayload):
    oid = to_oid(bill_id)
    existing = db["bill"].find_one({"_id": oid})
    if not existing:
        raise HTTPException(status_code=404, detail="Bill not found")
    require_items(payload)

    changes = payload.to_document()
    changes["billNumber"] = existing.get("billNumber")
    update_document("bill", {"_id": oid}, changes)
    logger.info(f"Bill {existing.get('billNumber')} updated")
    return serialize(db["bill"].find_one({"_id": oid}))

@app.get("/api/bills/{bill_id}/edit", response_model=EditBillState)
def load_bill_for_edit(bill_id: str):
    b = db["bill"].find_one({"_id": to_oid(bill_id)})
    if not b:
        raise HTTPException(status_code=404, detail="Bill not found")

    oids = [ObjectId(i["productId"]) for i in b.get("items", [])
            if ObjectId.is_valid(i.get("productId", ""))]
    products = [Product.model_validate(serialize(p))
                for p in get_documents("product", {"_id": {"$in": oids}})]
    selection = reconstruct_selection(b, products)

    return EditBillState(
        bill_id=str(b["_id"]),
        customer=reconstruct_customer(b),
        configuration=reconstruct_configuration(
            b, fallback_currency=settings.billing.currency, defaults=settings.billing),
        items=[BillSelectionItem(product_id=pid, quantity=entry.quantity)
               for pid, entry in selection.items()],
    )

# ----- Shipments & tracking -----
@app.post("/api/shipments", response_model=dict, status_code=201)
def create_shipment(shipment: Shipment):
    if db["shipment"].find_one({"trackingNumber": shipment.tracking_number}):
        raise HTTPException(status_code=400, detail="Tracking number already exists")
    inserted_id = create_document("shipment", shipment)
    return {"id": inserted_id}

@app.put("/api/shipments/{shipment_id}/status", response_model=dict)
def update_shipment_status(shipment_id: str, payload: ShipmentStatusUpdate):
    oid = to_oid(shipment_id)
    changes = {"status": payload.status, "lastTrackingUpdate": utcnow().isoformat()}
    if payload.tracking_events is not None:
        changes["trackingEvents"] = [e.to_document() for e in payload.tracking_events]
    for key in ("estimated_delivery_date", "actual_delivery_date", "notes"):
        value = getattr(payload, key)
        if value:
            changes[to_camel(key)] = value

    if update_document("shipment", {"_id": oid}, changes) == 0:
        raise HTTPException(status_code=404, detail="Shipment not found")
    logger.info(f"Shipment {shipment_id} moved to {payload.status}")
    return serialize(db["shipment"].find_one({"_id": oid}))

@app.get("/api/track/{tracking_number}", response_model=TrackingInfo)
def track_shipment(tracking_number: str):
    s = db["shipment"].find_one({"trackingNumber": tracking_number})
    if not s:
        raise HTTPException(status_code=404, detail="Tracking number not found")
    return TrackingInfo.model_validate(s)


if __name__ == "__main__":
    import uvicorn
    setup_logging(settings.logging.config_path, settings.logging.level, settings.logging.log_dir)
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
