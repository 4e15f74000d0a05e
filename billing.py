"""Bill arithmetic for the admin billing form.

The admin picks catalog products and may overwrite the bill subtotal by hand
(a negotiated price, for instance). ``calculate_bill`` spreads that subtotal
over the selected lines in proportion to each line's catalog extension, then
adds making charges and GST (INR) or VAT (BHD) per line and for the bill.

Bill-level totals are computed from the subtotal directly, not summed from
the rounded lines, so the two may disagree by a cent.

Everything here is pure: same inputs, same strings out.
"""
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from formatting import CURRENCY_PLACES, format_fixed, parse_decimal
from logger import get_logger
from schemas import (
    BillCalculation,
    BillConfiguration,
    BillLineItem,
    BillPayload,
    BillTotals,
    CustomerInfo,
    Product,
    SelectionEntry,
)

logger = get_logger(__name__)


Selection = Dict[str, SelectionEntry]


def catalog_unit_price(product: Product, currency: str) -> float:
    return parse_decimal(product.price_inr if currency == "INR" else product.price_bhd)


def compose_product_name(product: Product) -> str:
    return f"{product.name} ({product.product_code or product.barcode or 'N/A'})"


def _apply_charges(amount: float, currency: str, making_pct: float,
                   gst_pct: float, vat_pct: float) -> Tuple[float, float, float, float]:
    """Return (making charges, gst, vat, total) for a pre-charge amount."""
    making = amount * making_pct / 100
    gst = vat = 0.0
    total = amount + making
    if currency == "INR":
        gst = (amount + making) * gst_pct / 100
        total += gst
    elif currency == "BHD":
        vat = (amount + making) * vat_pct / 100
        total += vat
    return making, gst, vat, total


def item_shares(selection: Selection, currency: str, subtotal: float) -> List[float]:
    """Split ``subtotal`` across the selection by catalog extension.

    When every catalog price is zero there is nothing to weigh by and every
    share is zero, whatever the subtotal.
    """
    extensions = [catalog_unit_price(e.product, currency) * e.quantity
                  for e in selection.values()]
    original_subtotal = sum(extensions)
    if original_subtotal <= 0:
        return [0.0 for _ in extensions]
    return [ext / original_subtotal * subtotal for ext in extensions]


def calculate_bill(configuration: BillConfiguration, selection: Selection) -> BillCalculation:
    currency = configuration.currency
    # Nothing selected means nothing billed, whatever the override field holds.
    subtotal = parse_decimal(configuration.override_amount) if selection else 0.0
    making_pct = parse_decimal(configuration.making_charges_percent)
    gst_pct = parse_decimal(configuration.gst_percent)
    vat_pct = parse_decimal(configuration.vat_percent)

    items = []
    for entry, item_total in zip(selection.values(), item_shares(selection, currency, subtotal)):
        product = entry.product
        making, gst, vat, line_total = _apply_charges(item_total, currency, making_pct, gst_pct, vat_pct)
        items.append(BillLineItem(
            product_id=product.id or "",
            product_name=compose_product_name(product),
            quantity=entry.quantity,
            price_inr=product.price_inr,
            price_bhd=product.price_bhd,
            gross_weight=product.gross_weight,
            net_weight=product.net_weight,
            making_charges=format_fixed(making),
            discount="0",
            sgst=format_fixed(gst / 2) if currency == "INR" else "0",
            cgst=format_fixed(gst / 2) if currency == "INR" else "0",
            vat=format_fixed(vat) if currency == "BHD" else "0",
            total=format_fixed(line_total),
        ))

    making_total, gst_total, vat_total, total = _apply_charges(
        subtotal, currency, making_pct, gst_pct, vat_pct)

    return BillCalculation(
        items=items,
        totals=BillTotals(
            subtotal=format_fixed(subtotal),
            making_charges=format_fixed(making_total),
            gst=format_fixed(gst_total),
            vat=format_fixed(vat_total),
            total=format_fixed(total),
        ),
    )


def catalog_amounts(selection: Selection) -> Tuple[str, str]:
    """Catalog extensions of the selection as ``(amount_inr, amount_bhd)``.

    Used to refill the override fields whenever the selection changes.
    """
    total_inr = sum(parse_decimal(e.product.price_inr) * e.quantity for e in selection.values())
    total_bhd = sum(parse_decimal(e.product.price_bhd) * e.quantity for e in selection.values())
    return (format_fixed(total_inr, CURRENCY_PLACES["INR"]),
            format_fixed(total_bhd, CURRENCY_PLACES["BHD"]))


def _bill_document(bill) -> Mapping:
    if hasattr(bill, "to_document"):
        return bill.to_document()
    return bill


def default_configuration(defaults=None, currency: Optional[str] = None) -> BillConfiguration:
    """Fresh configuration from the configured billing defaults, if any."""
    if defaults is None:
        return BillConfiguration(currency=currency or "INR")
    return BillConfiguration(
        currency=currency or defaults.currency,
        making_charges_percent=defaults.making_charges_percent,
        gst_percent=defaults.gst_percent,
        vat_percent=defaults.vat_percent,
    )


def reconstruct_configuration(bill, fallback_currency: str = "INR", defaults=None) -> BillConfiguration:
    """Rebuild form percentages from a stored bill's amounts.

    Only the derived amounts are stored, so the rates are recovered by
    division. A rate entered with more precision than the 2-decimal amounts
    keep will not come back exactly. A zero subtotal leaves nothing to divide
    by, so the rates fall back to ``defaults``.
    """
    doc = _bill_document(bill)
    subtotal = parse_decimal(doc.get("subtotal") or "0")
    making = parse_decimal(doc.get("makingCharges") or "0")
    gst = parse_decimal(doc.get("gst") or "0")
    vat = parse_decimal(doc.get("vat") or "0")

    fallback = default_configuration(defaults)
    making_pct = (making / subtotal * 100 if subtotal > 0
                  else parse_decimal(fallback.making_charges_percent))
    tax_base = subtotal + making
    gst_pct = gst / tax_base * 100 if tax_base > 0 else parse_decimal(fallback.gst_percent)
    vat_pct = vat / tax_base * 100 if tax_base > 0 else parse_decimal(fallback.vat_percent)

    currency = doc.get("currency") or fallback_currency
    stored_subtotal = str(doc.get("subtotal") or "0.00")
    return BillConfiguration(
        currency=currency,
        making_charges_percent=repr(making_pct),
        gst_percent=repr(gst_pct),
        vat_percent=repr(vat_pct),
        amount_inr=stored_subtotal if currency == "INR" else "0.00",
        amount_bhd=stored_subtotal if currency == "BHD" else "0.00",
    )


def reconstruct_selection(bill, products: Iterable[Product]) -> Selection:
    """Selection for a stored bill; lines whose product left the catalog are dropped."""
    catalog = {p.id: p for p in products if p.id}
    selection: Selection = {}
    for item in _bill_document(bill).get("items") or []:
        product_id = item.get("productId")
        product = catalog.get(product_id)
        if product is None:
            logger.warning(f"Product {product_id} no longer in catalog, dropped from edit")
            continue
        selection[product_id] = SelectionEntry(product=product, quantity=item.get("quantity") or 1)
    return selection


def reconstruct_customer(bill) -> CustomerInfo:
    doc = _bill_document(bill)
    return CustomerInfo(
        customer_name=doc.get("customerName") or "",
        customer_email=doc.get("customerEmail") or "",
        customer_phone=doc.get("customerPhone") or "",
        customer_address=doc.get("customerAddress") or "",
    )


def build_bill_payload(
    customer: CustomerInfo,
    configuration: BillConfiguration,
    selection: Selection,
    calculation: Optional[BillCalculation] = None,
) -> BillPayload:
    calculation = calculation or calculate_bill(configuration, selection)
    totals = calculation.totals
    return BillPayload(
        **customer.model_dump(),
        currency=configuration.currency,
        subtotal=totals.subtotal,
        making_charges=totals.making_charges,
        gst=totals.gst,
        vat=totals.vat,
        discount="0",
        total=totals.total,
        paid_amount=totals.total,
        payment_method="CASH",
        items=calculation.items,
    )


def selection_from_products(products: Union[Mapping[str, Product], Iterable[Product]],
                            quantities: Mapping[str, int]) -> Selection:
    """Selection for ``{product_id: quantity}``; raises KeyError for unknown ids."""
    if not isinstance(products, Mapping):
        products = {p.id: p for p in products}
    return {pid: SelectionEntry(product=products[pid], quantity=max(1, qty))
            for pid, qty in quantities.items()}
