"""
Working state of the admin "Create Bill" / "Edit Bill" form.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from billing import (
    Selection,
    build_bill_payload,
    calculate_bill,
    catalog_amounts,
    default_configuration,
    reconstruct_configuration,
    reconstruct_customer,
    reconstruct_selection,
)
from exceptions import ApiError, BillSubmissionError, EmptySelectionError, SubmissionInProgressError
from logger import get_logger
from schemas import Bill, BillCalculation, BillConfiguration, CustomerInfo, Product, SelectionEntry

logger = get_logger(__name__)

BILL_HISTORY_PATH = "/admin?tab=bills"


@dataclass
class SubmissionResult:
    bill: Bill
    redirect_to: str
    message: str


def search_products(products: Iterable[Product], query: str) -> List[Product]:
    """Catalog filter for the product picker: name, description or category."""
    if not query or not query.strip():
        return list(products)
    needle = query.lower()
    return [
        p for p in products
        if needle in p.name.lower()
        or needle in p.description.lower()
        or needle in p.category.lower()
    ]


class BillingSession:
    """One admin's bill being written, from opening the form to saving it."""

    def __init__(self, currency: Optional[str] = None, defaults=None):
        self.defaults = defaults
        self.page_currency = currency or (defaults.currency if defaults is not None else "INR")
        self.reset()

    def reset(self) -> None:
        self.customer = CustomerInfo()
        self.configuration = default_configuration(self.defaults, self.page_currency)
        self.selection: Selection = {}
        self.edit_bill_id: Optional[str] = None
        self.is_submitting = False

    @property
    def is_edit_mode(self) -> bool:
        return self.edit_bill_id is not None

    # ----- Selection -----
    def _refresh_amounts(self) -> None:
        amount_inr, amount_bhd = catalog_amounts(self.selection)
        self.configuration = self.configuration.model_copy(
            update={"amount_inr": amount_inr, "amount_bhd": amount_bhd})

    def select_product(self, product: Product) -> None:
        self.selection[product.id] = SelectionEntry(product=product, quantity=1)
        self._refresh_amounts()

    def deselect_product(self, product_id: str) -> None:
        self.selection.pop(product_id, None)
        self._refresh_amounts()

    def toggle_product(self, product: Product, checked: bool) -> None:
        if checked:
            self.select_product(product)
        else:
            self.deselect_product(product.id)

    def set_quantity(self, product_id: str, quantity: int) -> None:
        entry = self.selection.get(product_id)
        if entry is None:
            return
        if entry.product.stock > 0:
            quantity = min(quantity, entry.product.stock)
        self.selection[product_id] = SelectionEntry(product=entry.product, quantity=max(1, quantity))
        self._refresh_amounts()

    def set_override_amount(self, amount: str, currency: Optional[str] = None) -> None:
        field = "amount_inr" if (currency or self.configuration.currency) == "INR" else "amount_bhd"
        self.configuration = self.configuration.model_copy(update={field: amount})

    def update_configuration(self, **changes) -> None:
        """Raises pydantic.ValidationError for an unknown currency."""
        self.configuration = BillConfiguration.model_validate(
            {**self.configuration.model_dump(), **changes})

    def update_customer(self, **changes) -> None:
        self.customer = self.customer.model_copy(update=changes)

    def totals(self) -> BillCalculation:
        return calculate_bill(self.configuration, self.selection)

    # ----- Edit mode -----
    def load_for_edit(self, bill: Bill, products: Iterable[Product]) -> None:
        self.customer = reconstruct_customer(bill)
        self.configuration = reconstruct_configuration(
            bill, fallback_currency=self.page_currency, defaults=self.defaults)
        self.selection = reconstruct_selection(bill, products)
        self.edit_bill_id = bill.id
        logger.info(f"Bill {bill.bill_number or bill.id} loaded for editing")

    # ----- Submission -----
    def submit(self, client) -> SubmissionResult:
        if not self.selection:
            raise EmptySelectionError()
        if self.is_submitting:
            raise SubmissionInProgressError("A bill submission is already in progress")

        payload = build_bill_payload(self.customer, self.configuration, self.selection)
        updating = self.is_edit_mode
        self.is_submitting = True
        try:
            if updating:
                bill = client.update_bill(self.edit_bill_id, payload)
            else:
                bill = client.create_bill(payload)
        except ApiError as e:
            logger.error(f"Bill submission failed: {e}")
            raise BillSubmissionError(
                "Failed to update bill." if updating else "Failed to create bill.") from e
        finally:
            self.is_submitting = False

        logger.info(f"Bill {bill.bill_number} {'updated' if updating else 'created'}")
        self.reset()
        return SubmissionResult(
            bill=bill,
            redirect_to=BILL_HISTORY_PATH,
            message="Bill updated successfully!" if updating else "Bill created successfully!",
        )
