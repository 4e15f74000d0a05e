"""
HTTP client the admin tools use to talk to the billing backend.
"""
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import requests

from exceptions import ApiError, NotFoundError
from logger import get_logger
from schemas import Bill, BillPayload, Product, TrackingInfo

logger = get_logger(__name__)


class PalaniappaClient:
    """Thin wrapper over ``requests.Session`` for the ``/api`` endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    @classmethod
    def from_settings(cls, settings, session: Optional[requests.Session] = None) -> "PalaniappaClient":
        return cls(
            settings.api.base_url,
            timeout_seconds=settings.api.timeout_seconds,
            token=settings.api.token,
            session=session,
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout_seconds, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise ApiError(f"{method} {path} failed: {e}") from e

        if resp.status_code == 404:
            raise NotFoundError(f"{method} {path}: not found")
        if not resp.ok:
            logger.warning("%s %s answered %d", method, path, resp.status_code)
            raise ApiError(f"{method} {path} answered {resp.status_code}", status_code=resp.status_code)

        if not resp.content:
            return None
        return resp.json()

    # ----- Catalog -----
    def list_products(self, search: Optional[str] = None) -> List[Product]:
        params = {"search": search} if search else None
        return [Product.model_validate(p) for p in self._request("GET", "/api/products", params=params)]

    def get_product(self, product_id: str) -> Product:
        return Product.model_validate(self._request("GET", f"/api/products/{quote(product_id, safe='')}"))

    # ----- Bills -----
    def create_bill(self, payload: BillPayload) -> Bill:
        data = self._request("POST", "/api/bills", json=payload.model_dump(by_alias=True))
        return Bill.model_validate(data)

    def update_bill(self, bill_id: str, payload: BillPayload) -> Bill:
        data = self._request("PUT", f"/api/bills/{quote(bill_id, safe='')}",
                             json=payload.model_dump(by_alias=True))
        return Bill.model_validate(data)

    def get_bill(self, bill_id: str) -> Bill:
        return Bill.model_validate(self._request("GET", f"/api/bills/{quote(bill_id, safe='')}"))

    def list_bills(self, search: Optional[str] = None) -> List[Bill]:
        params: Optional[Dict[str, str]] = {"search": search} if search else None
        return [Bill.model_validate(b) for b in self._request("GET", "/api/bills", params=params)]

    # ----- Tracking -----
    def track(self, tracking_number: str) -> TrackingInfo:
        data = self._request("GET", f"/api/track/{quote(tracking_number, safe='')}")
        return TrackingInfo.model_validate(data)
