"""Duty-free POS REST API client."""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from .auth import SessionContext
from .exceptions import AuthenticationError, RejectionError, TransportError
from .models import AuthCredentials, CashRegister, Product, Sale, SaleRequest, User

logger = logging.getLogger(__name__)


class DutyFreeClient:
    """Client for the duty-free back-office API."""

    DEFAULT_BASE_URL = "http://localhost:8080/api"

    def __init__(
        self,
        session: SessionContext,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            session: Session context providing the bearer token
            base_url: API root, e.g. http://localhost:8080/api
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.session = session
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            transport=transport,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    def _auth_headers(self) -> dict[str, str]:
        token = self.session.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Send a request and unwrap the API envelope.

        The API wraps payloads as ``{success, message, data}``; the inner
        ``data`` is returned when present, otherwise the whole body.

        Raises:
            TransportError: connection failure, timeout or 5xx
            AuthenticationError: 401 (the token is dropped first, the cart is kept)
            RejectionError: any other 4xx
        """
        try:
            response = await self.client.request(
                method, path, json=json, params=params, headers=self._auth_headers()
            )
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out: {e}")
            raise TransportError(f"Request to {path} timed out") from e
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise TransportError(f"Could not reach the POS API: {e}") from e

        body = self._decode(response)
        logger.debug(f"{method} {path} -> {response.status_code}")

        if response.status_code >= 400:
            message = self._error_message(body, response)
            logger.error(f"[API Error] {method} {path} status={response.status_code} message={message}")
            if response.status_code == 401:
                self.session.clear_session(notify=False)
                raise AuthenticationError(message, response.status_code, body)
            if response.status_code >= 500:
                raise TransportError(message, response.status_code)
            raise RejectionError(message, response.status_code, body)

        if isinstance(body, dict) and body.get("data") is not None:
            return body["data"]
        return body

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _error_message(body: Any, response: httpx.Response) -> str:
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        if isinstance(body, str) and body.strip():
            return body.strip()[:200]
        return f"HTTP {response.status_code} {response.reason_phrase}".strip()

    # Authentication

    async def login(self, credentials: AuthCredentials) -> User:
        """
        Authenticate and store the token in the session context.

        Raises:
            AuthenticationError: bad credentials
            RejectionError: login response without a token
        """
        logger.info(f"Logging in as {credentials.username}")
        payload = await self._request(
            "POST", "/auth/login", json=credentials.model_dump()
        )
        if not isinstance(payload, dict) or not payload.get("token"):
            raise RejectionError("Invalid login response", 200, payload)

        user_data = {key: value for key, value in payload.items() if key != "token"}
        user = User.model_validate(user_data.get("user") or user_data)
        self.session.save_session(payload["token"], user)
        logger.info(f"✓ Logged in as {user.username} ({user.role.value if user.role else 'no role'})")
        return user

    async def get_current_user(self) -> User:
        payload = await self._request("GET", "/auth/me")
        return User.model_validate(payload)

    async def restore_session(self) -> Optional[User]:
        """
        Resolve a persisted token into the current user.

        An invalid token is dropped; the session is then unauthenticated.
        """
        if not self.session.is_authenticated():
            return None
        try:
            user = await self.get_current_user()
        except (RejectionError, TransportError) as e:
            logger.warning(f"Could not restore session: {e.message}")
            if self.session.is_authenticated():
                self.session.clear_session(notify=False)
            return None
        self.session.set_user(user)
        logger.info(f"Restored session for {user.username}")
        return user

    async def logout(self) -> None:
        """Logout from the API; the local session is cleared regardless."""
        try:
            if self.session.is_authenticated():
                await self._request("POST", "/auth/logout")
        except (RejectionError, TransportError) as e:
            logger.warning(f"Logout call failed: {e.message}")
        finally:
            if self.session.is_authenticated():
                self.session.clear_session()

    # Products

    async def get_products(self) -> list[Product]:
        """Fetch the full catalog."""
        payload = await self._request("GET", "/products")
        return self._parse_products(payload)

    async def get_product(self, product_id: str) -> Product:
        payload = await self._request("GET", f"/products/{product_id}")
        return Product.model_validate(payload)

    async def get_product_by_barcode(self, barcode: str) -> Product:
        payload = await self._request("GET", f"/products/barcode/{barcode}")
        return Product.model_validate(payload)

    async def search_products(self, query: str, page: int = 0, size: int = 20) -> list[Product]:
        """Server-side product search (paged)."""
        payload = await self._request(
            "GET",
            "/products/search",
            params={"query": query, "page": page, "size": size},
        )
        return self._parse_products(payload)

    @staticmethod
    def _parse_products(payload: Any) -> list[Product]:
        # Paged endpoints return {"content": [...], ...}
        if isinstance(payload, dict):
            payload = payload.get("content", [])
        products = []
        for item in payload or []:
            try:
                products.append(Product.model_validate(item))
            except ValueError as e:
                logger.warning(f"Skipping malformed product record: {e}")
        return products

    # Sales

    async def create_sale(self, sale: SaleRequest) -> Sale:
        """Submit a complete sale (items + payments) in one request."""
        body = sale.model_dump(mode="json", by_alias=True)
        logger.info(
            f"Creating sale: {len(sale.items)} line(s), {sale.currency.value}, "
            f"payment {sale.payments[0].method.value if sale.payments else 'none'}"
        )
        payload = await self._request("POST", "/sales", json=body)
        # The sale is already recorded here
        try:
            return Sale.model_validate(payload if isinstance(payload, dict) else {})
        except ValidationError as e:
            logger.warning(f"Sale recorded but acknowledgement could not be parsed: {e}")
            return Sale()

    async def get_sale(self, sale_id: str) -> Sale:
        payload = await self._request("GET", f"/sales/{sale_id}")
        return Sale.model_validate(payload)

    async def complete_sale(self, sale_id: str) -> Sale:
        payload = await self._request("POST", f"/sales/{sale_id}/complete")
        return Sale.model_validate(payload if isinstance(payload, dict) else {"id": sale_id})

    async def cancel_sale(self, sale_id: str, reason: str) -> None:
        await self._request("POST", f"/sales/{sale_id}/cancel", params={"reason": reason})

    # Cash registers

    async def get_open_cash_registers(self) -> list[CashRegister]:
        payload = await self._request("GET", "/cash-registers/open")
        return [CashRegister.model_validate(item) for item in payload or []]
