"""HTTP server for the Duty-Free POS MCP Server."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from .auth import SessionContext
from .config import Settings
from .exceptions import AuthenticationError, CheckoutValidationError, PosError
from .models import AuthCredentials, Currency, PaymentMethod, UserRole
from .pos_client import DutyFreeClient
from .terminal import PosTerminal

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("dutyfree-pos-http-server")

POS_ROLES = (UserRole.ADMIN, UserRole.SUPERVISOR, UserRole.CASHIER)

# Global state
session: Optional[SessionContext] = None
pos_client: Optional[DutyFreeClient] = None
terminal: Optional[PosTerminal] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global session, pos_client, terminal

    # Startup
    logger.info("Starting Duty-Free POS HTTP Server...")
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)
    session = SessionContext(settings.session_file)
    pos_client = DutyFreeClient(session, base_url=settings.api_url, timeout=settings.timeout)
    terminal = PosTerminal(pos_client, currency=settings.default_currency)
    await pos_client.restore_session()

    yield

    # Shutdown
    logger.info("Shutting down Duty-Free POS HTTP Server...")
    await pos_client.close()


app = FastAPI(
    title="Duty-Free POS MCP Server",
    description="HTTP API for the duty-free point of sale (cart, pricing, checkout)",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class LoginRequest(BaseModel):
    username: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    message: str


class SearchRequest(BaseModel):
    query: Optional[str] = None
    refresh: bool = False


class ProductRequest(BaseModel):
    product_id: str


class QuantityRequest(BaseModel):
    product_id: str
    delta: int


class CurrencyRequest(BaseModel):
    currency: Currency


class CheckoutRequest(BaseModel):
    payment_method: Optional[PaymentMethod] = None


def require_cashier() -> PosTerminal:
    """Return the terminal if the session may use the point of sale."""
    if terminal is None or session is None or not session.is_authenticated():
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not session.has_role(POS_ROLES):
        raise HTTPException(status_code=403, detail="Role not allowed to use the point of sale")
    return terminal


def cart_payload() -> dict:
    return require_cashier().summary()


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Duty-Free POS MCP Server",
        "version": "0.1.0",
        "description": "HTTP API for the duty-free point of sale",
        "mcp_compatible": True,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {"login": "POST /auth/login", "logout": "POST /auth/logout", "status": "GET /auth/status"},
            "products": {"search": "POST /products/search"},
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "quantity": "POST /cart/quantity",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
                "currency": "POST /cart/currency",
            },
            "checkout": "POST /checkout",
        },
        "authenticated": session.is_authenticated() if session else False,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": session.is_authenticated() if session else False,
    }


# Authentication endpoints
@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """Login to the POS back office."""
    try:
        credentials = AuthCredentials(username=request.username, password=request.password)
        user = await pos_client.login(credentials)
        return LoginResponse(success=True, message=f"Successfully logged in as {user.username}")
    except AuthenticationError as e:
        return LoginResponse(success=False, message=f"Login failed: {e.message}")
    except PosError as e:
        logger.error(f"Login error: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=e.message)


@app.post("/auth/logout")
async def logout():
    """Logout and drop the current cart."""
    await pos_client.logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    user = session.current_user if session else None
    return {
        "authenticated": session.is_authenticated() if session else False,
        "username": user.username if user else None,
        "role": user.role.value if user and user.role else None,
    }


# Product endpoints
@app.post("/products/search")
async def search_products(request: SearchRequest):
    """Search the loaded catalog by name or barcode."""
    pos = require_cashier()
    try:
        if request.refresh or not pos.catalog:
            await pos.load_catalog()
    except PosError as e:
        logger.error(f"Catalog load error: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=e.message)

    products = pos.search(request.query)
    return {
        "count": len(products),
        "currency": pos.currency.value,
        "products": [
            {**product.model_dump(mode="json"), "price": float(pos.price_of(product))}
            for product in products
        ],
    }


# Cart endpoints
@app.get("/cart")
async def get_cart():
    """Get current cart with totals."""
    return cart_payload()


@app.post("/cart/add")
async def add_to_cart(request: ProductRequest):
    """Add one unit of a product to the cart."""
    pos = require_cashier()
    try:
        if not pos.catalog:
            await pos.load_catalog()
        pos.add_product(request.product_id)
    except CheckoutValidationError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except PosError as e:
        logger.error(f"Add to cart error: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=e.message)
    return cart_payload()


@app.post("/cart/quantity")
async def update_quantity(request: QuantityRequest):
    """Change a line's quantity; reaching zero removes it."""
    require_cashier().update_quantity(request.product_id, request.delta)
    return cart_payload()


@app.post("/cart/remove")
async def remove_from_cart(request: ProductRequest):
    """Remove a product line from the cart."""
    require_cashier().remove_item(request.product_id)
    return cart_payload()


@app.post("/cart/clear")
async def clear_cart():
    """Empty the cart."""
    require_cashier().clear_cart()
    return cart_payload()


@app.post("/cart/currency")
async def set_currency(request: CurrencyRequest):
    """Switch currency and reprice the cart."""
    require_cashier().set_currency(request.currency)
    return cart_payload()


@app.post("/checkout")
async def checkout(request: CheckoutRequest):
    """Record the cart as a sale."""
    pos = require_cashier()
    outcome = await pos.checkout(request.payment_method)

    if outcome.succeeded:
        return {
            "success": True,
            "message": outcome.message,
            "sale": outcome.sale.model_dump(mode="json", by_alias=True) if outcome.sale else None,
        }
    status_code = 400 if outcome.error_kind == "validation" else 502
    raise HTTPException(status_code=status_code, detail=outcome.message)


def run_http_server(host: str = "0.0.0.0", port: int = 8000):
    """Run the HTTP server."""
    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
