"""MCP Server for the duty-free point of sale."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, Tool, TextContent
from pydantic import AnyUrl

from .auth import SessionContext
from .config import Settings
from .exceptions import CheckoutValidationError, PosError
from .models import AuthCredentials, Currency, PaymentMethod, UserRole
from .pos_client import DutyFreeClient
from .terminal import PosTerminal

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("dutyfree-pos-mcp-server")

# Initialize server
app = Server("dutyfree-pos-mcp-server")

# Global state
session: SessionContext
client: DutyFreeClient
terminal: PosTerminal
credentials: Optional[AuthCredentials] = None

POS_ROLES = (UserRole.ADMIN, UserRole.SUPERVISOR, UserRole.CASHIER)

NOT_AUTHENTICATED = (
    "Error: Not authenticated. Please configure POS_USERNAME and POS_PASSWORD, "
    "or use pos_login first."
)


async def ensure_authenticated() -> bool:
    """Ensure the client is authenticated, auto-login if credentials are available."""
    if session.is_authenticated():
        return True

    # Try to auto-login with stored credentials
    if credentials:
        try:
            logger.info("Auto-logging in with configured credentials...")
            await client.login(credentials)
            logger.info("Auto-login successful")
            return True
        except PosError as e:
            logger.error(f"Auto-login error: {e.message}")

    return False


async def ensure_catalog() -> None:
    """Load the catalog on first use."""
    if not terminal.catalog:
        await terminal.load_catalog()


def format_money(amount: Any, currency: Currency) -> str:
    return f"{float(amount):,.2f} {currency.value}"


def format_cart() -> str:
    """Render the cart as text."""
    if terminal.ledger.is_empty:
        return "Cart is empty"

    currency = terminal.currency
    totals = terminal.totals()
    result_lines = [f"Cart ({totals.item_count} item(s), {currency.value}):\n"]
    for line in terminal.ledger:
        result_lines.append(
            f"  - {line.product_name} [{line.product_id}] "
            f"{line.quantity} x {format_money(line.unit_price, currency)} "
            f"= {format_money(line.total_price, currency)} (tax {line.tax_rate}%)"
        )
    result_lines.append("")
    result_lines.append(f"Subtotal: {format_money(totals.subtotal, currency)}")
    result_lines.append(f"Tax: {format_money(totals.tax_amount, currency)}")
    result_lines.append(f"Total: {format_money(totals.total, currency)}")
    result_lines.append(f"Payment method: {terminal.payment_method.value}")
    return "\n".join(result_lines)


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = []

    if session.is_authenticated():
        resources.append(
            Resource(
                uri=AnyUrl("pos://cart"),
                name="Current Cart",
                mimeType="application/json",
                description="Lines, totals and currency of the transaction in progress",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "pos://cart":
        if not session.is_authenticated():
            return "Error: Not authenticated. Please login first."

        return json.dumps(terminal.summary(), indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    product_id_schema = {
        "type": "string",
        "description": "Product ID from search results",
    }
    return [
        Tool(
            name="pos_login",
            description="Authenticate with the POS back office. Uses POS_USERNAME/POS_PASSWORD if not provided.",
            inputSchema={
                "type": "object",
                "properties": {
                    "username": {
                        "type": "string",
                        "description": "Username (optional if POS_USERNAME is configured)",
                    },
                    "password": {
                        "type": "string",
                        "description": "Password (optional if POS_PASSWORD is configured)",
                    },
                },
            },
        ),
        Tool(
            name="pos_logout",
            description="Logout, clear the session and drop the current cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="pos_search_products",
            description="Search the catalog by French/English name or barcode",
            inputSchema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Name fragment or barcode (empty lists everything)",
                    },
                    "refresh": {
                        "type": "boolean",
                        "description": "Reload the catalog from the API first",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="pos_add_to_cart",
            description="Add one unit of a product to the cart",
            inputSchema={
                "type": "object",
                "properties": {"product_id": product_id_schema},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="pos_update_quantity",
            description="Change a cart line's quantity by a delta (reaching 0 removes the line)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": product_id_schema,
                    "delta": {
                        "type": "integer",
                        "description": "Quantity change, e.g. 1 or -1",
                    },
                },
                "required": ["product_id", "delta"],
            },
        ),
        Tool(
            name="pos_remove_from_cart",
            description="Remove a product line from the cart",
            inputSchema={
                "type": "object",
                "properties": {"product_id": product_id_schema},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="pos_clear_cart",
            description="Empty the cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="pos_get_cart",
            description="Show cart lines, subtotal, tax and total",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="pos_set_currency",
            description="Switch the sale currency and reprice the cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "currency": {
                        "type": "string",
                        "enum": [c.value for c in Currency],
                        "description": "Currency code",
                    },
                },
                "required": ["currency"],
            },
        ),
        Tool(
            name="pos_checkout",
            description="Record the cart as a sale with a single payment for the full total",
            inputSchema={
                "type": "object",
                "properties": {
                    "payment_method": {
                        "type": "string",
                        "enum": [m.value for m in PaymentMethod],
                        "description": "Payment method (default: currently selected, CASH)",
                    },
                },
            },
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "pos_login":
            username = arguments.get("username")
            password = arguments.get("password")

            # Use provided credentials or fall back to environment
            if not username or not password:
                if credentials:
                    username = username or credentials.username
                    password = password or credentials.password
                else:
                    return [
                        TextContent(
                            type="text",
                            text="Error: No credentials provided and POS_USERNAME/POS_PASSWORD not configured.",
                        )
                    ]

            user = await client.login(AuthCredentials(username=username, password=password))
            role = user.role.value if user.role else "no role"
            return [
                TextContent(
                    type="text",
                    text=f"✅ Successfully logged in as {user.username} ({role})",
                )
            ]

        elif name == "pos_logout":
            await client.logout()
            return [TextContent(type="text", text="✅ Successfully logged out")]

        if not await ensure_authenticated():
            return [TextContent(type="text", text=NOT_AUTHENTICATED)]

        if not session.has_role(POS_ROLES):
            return [
                TextContent(
                    type="text",
                    text="Error: Your role is not allowed to use the point of sale.",
                )
            ]

        if name == "pos_search_products":
            if arguments.get("refresh"):
                await terminal.load_catalog()
            else:
                await ensure_catalog()

            query = arguments.get("query")
            products = terminal.search(query)

            if not products:
                return [TextContent(type="text", text=f"No products found for: {query}")]

            result_lines = [f"Found {len(products)} product(s):\n"]
            for i, product in enumerate(products, 1):
                result_lines.append(f"\n{i}. {product.display_name}")
                result_lines.append(f"   ID: {product.id}")
                result_lines.append(
                    f"   Price: {format_money(terminal.price_of(product), terminal.currency)}"
                )
                if product.barcode:
                    result_lines.append(f"   Barcode: {product.barcode}")
                if product.category:
                    result_lines.append(f"   Category: {product.category}")
                result_lines.append(f"   Stock: {product.stock_quantity}")

            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "pos_add_to_cart":
            await ensure_catalog()
            line = terminal.add_product(arguments["product_id"])
            return [
                TextContent(
                    type="text",
                    text=f"✅ Added {line.product_name} (quantity now {line.quantity})\n\n{format_cart()}",
                )
            ]

        elif name == "pos_update_quantity":
            product_id = arguments["product_id"]
            line = terminal.update_quantity(product_id, int(arguments["delta"]))
            if line is None:
                text = f"Product {product_id} is no longer in the cart"
            else:
                text = f"✅ {line.product_name} quantity is now {line.quantity}"
            return [TextContent(type="text", text=f"{text}\n\n{format_cart()}")]

        elif name == "pos_remove_from_cart":
            terminal.remove_item(arguments["product_id"])
            return [
                TextContent(
                    type="text",
                    text=f"✅ Removed product {arguments['product_id']}\n\n{format_cart()}",
                )
            ]

        elif name == "pos_clear_cart":
            terminal.clear_cart()
            return [TextContent(type="text", text="✅ Cart emptied")]

        elif name == "pos_get_cart":
            return [TextContent(type="text", text=format_cart())]

        elif name == "pos_set_currency":
            terminal.set_currency(Currency(str(arguments["currency"]).upper()))
            return [
                TextContent(
                    type="text",
                    text=f"✅ Currency set to {terminal.currency.value}\n\n{format_cart()}",
                )
            ]

        elif name == "pos_checkout":
            method = arguments.get("payment_method")
            totals = terminal.totals()
            currency = terminal.currency
            outcome = await terminal.checkout(PaymentMethod(method) if method else None)

            if outcome.succeeded:
                reference = (outcome.sale.sale_number or outcome.sale.id) if outcome.sale else None
                return [
                    TextContent(
                        type="text",
                        text=f"✅ {outcome.message}\n"
                             f"Total paid: {format_money(totals.total, currency)} "
                             f"({terminal.payment_method.value})\n"
                             f"Reference: {reference or 'n/a'}",
                    )
                ]
            return [TextContent(type="text", text=f"❌ {outcome.message}")]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except CheckoutValidationError as e:
        return [TextContent(type="text", text=f"Error: {e.message}")]
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [
            TextContent(
                type="text",
                text=f"Error: {str(e)}",
            )
        ]


def configure(settings: Settings) -> None:
    """Build the session, client and terminal from settings."""
    global session, client, terminal, credentials

    session = SessionContext(settings.session_file)
    client = DutyFreeClient(session, base_url=settings.api_url, timeout=settings.timeout)
    terminal = PosTerminal(client, currency=settings.default_currency)
    credentials = settings.credentials


async def main() -> None:
    """Main entry point."""
    settings = Settings.from_env()
    logging.getLogger().setLevel(settings.log_level)
    configure(settings)

    if credentials:
        logger.info(f"Credentials loaded from environment for: {credentials.username}")
    else:
        logger.warning("No credentials found in environment variables (POS_USERNAME, POS_PASSWORD)")
        logger.warning("You can login manually via pos_login tool")

    logger.info(f"POS API: {settings.api_url}")
    await client.restore_session()

    logger.info("Starting Duty-Free POS MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
