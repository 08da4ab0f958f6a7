"""Data models for the duty-free POS API entities."""

from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
)
from pydantic.alias_generators import to_camel

# Decimal in memory, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Currency(str, Enum):
    """Currencies a product can be priced in."""

    XOF = "XOF"
    EUR = "EUR"
    USD = "USD"


class PaymentMethod(str, Enum):
    """Payment methods accepted at the till."""

    CASH = "CASH"
    CARD = "CARD"
    MOBILE_MONEY = "MOBILE_MONEY"


class UserRole(str, Enum):
    """Back-office roles."""

    ADMIN = "ADMIN"
    SUPERVISOR = "SUPERVISOR"
    CASHIER = "CASHIER"
    STOCK_MANAGER = "STOCK_MANAGER"


class ApiModel(BaseModel):
    """Base for records exchanged with the API (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(ApiModel):
    """Represents a catalog product as returned by GET /products."""

    id: str = Field(description="Product ID")
    code: str = Field(default="", description="Internal product code")
    barcode: str = Field(default="", description="EAN/barcode")
    name_fr: str = Field(default="", description="French display name")
    name_en: str = Field(default="", description="English display name")
    category: str = Field(default="", alias="categoryName", description="Category name")
    price_xof: Money = Field(default=Decimal("0"), ge=0, alias="sellingPriceXOF")
    price_eur: Money = Field(default=Decimal("0"), ge=0, alias="sellingPriceEUR")
    price_usd: Money = Field(default=Decimal("0"), ge=0, alias="sellingPriceUSD")
    tax_rate: Money = Field(default=Decimal("0"), ge=0, description="Tax rate in percent")
    image_url: str = Field(default="")
    active: bool = Field(default=True)
    stock_quantity: int = Field(default=0, alias="currentStock")
    min_stock_level: int = Field(default=0)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError("product id is required")
        return str(value)

    @field_validator(
        "code", "barcode", "name_fr", "name_en", "category", "image_url", mode="before"
    )
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("price_xof", "price_eur", "price_usd", "tax_rate", mode="before")
    @classmethod
    def _null_to_zero(cls, value: Any) -> Any:
        return Decimal("0") if value is None or value == "" else value

    @field_validator("stock_quantity", "min_stock_level", mode="before")
    @classmethod
    def _null_count_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("active", mode="before")
    @classmethod
    def _null_active(cls, value: Any) -> Any:
        return True if value is None else value

    @property
    def display_name(self) -> str:
        """Name shown on the receipt (French first, as at the till)."""
        return self.name_fr or self.name_en or self.code


class CartLine(ApiModel):
    """One product entry in the cart with its own price and tax snapshot."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    product_id: str
    product_name: str
    quantity: int = Field(ge=1)
    unit_price: Money = Field(ge=0)
    tax_rate: Money = Field(default=Decimal("0"), ge=0)
    discount_percent: Money = Field(default=Decimal("0"))

    @computed_field(alias="totalPrice")
    @property
    def total_price(self) -> Money:
        return self.unit_price * self.quantity


class Payment(ApiModel):
    """Payment record attached to a sale."""

    method: PaymentMethod
    amount: Money
    currency: Currency


class SaleRequest(ApiModel):
    """Body of POST /sales."""

    items: list[CartLine]
    currency: Currency
    payments: list[Payment]


class Sale(ApiModel):
    """Sale acknowledgement returned by the API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: Optional[str] = None
    sale_number: Optional[str] = None
    status: Optional[str] = None
    currency: Optional[str] = None
    total_amount: Optional[Money] = None

    @field_validator("id", "sale_number", "status", "currency", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @field_validator("total_amount", mode="before")
    @classmethod
    def _lenient_amount(cls, value: Any) -> Any:
        # Informational only, an unreadable amount becomes None
        if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
            return None
        try:
            return Decimal(str(value))
        except ArithmeticError:
            return None


class CashRegister(ApiModel):
    """Cash register summary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str
    register_number: Optional[str] = None
    name: Optional[str] = None
    location: Optional[str] = None
    status: Optional[str] = None
    current_balance: Optional[Money] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return str(value)


class User(ApiModel):
    """Authenticated back-office user."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    username: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None
    active: bool = True

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return None if value is None else str(value)


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    username: str
    password: str


class SessionData(BaseModel):
    """Session data for the authenticated user."""

    token: Optional[str] = Field(None, description="Bearer token")
    user: Optional[User] = Field(None, description="Current user")
    is_authenticated: bool = Field(default=False, description="Authentication status")


class CartTotals(BaseModel):
    """Subtotal, tax and total of the cart."""

    subtotal: Money = Decimal("0")
    tax_amount: Money = Decimal("0")
    total: Money = Decimal("0")
    item_count: int = 0
