"""Pure invoice/quotation arithmetic - no I/O dependencies."""

import random
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from enum import Enum

from .dates import parse_date, parse_datetime

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_number(value, clamp_negative: bool = False) -> Decimal:
    """
    Coerce form input to a Decimal.

    Anything that does not parse as a finite number becomes 0. With
    clamp_negative, negative values become 0 as well.
    """
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not number.is_finite():
        return ZERO
    if clamp_negative and number < 0:
        return ZERO
    return number


def round_half_up(value: Decimal) -> Decimal:
    """Round to a whole currency unit, halves away from zero."""
    return value.to_integral_value(rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    """A billable row. amount is always quantity x rate."""

    id: str
    description: str = ""
    quantity: Decimal = Decimal("1")
    rate: Decimal = ZERO
    amount: Decimal = ZERO

    @classmethod
    def create(
        cls,
        description: str = "",
        quantity=1,
        rate=0,
        item_id: str | None = None,
    ) -> "LineItem":
        quantity = to_number(quantity, clamp_negative=True)
        rate = to_number(rate, clamp_negative=True)
        return cls(
            id=item_id or uuid.uuid4().hex,
            description=description,
            quantity=quantity,
            rate=rate,
            amount=quantity * rate,
        )

    @classmethod
    def from_row(cls, data: dict) -> "LineItem":
        """Create from a stored JSON item. The stored amount is re-derived."""
        return cls.create(
            description=data.get("description") or "",
            quantity=data.get("quantity"),
            rate=data.get("rate"),
            item_id=str(data["id"]) if data.get("id") else None,
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "quantity": json_number(self.quantity),
            "rate": json_number(self.rate),
            "amount": json_number(self.amount),
        }


def recompute_item(item: LineItem, changed_field: str, new_value) -> LineItem:
    """
    Apply an edit to one field and return the updated item.

    Editing quantity or rate re-derives amount; editing description leaves it
    alone. amount itself is not editable.
    """
    match changed_field:
        case "description":
            return replace(item, description="" if new_value is None else str(new_value))
        case "quantity":
            quantity = to_number(new_value, clamp_negative=True)
            return replace(item, quantity=quantity, amount=quantity * item.rate)
        case "rate":
            rate = to_number(new_value, clamp_negative=True)
            return replace(item, rate=rate, amount=item.quantity * rate)
        case _:
            raise ValueError(f"Line item field is not editable: {changed_field!r}")


def subtotal(items: list[LineItem]) -> Decimal:
    """Sum of item amounts (no rounding)."""
    return sum((item.amount for item in items), ZERO)


@dataclass(frozen=True)
class RateDriven:
    """Tax derived from a percentage of the subtotal."""

    rate: Decimal

    def tax_for(self, items: list[LineItem]) -> Decimal:
        return round_half_up(subtotal(items) * self.rate / HUNDRED)


@dataclass(frozen=True)
class Manual:
    """Tax entered as a fixed amount."""

    amount: Decimal

    def tax_for(self, items: list[LineItem]) -> Decimal:
        return self.amount


TaxSetting = RateDriven | Manual


@dataclass(frozen=True)
class TaxResult:
    """Outcome of a tax edit: the tax amount plus the setting that produced it."""

    tax: Decimal
    setting: TaxSetting

    @property
    def tax_rate(self) -> Decimal | None:
        """Percentage when rate-driven, None for manual tax."""
        if isinstance(self.setting, RateDriven):
            return self.setting.rate
        return None


def apply_tax_rate(items: list[LineItem], rate_percent) -> TaxResult:
    """Derive tax from a percentage. The rate is kept so later edits re-derive it."""
    setting = RateDriven(to_number(rate_percent))
    return TaxResult(tax=setting.tax_for(items), setting=setting)


def apply_manual_tax(amount) -> TaxResult:
    """Set a fixed tax amount, dropping any rate."""
    setting = Manual(to_number(amount))
    return TaxResult(tax=setting.amount, setting=setting)


def total(items: list[LineItem], tax) -> Decimal:
    return subtotal(items) + to_number(tax)


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


class DocumentKind(Enum):
    INVOICE = "invoice"
    QUOTATION = "quotation"

    @property
    def number_prefix(self) -> str:
        return "INV" if self is DocumentKind.INVOICE else "QT"

    @property
    def number_field(self) -> str:
        return f"{self.value}_number"


@dataclass
class FinancialDocument:
    """
    An invoice or quotation being edited.

    Items and tax setting are the only inputs; subtotal, tax and total are
    always derived from them, so every edit keeps the totals consistent.
    """

    kind: DocumentKind
    number: str = ""
    items: list[LineItem] = field(default_factory=list)
    tax_setting: TaxSetting = field(default_factory=lambda: Manual(ZERO))
    status: str = "draft"
    id: str | None = None
    client_id: str | None = None
    client_name: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    due_date: date | None = None  # invoices: due date, quotations: valid until
    created_at: datetime | None = None
    paid_at: datetime | None = None

    @property
    def subtotal(self) -> Decimal:
        return subtotal(self.items)

    @property
    def tax(self) -> Decimal:
        return self.tax_setting.tax_for(self.items)

    @property
    def tax_rate(self) -> Decimal | None:
        if isinstance(self.tax_setting, RateDriven):
            return self.tax_setting.rate
        return None

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.tax

    def totals(self) -> DocumentTotals:
        return DocumentTotals(subtotal=self.subtotal, tax=self.tax, total=self.total)

    def add_item(self, description: str = "", quantity=1, rate=0) -> LineItem:
        item = LineItem.create(description, quantity, rate)
        self.items.append(item)
        return item

    def remove_item(self, item_id: str) -> None:
        self.items = [i for i in self.items if i.id != item_id]

    def update_item(self, item_id: str, changed_field: str, new_value) -> LineItem:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                updated = recompute_item(item, changed_field, new_value)
                self.items[index] = updated
                return updated
        raise KeyError(item_id)

    def set_tax_rate(self, rate_percent) -> TaxResult:
        result = apply_tax_rate(self.items, rate_percent)
        self.tax_setting = result.setting
        return result

    def set_manual_tax(self, amount) -> TaxResult:
        result = apply_manual_tax(amount)
        self.tax_setting = result.setting
        return result

    @classmethod
    def from_row(cls, kind: DocumentKind, data: dict) -> "FinancialDocument":
        """Create from a stored invoice/quotation row."""
        items = [LineItem.from_row(i) for i in data.get("items") or []]
        rate = to_number(data.get("tax_rate"))
        # A zero rate is how a manual tax amount is stored.
        if rate:
            setting: TaxSetting = RateDriven(rate)
        else:
            setting = Manual(to_number(data.get("tax")))
        due_key = "due_date" if kind is DocumentKind.INVOICE else "valid_until"
        return cls(
            kind=kind,
            number=data.get(kind.number_field) or "",
            items=items,
            tax_setting=setting,
            status=data.get("status") or "draft",
            id=data.get("id"),
            client_id=data.get("client_id"),
            client_name=data.get("client_name"),
            project_id=data.get("project_id"),
            project_name=data.get("project_name"),
            due_date=parse_date(data.get(due_key)),
            created_at=parse_datetime(data.get("created_at")),
            paid_at=parse_datetime(data.get("paid_at")),
        )

    def to_row(self) -> dict:
        """Row payload for saving. Totals are computed here, at save time."""
        totals = self.totals()
        due_key = "due_date" if self.kind is DocumentKind.INVOICE else "valid_until"
        row = {
            self.kind.number_field: self.number,
            "client_id": self.client_id,
            "client_name": self.client_name,
            "project_id": self.project_id,
            "project_name": self.project_name,
            "items": [i.to_row() for i in self.items],
            "subtotal": json_number(totals.subtotal),
            "tax": json_number(totals.tax),
            "tax_rate": json_number(self.tax_rate) if self.tax_rate is not None else 0,
            "total": json_number(totals.total),
            "status": self.status,
            due_key: self.due_date.isoformat() if self.due_date else None,
        }
        if self.kind is DocumentKind.INVOICE:
            row["paid_at"] = self.paid_at.isoformat() if self.paid_at else None
        return row


def generate_document_number(
    kind: DocumentKind, today: date | None = None, rng: random.Random | None = None
) -> str:
    """INV-YYYYMM-NNN / QT-YYYYMM-NNN with a random three-digit suffix."""
    today = today or date.today()
    suffix = (rng or random).randint(0, 999)
    return f"{kind.number_prefix}-{today.year}{today.month:02d}-{suffix:03d}"


def new_document(
    kind: DocumentKind,
    default_tax_rate=None,
    today: date | None = None,
    rng: random.Random | None = None,
) -> FinancialDocument:
    """
    Blank document with one empty line item.

    default_tax_rate comes from the business settings; when omitted the
    document starts with a manual tax of 0.
    """
    today = today or date.today()
    doc = FinancialDocument(
        kind=kind,
        number=generate_document_number(kind, today, rng),
        due_date=today,
    )
    doc.add_item()
    if default_tax_rate is not None:
        doc.set_tax_rate(default_tax_rate)
    return doc


def json_number(value: Decimal) -> int | float:
    """Decimal to a JSON-friendly number, keeping integers integral."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_currency(amount, currency: str = "IDR") -> str:
    """Format like id-ID locale: 'Rp 1.250.000', decimals after a comma."""
    number = to_number(amount)
    sign = "-" if number < 0 else ""
    with localcontext() as ctx:
        # Room for every integer digit plus three decimals
        ctx.prec = max(ctx.prec, number.adjusted() + 4)
        number = abs(number).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
    whole, _, fraction = f"{number:f}".partition(".")
    grouped = f"{int(whole):,}".replace(",", ".")
    fraction = fraction.rstrip("0")
    text = f"{grouped},{fraction}" if fraction else grouped
    prefix = "Rp" if currency == "IDR" else currency
    return f"{prefix} {sign}{text}"
