from dataclasses import dataclass, field
from decimal import Context, Decimal, MAX_EMAX, MIN_EMIN, ROUND_HALF_UP, localcontext
from enum import Enum
from typing import Callable, Iterable, List, Optional

import structlog

logger = structlog.get_logger(__name__)

GST_RATE = Decimal("12")  # standard hotel accommodation slab
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
_CENT = Decimal("0.01")
_GUARD_DIGITS = 40


class InvalidInput(ValueError):
    """Raised when line item fields break their constraints."""

    def __init__(self, errors):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class TaxMode(Enum):
    GST = "gst"
    NONE = "none"


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidInput(f"Expected a number, got {value!r}")
    try:
        result = Decimal(str(value).strip())
    except ArithmeticError:
        raise InvalidInput(f"Expected a number, got {value!r}") from None
    if not result.is_finite():
        raise InvalidInput(f"Expected a finite number, got {value!r}")
    return result


def wide_context(*values):
    """Local decimal context with enough precision to keep every digit of `values`."""
    magnitude = sum(max(0, v.adjusted()) for v in values)
    return localcontext(Context(
        prec=_GUARD_DIGITS + magnitude,
        rounding=ROUND_HALF_UP,
        Emax=MAX_EMAX,
        Emin=MIN_EMIN,
    ))


def money(val) -> Decimal:
    """Round to 2 decimals consistently for money values (half away from zero)."""
    value = to_decimal(val)
    with wide_context(value):
        return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    tax_inclusive: bool
    discount_rate: Decimal
    tax_mode: TaxMode = TaxMode.GST
    description: str = ""
    hsn: str = ""

    def __post_init__(self):
        for name in ("quantity", "unit_price", "tax_rate", "discount_rate"):
            try:
                object.__setattr__(self, name, to_decimal(getattr(self, name)))
            except InvalidInput as exc:
                raise InvalidInput(f"{name}: {exc}") from None
        if not isinstance(self.tax_inclusive, bool):
            raise InvalidInput(f"tax_inclusive: expected True or False, got {self.tax_inclusive!r}")
        if not isinstance(self.tax_mode, TaxMode):
            object.__setattr__(self, "tax_mode", TaxMode(self.tax_mode))


@dataclass(frozen=True)
class LineItemResult:
    line_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    final_amount: Decimal

    def as_dict(self):
        return {
            "line_total": float(self.line_total),
            "discount_amount": float(self.discount_amount),
            "tax_amount": float(self.tax_amount),
            "final_amount": float(self.final_amount),
        }


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal = ZERO
    total_discount: Decimal = ZERO
    total_tax: Decimal = ZERO
    total_amount: Decimal = ZERO
    line_items: tuple = field(default_factory=tuple)

    def as_dict(self):
        return {
            "subtotal": float(self.subtotal),
            "total_discount": float(self.total_discount),
            "total_tax": float(self.total_tax),
            "total_amount": float(self.total_amount),
            "line_items": [r.as_dict() for r in self.line_items],
        }


@dataclass(frozen=True)
class GSTSlab:
    rate: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    tax_amount: Decimal


def line_item_errors(item: LineItem) -> List[str]:
    errors = []
    if item.quantity <= 0:
        errors.append("Quantity must be greater than 0")
    if item.unit_price < 0:
        errors.append("Unit price cannot be negative")
    if not 0 <= item.tax_rate <= 100:
        errors.append("Tax rate must be between 0 and 100")
    if not 0 <= item.discount_rate <= 100:
        errors.append("Discount rate must be between 0 and 100")
    return errors


def _effective_mode(item: LineItem, tax_mode: Optional[TaxMode]) -> TaxMode:
    if tax_mode is TaxMode.NONE:
        return TaxMode.NONE
    return item.tax_mode


def _compute(item: LineItem, mode: TaxMode) -> LineItemResult:
    rate = item.tax_rate

    with wide_context(item.quantity, item.unit_price):
        raw = item.quantity * item.unit_price
        if mode is TaxMode.NONE:
            line_total = raw
            discount = line_total * item.discount_rate / HUNDRED
            tax = ZERO
        elif item.tax_inclusive:
            # tax comes out of the pre-discount amount
            tax = raw * rate / (HUNDRED + rate)
            line_total = raw - tax
            discount = line_total * item.discount_rate / HUNDRED
        else:
            line_total = raw
            discount = line_total * item.discount_rate / HUNDRED
            tax = (line_total - discount) * rate / HUNDRED

        line_total, discount, tax = money(line_total), money(discount), money(tax)
        final = money(line_total - discount + tax)
    return LineItemResult(
        line_total=line_total,
        discount_amount=discount,
        tax_amount=tax,
        final_amount=final,
    )


def calculate_line_item(item: LineItem, tax_mode: Optional[TaxMode] = None) -> LineItemResult:
    """
    Compute the rounded breakdown for one invoice line.
    Inclusive prices have GST extracted, exclusive prices get GST added
    on the discounted base. Discount never touches the tax portion.
    """
    errors = line_item_errors(item)
    if errors:
        raise InvalidInput(errors)
    return _compute(item, _effective_mode(item, tax_mode))


def calculate_invoice_total(
    items: Iterable[LineItem],
    tax_mode: Optional[TaxMode] = None,
    observer: Optional[Callable[[LineItem, LineItemResult], None]] = None,
) -> InvoiceTotals:
    """Calculate every line and the invoice totals; all lines are validated first."""
    items = list(items)
    errors = []
    for idx, item in enumerate(items, start=1):
        errors.extend(f"Line item {idx}: {e}" for e in line_item_errors(item))
    if errors:
        raise InvalidInput(errors)

    results = []
    for item in items:
        res = _compute(item, _effective_mode(item, tax_mode))
        if observer is not None:
            observer(item, res)
        results.append(res)

    with wide_context(*(r.line_total for r in results)):
        subtotal = money(sum((r.line_total for r in results), ZERO))
        total_discount = money(sum((r.discount_amount for r in results), ZERO))
        total_tax = money(sum((r.tax_amount for r in results), ZERO))
        total_amount = money(subtotal - total_discount + total_tax)
    totals = InvoiceTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total_tax=total_tax,
        total_amount=total_amount,
        line_items=tuple(results),
    )
    logger.debug(
        "Invoice totals computed",
        lines=len(results),
        total_amount=str(totals.total_amount),
    )
    return totals


def same_state(seller_state: str, buyer_state: str) -> bool:
    return seller_state.strip().lower() == buyer_state.strip().lower()


def calculate_gst_breakdown(
    items: Iterable[LineItem],
    seller_state: str,
    buyer_state: str,
    tax_mode: Optional[TaxMode] = None,
) -> List[GSTSlab]:
    """
    Group taxed lines by GST rate.
    If seller_state == buyer_state → CGST + SGST
    Else → IGST
    """
    items = list(items)
    totals = calculate_invoice_total(items, tax_mode=tax_mode)
    intra = same_state(seller_state, buyer_state)

    slabs = {}
    breakdown = []
    with wide_context(*(r.line_total for r in totals.line_items)):
        for item, res in zip(items, totals.line_items):
            if _effective_mode(item, tax_mode) is TaxMode.NONE or item.tax_rate == 0:
                continue
            taxable, tax = slabs.get(item.tax_rate, (ZERO, ZERO))
            slabs[item.tax_rate] = (
                taxable + res.line_total - res.discount_amount,
                tax + res.tax_amount,
            )

        for rate in sorted(slabs):
            taxable, tax = slabs[rate]
            tax = money(tax)
            if intra:
                cgst = money(tax / 2)
                sgst = tax - cgst
                igst = ZERO
            else:
                cgst = sgst = ZERO
                igst = tax
            breakdown.append(GSTSlab(rate, money(taxable), cgst, sgst, igst, tax))
    return breakdown


def booking_line_item(
    room_rate,
    nights,
    tax_rate=GST_RATE,
    tax_inclusive: bool = True,
    description: str = "Room Charges",
) -> LineItem:
    """Room charge line for a stay of `nights` at `room_rate` per night."""
    if to_decimal(nights) <= 0:
        raise InvalidInput("Number of nights must be greater than zero")
    return LineItem(
        quantity=nights,
        unit_price=room_rate,
        tax_rate=tax_rate,
        tax_inclusive=tax_inclusive,
        discount_rate=0,
        description=description,
    )


def calculate_payment_balance(total_amount, paid_amount) -> Decimal:
    total, paid = to_decimal(total_amount), to_decimal(paid_amount)
    with wide_context(total, paid):
        return money(total - paid)


def payment_status(total_amount, paid_amount) -> str:
    if to_decimal(paid_amount) <= 0:
        return "pending"
    if calculate_payment_balance(total_amount, paid_amount) <= 0:
        return "paid"
    return "partial"
