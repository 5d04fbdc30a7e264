import io
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

import pandas as pd # type: ignore
import structlog

from config import settings
from tax_calc import InvalidInput, LineItem, line_item_errors, money, to_decimal, wide_context

logger = structlog.get_logger(__name__)

CURRENCY_SYMBOLS = {"INR": "₹", "USD": "$", "EUR": "€", "GBP": "£"}

# ---------------------------------------------------
# DISPLAY
# ---------------------------------------------------

def _group_indian(digits: str) -> str:
    # 12,34,56,789: last three digits, then pairs
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    pairs = []
    while len(head) > 2:
        pairs.insert(0, head[-2:])
        head = head[:-2]
    if head:
        pairs.insert(0, head)
    return ",".join(pairs + [tail])


def format_currency(amount, currency: str = None) -> str:
    """Display-only rendering, e.g. ₹1,23,456.78. Always two decimals."""
    currency = (currency or settings.CURRENCY).upper()
    value = money(amount)
    sign = "-" if value < 0 else ""
    whole, frac = f"{value.copy_abs():f}".split(".")
    if currency == "INR":
        whole = _group_indian(whole)
    else:
        whole = f"{int(whole):,}"
    symbol = CURRENCY_SYMBOLS.get(currency, currency + " ")
    return f"{sign}{symbol}{whole}.{frac}"


_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine",
    "Ten", "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen",
    "Seventeen", "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _hundreds(num: int) -> List[str]:
    words = []
    if num > 99:
        words += [_ONES[num // 100], "Hundred"]
        num %= 100
    if num > 19:
        words.append(_TENS[num // 10])
        num %= 10
    if num > 0:
        words.append(_ONES[num])
    return words


def _to_words(num: int) -> List[str]:
    words = []
    for scale, name in ((10_000_000, "Crore"), (100_000, "Lakh"), (1000, "Thousand")):
        if num >= scale:
            words += _to_words(num // scale) + [name]
            num %= scale
    return words + _hundreds(num)


def number_to_words(amount) -> str:
    """Amount in words, Indian numbering (Crore/Lakh), for the invoice footer."""
    value = money(amount)
    if value < 0:
        raise InvalidInput(f"Cannot spell a negative amount: {value}")
    with wide_context(value):
        rupees, paise = divmod(int(value.scaleb(2)), 100)

    parts = []
    if rupees > 0:
        parts.append(" ".join(_to_words(rupees)) + " Rupees")
    if paise > 0:
        parts.append(" ".join(_to_words(paise)) + " Paise")
    if not parts:
        return "Zero Rupees Only"
    return " and ".join(parts) + " Only"

# ---------------------------------------------------
# INVOICE BOOKKEEPING
# ---------------------------------------------------

def generate_invoice_number(last_invoice_number: Optional[str] = None,
                            prefix: Optional[str] = None,
                            year: Optional[int] = None) -> str:
    year = year or date.today().year
    head = f"{prefix or settings.INVOICE_PREFIX}-{year}-"
    if not last_invoice_number or not last_invoice_number.startswith(head):
        return f"{head}0001"
    try:
        next_number = int(last_invoice_number[len(head):]) + 1
    except ValueError:
        return f"{head}0001"
    return f"{head}{next_number:04d}"


def _as_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def calculate_due_date(invoice_date, payment_terms: Optional[int] = None) -> str:
    terms = settings.PAYMENT_TERMS_DAYS if payment_terms is None else payment_terms
    return (_as_date(invoice_date) + timedelta(days=terms)).isoformat()


def is_invoice_overdue(due_date, payment_status: str, today=None) -> bool:
    if payment_status == "paid":
        return False
    today = _as_date(today) if today is not None else date.today()
    return _as_date(due_date) < today

# ---------------------------------------------------
# FORM VALIDATION
# ---------------------------------------------------

def _number(value):
    try:
        return to_decimal(value)
    except InvalidInput:
        return None


def validate_line_item(item: Dict) -> List[str]:
    """Form-style messages for one line; empty list when valid."""
    errors = []
    if not str(item.get("description") or "").strip():
        errors.append("Description is required")

    quantity = _number(item.get("quantity"))
    if quantity is None or quantity <= 0:
        errors.append("Quantity must be greater than 0")
    unit_price = _number(item.get("unit_price"))
    if unit_price is None or unit_price < 0:
        errors.append("Unit price cannot be negative")
    tax_rate = _number(item.get("tax_rate", 0))
    if tax_rate is None or not 0 <= tax_rate <= 100:
        errors.append("Tax rate must be between 0 and 100")
    discount_rate = _number(item.get("discount_rate", 0))
    if discount_rate is None or not 0 <= discount_rate <= 100:
        errors.append("Discount rate must be between 0 and 100")
    return errors


def validate_invoice(invoice: Dict) -> List[str]:
    errors = []
    if not str(invoice.get("customer_name") or "").strip():
        errors.append("Customer name is required")
    if not invoice.get("invoice_date"):
        errors.append("Invoice date is required")

    line_items = invoice.get("line_items") or []
    if not line_items:
        errors.append("At least one line item is required")
    for idx, item in enumerate(line_items, start=1):
        errors.extend(f"Line item {idx}: {e}" for e in validate_line_item(item))
    return errors

# ---------------------------------------------------
# TABULAR IMPORT (CSV / XLSX)
# ---------------------------------------------------

_COLUMN_ALIASES = {
    "description": ("description", "item", "item name", "particulars"),
    "quantity": ("quantity", "qty", "nights", "persons"),
    "unit_price": ("unit_price", "unit price", "price", "amount"),
    "tax_rate": ("tax_rate", "gst_rate", "gst rate", "gst%", "rate"),
    "tax_inclusive": ("tax_inclusive", "gst_inclusive", "inclusive"),
    "discount_rate": ("discount_rate", "discount", "discount%"),
    "hsn": ("hsn", "hsn_code", "sac"),
}


def _resolve_columns(df: pd.DataFrame) -> Dict[str, str]:
    lowered = {str(c).strip().lower(): c for c in df.columns}
    resolved = {}
    for field_name, aliases in _COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lowered:
                resolved[field_name] = lowered[alias]
                break
    return resolved


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "y", "1")
    if value is None or pd.isna(value):
        return False
    return bool(value)


def _cell(row, columns, name, default):
    col = columns.get(name)
    if col is None:
        return default
    value = row[col]
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return default
    return value


def items_from_dataframe(df: pd.DataFrame, hsn_lookup=None) -> List[LineItem]:
    """
    Turn sheet rows into LineItems. Named columns are matched loosely;
    without them the first three columns are description, qty, unit price.
    Missing GST rates come from the HSN lookup when one is given.
    """
    if len(df.columns) < 3:
        raise ValueError("Expected at least description, quantity and price columns")
    columns = _resolve_columns(df)
    if not {"description", "quantity", "unit_price"} <= columns.keys():
        columns = {"description": df.columns[0], "quantity": df.columns[1], "unit_price": df.columns[2]}

    items = []
    for idx, row in df.iterrows():
        desc = str(_cell(row, columns, "description", "")).strip()
        hsn_code = str(_cell(row, columns, "hsn", "")).strip()
        rate = _cell(row, columns, "tax_rate", None)
        if rate is None:
            rate = settings.DEFAULT_GST_RATE
            if hsn_lookup is not None:
                match = hsn_lookup.best_match(desc)
                if match is not None:
                    rate = match["rate"]
                    hsn_code = hsn_code or match["hsn_code"]
        try:
            item = LineItem(
                quantity=_cell(row, columns, "quantity", None),
                unit_price=_cell(row, columns, "unit_price", None),
                tax_rate=rate,
                tax_inclusive=_flag(_cell(row, columns, "tax_inclusive", False)),
                discount_rate=_cell(row, columns, "discount_rate", 0),
                description=desc,
                hsn=hsn_code,
            )
        except InvalidInput as exc:
            logger.warning("Skipping unreadable row", row=int(idx), error=str(exc))
            continue
        errors = line_item_errors(item)
        if not desc or errors:
            logger.warning("Skipping invalid row", row=int(idx), errors=errors or ["Description is required"])
            continue
        items.append(item)
    return items


def read_line_items(file_bytes: bytes, filename: str, hsn_lookup=None) -> List[LineItem]:
    fname = filename.lower()
    if fname.endswith(".csv"):
        df = pd.read_csv(io.BytesIO(file_bytes))
    elif fname.endswith(".xlsx"):
        df = pd.read_excel(io.BytesIO(file_bytes))
    else:
        raise ValueError(f"Unsupported file type: {filename}")
    items = items_from_dataframe(df, hsn_lookup)
    logger.info("Line items imported", filename=filename, rows=len(df), items=len(items))
    return items
