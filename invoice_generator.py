import json
from io import BytesIO

import pandas as pd
import structlog

from tax_calc import InvoiceTotals

logger = structlog.get_logger(__name__)

ITEM_COLUMNS = [
    "sr", "description", "hsn", "qty", "unit_price", "tax_rate", "tax_inclusive",
    "discount_rate", "line_total", "discount_amount", "tax_amount", "final_amount",
]


def invoice_to_records(items, totals: InvoiceTotals):
    """One flat row per line, pairing the input item with its computed result."""
    items = list(items)
    if len(items) != len(totals.line_items):
        raise ValueError("Line items and calculated results are out of step")

    records = []
    for sr, (item, res) in enumerate(zip(items, totals.line_items), start=1):
        records.append({
            "sr": sr,
            "description": item.description,
            "hsn": item.hsn,
            "qty": float(item.quantity),
            "unit_price": float(item.unit_price),
            "tax_rate": float(item.tax_rate),
            "tax_inclusive": item.tax_inclusive,
            "discount_rate": float(item.discount_rate),
            **res.as_dict(),
        })
    return records


def _totals_row(totals: InvoiceTotals):
    row = totals.as_dict()
    row.pop("line_items")
    return row


def generate_invoice_xlsx_bytes(items, totals: InvoiceTotals):
    df = pd.DataFrame(invoice_to_records(items, totals), columns=ITEM_COLUMNS)
    buffer = BytesIO()

    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, index=False, sheet_name="Items")
        totals_df = pd.DataFrame([_totals_row(totals)])
        totals_df.to_excel(writer, index=False, sheet_name="Totals")

    buffer.seek(0)
    logger.info("Invoice exported", format="xlsx", lines=len(df))
    return buffer.getvalue()


def generate_invoice_csv_bytes(items, totals: InvoiceTotals):
    df = pd.DataFrame(invoice_to_records(items, totals), columns=ITEM_COLUMNS)
    buffer = BytesIO()
    buffer.write(df.to_csv(index=False).encode('utf-8'))
    buffer.seek(0)
    logger.info("Invoice exported", format="csv", lines=len(df))
    return buffer.getvalue()


def generate_invoice_json_bytes(items, totals: InvoiceTotals, **header):
    """JSON document with optional header fields (invoice_number, customer_name, ...)."""
    payload = {
        **header,
        "items": invoice_to_records(items, totals),
        "totals": _totals_row(totals),
    }
    logger.info("Invoice exported", format="json", lines=len(payload["items"]))
    return json.dumps(payload, indent=4, ensure_ascii=False).encode('utf-8')
