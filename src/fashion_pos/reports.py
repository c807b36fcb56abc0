"""Read-only reports built from committed sales, customers and repairs.

Nothing here mutates the master workbook. Exports write standalone files:
a customer CSV for spreadsheets and a styled sales workbook.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from . import core_logic, log
from .core_logic import RuntimeContext
from .data_manager import CustomerRow, SaleRow


TOP_SELLING_LIMIT = 5
SALES_TREND_DAYS = 7

CUSTOMER_CSV_COLUMNS = ["Name", "Phone", "Email", "Visits", "TotalSpent", "Notes"]
SALES_REPORT_COLUMNS = [
    "Sale ID",
    "Date",
    "Customer",
    "Cashier",
    "Payment",
    "Items",
    "Subtotal",
    "Discount",
    "Total",
]

_HEADER_FONT = Font(name="Calibri", bold=True, color="FFFFFF", size=11)
_HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
_TOTAL_FONT = Font(name="Calibri", bold=True, size=11)
_TOTAL_BORDER = Border(top=Side(style="thin"), bottom=Side(style="double"))
_MONEY_FMT = "#,##0.00"
_RIGHT = Alignment(horizontal="right")
_LEFT = Alignment(horizontal="left")


@dataclass(frozen=True)
class TopProduct:
    product_name: str
    quantity: int
    revenue: Decimal


@dataclass(frozen=True)
class DailySales:
    day: date
    total: Decimal


@dataclass(frozen=True)
class DashboardSummary:
    """Figures shown on the home screen for one calendar day."""

    daily_sales: Decimal
    items_sold_today: int
    pending_repairs: int
    top_selling: List[TopProduct]
    sales_by_day: List[DailySales]


@dataclass(frozen=True)
class CustomerSummary:
    customer: CustomerRow
    total_spent: Decimal
    visit_count: int
    last_visit: Optional[str]


def sale_date(sale: SaleRow) -> date:
    return datetime.fromisoformat(sale.timestamp_iso).date()


def dashboard_summary(context: RuntimeContext, today: Optional[date] = None) -> DashboardSummary:
    """Summarize sales and open tailoring work for ``today``.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        today (date | None): Day to report on. Defaults to the current UTC date.

    Returns:
        DashboardSummary: Totals for ``today``, the five best sellers of all
            time by line revenue (grouped by the product name on the sale),
            and daily totals for the last seven days, oldest first.
    """
    today = today or datetime.now(UTC).date()
    sales = core_logic.list_sales(context)

    todays_sales = [sale for sale in sales if sale_date(sale) == today]
    daily_total = sum((sale.total for sale in todays_sales), Decimal("0"))
    items_today = sum(item.quantity for sale in todays_sales for item in sale.items)

    by_name: Dict[str, Dict[str, Any]] = {}
    for sale in sales:
        for item in sale.items:
            entry = by_name.setdefault(item.product_name, {"quantity": 0, "revenue": Decimal("0")})
            entry["quantity"] += item.quantity
            entry["revenue"] += item.price * item.quantity
    ranked = sorted(by_name.items(), key=lambda pair: pair[1]["revenue"], reverse=True)
    top_selling = [
        TopProduct(product_name=name, quantity=entry["quantity"], revenue=entry["revenue"])
        for name, entry in ranked[:TOP_SELLING_LIMIT]
    ]

    window = [today - timedelta(days=offset) for offset in range(SALES_TREND_DAYS - 1, -1, -1)]
    totals_by_day = {day: Decimal("0") for day in window}
    for sale in sales:
        day = sale_date(sale)
        if day in totals_by_day:
            totals_by_day[day] += sale.total

    summary = DashboardSummary(
        daily_sales=daily_total,
        items_sold_today=items_today,
        pending_repairs=core_logic.count_open_repairs(context),
        top_selling=top_selling,
        sales_by_day=[DailySales(day=day, total=totals_by_day[day]) for day in window],
    )
    log.debug("Built dashboard for %s: %s sold, %d items", today, daily_total, items_today)
    return summary


def search_sales(context: RuntimeContext, term: str) -> List[SaleRow]:
    """Filter sales on id, cashier or customer name, ignoring case."""
    needle = term.strip().lower()
    if not needle:
        return core_logic.list_sales(context)
    return [
        sale
        for sale in core_logic.list_sales(context)
        if needle in sale.sale_id.lower()
        or needle in sale.cashier.lower()
        or needle in (sale.customer_name or "").lower()
    ]


def sales_stats(sales: Iterable[SaleRow]) -> Dict[str, Any]:
    sales = list(sales)
    return {"total": sum((sale.total for sale in sales), Decimal("0")), "count": len(sales)}


def customer_analysis(context: RuntimeContext) -> List[CustomerSummary]:
    """Aggregate spend per customer from the sales that reference them.

    Customers without purchases are included with zero spend. The result is
    sorted by ``total_spent``, highest first.
    """
    sales_by_customer: Dict[str, List[SaleRow]] = {}
    for sale in core_logic.list_sales(context):
        if sale.customer_id:
            sales_by_customer.setdefault(sale.customer_id, []).append(sale)

    summaries = []
    for customer in core_logic.list_customers(context):
        history = sales_by_customer.get(customer.customer_id, [])
        summaries.append(
            CustomerSummary(
                customer=customer,
                total_spent=sum((sale.total for sale in history), Decimal("0")),
                visit_count=len(history),
                last_visit=max((sale.timestamp_iso for sale in history), default=None),
            )
        )
    summaries.sort(key=lambda summary: summary.total_spent, reverse=True)
    return summaries


def _flatten(text: Optional[str]) -> str:
    return " ".join((text or "").splitlines())


def export_customers_csv(context: RuntimeContext, destination: Path) -> Path:
    """Write the customer analysis as a CSV file Excel opens with accents intact.

    The file is UTF-8 with a byte order mark. Line breaks inside notes are
    replaced with spaces so each customer stays on one row.
    """
    destination = Path(destination).expanduser().resolve()
    destination.parent.mkdir(parents=True, exist_ok=True)
    summaries = customer_analysis(context)
    with destination.open("w", encoding="utf-8-sig", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(CUSTOMER_CSV_COLUMNS)
        for summary in summaries:
            customer = summary.customer
            writer.writerow(
                [
                    customer.customer_name,
                    customer.phone,
                    customer.email or "",
                    summary.visit_count,
                    f"{summary.total_spent:.2f}",
                    _flatten(customer.notes),
                ]
            )
    log.info("Exported %d customer(s) to '%s'", len(summaries), destination)
    return destination


def _auto_width(ws: Any) -> None:
    """Auto-fit column widths based on content."""
    for col_idx in range(1, ws.max_column + 1):
        max_len = 0
        col_letter = get_column_letter(col_idx)
        for row in ws.iter_rows(min_col=col_idx, max_col=col_idx, values_only=True):
            if row[0] is not None:
                max_len = max(max_len, len(str(row[0])))
        ws.column_dimensions[col_letter].width = min(max_len + 4, 40)


def _write_header_row(ws: Any, row: int, values: List[str]) -> None:
    for col, val in enumerate(values, 1):
        cell = ws.cell(row=row, column=col, value=val)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _LEFT


def export_sales_report_xlsx(context: RuntimeContext, destination: Path) -> Path:
    """Write every committed sale to a styled workbook with a totals row.

    Args:
        context (RuntimeContext): Runtime context providing workbook access and
            caches.
        destination (Path): Where the ``.xlsx`` report is saved.

    Returns:
        Path: Resolved location of the written report.
    """
    destination = Path(destination).expanduser().resolve()
    sales = core_logic.list_sales(context)

    wb = Workbook()
    ws = wb.active
    ws.title = "Sales Report"
    ws.cell(row=1, column=1, value=context.settings.store_name).font = Font(name="Calibri", bold=True, size=14)
    ws.cell(row=2, column=1, value=f"Currency: {context.settings.store.currency}").font = Font(
        name="Calibri", size=10, italic=True
    )
    _write_header_row(ws, 4, SALES_REPORT_COLUMNS)

    row = 5
    for sale in sales:
        values = [
            sale.sale_id,
            sale.timestamp_iso,
            sale.customer_name or "",
            sale.cashier,
            sale.payment_method,
            sum(item.quantity for item in sale.items),
            sale.subtotal,
            sale.discount,
            sale.total,
        ]
        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row, column=col, value=value)
            if col >= 7:
                cell.number_format = _MONEY_FMT
                cell.alignment = _RIGHT
        row += 1

    stats = sales_stats(sales)
    ws.cell(row=row, column=1, value=f"Total ({stats['count']} sales)").font = _TOTAL_FONT
    total_cell = ws.cell(row=row, column=len(SALES_REPORT_COLUMNS), value=stats["total"])
    total_cell.number_format = _MONEY_FMT
    total_cell.font = _TOTAL_FONT
    total_cell.border = _TOTAL_BORDER
    total_cell.alignment = _RIGHT

    _auto_width(ws)
    destination.parent.mkdir(parents=True, exist_ok=True)
    wb.save(destination)
    log.info("Exported %d sale(s) to '%s'", stats["count"], destination)
    return destination


__all__ = [
    "TopProduct",
    "DailySales",
    "DashboardSummary",
    "CustomerSummary",
    "dashboard_summary",
    "search_sales",
    "sales_stats",
    "customer_analysis",
    "export_customers_csv",
    "export_sales_report_xlsx",
]
