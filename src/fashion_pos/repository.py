"""Storage seam for committed sales.

``commit_sale`` only needs to list existing sales (to keep identifiers unique)
and to store a new one. Two implementations are provided: one backed by the
master workbook and an in-memory one for tests and embedding.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Protocol

from openpyxl.workbook import Workbook

from . import data_manager, log
from .data_manager import SaleRow
from .errors import PersistenceError


class SalesRepository(Protocol):
    def list(self) -> List[SaleRow]:
        """Return committed sales, most recent first."""

    def append(self, sale: SaleRow) -> None:
        """Store ``sale`` as the most recent sale or raise ``PersistenceError``."""


class InMemorySalesRepository:
    """Keeps sales in a Python list, newest first."""

    def __init__(self, sales: List[SaleRow] | None = None) -> None:
        self._sales: List[SaleRow] = list(sales or [])

    def list(self) -> List[SaleRow]:
        return list(self._sales)

    def append(self, sale: SaleRow) -> None:
        self._sales.insert(0, sale)


class WorkbookSalesRepository:
    """Writes sales to the ``Sales`` and ``SaleItems`` sheets and saves at once.

    A failed save rolls the inserted rows back out of the in-memory workbook
    so the sheets look exactly as they did before the call.
    """

    def __init__(self, workbook: Workbook, data_file: Path) -> None:
        self.workbook = workbook
        self.data_file = data_file

    def list(self) -> List[SaleRow]:
        return list(data_manager.iter_sales(self.workbook))

    def append(self, sale: SaleRow) -> None:
        data_manager.prepend_sale(self.workbook, sale)
        try:
            data_manager.save_workbook(self.workbook, self.data_file)
        except OSError as exc:
            data_manager.remove_sale(self.workbook, sale.sale_id)
            log.error("Failed to save sale '%s' to '%s': %s", sale.sale_id, self.data_file, exc)
            raise PersistenceError(f"Could not save sale {sale.sale_id}") from exc


__all__ = ["SalesRepository", "InMemorySalesRepository", "WorkbookSalesRepository"]
