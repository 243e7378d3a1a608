"""发票数据（由上游 PDF/OCR 流程提供，这里只定义分析所需的字段）。"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional


@dataclass
class InvoiceLineItem:
    description: str
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    total_price: Decimal = Decimal("0")


@dataclass
class Invoice:
    file_name: str
    vendor_name: Optional[str] = None
    invoice_number: Optional[str] = None
    invoice_date: Optional[date] = None
    total_amount: Decimal = Decimal("0")
    line_items: List[InvoiceLineItem] = field(default_factory=list)
