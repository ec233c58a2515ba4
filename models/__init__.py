from .line_item import (
    FieldName, FieldDescriptor, CalculationMetadata, LineItem, LineItemStatus,
    ALL_FIELDS, STRUCTURAL_FIELDS, MONETARY_FIELDS,
)
from .entry import (
    PaymentMode, PaymentSplit, EntryContext, SupplierBalanceSnapshot,
    EntryTotals, BalanceCheck, PaymentSummary,
)
from .payload import ResolverRequest, PaymentPayload, StockPayload, StockEntryPayload
from .product import Product, UnitRef, Measurement
from .result import SubmissionIssue

__all__ = [
    "FieldName", "FieldDescriptor", "CalculationMetadata", "LineItem", "LineItemStatus",
    "ALL_FIELDS", "STRUCTURAL_FIELDS", "MONETARY_FIELDS",
    "PaymentMode", "PaymentSplit", "EntryContext", "SupplierBalanceSnapshot",
    "EntryTotals", "BalanceCheck", "PaymentSummary",
    "ResolverRequest", "PaymentPayload", "StockPayload", "StockEntryPayload",
    "Product", "UnitRef", "Measurement",
    "SubmissionIssue",
]
