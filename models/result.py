from pydantic import BaseModel
from typing import Optional, Literal


IssueType = Literal[
    # Entry-wide
    "missing_common_fields",
    "missing_advance_payment_method",
    "payments_total_mismatch",
    # Supplier balance
    "insufficient_supplier_balance",
    "supplier_balance_unknown",
    # Line items
    "no_line_items",
    "unresolved_line_items",
    "quantity_history_mismatch",
]

SeverityLevel = Literal["error", "warning"]


class SubmissionIssue(BaseModel):
    """A single problem found while checking an entry before submission."""
    type: str                               # One of IssueType values
    severity: SeverityLevel                 # error blocks submission, warning does not
    description: str                        # Human-readable explanation
    field: Optional[str] = None             # Which field or item is affected
    actual_value: Optional[str] = None      # What the entry holds
    expected_value: Optional[str] = None    # What was required

    @property
    def blocking(self) -> bool:
        return self.severity == "error"
