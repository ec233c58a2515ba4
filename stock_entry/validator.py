"""
Pre-submission checks for a stock entry.

Checks:
  Entry:     store / supplier / arrival date present
  Payments:  advance payment needs a method; splits must add up to the total
  Balance:   supplier balance covers the entry (supplier-balance mode only)
  Lines:     at least one line; every line resolved; quantity history mismatch

Every error blocks submission. Warnings are shown but never block.
"""
import logging
from typing import Optional, Sequence

from models.entry import BalanceCheck, EntryContext, PaymentMode, SupplierBalanceSnapshot
from models.line_item import LineItem
from models.result import SubmissionIssue
from .aggregator import payments_sum
from .numbers import parse_number

logger = logging.getLogger(__name__)

PAYMENT_TOLERANCE = 0.01


class SubmissionValidator:
    """
    Usage:
        validator = SubmissionValidator()
        issues = validator.validate(context, items, total, supplier, balance_check)
    """

    def __init__(self, payment_tolerance: float = PAYMENT_TOLERANCE):
        self.payment_tolerance = payment_tolerance

    def validate(
        self,
        context: EntryContext,
        items: Sequence[LineItem],
        total: float,
        supplier: Optional[SupplierBalanceSnapshot] = None,
        balance_check: Optional[BalanceCheck] = None,
    ) -> list[SubmissionIssue]:
        issues: list[SubmissionIssue] = []
        issues.extend(self._check_common_fields(context))
        issues.extend(self._check_payments(context, total))
        issues.extend(self._check_balance(context, supplier, balance_check))
        issues.extend(self._check_items(items))
        if issues:
            logger.debug("Submission check: %d issue(s)", len(issues))
        return issues

    # ------------------------------------------------------------------
    # Entry-wide checks
    # ------------------------------------------------------------------

    def _check_common_fields(self, context: EntryContext) -> list[SubmissionIssue]:
        missing = context.missing_common_fields
        if not missing:
            return []
        return [SubmissionIssue(
            type="missing_common_fields",
            severity="error",
            description=f"Fill in the entry details first: {', '.join(missing)}",
            field=",".join(missing),
        )]

    def _check_payments(self, context: EntryContext, total: float) -> list[SubmissionIssue]:
        issues = []
        advance = parse_number(context.advance_of_debt)
        if context.is_debt and advance and advance > 0 and not context.deposit_payment_method:
            issues.append(SubmissionIssue(
                type="missing_advance_payment_method",
                severity="error",
                description="Choose a payment method for the advance payment",
                field="deposit_payment_method",
                actual_value=context.advance_of_debt,
            ))

        if context.payment_mode == PaymentMode.PAYMENT and context.payments:
            paid = payments_sum(context.payments)
            if abs(paid - total) > self.payment_tolerance:
                issues.append(SubmissionIssue(
                    type="payments_total_mismatch",
                    severity="error",
                    description=f"Payments add up to {paid:.2f} but the entry total is {total:.2f}",
                    field="payments",
                    actual_value=f"{paid:.2f}",
                    expected_value=f"{total:.2f}",
                ))
        return issues

    def _check_balance(
        self,
        context: EntryContext,
        supplier: Optional[SupplierBalanceSnapshot],
        check: Optional[BalanceCheck],
    ) -> list[SubmissionIssue]:
        if not context.use_supplier_balance or not context.supplier:
            return []
        if supplier is None or check is None:
            return [SubmissionIssue(
                type="supplier_balance_unknown",
                severity="error",
                description="Supplier balance has not been loaded",
                field="supplier",
            )]
        if check.sufficient:
            return []
        return [SubmissionIssue(
            type="insufficient_supplier_balance",
            severity="error",
            description=(
                f"Insufficient supplier balance: {check.available_balance:.2f} {check.currency} "
                f"available, {check.required_total:.2f} {check.currency} required"
            ),
            field="supplier_balance_type",
            actual_value=f"{check.available_balance:.2f}",
            expected_value=f"{check.required_total:.2f}",
        )]

    # ------------------------------------------------------------------
    # Line checks
    # ------------------------------------------------------------------

    def _check_items(self, items: Sequence[LineItem]) -> list[SubmissionIssue]:
        if not items:
            return [SubmissionIssue(
                type="no_line_items",
                severity="error",
                description="Add at least one line item",
                field="stocks",
            )]

        issues = []
        unresolved = [i.id for i in items if not i.is_resolved]
        if unresolved:
            issues.append(SubmissionIssue(
                type="unresolved_line_items",
                severity="error",
                description=f"{len(unresolved)} line item(s) are not calculated yet",
                field=",".join(unresolved),
            ))

        for item in items:
            if item.quantity_mismatch:
                issues.append(SubmissionIssue(
                    type="quantity_history_mismatch",
                    severity="warning",
                    description=(
                        f"{item.id}: live quantity {item.get('quantity') or '0'} differs from the "
                        f"recorded quantity {item.display_quantity}; the recorded quantity is submitted"
                    ),
                    field=item.id,
                    actual_value=item.get("quantity"),
                    expected_value=item.display_quantity,
                ))
        return issues
