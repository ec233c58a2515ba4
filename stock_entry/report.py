"""
Plain-text summary of a stock entry, rendered with Jinja2.

The built-in template can be replaced by dropping entry_summary.txt.j2
into the config directory.
"""
import logging
from typing import Optional, Sequence

from jinja2 import ChoiceLoader, DictLoader, FileSystemLoader
from jinja2.sandbox import SandboxedEnvironment

from config import config_dir
from models.entry import BalanceCheck, EntryContext, EntryTotals, SupplierBalanceSnapshot
from models.line_item import FieldName, LineItem
from models.result import SubmissionIssue

logger = logging.getLogger(__name__)

TEMPLATE_NAME = "entry_summary.txt.j2"

DEFAULT_TEMPLATE = """\
Stock entry {{ entry_id or "(new)" }}
  store:     {{ context.store or "-" }}
  supplier:  {{ context.supplier or "-" }}{% if supplier and supplier.name %} ({{ supplier.name }}){% endif %}
  arrived:   {{ context.date_of_arrived or "-" }}
  payment:   {{ context.payment_mode.value }}
{%- for p in context.payments %}
    split {{ loop.index }}: {{ p.amount }} {{ p.payment_method }}
{%- endfor %}
{%- if context.is_debt %}
  debt:      {{ context.amount_of_debt or "0" }} (advance {{ context.advance_of_debt or "0" }})
{%- endif %}

Lines ({{ items | length }})
{%- for item in items %}
  [{{ item.status.value }}] {{ item.id }}{% if item.persisted_id %} #{{ item.persisted_id }}{% endif %} product={{ item.get(F.PRODUCT.value) or "-" }}
      qty {{ item.get(F.PURCHASE_UNIT_QUANTITY.value) or "-" }} x {{ item.get(F.QUANTITY.value) or "-" }} base units
      price {{ item.get(F.PRICE_PER_UNIT_CURRENCY.value) or "-" }} / total {{ item.get(F.TOTAL_IN_CURRENCY.value) or "-" }} (currency)
      price {{ item.get(F.PRICE_PER_UNIT_BASE.value) or "-" }} / total {{ item.get(F.TOTAL_IN_BASE.value) or "-" }} (base)
{%- if item.quantity_mismatch %}
      ! quantity changed since it was recorded: live {{ item.get(F.QUANTITY.value) or "0" }}, recorded {{ item.display_quantity }}
{%- endif %}
{%- endfor %}

Totals
  base currency lines:     {{ "%.2f" | format(totals.base_currency_total) }}
  foreign currency lines:  {{ "%.2f" | format(totals.foreign_currency_total) }} ({{ "%.2f" | format(totals.foreign_total_in_base) }} in base)
  entry total:             {{ "%.2f" | format(totals.total_in_base) }}
{%- if balance %}

Supplier balance ({{ balance.currency }})
  available: {{ "%.2f" | format(balance.available_balance) }}
  required:  {{ "%.2f" | format(balance.required_total) }}
  after:     {{ "%.2f" | format(balance.balance_after_purchase) }}{% if not balance.sufficient %}  INSUFFICIENT{% endif %}
{%- endif %}
{%- if issues %}

Issues
{%- for issue in issues %}
  {{ issue.severity | upper }} {{ issue.type }}: {{ issue.description }}
{%- endfor %}
{%- endif %}
"""


class EntryReport:

    def __init__(self) -> None:
        self.jinja_env = SandboxedEnvironment(
            loader=ChoiceLoader([
                FileSystemLoader(str(config_dir())),
                DictLoader({TEMPLATE_NAME: DEFAULT_TEMPLATE}),
            ]),
            keep_trailing_newline=True,
        )

    def render(
        self,
        context: EntryContext,
        items: Sequence[LineItem],
        totals: EntryTotals,
        entry_id: Optional[int] = None,
        supplier: Optional[SupplierBalanceSnapshot] = None,
        balance: Optional[BalanceCheck] = None,
        issues: Sequence[SubmissionIssue] = (),
    ) -> str:
        template = self.jinja_env.get_template(TEMPLATE_NAME)
        return template.render(
            entry_id=entry_id,
            context=context,
            items=list(items),
            totals=totals,
            supplier=supplier,
            balance=balance,
            issues=list(issues),
            F=FieldName,
        )
