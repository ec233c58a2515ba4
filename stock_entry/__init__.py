from .backend import BackendClient
from .derivation import recalculate, apply_edit, rederive, apply_measurement_input
from .resolver import FieldConfigurationResolver, ResolvedConfiguration, merge_configuration
from .aggregator import compute_totals
from .balance import check_balance
from .collection import LineItemCollection
from .validator import SubmissionValidator
from .payload import build_payload
from .drafts import DraftSnapshot, DraftStore, InMemoryDraftStore, SqliteDraftStore
from .catalog import ProductCatalog
from .report import EntryReport
from .session import StockEntrySession

__all__ = [
    "BackendClient", "recalculate", "apply_edit", "rederive", "apply_measurement_input",
    "FieldConfigurationResolver", "ResolvedConfiguration", "merge_configuration",
    "compute_totals", "check_balance", "LineItemCollection", "SubmissionValidator",
    "build_payload", "DraftSnapshot", "DraftStore", "InMemoryDraftStore", "SqliteDraftStore",
    "ProductCatalog", "EntryReport", "StockEntrySession",
]
