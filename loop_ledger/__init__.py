"""Public interface for the ``loop_ledger`` package.

Symbol re-exports only: record models and normalizers, date-range
resolution, aggregation views, and the cache with its store/mileage
collaborators.
"""

from .aggregation import (
    LedgerReport,
    LoopTypeFilter,
    build_report,
    compute_insights,
    filter_expenses,
    filter_loops,
    summarize_expenses,
    summarize_income,
    summarize_ledger,
)
from .cache import LedgerCache
from .date_range import DateRange, RangeKey, is_within_range, parse_local_date, resolve_range
from .errors import (
    LedgerError,
    MileageUnavailableError,
    RecordNotFoundError,
    StoreUnavailableError,
)
from .mileage import DistanceMatrixEstimator, Location, MileageEstimator
from .normalizers import RecordNormalizer, normalize_expense, normalize_loop, normalize_settings
from .notify import SubscriberRegistry
from .records import Expense, Loop, Settings
from .store import LedgerStore, in_memory_store

__all__ = [
    # Records
    "Expense",
    "Loop",
    "Settings",
    # Normalization
    "RecordNormalizer",
    "normalize_expense",
    "normalize_loop",
    "normalize_settings",
    # Date ranges
    "DateRange",
    "RangeKey",
    "is_within_range",
    "parse_local_date",
    "resolve_range",
    # Aggregation
    "LedgerReport",
    "LoopTypeFilter",
    "build_report",
    "compute_insights",
    "filter_expenses",
    "filter_loops",
    "summarize_expenses",
    "summarize_income",
    "summarize_ledger",
    # Cache and collaborators
    "DistanceMatrixEstimator",
    "LedgerCache",
    "LedgerStore",
    "Location",
    "MileageEstimator",
    "SubscriberRegistry",
    "in_memory_store",
    # Errors
    "LedgerError",
    "MileageUnavailableError",
    "RecordNotFoundError",
    "StoreUnavailableError",
]
