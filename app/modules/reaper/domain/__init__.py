from .duration import parse_duration, format_duration
from .enumerator import enumerate_resources
from .expiry import ExpiryDecision, ExpiryEvaluator, ExpiryStatus
from .executor import DeletionExecutor, DeletionOutcome
from .lister import PaginatedLister
from .service import ReconciliationResult, ReconciliationService

__all__ = [
    "parse_duration",
    "format_duration",
    "enumerate_resources",
    "ExpiryDecision",
    "ExpiryEvaluator",
    "ExpiryStatus",
    "DeletionExecutor",
    "DeletionOutcome",
    "PaginatedLister",
    "ReconciliationResult",
    "ReconciliationService",
]
