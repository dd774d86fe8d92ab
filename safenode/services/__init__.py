"""Service layer exports."""

from .identity_resolver import IdentityResolver
from .sessions import LookupRetryPolicy, SessionIssuer, SessionValidator
from .sso import LoginResult, SSOService
from .transaction_store import InMemoryTransactionStore, TransactionStore, run_sweeper

__all__ = [
    "IdentityResolver",
    "InMemoryTransactionStore",
    "LoginResult",
    "LookupRetryPolicy",
    "SSOService",
    "SessionIssuer",
    "SessionValidator",
    "TransactionStore",
    "run_sweeper",
]
