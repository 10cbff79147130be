from wptchecks.storage.check_store import CheckStore, EnsureResult
from wptchecks.storage.types import CheckSuiteRow, TestRunRow

__all__ = [
    "CheckStore",
    "CheckSuiteRow",
    "EnsureResult",
    "TestRunRow",
]
