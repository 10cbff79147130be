from enum import Enum
from typing import Iterable, Mapping, Optional, Protocol


class Flag(str, Enum):
    checks_all_users = "checksAllUsers"
    process_azure_check_runs = "processAzureCheckRunEvents"
    process_taskcluster_check_runs = "processTaskclusterCheckRunEvents"


class FeatureFlags(Protocol):
    def is_enabled(self, flag: Flag) -> bool:
        ...


class FlagSnapshot:
    """Flag values frozen for the duration of a single webhook delivery."""

    def __init__(
        self,
        enabled: Iterable[str] = (),
        overrides: Optional[Mapping[str, bool]] = None,
    ):
        values = {name: True for name in enabled}
        values.update(overrides or {})
        self._values = {flag: values.get(flag.value, False) for flag in Flag}

    def is_enabled(self, flag: Flag) -> bool:
        return self._values[Flag(flag)]

    def __repr__(self) -> str:
        on = [flag.value for flag, enabled in self._values.items() if enabled]
        return f"FlagSnapshot({on})"
