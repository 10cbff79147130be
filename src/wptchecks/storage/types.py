from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, List

import pydantic
from pydantic import BeforeValidator, PlainSerializer

from wptchecks.product import ProductSpec


def _parse_utc_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    else:
        raise ValueError(f"Unsupported datetime value type: {type(value)!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _format_utc_datetime(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


UTCDateTime = Annotated[
    datetime,
    BeforeValidator(_parse_utc_datetime),
    PlainSerializer(_format_utc_datetime, return_type=str, when_used="always"),
]


class StorageModel(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="ignore", validate_assignment=True)


class CheckSuiteRow(StorageModel):
    sha: str
    owner: str
    repo: str
    app_id: int
    installation_id: int
    pr_numbers: List[int] = pydantic.Field(default_factory=list)
    created_at: UTCDateTime | None = None

    @property
    def key(self) -> str:
        return f"{self.owner}/{self.repo}@{self.sha}:{self.app_id}"


class TestRunRow(StorageModel):
    __test__ = False

    id: int | None = None
    browser_name: str
    browser_version: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    full_revision_hash: str
    labels: List[str] = pydantic.Field(default_factory=list)
    results_url: str | None = None
    time_start: UTCDateTime | None = None

    def matches(self, product: ProductSpec) -> bool:
        return product.matches(
            self.browser_name,
            browser_version=self.browser_version,
            os_name=self.os_name,
            os_version=self.os_version,
            labels=self.labels,
        )
