"""Product specs as encoded in wpt.fyi check run names.

A product spec names a browser and, optionally, its version, the OS it ran
on, a set of run labels and a revision, e.g. ``chrome-89-linux[experimental]``
or ``firefox@abcdef0``.
"""

from __future__ import annotations

from dataclasses import dataclass
import re
from typing import FrozenSet, Iterable, Optional, Sequence

_VERSION_RE = re.compile(r"^\d+(?:\.\d+)*$")
_REVISION_RE = re.compile(r"^[0-9a-fA-F]{7,40}$")


class InvalidProductNameError(ValueError):
    pass


@dataclass(frozen=True)
class ProductSpec:
    browser_name: str
    browser_version: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    labels: FrozenSet[str] = frozenset()
    revision: Optional[str] = None

    @property
    def product(self) -> str:
        parts = [self.browser_name]
        for part in (self.browser_version, self.os_name, self.os_version):
            if part is None:
                break
            parts.append(part)
        return "-".join(parts)

    def __str__(self) -> str:
        s = self.product
        if self.labels:
            s += "[" + ",".join(sorted(self.labels)) + "]"
        if self.revision is not None:
            s += "@" + self.revision
        return s

    def matches(
        self,
        browser_name: str,
        browser_version: Optional[str] = None,
        os_name: Optional[str] = None,
        os_version: Optional[str] = None,
        labels: Iterable[str] = (),
    ) -> bool:
        if browser_name != self.browser_name:
            return False
        if not _version_matches(self.browser_version, browser_version):
            return False
        if self.os_name is not None and os_name != self.os_name:
            return False
        if not _version_matches(self.os_version, os_version):
            return False
        return self.labels.issubset(set(labels))


def _version_matches(prefix: Optional[str], version: Optional[str]) -> bool:
    if prefix is None:
        return True
    if version is None:
        return False
    return version == prefix or version.startswith(prefix + ".")


def parse_product_spec(spec: str, browser_names: Sequence[str]) -> ProductSpec:
    name = spec
    revision = None
    if "@" in name:
        pieces = name.split("@")
        if len(pieces) > 2:
            raise InvalidProductNameError(f"invalid product spec: {spec}")
        name, revision = pieces
        if not _REVISION_RE.match(revision):
            raise InvalidProductNameError(f"invalid revision in {spec}: {revision}")

    labels: FrozenSet[str] = frozenset()
    if "[" in name:
        pieces = name.split("[")
        if len(pieces) > 2 or not pieces[1].endswith("]"):
            raise InvalidProductNameError(f"invalid labels in {spec}")
        name = pieces[0]
        labels = frozenset(
            label.strip() for label in pieces[1][:-1].split(",") if label.strip()
        )

    parts = name.split("-")
    if len(parts) > 4:
        raise InvalidProductNameError(f"too many dash-separated parts in {spec}")

    browser_name = parts[0].lower()
    if browser_name not in browser_names:
        raise InvalidProductNameError(f"invalid browser name: {parts[0]!r}")

    browser_version = parts[1] if len(parts) > 1 else None
    if browser_version is not None and not _VERSION_RE.match(browser_version):
        raise InvalidProductNameError(f"invalid browser version: {browser_version}")

    os_name = parts[2] if len(parts) > 2 else None
    if os_name == "":
        raise InvalidProductNameError(f"empty OS name in {spec}")

    os_version = parts[3] if len(parts) > 3 else None
    if os_version is not None and not _VERSION_RE.match(os_version):
        raise InvalidProductNameError(f"invalid OS version: {os_version}")

    return ProductSpec(
        browser_name=browser_name,
        browser_version=browser_version,
        os_name=os_name,
        os_version=os_version,
        labels=labels,
        revision=revision,
    )


class ProductNameResolver:
    def __init__(self, run_name_pattern: str, browser_names: Sequence[str]):
        self.pattern = re.compile(run_name_pattern)
        self.browser_names = tuple(browser_names)

    def strip(self, name: str) -> str:
        """Remove a ``wpt.fyi - `` style prefix from a check run name."""
        if m := self.pattern.match(name):
            return m.group(1)
        return name

    def resolve(self, name: str) -> ProductSpec:
        return parse_product_spec(self.strip(name), self.browser_names)
