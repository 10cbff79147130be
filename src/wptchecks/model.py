import re
from typing import FrozenSet, List, Optional, Tuple

import pydantic
import yaml

from wptchecks.product import ProductSpec, parse_product_spec

DEFAULT_ALLOWED_SENDERS = frozenset(
    {
        "chromium-wpt-export-bot",
        "gsnedders",
        "jgraham",
        "jugglinmike",
        "lukebjerring",
        "Ms2ger",
    }
)

# Matches check run names created by the wpt.fyi apps, e.g. "wpt.fyi - chrome".
DEFAULT_RUN_NAME_PATTERN = r"^(?:(?:staging\.)?wpt\.fyi - )(.*)$"

DEFAULT_BROWSER_NAMES = (
    "chrome",
    "edge",
    "firefox",
    "safari",
    "android_webview",
    "chrome_android",
    "chrome_ios",
    "deno",
    "epiphany",
    "firefox_android",
    "flow",
    "ladybird",
    "node.js",
    "servo",
    "uc",
    "webkitgtk",
    "wktr",
)


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(
        extra="forbid", frozen=True, populate_by_name=True
    )


class AppIds(Model):
    wptfyi: int = 23318
    wptfyi_staging: int = pydantic.Field(19965, alias="wptfyi-staging")
    wptfyi_staging_variant: Optional[int] = pydantic.Field(
        None, alias="wptfyi-staging-variant"
    )
    azure_pipelines: int = pydantic.Field(9426, alias="azure-pipelines")
    taskcluster: int = 13257


class HomeRepository(Model):
    id: int = 3618133
    owner: str = "web-platform-tests"
    name: str = "wpt"
    installation_id: int = pydantic.Field(577173, alias="installation-id")
    staging_installation_id: int = pydantic.Field(
        449270, alias="staging-installation-id"
    )


class ChecksConfig(Model):
    allowed_senders: FrozenSet[str] = pydantic.Field(
        DEFAULT_ALLOWED_SENDERS, alias="allowed-senders"
    )
    run_name_pattern: str = pydantic.Field(
        DEFAULT_RUN_NAME_PATTERN, alias="run-name-pattern"
    )
    browser_names: Tuple[str, ...] = pydantic.Field(
        DEFAULT_BROWSER_NAMES, alias="browser-names"
    )
    app_ids: AppIds = pydantic.Field(default_factory=AppIds, alias="app-ids")
    home_repository: HomeRepository = pydantic.Field(
        default_factory=HomeRepository, alias="home-repository"
    )
    # Products rescanned when a check suite is rerequested, empty means all
    # products that have stored runs for the commit.
    suite_rescan_products: Tuple[str, ...] = pydantic.Field(
        (), alias="suite-rescan-products"
    )

    @pydantic.field_validator("run_name_pattern")
    @classmethod
    def validate_run_name_pattern(cls, value: str) -> str:
        try:
            pattern = re.compile(value)
        except re.error as e:
            raise ValueError(f"Invalid run name pattern: {e}")
        if pattern.groups != 1:
            raise ValueError("Run name pattern must have exactly one group")
        return value

    @pydantic.model_validator(mode="after")
    def validate_rescan_products(self) -> "ChecksConfig":
        self.rescan_products()
        return self

    def rescan_products(self) -> List[ProductSpec]:
        return [
            parse_product_spec(p, self.browser_names)
            for p in self.suite_rescan_products
        ]


class InvalidConfig(Exception):
    raw_config: str
    source: str

    def __init__(self, *args, **kwargs):
        self.raw_config = kwargs.pop("raw_config")
        self.source = kwargs.pop("source")
        super().__init__(*args, **kwargs)


def load_checks_config(path: Optional[str] = None) -> ChecksConfig:
    if path is None:
        return ChecksConfig()

    with open(path) as fh:
        raw_config = fh.read()

    data = yaml.safe_load(raw_config)
    try:
        return ChecksConfig() if data is None else ChecksConfig.model_validate(data)
    except pydantic.ValidationError as e:
        raise InvalidConfig(str(e), raw_config=raw_config, source=path)
