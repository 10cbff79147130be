from enum import Enum

from wptchecks.model import AppIds


class AppIdentity(Enum):
    wptfyi = "wptfyi"
    wptfyi_staging = "wptfyi_staging"
    wptfyi_staging_variant = "wptfyi_staging_variant"
    azure_pipelines = "azure_pipelines"
    taskcluster = "taskcluster"
    unknown = "unknown"

    @property
    def is_native(self) -> bool:
        return self in (
            AppIdentity.wptfyi,
            AppIdentity.wptfyi_staging,
            AppIdentity.wptfyi_staging_variant,
        )


def resolve_app(app_id: int, app_ids: AppIds) -> AppIdentity:
    if app_id == app_ids.wptfyi:
        return AppIdentity.wptfyi
    if app_id == app_ids.wptfyi_staging:
        return AppIdentity.wptfyi_staging
    if (
        app_ids.wptfyi_staging_variant is not None
        and app_id == app_ids.wptfyi_staging_variant
    ):
        return AppIdentity.wptfyi_staging_variant
    if app_id == app_ids.azure_pipelines:
        return AppIdentity.azure_pipelines
    if app_id == app_ids.taskcluster:
        return AppIdentity.taskcluster
    return AppIdentity.unknown
