"""Webhook actions and what each one asks of us.

Every supported event kind has an action enum with an ``ignored`` member that
absorbs actions we do not react to, and a table mapping actions to decisions.
"""

from enum import Enum
from typing import Dict, Optional


class _Action(str, Enum):
    @classmethod
    def parse(cls, value: str):
        try:
            return cls(value)
        except ValueError:
            return cls("ignored")


class SuiteAction(_Action):
    requested = "requested"
    rerequested = "rerequested"
    ignored = "ignored"


class RunAction(_Action):
    created = "created"
    rerequested = "rerequested"
    requested_action = "requested_action"
    ignored = "ignored"


class PullRequestAction(_Action):
    opened = "opened"
    synchronize = "synchronize"
    ignored = "ignored"


class SuiteDecision(Enum):
    ensure = "ensure"
    ensure_and_rescan = "ensure_and_rescan"
    ignore = "ignore"


class RunDecision(Enum):
    schedule = "schedule"
    ignore_failure = "ignore_failure"
    cancel = "cancel"
    ignore = "ignore"


class PullRequestDecision(Enum):
    check_fork = "check_fork"
    ignore = "ignore"


SUITE_DECISIONS: Dict[SuiteAction, SuiteDecision] = {
    SuiteAction.requested: SuiteDecision.ensure,
    SuiteAction.rerequested: SuiteDecision.ensure_and_rescan,
    SuiteAction.ignored: SuiteDecision.ignore,
}

# Identifiers of the buttons we attach to our check runs.
REQUESTED_ACTION_DECISIONS: Dict[str, RunDecision] = {
    "recompute": RunDecision.schedule,
    "ignore": RunDecision.ignore_failure,
    "cancel": RunDecision.cancel,
}

PULL_REQUEST_DECISIONS: Dict[PullRequestAction, PullRequestDecision] = {
    PullRequestAction.opened: PullRequestDecision.check_fork,
    PullRequestAction.synchronize: PullRequestDecision.check_fork,
    PullRequestAction.ignored: PullRequestDecision.ignore,
}


def decide_suite(action: str) -> SuiteDecision:
    return SUITE_DECISIONS[SuiteAction.parse(action)]


def decide_run(
    action: str, status: str, requested_action: Optional[str] = None
) -> RunDecision:
    parsed = RunAction.parse(action)
    if parsed is RunAction.created:
        # Runs created as completed already carry their results.
        if status == "completed":
            return RunDecision.ignore
        return RunDecision.schedule
    if parsed is RunAction.rerequested:
        return RunDecision.schedule
    if parsed is RunAction.requested_action:
        return REQUESTED_ACTION_DECISIONS.get(
            requested_action or "", RunDecision.ignore
        )
    return RunDecision.ignore


def decide_pull_request(action: str) -> PullRequestDecision:
    return PULL_REQUEST_DECISIONS[PullRequestAction.parse(action)]
