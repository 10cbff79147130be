from datetime import datetime
import re
from typing import Annotated, List, Literal, Optional

import pydantic
from pydantic import AfterValidator

_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def validate_commit_sha(sha: str) -> str:
    if len(sha) != 40:
        raise ValueError("Commit hash must have length 40")
    if not _SHA_RE.match(sha):
        raise ValueError("Commit hash must be lowercase hexadecimal")
    return sha


CommitSha = Annotated[str, AfterValidator(validate_commit_sha)]


class Model(pydantic.BaseModel):
    pass


class User(Model):
    login: str
    id: Optional[int] = None


class Repository(Model):
    id: int
    name: str
    owner: User
    full_name: Optional[str] = None
    url: Optional[str] = None
    html_url: Optional[str] = None
    private: Optional[bool] = None


class RepositoryRef(Model):
    id: int
    name: Optional[str] = None
    url: Optional[str] = None


class PrConnection(Model):
    ref: str
    sha: CommitSha
    repo: Optional[RepositoryRef] = None


class PartialPullRequest(Model):
    number: int
    id: Optional[int] = None
    url: Optional[str] = None
    base: PrConnection
    head: PrConnection

    @property
    def is_cross_fork(self) -> bool:
        # A deleted fork has no head repo, which still makes it a fork.
        if self.base.repo is None:
            return False
        return self.head.repo is None or self.head.repo.id != self.base.repo.id

    def targets(self, repo_id: int) -> bool:
        return self.base.repo is not None and self.base.repo.id == repo_id


class PullRequest(PartialPullRequest):
    user: User
    state: Literal["open", "closed"] = "open"
    title: Optional[str] = None
    html_url: Optional[str] = None

    def __str__(self) -> str:
        return f"PR(#{self.number}, {self.head.sha[:7]})"


class App(Model):
    id: int
    name: Optional[str] = None
    slug: Optional[str] = None


class Installation(Model):
    id: int


class CheckSuite(Model):
    id: int
    head_sha: CommitSha
    head_branch: Optional[str] = None
    status: Optional[
        Literal["requested", "queued", "in_progress", "completed", "pending"]
    ] = None
    conclusion: Optional[str] = None
    app: App
    pull_requests: List[PartialPullRequest] = pydantic.Field(default_factory=list)


class PartialCheckSuite(Model):
    id: int


class CheckRunOutput(Model):
    title: Optional[str] = None
    summary: Optional[str] = None
    text: Optional[str] = None


class CheckRunAction(Model):
    label: str
    description: str
    identifier: str


class CheckRun(Model):
    id: int
    name: str
    head_sha: CommitSha
    status: Literal[
        "queued", "in_progress", "completed", "waiting", "requested", "pending"
    ]
    conclusion: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    app: App
    check_suite: Optional[PartialCheckSuite] = None
    output: Optional[CheckRunOutput] = None
    html_url: Optional[str] = None
    pull_requests: List[PartialPullRequest] = pydantic.Field(default_factory=list)


class RequestedAction(Model):
    identifier: str


class CheckSuiteEvent(Model):
    action: str
    check_suite: CheckSuite
    repository: Repository
    sender: User
    installation: Installation


class CheckRunEvent(Model):
    action: str
    check_run: CheckRun
    requested_action: Optional[RequestedAction] = None
    repository: Repository
    sender: User
    installation: Installation


class PullRequestEvent(Model):
    action: str
    number: int
    pull_request: PullRequest
    repository: Repository
    sender: User
    installation: Optional[Installation] = None
