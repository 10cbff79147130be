from typing import Iterable

from wptchecks.flags import FeatureFlags, Flag


class AccessGate:
    """Decides whether a sender may trigger wpt.fyi checks.

    Checks are enabled for everyone on production via the ``checksAllUsers``
    flag, and for a small set of users otherwise, so that staging does not
    add a confusing second set of checks to every pull request.
    """

    def __init__(self, allowed_senders: Iterable[str], flags: FeatureFlags):
        self.allowed_senders = frozenset(allowed_senders)
        self.flags = flags

    def is_authorized(self, login: str) -> bool:
        if self.flags.is_enabled(Flag.checks_all_users):
            return True
        return login in self.allowed_senders
