import os
from typing import Mapping, Optional, Protocol

WEBHOOK_SECRET_NAME = "github-check-webhook-secret"


class SecretNotFound(KeyError):
    pass


class SecretStore(Protocol):
    def get(self, name: str) -> str:
        ...


class EnvSecretStore:
    """Looks secrets up in the environment.

    ``github-check-webhook-secret`` is read from ``GITHUB_CHECK_WEBHOOK_SECRET``.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = os.environ if environ is None else environ

    @staticmethod
    def variable_name(name: str) -> str:
        return name.upper().replace("-", "_").replace(".", "_")

    def get(self, name: str) -> str:
        value = self.environ.get(self.variable_name(name))
        if not value:
            raise SecretNotFound(name)
        return value
