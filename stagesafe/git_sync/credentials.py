"""Token authentication for operations that talk to a remote."""

import base64
from dataclasses import dataclass, field
from typing import Dict, Optional

OAUTH_USERNAME = "oauth2"


@dataclass(frozen=True)
class BasicAuth:
    """HTTP basic credentials presented to the remote."""
    username: str
    password: str = field(repr=False)

    def authorization_header(self) -> str:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return f"Authorization: Basic {base64.b64encode(raw).decode('ascii')}"


def auth_for(token: Optional[str]) -> Optional[BasicAuth]:
    """Credentials for ``token``, or None to talk to the remote anonymously."""
    if token is None:
        return None
    return BasicAuth(username=OAUTH_USERNAME, password=token)


def remote_env(auth: Optional[BasicAuth]) -> Dict[str, str]:
    """
    Environment for a git process that contacts a remote.

    Credentials travel as a one-off ``http.extraHeader`` set through
    GIT_CONFIG_* variables, so they never reach the command line, a config
    file or GitPython's error messages.
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if auth is not None:
        env.update({
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": auth.authorization_header(),
        })
    return env
