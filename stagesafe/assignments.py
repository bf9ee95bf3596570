"""
Client for the assignment service.

Downloads assignment archives into the working copy and validates the
token that authenticates both the download and the git remote.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from .config import SyncConfig
from .errors import AssignmentAccessError, AssignmentNotFoundError, InvalidTokenError

logger = logging.getLogger('stagesafe.assignments')

DOWNLOAD_STATUSES = (200, 201, 404, 401, 403, 422)
ACCESS_DENIED_STATUSES = (401, 403, 422)
DEFAULT_TOKEN_CHECK_URL = "https://hexlet.io/api/user/assignment_token/check"


def _error_message(response: httpx.Response) -> str:
    try:
        data = json.loads(response.content)
    except ValueError:
        return "Unknown"
    # A JSON body without a message yields an empty one.
    if not isinstance(data, dict):
        return ""
    return str(data.get("message") or "")


class AssignmentClient:
    """
    Async HTTP client for the assignment service.

    Args:
        api_host: Base URL of the service, e.g. ``https://hexlet.io``
        transport: Optional httpx transport, used by tests
        timeout: Request timeout in seconds
        token_check_url: Endpoint validating tokens
    """

    def __init__(
        self,
        api_host: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0,
        token_check_url: str = DEFAULT_TOKEN_CHECK_URL,
    ):
        self.api_host = api_host.rstrip("/")
        self.transport = transport
        self.timeout = timeout
        self.token_check_url = token_check_url

    @classmethod
    def from_config(cls, config: SyncConfig, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AssignmentClient":
        """Client for the service named in ``config``."""
        return cls(
            config.api_host,
            transport=transport,
            timeout=config.http_timeout,
            token_check_url=config.token_check_url,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def download_assignment(
        self,
        course_slug: str,
        lesson_slug: str,
        file_path: Union[str, Path],
        hexlet_token: str,
        reset: bool = False,
    ) -> Path:
        """
        Download an assignment archive and write it to ``file_path``.

        ``reset`` asks the service for a fresh copy of the assignment.

        Returns:
            The path that was written

        Raises:
            AssignmentNotFoundError: Unknown course or lesson
            AssignmentAccessError: The service refused the token or request
            httpx.HTTPStatusError: Any other unexpected status
        """
        method = "PUT" if reset else "POST"
        url = f"{self.api_host}/api/course/{course_slug}/lesson/{lesson_slug}/assignment/download"

        async with self._client() as client:
            response = await client.request(method, url, headers={"X-Auth-Key": hexlet_token})

        status = response.status_code
        logger.debug(f"{method} assignment {course_slug}/{lesson_slug}: {status}")

        if status not in DOWNLOAD_STATUSES:
            response.raise_for_status()
            raise httpx.HTTPStatusError(
                f"Unexpected status {status} from {url}", request=response.request, response=response
            )
        if status == 404:
            raise AssignmentNotFoundError(
                f"Assignment {course_slug}/{lesson_slug} not found. Check the lessonUrl.", status_code=status
            )
        if status in ACCESS_DENIED_STATUSES:
            raise AssignmentAccessError(_error_message(response), status_code=status)

        target = Path(file_path)
        target.write_bytes(response.content)
        logger.info(f"Downloaded assignment {course_slug}/{lesson_slug} ({len(response.content)} bytes)")
        return target

    async def check_token(self, token: str) -> None:
        """
        Ask the service whether ``token`` is valid.

        Raises:
            InvalidTokenError: The service does not know the token
            httpx.HTTPStatusError: Any status other than 200 and 404
        """
        async with self._client() as client:
            response = await client.post(self.token_check_url, json={"token": token})

        if response.status_code == 404:
            raise InvalidTokenError("Invalid Hexlet token passed.", status_code=404)
        response.raise_for_status()
