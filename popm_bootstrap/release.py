"""Release resolution for PoPM bootstrap.

Asks the release index (GitHub releases API) which heminetwork tag is
the latest. "Latest" is whatever the index says; no local version
comparison is done.
"""

import enum
import logging
import platform
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

import httpx

from .errors import ReleaseResolutionError, UnsupportedArchitectureError
from .utils import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)


class Architecture(enum.Enum):
    """Host architectures with a published release bundle."""

    X86_64 = "x86_64"
    ARM64 = "arm64"

    @property
    def archive_suffix(self) -> str:
        """Architecture name used in release archive filenames."""
        if self is Architecture.X86_64:
            return "amd64"
        return "arm64"

    @classmethod
    def parse(cls, value: Union["Architecture", str]) -> "Architecture":
        """Parse an architecture value.

        Args:
            value: Architecture member or machine string like "x86_64"

        Returns:
            Matching Architecture

        Raises:
            UnsupportedArchitectureError: For any other value
        """
        if isinstance(value, cls):
            return value

        if isinstance(value, str):
            name = value.strip().lower()
            # Linux reports 64-bit ARM as aarch64
            if name == "aarch64":
                name = "arm64"
            for member in cls:
                if member.value == name:
                    return member

        raise UnsupportedArchitectureError(value)

    @classmethod
    def detect(cls) -> "Architecture":
        """Architecture of the running host."""
        return cls.parse(platform.machine())


@dataclass(frozen=True)
class ReleaseInfo:
    """A resolved release."""
    version_tag: str
    architecture: Architecture


class ReleaseResolver:
    """Resolves the latest release tag with a fixed-count retry."""

    def __init__(
        self,
        index_url: str,
        attempts: int = 3,
        delay: float = 2.0,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_retry: Optional[Callable[[int, str], None]] = None,
    ):
        """Initialize resolver.

        Args:
            index_url: Release index endpoint returning a JSON tag_name field
            attempts: Maximum number of queries
            delay: Fixed delay between queries in seconds
            timeout: Per-request timeout in seconds
            client: httpx client to use (a new one per call if None)
            sleep: Sleep function, replaceable in tests
            on_retry: Optional callback(attempt, reason) before each retry
        """
        self.index_url = index_url
        self.attempts = attempts
        self.delay = delay
        self.timeout = timeout
        self._client = client
        self._sleep = sleep
        self.on_retry = on_retry

    def resolve_latest(self, architecture: Optional[Union[Architecture, str]] = None) -> ReleaseInfo:
        """Resolve the latest release tag, then the architecture it is for.

        Args:
            architecture: Target architecture, detected from the host if None

        Returns:
            ReleaseInfo with a non-empty version tag

        Raises:
            UnsupportedArchitectureError: If the architecture is not supported
            ReleaseResolutionError: If every attempt came back without a tag
        """
        last_reason = "no attempts made"

        for attempt in range(1, self.attempts + 1):
            tag, reason = self._query_tag()
            if tag:
                logger.info(f"Latest version available: {tag}")
                if architecture is None:
                    arch = Architecture.detect()
                else:
                    arch = Architecture.parse(architecture)
                return ReleaseInfo(version_tag=tag, architecture=arch)

            last_reason = reason
            logger.warning(f"Attempt {attempt}: Failed to fetch the latest version ({reason}).")

            if attempt < self.attempts:
                if self.on_retry:
                    self.on_retry(attempt, reason)
                self._sleep(self.delay)

        raise ReleaseResolutionError(
            f"Failed to fetch the latest version after {self.attempts} attempts. "
            "Please check your internet connection or GitHub API limits.",
            details={"index_url": self.index_url, "last_reason": last_reason},
        )

    def _query_tag(self) -> tuple[Optional[str], str]:
        """Query the index once.

        Returns:
            (tag, reason) where tag is None when the query gave nothing usable
        """
        headers = {"Accept": "application/vnd.github+json"}

        try:
            if self._client is not None:
                response = self._client.get(self.index_url, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    response = client.get(self.index_url, headers=headers)
        except httpx.TimeoutException:
            return None, f"timeout contacting {self.index_url}"
        except httpx.HTTPError as e:
            return None, f"request failed: {e}"

        if response.status_code != 200:
            return None, f"unexpected status {response.status_code}"

        try:
            data = response.json()
        except ValueError:
            return None, "response is not JSON"

        if not isinstance(data, dict):
            return None, "response is not a JSON object"

        tag = data.get("tag_name")
        if not isinstance(tag, str) or not tag.strip():
            return None, "tag_name missing or empty"

        return tag.strip(), "ok"
