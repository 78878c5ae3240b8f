"""Host tool checks for PoPM bootstrap.

Makes sure the external tools the later stages shell out to are on
PATH, installing missing ones through apt.
"""

import logging
import shutil
import subprocess
from typing import Iterable, Optional

from .errors import DependencyInstallError
from .utils import LOGGER_NAME, sudo_prefix

logger = logging.getLogger(LOGGER_NAME)


class AptPackageManager:
    """Installs packages with apt-get."""

    def __init__(self, timeout: int = 600):
        self.timeout = timeout
        self._updated = False

    def install(self, package: str) -> None:
        """Install a package, refreshing the package list once per run.

        Args:
            package: Debian package name

        Raises:
            DependencyInstallError: If apt-get is missing or exits non-zero
        """
        if shutil.which("apt-get") is None:
            raise DependencyInstallError(
                f"Cannot install {package}: apt-get not found. Install it manually and re-run.",
                details={"package": package},
            )

        if not self._updated:
            self._run(sudo_prefix() + ["apt-get", "update"], "Failed to update package list.")
            self._updated = True

        self._run(
            sudo_prefix() + ["apt-get", "install", "-y", package],
            f"Failed to install {package}. Please check your package manager.",
        )

    def _run(self, cmd: list[str], failure_message: str) -> None:
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise DependencyInstallError(failure_message, details={"command": cmd, "error": str(e)}) from e

        if result.returncode != 0:
            logger.debug(f"apt-get stderr: {result.stderr.strip()}")
            raise DependencyInstallError(
                failure_message,
                details={"command": cmd, "returncode": result.returncode},
            )


class PreflightChecker:
    """Ensures required tools exist on PATH."""

    def __init__(self, package_manager: Optional[AptPackageManager] = None, on_install=None):
        """Initialize checker.

        Args:
            package_manager: Collaborator used to install missing tools
            on_install: Optional callback(tool_name) fired before an install
        """
        self.package_manager = package_manager or AptPackageManager()
        self.on_install = on_install

    def ensure(self, tool_name: str) -> None:
        """Make sure tool_name is on PATH, installing it if missing.

        Idempotent: a tool already present is left alone.

        Raises:
            DependencyInstallError: If the tool is missing and cannot be installed
        """
        if shutil.which(tool_name) is not None:
            logger.debug(f"{tool_name} is already installed.")
            return

        logger.info(f"{tool_name} not found, installing...")
        if self.on_install:
            self.on_install(tool_name)

        self.package_manager.install(tool_name)

        if shutil.which(tool_name) is None:
            raise DependencyInstallError(
                f"{tool_name} is still not on PATH after installation.",
                details={"tool": tool_name},
            )

        logger.info(f"{tool_name} installed successfully.")

    def ensure_all(self, tools: Iterable[str]) -> None:
        """Run ensure() for each tool in order."""
        for tool_name in tools:
            self.ensure(tool_name)
