"""Error types raised by the bootstrap stages.

Every stage fails fast by raising a subclass of BootstrapError. The
orchestrator is the only place that catches them and turns them into a
failed BootstrapResult; the CLI then exits with status 1.
"""

from typing import Any, Dict, Optional


class BootstrapError(Exception):
    """Base class for all fatal bootstrap failures.

    Attributes:
        message: Operator-facing description of the failure
        details: Extra context written to the log file
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class DependencyInstallError(BootstrapError):
    """A required host tool is missing and could not be installed."""


class ReleaseResolutionError(BootstrapError):
    """The latest release tag could not be obtained from the release index."""


class InsufficientStorageError(BootstrapError):
    """Not enough free space on the target filesystem for the download."""

    def __init__(self, required_kb: int, available_kb: int):
        super().__init__(
            f"Insufficient disk space. Required: {required_kb}KB, Available: {available_kb}KB.",
            details={"required_kb": required_kb, "available_kb": available_kb},
        )
        self.required_kb = required_kb
        self.available_kb = available_kb


class UnsupportedArchitectureError(BootstrapError):
    """The host architecture has no matching release bundle."""

    def __init__(self, architecture: Any):
        super().__init__(
            f"Unsupported architecture: {architecture}",
            details={"architecture": str(architecture)},
        )
        self.architecture = architecture


class DownloadError(BootstrapError):
    """The release archive could not be downloaded."""


class ExtractionError(BootstrapError):
    """The release archive could not be unpacked."""


class KeyGenerationError(BootstrapError):
    """The keygen tool failed or produced an unreadable wallet."""


class WalletBackupError(BootstrapError):
    """An existing wallet file could not be backed up safely."""


class UnconfirmedWalletError(BootstrapError):
    """The operator did not confirm saving the generated wallet details."""


class EncryptionError(BootstrapError):
    """The private key could not be encrypted."""


class InvalidConfigurationError(BootstrapError):
    """An operator-supplied value or configuration setting is unusable."""


class LaunchError(BootstrapError):
    """The agent could not be started in a detached session."""
