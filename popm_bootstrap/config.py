"""Configuration for PoPM bootstrap."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
import os


DEFAULT_RELEASE_INDEX_URL = "https://api.github.com/repos/hemilabs/heminetwork/releases/latest"
DEFAULT_DOWNLOAD_BASE_URL = "https://github.com/hemilabs/heminetwork/releases/download"
DEFAULT_BFG_URL = "wss://testnet.rpc.hemi.network/v1/ws/public"
DEFAULT_WALLET_PATH = "~/popm-address.json"
DEFAULT_LOG_FILE = "/var/log/popm_setup.log"


@dataclass
class BootstrapConfig:
    """Configuration for a bootstrap run.

    Every value has a working default for the Hemi testnet. Paths are
    plain settings rather than literals so the wallet is backed up,
    written and read from the same resolved location.

    - workdir: Directory the release archive is downloaded and unpacked into
    - wallet_path: Where the generated wallet JSON is written
    - log_file: Append-only log of every fatal and verbose message
    - required_kb: Free space required before the download starts
    """

    # Filesystem
    workdir: Path = field(default_factory=Path.cwd)
    wallet_path: Path = field(default_factory=lambda: Path(DEFAULT_WALLET_PATH).expanduser())
    log_file: Path = Path(DEFAULT_LOG_FILE)
    required_kb: int = 500000

    # Release source
    release_index_url: str = DEFAULT_RELEASE_INDEX_URL
    download_base_url: str = DEFAULT_DOWNLOAD_BASE_URL
    package_name: str = "heminetwork"

    # Release resolution
    resolve_attempts: int = 3
    resolve_delay: float = 2.0  # seconds
    request_timeout: float = 30.0  # seconds
    download_timeout: float = 300.0  # seconds

    # Host tools
    required_tools: Tuple[str, ...] = ("screen", "gpg")

    # Wallet
    network: str = "testnet"
    keygen_name: str = "keygen"
    encrypted_key_name: str = "encrypted_key.gpg"

    # Agent
    agent_executable: str = "popmd"
    session_name: str = "RTad"
    bfg_url: str = DEFAULT_BFG_URL

    # Behavior
    verbose: bool = False

    def __post_init__(self):
        self.workdir = Path(self.workdir).expanduser()
        self.wallet_path = Path(self.wallet_path).expanduser()
        self.log_file = Path(self.log_file).expanduser()

    @classmethod
    def from_env(cls) -> "BootstrapConfig":
        """Create config from environment variables.

        Environment variables:
        - POPM_WORKDIR: Download and unpack directory
        - POPM_WALLET_PATH: Wallet JSON path
        - POPM_LOG_FILE: Log file path
        - POPM_REQUIRED_KB: Free space required before download
        - POPM_RELEASE_INDEX_URL: Release index endpoint
        - POPM_DOWNLOAD_BASE_URL: Base URL for release archives
        - POPM_NETWORK: Network passed to keygen
        - POPM_SESSION_NAME: screen session name for the agent
        - POPM_BFG_URL: Backend WebSocket endpoint handed to the agent
        - POPM_VERBOSE: Echo log messages to the terminal
        """
        return cls(
            workdir=Path(os.environ.get("POPM_WORKDIR", os.getcwd())),
            wallet_path=Path(os.environ.get("POPM_WALLET_PATH", DEFAULT_WALLET_PATH)),
            log_file=Path(os.environ.get("POPM_LOG_FILE", DEFAULT_LOG_FILE)),
            required_kb=int(os.environ.get("POPM_REQUIRED_KB", "500000")),
            release_index_url=os.environ.get("POPM_RELEASE_INDEX_URL", DEFAULT_RELEASE_INDEX_URL),
            download_base_url=os.environ.get("POPM_DOWNLOAD_BASE_URL", DEFAULT_DOWNLOAD_BASE_URL),
            network=os.environ.get("POPM_NETWORK", "testnet"),
            session_name=os.environ.get("POPM_SESSION_NAME", "RTad"),
            bfg_url=os.environ.get("POPM_BFG_URL", DEFAULT_BFG_URL),
            verbose=os.environ.get("POPM_VERBOSE", "").lower() in ("1", "true", "yes"),
        )

    def validate(self) -> list[str]:
        """Validate configuration.

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []

        if self.required_kb < 0:
            errors.append(f"required_kb must be >= 0, got: {self.required_kb}")

        if self.resolve_attempts < 1:
            errors.append(f"resolve_attempts must be >= 1, got: {self.resolve_attempts}")

        if self.resolve_delay < 0:
            errors.append(f"resolve_delay must be >= 0, got: {self.resolve_delay}")

        if not self.release_index_url.startswith(("http://", "https://")):
            errors.append(f"release_index_url must be an http(s) URL, got: {self.release_index_url}")

        if not self.download_base_url.startswith(("http://", "https://")):
            errors.append(f"download_base_url must be an http(s) URL, got: {self.download_base_url}")

        if not self.bfg_url.startswith(("ws://", "wss://")):
            errors.append(f"bfg_url must be a ws(s) URL, got: {self.bfg_url}")

        if not self.session_name:
            errors.append("session_name is required")
        elif any(c.isspace() for c in self.session_name):
            errors.append(f"session_name must not contain whitespace, got: {self.session_name!r}")

        if not self.network:
            errors.append("network is required")

        if self.wallet_path.is_dir():
            errors.append(f"wallet_path points to a directory: {self.wallet_path}")

        return errors
