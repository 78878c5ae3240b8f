"""Agent launch for PoPM bootstrap.

Starts popmd in a detached screen session so it outlives the bootstrap
run. The agent's settings are handed to the child process environment
only; the bootstrapper's own os.environ is never modified.
"""

import logging
import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from .errors import InvalidConfigurationError, LaunchError
from .utils import LOGGER_NAME, mask_secret

logger = logging.getLogger(LOGGER_NAME)

ENV_PRIVATE_KEY = "POPM_BTC_PRIVKEY"
ENV_STATIC_FEE = "POPM_STATIC_FEE"
ENV_BFG_URL = "POPM_BFG_URL"


@dataclass(frozen=True)
class AgentRuntimeConfig:
    """Settings handed to the agent process."""
    private_key: str = field(repr=False)
    static_fee: Union[int, str]
    backend_endpoint: str

    def to_env(self) -> Dict[str, str]:
        """Environment variables popmd reads its settings from."""
        return {
            ENV_PRIVATE_KEY: self.private_key,
            ENV_STATIC_FEE: str(self.static_fee),
            ENV_BFG_URL: self.backend_endpoint,
        }


@dataclass(frozen=True)
class SupervisedProcess:
    """Handle to the detached agent session."""
    session_name: str
    executable_path: Path

    @property
    def attach_command(self) -> str:
        return f"screen -r {self.session_name}"


class ProcessSupervisor(Protocol):
    def spawn(self, executable: Path, config: AgentRuntimeConfig) -> SupervisedProcess:
        ...


class ScreenSupervisor:
    """Runs a program in a detached, named GNU screen session."""

    def __init__(self, session_name: str, screen_binary: str = "screen", timeout: int = 30):
        self.session_name = session_name
        self.screen_binary = screen_binary
        self.timeout = timeout

    def spawn(self, executable: Path, config: AgentRuntimeConfig) -> SupervisedProcess:
        """Start executable with config in a detached screen session.

        Raises:
            LaunchError: If screen is missing or fails to start the session
        """
        screen = shutil.which(self.screen_binary)
        if screen is None:
            raise LaunchError(f"Failed to start PoP mining: {self.screen_binary} not found.")

        cmd = [screen, "-dmS", self.session_name, str(executable)]
        env = dict(os.environ)
        env.update(config.to_env())

        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                env=env,
                cwd=str(executable.parent),
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise LaunchError(f"Failed to start PoP mining in screen session: {e}") from e

        if result.returncode != 0:
            logger.debug(f"screen stderr: {result.stderr.strip()}")
            raise LaunchError(
                "Failed to start PoP mining in screen session.",
                details={"returncode": result.returncode, "session": self.session_name},
            )

        return SupervisedProcess(session_name=self.session_name, executable_path=executable)


class AgentLauncher:
    """Builds the runtime config and hands the agent to a supervisor."""

    def __init__(self, executable: Union[str, Path], backend_endpoint: str, supervisor: ProcessSupervisor):
        """Initialize launcher.

        Args:
            executable: Path to the popmd binary
            backend_endpoint: BFG WebSocket URL passed to the agent
            supervisor: Starts the detached session
        """
        self.executable = Path(executable)
        self.backend_endpoint = backend_endpoint
        self.supervisor = supervisor
        self.last_config: Optional[AgentRuntimeConfig] = None

    def launch(self, private_key: str, static_fee: Union[int, str, None]) -> SupervisedProcess:
        """Start the agent.

        The fee format is validated when the operator enters it; here it
        only has to be present.

        Raises:
            InvalidConfigurationError: If the fee or key is empty
            LaunchError: If the agent cannot be started
        """
        if static_fee is None or not str(static_fee).strip():
            raise InvalidConfigurationError("Static fee must not be empty.")

        if not private_key:
            raise InvalidConfigurationError("Private key must not be empty.")

        if not self.executable.is_file():
            raise LaunchError(f"Agent executable not found: {self.executable}")

        config = AgentRuntimeConfig(
            private_key=private_key,
            static_fee=static_fee.strip() if isinstance(static_fee, str) else static_fee,
            backend_endpoint=self.backend_endpoint,
        )
        self.last_config = config

        logger.info(
            f"Starting {self.executable.name} (key={mask_secret(private_key)}, "
            f"static_fee={config.static_fee}, bfg={config.backend_endpoint})"
        )
        process = self.supervisor.spawn(self.executable, config)
        logger.info(f"PoP mining has started in the detached screen session named '{process.session_name}'.")
        return process
