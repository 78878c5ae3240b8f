"""Bootstrap orchestration.

Runs the stages strictly in order, each one a precondition for the next:

    preflight -> resolve release -> disk check -> fetch bundle
        -> wallet (create or import) -> encrypt key -> launch agent

Stages raise BootstrapError subclasses. The orchestrator catches them,
logs them once and returns a failed BootstrapResult; it never exits the
process itself.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import click
from rich.json import JSON

from . import terminal
from .config import BootstrapConfig
from .encryption import EncryptedKeyArtifact, GpgEncryptor
from .errors import BootstrapError, InvalidConfigurationError
from .fetcher import ArtifactBundle, ArtifactFetcher
from .launcher import AgentLauncher, ProcessSupervisor, ScreenSupervisor, SupervisedProcess
from .preflight import PreflightChecker
from .release import Architecture, ReleaseInfo, ReleaseResolver
from .resources import ResourceGuard
from .utils import LOGGER_NAME
from .wallet import KeyGenerator, KeygenCli, WalletManager, WalletRecord

logger = logging.getLogger(LOGGER_NAME)

FAUCET_URL = "https://discord.gg/hemixyz"

CHOICE_CREATE = "1"
CHOICE_IMPORT = "2"


class OperatorPrompts:
    """Interactive questions asked during a run."""

    def wallet_choice(self) -> str:
        terminal.header("Select only one option:")
        terminal.header("1. Create New Wallet (Recommended)")
        terminal.header("2. Use Existing Wallet")
        return click.prompt("Enter your choice (1/2)", type=str).strip()

    def confirm_saved(self, record: WalletRecord) -> bool:
        """Show the generated wallet and ask whether it has been saved."""
        if record.source_file is not None and record.source_file.is_file():
            terminal.print(JSON(record.source_file.read_text(encoding="utf-8")))
        else:
            terminal.print(f"private_key: {record.private_key}")
            terminal.print(f"pubkey_hash: {record.pubkey_hash}")
        return click.confirm("Have you saved the above details?", default=False)

    def static_fee(self) -> int:
        return click.prompt(
            "Enter static fee (numerical only, recommended: 100-200)",
            type=click.IntRange(min=0),
        )

    def private_key(self) -> str:
        return click.prompt("Enter your Private Key", hide_input=True)

    def passphrase(self) -> str:
        return click.prompt(
            "Enter a passphrase to encrypt your private key",
            hide_input=True,
            confirmation_prompt=True,
        )


@dataclass
class BootstrapResult:
    """Outcome of a bootstrap run."""
    success: bool
    release: Optional[ReleaseInfo] = None
    bundle: Optional[ArtifactBundle] = None
    encrypted_key: Optional[EncryptedKeyArtifact] = None
    process: Optional[SupervisedProcess] = None
    error: Optional[BootstrapError] = None


class Orchestrator:
    """Sequences the bootstrap stages for one host."""

    def __init__(
        self,
        config: BootstrapConfig,
        prompts: Optional[OperatorPrompts] = None,
        preflight: Optional[PreflightChecker] = None,
        resolver: Optional[ReleaseResolver] = None,
        guard: Optional[ResourceGuard] = None,
        fetcher: Optional[ArtifactFetcher] = None,
        key_generator_factory: Optional[Callable[[ArtifactBundle], KeyGenerator]] = None,
        encryptor: Optional[GpgEncryptor] = None,
        supervisor: Optional[ProcessSupervisor] = None,
        architecture: Optional[Architecture] = None,
    ):
        """Initialize orchestrator.

        Any collaborator left as None is built from config.

        Args:
            config: Bootstrap configuration
            prompts: Operator interaction
            preflight: Host tool checker
            resolver: Release index client
            guard: Disk space check
            fetcher: Bundle downloader
            key_generator_factory: Builds the keygen collaborator for a bundle
            encryptor: Private key encryption backend
            supervisor: Detached session starter
            architecture: Target architecture (detected from the host if None)
        """
        self.config = config
        self.prompts = prompts or OperatorPrompts()
        self.preflight = preflight or PreflightChecker(on_install=self._announce_install)
        self.resolver = resolver or ReleaseResolver(
            index_url=config.release_index_url,
            attempts=config.resolve_attempts,
            delay=config.resolve_delay,
            timeout=config.request_timeout,
            on_retry=self._announce_retry,
        )
        self.guard = guard or ResourceGuard(config.workdir)
        self.fetcher = fetcher or ArtifactFetcher(
            workdir=config.workdir,
            base_url=config.download_base_url,
            package_name=config.package_name,
            timeout=config.download_timeout,
            show_progress=terminal.console.is_terminal,
        )
        self.key_generator_factory = key_generator_factory or self._default_key_generator
        self.encryptor = encryptor or GpgEncryptor()
        self.supervisor = supervisor or ScreenSupervisor(config.session_name)
        self.architecture = architecture
        self.launcher: Optional[AgentLauncher] = None

    def run(self) -> BootstrapResult:
        """Run every stage in order.

        Returns:
            BootstrapResult; on failure, error holds the stage's exception
        """
        result = BootstrapResult(success=False)

        try:
            self._run_stages(result)
        except BootstrapError as e:
            logger.error(f"{type(e).__name__}: {e.message}")
            if e.details:
                logger.debug(f"Error details: {e.details}")
            result.error = e
            return result

        result.success = True
        return result

    def _run_stages(self, result: BootstrapResult) -> None:
        self.preflight.ensure_all(self.config.required_tools)

        release = self.resolver.resolve_latest(self.architecture)
        result.release = release
        terminal.header(f"Latest version available: {release.version_tag}")

        self.guard.check(self.config.required_kb)

        terminal.header(f"Downloading binaries for {release.architecture.value} architecture...")
        bundle = self.fetcher.fetch(release.architecture, release.version_tag)
        result.bundle = bundle

        wallet_manager = WalletManager(
            wallet_path=self.config.wallet_path,
            key_generator=self.key_generator_factory(bundle),
            encrypted_key_path=bundle.extracted_dir / self.config.encrypted_key_name,
            passphrase_provider=self.prompts.passphrase,
            encryptor=self.encryptor,
        )

        terminal.print()
        choice = self.prompts.wallet_choice()
        if choice == CHOICE_CREATE:
            terminal.header("Generating a new wallet...")
            record = wallet_manager.create(confirm=self.prompts.confirm_saved)
            if wallet_manager.last_backup is not None:
                terminal.header(f"Backed up existing wallet to {wallet_manager.last_backup}")
            terminal.header(f"Request faucet from {FAUCET_URL} for address: {record.pubkey_hash}")
        elif choice == CHOICE_IMPORT:
            record = wallet_manager.import_key(self.prompts.private_key())
        else:
            raise InvalidConfigurationError(f"Invalid choice {choice!r}. Exiting.")

        static_fee = self.prompts.static_fee()

        result.encrypted_key = wallet_manager.encrypt(record.private_key)
        terminal.header(f"Private key encrypted and saved to {result.encrypted_key.ciphertext_path}")

        self.launcher = AgentLauncher(
            executable=bundle.executable(self.config.agent_executable),
            backend_endpoint=self.config.bfg_url,
            supervisor=self.supervisor,
        )
        process = self.launcher.launch(record.private_key, static_fee)
        result.process = process
        terminal.success(
            f"PoP mining has started in the detached screen session named '{process.session_name}'."
        )
        terminal.dim(f"Attach with: {process.attach_command}")

    def _default_key_generator(self, bundle: ArtifactBundle) -> KeyGenerator:
        return KeygenCli(bundle.executable(self.config.keygen_name), network=self.config.network)

    @staticmethod
    def _announce_install(tool_name: str) -> None:
        terminal.header(f"{tool_name} not found, installing...")

    @staticmethod
    def _announce_retry(attempt: int, reason: str) -> None:
        terminal.header(f"Attempt {attempt}: Failed to fetch the latest version. Retrying...")
