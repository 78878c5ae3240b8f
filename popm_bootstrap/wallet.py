"""Wallet lifecycle for PoPM bootstrap.

Two mutually exclusive ways to obtain the mining key:
- create: run the bundle's keygen tool and save its JSON to the wallet
  path, backing up any wallet already there first
- import: take a raw private key from the operator, touching no files

Either way the key is then encrypted at rest before the agent starts.
"""

import filecmp
import json
import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Protocol, Union

from .encryption import EncryptedKeyArtifact, GpgEncryptor
from .errors import (
    InvalidConfigurationError,
    KeyGenerationError,
    UnconfirmedWalletError,
    WalletBackupError,
)
from .utils import LOGGER_NAME, backup_path_for, mask_secret

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class WalletRecord:
    """A signing identity.

    pubkey_hash and source_file are only set for wallets generated by keygen.
    """
    private_key: str = field(repr=False)
    pubkey_hash: Optional[str] = None
    source_file: Optional[Path] = None

    def __repr__(self) -> str:
        return (
            f"WalletRecord(private_key={mask_secret(self.private_key)!r}, "
            f"pubkey_hash={self.pubkey_hash!r}, source_file={self.source_file!r})"
        )


class KeyGenerator(Protocol):
    def generate(self, output_path: Path) -> WalletRecord:
        ...


def parse_wallet_file(path: Path) -> WalletRecord:
    """Read a keygen JSON wallet.

    Raises:
        KeyGenerationError: If the file is unreadable or lacks private_key / pubkey_hash
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise KeyGenerationError(f"Could not read wallet file {path}: {e}") from e

    if not isinstance(data, dict):
        raise KeyGenerationError(f"Wallet file {path} is not a JSON object")

    private_key = data.get("private_key")
    pubkey_hash = data.get("pubkey_hash")
    if not private_key or not pubkey_hash:
        raise KeyGenerationError(
            f"Wallet file {path} is missing private_key or pubkey_hash",
            details={"fields": sorted(data.keys())},
        )

    return WalletRecord(private_key=private_key, pubkey_hash=pubkey_hash, source_file=path)


class KeygenCli:
    """Runs the release bundle's keygen binary.

    Equivalent to `./keygen -secp256k1 -json -net=testnet > wallet.json`.
    """

    def __init__(self, executable: Union[str, Path], network: str = "testnet", timeout: int = 60):
        self.executable = Path(executable)
        self.network = network
        self.timeout = timeout

    def generate(self, output_path: Path) -> WalletRecord:
        """Generate a new wallet and write it to output_path.

        The output is written to a temporary file and moved into place,
        so output_path is only replaced once keygen has succeeded.

        Raises:
            KeyGenerationError: If keygen is missing, fails or prints garbage
        """
        cmd = [str(self.executable), "-secp256k1", "-json", f"-net={self.network}"]
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                cwd=str(self.executable.parent),
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise KeyGenerationError(f"Failed to generate wallet: {e}") from e

        if result.returncode != 0 or not result.stdout.strip():
            logger.debug(f"keygen stderr: {result.stderr.strip()}")
            raise KeyGenerationError(
                "Failed to generate wallet.",
                details={"returncode": result.returncode},
            )

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise KeyGenerationError(f"Could not create wallet directory {output_path.parent}: {e}") from e

        tmp_path = output_path.with_name(f".{output_path.name}.tmp")
        try:
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(result.stdout)
            record = parse_wallet_file(tmp_path)
            os.replace(tmp_path, output_path)
        except OSError as e:
            raise KeyGenerationError(f"Could not write wallet file {output_path}: {e}") from e
        finally:
            tmp_path.unlink(missing_ok=True)

        return WalletRecord(
            private_key=record.private_key,
            pubkey_hash=record.pubkey_hash,
            source_file=output_path,
        )


def backup_wallet(wallet_path: Path, clock: Callable[[], float] = time.time) -> Optional[Path]:
    """Copy an existing wallet to <path>_backup_<unix_time>.

    Backups are never overwritten or deleted; if the name is taken the
    timestamp is bumped until a free one is found.

    Returns:
        Backup path, or None if there was no wallet to back up

    Raises:
        WalletBackupError: If the copy fails or differs from the wallet file
    """
    if not wallet_path.is_file():
        return None

    backup_path = backup_path_for(wallet_path, clock=clock)

    logger.info(f"Backing up existing wallet to {backup_path}")
    try:
        shutil.copy2(wallet_path, backup_path)
    except OSError as e:
        raise WalletBackupError(f"Failed to backup existing wallet: {e}") from e

    if not filecmp.cmp(wallet_path, backup_path, shallow=False):
        raise WalletBackupError(
            f"Backup {backup_path} does not match {wallet_path}",
            details={"backup": str(backup_path)},
        )

    return backup_path


class WalletManager:
    """Creates or imports the mining wallet and encrypts its key."""

    def __init__(
        self,
        wallet_path: Path,
        key_generator: Optional[KeyGenerator],
        encrypted_key_path: Path,
        passphrase_provider: Callable[[], str],
        encryptor: Optional[GpgEncryptor] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize wallet manager.

        Args:
            wallet_path: Where generated wallets are written
            key_generator: keygen collaborator (only needed for create)
            encrypted_key_path: Ciphertext destination for encrypt()
            passphrase_provider: Asks the operator for the encryption passphrase
            encryptor: Encryption backend
            clock: Time source for backup names
        """
        self.wallet_path = wallet_path
        self.key_generator = key_generator
        self.encrypted_key_path = encrypted_key_path
        self.passphrase_provider = passphrase_provider
        self.encryptor = encryptor or GpgEncryptor()
        self.clock = clock
        self.last_backup: Optional[Path] = None

    def create(self, confirm: Callable[[WalletRecord], bool]) -> WalletRecord:
        """Generate a new wallet.

        Any wallet already at wallet_path is backed up before keygen runs,
        even if keygen then fails.

        Args:
            confirm: Shows the record to the operator and returns True once
                they confirm the details are saved

        Raises:
            WalletBackupError: If an existing wallet could not be backed up
            KeyGenerationError: If keygen fails
            UnconfirmedWalletError: If the operator does not confirm
        """
        if self.key_generator is None:
            raise KeyGenerationError("No key generator configured.")

        self.last_backup = backup_wallet(self.wallet_path, clock=self.clock)

        logger.info("Generating a new wallet...")
        record = self.key_generator.generate(self.wallet_path)
        logger.info(f"Wallet written to {self.wallet_path} (pubkey_hash={record.pubkey_hash})")

        if not confirm(record):
            raise UnconfirmedWalletError("Details were not saved. Exiting.")

        return record

    def import_key(self, private_key: str) -> WalletRecord:
        """Use an operator-supplied private key. No files are touched.

        Raises:
            InvalidConfigurationError: If the key is empty
        """
        private_key = (private_key or "").strip()
        if not private_key:
            raise InvalidConfigurationError("Private key must not be empty.")

        logger.info(f"Using existing wallet key {mask_secret(private_key)}")
        return WalletRecord(private_key=private_key)

    def encrypt(self, private_key: str) -> EncryptedKeyArtifact:
        """Encrypt the private key under an operator passphrase.

        Raises:
            EncryptionError: If encryption fails
        """
        passphrase = self.passphrase_provider()
        return self.encryptor.encrypt(private_key, passphrase, self.encrypted_key_path)
