"""Private key encryption at rest via gpg.

The key is piped to `gpg --symmetric --cipher-algo AES256` on stdin and
the passphrase is handed over on a separate pipe, so neither ends up in
argv, the environment, or an intermediate file.
"""

import logging
import os
import shutil
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Union

from .errors import EncryptionError
from .utils import LOGGER_NAME, backup_path_for

logger = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class EncryptedKeyArtifact:
    """Ciphertext of a private key written by the encryption step."""
    ciphertext_path: Path


class GpgEncryptor:
    """Symmetric AES256 encryption using the gpg binary."""

    def __init__(
        self,
        gpg_binary: str = "gpg",
        cipher_algo: str = "AES256",
        timeout: int = 60,
        clock: Callable[[], float] = time.time,
    ):
        self.gpg_binary = gpg_binary
        self.cipher_algo = cipher_algo
        self.timeout = timeout
        self.clock = clock

    def encrypt(self, plaintext: str, passphrase: str, output_path: Union[str, Path]) -> EncryptedKeyArtifact:
        """Encrypt plaintext into output_path.

        Args:
            plaintext: Secret to encrypt
            passphrase: Symmetric passphrase
            output_path: Ciphertext destination; an existing file there is moved
                aside to <name>_backup_<unix_time> first

        Returns:
            EncryptedKeyArtifact pointing at the written file

        Raises:
            EncryptionError: If gpg is missing, fails, or writes nothing, or an
                existing ciphertext cannot be moved aside
        """
        output_path = Path(output_path)

        if not passphrase:
            raise EncryptionError("Failed to encrypt private key: empty passphrase.")

        gpg = shutil.which(self.gpg_binary)
        if gpg is None:
            raise EncryptionError(f"Failed to encrypt private key: {self.gpg_binary} not found.")

        if output_path.exists():
            backup_path = backup_path_for(output_path, clock=self.clock)
            logger.info(f"Moving existing encrypted key to {backup_path}")
            try:
                os.replace(output_path, backup_path)
            except OSError as e:
                raise EncryptionError(
                    f"Failed to move existing encrypted key {output_path} aside: {e}"
                ) from e

        read_fd, write_fd = os.pipe()
        cmd = [
            gpg,
            "--batch",
            "--pinentry-mode", "loopback",
            "--passphrase-fd", str(read_fd),
            "--symmetric",
            "--cipher-algo", self.cipher_algo,
            "--output", str(output_path),
        ]

        try:
            with os.fdopen(write_fd, "w") as passphrase_pipe:
                passphrase_pipe.write(passphrase + "\n")

            # Ciphertext must never exist with group or world access
            old_umask = os.umask(0o077)
            try:
                result = subprocess.run(
                    cmd,
                    input=plaintext + "\n",
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    pass_fds=(read_fd,),
                )
            finally:
                os.umask(old_umask)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise EncryptionError(f"Failed to encrypt private key: {e}") from e
        finally:
            os.close(read_fd)

        if result.returncode != 0:
            logger.debug(f"gpg stderr: {result.stderr.strip()}")
            raise EncryptionError(
                "Failed to encrypt private key.",
                details={"returncode": result.returncode},
            )

        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise EncryptionError(f"Failed to encrypt private key: {output_path} was not written.")

        os.chmod(output_path, 0o600)
        logger.info(f"Private key encrypted and saved to {output_path}")
        return EncryptedKeyArtifact(ciphertext_path=output_path)
