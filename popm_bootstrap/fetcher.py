"""Release bundle download and extraction.

Builds the archive URL for a version and architecture, streams the
archive into the working directory and unpacks it. Downloads are not
retried here; a failed transfer is fatal.
"""

import logging
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import httpx
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TextColumn,
    TransferSpeedColumn,
)

from .errors import DownloadError, ExtractionError
from .release import Architecture
from .utils import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ArtifactBundle:
    """A downloaded and unpacked release bundle."""
    download_url: str
    archive_path: Path
    extracted_dir: Path

    def executable(self, name: str) -> Path:
        """Path of an executable shipped in the bundle."""
        return self.extracted_dir / name


def bundle_name(package_name: str, version: str, architecture: Architecture) -> str:
    """Release directory name, e.g. "heminetwork_v1.2.3_linux_amd64"."""
    return f"{package_name}_{version}_linux_{architecture.archive_suffix}"


def build_download_url(base_url: str, package_name: str, version: str, architecture: Architecture) -> str:
    """Archive URL for a release.

    Example:
        https://github.com/hemilabs/heminetwork/releases/download/v1.2.3/heminetwork_v1.2.3_linux_amd64.tar.gz
    """
    return f"{base_url.rstrip('/')}/{version}/{bundle_name(package_name, version, architecture)}.tar.gz"


class ArtifactFetcher:
    """Downloads and unpacks the release bundle for one architecture."""

    def __init__(
        self,
        workdir: Union[str, Path],
        base_url: str,
        package_name: str = "heminetwork",
        timeout: float = 300.0,
        client: Optional[httpx.Client] = None,
        show_progress: bool = False,
    ):
        """Initialize fetcher.

        Args:
            workdir: Directory the archive is saved and unpacked into
            base_url: Release download base URL
            package_name: Package prefix of archive names
            timeout: Download timeout in seconds
            client: httpx client to use (a new one per call if None)
            show_progress: Render a progress bar while downloading
        """
        self.workdir = Path(workdir)
        self.base_url = base_url
        self.package_name = package_name
        self.timeout = timeout
        self._client = client
        self.show_progress = show_progress

    def fetch(self, architecture: Union[Architecture, str], version: str) -> ArtifactBundle:
        """Download and unpack the bundle for a version.

        Args:
            architecture: Target architecture (validated before any network call)
            version: Release tag, e.g. "v1.2.3"

        Returns:
            ArtifactBundle whose extracted_dir holds the agent binaries

        Raises:
            UnsupportedArchitectureError: If architecture is not supported
            DownloadError: On transport failure or an empty archive
            ExtractionError: If the archive cannot be unpacked
        """
        arch = Architecture.parse(architecture)
        if not version:
            raise DownloadError("Cannot download a release without a version tag.")

        name = bundle_name(self.package_name, version, arch)
        url = build_download_url(self.base_url, self.package_name, version, arch)
        archive_path = self.workdir / f"{name}.tar.gz"
        extracted_dir = self.workdir / name

        logger.info(f"Downloading binaries for {arch.value} architecture from {url}")
        try:
            self.workdir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise DownloadError(
                f"Could not create working directory {self.workdir}: {e}",
                details={"url": url},
            ) from e
        self._download(url, archive_path)

        if not archive_path.is_file() or archive_path.stat().st_size == 0:
            raise DownloadError(
                f"Downloaded archive is empty: {archive_path}",
                details={"url": url},
            )

        self._extract(archive_path, self.workdir)

        if not extracted_dir.is_dir():
            raise ExtractionError(
                f"Archive did not contain expected directory {name}",
                details={"archive": str(archive_path)},
            )

        logger.info(f"Extracted release to {extracted_dir}")
        return ArtifactBundle(
            download_url=url,
            archive_path=archive_path,
            extracted_dir=extracted_dir,
        )

    def _download(self, url: str, dest: Path) -> None:
        """Stream url into dest, removing dest on failure."""
        try:
            if self._client is not None:
                self._stream_to_file(self._client, url, dest)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    self._stream_to_file(client, url, dest)

        except httpx.HTTPStatusError as e:
            dest.unlink(missing_ok=True)
            raise DownloadError(
                f"Download failed for {url}: HTTP {e.response.status_code}",
                details={"url": url, "status_code": e.response.status_code},
            ) from e

        except httpx.HTTPError as e:
            dest.unlink(missing_ok=True)
            raise DownloadError(
                f"Download failed for {url}: {e}",
                details={"url": url},
            ) from e

        except OSError as e:
            dest.unlink(missing_ok=True)
            raise DownloadError(
                f"Could not write {dest}: {e}",
                details={"url": url},
            ) from e

    def _stream_to_file(self, client: httpx.Client, url: str, dest: Path) -> None:
        with client.stream("GET", url) as response:
            response.raise_for_status()

            total = int(response.headers.get("Content-Length", 0)) or None
            received = 0

            with open(dest, "wb") as f:
                if self.show_progress:
                    with Progress(
                        TextColumn("[magenta]{task.description}"),
                        BarColumn(),
                        DownloadColumn(),
                        TransferSpeedColumn(),
                    ) as progress:
                        task = progress.add_task(dest.name, total=total)
                        for chunk in response.iter_bytes(CHUNK_SIZE):
                            f.write(chunk)
                            received += len(chunk)
                            progress.update(task, advance=len(chunk))
                else:
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        received += len(chunk)

            # Content-Length counts bytes on the wire, before any decoding
            if total is not None and response.num_bytes_downloaded < total:
                raise httpx.ReadError(
                    f"transfer interrupted after {response.num_bytes_downloaded} of {total} bytes"
                )

        logger.debug(f"Downloaded {received} bytes to {dest}")

    def _extract(self, archive_path: Path, dest: Path) -> None:
        """Unpack a .tar.gz archive into dest.

        Raises:
            ExtractionError: If the archive is unreadable or a member would
                land outside dest
        """
        root = dest.resolve()
        try:
            with tarfile.open(archive_path, "r:gz") as tar:
                members = tar.getmembers()
                for member in members:
                    target = (root / member.name).resolve()
                    if target != root and root not in target.parents:
                        raise ExtractionError(
                            f"Refusing to extract {member.name}: path escapes {dest}",
                            details={"archive": str(archive_path)},
                        )
                    if member.issym() or member.islnk():
                        # Hard link names are archive-relative, symlinks member-relative
                        base = target.parent if member.issym() else root
                        link_target = (base / member.linkname).resolve()
                        if link_target != root and root not in link_target.parents:
                            raise ExtractionError(
                                f"Refusing to extract link {member.name} -> {member.linkname}",
                                details={"archive": str(archive_path)},
                            )
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(dest, members=members, filter="data")
                else:
                    tar.extractall(dest, members=members)
        except (tarfile.TarError, EOFError, OSError) as e:
            raise ExtractionError(
                f"Failed to extract tarball {archive_path.name}: {e}",
                details={"archive": str(archive_path)},
            ) from e
