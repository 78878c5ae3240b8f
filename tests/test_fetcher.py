import io
import tarfile
from unittest.mock import patch

import httpx
import pytest

from popm_bootstrap.errors import DownloadError, ExtractionError, UnsupportedArchitectureError
from popm_bootstrap.fetcher import ArtifactFetcher, build_download_url
from popm_bootstrap.release import Architecture

BASE_URL = "https://github.com/hemilabs/heminetwork/releases/download"


def make_fetcher(workdir, transport):
    return ArtifactFetcher(workdir=workdir, base_url=BASE_URL, client=httpx.Client(transport=transport))


def test_build_download_url():
    assert build_download_url(BASE_URL, "heminetwork", "v1.2.3", Architecture.X86_64) == (
        f"{BASE_URL}/v1.2.3/heminetwork_v1.2.3_linux_amd64.tar.gz"
    )
    assert build_download_url(BASE_URL + "/", "heminetwork", "v0.4.5", Architecture.ARM64).endswith(
        "/download/v0.4.5/heminetwork_v0.4.5_linux_arm64.tar.gz"
    )


def test_fetch_downloads_and_extracts(tmp_path, make_tarball, make_transport, bundle_files):
    archive = make_tarball("heminetwork_v1.2.3_linux_amd64", bundle_files)
    transport = make_transport(lambda request: httpx.Response(200, content=archive))
    fetcher = make_fetcher(tmp_path, transport)

    bundle = fetcher.fetch("x86_64", "v1.2.3")

    assert bundle.download_url.endswith("_v1.2.3_linux_amd64.tar.gz")
    assert str(transport.requests[0].url) == bundle.download_url
    assert bundle.archive_path == tmp_path / "heminetwork_v1.2.3_linux_amd64.tar.gz"
    assert bundle.archive_path.read_bytes() == archive
    assert bundle.extracted_dir == tmp_path / "heminetwork_v1.2.3_linux_amd64"
    assert bundle.executable("popmd").read_bytes() == bundle_files["popmd"]


@pytest.mark.parametrize("arch", ["i386", "armv7l", "ppc64le", "", "amd64"])
def test_unsupported_architecture_before_network(tmp_path, make_transport, arch):
    transport = make_transport(lambda request: httpx.Response(200, content=b""))
    fetcher = make_fetcher(tmp_path, transport)

    with pytest.raises(UnsupportedArchitectureError):
        fetcher.fetch(arch, "v1.2.3")

    assert transport.requests == []
    assert list(tmp_path.iterdir()) == []


def test_http_error_is_download_error(tmp_path, make_transport):
    transport = make_transport(lambda request: httpx.Response(404, content=b"Not Found"))
    fetcher = make_fetcher(tmp_path, transport)

    with pytest.raises(DownloadError) as exc_info:
        fetcher.fetch(Architecture.ARM64, "v1.2.3")

    assert exc_info.value.details["status_code"] == 404
    assert not (tmp_path / "heminetwork_v1.2.3_linux_arm64.tar.gz").exists()
    # No retry at this layer
    assert len(transport.requests) == 1


def test_connection_error_is_download_error(tmp_path, make_transport):
    def handler(request):
        raise httpx.ConnectError("network unreachable", request=request)

    fetcher = make_fetcher(tmp_path, make_transport(handler))

    with pytest.raises(DownloadError):
        fetcher.fetch("x86_64", "v1.2.3")


def test_truncated_transfer_is_download_error(tmp_path, make_transport):
    transport = make_transport(
        lambda request: httpx.Response(200, headers={"Content-Length": "1000"}, content=b"x" * 10)
    )
    fetcher = make_fetcher(tmp_path, transport)

    with pytest.raises(DownloadError):
        fetcher.fetch("x86_64", "v1.2.3")

    assert not (tmp_path / "heminetwork_v1.2.3_linux_amd64.tar.gz").exists()


def test_empty_archive_is_download_error(tmp_path, make_transport):
    fetcher = make_fetcher(tmp_path, make_transport(lambda request: httpx.Response(200, content=b"")))

    with pytest.raises(DownloadError):
        fetcher.fetch("x86_64", "v1.2.3")


def test_corrupt_archive_is_extraction_error(tmp_path, make_transport):
    fetcher = make_fetcher(
        tmp_path, make_transport(lambda request: httpx.Response(200, content=b"definitely not gzip"))
    )

    with pytest.raises(ExtractionError):
        fetcher.fetch("x86_64", "v1.2.3")


def test_archive_without_bundle_directory(tmp_path, make_tarball, make_transport, bundle_files):
    archive = make_tarball("something_else", bundle_files)
    fetcher = make_fetcher(tmp_path, make_transport(lambda request: httpx.Response(200, content=archive)))

    with pytest.raises(ExtractionError):
        fetcher.fetch("x86_64", "v1.2.3")


def test_refuses_members_outside_workdir(tmp_path, make_transport):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        payload = b"owned"
        info = tarfile.TarInfo("../escaped.txt")
        info.size = len(payload)
        tar.addfile(info, io.BytesIO(payload))

    workdir = tmp_path / "work"
    fetcher = make_fetcher(workdir, make_transport(lambda request: httpx.Response(200, content=buf.getvalue())))

    with pytest.raises(ExtractionError):
        fetcher.fetch("x86_64", "v1.2.3")

    assert not (tmp_path / "escaped.txt").exists()


def test_unwritable_workdir_is_download_error(tmp_path, make_transport):
    transport = make_transport(lambda request: httpx.Response(200, content=b"archive"))
    fetcher = make_fetcher(tmp_path / "not-yet" / "popm", transport)

    with patch("popm_bootstrap.fetcher.Path.mkdir", side_effect=PermissionError(13, "Permission denied")):
        with pytest.raises(DownloadError, match="Could not create working directory"):
            fetcher.fetch("x86_64", "v1.2.3")

    assert transport.requests == []


def test_missing_workdir_is_created(tmp_path, make_tarball, make_transport, bundle_files):
    archive = make_tarball("heminetwork_v1.2.3_linux_amd64", bundle_files)
    transport = make_transport(lambda request: httpx.Response(200, content=archive))
    workdir = tmp_path / "not-yet" / "popm"

    bundle = make_fetcher(workdir, transport).fetch("x86_64", "v1.2.3")

    assert bundle.extracted_dir == workdir / "heminetwork_v1.2.3_linux_amd64"
    assert bundle.executable("popmd").is_file()
