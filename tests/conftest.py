import io
import json
import tarfile
from pathlib import Path

import httpx
import pytest

from popm_bootstrap.config import BootstrapConfig


def build_tarball(top: str, files: dict) -> bytes:
    """Build an in-memory .tar.gz with files placed under top/."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        dir_info = tarfile.TarInfo(top)
        dir_info.type = tarfile.DIRTYPE
        dir_info.mode = 0o755
        tar.addfile(dir_info)

        for name, content in files.items():
            info = tarfile.TarInfo(f"{top}/{name}" if top else name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler):
        self.requests = []

        def _record(request):
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def make_tarball():
    return build_tarball


@pytest.fixture
def make_transport():
    return RecordingTransport


@pytest.fixture
def bundle_files():
    return {
        "popmd": b"#!/bin/sh\nexit 0\n",
        "keygen": b"#!/bin/sh\nexit 0\n",
    }


@pytest.fixture
def wallet_json():
    return json.dumps({
        "ethereum_address": "0x0000000000000000000000000000000000000001",
        "network": "testnet",
        "private_key": "a" * 64,
        "public_key": "02" + "b" * 64,
        "pubkey_hash": "mxPubkeyHashExample",
    })


@pytest.fixture
def config(tmp_path) -> BootstrapConfig:
    return BootstrapConfig(
        workdir=tmp_path / "work",
        wallet_path=tmp_path / "home" / "popm-address.json",
        log_file=tmp_path / "popm_setup.log",
        resolve_delay=0,
    )


@pytest.fixture
def wallet_path(config) -> Path:
    config.wallet_path.parent.mkdir(parents=True, exist_ok=True)
    return config.wallet_path
