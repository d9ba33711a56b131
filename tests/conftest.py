"""Shared fixtures and in-memory fakes for the ledger and Arweave clients"""

import random
import threading
from pathlib import Path

import pytest
from PIL import Image

from ledger_client import DataAllocation
from managers.config_manager import load_settings
from managers.mint_manager import MintManager

TEST_SUPPLY = 10

TRAITS_CSV = """type,accessory1,accessory2
Alien,Cap,
Ape,,Earring
Zombie,Hoodie,Shades
Male,,
Female,Tiara,
"""


class FakeLedger:
    """Records every call; ``fail(method, nth)`` makes the nth call of a method raise"""

    def __init__(self):
        self.calls = []
        self.references = []
        self._failures = {}

    def fail(self, method: str, nth: int = 1, error: Exception = None):
        self._failures[(method, nth)] = error or RuntimeError(f"{method} rejected by RPC")

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _record(self, method: str, *args):
        self.calls.append((method,) + args)
        error = self._failures.pop((method, self.count(method)), None)
        if error is not None:
            raise error
        return len(self.calls)

    async def create_asset_record(self, name, symbol, uri, owner):
        n = self._record("create_asset_record", name, symbol, uri, owner)
        return f"Mint{n}"

    async def create_data_allocation(self, size):
        n = self._record("create_data_allocation", size)
        return DataAllocation(address=f"Data{n}", signature=f"AllocSig{n}", size=size, lamports=size * 10)

    async def submit_linkage(self, reference):
        n = self._record("submit_linkage", reference)
        self.references.append(reference)
        return f"Link{n}"


class FakeArweave:
    """Thread-safe stand-in for ArweaveClient"""

    address = "arweave-test-address"

    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.uploads = []
        self._lock = threading.Lock()

    def balance(self) -> float:
        return 1.5

    def upload_file(self, path, content_type, tags=None):
        punk_id = int(tags["Punk-Id"])
        if punk_id in self.fail_ids:
            raise RuntimeError("gateway timeout")
        with self._lock:
            self.uploads.append({"punkId": punk_id, "path": Path(path), "contentType": content_type, "tags": dict(tags)})
        return f"tx{punk_id}"

    def url_for(self, tx_id: str) -> str:
        return f"https://arweave.test/{tx_id}"


def write_png(path: Path, color=(255, 0, 0), size=(24, 24)):
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, format="PNG")


@pytest.fixture
def project(tmp_path):
    """Project root with a trait table and one PNG per punk"""
    generated = tmp_path / "generated"
    for punk_id in range(TEST_SUPPLY):
        write_png(generated / f"punk_{punk_id}.png", color=(punk_id * 20, 0, 0))
    traits = tmp_path / "punks.whitelabel" / "punks.csv"
    traits.parent.mkdir(parents=True)
    traits.write_text(TRAITS_CSV, encoding="utf-8")
    return tmp_path


@pytest.fixture
def settings(project):
    return load_settings(
        project_root=project,
        config_file=project / "missing-config.json",
        env={},
        total_supply=TEST_SUPPLY,
        upload_delay_seconds=0.0,
    )


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def manager(settings, ledger):
    return MintManager(settings, ledger, rng=random.Random(7))


@pytest.fixture
def arweave():
    return FakeArweave()
