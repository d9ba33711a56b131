"""Tests for the JSON state documents

Run with pytest from project root:
    pytest tests/test_state_store.py -v
"""

import json

import pytest

from managers.state_store import InscriptionIndexStore, MintStateStore, UploadManifestStore
from models.asset import InscriptionRecord, MintRecord, ProvenanceRecord, ProvisionProgress, ProvisionStage
from models.errors import PersistenceFailure
from models.upload import UploadRecord


def make_provenance(suffix="1"):
    return ProvenanceRecord(
        mint_address=f"Mint{suffix}",
        json_account=f"Json{suffix}",
        image_account=f"Image{suffix}",
        link_signature=f"Link{suffix}",
        name="X1 Punk #1",
        symbol="X1PUNK",
        json_size=120,
        image_size=300,
        image_hash="ab" * 32,
    )


def make_mint(punk_id, owner="Wallet1"):
    return MintRecord(
        asset_id=punk_id,
        name=f"X1 Punk #{punk_id}",
        symbol="X1PUNK",
        owner=owner,
        image_url=f"https://arweave.test/tx{punk_id}",
        payment_proof="PaySig",
        provenance=make_provenance(str(punk_id)),
    )


class TestJsonDocument:
    """Tests for shared load/save behaviour"""

    def test_missing_file_starts_empty(self, tmp_path):
        """A missing document is created empty on first use"""
        store = MintStateStore(tmp_path / "mint-state.json")
        assert store.minted_count == 0
        assert store.mints == []
        assert not (tmp_path / "mint-state.json").exists()

    def test_corrupt_file_refused(self, tmp_path):
        """An unreadable document raises instead of starting empty, and is kept on disk"""
        path = tmp_path / "mint-state.json"
        path.write_text('{"mintedCount": 2, "mints": [{"id": 3}')
        store = MintStateStore(path)

        with pytest.raises(PersistenceFailure, match="unreadable"):
            store.minted_ids
        with pytest.raises(PersistenceFailure):
            store.reserve(ProvisionProgress(asset_id=5, owner="Wallet1", payment_proof="PaySig"))

        assert path.read_text() == '{"mintedCount": 2, "mints": [{"id": 3}'
        assert (tmp_path / "mint-state.json.corrupt").read_text() == path.read_text()

    def test_non_object_document_refused(self, tmp_path):
        path = tmp_path / "arweave-manifest.json"
        path.write_text("[1, 2, 3]")
        with pytest.raises(PersistenceFailure):
            UploadManifestStore(path).contains(1)

    def test_save_refused_when_file_corrupted_after_load(self, tmp_path):
        """A document damaged on disk after loading is never overwritten"""
        path = tmp_path / "mint-state.json"
        store = MintStateStore(path)
        store.record_mint(make_mint(1))
        damaged = path.read_text()[:20]
        path.write_text(damaged)

        with pytest.raises(PersistenceFailure):
            store.record_mint(make_mint(2))
        assert path.read_text() == damaged

    def test_save_is_atomic_and_versioned(self, tmp_path):
        """Saving leaves no temp file and bumps the version"""
        path = tmp_path / "mint-state.json"
        store = MintStateStore(path)
        store.record_mint(make_mint(1))
        store.record_mint(make_mint(2))
        data = json.loads(path.read_text())
        assert data["version"] == 2
        assert not path.with_suffix(".json.tmp").exists()

    def test_concurrent_writer_detected(self, tmp_path):
        """A save over a newer on-disk version raises PersistenceFailure"""
        path = tmp_path / "mint-state.json"
        first = MintStateStore(path)
        second = MintStateStore(path)
        assert first.minted_count == 0
        assert second.minted_count == 0
        first.record_mint(make_mint(1))
        with pytest.raises(PersistenceFailure):
            second.record_mint(make_mint(2))

    def test_reload_picks_up_external_writes(self, tmp_path):
        """reload() re-reads the file"""
        path = tmp_path / "mint-state.json"
        store = MintStateStore(path)
        assert store.minted_count == 0
        MintStateStore(path).record_mint(make_mint(4))
        assert store.minted_count == 0
        store.reload()
        assert store.minted_ids == {4}

    def test_unwritable_path_raises(self, tmp_path):
        """I/O errors surface as PersistenceFailure"""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = MintStateStore(blocker / "mint-state.json")
        with pytest.raises(PersistenceFailure):
            store.record_mint(make_mint(1))


class TestMintStateStore:
    """Tests for mint state"""

    def test_legacy_document_normalized(self, tmp_path):
        """mintedIds is derived from mints when absent"""
        path = tmp_path / "mint-state.json"
        path.write_text(json.dumps({"mintedCount": 2, "mints": [{"id": 3}, {"id": 8}]}))
        store = MintStateStore(path)
        assert store.minted_ids == {3, 8}
        assert store.minted_count == 2
        assert store.pending() == []

    def test_record_mint_keeps_counts_consistent(self, tmp_path):
        """mintedCount, mints and mintedIds stay in step"""
        store = MintStateStore(tmp_path / "mint-state.json")
        for punk_id in (5, 2, 9):
            store.record_mint(make_mint(punk_id))
        data = json.loads((tmp_path / "mint-state.json").read_text())
        assert data["mintedCount"] == len(data["mints"]) == len(data["mintedIds"]) == 3
        assert data["mintedIds"] == [5, 2, 9]
        assert data["mints"][0]["inscription"]["mintAddress"] == "Mint5"

    def test_record_mint_rejects_duplicate(self, tmp_path):
        """An id can only be minted once"""
        store = MintStateStore(tmp_path / "mint-state.json")
        store.record_mint(make_mint(1))
        with pytest.raises(ValueError):
            store.record_mint(make_mint(1))

    def test_reserve_and_release(self, tmp_path):
        """Reservations are persisted and can be dropped"""
        path = tmp_path / "mint-state.json"
        store = MintStateStore(path)
        store.reserve(ProvisionProgress(asset_id=6, owner="Wallet1", payment_proof="PaySig"))
        assert store.assigned_ids() == {6}
        assert "6" in json.loads(path.read_text())["pending"]

        store.release(6)
        assert store.pending_ids() == set()
        assert json.loads(path.read_text())["pending"] == {}

    def test_reserve_rejects_taken_ids(self, tmp_path):
        """Minted or already reserved ids cannot be reserved"""
        store = MintStateStore(tmp_path / "mint-state.json")
        store.record_mint(make_mint(1))
        store.reserve(ProvisionProgress(asset_id=2, owner="W", payment_proof="P"))
        with pytest.raises(ValueError):
            store.reserve(ProvisionProgress(asset_id=1, owner="W", payment_proof="P"))
        with pytest.raises(ValueError):
            store.reserve(ProvisionProgress(asset_id=2, owner="W", payment_proof="P"))

    def test_progress_round_trips(self, tmp_path):
        """Pending progress survives a reload with its stage and values"""
        path = tmp_path / "mint-state.json"
        store = MintStateStore(path)
        progress = ProvisionProgress(asset_id=7, owner="Wallet1", payment_proof="PaySig")
        store.reserve(progress)
        progress.advance(ProvisionStage.METADATA_STORED, mint_address="Mint7", json_account="Json7", json_size=99)
        store.update_progress(progress)

        restored = MintStateStore(path).pending()[0]
        assert restored.stage == ProvisionStage.METADATA_STORED
        assert restored.mint_address == "Mint7"
        assert restored.json_size == 99
        assert restored.payment_proof == "PaySig"

    def test_record_mint_clears_reservation(self, tmp_path):
        """Completing a mint removes its pending entry"""
        store = MintStateStore(tmp_path / "mint-state.json")
        store.reserve(ProvisionProgress(asset_id=3, owner="Wallet1", payment_proof="PaySig"))
        store.record_mint(make_mint(3))
        assert store.pending_ids() == set()
        assert store.minted_ids == {3}


class TestInscriptionIndexStore:
    """Tests for the inscription index"""

    def test_index_first_write_wins(self, tmp_path):
        """A second record for the same punk leaves the first untouched"""
        path = tmp_path / "inscriptions-index.json"
        store = InscriptionIndexStore(path, "X1 Punks")
        first = InscriptionRecord(3, "X1 Punk #3", "X1PUNK", "OwnerA", make_provenance("A"), {"name": "X1 Punk #3"})
        second = InscriptionRecord(3, "X1 Punk #3", "X1PUNK", "OwnerB", make_provenance("B"), {"name": "X1 Punk #3"})

        stored = store.index(first)
        again = store.index(second)

        assert again == stored
        assert again["owner"] == "OwnerA"
        data = json.loads(path.read_text())
        assert data["totalInscribed"] == 1
        assert data["inscriptions"][0]["onChain"]["mintAddress"] == "MintA"
        assert data["program"] == "X1 Punks"
        assert data["lastUpdated"]

    def test_lookup_by_id_after_reload(self, tmp_path):
        """Lookups use the id map, rebuilt whenever the file is re-read"""
        path = tmp_path / "inscriptions-index.json"
        store = InscriptionIndexStore(path, "X1 Punks")
        store.index(InscriptionRecord(3, "X1 Punk #3", "X1PUNK", "OwnerA", make_provenance("A"), {}))
        assert store.get(3)["owner"] == "OwnerA"

        other = InscriptionIndexStore(path, "X1 Punks")
        other.index(InscriptionRecord(7, "X1 Punk #7", "X1PUNK", "OwnerB", make_provenance("B"), {}))
        assert store.get(7) is None
        store.reload()
        assert store.get(7)["onChain"]["mintAddress"] == "MintB"
        assert store.get(3)["owner"] == "OwnerA"

    def test_get_missing(self, tmp_path):
        """Unknown punks return None"""
        store = InscriptionIndexStore(tmp_path / "inscriptions-index.json", "X1 Punks")
        assert store.get(1) is None
        assert store.last_updated is None


class TestUploadManifestStore:
    """Tests for the archive manifest"""

    def test_merge_skips_existing(self, tmp_path):
        """Existing entries are never overwritten"""
        path = tmp_path / "arweave-manifest.json"
        store = UploadManifestStore(path)
        assert store.merge([UploadRecord(1, "txA", "https://arweave.test/txA", 10)]) == 1
        assert store.merge([
            UploadRecord(1, "txB", "https://arweave.test/txB", 10),
            UploadRecord(2, "txC", "https://arweave.test/txC", 12),
        ]) == 1

        data = json.loads(path.read_text())
        assert data["uploads"]["1"]["imageTxId"] == "txA"
        assert data["totalUploaded"] == 2
        assert data["startedAt"]
        assert data["lastUpdated"]

    def test_image_url_fallback(self, tmp_path):
        """Unarchived punks resolve to the fallback URL"""
        store = UploadManifestStore(tmp_path / "arweave-manifest.json")
        store.merge([UploadRecord(4, "tx4", "https://arweave.test/tx4", 10)])
        assert store.image_url(4, "fallback") == "https://arweave.test/tx4"
        assert store.image_url(5, "fallback") == "fallback"
