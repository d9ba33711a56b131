"""File-backed state documents: mint state, inscription index, upload manifest"""

import copy
import json
import logging
import os
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from models.asset import InscriptionRecord, MintRecord, ProvisionProgress, utc_timestamp
from models.errors import PersistenceFailure
from models.upload import UploadRecord

logger = logging.getLogger("X1Punks")


class JsonDocument:
    """One JSON document loaded lazily into memory and fully rewritten on save.

    Saves are atomic (temp file + rename). Each document carries a ``version``
    counter; ``save()`` refuses to overwrite a file whose on-disk version no
    longer matches the version that was loaded, so two writers cannot silently
    lose each other's updates.

    Only a missing file starts as an empty document. A file that exists but
    cannot be parsed raises ``PersistenceFailure`` on every access until it is
    repaired; a copy is kept next to it as ``<name>.corrupt``.
    """

    def __init__(self, path: Path, factory: Callable[[], Dict[str, Any]]):
        self.path = Path(path)
        self._factory = factory
        self._data: Optional[Dict[str, Any]] = None
        self._loaded_version = 0

    @property
    def corrupt_path(self) -> Path:
        return self.path.with_suffix(self.path.suffix + ".corrupt")

    def _read_file(self) -> Optional[Dict[str, Any]]:
        """Parsed document, or None if the file does not exist.

        Raises:
            PersistenceFailure: the file exists but is unreadable or not a JSON object
        """
        if not self.path.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("document is not a JSON object")
        except (json.JSONDecodeError, ValueError, OSError) as e:
            self._keep_corrupt_copy()
            logger.error(f"Refusing to use unreadable {self.path}: {e}")
            raise PersistenceFailure(
                self.path,
                e,
                message=f"{self.path.name} is unreadable ({e}); repair or restore it before continuing",
            ) from e
        return data

    def _keep_corrupt_copy(self):
        if self.corrupt_path.exists():
            return
        try:
            shutil.copy2(self.path, self.corrupt_path)
            logger.warning(f"Saved a copy of the damaged document as {self.corrupt_path.name}")
        except OSError as e:
            logger.error(f"Could not copy {self.path.name} aside: {e}")

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Hook for subclasses to repair/upgrade a freshly loaded document"""
        return data

    @property
    def data(self) -> Dict[str, Any]:
        if self._data is None:
            self._load()
        return self._data

    def _load(self):
        loaded = self._read_file()
        if loaded is None:
            loaded = self._factory()
        self._data = self.normalize(loaded)
        self._loaded_version = int(self._data.get("version", 0))

    def reload(self):
        """Drop the in-memory copy; the next access re-reads the file"""
        self._data = None
        self._loaded_version = 0

    def _on_disk_version(self) -> int:
        current = self._read_file()
        if current is None:
            return 0
        return int(current.get("version", 0))

    def save(self):
        """Write the document atomically, bumping its version"""
        data = self.data
        on_disk = self._on_disk_version()
        if on_disk != self._loaded_version:
            raise PersistenceFailure(
                self.path,
                message=(
                    f"{self.path.name} was modified by another writer "
                    f"(expected version {self._loaded_version}, found {on_disk})"
                ),
            )

        data["version"] = self._loaded_version + 1
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(self.path)
        except (OSError, TypeError, ValueError) as e:
            data["version"] = self._loaded_version
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError:
                    pass
            logger.error(f"Failed to write {self.path}: {e}")
            raise PersistenceFailure(self.path, e) from e

        self._loaded_version = data["version"]
        logger.debug(f"Saved {self.path.name} (version {self._loaded_version})")

    def snapshot(self) -> Dict[str, Any]:
        """Deep copy of the document for read-only projections"""
        return copy.deepcopy(self.data)


class MintStateStore(JsonDocument):
    """Mint state: minted ids, mint records and pending reservations"""

    def __init__(self, path: Path):
        super().__init__(path, lambda: {"mintedCount": 0, "mints": [], "mintedIds": [], "pending": {}})

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data.setdefault("mints", [])
        if "mintedIds" not in data:
            data["mintedIds"] = [m["id"] for m in data["mints"]]
        data.setdefault("pending", {})
        data["mintedCount"] = len(data["mintedIds"])
        return data

    @property
    def minted_ids(self) -> Set[int]:
        return set(self.data["mintedIds"])

    @property
    def minted_count(self) -> int:
        return self.data["mintedCount"]

    @property
    def mints(self) -> List[Dict[str, Any]]:
        return self.data["mints"]

    def is_minted(self, punk_id: int) -> bool:
        return punk_id in self.data["mintedIds"]

    def pending(self) -> List[ProvisionProgress]:
        return [ProvisionProgress.from_dict(entry) for entry in self.data["pending"].values()]

    def pending_ids(self) -> Set[int]:
        return {int(key) for key in self.data["pending"]}

    def assigned_ids(self) -> Set[int]:
        """Ids that must not be handed out again: minted plus reserved"""
        return self.minted_ids | self.pending_ids()

    def reserve(self, progress: ProvisionProgress):
        """Claim an identifier before any ledger work starts, and flush"""
        key = str(progress.asset_id)
        if self.is_minted(progress.asset_id):
            raise ValueError(f"Punk #{progress.asset_id} is already minted")
        if key in self.data["pending"]:
            raise ValueError(f"Punk #{progress.asset_id} is already reserved")
        self.data["pending"][key] = progress.to_dict()
        try:
            self.save()
        except PersistenceFailure:
            del self.data["pending"][key]
            raise

    def update_progress(self, progress: ProvisionProgress):
        self.data["pending"][str(progress.asset_id)] = progress.to_dict()
        self.save()

    def release(self, punk_id: int):
        """Drop a reservation that never reached the ledger, and flush"""
        if self.data["pending"].pop(str(punk_id), None) is not None:
            self.save()

    def record_mint(self, record: MintRecord):
        """Append a completed mint, clear its reservation, and flush"""
        if self.is_minted(record.asset_id):
            raise ValueError(f"Punk #{record.asset_id} is already minted")
        self.data["mints"].append(record.to_dict())
        self.data["mintedIds"].append(record.asset_id)
        self.data["mintedCount"] = len(self.data["mintedIds"])
        self.data["pending"].pop(str(record.asset_id), None)
        self.save()


class InscriptionIndexStore(JsonDocument):
    """Inscription index; the first record written for an id is authoritative"""

    def __init__(self, path: Path, program_name: str):
        self.program_name = program_name
        self._by_id: Dict[int, Dict[str, Any]] = {}
        super().__init__(path, lambda: {"program": program_name, "inscriptions": [], "totalInscribed": 0})

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data.setdefault("program", self.program_name)
        data.setdefault("inscriptions", [])
        data["totalInscribed"] = len(data["inscriptions"])
        self._by_id = {}
        for inscription in data["inscriptions"]:
            self._by_id.setdefault(inscription.get("punkId"), inscription)
        return data

    @property
    def inscriptions(self) -> List[Dict[str, Any]]:
        return self.data["inscriptions"]

    @property
    def last_updated(self) -> Optional[str]:
        return self.data.get("lastUpdated")

    def get(self, punk_id: int) -> Optional[Dict[str, Any]]:
        if self._data is None:
            self._load()
        return self._by_id.get(punk_id)

    def index(self, record: InscriptionRecord) -> Dict[str, Any]:
        """Add a record unless one already exists for the id; returns the stored entry"""
        existing = self.get(record.asset_id)
        if existing is not None:
            logger.warning(f"Punk #{record.asset_id} already indexed; keeping the first inscription")
            return existing

        entry = record.to_dict()
        self.data["inscriptions"].append(entry)
        self._by_id[record.asset_id] = entry
        self.data["lastUpdated"] = utc_timestamp()
        self.data["totalInscribed"] = len(self.data["inscriptions"])
        self.save()
        return entry


class UploadManifestStore(JsonDocument):
    """Archive manifest; the resume checkpoint for the batch uploader"""

    def __init__(self, path: Path):
        super().__init__(path, lambda: {"uploads": {}, "totalUploaded": 0, "startedAt": utc_timestamp()})

    def normalize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        data.setdefault("uploads", {})
        data["totalUploaded"] = len(data["uploads"])
        return data

    @property
    def total_uploaded(self) -> int:
        return self.data["totalUploaded"]

    def contains(self, punk_id: int) -> bool:
        return str(punk_id) in self.data["uploads"]

    def get(self, punk_id: int) -> Optional[Dict[str, Any]]:
        return self.data["uploads"].get(str(punk_id))

    def image_url(self, punk_id: int, fallback: str) -> str:
        entry = self.get(punk_id)
        if entry and entry.get("imageUrl"):
            return entry["imageUrl"]
        return fallback

    def merge(self, records: Iterable[UploadRecord]) -> int:
        """Add upload records (existing entries are kept) and flush; returns count added"""
        added = 0
        for record in records:
            key = str(record.asset_id)
            if key in self.data["uploads"]:
                continue
            self.data["uploads"][key] = record.to_dict()
            added += 1
        self.data["totalUploaded"] = len(self.data["uploads"])
        self.data["lastUpdated"] = utc_timestamp()
        self.save()
        return added
