"""Asset provenance data models"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ProvisionStage(str, Enum):
    """Per-identifier pipeline progress, in execution order"""
    UNSTARTED = "unstarted"
    RECORD_CREATED = "record_created"
    METADATA_STORED = "metadata_stored"
    PAYLOAD_STORED = "payload_stored"
    LINKED = "linked"

    @property
    def rank(self) -> int:
        return list(ProvisionStage).index(self)

    def reached(self, other: "ProvisionStage") -> bool:
        return self.rank >= other.rank


@dataclass
class ProvenanceRecord:
    """Addresses, ids and hashes produced by provisioning one punk"""
    mint_address: str
    json_account: str
    image_account: str
    link_signature: str
    name: str
    symbol: str
    json_size: int
    image_size: int
    image_hash: str

    def to_on_chain(self) -> Dict[str, Any]:
        return {
            "mintAddress": self.mint_address,
            "jsonAccount": self.json_account,
            "imageAccount": self.image_account,
            "memoSignature": self.link_signature,
            "jsonSize": self.json_size,
            "imageSize": self.image_size,
            "imageHash": self.image_hash,
        }


@dataclass
class ProvisionProgress:
    """Resumable record of how far the pipeline got for one identifier.

    Stored under ``pending`` in the mint state document so an interrupted or
    failed provisioning can continue from the last confirmed step instead of
    leaving orphaned ledger allocations behind.
    """
    asset_id: int
    owner: str
    payment_proof: str
    stage: ProvisionStage = ProvisionStage.UNSTARTED
    mint_address: Optional[str] = None
    json_account: Optional[str] = None
    json_size: Optional[int] = None
    image_account: Optional[str] = None
    image_size: Optional[int] = None
    image_hash: Optional[str] = None
    link_signature: Optional[str] = None
    reserved_at: str = field(default_factory=utc_timestamp)
    updated_at: Optional[str] = None
    last_error: Optional[str] = None

    def advance(self, stage: ProvisionStage, **values: Any):
        for key, value in values.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown progress field '{key}'")
            setattr(self, key, value)
        self.stage = stage
        self.updated_at = utc_timestamp()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.asset_id,
            "owner": self.owner,
            "txSignature": self.payment_proof,
            "stage": self.stage.value,
            "mintAddress": self.mint_address,
            "jsonAccount": self.json_account,
            "jsonSize": self.json_size,
            "imageAccount": self.image_account,
            "imageSize": self.image_size,
            "imageHash": self.image_hash,
            "memoSignature": self.link_signature,
            "reservedAt": self.reserved_at,
            "updatedAt": self.updated_at,
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProvisionProgress":
        return cls(
            asset_id=int(data["id"]),
            owner=data["owner"],
            payment_proof=data.get("txSignature", ""),
            stage=ProvisionStage(data.get("stage", ProvisionStage.UNSTARTED.value)),
            mint_address=data.get("mintAddress"),
            json_account=data.get("jsonAccount"),
            json_size=data.get("jsonSize"),
            image_account=data.get("imageAccount"),
            image_size=data.get("imageSize"),
            image_hash=data.get("imageHash"),
            link_signature=data.get("memoSignature"),
            reserved_at=data.get("reservedAt") or utc_timestamp(),
            updated_at=data.get("updatedAt"),
            last_error=data.get("lastError"),
        )


@dataclass
class MintRecord:
    """Entry in the mint state ``mints`` list"""
    asset_id: int
    name: str
    symbol: str
    owner: str
    image_url: str
    payment_proof: str
    provenance: ProvenanceRecord
    inscribed_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.asset_id,
            "name": self.name,
            "symbol": self.symbol,
            "owner": self.owner,
            "imageUrl": self.image_url,
            "txSignature": self.payment_proof,
            "mintAddress": self.provenance.mint_address,
            "inscribedAt": self.inscribed_at,
            "onChain": True,
            "inscription": self.provenance.to_on_chain(),
        }


@dataclass
class InscriptionRecord:
    """Entry in the inscription index; immutable once written"""
    asset_id: int
    name: str
    symbol: str
    owner: str
    provenance: ProvenanceRecord
    metadata: Dict[str, Any]
    inscribed_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "punkId": self.asset_id,
            "name": self.name,
            "symbol": self.symbol,
            "owner": self.owner,
            "inscribedAt": self.inscribed_at,
            "onChain": self.provenance.to_on_chain(),
            "metadata": self.metadata,
        }


OUTCOME_SUCCESS = "success"
OUTCOME_PARTIAL = "partial"
OUTCOME_SOLD_OUT = "sold_out"
OUTCOME_FAILED = "failed"


@dataclass
class MintOutcome:
    """Terminal result of one batch request"""
    status: str
    requested: int
    minted: List[Dict[str, Any]] = field(default_factory=list)
    total_minted: int = 0
    error: Optional[str] = None
    failed_id: Optional[int] = None
    failed_step: Optional[str] = None
    sold_out: bool = False
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def completed(self) -> int:
        return len(self.minted)

    @property
    def ok(self) -> bool:
        return self.status in (OUTCOME_SUCCESS, OUTCOME_PARTIAL)
