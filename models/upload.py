"""Archival upload data models"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from models.asset import utc_timestamp


@dataclass
class UploadRecord:
    """Manifest entry for one archived image"""
    asset_id: int
    tx_id: str
    url: str
    size: int
    uploaded_at: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imageTxId": self.tx_id,
            "imageUrl": self.url,
            "imageSize": self.size,
            "uploadedAt": self.uploaded_at,
        }


@dataclass
class UploadSummary:
    """Counters for one uploader run"""
    start: int
    end: int
    uploaded: int = 0
    skipped: int = 0
    failed: int = 0
    total_in_manifest: int = 0
    failures: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.uploaded + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": self.start,
            "end": self.end,
            "uploaded": self.uploaded,
            "skipped": self.skipped,
            "failed": self.failed,
            "totalInManifest": self.total_in_manifest,
            "failures": self.failures,
        }
