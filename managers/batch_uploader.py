"""Resumable batch archival of punk images to permanent storage"""

import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Tuple

from asset_processor import PAYLOAD_MIME_TYPE, payload_path, read_payload
from managers.state_store import UploadManifestStore
from models.errors import UploadFailure
from models.upload import UploadRecord, UploadSummary

logger = logging.getLogger("X1Punks")

APP_NAME = "X1Punks"


class BatchUploader:
    """Uploads images in bounded concurrent groups, checkpointing after each group.

    The manifest is the only resume state: ids already present are skipped,
    and successes are merged and flushed before the next group starts, so a
    crash loses at most the group in flight.
    """

    def __init__(
        self,
        client,
        manifest: UploadManifestStore,
        generated_dir: Path,
        batch_size: int = 5,
        delay_seconds: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        self.client = client
        self.manifest = manifest
        self.generated_dir = Path(generated_dir)
        self.batch_size = batch_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def partition(self, start: int, end: int) -> Tuple[List[int], int]:
        """Split [start, end) into ids still to upload and a count of archived ones"""
        pending = []
        skipped = 0
        for punk_id in range(start, end):
            if self.manifest.contains(punk_id):
                skipped += 1
            else:
                pending.append(punk_id)
        return pending, skipped

    def tags_for(self, punk_id: int) -> Dict[str, str]:
        return {"App-Name": APP_NAME, "Punk-Id": str(punk_id), "Type": "image"}

    async def upload_one(self, punk_id: int) -> UploadRecord:
        """Upload a single image; raises PayloadMissing or UploadFailure"""
        data = read_payload(self.generated_dir, punk_id)
        path = payload_path(self.generated_dir, punk_id)
        try:
            tx_id = await asyncio.to_thread(
                self.client.upload_file, path, PAYLOAD_MIME_TYPE, self.tags_for(punk_id)
            )
        except Exception as e:
            raise UploadFailure(punk_id, e) from e
        return UploadRecord(asset_id=punk_id, tx_id=tx_id, url=self.client.url_for(tx_id), size=len(data))

    async def upload_range(self, start: int, end: int) -> UploadSummary:
        """Archive every punk in [start, end) not already in the manifest"""
        summary = UploadSummary(start=start, end=end)
        pending, summary.skipped = self.partition(start, end)

        if summary.skipped:
            logger.info(f"Skipping {summary.skipped} already-uploaded punks (resuming)")
        logger.info(f"Uploading {len(pending)} punks...")

        groups = [pending[i:i + self.batch_size] for i in range(0, len(pending), self.batch_size)]
        for number, group in enumerate(groups, start=1):
            logger.info(f"--- Batch {number}/{len(groups)} (Punks: {', '.join(map(str, group))}) ---")
            results = await asyncio.gather(*(self.upload_one(punk_id) for punk_id in group), return_exceptions=True)

            succeeded = []
            interrupted = None
            for punk_id, result in zip(group, results):
                if isinstance(result, UploadRecord):
                    succeeded.append(result)
                    logger.info(f"  ✓ Punk #{punk_id} → {result.url}")
                elif isinstance(result, Exception):
                    summary.failed += 1
                    summary.failures.append({"punkId": punk_id, "error": str(result)})
                    logger.error(f"  ✗ Failed: {result}")
                else:
                    interrupted = result

            # Checkpoint before anything else can interrupt the run
            summary.uploaded += self.manifest.merge(succeeded)
            if interrupted is not None:
                raise interrupted

            if number < len(groups):
                await self._sleep(self.delay_seconds)

        summary.total_in_manifest = self.manifest.total_uploaded
        if summary.failed:
            logger.warning(
                f"{summary.failed} failed. Re-run to retry; already-uploaded punks are skipped."
            )
        return summary
