"""Provisioning pipeline: mint an asset record and inscribe its data on the ledger"""

import json
import logging
from pathlib import Path
from typing import AbstractSet, Any, Callable, Dict, Optional

from asset_processor import content_hash, read_payload
from managers.metadata_builder import MetadataBuilder
from models.asset import ProvenanceRecord, ProvisionProgress, ProvisionStage
from models.errors import AlreadyProvisioned, StepFailure

logger = logging.getLogger("X1Punks")

STEP_RECORD = "record"
STEP_METADATA = "metadata"
STEP_PAYLOAD = "payload"
STEP_LINK = "link"

LINK_PROTOCOL = "x1-inscription"
LINK_PROTOCOL_VERSION = "1.0"

ProgressCallback = Callable[[ProvisionProgress], None]


class InscriptionPipeline:
    """Runs the four provisioning steps for one punk, strictly in order.

    Steps:
        record   -> single-supply asset record minted to the recipient
        metadata -> compact JSON metadata persisted in a sized data allocation
        payload  -> PNG bytes persisted in a sized data allocation, SHA-256 hashed
        link     -> zero-value self transfer referencing everything above

    A ``ProvisionProgress`` passed in is resumed from its last completed stage.
    Any step failure aborts the remaining steps and raises ``StepFailure``;
    nothing is retried here.
    """

    def __init__(
        self,
        ledger,
        metadata_builder: MetadataBuilder,
        generated_dir: Path,
        image_url_for: Callable[[int], str],
    ):
        self.ledger = ledger
        self.metadata_builder = metadata_builder
        self.generated_dir = Path(generated_dir)
        self.image_url_for = image_url_for

    def _steps(self):
        return (
            (ProvisionStage.RECORD_CREATED, STEP_RECORD, self._create_record),
            (ProvisionStage.METADATA_STORED, STEP_METADATA, self._store_metadata),
            (ProvisionStage.PAYLOAD_STORED, STEP_PAYLOAD, self._store_payload),
            (ProvisionStage.LINKED, STEP_LINK, self._link),
        )

    async def provision(
        self,
        punk_id: int,
        recipient: str,
        progress: Optional[ProvisionProgress] = None,
        on_progress: Optional[ProgressCallback] = None,
        minted_ids: AbstractSet[int] = frozenset(),
    ) -> ProvenanceRecord:
        """Provision ``punk_id`` for ``recipient`` and return its provenance.

        Args:
            punk_id: Identifier to provision
            recipient: Ledger address receiving the asset record
            progress: Earlier progress for this identifier, if resuming
            on_progress: Called after every confirmed step with the updated progress
            minted_ids: Identifiers already provisioned; these are refused

        Raises:
            AlreadyProvisioned: ``punk_id`` is in ``minted_ids``
            StepFailure: a step failed; ``progress`` keeps the last confirmed stage
        """
        if punk_id in minted_ids:
            raise AlreadyProvisioned(punk_id)
        if progress is None:
            progress = ProvisionProgress(asset_id=punk_id, owner=recipient, payment_proof="")
        elif progress.asset_id != punk_id or progress.owner != recipient:
            raise ValueError(f"Progress for punk #{progress.asset_id} ({progress.owner}) does not match request")

        name = self.metadata_builder.name_for(punk_id)
        if progress.stage == ProvisionStage.UNSTARTED:
            logger.info(f"=== Inscribing {name} to {recipient[:8]}... ===")
        else:
            logger.info(f"=== Resuming {name} from stage '{progress.stage.value}' ===")

        for stage, step, action in self._steps():
            if progress.stage.reached(stage):
                continue
            try:
                values = await action(progress)
            except Exception as e:
                progress.last_error = str(e)
                logger.error(f"Step '{step}' failed for punk #{punk_id}: {e}")
                raise StepFailure(step, punk_id, e) from e
            progress.advance(stage, last_error=None, **values)
            if on_progress is not None:
                on_progress(progress)

        logger.info(f"=== {name} fully inscribed on-chain! ===")
        return ProvenanceRecord(
            mint_address=progress.mint_address,
            json_account=progress.json_account,
            image_account=progress.image_account,
            link_signature=progress.link_signature,
            name=name,
            symbol=self.metadata_builder.collection_symbol,
            json_size=progress.json_size,
            image_size=progress.image_size,
            image_hash=progress.image_hash,
        )

    async def _create_record(self, progress: ProvisionProgress) -> Dict[str, Any]:
        punk_id = progress.asset_id
        logger.info(f"  Step 1: Creating asset record for {progress.owner[:8]}...")
        mint_address = await self.ledger.create_asset_record(
            self.metadata_builder.name_for(punk_id),
            self.metadata_builder.collection_symbol,
            self.image_url_for(punk_id),
            progress.owner,
        )
        logger.info(f"  Asset record created: {mint_address}")
        return {"mint_address": mint_address}

    async def _store_metadata(self, progress: ProvisionProgress) -> Dict[str, Any]:
        metadata = self.metadata_builder.build(progress.asset_id)
        json_bytes = json.dumps(metadata, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        logger.info(f"  Step 2: Inscribing JSON metadata ({len(json_bytes)} bytes)...")
        allocation = await self.ledger.create_data_allocation(len(json_bytes))
        logger.info(f"  JSON account created: {allocation.address}")
        return {"json_account": allocation.address, "json_size": len(json_bytes)}

    async def _store_payload(self, progress: ProvisionProgress) -> Dict[str, Any]:
        image_bytes = read_payload(self.generated_dir, progress.asset_id)
        logger.info(f"  Step 3: Inscribing PNG image ({len(image_bytes)} bytes)...")
        allocation = await self.ledger.create_data_allocation(len(image_bytes))
        logger.info(f"  Image account created: {allocation.address}")
        return {
            "image_account": allocation.address,
            "image_size": len(image_bytes),
            "image_hash": content_hash(image_bytes),
        }

    async def _link(self, progress: ProvisionProgress) -> Dict[str, Any]:
        logger.info("  Step 4: Recording inscription link on-chain...")
        reference = {
            "protocol": LINK_PROTOCOL,
            "version": LINK_PROTOCOL_VERSION,
            "nft": progress.mint_address,
            "name": self.metadata_builder.name_for(progress.asset_id),
            "jsonAccount": progress.json_account,
            "imageAccount": progress.image_account,
            "jsonSize": progress.json_size,
            "imageSize": progress.image_size,
            "imageHash": progress.image_hash,
            "owner": progress.owner,
        }
        signature = await self.ledger.submit_linkage(reference)
        logger.info(f"  Link TX: {signature}")
        return {"link_signature": signature}
