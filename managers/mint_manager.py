"""Batch orchestration: allocate, reserve, provision and commit punks"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional

from managers.config_manager import Settings
from managers.id_allocator import IdentifierPool
from managers.inscription_pipeline import InscriptionPipeline
from managers.metadata_builder import MetadataBuilder
from managers.state_store import InscriptionIndexStore, MintStateStore, UploadManifestStore
from models.asset import (
    OUTCOME_FAILED,
    OUTCOME_PARTIAL,
    OUTCOME_SOLD_OUT,
    OUTCOME_SUCCESS,
    InscriptionRecord,
    MintOutcome,
    MintRecord,
    ProvenanceRecord,
    ProvisionProgress,
    ProvisionStage,
)
from models.errors import InvalidRequest, PersistenceFailure, StepFailure

logger = logging.getLogger("X1Punks")

SOLD_OUT_MESSAGE = "Sold out!"


class MintManager:
    """Owns the state documents and runs batch requests against the pipeline.

    Every pipeline in the process runs under one lock because all ledger
    writes are paid by the same payer credential. Identifiers are reserved in
    the mint state before any ledger call, so a crash or failure can never
    hand the same identifier to a second request.
    """

    def __init__(
        self,
        settings: Settings,
        ledger,
        mint_state: Optional[MintStateStore] = None,
        inscriptions: Optional[InscriptionIndexStore] = None,
        manifest: Optional[UploadManifestStore] = None,
        metadata_builder: Optional[MetadataBuilder] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.ledger = ledger
        self.mint_state = mint_state or MintStateStore(settings.mint_state_file)
        self.inscriptions = inscriptions or InscriptionIndexStore(settings.inscriptions_file, settings.program_name)
        self.manifest = manifest or UploadManifestStore(settings.manifest_file)
        self.metadata_builder = metadata_builder or MetadataBuilder(
            settings.traits_csv,
            settings.collection_name,
            settings.collection_symbol,
            settings.program_name,
        )
        self.pipeline = InscriptionPipeline(ledger, self.metadata_builder, settings.generated_dir, self.image_url_for)
        self._rng = rng
        self._pool: Optional[IdentifierPool] = None
        self._lock = asyncio.Lock()

    @property
    def pool(self) -> IdentifierPool:
        if self._pool is None:
            self._pool = IdentifierPool(self.settings.total_supply, self.mint_state.assigned_ids(), self._rng)
        return self._pool

    def reload(self):
        """Re-read every document from disk and rebuild the identifier pool"""
        self.mint_state.reload()
        self.inscriptions.reload()
        self.manifest.reload()
        self.metadata_builder.reload()
        self._pool = None

    def image_url_for(self, punk_id: int) -> str:
        """Archived image URL, or the fallback location if not archived yet"""
        return self.manifest.image_url(punk_id, self.settings.fallback_image_for(punk_id))

    def validate_request(self, wallet: Any, quantity: Any, payment_proof: Any) -> int:
        if not wallet or not quantity or not payment_proof:
            raise InvalidRequest("Missing required fields: wallet, quantity, txSignature")
        try:
            quantity = int(quantity)
        except (TypeError, ValueError):
            raise InvalidRequest(f"Quantity must be 1-{self.settings.max_quantity}")
        if quantity < 1 or quantity > self.settings.max_quantity:
            raise InvalidRequest(f"Quantity must be 1-{self.settings.max_quantity}")
        return quantity

    async def mint(self, wallet: str, quantity: int, payment_proof: str) -> MintOutcome:
        """Provision ``quantity`` random punks for ``wallet``.

        Raises:
            InvalidRequest: missing fields or quantity out of range
            PersistenceFailure: a state document could not be written
        """
        quantity = self.validate_request(wallet, quantity, payment_proof)
        async with self._lock:
            try:
                return await self._mint_locked(wallet, quantity, payment_proof)
            except PersistenceFailure:
                self.reload()
                raise

    async def _mint_locked(self, wallet: str, quantity: int, payment_proof: str) -> MintOutcome:
        logger.info("========================================")
        logger.info(f"New inscription request: {quantity} punks")
        logger.info(f"Wallet: {wallet}")
        logger.info(f"Payment TX: {payment_proof}")
        logger.info("========================================")

        minted: List[Dict[str, Any]] = []
        for i in range(quantity):
            punk_id = self.pool.allocate()
            if punk_id is None:
                logger.warning(f"Sold out after {len(minted)}/{quantity}")
                return self._sold_out(quantity, minted)

            progress = ProvisionProgress(asset_id=punk_id, owner=wallet, payment_proof=payment_proof)
            try:
                self.mint_state.reserve(progress)
            except PersistenceFailure:
                self.pool.release(punk_id)
                raise

            try:
                mint = await self._provision(progress)
            except StepFailure as failure:
                logger.error(f"✗ Failed to inscribe punk #{punk_id}: {failure.cause}")
                self._handle_failure(progress)
                return self._failed(quantity, minted, [failure])

            minted.append(mint)
            logger.info(f"✓ {i + 1}/{quantity} complete: {mint['name']}")

        logger.info(f"✓ All {quantity} punks inscribed on-chain!")
        logger.info(f"IDs: {', '.join(str(m['id']) for m in minted)}")
        logger.info(f"Total inscribed: {self.mint_state.minted_count}")
        return MintOutcome(
            status=OUTCOME_SUCCESS,
            requested=quantity,
            minted=minted,
            total_minted=self.mint_state.minted_count,
        )

    async def resume_pending(self) -> MintOutcome:
        """Finish every reserved or partially provisioned punk for its recorded owner"""
        async with self._lock:
            try:
                return await self._resume_locked()
            except PersistenceFailure:
                self.reload()
                raise

    async def _resume_locked(self) -> MintOutcome:
        pending = self.mint_state.pending()
        logger.info(f"Resuming {len(pending)} pending inscriptions")

        minted: List[Dict[str, Any]] = []
        failures: List[StepFailure] = []
        for progress in pending:
            if self.mint_state.is_minted(progress.asset_id):
                logger.warning(f"Punk #{progress.asset_id} already minted; dropping stale reservation")
                self.mint_state.release(progress.asset_id)
                continue
            try:
                mint = await self._provision(progress)
            except StepFailure as failure:
                # The failed punk stays pending; later entries still run
                logger.error(f"✗ Resume of punk #{progress.asset_id} failed: {failure.cause}")
                self._handle_failure(progress)
                failures.append(failure)
                continue
            minted.append(mint)

        if failures:
            return self._failed(len(pending), minted, failures)
        return MintOutcome(
            status=OUTCOME_SUCCESS,
            requested=len(pending),
            minted=minted,
            total_minted=self.mint_state.minted_count,
        )

    async def _provision(self, progress: ProvisionProgress) -> Dict[str, Any]:
        provenance = await self.pipeline.provision(
            progress.asset_id,
            progress.owner,
            progress=progress,
            on_progress=self.mint_state.update_progress,
            minted_ids=self.mint_state.minted_ids,
        )
        return self._commit(progress, provenance)

    def _commit(self, progress: ProvisionProgress, provenance: ProvenanceRecord) -> Dict[str, Any]:
        """Index the inscription, then append the mint and drop the reservation"""
        punk_id = progress.asset_id
        self.inscriptions.index(
            InscriptionRecord(
                asset_id=punk_id,
                name=provenance.name,
                symbol=provenance.symbol,
                owner=progress.owner,
                provenance=provenance,
                metadata=self.metadata_builder.build(punk_id),
            )
        )
        record = MintRecord(
            asset_id=punk_id,
            name=provenance.name,
            symbol=provenance.symbol,
            owner=progress.owner,
            image_url=self.image_url_for(punk_id),
            payment_proof=progress.payment_proof,
            provenance=provenance,
        )
        self.mint_state.record_mint(record)
        return record.to_dict()

    def _handle_failure(self, progress: ProvisionProgress):
        # Nothing on the ledger yet: the id goes back to the pool.
        if progress.stage == ProvisionStage.UNSTARTED:
            self.mint_state.release(progress.asset_id)
            self.pool.release(progress.asset_id)
        else:
            logger.warning(
                f"Punk #{progress.asset_id} kept pending at stage '{progress.stage.value}' for resume"
            )
            self.mint_state.update_progress(progress)

    def _failed(self, requested: int, minted: List[Dict[str, Any]], failures: List[StepFailure]) -> MintOutcome:
        first = failures[0]
        message = str(first.cause)
        if len(failures) > 1:
            others = "; ".join(f"punk #{f.asset_id}: {f.cause}" for f in failures[1:])
            message += f" (also failed: {others})"
        if minted:
            status = OUTCOME_PARTIAL
            error = f"Completed {len(minted)}/{requested}. Failed on punk #{first.asset_id}: {message}"
        else:
            status = OUTCOME_FAILED
            error = f"Inscription failed: {message}"
        return MintOutcome(
            status=status,
            requested=requested,
            minted=minted,
            total_minted=self.mint_state.minted_count,
            error=error,
            failed_id=first.asset_id,
            failed_step=first.step,
            failures=[
                {"punkId": f.asset_id, "step": f.step, "error": str(f.cause)}
                for f in failures
            ],
        )

    def _sold_out(self, requested: int, minted: List[Dict[str, Any]]) -> MintOutcome:
        if minted:
            return MintOutcome(
                status=OUTCOME_PARTIAL,
                requested=requested,
                minted=minted,
                total_minted=self.mint_state.minted_count,
                error=f"Completed {len(minted)}/{requested}. {SOLD_OUT_MESSAGE}",
                sold_out=True,
            )
        return MintOutcome(
            status=OUTCOME_SOLD_OUT,
            requested=requested,
            total_minted=self.mint_state.minted_count,
            error=SOLD_OUT_MESSAGE,
            sold_out=True,
        )
