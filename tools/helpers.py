"""Shared helper functions for tool and route implementations"""

import logging
from typing import Any, Dict, Optional, Tuple

from asset_processor import describe_local_payload, verify_archived_payload
from managers.metadata_builder import INSCRIPTION_PROTOCOL
from models.asset import OUTCOME_FAILED, OUTCOME_PARTIAL, OUTCOME_SOLD_OUT, MintOutcome
from models.errors import PersistenceFailure

logger = logging.getLogger("X1Punks")

INVALID_PUNK_ID = "Invalid punk ID"


def run_view(view, *args, **kwargs) -> Dict[str, Any]:
    """Call a read-only view; an unreadable state document becomes an error dict"""
    try:
        return view(*args, **kwargs)
    except PersistenceFailure as e:
        logger.error(f"State unavailable: {e}")
        return {"error": f"Server error: {e}"}


def parse_punk_id(raw: Any, total_supply: int) -> Optional[int]:
    """Parse a punk id from user input; None if malformed or out of range"""
    if isinstance(raw, bool):
        return None
    try:
        punk_id = int(raw)
    except (TypeError, ValueError):
        return None
    if punk_id < 0 or punk_id >= total_supply:
        return None
    return punk_id


def outcome_to_response(outcome: MintOutcome) -> Tuple[int, Dict[str, Any]]:
    """Map a batch outcome to an HTTP status code and JSON body.

    Returns:
        (200, full or partial success body), (400, sold out body) or
        (500, total failure body)
    """
    if outcome.status == OUTCOME_SOLD_OUT:
        return 400, {"error": outcome.error, "partialMinted": outcome.minted}

    if outcome.status == OUTCOME_FAILED:
        failed: Dict[str, Any] = {"error": outcome.error, "punkId": outcome.failed_id, "step": outcome.failed_step}
        if len(outcome.failures) > 1:
            failed["failures"] = outcome.failures
        return 500, failed

    body: Dict[str, Any] = {"success": True}
    if outcome.status == OUTCOME_PARTIAL:
        body.update(
            partial=True,
            requested=outcome.requested,
            completed=outcome.completed,
        )
    body["minted"] = outcome.minted
    body["totalMinted"] = outcome.total_minted
    if outcome.status == OUTCOME_PARTIAL:
        body["error"] = outcome.error
        if outcome.sold_out:
            body["soldOut"] = True
            body["partialMinted"] = outcome.minted
        else:
            body["failedPunkId"] = outcome.failed_id
            body["failedStep"] = outcome.failed_step
            if len(outcome.failures) > 1:
                body["failures"] = outcome.failures
    return 200, body


def mint_state_view(manager) -> Dict[str, Any]:
    """Mint state with every mint decorated with its current image URL"""
    settings = manager.settings
    mints = [dict(m, imageUrl=manager.image_url_for(m["id"])) for m in manager.mint_state.mints]
    return {
        "program": settings.program_name,
        "collectionName": settings.collection_name,
        "mintedCount": manager.mint_state.minted_count,
        "totalSupply": settings.total_supply,
        "pendingCount": len(manager.mint_state.pending_ids()),
        "mints": mints,
    }


def inscription_index_view(manager) -> Dict[str, Any]:
    inscriptions = manager.inscriptions.inscriptions
    return {
        "program": manager.settings.program_name,
        "protocol": INSCRIPTION_PROTOCOL["protocol"],
        "chain": INSCRIPTION_PROTOCOL["chain"],
        "totalInscribed": len(inscriptions),
        "lastUpdated": manager.inscriptions.last_updated,
        "inscriptions": inscriptions,
    }


def program_info(manager) -> Dict[str, Any]:
    settings = manager.settings
    return {
        "program": settings.program_name,
        "collection": settings.collection_name,
        "symbol": settings.collection_symbol,
        "protocol": INSCRIPTION_PROTOCOL["protocol"],
        "chain": INSCRIPTION_PROTOCOL["chain"],
        "rpc": settings.rpc_url,
        "totalSupply": settings.total_supply,
        "mintedCount": manager.mint_state.minted_count,
        "inscribedCount": len(manager.inscriptions.inscriptions),
        "archivedCount": manager.manifest.total_uploaded,
        "pendingCount": len(manager.mint_state.pending_ids()),
        "lastUpdated": manager.inscriptions.last_updated,
    }


def inscription_detail(manager, punk_id: int, include_image: bool = True) -> Dict[str, Any]:
    """Metadata, local image and on-chain provenance for one punk"""
    inscription = manager.inscriptions.get(punk_id)
    detail: Dict[str, Any] = {
        "punkId": punk_id,
        "metadata": manager.metadata_builder.build(punk_id),
    }
    detail.update(describe_local_payload(manager.settings.generated_dir, punk_id, include_data=include_image))
    detail.update(
        onChain=inscription["onChain"] if inscription else None,
        inscribed=inscription is not None,
        archived=manager.manifest.contains(punk_id),
        imageUrl=manager.image_url_for(punk_id),
    )
    return detail


def image_view(manager, punk_id: int) -> Dict[str, Any]:
    return {"punkId": punk_id, "imageUrl": manager.image_url_for(punk_id)}


def verify_archive(manager, punk_id: int) -> Dict[str, Any]:
    """Check the archived image against the hash recorded at inscription time"""
    inscription = manager.inscriptions.get(punk_id)
    if inscription is None:
        return {"error": f"Punk #{punk_id} is not inscribed"}
    entry = manager.manifest.get(punk_id)
    if entry is None:
        return {"error": f"Punk #{punk_id} is not archived"}

    result = verify_archived_payload(
        entry["imageUrl"],
        inscription["onChain"]["imageHash"],
        timeout=manager.settings.request_timeout,
    )
    result["punkId"] = punk_id
    return result
