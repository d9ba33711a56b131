"""Local payload access, hashing and image inspection utilities"""

import base64
import hashlib
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional

import requests
from PIL import Image, UnidentifiedImageError

from models.errors import PayloadMissing

logger = logging.getLogger("X1Punks")

PAYLOAD_MIME_TYPE = "image/png"


def payload_path(generated_dir: Path, punk_id: int) -> Path:
    """Conventional location of a punk's PNG"""
    return Path(generated_dir) / f"punk_{punk_id}.png"


def read_payload(generated_dir: Path, punk_id: int) -> bytes:
    """Read a punk's binary payload, raising PayloadMissing if absent"""
    path = payload_path(generated_dir, punk_id)
    if not path.is_file():
        raise PayloadMissing(punk_id, path)
    return path.read_bytes()


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest used for archival integrity checks"""
    return hashlib.sha256(data).hexdigest()


def get_image_metadata(image_bytes: bytes) -> Dict[str, Any]:
    """Extract width, height, format from image bytes"""
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            return {
                "width": img.width,
                "height": img.height,
                "format": img.format,
            }
    except (UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to extract image metadata: {e}")
        return {"width": None, "height": None, "format": None}


def encode_data_uri(data: bytes, mime_type: str = PAYLOAD_MIME_TYPE) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def fetch_asset_bytes(asset_url: str, timeout: int = 30) -> bytes:
    """Fetch archived bytes from a gateway URL"""
    try:
        response = requests.get(asset_url, timeout=timeout)
        response.raise_for_status()
        return response.content
    except requests.RequestException as e:
        logger.error(f"Failed to fetch asset from {asset_url}: {e}")
        raise


def verify_archived_payload(asset_url: str, expected_hash: str, timeout: int = 30) -> Dict[str, Any]:
    """Compare the hash of the bytes served at ``asset_url`` with ``expected_hash``.

    Args:
        asset_url: Permanent storage URL reported by the uploader
        expected_hash: SHA-256 hex digest recorded at provisioning time
        timeout: Request timeout in seconds

    Returns:
        Dict with ``matches``, both hashes and the fetched size
    """
    data = fetch_asset_bytes(asset_url, timeout=timeout)
    actual_hash = content_hash(data)
    matches = actual_hash == expected_hash
    if not matches:
        logger.warning(f"Archived payload at {asset_url} does not match: {actual_hash} != {expected_hash}")
    return {
        "url": asset_url,
        "matches": matches,
        "expected_hash": expected_hash,
        "actual_hash": actual_hash,
        "bytes_size": len(data),
    }


def describe_local_payload(generated_dir: Path, punk_id: int, include_data: bool = True) -> Dict[str, Optional[Any]]:
    """Inline view of a local payload: data URI, size and dimensions"""
    path = payload_path(generated_dir, punk_id)
    if not path.is_file():
        return {"image": None, "imageSize": 0, "imageWidth": None, "imageHeight": None}

    data = path.read_bytes()
    meta = get_image_metadata(data)
    return {
        "image": encode_data_uri(data) if include_data else None,
        "imageSize": len(data),
        "imageWidth": meta["width"],
        "imageHeight": meta["height"],
    }
