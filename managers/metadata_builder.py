"""Metadata builder mapping punk ids to descriptive attributes"""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger("X1Punks")

RARITY_BY_TYPE = {
    "Alien": "Legendary",
    "Ape": "Epic",
    "Zombie": "Rare",
}
INSCRIPTION_PROTOCOL = {
    "protocol": "metaplex-inscription",
    "version": "1.0",
    "chain": "x1",
    "programId": "1NSCRfGeyo7wPUazGbaPBUsTM49e1k2aXewHGARfzSo",
}


def get_rarity(punk_type: str) -> str:
    return RARITY_BY_TYPE.get(punk_type, "Common")


class MetadataBuilder:
    """Builds inscription metadata from the trait table.

    The trait table is read once on first use and cached for the lifetime of
    the builder; call ``reload()`` to drop the cache.
    """

    def __init__(self, traits_csv: Path, collection_name: str, collection_symbol: str, program_name: str):
        self.traits_csv = Path(traits_csv)
        self.collection_name = collection_name
        self.collection_symbol = collection_symbol
        self.program_name = program_name
        self._traits: Optional[Dict[int, Dict[str, Any]]] = None

    def _load_traits(self) -> Dict[int, Dict[str, Any]]:
        traits: Dict[int, Dict[str, Any]] = {}
        if not self.traits_csv.exists():
            logger.warning(f"Trait table {self.traits_csv} not found; all punks will be 'Unknown'")
            return traits

        with open(self.traits_csv, "r", encoding="utf-8", newline="") as handle:
            rows = csv.reader(handle)
            next(rows, None)  # header
            for index, row in enumerate(rows):
                # blank rows still occupy an id
                if not any(cell.strip() for cell in row):
                    continue
                punk_type = row[0].strip() if row and row[0].strip() else "Unknown"
                accessories = [cell.strip() for cell in row[1:] if cell and cell.strip()]
                traits[index] = {"type": punk_type, "traits": accessories}

        logger.info(f"Loaded traits for {len(traits)} punks from {self.traits_csv}")
        return traits

    @property
    def traits(self) -> Dict[int, Dict[str, Any]]:
        if self._traits is None:
            self._traits = self._load_traits()
        return self._traits

    def reload(self):
        self._traits = None

    def name_for(self, punk_id: int) -> str:
        return f"{self.collection_name} #{punk_id}"

    def attributes_for(self, punk_id: int) -> List[Dict[str, str]]:
        meta = self.traits.get(punk_id, {"type": "Unknown", "traits": []})
        attributes = [
            {"trait_type": "Type", "value": meta["type"]},
            {"trait_type": "Rarity", "value": get_rarity(meta["type"])},
        ]
        for i, trait in enumerate(meta["traits"], start=1):
            attributes.append({"trait_type": f"Accessory {i}", "value": trait})
        return attributes

    def build(self, punk_id: int) -> Dict[str, Any]:
        """Build the inscription JSON document for one punk"""
        return {
            "name": self.name_for(punk_id),
            "symbol": self.collection_symbol,
            "description": (
                f"{self.collection_name} #{punk_id} - "
                "Unique pixel punk fully inscribed on the X1 blockchain. "
                "Image and metadata stored 100% on-chain."
            ),
            "collection": {"name": self.collection_name, "family": self.program_name},
            "attributes": self.attributes_for(punk_id),
            "properties": {
                "category": "image",
                "files": [{"type": "image/png", "uri": "inscription"}],
            },
            "inscription": dict(INSCRIPTION_PROTOCOL),
        }
