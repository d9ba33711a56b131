"""Arweave permanent-storage client used by the batch uploader"""

import logging
from pathlib import Path
from typing import Mapping, Optional

import arweave
from arweave.arweave_lib import Transaction
from arweave.transaction_uploader import get_uploader

logger = logging.getLogger("X1Punks")

DEFAULT_GATEWAY = "https://arweave.net"


class ArweaveClient:
    """Synchronous wrapper over an Arweave wallet.

    Uploads use the chunked transaction uploader so large files survive
    gateway hiccups; callers that need concurrency run ``upload_file`` in a
    worker thread.
    """

    def __init__(self, wallet_path: Path, gateway: str = DEFAULT_GATEWAY):
        self.wallet_path = Path(wallet_path)
        self.gateway = gateway.rstrip("/")
        self._wallet: Optional[arweave.Wallet] = None

    @property
    def wallet(self) -> arweave.Wallet:
        if self._wallet is None:
            if not self.wallet_path.exists():
                raise FileNotFoundError(f"{self.wallet_path.name} not found")
            self._wallet = arweave.Wallet(str(self.wallet_path))
            self._wallet.api_url = self.gateway
        return self._wallet

    @property
    def address(self) -> str:
        return self.wallet.address

    def balance(self) -> float:
        """Wallet balance in AR"""
        return float(self.wallet.balance)

    def url_for(self, tx_id: str) -> str:
        return f"{self.gateway}/{tx_id}"

    def upload_file(self, path: Path, content_type: str, tags: Optional[Mapping[str, str]] = None) -> str:
        """Sign and upload a file in chunks; returns the transaction id"""
        path = Path(path)
        with open(path, "rb", buffering=0) as file_handler:
            tx = Transaction(self.wallet, file_handler=file_handler, file_path=str(path))
            tx.add_tag("Content-Type", content_type)
            for name, value in (tags or {}).items():
                tx.add_tag(name, str(value))
            tx.sign()

            uploader = get_uploader(tx, file_handler)
            while not uploader.is_complete:
                uploader.upload_chunk()
                logger.debug(f"{path.name}: {uploader.pct_complete}% uploaded")

        logger.debug(f"Uploaded {path.name} as {tx.id}")
        return tx.id
