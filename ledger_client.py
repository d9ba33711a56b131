"""Async client for the X1 ledger (Solana SVM)"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment
from solana.rpc.types import TxOpts
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, TransferParams, create_account, transfer
from solders.transaction import Transaction
from spl.memo.constants import MEMO_PROGRAM_ID
from spl.memo.instructions import MemoParams, create_memo
from spl.token.constants import MINT_LEN, TOKEN_PROGRAM_ID
from spl.token.instructions import (
    InitializeMintParams,
    MintToParams,
    create_associated_token_account,
    get_associated_token_address,
    initialize_mint,
    mint_to,
)

logger = logging.getLogger("X1Punks")

WALLET_ENV_VAR = "WALLET_SECRET_KEY"


class LedgerTransactionError(Exception):
    """Transaction was rejected or failed on-chain"""


@dataclass
class DataAllocation:
    """Rent-exempt account sized for a payload"""
    address: str
    signature: str
    size: int
    lamports: int


def load_payer_keypair(wallet_file: Path, env: Optional[Mapping[str, str]] = None) -> Keypair:
    """Load the payer keypair from ``WALLET_SECRET_KEY`` or a wallet.json file.

    The env var holds a JSON array of the 64 secret key bytes; the file holds
    ``{"publicKey": "...", "secretKey": [...]}``.
    """
    env = os.environ if env is None else env
    secret = env.get(WALLET_ENV_VAR)
    if secret:
        keypair = Keypair.from_bytes(bytes(json.loads(secret)))
        logger.info("Wallet loaded from env")
        return keypair

    wallet_file = Path(wallet_file)
    if wallet_file.exists():
        with open(wallet_file, "r", encoding="utf-8") as f:
            data = json.load(f)
        keypair = Keypair.from_bytes(bytes(data["secretKey"]))
        logger.info(f"Wallet loaded: {keypair.pubkey()}")
        return keypair

    raise RuntimeError(f"No wallet found! Set {WALLET_ENV_VAR} env or provide {wallet_file.name}")


class LedgerClient:
    """Thin async wrapper around the ledger RPC for the calls provisioning needs.

    The payer keypair and RPC connection are created lazily on first use. Every
    submitted transaction is confirmed at the configured commitment before the
    call returns.
    """

    def __init__(
        self,
        rpc_url: str,
        keypair_loader: Callable[[], Keypair],
        commitment: str = "confirmed",
        use_memo: bool = True,
        timeout: float = 60,
    ):
        self.rpc_url = rpc_url
        self.commitment = Commitment(commitment)
        self.use_memo = use_memo
        self.timeout = timeout
        self._keypair_loader = keypair_loader
        self._payer: Optional[Keypair] = None
        self._client: Optional[AsyncClient] = None

    @property
    def payer(self) -> Keypair:
        if self._payer is None:
            self._payer = self._keypair_loader()
        return self._payer

    @property
    def payer_address(self) -> str:
        return str(self.payer.pubkey())

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            self._client = AsyncClient(self.rpc_url, commitment=self.commitment, timeout=self.timeout)
            logger.info(f"Connected ledger client to {self.rpc_url}")
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def get_balance(self) -> int:
        resp = await self.client.get_balance(self.payer.pubkey(), commitment=self.commitment)
        return resp.value

    async def minimum_rent(self, size: int) -> int:
        resp = await self.client.get_minimum_balance_for_rent_exemption(size, commitment=self.commitment)
        return resp.value

    def _memo(self, payload: Dict[str, Any]) -> Instruction:
        message = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return create_memo(MemoParams(program_id=MEMO_PROGRAM_ID, signer=self.payer.pubkey(), message=message))

    async def _send(self, instructions: List[Instruction], extra_signers: Sequence[Keypair] = ()) -> str:
        blockhash_resp = await self.client.get_latest_blockhash(self.commitment)
        tx = Transaction.new_signed_with_payer(
            instructions,
            self.payer.pubkey(),
            [self.payer, *extra_signers],
            blockhash_resp.value.blockhash,
        )
        resp = await self.client.send_transaction(
            tx,
            opts=TxOpts(skip_confirmation=True, preflight_commitment=self.commitment),
        )
        signature = resp.value
        confirmation = await self.client.confirm_transaction(signature, self.commitment)
        status = confirmation.value[0] if confirmation.value else None
        if status is not None and status.err is not None:
            raise LedgerTransactionError(f"Transaction {signature} failed: {status.err}")
        return str(signature)

    async def create_asset_record(self, name: str, symbol: str, uri: str, owner: str) -> str:
        """Mint a single-supply token to ``owner``; returns the mint address"""
        owner_key = Pubkey.from_string(owner)
        payer = self.payer.pubkey()
        mint = Keypair()
        rent = await self.minimum_rent(MINT_LEN)
        owner_token_account = get_associated_token_address(owner_key, mint.pubkey())

        instructions = [
            create_account(
                CreateAccountParams(
                    from_pubkey=payer,
                    to_pubkey=mint.pubkey(),
                    lamports=rent,
                    space=MINT_LEN,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            initialize_mint(
                InitializeMintParams(
                    decimals=0,
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint.pubkey(),
                    mint_authority=payer,
                    freeze_authority=payer,
                )
            ),
            create_associated_token_account(payer, owner_key, mint.pubkey()),
            mint_to(
                MintToParams(
                    program_id=TOKEN_PROGRAM_ID,
                    mint=mint.pubkey(),
                    dest=owner_token_account,
                    mint_authority=payer,
                    amount=1,
                )
            ),
        ]
        if self.use_memo:
            instructions.append(self._memo({"name": name, "symbol": symbol, "uri": uri}))

        signature = await self._send(instructions, [mint])
        logger.debug(f"Asset record {mint.pubkey()} created in {signature}")
        return str(mint.pubkey())

    async def create_data_allocation(self, size: int) -> DataAllocation:
        """Create a rent-exempt account of ``size`` bytes owned by the payer"""
        account = Keypair()
        payer = self.payer.pubkey()
        lamports = await self.minimum_rent(size)
        instruction = create_account(
            CreateAccountParams(
                from_pubkey=payer,
                to_pubkey=account.pubkey(),
                lamports=lamports,
                space=size,
                owner=payer,
            )
        )
        signature = await self._send([instruction], [account])
        return DataAllocation(address=str(account.pubkey()), signature=signature, size=size, lamports=lamports)

    async def submit_linkage(self, reference: Dict[str, Any]) -> str:
        """Zero-value self transfer anchoring ``reference``; returns its signature"""
        payer = self.payer.pubkey()
        instructions = [transfer(TransferParams(from_pubkey=payer, to_pubkey=payer, lamports=0))]
        if self.use_memo:
            instructions.append(self._memo(reference))
        return await self._send(instructions)
