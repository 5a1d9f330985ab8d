"""Ledger client boundary and its Web3 implementation.

The core only talks to a :class:`LedgerClient`: read a balance, submit a
transfer from the client's own signing identity, and wait for a transfer to
be confirmed. :class:`Web3Ledger` provides those three operations on an
EVM-compatible chain.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from eth_account import Account
from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import ExtraDataToPOAMiddleware

from wallet_keeper.wallet.chains import Chain

logger = logging.getLogger("wallet_keeper.wallet.ledger")


class ConfirmationLevel(str, Enum):
    PROCESSED = "processed"
    CONFIRMED = "confirmed"
    FINALIZED = "finalized"


class ConfirmationStatus(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"


# Blocks that must sit on top of the inclusion block for each level.
# FINALIZED is resolved against the chain's "finalized" block tag instead.
CONFIRMATION_DEPTH: dict[ConfirmationLevel, int] = {
    ConfirmationLevel.PROCESSED: 0,
    ConfirmationLevel.CONFIRMED: 1,
}


@dataclass(frozen=True)
class ConfirmationRecord:
    """What the ledger reports once a transfer has settled."""

    transfer_id: str
    status: ConfirmationStatus
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ConfirmationStatus.CONFIRMED


class LedgerError(Exception):
    """A ledger operation was rejected or could not be completed.

    ``code`` carries the node's error code (JSON-RPC code, program error,
    or a client-side code string) when one is available.
    """

    def __init__(self, message: str, code: int | str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f"{self.message} (code {self.code})"


class ConfirmationTimeout(LedgerError):
    """No confirmation was observed within the allotted time."""


@runtime_checkable
class LedgerClient(Protocol):
    """The three ledger operations the keeper depends on."""

    @property
    def funding_address(self) -> str:
        """Address of the signing identity that pays for top-ups."""
        ...

    async def get_balance(self, address: str) -> int:
        ...

    async def submit_transfer(self, to_address: str, amount: int) -> str:
        ...

    async def confirm_transfer(
        self,
        transfer_id: str,
        level: ConfirmationLevel,
        timeout: float,
    ) -> ConfirmationRecord:
        ...


def _rpc_error_details(exc: BaseException) -> tuple[int | str | None, str]:
    """Pull ``(code, message)`` out of a Web3 RPC failure.

    Newer web3 releases attach the raw JSON-RPC response as
    ``rpc_response``; older ones raise ``ValueError`` with the error dict as
    the first argument.
    """
    payload: Any = getattr(exc, "rpc_response", None)
    if isinstance(payload, dict):
        payload = payload.get("error", payload)
    elif exc.args and isinstance(exc.args[0], dict):
        payload = exc.args[0]

    if isinstance(payload, dict):
        message = str(payload.get("message") or exc)
        return payload.get("code"), message
    return None, str(exc)


class Web3Ledger:
    """``LedgerClient`` for a single EVM chain backed by a Web3 HTTP provider.

    Web3 calls are blocking, so each operation runs in a worker thread to
    keep the event loop free while a confirmation is being polled.
    """

    def __init__(
        self,
        chain: Chain,
        signer_key: str | bytes,
        rpc_url: str | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.chain = chain
        self.poll_interval = poll_interval
        self._account = Account.from_key(signer_key)
        self._w3 = Web3(Web3.HTTPProvider(rpc_url or chain.rpc_url))

        # Inject POA middleware for non-mainnet chains (Base, Arbitrum, Polygon)
        if chain.chain_id != 1:
            self._w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

    @property
    def funding_address(self) -> str:
        return self._account.address

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        return await asyncio.to_thread(self._get_balance_sync, address)

    def _get_balance_sync(self, address: str) -> int:
        checksum = Web3.to_checksum_address(address)
        return int(self._w3.eth.get_balance(checksum))

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def submit_transfer(self, to_address: str, amount: int) -> str:
        return await asyncio.to_thread(self._submit_transfer_sync, to_address, amount)

    def _submit_transfer_sync(self, to_address: str, amount: int) -> str:
        """Build, sign, and send a native-token transfer.

        Uses EIP-1559 fee parameters with a legacy gas price fallback.

        Returns the transaction hash as a 0x-prefixed hex string.
        """
        w3 = self._w3
        checksum_to = Web3.to_checksum_address(to_address)
        try:
            nonce = w3.eth.get_transaction_count(self._account.address, "pending")
            tx: dict = {
                "from": self._account.address,
                "to": checksum_to,
                "value": amount,
                "nonce": nonce,
                "chainId": self.chain.chain_id,
            }

            latest = w3.eth.get_block("latest")
            base_fee = latest.get("baseFeePerGas")
            if base_fee is not None:
                max_priority = Web3.to_wei(Decimal("1.5"), "gwei")
                tx["maxFeePerGas"] = base_fee * 2 + max_priority
                tx["maxPriorityFeePerGas"] = max_priority
            else:
                tx["gasPrice"] = w3.eth.gas_price
            tx["gas"] = w3.eth.estimate_gas(tx)

            signed = self._account.sign_transaction(tx)
            tx_hash = w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            code, message = _rpc_error_details(exc)
            raise LedgerError(message, code=code) from exc

        tx_id = Web3.to_hex(tx_hash)
        logger.info(
            f"Transfer submitted on {self.chain.name}: {amount} wei "
            f"{self._account.address} -> {checksum_to} (tx={tx_id})"
        )
        return tx_id

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def confirm_transfer(
        self,
        transfer_id: str,
        level: ConfirmationLevel,
        timeout: float,
    ) -> ConfirmationRecord:
        return await asyncio.to_thread(self._confirm_sync, transfer_id, level, timeout)

    def _confirm_sync(
        self,
        transfer_id: str,
        level: ConfirmationLevel,
        timeout: float,
    ) -> ConfirmationRecord:
        deadline = time.monotonic() + timeout
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                transfer_id, timeout=timeout, poll_latency=self.poll_interval
            )
        except TimeExhausted as exc:
            raise ConfirmationTimeout(
                f"Transaction {transfer_id} not included after {timeout:g}s"
            ) from exc

        block_number = int(receipt["blockNumber"])
        if receipt["status"] != 1:
            return ConfirmationRecord(transfer_id, ConfirmationStatus.FAILED, block_number)

        while not self._reached(level, block_number):
            if time.monotonic() >= deadline:
                raise ConfirmationTimeout(
                    f"Transaction {transfer_id} not {level.value} after {timeout:g}s"
                )
            time.sleep(self.poll_interval)

        return ConfirmationRecord(transfer_id, ConfirmationStatus.CONFIRMED, block_number)

    def _reached(self, level: ConfirmationLevel, block_number: int) -> bool:
        if level == ConfirmationLevel.FINALIZED:
            finalized = self._w3.eth.get_block("finalized")
            return int(finalized["number"]) >= block_number
        depth = CONFIRMATION_DEPTH[level]
        return int(self._w3.eth.block_number) - block_number >= depth
