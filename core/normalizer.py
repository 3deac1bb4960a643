from __future__ import annotations

import logging
import time
from typing import Iterable, List, Optional

from core.models import (
    LAMPORTS_PER_SOL,
    SOL_SYMBOL,
    NormalizedTransaction,
    RawTransaction,
    TxStatus,
    TxType,
)
from links import explorer_tx_link

MIN_SOL_AMOUNT = 0.001
TOKEN_SYMBOL = "Token"

# Substrings of the serialized payload that mark a swap / DEX venue
SWAP_KEYWORDS = ("swap", "jupiter", "orca")


class TransactionNormalizer:
    """
    Turns enhanced transactions into activity-feed rows for one wallet.

    Only the first native transfer (or, without one, the first token transfer)
    is looked at, so multi-leg transactions are summarized by their first leg.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        min_sol_amount: float = MIN_SOL_AMOUNT,
        swap_keywords: Iterable[str] = SWAP_KEYWORDS,
    ):
        self.log = logger or logging.getLogger("dashboard.normalizer")
        self.min_sol_amount = float(min_sol_amount)
        self.swap_keywords = tuple(k.lower() for k in swap_keywords)

    def normalize(self, raw: RawTransaction, wallet: str) -> Optional[NormalizedTransaction]:
        try:
            return self._normalize(raw, wallet)
        except Exception as e:
            self.log.error(
                "Error processing transaction",
                extra={"data": {"signature": getattr(raw, "signature", None), "error": e}},
            )
            return None

    def normalize_batch(self, raws: Iterable[RawTransaction], wallet: str) -> List[NormalizedTransaction]:
        out = [tx for tx in (self.normalize(r, wallet) for r in raws) if tx is not None]
        out.sort(key=lambda tx: tx.timestamp, reverse=True)
        return out

    def _normalize(self, raw: RawTransaction, wallet: str) -> Optional[NormalizedTransaction]:
        if isinstance(raw, dict):
            raw = RawTransaction.from_dict(raw)

        tx_type = raw.type or TxType.UNKNOWN
        amount = 0.0
        symbol = SOL_SYMBOL
        description = ""

        if raw.native_transfers:
            transfer = raw.native_transfers[0]
            amount = abs(transfer.amount) / LAMPORTS_PER_SOL
            if transfer.from_account == wallet:
                tx_type = TxType.SEND_NATIVE
                description = f"Sent {amount:.3f} {SOL_SYMBOL}"
            elif transfer.to_account == wallet:
                tx_type = TxType.RECEIVE_NATIVE
                description = f"Received {amount:.3f} {SOL_SYMBOL}"
        elif raw.token_transfers:
            transfer = raw.token_transfers[0]
            amount = abs(transfer.amount)
            symbol = TOKEN_SYMBOL
            if transfer.from_account == wallet:
                tx_type = TxType.SEND_TOKEN
                description = f"Sent {amount:g} {symbol}"
            elif transfer.to_account == wallet:
                tx_type = TxType.RECEIVE_TOKEN
                description = f"Received {amount:g} {symbol}"

        text = raw.serialized()
        if any(k in text for k in self.swap_keywords):
            tx_type = TxType.SWAP
            description = "Token Swap"

        if symbol == SOL_SYMBOL and amount < self.min_sol_amount:
            return None
        if amount == 0:
            return None

        return NormalizedTransaction(
            signature=raw.signature,
            type=tx_type,
            amount=amount,
            token_symbol=symbol,
            timestamp=raw.timestamp or int(time.time()),
            status=TxStatus.ERROR if raw.transaction_error else TxStatus.SUCCESS,
            fee=raw.fee / LAMPORTS_PER_SOL,
            description=description,
            explorer_url=explorer_tx_link(raw.signature) if raw.signature else "",
        )
