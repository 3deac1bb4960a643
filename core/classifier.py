from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from core.models import LAMPORTS_PER_SOL, RawTransaction, TradeSide

TRADE_KEYWORDS = (
    "swap",
    "trade",
    "exchange",
    "jupiter",
    "orca",
    "raydium",
    "serum",
    "dex",
    "amm",
    "liquidity",
    "pool",
    "market",
)

BUY_TYPE_HINTS = ("buy", "swap_in")
SELL_TYPE_HINTS = ("sell", "swap_out")

# Instruction names that show up in serialized swap payloads
BUY_INSTRUCTIONS = ("swap_exact_tokens_for_tokens", "swap_exact_sol_for_tokens")
SELL_INSTRUCTIONS = ("swap_exact_tokens_for_sol", "swap_tokens_for_exact_sol")


class TradeClassifier(ABC):
    """Strategy deciding whether a transaction is a trade, its side and its size."""

    @abstractmethod
    def is_trade(self, raw: RawTransaction) -> bool:
        ...

    @abstractmethod
    def classify(self, raw: RawTransaction) -> TradeSide:
        ...

    @abstractmethod
    def estimate_value(self, raw: RawTransaction) -> float:
        ...


class KeywordTradeClassifier(TradeClassifier):
    """
    String matching over the serialized payload plus transfer/balance checks.

    Outgoing amounts are attributed by comparing each transfer's sender with the
    transaction-level `source` field, not with the wallet being viewed.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.log = logger or logging.getLogger("dashboard.classifier")

    def is_trade(self, raw: RawTransaction) -> bool:
        try:
            tx_type = (raw.type or "").lower()
            body = raw.serialized()
            if any(k in tx_type or k in body for k in TRADE_KEYWORDS):
                return True

            has_transfers = bool(raw.native_transfers) or bool(raw.token_transfers)
            has_balance_changes = any(
                a.native_balance_change != 0 or any(t.amount != 0 for t in a.token_balance_changes)
                for a in raw.account_data
            )
            return has_transfers and has_balance_changes
        except Exception as e:
            self.log.warning("is_trade failed", extra={"data": {"error": e}})
            return False

    def classify(self, raw: RawTransaction) -> TradeSide:
        try:
            return self._classify(raw)
        except Exception as e:
            self.log.warning("classify failed", extra={"data": {"error": e}})
            return TradeSide.UNKNOWN

    def _classify(self, raw: RawTransaction) -> TradeSide:
        tx_type = (raw.type or "").lower()
        if any(h in tx_type for h in BUY_TYPE_HINTS):
            return TradeSide.BUY
        if any(h in tx_type for h in SELL_TYPE_HINTS):
            return TradeSide.SELL

        native_out = sum(t.amount for t in raw.native_transfers if raw.source and t.from_account == raw.source)
        if native_out > 0:
            return TradeSide.BUY

        tokens_out = sum(t.amount for t in raw.token_transfers if raw.source and t.from_account == raw.source)
        if tokens_out > 0:
            return TradeSide.SELL

        body = raw.serialized()
        if any(i in body for i in BUY_INSTRUCTIONS):
            return TradeSide.BUY
        if any(i in body for i in SELL_INSTRUCTIONS):
            return TradeSide.SELL

        return TradeSide.UNKNOWN

    def estimate_value(self, raw: RawTransaction) -> float:
        """
        Larger of the summed transfer amounts and the summed balance-change
        magnitudes. Native amounts are converted from lamports to SOL.
        """
        try:
            transfers = sum(abs(t.amount) for t in raw.native_transfers) / LAMPORTS_PER_SOL
            transfers += sum(abs(t.amount) for t in raw.token_transfers)

            changes = 0.0
            for account in raw.account_data:
                changes += abs(account.native_balance_change) / LAMPORTS_PER_SOL
                changes += sum(abs(t.amount) for t in account.token_balance_changes)

            value = max(transfers, changes)
            return value if value > 0 else 0.0
        except Exception as e:
            self.log.warning("estimate_value failed", extra={"data": {"error": e}})
            return 0.0
