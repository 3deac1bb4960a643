from __future__ import annotations

import json
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


LAMPORTS_PER_SOL = 1_000_000_000
SOL_SYMBOL = "SOL"


class TxType(str, Enum):
    SEND_NATIVE = "SendNative"
    RECEIVE_NATIVE = "ReceiveNative"
    SEND_TOKEN = "SendToken"
    RECEIVE_TOKEN = "ReceiveToken"
    SWAP = "Swap"
    UNKNOWN = "Unknown"


class TxStatus(str, Enum):
    SUCCESS = "Success"
    ERROR = "Error"


class TradeSide(str, Enum):
    BUY = "Buy"
    SELL = "Sell"
    UNKNOWN = "Unknown"


def _num(v: Any, default: float = 0.0) -> float:
    """Numeric field or `default`; NaN and infinities count as missing."""
    try:
        x = float(v if v is not None else default)
    except (TypeError, ValueError):
        return default
    return x if math.isfinite(x) else default


def _dicts(v: Any) -> List[Dict[str, Any]]:
    if not isinstance(v, list):
        return []
    return [x for x in v if isinstance(x, dict)]


@dataclass(frozen=True)
class NativeTransfer:
    from_account: str
    to_account: str
    amount: float               # lamports

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NativeTransfer":
        return cls(
            from_account=d.get("fromUserAccount") or "",
            to_account=d.get("toUserAccount") or "",
            amount=_num(d.get("amount")),
        )


@dataclass(frozen=True)
class TokenTransfer:
    from_account: str
    to_account: str
    mint: str
    amount: float               # UI units (already decimals-adjusted)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TokenTransfer":
        amount = d.get("tokenAmount")
        if amount is None:
            amount = d.get("amount")
        return cls(
            from_account=d.get("fromUserAccount") or "",
            to_account=d.get("toUserAccount") or "",
            mint=(d.get("mint") or "").strip(),
            amount=_num(amount),
        )


@dataclass(frozen=True)
class TokenBalanceChange:
    mint: str
    amount: float               # UI units, signed

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TokenBalanceChange":
        raw = d.get("rawTokenAmount")
        if isinstance(raw, dict):
            decimals = min(max(int(_num(raw.get("decimals"))), 0), 255)  # u8 on chain
            amount = _num(raw.get("tokenAmount")) / (10 ** decimals)
        else:
            amount = _num(d.get("amount"))
        return cls(mint=(d.get("mint") or "").strip(), amount=amount)


@dataclass(frozen=True)
class AccountData:
    account: str
    native_balance_change: float            # lamports, signed
    token_balance_changes: List[TokenBalanceChange] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AccountData":
        return cls(
            account=d.get("account") or "",
            native_balance_change=_num(d.get("nativeBalanceChange")),
            token_balance_changes=[
                TokenBalanceChange.from_dict(t) for t in _dicts(d.get("tokenBalanceChanges"))
            ],
        )


@dataclass(frozen=True)
class RawTransaction:
    """One enhanced transaction as reported by the indexer, kept immutable."""
    signature: str
    type: str                   # free-text hint from the source ("SWAP", "TRANSFER", ...)
    timestamp: int              # unix seconds
    fee: float                  # lamports
    native_transfers: List[NativeTransfer] = field(default_factory=list)
    token_transfers: List[TokenTransfer] = field(default_factory=list)
    account_data: List[AccountData] = field(default_factory=list)
    source: str = ""            # transaction-level source field
    fee_payer: str = ""
    transaction_error: Any = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RawTransaction":
        return cls(
            signature=d.get("signature") or d.get("transactionSignature") or "",
            type=d.get("type") or d.get("transactionType") or "",
            timestamp=int(_num(d.get("timestamp"))),
            fee=_num(d.get("fee")),
            native_transfers=[NativeTransfer.from_dict(n) for n in _dicts(d.get("nativeTransfers"))],
            token_transfers=[TokenTransfer.from_dict(t) for t in _dicts(d.get("tokenTransfers"))],
            account_data=[AccountData.from_dict(a) for a in _dicts(d.get("accountData"))],
            source=d.get("source") or "",
            fee_payer=d.get("feePayer") or "",
            transaction_error=d.get("transactionError"),
            raw=d,
        )

    def serialized(self) -> str:
        """Lower-cased JSON text of the whole payload, used by the keyword heuristics."""
        payload = self.raw or {
            "signature": self.signature,
            "type": self.type,
            "source": self.source,
        }
        return json.dumps(payload, default=str).lower()


@dataclass
class NormalizedTransaction:
    signature: str
    type: Union[TxType, str]    # TxType when direction is known, else the source's type string
    amount: float
    token_symbol: str = SOL_SYMBOL
    timestamp: int = 0
    status: TxStatus = TxStatus.SUCCESS
    fee: float = 0.0
    description: str = ""
    explorer_url: str = ""


@dataclass
class TokenAccountInfo:
    mint: str
    owner: str
    amount: float               # UI units using the mint's decimals
    decimals: int = 0
    symbol: str = "Unknown"
    name: str = "Unknown Token"
    logo: Optional[str] = None
    price: Optional[float] = None   # USD, None when no price is known

    @property
    def value(self) -> float:
        if not self.price:
            return 0.0
        return self.amount * self.price


@dataclass
class TokenMetadata:
    mint: str
    symbol: str
    name: str
    decimals: int = 0
    logo_uri: Optional[str] = None


@dataclass
class TradeRecord:
    side: TradeSide
    value: float                # SOL-equivalent estimate, >= 0
    timestamp: int
    original_type: str


@dataclass
class TradingSummary:
    total_trades: int
    buy_count: int
    sell_count: int
    average_trade_value: float
    recent: List[TradeRecord] = field(default_factory=list)


@dataclass(frozen=True)
class PriceQuote:
    price: float
    change_24h: float
    fetched_at: float = field(default_factory=time.time)


@dataclass
class AssetValue:
    symbol: str
    mint: Optional[str]         # None for the native asset
    amount: float
    price: float
    value: float


@dataclass
class PortfolioSummary:
    total_value: float
    native_value: float
    token_value: float
    change_24h: float
    assets: List[AssetValue] = field(default_factory=list)
