from __future__ import annotations

import math
from typing import Iterable, Optional

from core.models import SOL_SYMBOL, AssetValue, PortfolioSummary, PriceQuote, TokenAccountInfo


def _safe(x: Optional[float]) -> float:
    """Non-finite, negative or missing numbers count as zero."""
    try:
        v = float(x) if x is not None else 0.0
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(v) or v < 0:
        return 0.0
    return v


def aggregate(
    native_balance: float,
    native_quote: PriceQuote,
    token_accounts: Iterable[TokenAccountInfo],
) -> PortfolioSummary:
    """
    Total value = native balance * native price + sum(token amount * token price).
    Tokens without a known price contribute 0. The portfolio's 24h change is the
    native asset's 24h change; per-asset weighting is not computed.
    """
    native_price = _safe(native_quote.price)
    native_amount = _safe(native_balance)
    native_value = native_amount * native_price

    token_assets = []
    for acc in token_accounts:
        amount = _safe(acc.amount)
        price = _safe(acc.price)
        token_assets.append(AssetValue(
            symbol=acc.symbol,
            mint=acc.mint,
            amount=amount,
            price=price,
            value=amount * price,
        ))
    token_assets.sort(key=lambda a: a.value, reverse=True)
    token_value = sum(a.value for a in token_assets)

    change = native_quote.change_24h
    change = float(change) if change is not None and math.isfinite(change) else 0.0

    return PortfolioSummary(
        total_value=native_value + token_value,
        native_value=native_value,
        token_value=token_value,
        change_24h=change,
        assets=[AssetValue(SOL_SYMBOL, None, native_amount, native_price, native_value)] + token_assets,
    )
