from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests

# /tokens/v1 accepts up to 30 comma-separated addresses per call
BATCH_SIZE = 30


def _liquidity_usd(pair: Dict[str, Any]) -> float:
    try:
        return float((pair.get("liquidity") or {}).get("usd") or 0.0)
    except (TypeError, ValueError, AttributeError):
        return 0.0


def _price_usd(pair: Optional[Dict[str, Any]]) -> Optional[float]:
    if not pair:
        return None
    try:
        price = float(pair.get("priceUsd") or 0.0)
    except (TypeError, ValueError):
        return None
    return price if 0 < price < float("inf") else None


def best_pairs(pairs: Any) -> Dict[str, Dict[str, Any]]:
    """Deepest pair per base token address. priceUsd is the base token's price."""
    best: Dict[str, Dict[str, Any]] = {}
    if not isinstance(pairs, list):
        return best
    for pair in pairs:
        if not isinstance(pair, dict):
            continue
        mint = (pair.get("baseToken") or {}).get("address")
        if not mint:
            continue
        if mint not in best or _liquidity_usd(pair) > _liquidity_usd(best[mint]):
            best[mint] = pair
    return best


class DexscreenerClient:
    """
    USD prices for SPL token balances.
      - GET https://api.dexscreener.com/tokens/v1/{chainId}/{addr1,addr2,...}
    Mints are priced in batches of BATCH_SIZE, so a wallet full of spam tokens
    costs len(mints) / 30 requests. Results (including "no pair") are cached
    for `ttl_seconds`. Any failure leaves the affected mints unpriced.
    """
    BASE = "https://api.dexscreener.com"

    def __init__(
        self,
        ttl_seconds: int = 45,
        timeout: float = 10.0,
        chain_id: str = "solana",
        max_mints: int = 300,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.ttl = ttl_seconds
        self.timeout = timeout
        self.chain_id = chain_id
        self.max_mints = max_mints
        self.prices: Dict[str, tuple[float, Optional[float]]] = {}
        self.session = session or requests.Session()
        self.log = logger or logging.getLogger("dashboard.dexscreener")

    def _cached(self, mint: str) -> tuple[bool, Optional[float]]:
        item = self.prices.get(mint)
        if item is None:
            return False, None
        stored_at, price = item
        if time.time() - stored_at > self.ttl:
            del self.prices[mint]
            return False, None
        return True, price

    def _fetch_batch(self, mints: List[str]) -> Dict[str, Optional[float]]:
        url = f"{self.BASE}/tokens/v1/{self.chain_id}/{','.join(mints)}"
        try:
            r = self.session.get(url, timeout=self.timeout)
            if r.status_code == 429:
                self.log.warning("Dexscreener rate limited", extra={"data": {"mints": len(mints)}})
                return {}
            r.raise_for_status()
            pairs = best_pairs(r.json())
        except (requests.RequestException, ValueError) as e:
            self.log.warning("Token price lookup failed", extra={"data": {"mints": len(mints), "error": type(e).__name__}})
            return {}

        now = time.time()
        out: Dict[str, Optional[float]] = {}
        for mint in mints:
            out[mint] = _price_usd(pairs.get(mint))
            self.prices[mint] = (now, out[mint])
        return out

    def get_token_prices(self, mints: Iterable[str]) -> Dict[str, Optional[float]]:
        """Price per mint; None when unknown. Mints beyond `max_mints` are left unpriced."""
        out: Dict[str, Optional[float]] = {}
        pending: List[str] = []
        for mint in mints:
            if not mint or mint in out:
                continue
            out[mint] = None
            hit, price = self._cached(mint)
            if hit:
                out[mint] = price
            elif len(pending) < self.max_mints:
                pending.append(mint)

        for i in range(0, len(pending), BATCH_SIZE):
            out.update(self._fetch_batch(pending[i:i + BATCH_SIZE]))
        return out

    def get_token_price(self, mint: str) -> Optional[float]:
        return self.get_token_prices([mint]).get(mint)
