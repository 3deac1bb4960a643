from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from core.models import PriceQuote

CACHE_TTL_SECONDS = 60 * 60
REQUEST_TIMEOUT = 5
MAX_RETRY_AFTER = 5
FALLBACK_QUOTE = PriceQuote(price=100.0, change_24h=0.0, fetched_at=0.0)


@dataclass(frozen=True)
class PriceProvider:
    name: str
    url: str
    parser: Callable[[Any], Dict[str, float]]


def _parse_coingecko(data: Any) -> Dict[str, float]:
    sol = data["solana"]
    return {"price": float(sol["usd"]), "change_24h": float(sol.get("usd_24h_change") or 0.0)}


def _parse_jupiter(data: Any) -> Dict[str, float]:
    # No 24h change on this endpoint
    return {"price": float(data["data"]["SOL"]["price"]), "change_24h": 0.0}


def _parse_binance(data: Any) -> Dict[str, float]:
    return {"price": float(data["lastPrice"]), "change_24h": float(data["priceChangePercent"])}


DEFAULT_PROVIDERS: List[PriceProvider] = [
    PriceProvider(
        "CoinGecko",
        "https://api.coingecko.com/api/v3/simple/price?ids=solana&vs_currencies=usd&include_24hr_change=true",
        _parse_coingecko,
    ),
    PriceProvider("Jupiter", "https://price.jup.ag/v4/price?ids=SOL", _parse_jupiter),
    PriceProvider("Binance", "https://api.binance.com/api/v3/ticker/24hr?symbol=SOLUSDT", _parse_binance),
]


class PriceSource:
    """
    Native-asset price with provider fallback:
      fresh cache (< 1h) -> each provider once, in order -> expired cache -> fixed fallback.
    get_price never raises.
    """

    def __init__(
        self,
        providers: Optional[List[PriceProvider]] = None,
        ttl_seconds: int = CACHE_TTL_SECONDS,
        timeout: float = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.providers = list(DEFAULT_PROVIDERS if providers is None else providers)
        self.ttl = ttl_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self.log = logger or logging.getLogger("dashboard.prices")
        self.clock = clock
        self.sleep = sleep
        self.cache: Dict[str, PriceQuote] = {}

    def _fetch(self, provider: PriceProvider) -> Optional[PriceQuote]:
        try:
            r = self.session.get(
                provider.url,
                headers={"Accept": "application/json", "Cache-Control": "no-cache"},
                timeout=self.timeout,
            )
            if r.status_code == 429:
                retry_after = r.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    self.sleep(min(int(retry_after), MAX_RETRY_AFTER))
            r.raise_for_status()
            parsed = provider.parser(r.json())
            return PriceQuote(price=parsed["price"], change_24h=parsed["change_24h"], fetched_at=self.clock())
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            self.log.warning(f"Failed to fetch from {provider.name}", extra={"data": {"error": e}})
            return None

    def get_price(self, asset: str = "solana") -> PriceQuote:
        cached = self.cache.get(asset)
        if cached and self.clock() - cached.fetched_at < self.ttl:
            return cached

        for provider in self.providers:
            quote = self._fetch(provider)
            if quote is not None:
                self.cache[asset] = quote
                return quote

        if cached:
            self.log.info("Using expired cache data as fallback", extra={"data": {"asset": asset}})
            return cached

        self.log.warning("Using fallback price data", extra={"data": {"asset": asset}})
        return FALLBACK_QUOTE

    def clear_cache(self) -> None:
        self.cache.clear()
