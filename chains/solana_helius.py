from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from chains.session import describe_error, make_session, public_url
from core.errors import UpstreamError
from core.models import RawTransaction, TokenMetadata


HELIUS_API_URL = "https://api.helius.xyz/v0"


def _as_list(payload: Any, key: str) -> Optional[List[Dict[str, Any]]]:
    """Helius answers with a bare array or an object wrapping one under `key`."""
    if isinstance(payload, dict):
        payload = payload.get(key)
    if not isinstance(payload, list):
        return None
    return [x for x in payload if isinstance(x, dict)]


def parse_helius_transactions(payload: Any) -> List[RawTransaction]:
    """
    Enhanced Transactions API payload -> RawTransaction list.
    Entries without a signature are skipped; everything else is kept as received.
    """
    txs = _as_list(payload, "transactions")
    if txs is None:
        raise UpstreamError("Invalid response format: expected array of transactions")

    out: List[RawTransaction] = []
    for tx in txs:
        raw = RawTransaction.from_dict(tx)
        if not raw.signature:
            continue
        out.append(raw)
    return out


def _obj(v: Any) -> Dict[str, Any]:
    return v if isinstance(v, dict) else {}


def parse_token_metadata(entry: Dict[str, Any]) -> Optional[TokenMetadata]:
    """Accepts the flat {mint, symbol, name, decimals, logoURI} shape and Helius' legacyMetadata shape."""
    mint = entry.get("mint") or entry.get("account")
    if not mint or not isinstance(mint, str):
        return None
    legacy = _obj(entry.get("legacyMetadata"))
    on_chain = _obj(_obj(_obj(entry.get("onChainMetadata")).get("metadata")).get("data"))

    symbol = entry.get("symbol") or legacy.get("symbol") or on_chain.get("symbol") or ""
    name = entry.get("name") or legacy.get("name") or on_chain.get("name") or ""
    decimals = entry.get("decimals")
    if decimals is None:
        decimals = legacy.get("decimals") or 0
    try:
        decimals = int(decimals)
    except (TypeError, ValueError, OverflowError):
        decimals = 0

    return TokenMetadata(
        mint=mint,
        symbol=str(symbol).strip(),
        name=str(name).strip(),
        decimals=decimals,
        logo_uri=entry.get("logoURI") or legacy.get("logoURI"),
    )


class HeliusClient:
    """
    Helius REST endpoints used by the dashboard:
      - GET  /v0/addresses/{address}/transactions
      - POST /v0/token-metadata
      - POST /v0/transactions
    Every failure surfaces as UpstreamError.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = HELIUS_API_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.api_key = api_key.strip()
        self.base = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or make_session()
        self.log = logger or logging.getLogger("dashboard.helius")

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, body: Any = None) -> Any:
        url = f"{self.base}{path}"
        shown = public_url(url)
        query = dict(params or {})
        query["api-key"] = self.api_key

        try:
            r = self.session.request(method, url, params=query, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            self.log.error("API Request Timeout", extra={"data": {"url": shown, "timeout": self.timeout}})
            raise UpstreamError(f"Request timeout after {self.timeout}s") from e
        except requests.RequestException as e:
            reason = describe_error(e, url)
            self.log.error("API Request Error", extra={"data": {"url": shown, "error": reason}})
            raise UpstreamError(reason) from e

        self.log.debug("API Response", extra={"data": {"url": shown, "status": r.status_code}})

        if not r.ok:
            self.log.error("API Error Response", extra={"data": {"url": shown, "status": r.status_code, "error": r.text[:500]}})
            raise UpstreamError(f"HTTP {r.status_code}: {r.reason}", status=r.status_code)

        try:
            data = r.json()
        except ValueError as e:
            self.log.error("JSON Parse Error", extra={"data": {"url": shown, "error": type(e).__name__}})
            raise UpstreamError("Invalid JSON response") from e

        if data is None:
            raise UpstreamError("Empty response received")
        return data

    def get_transaction_history(self, address: str, limit: int = 100) -> List[RawTransaction]:
        data = self._request("GET", f"/addresses/{address}/transactions", params={"limit": limit})
        return parse_helius_transactions(data)

    def get_token_metadata(self, mints: List[str]) -> List[TokenMetadata]:
        if not mints:
            return []

        data = self._request("POST", "/token-metadata", body={"mintAccounts": list(mints)})
        entries = _as_list(data, "tokens")
        if entries is None:
            raise UpstreamError("Invalid response format: expected array of token metadata")

        out = []
        for entry in entries:
            meta = parse_token_metadata(entry)
            if meta is not None:
                out.append(meta)
        return out

    def parse_transaction(self, signature: str) -> RawTransaction:
        data = self._request("POST", "/transactions", body={"transactions": [signature]})
        txs = parse_helius_transactions(data)
        if not txs:
            raise UpstreamError("Invalid response format: expected array with transaction data")
        return txs[0]
