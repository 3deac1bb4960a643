from __future__ import annotations

import itertools
import logging
from typing import Any, List, Optional

import requests
from solders.pubkey import Pubkey

from chains.session import describe_error, make_session, public_url
from core.errors import InvalidAddressError, UpstreamError
from core.models import LAMPORTS_PER_SOL, TokenAccountInfo

PUBLIC_RPC_URL = "https://api.mainnet-beta.solana.com"
TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
COMMITMENT = "confirmed"


def validate_address(address: str) -> str:
    """Returns the address unchanged if it parses as a 32-byte base58 public key."""
    candidate = (address or "").strip()
    if not candidate:
        raise InvalidAddressError(address)
    try:
        Pubkey.from_string(candidate)
    except (ValueError, TypeError) as e:
        raise InvalidAddressError(address) from e
    return candidate


def parse_token_account(entry: Any, owner: str) -> Optional[TokenAccountInfo]:
    """One jsonParsed token account -> TokenAccountInfo, or None when empty/unreadable."""
    try:
        info = entry["account"]["data"]["parsed"]["info"]
        token_amount = info["tokenAmount"]
    except (KeyError, TypeError):
        return None

    ui_amount = token_amount.get("uiAmount")
    if ui_amount is None:
        ui_amount = token_amount.get("uiAmountString")
    try:
        amount = float(ui_amount or 0)
    except (TypeError, ValueError):
        return None
    if amount <= 0:
        return None

    return TokenAccountInfo(
        mint=info.get("mint") or "",
        owner=info.get("owner") or owner,
        amount=amount,
        decimals=int(token_amount.get("decimals") or 0),
    )


class SolanaRpcClient:
    """Minimal JSON-RPC client for balance and token-account lookups."""

    def __init__(
        self,
        rpc_url: str = PUBLIC_RPC_URL,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.session = session or make_session()
        self.log = logger or logging.getLogger("dashboard.rpc")
        self._ids = itertools.count(1)

    def _call(self, method: str, params: List[Any]) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            r = self.session.post(self.rpc_url, json=body, timeout=self.timeout)
            r.raise_for_status()
            data = r.json()
        except requests.Timeout as e:
            raise UpstreamError(f"{method}: request timeout after {self.timeout}s") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise UpstreamError(f"{method}: HTTP {status} from {public_url(self.rpc_url)}", status=status) from e
        except requests.RequestException as e:
            raise UpstreamError(f"{method}: {describe_error(e, self.rpc_url)}") from e
        except ValueError as e:
            raise UpstreamError(f"{method}: invalid JSON response") from e

        if not isinstance(data, dict):
            raise UpstreamError(f"{method}: malformed response")
        if data.get("error"):
            raise UpstreamError(f"{method}: {data['error']}")
        return data.get("result")

    def get_balance(self, address: str) -> float:
        """SOL balance (not lamports)."""
        try:
            result = self._call("getBalance", [address, {"commitment": COMMITMENT}])
            lamports = result["value"] if isinstance(result, dict) else result
            return float(lamports) / LAMPORTS_PER_SOL
        except UpstreamError as e:
            self.log.error("Error fetching balance", extra={"data": {"error": e, "address": address}})
            raise
        except (KeyError, TypeError, ValueError) as e:
            self.log.error("Error fetching balance", extra={"data": {"error": e, "address": address}})
            raise UpstreamError("Failed to fetch balance") from e

    def get_token_accounts(self, address: str) -> List[TokenAccountInfo]:
        """Token accounts with a positive balance; metadata is filled in by the caller."""
        try:
            result = self._call(
                "getTokenAccountsByOwner",
                [address, {"programId": TOKEN_PROGRAM_ID}, {"encoding": "jsonParsed", "commitment": COMMITMENT}],
            )
        except UpstreamError as e:
            self.log.error("Error fetching token accounts", extra={"data": {"error": e, "address": address}})
            raise

        entries = (result or {}).get("value") if isinstance(result, dict) else None
        if not entries:
            self.log.debug("No token accounts found", extra={"data": {"address": address}})
            return []

        accounts = []
        for entry in entries:
            acc = parse_token_account(entry, address)
            if acc is not None:
                accounts.append(acc)
        return accounts
