from __future__ import annotations

SOLSCAN = "https://solscan.io"


def explorer_tx_link(signature: str) -> str:
    return f"{SOLSCAN}/tx/{signature}"


def explorer_account_link(address: str) -> str:
    return f"{SOLSCAN}/account/{address}"


def explorer_token_link(mint: str) -> str:
    return f"{SOLSCAN}/token/{mint}"
