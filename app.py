# app.py
import asyncio
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from core.engine import DashboardEngine, ServiceContext
from core.errors import InvalidAddressError, UpstreamError
from core.models import TokenAccountInfo
from links import explorer_account_link, explorer_token_link

# ============================================================
# ENV / CONFIG
# ============================================================

HELIUS_API_KEY = os.getenv("HELIUS_API_KEY", "").strip()
HELIUS_API_URL = os.getenv("HELIUS_API_URL", "").strip()
SOLANA_RPC_URL = os.getenv("SOLANA_RPC_URL", "").strip()

# Summaries are optional: without a key the fallback text is shown
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip()
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo").strip()

TX_HISTORY_LIMIT = int(os.getenv("TX_HISTORY_LIMIT", "50").strip() or "50")
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "10").strip() or "10")
LOG_BUFFER_SIZE = int(os.getenv("LOG_BUFFER_SIZE", "1000").strip() or "1000")
PRICE_TOKENS = os.getenv("PRICE_TOKENS", "true").strip().lower() in ("true", "1", "yes")


def context_from_env() -> ServiceContext:
    if not HELIUS_API_KEY:
        raise RuntimeError("Missing HELIUS_API_KEY in environment.")
    rpc_url = SOLANA_RPC_URL or f"https://mainnet.helius-rpc.com/?api-key={HELIUS_API_KEY}"
    return ServiceContext.build(
        helius_api_key=HELIUS_API_KEY,
        helius_api_url=HELIUS_API_URL or None,
        rpc_url=rpc_url,
        openai_api_key=OPENAI_API_KEY,
        openai_model=OPENAI_MODEL,
        openai_base_url=OPENAI_BASE_URL,
        timeout=REQUEST_TIMEOUT,
        tx_limit=TX_HISTORY_LIMIT,
        log_capacity=LOG_BUFFER_SIZE,
        price_tokens=PRICE_TOKENS,
    )

# ============================================================
# HELPERS
# ============================================================

def _token_json(acc: TokenAccountInfo) -> Dict[str, Any]:
    out = asdict(acc)
    out["value"] = acc.value
    out["explorer_url"] = explorer_token_link(acc.mint)
    return out


def _short_address(address: str) -> str:
    if len(address) <= 10:
        return address
    return address[:6] + "..." + address[-4:]


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, InvalidAddressError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, UpstreamError):
        return HTTPException(status_code=502, detail="Failed to fetch wallet data from upstream")
    return HTTPException(status_code=500, detail="Failed to fetch wallet data")

# ============================================================
# FASTAPI APP
# ============================================================

def create_app(ctx: Optional[ServiceContext] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context = ctx or context_from_env()
        app.state.ctx = context
        app.state.engine = DashboardEngine(context)
        context.diagnostics.get_logger("app").info("Service started", extra={"data": {"tx_limit": context.tx_limit}})
        yield

    app = FastAPI(lifespan=lifespan)

    @app.get("/health")
    def health():
        return {"ok": True}

    @app.get("/price")
    async def price():
        quote = await asyncio.to_thread(app.state.ctx.prices.get_price, "solana")
        return jsonable_encoder(quote)

    @app.get("/wallet/{address}")
    async def wallet(address: str):
        engine: DashboardEngine = app.state.engine
        try:
            dash = await asyncio.to_thread(engine.load, address)
        except Exception as e:
            engine.log.error("Error in wallet load", extra={"data": {"address": address, "error": e}})
            raise _http_error(e) from e

        return {
            "address": dash.address,
            "short_address": _short_address(dash.address),
            "explorer_url": explorer_account_link(dash.address),
            "price": jsonable_encoder(dash.price),
            "balance": dash.balance,
            "portfolio": jsonable_encoder(dash.portfolio),
            "token_accounts": [_token_json(a) for a in dash.token_accounts],
            "transactions": jsonable_encoder(dash.transactions),
            "trading": jsonable_encoder(dash.trading),
            "analysis": dash.analysis,
        }

    @app.get("/wallet/{address}/transactions")
    async def wallet_transactions(address: str, limit: int = Query(50, ge=1, le=100)):
        engine: DashboardEngine = app.state.engine
        try:
            txs = await asyncio.to_thread(engine.transactions, address, limit)
        except Exception as e:
            engine.log.error("Error fetching transactions", extra={"data": {"address": address, "error": e}})
            raise _http_error(e) from e
        return jsonable_encoder(txs)

    @app.get("/logs")
    def logs(level: Optional[str] = None):
        try:
            return app.state.ctx.diagnostics.get_logs(level)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.get("/stats")
    def stats():
        return app.state.engine.stats()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
