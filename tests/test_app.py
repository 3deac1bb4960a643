from concurrent.futures import ThreadPoolExecutor

import pytest
import requests
from fastapi.testclient import TestClient

from app import create_app
from chains.solana_helius import HeliusClient
from core.analyzer import TransactionAnalyzer
from core.classifier import KeywordTradeClassifier
from core.engine import DashboardEngine, ServiceContext
from core.errors import InvalidAddressError, UpstreamError
from core.logger import DiagnosticsLog
from core.models import RawTransaction, TokenAccountInfo, TokenMetadata
from core.normalizer import TransactionNormalizer
from enrich.prices import PriceSource

from fakes import OTHER, USDC, WALLET, FakeResponse, FakeSession, FakeSummarizer, helius_tx, native


class FakeRpc:
    def __init__(self, balance=10.0, fail=False):
        self.balance = balance
        self.fail = fail

    def get_balance(self, address):
        if self.fail:
            raise UpstreamError("getBalance: HTTP 503")
        return self.balance

    def get_token_accounts(self, address):
        return [TokenAccountInfo(USDC, address, 5, decimals=6)]


class FakeHelius:
    def __init__(self, raws, metadata_error=False):
        self.raws = raws
        self.metadata_error = metadata_error
        self.history_calls = []

    def get_token_metadata(self, mints):
        if self.metadata_error:
            raise UpstreamError("HTTP 500")
        return [TokenMetadata(USDC, "USDC", "USD Coin", 6, "https://logo")]

    def get_transaction_history(self, address, limit=100):
        self.history_calls.append((address, limit))
        return self.raws


class FakeTokenPrices:
    def get_token_prices(self, mints):
        return {m: 2.0 for m in mints}


def raw_history():
    return [
        RawTransaction.from_dict(helius_tx(signature="out", timestamp=100, native=[native(WALLET, OTHER, 2_000_000_000)])),
        RawTransaction.from_dict(helius_tx(signature="dust", timestamp=300, native=[native(WALLET, OTHER, 500_000)])),
        RawTransaction.from_dict(helius_tx(
            signature="swap", type="SWAP", source="JUPITER", timestamp=200,
            native=[native(WALLET, OTHER, 1_000_000_000)],
        )),
    ]


def make_ctx(name, rpc=None, helius=None, summarizer=None):
    diag = DiagnosticsLog(capacity=100, name=name, console=False)
    classifier = KeywordTradeClassifier()
    prices = PriceSource(session=FakeSession(FakeResponse(200, {"solana": {"usd": 150, "usd_24h_change": 4.0}})))
    return ServiceContext(
        diagnostics=diag,
        prices=prices,
        helius=helius or FakeHelius(raw_history()),
        rpc=rpc or FakeRpc(),
        token_prices=FakeTokenPrices(),
        normalizer=TransactionNormalizer(logger=diag.get_logger("normalizer")),
        classifier=classifier,
        analyzer=TransactionAnalyzer(summarizer or FakeSummarizer("steady swapper"), classifier),
        tx_limit=50,
    )


def test_engine_load_sequence():
    ctx = make_ctx("test.engine")
    engine = DashboardEngine(ctx)
    dash = engine.load(WALLET)

    assert dash.portfolio.total_value == 1510
    assert dash.portfolio.change_24h == 4.0
    assert dash.token_accounts[0].symbol == "USDC"
    assert dash.token_accounts[0].value == 10
    assert [t.signature for t in dash.transactions] == ["swap", "out"]
    assert dash.trading.total_trades == 1
    assert dash.analysis == "steady swapper"
    assert ctx.helius.history_calls == [(WALLET, 50)]
    assert engine.summary == {"loads": 1, "completed": 1, "errors": 0, "dropped": 1}


def test_engine_rejects_invalid_address_before_fetching():
    ctx = make_ctx("test.invalid")
    engine = DashboardEngine(ctx)
    with pytest.raises(InvalidAddressError):
        engine.load("not-a-wallet")
    assert ctx.helius.history_calls == []
    assert engine.summary["errors"] == 1


def test_engine_upstream_failure_aborts_load():
    engine = DashboardEngine(make_ctx("test.upstream", rpc=FakeRpc(fail=True)))
    with pytest.raises(UpstreamError):
        engine.load(WALLET)


def test_metadata_failure_degrades_to_unknown():
    ctx = make_ctx("test.metadata", helius=FakeHelius(raw_history(), metadata_error=True))
    dash = DashboardEngine(ctx).load(WALLET)
    assert dash.token_accounts[0].symbol == "Unknown"
    assert dash.token_accounts[0].name == "Unknown Token"


def test_summarizer_failure_does_not_block_page():
    ctx = make_ctx("test.summary", summarizer=FakeSummarizer(error=RuntimeError("down")))
    dash = DashboardEngine(ctx).load(WALLET)
    assert dash.analysis == "Batch analysis unavailable"
    assert dash.portfolio.total_value == 1510


# -----------------------------
# HTTP surface
# -----------------------------

def test_wallet_endpoint():
    with TestClient(create_app(make_ctx("test.http"))) as client:
        r = client.get(f"/wallet/{WALLET}")
        assert r.status_code == 200
        body = r.json()
        assert body["portfolio"]["total_value"] == 1510
        assert body["transactions"][0]["type"] == "Swap"
        assert body["transactions"][1]["type"] == "SendNative"
        assert body["transactions"][1]["description"] == "Sent 2.000 SOL"
        assert body["token_accounts"][0]["value"] == 10
        assert body["short_address"] == "4EtAJ1...RUj6"
        assert body["analysis"] == "steady swapper"


def test_invalid_address_is_400():
    with TestClient(create_app(make_ctx("test.http400"))) as client:
        r = client.get("/wallet/nope")
        assert r.status_code == 400
        assert r.json()["detail"] == "Invalid wallet address"


def test_upstream_failure_is_502():
    with TestClient(create_app(make_ctx("test.http502", rpc=FakeRpc(fail=True)))) as client:
        r = client.get(f"/wallet/{WALLET}")
        assert r.status_code == 502


def test_transactions_price_logs_and_health():
    with TestClient(create_app(make_ctx("test.misc"))) as client:
        assert client.get("/health").json() == {"ok": True}

        txs = client.get(f"/wallet/{WALLET}/transactions", params={"limit": 10}).json()
        assert [t["signature"] for t in txs] == ["swap", "out"]

        quote = client.get("/price").json()
        assert quote["price"] == 150

        client.get("/wallet/nope")
        errors = client.get("/logs", params={"level": "error"}).json()
        assert any(e["message"] == "Error in wallet load" for e in errors)

        assert client.get("/stats").json()["loads"] == 1


def test_unknown_log_level_is_400():
    with TestClient(create_app(make_ctx("test.levels400"))) as client:
        assert client.get("/logs", params={"level": "loud"}).status_code == 400
        assert client.get("/logs", params={"level": "WARN"}).status_code == 200


def test_api_key_never_reaches_responses_or_logs():
    secret = "s3cr3t-helius-key"
    leaky = requests.ConnectionError(
        f"HTTPSConnectionPool(host='api.helius.xyz', port=443): Max retries exceeded with url: "
        f"/v0/addresses/{WALLET}/transactions?limit=50&api-key={secret}"
    )
    ctx = make_ctx("test.secret")
    ctx.helius = HeliusClient(secret, session=FakeSession(leaky), logger=ctx.diagnostics.get_logger("helius"))

    with TestClient(create_app(ctx)) as client:
        r = client.get(f"/wallet/{WALLET}/transactions")
        assert r.status_code == 502
        assert secret not in r.text
        assert secret not in client.get("/logs").text

    assert secret not in str(ctx.diagnostics.get_logs())


def test_concurrent_loads_keep_every_count():
    engine = DashboardEngine(make_ctx("test.concurrent"))

    def bad_load(_):
        with pytest.raises(InvalidAddressError):
            engine.load("bad")

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(bad_load, range(200)))
    assert engine.stats()["loads"] == 200
    assert engine.stats()["errors"] == 200
