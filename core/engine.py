from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from chains.solana_helius import HeliusClient
from chains.solana_rpc import SolanaRpcClient, validate_address
from core.analyzer import TransactionAnalyzer
from core.classifier import KeywordTradeClassifier, TradeClassifier
from core.errors import UpstreamError
from core.logger import DiagnosticsLog
from core.models import NormalizedTransaction, PortfolioSummary, PriceQuote, TokenAccountInfo, TradingSummary
from core.normalizer import TransactionNormalizer
from core.portfolio import aggregate
from enrich.dexscreener import DexscreenerClient
from enrich.prices import PriceSource
from enrich.summarizer import Summarizer


@dataclass
class Dashboard:
    address: str
    price: PriceQuote
    balance: float
    portfolio: PortfolioSummary
    token_accounts: List[TokenAccountInfo]
    transactions: List[NormalizedTransaction]
    trading: TradingSummary
    analysis: str


@dataclass
class ServiceContext:
    """Every long-lived collaborator, built once at startup and passed by reference."""
    diagnostics: DiagnosticsLog
    prices: PriceSource
    helius: HeliusClient
    rpc: SolanaRpcClient
    token_prices: Optional[DexscreenerClient]
    normalizer: TransactionNormalizer
    classifier: TradeClassifier
    analyzer: TransactionAnalyzer
    tx_limit: int = 50

    @classmethod
    def build(
        cls,
        helius_api_key: str,
        rpc_url: str,
        openai_api_key: str = "",
        openai_model: str = "gpt-3.5-turbo",
        openai_base_url: str = Summarizer.BASE,
        helius_api_url: Optional[str] = None,
        timeout: float = 10.0,
        tx_limit: int = 50,
        log_capacity: int = 1000,
        price_tokens: bool = True,
        classifier: Optional[TradeClassifier] = None,
    ) -> "ServiceContext":
        diag = DiagnosticsLog(capacity=log_capacity)
        classifier = classifier or KeywordTradeClassifier(logger=diag.get_logger("classifier"))
        summarizer = Summarizer(
            openai_api_key,
            model=openai_model,
            base_url=openai_base_url,
            timeout=timeout,
            logger=diag.get_logger("summarizer"),
        )
        helius_kwargs = {"base_url": helius_api_url} if helius_api_url else {}
        return cls(
            diagnostics=diag,
            prices=PriceSource(logger=diag.get_logger("prices")),
            helius=HeliusClient(helius_api_key, timeout=timeout, logger=diag.get_logger("helius"), **helius_kwargs),
            rpc=SolanaRpcClient(rpc_url, timeout=timeout, logger=diag.get_logger("rpc")),
            token_prices=DexscreenerClient(timeout=timeout, logger=diag.get_logger("dexscreener")) if price_tokens else None,
            normalizer=TransactionNormalizer(logger=diag.get_logger("normalizer")),
            classifier=classifier,
            analyzer=TransactionAnalyzer(summarizer, classifier, logger=diag.get_logger("analyzer")),
            tx_limit=tx_limit,
        )


class DashboardEngine:
    """
    Page-load sequence for one wallet:
      validate -> price -> balance -> token accounts (+ metadata, prices)
      -> raw transactions -> normalize -> classify/summarize.
    Address and upstream failures abort the whole load; nothing partial is returned.
    """

    def __init__(self, ctx: ServiceContext):
        self.ctx = ctx
        self.log = ctx.diagnostics.get_logger("engine")

        # Summary counters; loads run on worker threads
        self._lock = threading.Lock()
        self.summary = {
            "loads": 0,
            "completed": 0,
            "errors": 0,
            "dropped": 0,
        }

    def _count(self, key: str, n: int = 1) -> None:
        with self._lock:
            self.summary[key] += n

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return dict(self.summary)

    def load(self, address: str) -> Dashboard:
        self._count("loads")
        try:
            address = validate_address(address)

            price = self.ctx.prices.get_price("solana")
            balance = self.ctx.rpc.get_balance(address)
            tokens = self.token_accounts(address)

            raws = self.ctx.helius.get_transaction_history(address, self.ctx.tx_limit)
            feed = self.ctx.normalizer.normalize_batch(raws, address)
            self._count("dropped", len(raws) - len(feed))

            trading = self.ctx.analyzer.build_summary(raws)
            analysis = self.ctx.analyzer.explain(trading)

            portfolio = aggregate(balance, price, tokens)
        except Exception:
            self._count("errors")
            raise

        self._count("completed")
        self.log.info(
            "Dashboard loaded",
            extra={"data": {"address": address, "transactions": len(feed), "tokens": len(tokens)}},
        )
        return Dashboard(
            address=address,
            price=price,
            balance=balance,
            portfolio=portfolio,
            token_accounts=tokens,
            transactions=feed,
            trading=trading,
            analysis=analysis,
        )

    def token_accounts(self, address: str) -> List[TokenAccountInfo]:
        accounts = self.ctx.rpc.get_token_accounts(address)
        if not accounts:
            return accounts

        mints = [a.mint for a in accounts]
        try:
            metadata = {m.mint: m for m in self.ctx.helius.get_token_metadata(mints)}
        except UpstreamError as e:
            self.log.warning("Token metadata unavailable", extra={"data": {"address": address, "error": e}})
            metadata = {}

        for acc in accounts:
            meta = metadata.get(acc.mint)
            if meta is not None:
                acc.symbol = meta.symbol or "Unknown"
                acc.name = meta.name or "Unknown Token"
                acc.logo = meta.logo_uri

        if self.ctx.token_prices is not None:
            prices = self.ctx.token_prices.get_token_prices(mints)
            for acc in accounts:
                acc.price = prices.get(acc.mint)

        accounts.sort(key=lambda a: a.value, reverse=True)
        return accounts

    def transactions(self, address: str, limit: Optional[int] = None) -> List[NormalizedTransaction]:
        address = validate_address(address)
        raws = self.ctx.helius.get_transaction_history(address, limit or self.ctx.tx_limit)
        return self.ctx.normalizer.normalize_batch(raws, address)
