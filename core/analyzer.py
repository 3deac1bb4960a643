from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol

from core.classifier import KeywordTradeClassifier, TradeClassifier
from core.models import LAMPORTS_PER_SOL, RawTransaction, TradeRecord, TradeSide, TradingSummary

RECENT_TRADES = 5

BATCH_FALLBACK = "Batch analysis unavailable"
BATCH_EMPTY = "Unable to analyze transactions"
SINGLE_FALLBACK = "Analysis unavailable"
SINGLE_EMPTY = "Unable to analyze transaction"

BATCH_SYSTEM_PROMPT = (
    "You are a trading expert analyzing wallet activity. Focus on concrete trading "
    "patterns and profitability indicators. Be specific about trading behavior observed "
    "and avoid generic statements. If there are few or no trades, explicitly state this "
    "and what it indicates about the wallet's activity."
)
SINGLE_SYSTEM_PROMPT = (
    "You are a Solana blockchain expert focusing on trading activity and profitability "
    "analysis. Keep responses brief and focused on buys, sells, and their impact."
)


class SummarizeFn(Protocol):
    def summarize(self, prompt: str, system_prompt: str, max_tokens: int = 200) -> str:
        ...


def _short(account: str) -> str:
    return f"{account[:4]}..." if account else "?"


class TransactionAnalyzer:
    """Builds trading statistics from raw transactions and asks the summarizer to explain them."""

    def __init__(
        self,
        summarizer: SummarizeFn,
        classifier: Optional[TradeClassifier] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.summarizer = summarizer
        self.classifier = classifier or KeywordTradeClassifier()
        self.log = logger or logging.getLogger("dashboard.analyzer")

    def trade_records(self, raws: Iterable[RawTransaction]) -> List[TradeRecord]:
        records = []
        for raw in raws:
            if not self.classifier.is_trade(raw):
                continue
            records.append(TradeRecord(
                side=self.classifier.classify(raw),
                value=self.classifier.estimate_value(raw),
                timestamp=raw.timestamp,
                original_type=raw.type,
            ))
        return records

    def build_summary(self, raws: Iterable[RawTransaction]) -> TradingSummary:
        trades = self.trade_records(raws)
        total = len(trades)
        buys = sum(1 for t in trades if t.side == TradeSide.BUY)
        sells = sum(1 for t in trades if t.side == TradeSide.SELL)
        average = sum(t.value for t in trades) / total if total else 0.0

        trades.sort(key=lambda t: t.timestamp, reverse=True)
        return TradingSummary(
            total_trades=total,
            buy_count=buys,
            sell_count=sells,
            average_trade_value=average,
            recent=trades[:RECENT_TRADES],
        )

    def build_prompt(self, summary: TradingSummary) -> str:
        if summary.total_trades == 0:
            return (
                "Analyze this wallet's trading activity:\n\n"
                "No trading activity was identified in the recent transaction history "
                "(0 trades, 0 buys, 0 sells).\n\n"
                "Explain what this low activity indicates about the wallet."
            )

        lines = [
            "Analyze this wallet's trading activity:",
            "",
            "Trading Summary:",
            f"- Total trades identified: {summary.total_trades}",
            f"- Buy transactions: {summary.buy_count}",
            f"- Sell transactions: {summary.sell_count}",
            f"- Average trade value: {summary.average_trade_value:.2f} SOL",
            "",
            "Recent Trades:",
        ]
        for t in summary.recent:
            lines.append(f"- {t.original_type or 'UNKNOWN'} ({t.side.value.lower()}): {t.value:.2f} SOL")
        lines += [
            "",
            "Trading Patterns:",
            f"- Buy/Sell ratio: {summary.buy_count}:{summary.sell_count}",
            f"- Trading frequency: {summary.total_trades} trades in recent history",
            "",
            "Based on this data, provide a concise analysis of:",
            "1. Trading strategy and patterns",
            "2. Risk management approach",
            "3. Potential profitability indicators",
            "4. Recent trading decisions",
            "",
            "Focus on concrete observations about trading behavior and profitability.",
        ]
        return "\n".join(lines)

    def analyze_batch(self, raws: Iterable[RawTransaction]) -> str:
        try:
            summary = self.build_summary(raws)
        except Exception as e:
            self.log.error("Error analyzing transactions", extra={"data": {"error": e}})
            return BATCH_FALLBACK
        return self.explain(summary)

    def explain(self, summary: TradingSummary) -> str:
        """Summarizer text for an already built summary; never raises."""
        try:
            prompt = self.build_prompt(summary)
            text = self.summarizer.summarize(prompt, BATCH_SYSTEM_PROMPT, max_tokens=200)
        except Exception as e:
            self.log.error("Error analyzing transactions", extra={"data": {"error": e}})
            return BATCH_FALLBACK
        return text or BATCH_EMPTY

    def analyze_transaction(self, raw: RawTransaction) -> str:
        try:
            prompt = self._single_prompt(raw)
            text = self.summarizer.summarize(prompt, SINGLE_SYSTEM_PROMPT, max_tokens=100)
        except Exception as e:
            self.log.error("Error analyzing transaction", extra={"data": {"error": e}})
            return SINGLE_FALLBACK
        return text or SINGLE_EMPTY

    def _single_prompt(self, raw: RawTransaction) -> str:
        if self.classifier.is_trade(raw):
            label = f"{self.classifier.classify(raw).value.lower()} trade"
        else:
            label = "non-trade transaction"

        lines = [
            "Analyze this Solana transaction:",
            f"Type: {raw.type}",
            f"Trade Classification: {label}",
            f"Value: {self.classifier.estimate_value(raw):.4f} SOL",
            f"Fee: {raw.fee / LAMPORTS_PER_SOL:.6f} SOL",
        ]
        if raw.native_transfers:
            lines.append("SOL Transfers: " + ", ".join(
                f"{t.amount / LAMPORTS_PER_SOL:g} SOL from {_short(t.from_account)} to {_short(t.to_account)}"
                for t in raw.native_transfers
            ))
        if raw.token_transfers:
            lines.append("Token Transfers: " + ", ".join(
                f"{t.amount:g} tokens from {_short(t.from_account)} to {_short(t.to_account)}"
                for t in raw.token_transfers
            ))
        lines.append(
            "Provide a brief analysis of this transaction's trading implications "
            "and potential impact on portfolio value."
        )
        return "\n".join(lines)
