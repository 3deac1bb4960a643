from core.analyzer import BATCH_EMPTY, BATCH_FALLBACK, SINGLE_FALLBACK, TransactionAnalyzer
from core.models import RawTransaction, TradeSide
from enrich.summarizer import SummarizationError

from fakes import OTHER, WALLET, FakeSummarizer, helius_tx, native, token


def raws():
    return [
        RawTransaction.from_dict(helius_tx(signature=f"buy{i}", type="BUY", timestamp=100 + i,
                                           native=[native(WALLET, OTHER, 1_000_000_000)],
                                           accounts=[{"account": WALLET, "nativeBalanceChange": -1_000_000_000}]))
        for i in range(4)
    ] + [
        RawTransaction.from_dict(helius_tx(signature=f"sell{i}", type="SELL", timestamp=200 + i,
                                           tokens=[token(WALLET, OTHER, 3)],
                                           accounts=[{"account": WALLET, "tokenBalanceChanges": [{"mint": "m", "amount": -3}]}]))
        for i in range(3)
    ] + [
        # plain transfer, no balance changes reported: not a trade
        RawTransaction.from_dict(helius_tx(signature="plain", timestamp=500, native=[native(WALLET, OTHER, 5)])),
    ]


def test_build_summary_counts_and_recent():
    summary = TransactionAnalyzer(FakeSummarizer()).build_summary(raws())
    assert summary.total_trades == 7
    assert summary.buy_count == 4
    assert summary.sell_count == 3
    assert summary.average_trade_value == (4 * 1.0 + 3 * 3.0) / 7
    assert len(summary.recent) == 5
    assert [t.timestamp for t in summary.recent] == [202, 201, 200, 103, 102]
    assert summary.recent[0].side == TradeSide.SELL
    assert summary.recent[0].original_type == "SELL"


def test_no_trades_does_not_divide_by_zero():
    fake = FakeSummarizer("quiet wallet")
    analyzer = TransactionAnalyzer(fake)
    summary = analyzer.build_summary([])
    assert summary.total_trades == 0
    assert summary.average_trade_value == 0.0

    assert analyzer.analyze_batch([]) == "quiet wallet"
    assert "No trading activity" in fake.prompts[0]


def test_prompt_includes_stats_and_recent_trades():
    fake = FakeSummarizer()
    TransactionAnalyzer(fake).analyze_batch(raws())
    prompt = fake.prompts[0]
    assert "Total trades identified: 7" in prompt
    assert "Buy/Sell ratio: 4:3" in prompt
    assert "- SELL (sell): 3.00 SOL" in prompt


def test_summarizer_failure_returns_fallback():
    analyzer = TransactionAnalyzer(FakeSummarizer(error=SummarizationError("boom")))
    assert analyzer.analyze_batch(raws()) == BATCH_FALLBACK


def test_empty_answer_returns_fallback():
    assert TransactionAnalyzer(FakeSummarizer("")).analyze_batch(raws()) == BATCH_EMPTY


def test_single_transaction_analysis():
    fake = FakeSummarizer("looks like a buy")
    tx = RawTransaction.from_dict(helius_tx(
        type="BUY",
        native=[native(WALLET, OTHER, 2_000_000_000)],
        accounts=[{"account": WALLET, "nativeBalanceChange": -2_000_000_000}],
    ))
    analyzer = TransactionAnalyzer(fake)
    assert analyzer.analyze_transaction(tx) == "looks like a buy"
    assert "Trade Classification: buy trade" in fake.prompts[0]
    assert "2 SOL from 4EtA... to EdCN..." in fake.prompts[0]

    failing = TransactionAnalyzer(FakeSummarizer(error=RuntimeError("down")))
    assert failing.analyze_transaction(tx) == SINGLE_FALLBACK
