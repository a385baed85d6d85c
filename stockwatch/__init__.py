"""
Concurrent batch analysis engine for watched stocks.

Provides unified interfaces for:
- Data loading (quotes, fundamentals and OHLCV series from a DataSource)
- Indicator calculations (MA, EMA, MACD, KDJ, RSI, window summaries)
- Pattern detection (consolidation, trend before, volume surges)
- Rate-limited wave scheduling with cancellation and progress
- Chunked batch orchestration with per-symbol partial failure
"""
