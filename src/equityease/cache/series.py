"""Turn a bar series into the uniform per-symbol response shape."""

from __future__ import annotations

from typing import Sequence

from equityease.core.models import (
    ChartData,
    DailyBar,
    DataSource,
    ProviderBar,
    StockSnapshot,
)


def chart_from_bars(bars: Sequence[DailyBar | ProviderBar]) -> ChartData:
    """Parallel arrays labelled with ISO dates, in the order given."""
    return ChartData(
        labels=[b.trading_date.isoformat() for b in bars],
        open=[b.open for b in bars],
        high=[b.high for b in bars],
        low=[b.low for b in bars],
        close=[b.close for b in bars],
        volume=[b.volume for b in bars],
    )


def snapshot_from_bars(
    symbol: str,
    name: str,
    bars: Sequence[DailyBar | ProviderBar],
    source: DataSource,
) -> StockSnapshot:
    """Build a snapshot whose headline numbers are derived from ``bars``.

    ``bars`` must be sorted ascending and non-empty. Change is measured from
    the previous bar's close; with a single bar it is zero.
    """
    last = bars[-1]
    change = 0.0
    change_percent = 0.0
    if len(bars) >= 2:
        prev_close = bars[-2].close
        change = last.close - prev_close
        if prev_close:
            change_percent = change / prev_close * 100.0

    return StockSnapshot(
        symbol=symbol,
        name=name,
        current_price=last.close,
        change=change,
        change_percent=change_percent,
        volume=last.volume,
        high=max(b.high for b in bars),
        low=min(b.low for b in bars),
        open=bars[0].open,
        data_source=source,
        chart_data=chart_from_bars(bars),
    )


def error_snapshot(symbol: str, name: str | None = None) -> StockSnapshot:
    """Display-empty record for a symbol no layer could serve."""
    return StockSnapshot(
        symbol=symbol,
        name=name or symbol,
        data_source=DataSource.ERROR,
    )
