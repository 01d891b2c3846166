#!/usr/bin/env python3
"""
yfinance 价格下载器
一次请求获取一批股票的最近收盘价，最新收盘作为当前价
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import pandas as pd
import yfinance as yf

from ..models import HistoricalClose, PriceSnapshot
from .base import BaseDownloader


class YFinancePriceDownloader(BaseDownloader):
    """基于 yfinance.download 的价格快照下载器"""

    source_name = "yfinance"

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 2.0,
        timeout: int = 30,
        history_days: int = 10,
    ):
        super().__init__(max_retries=max_retries, base_delay=base_delay, timeout=timeout)
        self.history_days = history_days

    def fetch_snapshots(self, symbols: List[str]) -> Dict[str, PriceSnapshot]:
        """
        获取一批股票的价格快照

        Returns:
            {symbol: PriceSnapshot}；没有数据的股票不出现在结果中
        """
        symbols = [s.upper() for s in symbols]
        if not symbols:
            return {}

        data = self._retry_with_backoff(lambda: self._download(symbols), symbols)

        snapshots: Dict[str, PriceSnapshot] = {}
        for symbol in symbols:
            closes = self._extract_closes(data, symbol, single=len(symbols) == 1)
            if closes is None or closes.empty:
                self.logger.warning(f"⚠️ {symbol} 没有返回价格数据")
                continue
            snapshots[symbol] = self._to_snapshot(symbol, closes)

        self.logger.info(f"📈 获取价格快照 {len(snapshots)}/{len(symbols)}")
        return snapshots

    def _download(self, symbols: List[str]) -> pd.DataFrame:
        # 日历天数放宽，保证覆盖 history_days 个交易日
        start = (datetime.now() - timedelta(days=self.history_days * 2 + 7)).strftime('%Y-%m-%d')
        return yf.download(
            tickers=symbols,
            start=start,
            group_by="ticker",
            auto_adjust=False,
            progress=False,
            threads=False,
            timeout=self.timeout,
        )

    @staticmethod
    def _extract_closes(data: Optional[pd.DataFrame], symbol: str, single: bool) -> Optional[pd.Series]:
        """从 yfinance 返回的表中取出单个股票的收盘价序列"""
        if data is None or data.empty:
            return None

        if isinstance(data.columns, pd.MultiIndex):
            if symbol in data.columns.get_level_values(0):
                frame = data[symbol]
            elif symbol in data.columns.get_level_values(1):
                frame = data.xs(symbol, axis=1, level=1)
            else:
                return None
        elif single:
            frame = data
        else:
            return None

        if 'Close' not in frame.columns:
            return None
        return frame['Close'].dropna()

    def _to_snapshot(self, symbol: str, closes: pd.Series) -> PriceSnapshot:
        values = [(idx, _to_decimal(v)) for idx, v in closes.items()]
        current_price = values[-1][1]
        history = [
            HistoricalClose(date=pd.Timestamp(idx).strftime('%Y-%m-%d'), close=close)
            for idx, close in values[:-1]
        ][-self.history_days:]
        return PriceSnapshot(
            symbol=symbol,
            current_price=current_price,
            historical_closes=history,
            source=self.source_name,
        )


def _to_decimal(value) -> Decimal:
    return Decimal(str(round(float(value), 6)))
