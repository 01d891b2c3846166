#!/usr/bin/env python3
"""
价格相关数据模型
价格快照：当前价 + 最近若干个交易日收盘价
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass
class HistoricalClose:
    """单个交易日收盘价"""

    date: str
    close: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {'date': self.date, 'close': str(self.close)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'HistoricalClose':
        return cls(date=data['date'], close=Decimal(str(data['close'])))


@dataclass
class PriceSnapshot:
    """
    价格快照

    current_price 为 None 表示价格源没有返回价格；
    historical_closes 按日期升序排列（最后一个为最近交易日）。
    """

    symbol: str
    current_price: Optional[Decimal] = None
    historical_closes: List[HistoricalClose] = field(default_factory=list)
    fetched_at: str = field(default_factory=lambda: datetime.now().isoformat())
    source: str = "yfinance"

    @property
    def has_price(self) -> bool:
        return self.current_price is not None and self.current_price != 0

    def closes(self) -> List[Decimal]:
        """按日期升序的收盘价列表"""
        return [c.close for c in self.historical_closes]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'symbol': self.symbol,
            'current_price': str(self.current_price) if self.current_price is not None else None,
            'historical_closes': [c.to_dict() for c in self.historical_closes],
            'fetched_at': self.fetched_at,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PriceSnapshot':
        price = data.get('current_price')
        return cls(
            symbol=data['symbol'],
            current_price=Decimal(str(price)) if price is not None else None,
            historical_closes=[HistoricalClose.from_dict(c) for c in data.get('historical_closes', [])],
            fetched_at=data.get('fetched_at') or datetime.now().isoformat(),
            source=data.get('source', 'yfinance'),
        )


@dataclass
class BatchFetchResult:
    """批量刷新结果"""

    snapshots: Dict[str, PriceSnapshot] = field(default_factory=dict)
    unavailable: List[str] = field(default_factory=list)   # 未取得价格的股票
    failed_batches: int = 0
    total_batches: int = 0
    errors: Dict[str, str] = field(default_factory=dict)   # 股票 -> 错误信息
    from_cache: List[str] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.snapshots)

    def get(self, symbol: str) -> Optional[PriceSnapshot]:
        return self.snapshots.get(symbol.upper())

    def to_dict(self) -> Dict[str, Any]:
        return {
            'snapshots': {s: snap.to_dict() for s, snap in self.snapshots.items()},
            'unavailable': list(self.unavailable),
            'failed_batches': self.failed_batches,
            'total_batches': self.total_batches,
            'errors': dict(self.errors),
            'from_cache': list(self.from_cache),
        }
