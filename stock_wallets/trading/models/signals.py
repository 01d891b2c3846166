"""
信号结果模型
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class SignalBand(Enum):
    """信号颜色分段"""
    DEFAULT = "default"
    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


@dataclass
class AssetSignals:
    """
    单个资产的派生信号

    不存储，每次查询时根据交易、钱包与价格快照重新计算。
    所有百分比以负数表示下跌。
    """

    asset_id: int
    symbol: str
    current_price: Optional[Decimal] = None
    is_test_price: bool = False

    # 最近一次买入
    last_buy_price: Optional[Decimal] = None
    last_buy_date: Optional[str] = None
    days_since_last_buy: Optional[int] = None
    days_since_band: SignalBand = SignalBand.DEFAULT

    # 相对最近买入价的回撤
    entry_target_percent: Optional[Decimal] = None
    pullback_percent: Optional[Decimal] = None
    pullback_triggered: bool = False
    lbd_price: Optional[Decimal] = None          # 按主入场目标计算的下一个买入价

    # N日变化与N日回撤（最近买入不超过N天时隐藏）
    n_day_change_percent: Optional[Decimal] = None
    n_day_dip_percent: Optional[Decimal] = None

    # 止盈距离
    min_profit_target_price: Optional[Decimal] = None
    pct_to_profit_target: Optional[Decimal] = None
    profit_target_hit: bool = False
    pct_to_target_band: SignalBand = SignalBand.DEFAULT

    @property
    def has_price(self) -> bool:
        return self.current_price is not None

    def to_dict(self) -> dict:
        return {
            'asset_id': self.asset_id,
            'symbol': self.symbol,
            'current_price': _str(self.current_price),
            'is_test_price': self.is_test_price,
            'last_buy_price': _str(self.last_buy_price),
            'last_buy_date': self.last_buy_date,
            'days_since_last_buy': self.days_since_last_buy,
            'days_since_band': self.days_since_band.value,
            'entry_target_percent': _str(self.entry_target_percent),
            'pullback_percent': _str(self.pullback_percent),
            'pullback_triggered': self.pullback_triggered,
            'lbd_price': _str(self.lbd_price),
            'n_day_change_percent': _str(self.n_day_change_percent),
            'n_day_dip_percent': _str(self.n_day_dip_percent),
            'min_profit_target_price': _str(self.min_profit_target_price),
            'pct_to_profit_target': _str(self.pct_to_profit_target),
            'profit_target_hit': self.profit_target_hit,
            'pct_to_target_band': self.pct_to_target_band.value,
        }


def _str(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None
