#!/usr/bin/env python3
"""
信号计算器
根据交易、钱包、入场目标与价格快照计算派生信号

所有百分比以负数表示下跌：
- 回撤: (current − last_buy_price) / last_buy_price × 100，<= −ET% 时触发
- N日变化: 当前价相对 N 个交易日前收盘价的变化
- N日回撤: 最近 N 个收盘价中满足 (current − close)/close × 100 <= −ET% 的为命中，
  取命中中最高的收盘价计算回撤；无命中时为 None
- 最近一次买入不超过 N 天时，两个 N 日指标均隐藏
- 距止盈: (current − 最低钱包止盈价) / 最低钱包止盈价 × 100
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from ...data.models import PriceSnapshot
from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..models.asset import Asset, EntryTarget
from ..models.signals import AssetSignals, SignalBand
from ..models.transaction import Transaction, TransactionType
from ..models.wallet import Wallet
from ..utils.date_utils import days_between
from ..utils.decimal_utils import HUNDRED, to_percent_decimal, quantize


LBD_PRECISION = Decimal('0.00001')


def percent_change(current: Decimal, reference: Decimal) -> Optional[Decimal]:
    """(current − reference) / reference × 100；reference 为 0 时返回 None"""
    if reference is None or reference == 0:
        return None
    return (current - reference) / reference * HUNDRED


def primary_entry_target(entry_targets: List[EntryTarget]) -> Optional[EntryTarget]:
    """排序最靠前的入场目标"""
    if not entry_targets:
        return None
    return min(entry_targets, key=lambda t: (t.sort_order, t.id or 0))


def calculate_lbd_price(price: Decimal, entry_target_percent: Decimal) -> Decimal:
    """下一个买入价 = price − price × |ET| / 100（不含佣金）"""
    return quantize(price - price * abs(entry_target_percent) / HUNDRED, LBD_PRECISION)


def effective_price(snapshot: Optional[PriceSnapshot], asset: Asset) -> Tuple[Optional[Decimal], bool]:
    """
    有效价格：行情价非空且非零时使用行情价，否则使用资产的测试价格

    Returns:
        (price, is_test_price)
    """
    if snapshot is not None and snapshot.current_price is not None and snapshot.current_price != 0:
        return snapshot.current_price, False
    if asset.test_price is not None and asset.test_price != 0:
        return asset.test_price, True
    return None, False


class SignalCalculator:
    """派生信号计算"""

    def __init__(self, config: Optional[TradingConfig] = None):
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    def days_since_band(self, days: Optional[int]) -> SignalBand:
        if days is None:
            return SignalBand.DEFAULT
        if days >= self.config.days_since_alert:
            return SignalBand.RED
        if days >= self.config.days_since_warning:
            return SignalBand.YELLOW
        return SignalBand.DEFAULT

    def pct_to_target_band(self, pct: Optional[Decimal]) -> SignalBand:
        if pct is None:
            return SignalBand.DEFAULT
        if pct >= 0:
            return SignalBand.GREEN
        if pct >= self.config.pct_to_target_near:
            return SignalBand.YELLOW
        return SignalBand.DEFAULT

    def n_day_change(self, current: Decimal, closes: List[Decimal], n: int) -> Optional[Decimal]:
        """当前价相对 N 个交易日前收盘价的百分比变化"""
        if len(closes) < n:
            return None
        return percent_change(current, closes[-n])

    def n_day_dip(self, current: Decimal, closes: List[Decimal], n: int, entry_percent: Decimal) -> Optional[Decimal]:
        """相对最近 N 个收盘价中达到入场阈值的最高收盘价的回撤"""
        threshold = -abs(entry_percent)
        hits = []
        for close in closes[-n:]:
            if close is None or close == 0:
                continue
            change = percent_change(current, close)
            if change <= threshold:
                hits.append(close)
        if not hits:
            return None
        return percent_change(current, max(hits))

    def calculate(
        self,
        asset: Asset,
        transactions: List[Transaction],
        wallets: List[Wallet],
        entry_targets: List[EntryTarget],
        snapshot: Optional[PriceSnapshot] = None,
        today: Optional[date] = None,
    ) -> AssetSignals:
        """计算单个资产的信号"""
        today = today or datetime.now().date()
        current, is_test = effective_price(snapshot, asset)
        primary = primary_entry_target(entry_targets)
        n = self.config.dip_lookback_days

        signals = AssetSignals(
            asset_id=asset.id,
            symbol=asset.symbol,
            current_price=current,
            is_test_price=is_test,
            entry_target_percent=primary.target_percent if primary else None,
        )

        buys = [tx for tx in transactions if tx.transaction_type == TransactionType.BUY]
        last_buy = max(buys, key=lambda tx: tx.sort_key) if buys else None
        if last_buy is not None:
            signals.last_buy_price = last_buy.price
            signals.last_buy_date = last_buy.transaction_date
            signals.days_since_last_buy = days_between(last_buy.transaction_date, today)
            if last_buy.entry_target_price is not None:
                signals.lbd_price = last_buy.entry_target_price
            elif primary is not None:
                signals.lbd_price = calculate_lbd_price(last_buy.price, primary.target_percent)
        signals.days_since_band = self.days_since_band(signals.days_since_last_buy)

        if current is None:
            return signals

        if last_buy is not None:
            pullback = percent_change(current, last_buy.price)
            signals.pullback_percent = to_percent_decimal(pullback)
            if primary is not None:
                signals.pullback_triggered = pullback <= -primary.target_percent

        recent_buy = signals.days_since_last_buy is not None and signals.days_since_last_buy <= n
        if snapshot is not None and not recent_buy:
            closes = snapshot.closes()
            change = self.n_day_change(current, closes, n)
            signals.n_day_change_percent = to_percent_decimal(change) if change is not None else None
            if primary is not None:
                dip = self.n_day_dip(current, closes, n, primary.target_percent)
                signals.n_day_dip_percent = to_percent_decimal(dip) if dip is not None else None

        targets = [w.profit_target_price for w in wallets if w.profit_target_price]
        if targets:
            min_target = min(targets)
            pct = percent_change(current, min_target)
            signals.min_profit_target_price = min_target
            signals.pct_to_profit_target = to_percent_decimal(pct)
            signals.profit_target_hit = current >= min_target
            signals.pct_to_target_band = self.pct_to_target_band(pct)

        return signals
