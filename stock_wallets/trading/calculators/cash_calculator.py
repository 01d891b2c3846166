#!/usr/bin/env python3
"""
现金流计算器
按时间顺序遍历资产的交易，计算自付资金（OOP）与现金余额

- BUY: 现金足够则扣现金；否则不足部分计入 OOP，现金清零
- SELL / DIVIDEND / SLP: 现金增加 amount
- SPLIT: 无现金影响

ROIC = (现金余额 + 持仓市值 − OOP) / OOP × 100

每次查询时重新计算，不做缓存。
"""

import logging
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from ..config import DEFAULT_TRADING_CONFIG, IncomePolicy, TradingConfig
from ..models.position_summary import CashFlowSummary
from ..models.transaction import INCOME_TYPES, Transaction, TransactionType
from ..utils.decimal_utils import HUNDRED, to_percent_decimal

ZERO = Decimal('0')


class CashCalculator:
    """自付资金 / 现金余额计算器"""

    def __init__(self, config: Optional[TradingConfig] = None):
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    def compute(self, transactions: Iterable[Transaction]) -> Tuple[Decimal, Decimal]:
        """
        Returns:
            (out_of_pocket, cash_balance)
        """
        oop = ZERO
        cash = ZERO
        reduce_oop = self.config.income_policy == IncomePolicy.REDUCE_OOP

        for tx in sorted(transactions, key=lambda t: t.sort_key):
            if tx.transaction_type == TransactionType.BUY:
                if cash >= tx.investment:
                    cash -= tx.investment
                else:
                    oop += tx.investment - cash
                    cash = ZERO
            elif tx.transaction_type == TransactionType.SELL:
                cash += tx.amount or ZERO
            elif tx.transaction_type in INCOME_TYPES:
                amount = tx.amount or ZERO
                if reduce_oop:
                    repaid = min(oop, amount)
                    oop -= repaid
                    amount -= repaid
                cash += amount

        return oop, cash

    def summarize(
        self,
        transactions: Iterable[Transaction],
        max_oop: Optional[Decimal] = None,
        year: Optional[int] = None,
    ) -> CashFlowSummary:
        """
        现金流汇总

        Args:
            transactions: 资产的全部交易
            max_oop: 当年的最大自付资金预算，None 表示未设置
            year: 预算年份
        """
        oop, cash = self.compute(transactions)
        available = None
        if max_oop is not None:
            available = max(ZERO, max_oop - oop) + cash
        return CashFlowSummary(
            out_of_pocket=oop,
            cash_balance=cash,
            max_oop=max_oop,
            available=available,
            year=year,
        )

    @staticmethod
    def roic(summary: CashFlowSummary, market_value: Optional[Decimal]) -> Optional[Decimal]:
        """投入资本回报率（百分比）；没有行情或没有自付资金时返回 None"""
        if market_value is None or summary.out_of_pocket <= 0:
            return None
        gain = summary.cash_balance + market_value - summary.out_of_pocket
        return to_percent_decimal(gain / summary.out_of_pocket * HUNDRED)
