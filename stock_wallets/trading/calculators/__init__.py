"""
计算器模块：现金流、盈亏与信号
"""

from .cash_calculator import CashCalculator
from .pnl_calculator import PnLCalculator
from .signal_calculator import SignalCalculator

__all__ = ['CashCalculator', 'PnLCalculator', 'SignalCalculator']
