#!/usr/bin/env python3
"""
股票钱包记账模块
提供交易记录、钱包维护、盈亏与现金流计算以及信号计算功能

核心功能：
- 买入分配：一笔买入按百分比分配到多个止盈目标，同价同目标的买入合并为一个钱包
- 指定钱包卖出：成本按钱包买入价计算，净收入扣除佣金
- 撤销与重放：编辑/删除交易前先撤销其影响；钱包始终可由交易日志重放得到
- 现金流：自付资金（OOP）与现金余额，支持两种收入策略
- 信号：回撤、N日回撤、距上次买入天数、距止盈百分比、下一个买入价（LBD）
"""

from .services.transaction_service import TransactionService
from .services.asset_service import AssetService
from .services.portfolio_service import PortfolioService
from .services.wallet_rebuilder import WalletRebuilder
from .calculators.cash_calculator import CashCalculator
from .calculators.pnl_calculator import PnLCalculator
from .calculators.signal_calculator import SignalCalculator

# 配置和枚举
from .config import (
    TradingConfig,
    IncomePolicy,
    TargetDeletionPolicy,
    DEFAULT_TRADING_CONFIG
)

__all__ = [
    'TransactionService',
    'AssetService',
    'PortfolioService',
    'WalletRebuilder',
    'CashCalculator',
    'PnLCalculator',
    'SignalCalculator',

    # 配置
    'TradingConfig',
    'IncomePolicy',
    'TargetDeletionPolicy',
    'DEFAULT_TRADING_CONFIG',
]
