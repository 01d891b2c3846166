#!/usr/bin/env python3
"""
交易相关数据模型
"""

from .asset import Asset, AssetStatus, EntryTarget, ProfitTarget, YearlyBudget
from .transaction import Transaction, TransactionType, TransactionSignal
from .transaction_allocation import TransactionAllocation
from .wallet import Wallet, WalletKey
from .signals import AssetSignals, SignalBand
from .position_summary import AssetOverview, CashFlowSummary, PnLSummary, WalletPnL

__all__ = [
    'Asset',
    'AssetStatus',
    'EntryTarget',
    'ProfitTarget',
    'YearlyBudget',
    'Transaction',
    'TransactionType',
    'TransactionSignal',
    'TransactionAllocation',
    'Wallet',
    'WalletKey',
    'AssetSignals',
    'SignalBand',
    'AssetOverview',
    'CashFlowSummary',
    'PnLSummary',
    'WalletPnL',
]
