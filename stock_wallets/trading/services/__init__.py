#!/usr/bin/env python3
"""
交易服务模块
"""

from .transaction_service import TransactionService
from .asset_service import AssetService
from .portfolio_service import PortfolioService

__all__ = ['TransactionService', 'AssetService', 'PortfolioService']
