"""
Stock Wallets - 股票钱包记账系统

按买入批次（钱包）追踪持仓，每个钱包对应一个止盈目标；
交易的新增、编辑与删除都会确定性地重建钱包、成本与派生信号。

主要模块:
- data: 价格获取、价格缓存和记录存储
- trading: 钱包记账、盈亏、现金流与信号计算
- cli: 命令行工具
- utils: 工具函数
"""

__version__ = "1.0.0"
__author__ = "Jiulong Shan"

from .trading import AssetService, PortfolioService, TransactionService

__all__ = ["AssetService", "PortfolioService", "TransactionService"]
