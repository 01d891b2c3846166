"""
价格下载器模块
"""

from .base import BaseDownloader
from .yfinance import YFinancePriceDownloader

__all__ = ['BaseDownloader', 'YFinancePriceDownloader']
