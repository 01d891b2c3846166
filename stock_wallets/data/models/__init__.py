#!/usr/bin/env python3
"""
数据模型模块
"""

from .price_models import BatchFetchResult, HistoricalClose, PriceSnapshot

__all__ = [
    'BatchFetchResult',
    'HistoricalClose',
    'PriceSnapshot',
]
