"""
数据服务模块包
包含价格获取、价格缓存和记录存储功能
"""

from .config import DatabaseConfig, PriceFeedConfig, ServiceConfig
from .exceptions import DataServiceError, ExternalFetchError, StorageError
from .models import BatchFetchResult, HistoricalClose, PriceSnapshot
from .price_cache import PriceCache
from .price_service import PriceService
from .storage import BaseRecordStore, SQLiteStorage, create_storage

__all__ = [
    'DatabaseConfig',
    'PriceFeedConfig',
    'ServiceConfig',
    'DataServiceError',
    'ExternalFetchError',
    'StorageError',
    'BatchFetchResult',
    'HistoricalClose',
    'PriceSnapshot',
    'PriceCache',
    'PriceService',
    'BaseRecordStore',
    'SQLiteStorage',
    'create_storage',
]
