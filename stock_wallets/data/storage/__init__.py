#!/usr/bin/env python3
"""
存储层模块
提供统一的记录存储接口和 SQLite 实现
"""

from .base import BaseRecordStore, Record, StorageError
from .config import StorageConfig
from .sqlite_storage import SQLiteStorage


def create_storage(storage_type: str = "sqlite", **kwargs) -> BaseRecordStore:
    """
    创建存储实例的工厂函数

    Args:
        storage_type: 存储类型（目前仅 'sqlite'）
        **kwargs: 存储特定的配置参数，如 db_path

    Raises:
        StorageError: 不支持的存储类型
    """
    storage_map = {
        'sqlite': SQLiteStorage,
    }

    if storage_type not in storage_map:
        raise StorageError(f"不支持的存储类型: {storage_type}", "create_storage")

    storage_class = storage_map[storage_type]
    return storage_class(**kwargs)


__all__ = [
    'BaseRecordStore',
    'Record',
    'StorageError',
    'StorageConfig',
    'SQLiteStorage',
    'create_storage',
]
