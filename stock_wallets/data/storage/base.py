#!/usr/bin/env python3
"""
存储层基础抽象类
定义按表名与ID访问记录的通用接口
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Dict, List, Optional

from ..exceptions import StorageError

Record = Dict[str, Any]


class BaseRecordStore(ABC):
    """
    记录存储抽象类

    - 记录以字典表示；Decimal 写入时保存为精确的十进制字符串
    - list() 的过滤条件为字段等值匹配，None 匹配 NULL
    - transaction() 内的所有写入要么全部提交，要么全部回滚
    """

    @abstractmethod
    def connect(self) -> None:
        """建立存储连接"""

    @abstractmethod
    def close(self) -> None:
        """关闭存储连接"""

    @abstractmethod
    def get(self, table: str, record_id: int) -> Optional[Record]:
        """按ID获取单条记录"""

    @abstractmethod
    def list(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Record]:
        """按等值条件列出记录，默认按ID升序"""

    @abstractmethod
    def create(self, table: str, data: Record) -> int:
        """插入记录并返回新ID"""

    @abstractmethod
    def update(self, table: str, record_id: int, data: Record) -> bool:
        """更新记录，记录不存在时返回 False"""

    @abstractmethod
    def delete(self, table: str, record_id: int) -> bool:
        """删除记录，记录不存在时返回 False"""

    @abstractmethod
    def delete_where(self, table: str, **filters: Any) -> int:
        """按等值条件删除，返回删除条数"""

    @abstractmethod
    def transaction(self) -> AbstractContextManager:
        """事务上下文管理器，支持嵌套"""

    def __enter__(self) -> 'BaseRecordStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ['BaseRecordStore', 'Record', 'StorageError']
