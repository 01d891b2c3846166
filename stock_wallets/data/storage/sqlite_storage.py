#!/usr/bin/env python3
"""
SQLite 存储实现
按表名与ID提供通用的增删改查，表结构由 SQLiteSchemaManager 管理
"""

import logging
import sqlite3
from contextlib import contextmanager
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..exceptions import DatabaseConnectionError, IntegrityViolation, StorageError
from .base import BaseRecordStore, Record
from .config import StorageConfig
from .sqlite_schema import SQLiteSchemaManager


class SQLiteStorage(BaseRecordStore):
    """SQLite 存储实现"""

    def __init__(self, db_path: str = "database/wallets.db", timeout: int = 30):
        """
        初始化 SQLite 存储

        Args:
            db_path: 数据库文件路径，":memory:" 表示内存数据库
            timeout: 连接等待锁的超时（秒）
        """
        self.db_path = db_path
        self.timeout = timeout
        self.connection: Optional[sqlite3.Connection] = None
        self.cursor: Optional[sqlite3.Cursor] = None
        self.logger = logging.getLogger(__name__)
        self.config = StorageConfig()

        self.schema_manager: Optional[SQLiteSchemaManager] = None
        self._columns: Dict[str, List[str]] = {}
        # 事务深度：用于区分用户级事务与单条写入
        self._txn_depth: int = 0

        self.connect()

    def connect(self) -> None:
        """建立数据库连接"""
        try:
            if self.db_path != ":memory:":
                dbp = Path(self.db_path)
                if dbp.parent:
                    dbp.parent.mkdir(parents=True, exist_ok=True)

            # isolation_level=None：事务边界完全由 transaction() 显式控制
            self.connection = sqlite3.connect(
                self.db_path, timeout=self.timeout, check_same_thread=False, isolation_level=None
            )
            self.connection.execute("PRAGMA foreign_keys = ON")
            self.cursor = self.connection.cursor()

            self.schema_manager = SQLiteSchemaManager(self.connection, self.cursor)
            self.schema_manager.create_tables()
            self._columns = self.schema_manager.get_table_columns()

            self.logger.info(f"📁 SQLite 数据库连接成功: {self.db_path}")

        except (sqlite3.Error, OSError) as e:
            self.logger.error(f"❌ SQLite 数据库连接失败: {e}")
            raise DatabaseConnectionError(f"Failed to connect to SQLite database: {e}", self.db_path) from e

    def disconnect(self) -> None:
        """关闭数据库连接"""
        if self.connection:
            self.connection.close()
            self.connection = None
            self.cursor = None
            self.logger.info("📴 SQLite 数据库连接已关闭")

    def close(self) -> None:
        """关闭存储连接"""
        self.disconnect()

    def _check_connection(self, operation_name: str = "operation") -> None:
        """检查数据库连接是否可用"""
        if self.cursor is None or self.connection is None:
            raise StorageError(
                f"Database connection not available for {operation_name}", operation_name
            )

    def _check_table(self, table: str, fields) -> None:
        """校验表名与字段名，防止拼接未知标识符"""
        columns = self._columns.get(table)
        if columns is None:
            raise StorageError(f"Unknown table: {table}", "validate", table)
        unknown = [f for f in fields if f not in columns]
        if unknown:
            raise StorageError(f"Unknown columns for {table}: {unknown}", "validate", table)

    @staticmethod
    def _to_db_value(value: Any) -> Any:
        """Decimal 保存为定点字符串，枚举保存为其值"""
        if isinstance(value, Decimal):
            return format(value, 'f')
        if isinstance(value, Enum):
            return value.value
        if isinstance(value, bool):
            return int(value)
        return value

    def _rows_to_dicts(self) -> List[Record]:
        columns = [description[0] for description in self.cursor.description]
        return [dict(zip(columns, row)) for row in self.cursor.fetchall()]

    def _where(self, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        conditions = []
        params: List[Any] = []
        for name, value in filters.items():
            if value is None:
                conditions.append(f"{name} IS NULL")
            else:
                conditions.append(f"{name} = ?")
                params.append(self._to_db_value(value))
        where_clause = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        return where_clause, params

    def _execute(self, operation: str, table: str, sql: str, params=()) -> sqlite3.Cursor:
        try:
            return self.cursor.execute(sql, params)
        except sqlite3.IntegrityError as e:
            self.logger.error(f"❌ 约束冲突 {operation} {table}: {e}")
            raise IntegrityViolation(f"Integrity violation during {operation} on {table}: {e}", table) from e
        except sqlite3.Error as e:
            self.logger.error(f"❌ 数据库操作失败 {operation} {table}: {e}")
            raise StorageError(f"Storage error during {operation} on {table}: {e}", operation, table) from e

    # =================== 通用记录操作 ===================

    def get(self, table: str, record_id: int) -> Optional[Record]:
        """按ID获取单条记录"""
        self._check_connection("get")
        self._check_table(table, [])
        self._execute("get", table, f"SELECT * FROM {table} WHERE id = ?", (record_id,))
        rows = self._rows_to_dicts()
        return rows[0] if rows else None

    def list(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[Record]:
        """按等值条件列出记录"""
        self._check_connection("list")
        order_fields = [f.strip().split()[0] for f in order_by.split(",")] if order_by else []
        self._check_table(table, list(filters.keys()) + order_fields)

        where_clause, params = self._where(filters)
        sql = f"SELECT * FROM {table}{where_clause} ORDER BY {order_by or 'id'}"
        self._execute("list", table, sql, params)
        return self._rows_to_dicts()

    def create(self, table: str, data: Record) -> int:
        """插入记录并返回新ID"""
        self._check_connection("create")
        values = {k: v for k, v in data.items() if not (k == 'id' and v is None)}
        self._check_table(table, values.keys())

        fields = ", ".join(values.keys())
        placeholders = ", ".join(["?"] * len(values))
        sql = f"INSERT INTO {table} ({fields}) VALUES ({placeholders})"
        self._execute("create", table, sql, [self._to_db_value(v) for v in values.values()])
        self._maybe_commit()
        return self.cursor.lastrowid

    def update(self, table: str, record_id: int, data: Record) -> bool:
        """更新记录（忽略 id 与时间戳字段）"""
        self._check_connection("update")
        values = {k: v for k, v in data.items() if k not in ('id', 'created_at', 'updated_at')}
        if not values:
            return self.get(table, record_id) is not None
        self._check_table(table, values.keys())

        assignments = ", ".join(f"{name} = ?" for name in values)
        sql = f"UPDATE {table} SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE id = ?"
        params = [self._to_db_value(v) for v in values.values()] + [record_id]
        self._execute("update", table, sql, params)
        self._maybe_commit()
        return self.cursor.rowcount > 0

    def delete(self, table: str, record_id: int) -> bool:
        """删除记录"""
        self._check_connection("delete")
        self._check_table(table, [])
        self._execute("delete", table, f"DELETE FROM {table} WHERE id = ?", (record_id,))
        self._maybe_commit()
        return self.cursor.rowcount > 0

    def delete_where(self, table: str, **filters: Any) -> int:
        """按等值条件删除"""
        self._check_connection("delete_where")
        if not filters:
            raise StorageError("delete_where requires at least one filter", "delete_where", table)
        self._check_table(table, filters.keys())

        where_clause, params = self._where(filters)
        self._execute("delete_where", table, f"DELETE FROM {table}{where_clause}", params)
        self._maybe_commit()
        return self.cursor.rowcount

    def count(self, table: str, **filters: Any) -> int:
        """按等值条件计数"""
        self._check_connection("count")
        self._check_table(table, filters.keys())
        where_clause, params = self._where(filters)
        self._execute("count", table, f"SELECT COUNT(*) FROM {table}{where_clause}", params)
        return self.cursor.fetchone()[0]

    def _maybe_commit(self) -> None:
        """
        智能提交：仅在不处于事务中时才提交
        防止在 with transaction() 上下文中提前提交破坏原子性
        """
        if self.connection and self._txn_depth == 0 and self.connection.in_transaction:
            self.connection.commit()

    @contextmanager
    def transaction(self):
        """事务上下文管理器，支持嵌套（基于 SAVEPOINT）"""
        self._check_connection("transaction")
        nested = self._txn_depth > 0
        sp_name = f"sp_txn_{self._txn_depth + 1}"
        if nested:
            # 嵌套事务使用保存点
            self.connection.execute(f"SAVEPOINT {sp_name}")
        else:
            self.connection.execute("BEGIN")
        self._txn_depth += 1
        try:
            yield self
            if nested:
                self.connection.execute(f"RELEASE SAVEPOINT {sp_name}")
            else:
                self.connection.commit()
        except Exception as e:
            if nested:
                self.connection.execute(f"ROLLBACK TO SAVEPOINT {sp_name}")
                self.connection.execute(f"RELEASE SAVEPOINT {sp_name}")
            else:
                self.connection.rollback()
            self.logger.error(f"事务回滚: {e}")
            raise
        finally:
            if self._txn_depth > 0:
                self._txn_depth -= 1

    @property
    def in_transaction(self) -> bool:
        return self._txn_depth > 0

    def get_table_counts(self) -> Dict[str, int]:
        """各表记录数，用于CLI展示"""
        return {table: self.count(table) for table in self.config.Tables.get_all_required_tables()}
