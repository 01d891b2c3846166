#!/usr/bin/env python3
"""
SQLite 表结构管理
负责数据库表的创建与验证

金额、价格、股数、百分比一律以 TEXT 存储精确的十进制字符串，
读取后由模型转换回 Decimal。
"""

import logging
import sqlite3
from typing import Dict, List

from .config import StorageConfig


class SQLiteSchemaManager:
    """SQLite 表结构管理器"""

    def __init__(self, connection: sqlite3.Connection, cursor: sqlite3.Cursor):
        self.connection = connection
        self.cursor = cursor
        self.config = StorageConfig()
        self.logger = logging.getLogger(__name__)

    def create_tables(self) -> None:
        """创建数据库表结构与索引（幂等）"""
        self.logger.info("📊 创建/修复数据库表结构...")

        for table_sql in self._get_table_definitions():
            self.cursor.execute(table_sql)

        for index_sql in self.config.get_indexes():
            self.cursor.execute(index_sql)

        self.logger.info("✅ 数据库表结构就绪")

    def get_table_columns(self) -> Dict[str, List[str]]:
        """读取各表的列名，用于校验通用CRUD的字段"""
        columns: Dict[str, List[str]] = {}
        for table in self.config.Tables.get_all_required_tables():
            rows = self.cursor.execute(f"PRAGMA table_info({table})").fetchall()
            columns[table] = [row[1] for row in rows]
        return columns

    def _get_table_definitions(self) -> List[str]:
        """获取表定义SQL"""
        T = self.config.Tables
        F = self.config.Fields
        timestamps = (
            f"{F.CREATED_AT} TIMESTAMP DEFAULT CURRENT_TIMESTAMP,\n"
            f"                {F.UPDATED_AT} TIMESTAMP DEFAULT CURRENT_TIMESTAMP"
        )

        return [
            f"""
            CREATE TABLE IF NOT EXISTS {T.ASSETS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.Assets.SYMBOL} TEXT NOT NULL,
                {F.Assets.NAME} TEXT,
                {F.Assets.COMMISSION} TEXT,
                {F.Assets.TEST_PRICE} TEXT,
                {F.Assets.STATUS} TEXT NOT NULL DEFAULT 'ACTIVE'
                    CHECK ({F.Assets.STATUS} IN ('ACTIVE','HIDDEN','ARCHIVED')),
                {timestamps}
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {T.ENTRY_TARGETS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.ASSET_ID} INTEGER NOT NULL,
                {F.Targets.TARGET_PERCENT} TEXT NOT NULL,
                {F.Targets.SORT_ORDER} INTEGER NOT NULL DEFAULT 0,
                {F.Targets.NAME} TEXT,
                {timestamps},
                FOREIGN KEY ({F.ASSET_ID}) REFERENCES {T.ASSETS}({F.ID}) ON DELETE CASCADE
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {T.PROFIT_TARGETS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.ASSET_ID} INTEGER NOT NULL,
                {F.Targets.TARGET_PERCENT} TEXT NOT NULL,
                {F.Targets.ALLOCATION_PERCENT} TEXT,
                {F.Targets.SORT_ORDER} INTEGER NOT NULL DEFAULT 0,
                {F.Targets.NAME} TEXT,
                {timestamps},
                FOREIGN KEY ({F.ASSET_ID}) REFERENCES {T.ASSETS}({F.ID}) ON DELETE CASCADE
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {T.YEARLY_BUDGETS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.ASSET_ID} INTEGER NOT NULL,
                {F.YearlyBudgets.YEAR} INTEGER NOT NULL,
                {F.YearlyBudgets.AMOUNT} TEXT NOT NULL,
                {timestamps},
                FOREIGN KEY ({F.ASSET_ID}) REFERENCES {T.ASSETS}({F.ID}) ON DELETE CASCADE
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {T.TRANSACTIONS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.ASSET_ID} INTEGER NOT NULL,
                {F.Transactions.TRANSACTION_TYPE} TEXT NOT NULL
                    CHECK ({F.Transactions.TRANSACTION_TYPE} IN ('BUY','SELL','DIVIDEND','SPLIT','SLP')),
                {F.Transactions.TRANSACTION_DATE} TEXT NOT NULL,
                {F.Transactions.SIGNAL} TEXT,
                {F.Transactions.PRICE} TEXT,
                {F.Transactions.QUANTITY} TEXT,
                {F.Transactions.INVESTMENT} TEXT,
                {F.Transactions.AMOUNT} TEXT,
                {F.Transactions.SPLIT_RATIO} TEXT,
                {F.Transactions.ENTRY_TARGET_PRICE} TEXT,
                {F.Transactions.ENTRY_TARGET_PERCENT} TEXT,
                {F.Transactions.COST_BASIS} TEXT,
                {F.Transactions.WALLET_ID} INTEGER,
                {F.Transactions.WALLET_PRICE} TEXT,
                {F.Transactions.PROFIT_TARGET_ID} INTEGER,
                {F.Transactions.NOTES} TEXT,
                {timestamps},
                FOREIGN KEY ({F.ASSET_ID}) REFERENCES {T.ASSETS}({F.ID}) ON DELETE RESTRICT
            )
            """,
            # wallet_id / profit_target_id 允许悬空：钱包关闭后被删除，分配记录仍保留
            f"""
            CREATE TABLE IF NOT EXISTS {T.TRANSACTION_ALLOCATIONS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.Allocations.TRANSACTION_ID} INTEGER NOT NULL,
                {F.Allocations.PROFIT_TARGET_ID} INTEGER,
                {F.Allocations.WALLET_ID} INTEGER,
                {F.Allocations.PERCENTAGE} TEXT NOT NULL,
                {F.Allocations.SHARES} TEXT NOT NULL,
                {timestamps},
                FOREIGN KEY ({F.Allocations.TRANSACTION_ID}) REFERENCES {T.TRANSACTIONS}({F.ID}) ON DELETE CASCADE
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS {T.WALLETS} (
                {F.ID} INTEGER PRIMARY KEY AUTOINCREMENT,
                {F.ASSET_ID} INTEGER NOT NULL,
                {F.Wallets.PRICE} TEXT NOT NULL,
                {F.Wallets.PROFIT_TARGET_ID} INTEGER,
                {F.Wallets.SHARES} TEXT NOT NULL,
                {F.Wallets.INVESTMENT} TEXT NOT NULL,
                {F.Wallets.PROFIT_TARGET_PRICE} TEXT,
                {timestamps},
                FOREIGN KEY ({F.ASSET_ID}) REFERENCES {T.ASSETS}({F.ID}) ON DELETE RESTRICT
            )
            """,
        ]
