#!/usr/bin/env python3
"""
存储层配置定义
提供统一的表名、字段名和索引模板管理
"""

from typing import Dict, List


class StorageConfig:
    """存储层配置类 - 统一管理表名、字段名和SQL模板"""

    # ============= 表名定义 =============
    class Tables:
        ASSETS = "assets"
        ENTRY_TARGETS = "entry_targets"
        PROFIT_TARGETS = "profit_targets"
        YEARLY_BUDGETS = "yearly_budgets"
        TRANSACTIONS = "transactions"
        TRANSACTION_ALLOCATIONS = "transaction_allocations"
        WALLETS = "wallets"

        @classmethod
        def get_all_required_tables(cls) -> List[str]:
            """获取所有必需的表名（按建表顺序）"""
            return [
                cls.ASSETS,
                cls.ENTRY_TARGETS,
                cls.PROFIT_TARGETS,
                cls.YEARLY_BUDGETS,
                cls.TRANSACTIONS,
                cls.TRANSACTION_ALLOCATIONS,
                cls.WALLETS,
            ]

    # ============= 字段名定义 =============
    class Fields:
        # 通用字段
        ID = "id"
        ASSET_ID = "asset_id"
        CREATED_AT = "created_at"
        UPDATED_AT = "updated_at"

        class Assets:
            SYMBOL = "symbol"
            NAME = "name"
            COMMISSION = "commission"
            TEST_PRICE = "test_price"
            STATUS = "status"

        class Targets:
            TARGET_PERCENT = "target_percent"
            ALLOCATION_PERCENT = "allocation_percent"
            SORT_ORDER = "sort_order"
            NAME = "name"

        class YearlyBudgets:
            YEAR = "year"
            AMOUNT = "amount"

        class Transactions:
            TRANSACTION_TYPE = "transaction_type"
            TRANSACTION_DATE = "transaction_date"
            SIGNAL = "signal"
            PRICE = "price"
            QUANTITY = "quantity"
            INVESTMENT = "investment"
            AMOUNT = "amount"
            SPLIT_RATIO = "split_ratio"
            ENTRY_TARGET_PRICE = "entry_target_price"
            ENTRY_TARGET_PERCENT = "entry_target_percent"
            COST_BASIS = "cost_basis"
            WALLET_ID = "wallet_id"
            WALLET_PRICE = "wallet_price"
            PROFIT_TARGET_ID = "profit_target_id"
            NOTES = "notes"

        class Allocations:
            TRANSACTION_ID = "transaction_id"
            PROFIT_TARGET_ID = "profit_target_id"
            WALLET_ID = "wallet_id"
            PERCENTAGE = "percentage"
            SHARES = "shares"

        class Wallets:
            PRICE = "price"
            PROFIT_TARGET_ID = "profit_target_id"
            SHARES = "shares"
            INVESTMENT = "investment"
            PROFIT_TARGET_PRICE = "profit_target_price"

    # ============= 索引定义 =============
    @classmethod
    def get_indexes(cls) -> List[str]:
        """获取所有索引的创建语句（幂等）"""
        T = cls.Tables
        F = cls.Fields
        return [
            f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{T.ASSETS}_symbol ON {T.ASSETS} ({F.Assets.SYMBOL})",
            f"CREATE INDEX IF NOT EXISTS idx_{T.ENTRY_TARGETS}_asset ON {T.ENTRY_TARGETS} ({F.ASSET_ID}, {F.Targets.SORT_ORDER})",
            f"CREATE INDEX IF NOT EXISTS idx_{T.PROFIT_TARGETS}_asset ON {T.PROFIT_TARGETS} ({F.ASSET_ID}, {F.Targets.SORT_ORDER})",
            f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{T.YEARLY_BUDGETS}_asset_year ON {T.YEARLY_BUDGETS} ({F.ASSET_ID}, {F.YearlyBudgets.YEAR})",
            f"CREATE INDEX IF NOT EXISTS idx_{T.TRANSACTIONS}_asset_date ON {T.TRANSACTIONS} ({F.ASSET_ID}, {F.Transactions.TRANSACTION_DATE}, {F.ID})",
            f"CREATE INDEX IF NOT EXISTS idx_{T.TRANSACTION_ALLOCATIONS}_transaction ON {T.TRANSACTION_ALLOCATIONS} ({F.Allocations.TRANSACTION_ID})",
            f"CREATE INDEX IF NOT EXISTS idx_{T.TRANSACTION_ALLOCATIONS}_wallet ON {T.TRANSACTION_ALLOCATIONS} ({F.Allocations.WALLET_ID})",
            # 每个 (资产, 键价格, 止盈目标) 只允许一个钱包；无目标的钱包以0参与唯一约束
            f"CREATE UNIQUE INDEX IF NOT EXISTS idx_{T.WALLETS}_key ON {T.WALLETS} "
            f"({F.ASSET_ID}, {F.Wallets.PRICE}, IFNULL({F.Wallets.PROFIT_TARGET_ID}, 0))",
        ]

    @classmethod
    def get_table_summary(cls) -> Dict[str, str]:
        """表名与用途说明，用于CLI展示"""
        T = cls.Tables
        return {
            T.ASSETS: "资产",
            T.ENTRY_TARGETS: "入场目标",
            T.PROFIT_TARGETS: "止盈目标",
            T.YEARLY_BUDGETS: "年度预算",
            T.TRANSACTIONS: "交易记录",
            T.TRANSACTION_ALLOCATIONS: "买入分配",
            T.WALLETS: "钱包",
        }
