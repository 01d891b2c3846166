#!/usr/bin/env python3
"""
钱包重建
钱包是交易日志的物化视图：按时间顺序重放 BUY 分配、SELL 与 SPLIT 即可得到

- replay(asset_id): 在内存中重放，不写入
- rebuild_from_log(asset_id): 用重放结果替换存储的钱包，并重新关联分配与卖出记录的钱包ID
- verify(asset_id): 比较存储的钱包与重放结果，不一致时抛出 ConsistencyViolation
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from ...data.storage import BaseRecordStore, StorageConfig
from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import ConsistencyViolation, ValidationError
from ..models.asset import Asset, ProfitTarget
from ..models.transaction import Transaction, TransactionType
from ..models.transaction_allocation import TransactionAllocation
from ..models.wallet import LotBalance, Wallet, WalletKey
from ..utils.decimal_utils import HUNDRED, to_price_key, to_share_decimal
from .allocation_engine import calculate_profit_target_price
from .wallet_store import WalletStore

T = StorageConfig.Tables


@dataclass
class ReplayWallet(LotBalance):
    """重放过程中的钱包"""
    price: Decimal
    profit_target_id: Optional[int]
    shares: Decimal = Decimal('0')
    investment: Decimal = Decimal('0')
    allocation_ids: List[int] = field(default_factory=list)
    sell_ids: List[int] = field(default_factory=list)
    closed: bool = False


@dataclass
class ReplayResult:
    asset_id: int
    wallets: Dict[WalletKey, ReplayWallet] = field(default_factory=dict)
    closed: List[ReplayWallet] = field(default_factory=list)
    transactions: List[Transaction] = field(default_factory=list)


class WalletRebuilder:
    """基于交易日志的钱包重放与校验"""

    def __init__(
        self,
        storage: BaseRecordStore,
        wallet_store: WalletStore,
        config: Optional[TradingConfig] = None,
    ):
        self.storage = storage
        self.wallet_store = wallet_store
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    def load_transactions(self, asset_id: int) -> List[Transaction]:
        """按 (日期, ID) 升序加载资产的全部交易"""
        rows = self.storage.list(T.TRANSACTIONS, asset_id=asset_id)
        return sorted((Transaction.from_dict(r) for r in rows), key=lambda tx: tx.sort_key)

    def _allocations(self, transaction_id: int) -> List[TransactionAllocation]:
        rows = self.storage.list(T.TRANSACTION_ALLOCATIONS, transaction_id=transaction_id)
        return [TransactionAllocation.from_dict(r) for r in rows]

    def replay(self, asset_id: int) -> ReplayResult:
        """
        重放交易日志

        Raises:
            ValidationError: 某笔卖出在重放时找不到足够的股数
        """
        result = ReplayResult(asset_id=asset_id, transactions=self.load_transactions(asset_id))
        open_wallets = result.wallets
        eps = self.config.share_epsilon

        for tx in result.transactions:
            if tx.transaction_type == TransactionType.BUY:
                key_price = to_price_key(tx.price)
                for allocation in self._allocations(tx.id):
                    key = WalletKey(asset_id, key_price, allocation.profit_target_id)
                    wallet = open_wallets.get(key)
                    if wallet is None:
                        wallet = ReplayWallet(price=key_price, profit_target_id=allocation.profit_target_id)
                        open_wallets[key] = wallet
                    wallet.add_investment(tx.investment * allocation.percentage / HUNDRED)
                    wallet.allocation_ids.append(allocation.id)

            elif tx.transaction_type == TransactionType.SELL:
                key = WalletKey.of(asset_id, tx.wallet_price, tx.profit_target_id)
                wallet = open_wallets.get(key)
                quantity = to_share_decimal(tx.quantity)
                if wallet is None or quantity > wallet.shares + eps:
                    available = wallet.shares if wallet else Decimal('0')
                    raise ValidationError(
                        f"SELL {tx.id} on {tx.transaction_date} needs {quantity} shares at "
                        f"{key.price}/{key.profit_target_id} but only {available} are held at that point",
                        'quantity', quantity,
                    )
                wallet.sell_ids.append(tx.id)
                remaining = wallet.shares - quantity
                if remaining <= eps:
                    wallet.closed = True
                    result.closed.append(wallet)
                    del open_wallets[key]
                else:
                    wallet.remove_quantity(quantity)

            elif tx.transaction_type == TransactionType.SPLIT:
                self._apply_split(result, tx.split_ratio)

        return result

    def _apply_split(self, result: ReplayResult, ratio: Decimal) -> None:
        """拆股：shares × r，price ÷ r，investment 不变"""
        rekeyed: Dict[WalletKey, ReplayWallet] = {}
        for wallet in result.wallets.values():
            wallet.apply_split(ratio)
            key = WalletKey(result.asset_id, wallet.price, wallet.profit_target_id)
            merged = rekeyed.get(key)
            if merged is None:
                rekeyed[key] = wallet
                continue
            merged.shares += wallet.shares
            merged.investment += wallet.investment
            merged.allocation_ids.extend(wallet.allocation_ids)
            merged.sell_ids.extend(wallet.sell_ids)
        result.wallets.clear()
        result.wallets.update(rekeyed)

    def _target_percents(self, asset_id: int) -> Tuple[Dict[Optional[int], Decimal], Decimal]:
        """各止盈目标的百分比与资产佣金"""
        asset = Asset.from_dict(self.storage.get(T.ASSETS, asset_id))
        targets = [ProfitTarget.from_dict(r) for r in self.storage.list(T.PROFIT_TARGETS, asset_id=asset_id)]
        percents: Dict[Optional[int], Decimal] = {t.id: t.target_percent for t in targets}
        return percents, asset.commission_percent

    def rebuild_from_log(self, asset_id: int) -> List[Wallet]:
        """用重放结果替换存储的钱包（同键钱包保留原ID）"""
        with self.storage.transaction():
            result = self.replay(asset_id)
            percents, commission = self._target_percents(asset_id)
            stored = self.wallet_store.by_key(asset_id)

            rebuilt: List[Wallet] = []
            wallet_ids: Dict[int, Optional[int]] = {}
            for key, replayed in result.wallets.items():
                wallet = stored.pop(key, None) or Wallet(
                    asset_id=asset_id,
                    price=replayed.price,
                    profit_target_id=replayed.profit_target_id,
                    shares=replayed.shares,
                    investment=replayed.investment,
                )
                wallet.shares = replayed.shares
                wallet.investment = replayed.investment
                wallet.profit_target_price = calculate_profit_target_price(
                    replayed.price, percents.get(replayed.profit_target_id, Decimal('0')), commission
                )
                self.wallet_store.save(wallet)
                rebuilt.append(wallet)
                wallet_ids[id(replayed)] = wallet.id

            for leftover in stored.values():
                self.wallet_store.delete(leftover)

            self._relink(result, wallet_ids)

        self.logger.info(f"🔁 资产 {asset_id} 钱包已按交易日志重建: {len(rebuilt)} 个钱包")
        return rebuilt

    def _relink(self, result: ReplayResult, wallet_ids: Dict[int, Optional[int]]) -> None:
        """关闭的钱包不再存在，其分配与卖出记录的钱包ID置空"""
        replayed = list(result.wallets.values()) + result.closed
        for wallet in replayed:
            wallet_id = wallet_ids.get(id(wallet))
            for allocation_id in wallet.allocation_ids:
                self.storage.update(T.TRANSACTION_ALLOCATIONS, allocation_id, {'wallet_id': wallet_id})
            for sell_id in wallet.sell_ids:
                self.storage.update(T.TRANSACTIONS, sell_id, {'wallet_id': wallet_id})

    def verify(self, asset_id: int) -> bool:
        """
        校验存储的钱包与重放结果一致

        Raises:
            ConsistencyViolation: 键集合或股数/投资额不一致
        """
        result = self.replay(asset_id)
        stored = self.wallet_store.by_key(asset_id)
        eps = self.config.consistency_epsilon

        missing = [str(k) for k in result.wallets if k not in stored]
        extra = [str(k) for k in stored if k not in result.wallets]
        if missing or extra:
            raise ConsistencyViolation(
                "Stored wallets do not match the transaction log",
                asset_id=asset_id,
                details={'missing': missing, 'unexpected': extra},
            )

        for key, replayed in result.wallets.items():
            wallet = stored[key]
            tolerance = eps * max(Decimal('1'), wallet.price)
            if abs(wallet.shares - replayed.shares) > eps or abs(wallet.investment - replayed.investment) > tolerance:
                raise ConsistencyViolation(
                    f"Wallet {wallet.id} diverges from the transaction log",
                    asset_id=asset_id,
                    details={
                        'wallet_id': wallet.id,
                        'stored_shares': str(wallet.shares),
                        'replayed_shares': str(replayed.shares),
                        'stored_investment': str(wallet.investment),
                        'replayed_investment': str(replayed.investment),
                    },
                )
            if not wallet.is_consistent(eps):
                raise ConsistencyViolation(
                    f"Wallet {wallet.id} shares do not match investment / price",
                    asset_id=asset_id,
                    details={'wallet_id': wallet.id},
                )
        return True
