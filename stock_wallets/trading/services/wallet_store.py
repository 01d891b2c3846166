#!/usr/bin/env python3
"""
钱包存储
按复合键 (asset_id, price, profit_target_id) 维护钱包记录

所有写操作都假定调用方已处于 storage.transaction() 中。
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional

from ...data.storage import BaseRecordStore, StorageConfig
from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import InsufficientSharesError, NotFoundError, ValidationError
from ..models.wallet import Wallet, WalletKey, cost_of_shares, shares_for_investment
from ..utils.decimal_utils import Number, to_amount_decimal, to_price_key, to_share_decimal

T = StorageConfig.Tables


class WalletStore:
    """钱包记录的读写"""

    def __init__(self, storage: BaseRecordStore, config: Optional[TradingConfig] = None):
        self.storage = storage
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    # =================== 查询 ===================

    def get(self, wallet_id: Optional[int]) -> Optional[Wallet]:
        if wallet_id is None:
            return None
        row = self.storage.get(T.WALLETS, wallet_id)
        return Wallet.from_dict(row) if row else None

    def require(self, wallet_id: int) -> Wallet:
        wallet = self.get(wallet_id)
        if wallet is None:
            raise NotFoundError("Wallet", wallet_id)
        return wallet

    def find_by_key(self, asset_id: int, price: Number, profit_target_id: Optional[int]) -> Optional[Wallet]:
        """按复合键查找；价格先量化为6位小数再比较"""
        rows = self.storage.list(
            T.WALLETS,
            asset_id=asset_id,
            price=to_price_key(price),
            profit_target_id=profit_target_id,
        )
        return Wallet.from_dict(rows[0]) if rows else None

    def list_for_asset(self, asset_id: int) -> List[Wallet]:
        rows = self.storage.list(T.WALLETS, asset_id=asset_id)
        wallets = [Wallet.from_dict(r) for r in rows]
        wallets.sort(key=lambda w: (w.price, w.profit_target_id or 0))
        return wallets

    def list_for_target(self, asset_id: int, profit_target_id: Optional[int]) -> List[Wallet]:
        rows = self.storage.list(T.WALLETS, asset_id=asset_id, profit_target_id=profit_target_id)
        return [Wallet.from_dict(r) for r in rows]

    def by_key(self, asset_id: int) -> Dict[WalletKey, Wallet]:
        return {w.key: w for w in self.list_for_asset(asset_id)}

    # =================== 写入 ===================

    def upsert(
        self,
        asset_id: int,
        price: Number,
        profit_target_id: Optional[int],
        investment_delta: Decimal,
        profit_target_price: Optional[Decimal] = None,
    ) -> Optional[Wallet]:
        """
        按键合并投资额

        - 同键已存在：investment 累加 delta，shares 累加 round(delta / price, 5)
        - 不存在：创建新钱包（delta 必须为正）
        - 结果 <= 0：删除钱包并返回 None；明显为负时拒绝

        Returns:
            更新后的钱包，钱包被关闭时返回 None
        """
        key_price = to_price_key(price)
        if key_price <= 0:
            raise ValidationError("Wallet price must be positive", 'price', key_price)

        eps = self.config.currency_epsilon
        existing = self.find_by_key(asset_id, key_price, profit_target_id)

        if existing is None:
            if investment_delta <= eps:
                if investment_delta < -eps:
                    raise ValidationError(
                        f"Cannot remove {-investment_delta} from a wallet that does not exist",
                        'investment', investment_delta,
                    )
                return None
            wallet = Wallet(
                asset_id=asset_id,
                price=key_price,
                profit_target_id=profit_target_id,
                investment=investment_delta,
                shares=shares_for_investment(to_amount_decimal(investment_delta), key_price),
                profit_target_price=profit_target_price,
            )
            wallet.id = self.storage.create(T.WALLETS, wallet.to_dict())
            self.logger.debug(f"新建钱包: {wallet}")
            return wallet

        before = existing.investment
        existing.add_investment(investment_delta)
        if existing.investment < -eps or existing.shares < -self.config.share_epsilon:
            raise ValidationError(
                f"Wallet {existing.id} would become negative "
                f"({before} + {investment_delta}); its shares were already sold",
                'investment', existing.investment,
            )
        if existing.investment <= eps or existing.shares <= self.config.share_epsilon:
            self.delete(existing)
            return None

        if profit_target_price is not None:
            existing.profit_target_price = profit_target_price
        self._save(existing)
        self.logger.debug(f"合并钱包: {existing}")
        return existing

    def remove_shares(self, wallet: Wallet, quantity: Decimal) -> Optional[Wallet]:
        """卖出：扣减股数及其成本（股数 × 钱包价）；剩余 <= epsilon 时删除"""
        quantity = to_share_decimal(quantity)
        if quantity > wallet.shares + self.config.share_epsilon:
            raise InsufficientSharesError(wallet.id, quantity, wallet.shares)

        if wallet.shares - quantity <= self.config.share_epsilon:
            self.delete(wallet)
            return None

        wallet.remove_quantity(quantity)
        self._save(wallet)
        return wallet

    def add_shares(
        self,
        asset_id: int,
        price: Number,
        profit_target_id: Optional[int],
        quantity: Decimal,
        profit_target_price: Optional[Decimal] = None,
        wallet: Optional[Wallet] = None,
    ) -> Wallet:
        """撤销卖出：把股数加回钱包（不存在时按键重建）"""
        quantity = to_share_decimal(quantity)
        if wallet is None:
            wallet = self.find_by_key(asset_id, price, profit_target_id)

        if wallet is None:
            key_price = to_price_key(price)
            wallet = Wallet(
                asset_id=asset_id,
                price=key_price,
                profit_target_id=profit_target_id,
                shares=quantity,
                investment=cost_of_shares(quantity, key_price),
                profit_target_price=profit_target_price,
            )
            wallet.id = self.storage.create(T.WALLETS, wallet.to_dict())
            self.logger.debug(f"重建钱包: {wallet}")
            return wallet

        wallet.add_quantity(quantity)
        if profit_target_price is not None and wallet.profit_target_price is None:
            wallet.profit_target_price = profit_target_price
        self._save(wallet)
        return wallet

    def set_profit_target_price(self, wallet: Wallet, profit_target_price: Decimal) -> None:
        wallet.profit_target_price = profit_target_price
        self.storage.update(T.WALLETS, wallet.id, {'profit_target_price': profit_target_price})

    def delete(self, wallet: Wallet) -> None:
        self.storage.delete(T.WALLETS, wallet.id)
        self.logger.debug(f"关闭钱包: {wallet}")

    def _save(self, wallet: Wallet) -> None:
        self.storage.update(T.WALLETS, wallet.id, {
            'price': wallet.price,
            'profit_target_id': wallet.profit_target_id,
            'shares': wallet.shares,
            'investment': wallet.investment,
            'profit_target_price': wallet.profit_target_price,
        })

    def save(self, wallet: Wallet) -> Wallet:
        """按ID保存或创建（重建钱包时使用）"""
        if wallet.id is None:
            wallet.id = self.storage.create(T.WALLETS, wallet.to_dict())
        else:
            self._save(wallet)
        return wallet
