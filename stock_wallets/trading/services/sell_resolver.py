#!/usr/bin/env python3
"""
卖出解析
从指定钱包卖出股数，计算成本、净收入与已实现盈亏
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..config import DEFAULT_TRADING_CONFIG, TradingConfig
from ..exceptions import InsufficientSharesError, ValidationError
from ..models.asset import Asset
from ..models.wallet import Wallet, cost_of_shares
from ..utils.decimal_utils import HUNDRED, Number, to_amount_decimal, to_decimal, to_share_decimal
from .wallet_store import WalletStore


@dataclass
class SellResolution:
    """
    卖出计算结果

    - cost_basis = wallet.price × quantity
    - gross = sell_price × quantity
    - proceeds = gross − gross × commission / 100
    - realized_pnl = proceeds − cost_basis
    """
    wallet: Wallet
    quantity: Decimal
    sell_price: Decimal
    cost_basis: Decimal
    gross: Decimal
    commission_amount: Decimal
    proceeds: Decimal

    @property
    def realized_pnl(self) -> Decimal:
        return self.proceeds - self.cost_basis


class SellResolver:
    """卖出解析器"""

    def __init__(self, wallet_store: WalletStore, config: Optional[TradingConfig] = None):
        self.wallet_store = wallet_store
        self.config = config or DEFAULT_TRADING_CONFIG
        self.logger = logging.getLogger(__name__)

    def resolve(self, asset: Asset, wallet: Wallet, sell_price: Number, quantity: Number) -> SellResolution:
        """校验并计算卖出结果（不写入）"""
        sell_price = to_decimal(sell_price, precision=6)
        quantity = to_share_decimal(quantity)

        if wallet.asset_id != asset.id:
            raise ValidationError(
                f"Wallet {wallet.id} does not belong to {asset.symbol}", 'wallet_id', wallet.id
            )
        if sell_price <= 0:
            raise ValidationError("Sell price must be positive", 'price', sell_price)
        if quantity <= 0:
            raise ValidationError("Sell quantity must be positive", 'quantity', quantity)
        if quantity > wallet.shares + self.config.share_epsilon:
            raise InsufficientSharesError(wallet.id, quantity, wallet.shares)

        gross = sell_price * quantity
        commission_amount = gross * asset.commission_percent / HUNDRED
        return SellResolution(
            wallet=wallet,
            quantity=quantity,
            sell_price=sell_price,
            cost_basis=cost_of_shares(quantity, wallet.price),
            gross=to_amount_decimal(gross),
            commission_amount=to_amount_decimal(commission_amount),
            proceeds=to_amount_decimal(gross - commission_amount),
        )

    def apply(self, resolution: SellResolution) -> Optional[Wallet]:
        """从钱包扣减股数；钱包清空时返回 None"""
        wallet = self.wallet_store.remove_shares(resolution.wallet, resolution.quantity)
        if wallet is None:
            self.logger.info(f"钱包 {resolution.wallet.id} 已全部卖出并关闭")
        return wallet
