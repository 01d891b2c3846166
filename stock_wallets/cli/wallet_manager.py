#!/usr/bin/env python3
"""
钱包管理 CLI - Stock Wallets Manager

提供资产配置、交易记录、钱包浏览、信号扫描等命令。

示例 Examples:

  # 配置资产与目标
  stock-wallets add-asset -s AAPL --commission 0.1
  stock-wallets add-entry-target -s AAPL -p 5
  stock-wallets add-profit-target -s AAPL -p 10 --allocation 50
  stock-wallets add-profit-target -s AAPL -p 20 --allocation 50
  stock-wallets budget -s AAPL --year 2024 --amount 10000

  # 记录交易
  stock-wallets buy -s AAPL -p 150 -i 1000 -d 2024-01-15 --signal INITIAL
  stock-wallets buy -s AAPL -p 140 -i 1000 -d 2024-02-01 --signal ENTAR --alloc "1:70,2:30"
  stock-wallets sell -s AAPL -w 1 -p 165 -q 3 -d 2024-03-01 --signal TP
  stock-wallets dividend -s AAPL -a 12.5 -d 2024-03-15
  stock-wallets split -s AAPL -r 4 -d 2024-06-10

  # 编辑与删除
  stock-wallets edit --id 3 --price 141 --investment 900
  stock-wallets delete --id 3

  # 查看
  stock-wallets wallets -s AAPL
  stock-wallets transactions -s AAPL
  stock-wallets overview -s AAPL
  stock-wallets scan
"""

import argparse
import logging
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional

from stock_wallets.data.config import ServiceConfig
from stock_wallets.data.price_service import PriceService
from stock_wallets.data.storage import StorageError, create_storage
from stock_wallets.trading.config import DEFAULT_TRADING_CONFIG, TargetDeletionPolicy
from stock_wallets.trading.exceptions import ConsistencyViolation, NotFoundError, ValidationError
from stock_wallets.trading.models import AssetStatus, TransactionSignal
from stock_wallets.trading.services import AssetService, PortfolioService, TransactionService
from stock_wallets.trading.utils.decimal_utils import (
    format_decimal, format_financial_amount, format_percent, format_price, format_quantity
)
from stock_wallets.utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)


def _decimal(value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"无效的数字: {value}")


def _parse_allocations(alloc_str: str) -> Dict[int, Decimal]:
    """
    解析分配字符串，格式如: "1:70,2:30"
    返回: {1: Decimal('70'), 2: Decimal('30')}
    """
    allocations: Dict[int, Decimal] = {}
    for item in alloc_str.split(','):
        item = item.strip()
        if not item:
            continue
        try:
            target_id, pct = item.split(':')
            allocations[int(target_id)] = Decimal(pct)
        except (ValueError, InvalidOperation):
            raise ValueError(f"无效的分配格式: {item}，应为 目标ID:百分比")
    return allocations


def _storage_from_args(args: argparse.Namespace):
    return create_storage('sqlite', db_path=str(args.db_path))


def _require_asset_id(assets: AssetService, symbol: str) -> int:
    asset = assets.find_asset(symbol)
    if asset is None:
        raise NotFoundError("Asset", symbol.upper())
    return asset.id


def _price_service(args: argparse.Namespace) -> Optional[PriceService]:
    if getattr(args, 'no_fetch', False):
        return None
    config = ServiceConfig.from_env()
    return PriceService(config=config.price_feed)


def _run(args: argparse.Namespace, action: Callable) -> int:
    """执行命令并把异常映射为退出码：1 输入错误，2 存储错误，3 未知错误"""
    setup_logging('INFO' if args.verbose else 'WARNING')
    try:
        storage = _storage_from_args(args)
    except StorageError as e:
        print(f"❌ 数据库错误: {e}")
        return 2

    try:
        action(storage)
    except (ValidationError, NotFoundError, ValueError) as e:
        print(f"❌ 输入参数错误: {e}")
        return 1
    except StorageError as e:
        print(f"❌ 数据库错误: {e}")
        return 2
    except ConsistencyViolation as e:
        print(f"❌ 钱包与交易日志不一致: {e}")
        return 3
    except Exception as e:
        logger.debug("未知错误", exc_info=True)
        print(f"❌ 未知错误: {e}")
        return 3
    finally:
        storage.close()
    return 0


# =================== 资产配置 ===================

def cmd_add_asset(args: argparse.Namespace) -> int:
    def action(storage):
        asset = AssetService(storage, DEFAULT_TRADING_CONFIG).create_asset(
            symbol=args.symbol,
            name=args.name,
            commission=args.commission,
            test_price=args.test_price,
        )
        print(f"✅ 资产已创建 (ID: {asset.id}, {asset.symbol})")
    return _run(args, action)


def cmd_assets(args: argparse.Namespace) -> int:
    def action(storage):
        status = None if args.all else AssetStatus.ACTIVE
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG).list_assets(status)
        if not assets:
            print("(no assets)")
            return
        print(f"{'ID':>6} {'Symbol':>8} {'Status':>9} {'Commission':>11} {'Test Price':>11}  Name")
        print("-" * 70)
        for a in assets:
            commission = f"{a.commission}%" if a.commission is not None else "-"
            test_price = f"{a.test_price}" if a.test_price is not None else "-"
            print(f"{a.id:>6} {a.symbol:>8} {a.status.value:>9} {commission:>11} {test_price:>11}  {a.name or ''}")
    return _run(args, action)


def cmd_set_status(args: argparse.Namespace) -> int:
    def action(storage):
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG)
        asset = svc.set_status(_require_asset_id(svc, args.symbol), AssetStatus(args.status.upper()))
        print(f"✅ {asset.symbol} 状态已更新为 {asset.status.value}")
    return _run(args, action)


def cmd_set_test_price(args: argparse.Namespace) -> int:
    def action(storage):
        price_service = _price_service(args)
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG,
                           price_cache=price_service.cache if price_service else None)
        asset = svc.set_test_price(_require_asset_id(svc, args.symbol), args.price)
        print(f"✅ {asset.symbol} 测试价格已设置为 {asset.test_price}")
    return _run(args, action)


def cmd_add_entry_target(args: argparse.Namespace) -> int:
    def action(storage):
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG)
        target = svc.add_entry_target(_require_asset_id(svc, args.symbol), args.percent, name=args.name)
        print(f"✅ 入场目标已添加 (ID: {target.id}, -{target.target_percent}%)")
    return _run(args, action)


def cmd_add_profit_target(args: argparse.Namespace) -> int:
    def action(storage):
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG)
        target = svc.add_profit_target(
            _require_asset_id(svc, args.symbol), args.percent,
            allocation_percent=args.allocation, name=args.name,
        )
        print(f"✅ 止盈目标已添加 (ID: {target.id}, {target})")
    return _run(args, action)


def cmd_targets(args: argparse.Namespace) -> int:
    def action(storage):
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG)
        asset_id = _require_asset_id(svc, args.symbol)
        print("入场目标:")
        for t in svc.list_entry_targets(asset_id):
            print(f"  #{t.id} -{t.target_percent}% (排序 {t.sort_order}) {t.name or ''}")
        print("止盈目标:")
        for t in svc.list_profit_targets(asset_id):
            alloc = f"{t.allocation_percent}%" if t.allocation_percent is not None else "-"
            print(f"  #{t.id} +{t.target_percent}% 默认分配 {alloc} (排序 {t.sort_order}) {t.name or ''}")
    return _run(args, action)


def cmd_delete_profit_target(args: argparse.Namespace) -> int:
    def action(storage):
        policy = TargetDeletionPolicy(args.policy) if args.policy else None
        AssetService(storage, DEFAULT_TRADING_CONFIG).delete_profit_target(args.id, policy)
        print(f"✅ 止盈目标 {args.id} 已删除")
    return _run(args, action)


def cmd_budget(args: argparse.Namespace) -> int:
    def action(storage):
        svc = AssetService(storage, DEFAULT_TRADING_CONFIG)
        budget = svc.set_yearly_budget(_require_asset_id(svc, args.symbol), args.year, args.amount)
        print(f"✅ {budget.year} 年最大自付资金: {budget.amount}")
    return _run(args, action)


# =================== 交易 ===================

def cmd_buy(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        percentages = _parse_allocations(args.alloc) if args.alloc else None
        tx = svc.record_buy(
            asset_id=_require_asset_id(assets, args.symbol),
            price=args.price,
            investment=args.investment,
            transaction_date=args.date,
            signal=args.signal,
            percentages=percentages,
            notes=args.notes,
        )
        print(f"✅ 买入交易记录成功 (ID: {tx.id})")
        if tx.entry_target_price is not None:
            print(f"📉 下一个买入价 (LBD): {tx.entry_target_price} (-{tx.entry_target_percent}%)")
        print(f"\n{'目标ID':>8} {'百分比':>10} {'股数':>14} {'钱包ID':>8}")
        print("-" * 46)
        for alloc in svc.get_allocations(tx.id):
            print(f"{str(alloc.profit_target_id):>8} {alloc.percentage:>10.4f} "
                  f"{alloc.shares:>14.5f} {str(alloc.wallet_id):>8}")
    return _run(args, action)


def cmd_sell(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        tx = svc.record_sell(
            asset_id=_require_asset_id(assets, args.symbol),
            wallet_id=args.wallet,
            price=args.price,
            quantity=args.quantity,
            transaction_date=args.date,
            signal=args.signal,
            notes=args.notes,
        )
        print(f"✅ 卖出交易记录成功: ID={tx.id}")
        print(f"📊 成本 {format_financial_amount(tx.cost_basis)}  净收入 {format_financial_amount(tx.amount)}  "
              f"已实现盈亏 {format_financial_amount(tx.realized_pnl)}")
    return _run(args, action)


def _income_command(kind: str) -> Callable[[argparse.Namespace], int]:
    def command(args: argparse.Namespace) -> int:
        def action(storage):
            assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
            svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
            record = svc.record_dividend if kind == 'dividend' else svc.record_slp
            tx = record(_require_asset_id(assets, args.symbol), args.amount, args.date, args.notes)
            print(f"✅ {tx.transaction_type.value} 记录成功 (ID: {tx.id}, ${tx.amount})")
        return _run(args, action)
    return command


def cmd_split(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        tx = svc.record_split(_require_asset_id(assets, args.symbol), args.ratio, args.date, args.notes)
        print(f"✅ 拆股记录成功 (ID: {tx.id}, 1:{tx.split_ratio})，钱包已重建")
    return _run(args, action)


def cmd_edit(args: argparse.Namespace) -> int:
    def action(storage):
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        fields = {
            'transaction_date': args.date,
            'signal': args.signal,
            'price': args.price,
            'investment': args.investment,
            'quantity': args.quantity,
            'amount': args.amount,
            'split_ratio': args.ratio,
            'notes': args.notes,
            'wallet_id': args.wallet,
        }
        changes = {k: v for k, v in fields.items() if v is not None}
        if not changes and not args.alloc:
            raise ValueError("没有需要修改的字段")
        percentages = _parse_allocations(args.alloc) if args.alloc else None
        tx = svc.update_transaction(args.id, changes, percentages)
        print(f"✅ 交易已更新: {tx}")
    return _run(args, action)


def cmd_delete(args: argparse.Namespace) -> int:
    def action(storage):
        tx = TransactionService(storage, DEFAULT_TRADING_CONFIG).delete_transaction(args.id)
        print(f"✅ 交易已删除: {tx}")
    return _run(args, action)


# =================== 查看 ===================

def cmd_transactions(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        transactions = svc.list_transactions(_require_asset_id(assets, args.symbol))
        if not transactions:
            print("(no transactions)")
            return
        for tx in transactions:
            signal = tx.signal.value if tx.signal else ""
            print(f"{str(tx):<50} {signal:>8} {tx.notes or ''}")
    return _run(args, action)


def cmd_wallets(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        wallets = svc.get_wallets(_require_asset_id(assets, args.symbol))
        if not wallets:
            print("(no open wallets)")
            return
        print(f"{'ID':>6} {'Price':>12} {'Target':>7} {'Shares':>14} {'Investment':>14} {'TP Price':>12}")
        print("-" * 72)
        for w in wallets:
            print(f"{w.id:>6} {format_decimal(w.price, 6):>12} {str(w.profit_target_id):>7} "
                  f"{format_quantity(w.shares):>14} {format_financial_amount(w.investment):>14} "
                  f"{format_decimal(w.profit_target_price, 5):>12}")
    return _run(args, action)


def cmd_overview(args: argparse.Namespace) -> int:
    def action(storage):
        price_service = _price_service(args)
        svc = PortfolioService(storage, DEFAULT_TRADING_CONFIG, price_service)
        asset_id = _require_asset_id(svc.asset_service, args.symbol)
        snapshot = price_service.get_snapshot(args.symbol.upper()) if price_service else None
        overview = svc.get_asset_overview(asset_id, snapshot)

        signals = overview.signals
        pnl = overview.pnl
        cash = overview.cash_flow
        price_note = " (测试价格)" if signals.is_test_price else ""
        print(f"📈 {overview.symbol} 当前价: {format_price(signals.current_price)}{price_note}")
        print(f"   持股 {format_quantity(pnl.total_shares)}  投资 {format_financial_amount(pnl.total_investment)}"
              f"  钱包 {len(overview.wallets)} 个")
        print(f"   已实现盈亏 {format_financial_amount(pnl.realized_pnl)}"
              + (f" ({format_percent(pnl.realized_pnl_percent)})" if pnl.realized_pnl_percent is not None else ""))
        if pnl.unrealized_pnl is not None:
            print(f"   市值 {format_financial_amount(pnl.market_value)}"
                  f"  未实现盈亏 {format_financial_amount(pnl.unrealized_pnl)}")
        print(f"💰 自付资金 {format_financial_amount(cash.out_of_pocket)}  现金 {format_financial_amount(cash.cash_balance)}"
              f"  可用 {format_financial_amount(cash.available)}  ROIC {format_percent(cash.roic_percent)}")
        _print_signals(signals)
    return _run(args, action)


def _print_signals(signals) -> None:
    for name, value in signals.to_dict().items():
        if name in ('asset_id', 'symbol') or value is None:
            continue
        print(f"   {name:<24} {value}")


def cmd_scan(args: argparse.Namespace) -> int:
    def progress(index: int, total: int, message: str) -> None:
        print(f"⏳ {message}")

    def action(storage):
        svc = PortfolioService(storage, DEFAULT_TRADING_CONFIG, _price_service(args))
        results = svc.scan_signals(progress_callback=progress)
        if not results:
            print("(no active assets)")
            return
        print(f"{'Symbol':>8} {'Price':>12} {'Pullback%':>10} {'Days':>5} {'N-Dip%':>9} {'To PT%':>9}  Flags")
        print("-" * 80)
        for s in results:
            flags = []
            if s.pullback_triggered:
                flags.append("ENTRY")
            if s.profit_target_hit:
                flags.append("TP")
            if s.is_test_price:
                flags.append("TEST")
            print(f"{s.symbol:>8} {format_price(s.current_price):>12} {format_percent(s.pullback_percent):>10} "
                  f"{format_decimal(s.days_since_last_buy, 0):>5} {format_percent(s.n_day_dip_percent):>9} "
                  f"{format_percent(s.pct_to_profit_target):>9}  {' '.join(flags)}")
    return _run(args, action)


def cmd_rebuild(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        wallets = svc.rebuilder.rebuild_from_log(_require_asset_id(assets, args.symbol))
        print(f"✅ 钱包已按交易日志重建: {len(wallets)} 个钱包")
    return _run(args, action)


def cmd_verify(args: argparse.Namespace) -> int:
    def action(storage):
        assets = AssetService(storage, DEFAULT_TRADING_CONFIG)
        svc = TransactionService(storage, DEFAULT_TRADING_CONFIG)
        svc.rebuilder.verify(_require_asset_id(assets, args.symbol))
        print("✅ 钱包与交易日志一致")
    return _run(args, action)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description='钱包管理 CLI')
    p.add_argument('--db-path', default='database/wallets.db', help='数据库路径')
    sub = p.add_subparsers(dest='command', required=True)
    signals = [s.value for s in TransactionSignal]

    def add(name: str, help_text: str, func: Callable, symbol: bool = True) -> argparse.ArgumentParser:
        parser = sub.add_parser(name, help=help_text)
        if symbol:
            parser.add_argument('-s', '--symbol', required=True)
        parser.add_argument('-v', '--verbose', action='store_true')
        parser.set_defaults(func=func)
        return parser

    # 资产配置
    asset = add('add-asset', '添加资产', cmd_add_asset)
    asset.add_argument('--name')
    asset.add_argument('--commission', type=_decimal, help='佣金百分比')
    asset.add_argument('--test-price', type=_decimal, help='无行情时使用的测试价格')

    assets = add('assets', '列出资产', cmd_assets, symbol=False)
    assets.add_argument('--all', action='store_true', help='包含 HIDDEN/ARCHIVED')

    status = add('set-status', '修改资产状态', cmd_set_status)
    status.add_argument('status', choices=['active', 'hidden', 'archived'])

    test_price = add('set-test-price', '设置测试价格', cmd_set_test_price)
    test_price.add_argument('price', type=_decimal)
    test_price.add_argument('--no-fetch', action='store_true', help='不使用价格缓存')

    et = add('add-entry-target', '添加入场目标', cmd_add_entry_target)
    et.add_argument('-p', '--percent', type=_decimal, required=True, help='低于最近买入价的百分比')
    et.add_argument('--name')

    pt = add('add-profit-target', '添加止盈目标', cmd_add_profit_target)
    pt.add_argument('-p', '--percent', type=_decimal, required=True, help='高于买入价的百分比')
    pt.add_argument('--allocation', type=_decimal, help='默认分配百分比')
    pt.add_argument('--name')

    add('targets', '查看入场/止盈目标', cmd_targets)

    dpt = add('delete-profit-target', '删除止盈目标', cmd_delete_profit_target, symbol=False)
    dpt.add_argument('--id', type=int, required=True)
    dpt.add_argument('--policy', choices=[p.value for p in TargetDeletionPolicy])

    budget = add('budget', '设置年度最大自付资金', cmd_budget)
    budget.add_argument('--year', type=int, required=True)
    budget.add_argument('--amount', type=_decimal, required=True)

    # 交易
    buy = add('buy', '记录买入交易', cmd_buy)
    buy.add_argument('-p', '--price', type=_decimal, required=True)
    buy.add_argument('-i', '--investment', type=_decimal, required=True)
    buy.add_argument('-d', '--date', required=True, help='YYYY-MM-DD 或 ISO 时间戳')
    buy.add_argument('--signal', choices=signals, required=True)
    buy.add_argument('--alloc', help='分配百分比: "目标ID:百分比,..."')
    buy.add_argument('--notes')

    sell = add('sell', '从指定钱包卖出', cmd_sell)
    sell.add_argument('-w', '--wallet', type=int, required=True, help='钱包ID')
    sell.add_argument('-p', '--price', type=_decimal, required=True)
    sell.add_argument('-q', '--quantity', type=_decimal, required=True)
    sell.add_argument('-d', '--date', required=True)
    sell.add_argument('--signal', choices=signals, required=True)
    sell.add_argument('--notes')

    for kind, help_text in (('dividend', '记录分红'), ('slp', '记录证券借出收入')):
        income = add(kind, help_text, _income_command(kind))
        income.add_argument('-a', '--amount', type=_decimal, required=True)
        income.add_argument('-d', '--date', required=True)
        income.add_argument('--notes')

    split = add('split', '记录拆股', cmd_split)
    split.add_argument('-r', '--ratio', type=_decimal, required=True, help='拆股比例，如 4 表示 1 拆 4')
    split.add_argument('-d', '--date', required=True)
    split.add_argument('--notes')

    edit = add('edit', '编辑交易', cmd_edit, symbol=False)
    edit.add_argument('--id', type=int, required=True)
    edit.add_argument('-d', '--date')
    edit.add_argument('--signal', choices=signals)
    edit.add_argument('-p', '--price', type=_decimal)
    edit.add_argument('-i', '--investment', type=_decimal)
    edit.add_argument('-q', '--quantity', type=_decimal)
    edit.add_argument('-a', '--amount', type=_decimal)
    edit.add_argument('-r', '--ratio', type=_decimal)
    edit.add_argument('-w', '--wallet', type=int, help='SELL 改为从该钱包卖出')
    edit.add_argument('--alloc', help='BUY 的新分配百分比')
    edit.add_argument('--notes')

    delete = add('delete', '删除交易', cmd_delete, symbol=False)
    delete.add_argument('--id', type=int, required=True)

    # 查看
    add('transactions', '查看交易记录', cmd_transactions)
    add('wallets', '查看持仓钱包', cmd_wallets)

    overview = add('overview', '资产总览（钱包、盈亏、现金流、信号）', cmd_overview)
    overview.add_argument('--no-fetch', action='store_true', help='不获取行情，只使用测试价格')

    scan = add('scan', '扫描全部 ACTIVE 资产的信号', cmd_scan, symbol=False)
    scan.add_argument('--no-fetch', action='store_true', help='不获取行情，只使用测试价格')

    add('rebuild', '按交易日志重建钱包', cmd_rebuild)
    add('verify', '校验钱包与交易日志一致', cmd_verify)

    return p


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    return args.func(args)


if __name__ == '__main__':
    raise SystemExit(main())
