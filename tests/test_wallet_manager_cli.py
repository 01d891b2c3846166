#!/usr/bin/env python3
"""
钱包管理 CLI 端到端测试（临时数据库，不获取行情）
"""

import pytest

from stock_wallets.cli.wallet_manager import _parse_allocations, build_parser


@pytest.fixture
def cli(tmp_path):
    db_path = str(tmp_path / "wallets.db")

    def run(*argv):
        args = build_parser().parse_args(['--db-path', db_path, *argv])
        return args.func(args)

    return run


def test_parse_allocations():
    result = _parse_allocations("1:70, 2:30,")
    assert {k: str(v) for k, v in result.items()} == {1: "70", 2: "30"}
    with pytest.raises(ValueError):
        _parse_allocations("1-70")


def test_buy_sell_and_verify(cli, capsys):
    assert cli('add-asset', '-s', 'aapl', '--test-price', '11') == 0
    assert cli('add-profit-target', '-s', 'AAPL', '-p', '10', '--allocation', '100') == 0
    assert cli('add-entry-target', '-s', 'AAPL', '-p', '5') == 0
    assert cli('buy', '-s', 'AAPL', '-p', '10', '-i', '500', '-d', '2024-01-02', '--signal', 'INITIAL') == 0
    capsys.readouterr()

    assert cli('sell', '-s', 'AAPL', '-w', '1', '-p', '12', '-q', '10', '-d', '2024-01-05', '--signal', 'TP') == 0
    out = capsys.readouterr().out
    assert "成本 100.00" in out
    assert "净收入 120.00" in out
    assert "已实现盈亏 20.00" in out

    assert cli('wallets', '-s', 'AAPL') == 0
    assert "40.00000" in capsys.readouterr().out

    assert cli('verify', '-s', 'AAPL') == 0
    assert "一致" in capsys.readouterr().out

    assert cli('overview', '-s', 'AAPL', '--no-fetch') == 0
    out = capsys.readouterr().out
    assert "测试价格" in out
    assert "已实现盈亏 20.00" in out
    assert "ROIC 12.00%" in out


def test_input_errors_exit_with_1(cli, capsys):
    assert cli('wallets', '-s', 'NOPE') == 1
    assert "输入参数错误" in capsys.readouterr().out

    assert cli('add-asset', '-s', 'AAPL') == 0
    assert cli('add-profit-target', '-s', 'AAPL', '-p', '10') == 0
    assert cli('buy', '-s', 'AAPL', '-p', '10', '-i', '500', '-d', '2024-01-02',
               '--signal', 'INITIAL') == 1
    assert cli('buy', '-s', 'AAPL', '-p', '10', '-i', '500', '-d', '2024-01-02',
               '--signal', 'INITIAL', '--alloc', '99:100') == 1
    assert cli('delete', '--id', '42') == 1
    assert cli('edit', '--id', '42') == 1


def test_scan_without_fetch(cli, capsys):
    assert cli('scan', '--no-fetch') == 0
    assert "(no active assets)" in capsys.readouterr().out

    cli('add-asset', '-s', 'MSFT', '--test-price', '400')
    assert cli('scan', '--no-fetch') == 0
    out = capsys.readouterr().out
    assert "MSFT" in out
    assert "TEST" in out
