#!/usr/bin/env python3
"""
SQLite 存储测试：通用CRUD、十进制文本存储、事务与约束
"""

from decimal import Decimal

import pytest

from stock_wallets.data.exceptions import IntegrityViolation, StorageError
from stock_wallets.data.storage import SQLiteStorage, StorageConfig, create_storage

T = StorageConfig.Tables


@pytest.fixture
def storage():
    store = SQLiteStorage(":memory:")
    yield store
    store.close()


def make_asset(storage, symbol="AAPL", **extra):
    return storage.create(T.ASSETS, {'symbol': symbol, **extra})


def make_wallet(storage, asset_id, price, profit_target_id=None):
    return storage.create(T.WALLETS, {
        'asset_id': asset_id,
        'price': Decimal(price),
        'profit_target_id': profit_target_id,
        'shares': Decimal('10'),
        'investment': Decimal('100'),
    })


def test_schema_created(storage):
    counts = storage.get_table_counts()
    assert set(counts) == set(T.get_all_required_tables())
    assert all(count == 0 for count in counts.values())


def test_crud_round_trip(storage):
    asset_id = make_asset(storage, commission=Decimal('0.125'), status='ACTIVE')

    row = storage.get(T.ASSETS, asset_id)
    assert row['symbol'] == "AAPL"
    assert row['commission'] == "0.125"
    assert row['created_at'] is not None

    assert storage.update(T.ASSETS, asset_id, {'name': "Apple", 'test_price': Decimal('187.500000')})
    row = storage.get(T.ASSETS, asset_id)
    assert row['name'] == "Apple"
    assert Decimal(row['test_price']) == Decimal('187.5')

    assert storage.delete(T.ASSETS, asset_id)
    assert storage.get(T.ASSETS, asset_id) is None
    assert not storage.delete(T.ASSETS, asset_id)


def test_list_filters_and_order(storage):
    asset_id = make_asset(storage)
    make_wallet(storage, asset_id, "10.000000", None)
    make_wallet(storage, asset_id, "9.000000", 7)
    make_wallet(storage, asset_id, "11.000000", 7)

    assert len(storage.list(T.WALLETS, asset_id=asset_id)) == 3
    untargeted = storage.list(T.WALLETS, asset_id=asset_id, profit_target_id=None)
    assert [r['price'] for r in untargeted] == ["10.000000"]

    ordered = storage.list(T.WALLETS, order_by='id DESC', profit_target_id=7)
    assert [r['price'] for r in ordered] == ["11.000000", "9.000000"]
    assert storage.count(T.WALLETS, profit_target_id=7) == 2
    assert storage.delete_where(T.WALLETS, profit_target_id=7) == 2


def test_unknown_table_or_column(storage):
    with pytest.raises(StorageError):
        storage.list("nope")
    with pytest.raises(StorageError):
        storage.list(T.ASSETS, ticker="AAPL")
    with pytest.raises(StorageError):
        storage.create(T.ASSETS, {'symbol': "AAPL", 'sector': "tech"})
    with pytest.raises(StorageError):
        storage.delete_where(T.ASSETS)


def test_symbol_unique(storage):
    make_asset(storage)
    with pytest.raises(IntegrityViolation):
        make_asset(storage)


def test_wallet_key_unique(storage):
    asset_id = make_asset(storage)
    make_wallet(storage, asset_id, "10.000000", None)
    make_wallet(storage, asset_id, "10.000000", 1)

    with pytest.raises(IntegrityViolation):
        make_wallet(storage, asset_id, "10.000000", None)
    with pytest.raises(IntegrityViolation):
        make_wallet(storage, asset_id, "10.000000", 1)


def test_asset_with_transactions_cannot_be_deleted(storage):
    asset_id = make_asset(storage)
    storage.create(T.TRANSACTIONS, {
        'asset_id': asset_id,
        'transaction_type': 'DIVIDEND',
        'transaction_date': '2024-01-02',
        'amount': Decimal('5'),
    })

    with pytest.raises(IntegrityViolation):
        storage.delete(T.ASSETS, asset_id)


def test_allocations_cascade_with_transaction(storage):
    asset_id = make_asset(storage)
    tx_id = storage.create(T.TRANSACTIONS, {
        'asset_id': asset_id,
        'transaction_type': 'BUY',
        'transaction_date': '2024-01-02',
        'signal': 'INITIAL',
        'price': Decimal('10'),
        'investment': Decimal('100'),
    })
    storage.create(T.TRANSACTION_ALLOCATIONS, {
        'transaction_id': tx_id, 'profit_target_id': None, 'wallet_id': None,
        'percentage': Decimal('100'), 'shares': Decimal('10'),
    })

    storage.delete(T.TRANSACTIONS, tx_id)
    assert storage.count(T.TRANSACTION_ALLOCATIONS) == 0


def test_transaction_rolls_back_on_error(storage):
    with pytest.raises(RuntimeError):
        with storage.transaction():
            make_asset(storage, "AAPL")
            make_asset(storage, "MSFT")
            raise RuntimeError("boom")

    assert storage.count(T.ASSETS) == 0
    assert not storage.in_transaction


def test_nested_transaction_uses_savepoint(storage):
    with storage.transaction():
        make_asset(storage, "AAPL")
        with pytest.raises(IntegrityViolation):
            with storage.transaction():
                make_asset(storage, "MSFT")
                make_asset(storage, "AAPL")
        make_asset(storage, "NVDA")

    symbols = [r['symbol'] for r in storage.list(T.ASSETS, order_by='symbol')]
    assert symbols == ["AAPL", "NVDA"]


def test_file_database_persists(tmp_path):
    db_path = tmp_path / "db" / "wallets.db"
    store = SQLiteStorage(str(db_path))
    make_asset(store)
    store.close()

    with SQLiteStorage(str(db_path)) as reopened:
        assert reopened.count(T.ASSETS) == 1


def test_create_storage_factory():
    store = create_storage("sqlite", db_path=":memory:")
    try:
        assert isinstance(store, SQLiteStorage)
    finally:
        store.close()

    with pytest.raises(StorageError):
        create_storage("mysql")
