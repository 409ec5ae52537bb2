import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["PDV_SESSION_MODE"] = "status"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from config.database import build_engine, init_db
from models.product import Product
from services.cash_session_service import CashSessionService
from services.exceptions import StoreError
from services.ledger_store import PRODUCTS, LedgerStore, MemoryLedgerStore
from services.order_service import OrderService
from services.reconciliation_service import ReconciliationEngine
from services.session_resolver import SessionResolver
from services.sql_ledger_store import SqlLedgerStore

COLABORADOR = 1
OUTRO_COLABORADOR = 2

CERVEJA = 1
PORCAO = 2
CAIPIRINHA = 3
DRINK = 4
AGUA_SEM_ESTOQUE = 5
INATIVO = 6

PRODUTOS = [
    {"id": CERVEJA, "nome": "Cerveja Lata", "preco_venda": Decimal("7.00"), "custo": Decimal("3.20"), "quantidade": 50, "ativo": True},
    {"id": PORCAO, "nome": "Porção de Batata", "preco_venda": Decimal("25.00"), "custo": Decimal("8.00"), "quantidade": 10, "ativo": True},
    {"id": CAIPIRINHA, "nome": "Caipirinha", "preco_venda": Decimal("30.00"), "custo": Decimal("6.00"), "quantidade": 10, "ativo": True},
    {"id": DRINK, "nome": "Drink da Casa", "preco_venda": Decimal("20.00"), "custo": Decimal("5.00"), "quantidade": 10, "ativo": True},
    {"id": AGUA_SEM_ESTOQUE, "nome": "Água Mineral", "preco_venda": Decimal("4.00"), "custo": Decimal("1.00"), "quantidade": 0, "ativo": True},
    {"id": INATIVO, "nome": "Petisco Antigo", "preco_venda": Decimal("15.00"), "custo": Decimal("5.00"), "quantidade": 5, "ativo": False},
]


class TickingClock:
    """Relógio de teste: cada leitura avança um segundo."""

    def __init__(self, start=datetime(2026, 10, 19, 18, 0, 0)):
        self.current = start

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class FlakyStore(LedgerStore):
    """Envolve um store e falha nas operações programadas com fail()."""

    def __init__(self, inner: LedgerStore):
        self.inner = inner
        self.failures = {}
        self.calls = []

    def fail(self, operation: str, table: str, times: int = 1) -> None:
        self.failures[(operation, table)] = times

    def _maybe_fail(self, operation: str, table: str) -> None:
        self.calls.append((operation, table))
        restantes = self.failures.get((operation, table), 0)
        if restantes:
            self.failures[(operation, table)] = restantes - 1
            raise StoreError(f"falha simulada: {operation} em {table}", operation=operation)

    def writes(self):
        return [c for c in self.calls if c[0] in ("insert", "update", "delete")]

    def has_table(self, table):
        return self.inner.has_table(table)

    def insert(self, table, record):
        self._maybe_fail("insert", table)
        return self.inner.insert(table, record)

    def update(self, table, record_id, patch):
        self._maybe_fail("update", table)
        return self.inner.update(table, record_id, patch)

    def delete(self, table, record_id):
        self._maybe_fail("delete", table)
        return self.inner.delete(table, record_id)

    def query(self, table, **kwargs):
        self._maybe_fail("query", table)
        return self.inner.query(table, **kwargs)


@pytest.fixture()
def clock():
    return TickingClock()


@pytest.fixture()
def memory_store():
    store = MemoryLedgerStore()
    store.seed(PRODUCTS, PRODUTOS)
    return store


@pytest.fixture()
def store(memory_store):
    return FlakyStore(memory_store)


@pytest.fixture()
def sql_store(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'pdv_test.db'}")
    init_db(bind=engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = session_factory()
    try:
        for produto in PRODUTOS:
            db.add(Product(**produto))
        db.commit()
    finally:
        db.close()
    yield SqlLedgerStore(session_factory=session_factory)
    engine.dispose()


@pytest.fixture()
def resolver(store, clock):
    return SessionResolver(store, mode="status", clock=clock)


@pytest.fixture()
def reconciliation(store, clock):
    return ReconciliationEngine(store, clock=clock)


@pytest.fixture()
def caixa(store, resolver, reconciliation, clock):
    return CashSessionService(store, resolver=resolver, reconciliation=reconciliation, clock=clock)


@pytest.fixture()
def comandas(store, resolver, clock):
    return OrderService(store, resolver=resolver, clock=clock)


def venda_finalizada(comandas, colaborador_id, metodo, *product_ids):
    """Abre uma comanda, lança os produtos e finaliza."""
    order = comandas.create_order(colaborador_id)
    for product_id in product_ids:
        comandas.add_item(order["id"], product_id)
    return comandas.attempt_finalize(order["id"], metodo)
