from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from services.exceptions import ConflictError, RecordNotFound, StoreError
from services.ledger_store import CASH_MOVEMENTS, CASH_SESSIONS, ORDER_ITEMS, ORDERS, PRODUCTS

from conftest import CERVEJA, PORCAO

T0 = datetime(2026, 10, 19, 18, 0, 0)


@pytest.fixture(params=["memory", "sql"])
def any_store(request, memory_store, sql_store):
    return memory_store if request.param == "memory" else sql_store


def _sessao(colaborador_id, status="aberto", abertura=T0):
    return {
        "colaborador_id": colaborador_id,
        "data_abertura": abertura,
        "valor_abertura": Decimal("100.00"),
        "status": status,
    }


def _comanda(colaborador_id=1):
    return {
        "colaborador_id": colaborador_id,
        "status": "aberta",
        "total": Decimal("0.00"),
        "created_at": T0,
        "updated_at": T0,
    }


def test_insert_assigns_id_and_get_returns_copy(any_store):
    criado = any_store.insert(CASH_SESSIONS, _sessao(1))

    assert criado["id"] is not None
    lido = any_store.get(CASH_SESSIONS, criado["id"])
    assert lido["status"] == "aberto"
    assert lido["valor_abertura"] == Decimal("100.00")

    lido["status"] = "fechado"
    assert any_store.get(CASH_SESSIONS, criado["id"])["status"] == "aberto"


def test_second_open_session_for_same_collaborator_conflicts(any_store):
    any_store.insert(CASH_SESSIONS, _sessao(1))

    with pytest.raises(ConflictError):
        any_store.insert(CASH_SESSIONS, _sessao(1))

    # Outro colaborador e sessões fechadas não entram na regra
    any_store.insert(CASH_SESSIONS, _sessao(2))
    any_store.insert(CASH_SESSIONS, _sessao(1, status="fechado"))


def test_reopening_after_close_is_allowed(any_store):
    primeira = any_store.insert(CASH_SESSIONS, _sessao(1))
    any_store.update(CASH_SESSIONS, primeira["id"], {"status": "fechado"})

    segunda = any_store.insert(CASH_SESSIONS, _sessao(1, abertura=T0 + timedelta(hours=1)))

    assert segunda["id"] != primeira["id"]


def test_duplicate_product_line_in_same_order_conflicts(any_store):
    order = any_store.insert(ORDERS, _comanda())
    linha = {
        "venda_id": order["id"],
        "produto_id": CERVEJA,
        "nome_produto": "Cerveja Lata",
        "quantidade": 1,
        "preco_unitario": Decimal("7.00"),
        "subtotal": Decimal("7.00"),
        "created_at": T0,
    }
    any_store.insert(ORDER_ITEMS, linha)

    with pytest.raises(ConflictError):
        any_store.insert(ORDER_ITEMS, linha)


def test_update_missing_record_raises_not_found(any_store):
    with pytest.raises(RecordNotFound):
        any_store.update(ORDERS, 999, {"status": "finalizada"})


def test_delete_missing_record_is_noop(any_store):
    any_store.delete(ORDERS, 999)
    assert any_store.query(ORDERS) == []


def test_query_filters_order_and_limit(any_store):
    for minutos, tipo in [(10, "entrada"), (0, "entrada"), (20, "saida"), (30, "entrada")]:
        any_store.insert(
            CASH_MOVEMENTS,
            {
                "responsavel_id": 1,
                "tipo": tipo,
                "valor": Decimal("10.00"),
                "descricao": "Suprimento",
                "created_at": T0 + timedelta(minutes=minutos),
            },
        )

    entradas = any_store.query(
        CASH_MOVEMENTS,
        eq={"tipo": "entrada"},
        gte={"created_at": T0 + timedelta(minutes=5)},
        lte={"created_at": T0 + timedelta(minutes=30)},
        order_by="created_at",
    )
    assert [m["created_at"] for m in entradas] == [
        T0 + timedelta(minutes=10),
        T0 + timedelta(minutes=30),
    ]

    ultimo = any_store.query_one(CASH_MOVEMENTS, order_by="created_at", descending=True)
    assert ultimo["created_at"] == T0 + timedelta(minutes=30)
    assert len(any_store.query(CASH_MOVEMENTS, limit=2)) == 2


def test_products_are_readable(any_store):
    produto = any_store.get(PRODUCTS, PORCAO)
    assert produto["nome"] == "Porção de Batata"
    assert produto["preco_venda"] == Decimal("25.00")


def test_sql_store_rejects_catalog_writes(sql_store):
    with pytest.raises(StoreError):
        sql_store.update(PRODUCTS, CERVEJA, {"preco_venda": Decimal("1.00")})


def test_unknown_table_is_store_error(any_store):
    with pytest.raises(StoreError):
        any_store.query("sales")
    assert not any_store.has_table("sales")
