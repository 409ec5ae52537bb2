from decimal import Decimal

import pytest

from services.exceptions import (
    CheckoutFailed,
    ItemNotInOrder,
    NoOpenSession,
    OrderNotFound,
    OrderNotOpen,
    OrderUpdateFailed,
    PaymentMethodRequired,
    ProductNotFound,
    ValidationError,
)
from services.ledger_store import ORDER_ITEMS, ORDERS, PRODUCTS
from services.order_service import FinalizeOutcome, OrderService, calcular_troco
from services.session_resolver import SessionResolver

from conftest import (
    AGUA_SEM_ESTOQUE,
    CAIPIRINHA,
    CERVEJA,
    COLABORADOR,
    DRINK,
    INATIVO,
    PORCAO,
    TickingClock,
)


@pytest.fixture()
def comanda(comandas):
    return comandas.create_order(COLABORADOR, nome_cliente=" Mesa 4 ", numero_comanda="12")


@pytest.fixture()
def caixa_aberto(caixa):
    return caixa.open_session(COLABORADOR, "100")


def _soma_itens(view):
    return sum((i["subtotal"] for i in view.items), Decimal("0"))


def test_create_order_starts_empty_and_open(comandas, comanda):
    view = comandas.get_order(comanda["id"])

    assert view.order["status"] == "aberta"
    assert view.order["nome_cliente"] == "Mesa 4"
    assert view.items == []
    assert view.total == Decimal("0")


def test_same_product_twice_increments_single_line(comandas, comanda):
    comandas.add_item(comanda["id"], PORCAO)
    view = comandas.add_item(comanda["id"], PORCAO)

    assert len(view.items) == 1
    linha = view.item(PORCAO)
    assert linha["quantidade"] == 2
    assert linha["subtotal"] == Decimal("50.00")
    assert view.total == Decimal("50.00")


def test_decrement_last_unit_removes_line(comandas, comanda):
    comandas.add_item(comanda["id"], CERVEJA)
    comandas.add_item(comanda["id"], PORCAO)

    view = comandas.decrement_item(comanda["id"], CERVEJA)

    assert view.item(CERVEJA) is None
    assert view.total == Decimal("25.00")


def test_decrement_keeps_line_above_one(comandas, comanda):
    comandas.add_item(comanda["id"], CERVEJA)
    comandas.increment_item(comanda["id"], CERVEJA)
    comandas.increment_item(comanda["id"], CERVEJA)

    view = comandas.decrement_item(comanda["id"], CERVEJA)

    assert view.item(CERVEJA)["quantidade"] == 2
    assert view.total == Decimal("14.00")


def test_add_then_remove_restores_previous_state(comandas, comanda):
    comandas.add_item(comanda["id"], DRINK)
    antes = comandas.get_order(comanda["id"])

    comandas.add_item(comanda["id"], CAIPIRINHA)
    depois = comandas.remove_item(comanda["id"], CAIPIRINHA)

    assert depois.total == antes.total
    assert [(i["produto_id"], i["quantidade"]) for i in depois.items] == [
        (i["produto_id"], i["quantidade"]) for i in antes.items
    ]


def test_total_matches_items_after_every_change(comandas, comanda):
    passos = [
        (comandas.add_item, CERVEJA),
        (comandas.add_item, PORCAO),
        (comandas.increment_item, CERVEJA),
        (comandas.add_item, DRINK),
        (comandas.decrement_item, PORCAO),
        (comandas.remove_item, DRINK),
        (comandas.add_item, CERVEJA),
    ]
    for operacao, produto in passos:
        view = operacao(comanda["id"], produto)
        assert view.total == _soma_itens(view)
        assert all(i["quantidade"] >= 1 for i in view.items)

    assert view.item(CERVEJA)["quantidade"] == 3
    assert view.total == Decimal("21.00")


def test_line_keeps_price_and_name_snapshot(comandas, comanda, memory_store):
    comandas.add_item(comanda["id"], CERVEJA)
    memory_store.update(PRODUCTS, CERVEJA, {"preco_venda": Decimal("9.00"), "nome": "Cerveja 473ml"})

    view = comandas.increment_item(comanda["id"], CERVEJA)

    linha = view.item(CERVEJA)
    assert linha["nome_produto"] == "Cerveja Lata"
    assert linha["preco_unitario"] == Decimal("7.00")
    assert view.total == Decimal("14.00")


def test_item_errors(comandas, comanda):
    with pytest.raises(ItemNotInOrder):
        comandas.increment_item(comanda["id"], CERVEJA)
    with pytest.raises(ItemNotInOrder):
        comandas.remove_item(comanda["id"], CERVEJA)
    with pytest.raises(ProductNotFound):
        comandas.add_item(comanda["id"], 404)
    with pytest.raises(OrderNotFound):
        comandas.add_item(999, CERVEJA)


def test_finalized_order_cannot_be_changed(comandas, comanda, caixa_aberto):
    comandas.add_item(comanda["id"], CERVEJA)
    comandas.attempt_finalize(comanda["id"], "pix")

    with pytest.raises(OrderNotOpen):
        comandas.add_item(comanda["id"], CERVEJA)
    with pytest.raises(OrderNotOpen):
        comandas.attempt_finalize(comanda["id"], "pix")


@pytest.mark.parametrize(
    "operacao, preparo",
    [
        ("add_item", []),
        ("add_item", [CERVEJA]),
        ("decrement_item", [CERVEJA, CERVEJA]),
        ("decrement_item", [CERVEJA]),
        ("remove_item", [CERVEJA, PORCAO]),
    ],
)
def test_total_failure_reverts_item_change(comandas, comanda, store, operacao, preparo):
    for produto in preparo:
        comandas.add_item(comanda["id"], produto)
    antes = comandas.get_order(comanda["id"])
    store.fail("update", ORDERS)

    with pytest.raises(OrderUpdateFailed) as excinfo:
        getattr(comandas, operacao)(comanda["id"], CERVEJA)

    assert excinfo.value.compensation_error is None
    depois = comandas.get_order(comanda["id"])
    assert depois.total == antes.total
    assert [(i["produto_id"], i["quantidade"]) for i in depois.items] == [
        (i["produto_id"], i["quantidade"]) for i in antes.items
    ]


def test_item_write_failure_is_order_update_failed(comandas, comanda, store):
    store.fail("insert", ORDER_ITEMS)

    with pytest.raises(OrderUpdateFailed):
        comandas.add_item(comanda["id"], CERVEJA)
    assert comandas.get_order(comanda["id"]).items == []


# ----- Finalização -----


def test_finalize_empty_order_deletes_it(comandas, comanda, store):
    resultado = comandas.attempt_finalize(comanda["id"])

    assert resultado.outcome is FinalizeOutcome.CLOSED_EMPTY
    assert store.get(ORDERS, comanda["id"]) is None


def test_finalize_requires_payment_method(comandas, comanda, caixa_aberto):
    comandas.add_item(comanda["id"], CERVEJA)

    with pytest.raises(PaymentMethodRequired):
        comandas.attempt_finalize(comanda["id"])
    with pytest.raises(ValidationError):
        comandas.attempt_finalize(comanda["id"], "vale_refeicao")
    assert comandas.get_order(comanda["id"]).order["status"] == "aberta"


def test_finalize_requires_open_cash_session(comandas, comanda):
    comandas.add_item(comanda["id"], CERVEJA)

    with pytest.raises(NoOpenSession):
        comandas.attempt_finalize(comanda["id"], "pix")
    assert comandas.get_order(comanda["id"]).order["status"] == "aberta"


def test_finalize_stamps_method_total_and_change(comandas, comanda, caixa_aberto):
    comandas.add_item(comanda["id"], PORCAO)
    comandas.add_item(comanda["id"], CERVEJA)
    antes = comandas.get_order(comanda["id"]).order

    resultado = comandas.attempt_finalize(comanda["id"], "dinheiro", valor_pago="50")

    assert resultado.outcome is FinalizeOutcome.FINALIZED
    assert resultado.order["status"] == "finalizada"
    assert resultado.order["metodo_pagamento"] == "dinheiro"
    assert resultado.order["total"] == Decimal("32.00")
    assert resultado.order["updated_at"] > antes["updated_at"]
    assert resultado.troco == Decimal("18.00")


def test_cash_payment_below_total_is_rejected(comandas, comanda, caixa_aberto):
    comandas.add_item(comanda["id"], PORCAO)

    with pytest.raises(ValidationError):
        comandas.attempt_finalize(comanda["id"], "dinheiro", valor_pago="20")


@pytest.mark.parametrize("valor_pago", ["NaN", "-Infinity", "1e400000"])
def test_unusable_cash_payment_is_rejected(comandas, comanda, caixa_aberto, store, valor_pago):
    comandas.add_item(comanda["id"], PORCAO)
    escritas = len(store.writes())

    with pytest.raises(ValidationError):
        comandas.attempt_finalize(comanda["id"], "dinheiro", valor_pago=valor_pago)
    assert len(store.writes()) == escritas
    assert comandas.get_order(comanda["id"]).order["status"] == "aberta"


def test_calcular_troco():
    assert calcular_troco(Decimal("32"), Decimal("50"), "dinheiro") == Decimal("18.00")
    assert calcular_troco(Decimal("32"), Decimal("50"), "pix") == Decimal("0")
    assert calcular_troco(Decimal("32"), None, "dinheiro") == Decimal("0")
    assert calcular_troco(Decimal("32"), Decimal("32"), "dinheiro") == Decimal("0")


def test_list_open_orders(comandas, caixa_aberto):
    primeira = comandas.create_order(COLABORADOR, numero_comanda="1")
    segunda = comandas.create_order(COLABORADOR, numero_comanda="2")
    comandas.add_item(segunda["id"], CERVEJA)
    comandas.attempt_finalize(segunda["id"], "pix")
    terceira = comandas.create_order(COLABORADOR, numero_comanda="3")

    assert [o["id"] for o in comandas.list_open_orders(COLABORADOR)] == [primeira["id"], terceira["id"]]
    assert comandas.list_open_orders(2) == []


# ----- Catálogo -----


def test_catalog_lists_only_active_products_in_stock(comandas):
    nomes = [p["nome"] for p in comandas.catalog.list_available_products()]

    assert nomes == sorted(nomes)
    assert "Água Mineral" not in nomes
    assert "Petisco Antigo" not in nomes
    assert [p["id"] for p in comandas.catalog.list_available_products("porç")] == [PORCAO]


# ----- Caixa Rápido -----


def test_quick_checkout_creates_finalized_order(comandas, caixa_aberto, store):
    resultado = comandas.quick_checkout(
        COLABORADOR, [(CERVEJA, 2), (PORCAO, 1), (CERVEJA, 1)], "dinheiro", valor_pago=100
    )

    assert resultado.outcome is FinalizeOutcome.FINALIZED
    assert resultado.order["total"] == Decimal("46.00")
    assert resultado.troco == Decimal("54.00")
    itens = store.query(ORDER_ITEMS, eq={"venda_id": resultado.order["id"]})
    assert {i["produto_id"]: i["quantidade"] for i in itens} == {CERVEJA: 3, PORCAO: 1}
    assert comandas.list_open_orders() == []


@pytest.mark.parametrize(
    "itens, metodo, erro",
    [
        ([], "pix", ValidationError),
        ([(CERVEJA, 0)], "pix", ValidationError),
        ([(CERVEJA, 1)], None, PaymentMethodRequired),
        ([(404, 1)], "pix", ProductNotFound),
        ([(PORCAO, 1)], "dinheiro", ValidationError),
    ],
)
def test_quick_checkout_rejects_before_writing(comandas, caixa_aberto, store, itens, metodo, erro):
    escritas = len(store.writes())

    with pytest.raises(erro):
        comandas.quick_checkout(COLABORADOR, itens, metodo, valor_pago="10")
    assert len(store.writes()) == escritas


def test_quick_checkout_requires_open_session(comandas, store):
    with pytest.raises(NoOpenSession):
        comandas.quick_checkout(COLABORADOR, [(CERVEJA, 1)], "pix")
    assert store.query(ORDERS) == []


def test_quick_checkout_failure_discards_sale(comandas, caixa_aberto, store):
    store.fail("insert", ORDER_ITEMS)

    with pytest.raises(CheckoutFailed) as excinfo:
        comandas.quick_checkout(COLABORADOR, [(CERVEJA, 1), (PORCAO, 1)], "pix")

    assert excinfo.value.compensation_error is None
    assert store.query(ORDERS) == []
    assert store.query(ORDER_ITEMS) == []


def test_quick_checkout_reports_failed_discard(comandas, caixa_aberto, store):
    store.fail("update", ORDERS)
    store.fail("delete", ORDERS)

    with pytest.raises(CheckoutFailed) as excinfo:
        comandas.quick_checkout(COLABORADOR, [(CERVEJA, 1)], "pix")

    assert excinfo.value.compensation_error is not None


def test_order_flow_on_sql_store(sql_store):
    from services.cash_session_service import CashSessionService

    clock = TickingClock()
    resolver = SessionResolver(sql_store, mode="status", clock=clock)
    comandas = OrderService(sql_store, resolver=resolver, clock=clock)
    CashSessionService(sql_store, resolver=resolver, clock=clock).open_session(COLABORADOR, 0)

    order = comandas.create_order(COLABORADOR, numero_comanda="7")
    comandas.add_item(order["id"], PORCAO)
    comandas.add_item(order["id"], PORCAO)
    comandas.add_item(order["id"], CERVEJA)
    view = comandas.decrement_item(order["id"], CERVEJA)
    assert view.total == Decimal("50.00")
    assert view.item(PORCAO)["quantidade"] == 2

    resultado = comandas.attempt_finalize(order["id"], "cartao_credito")
    assert resultado.order["status"] == "finalizada"
    assert resultado.order["total"] == Decimal("50.00")

    vazia = comandas.create_order(COLABORADOR)
    assert comandas.attempt_finalize(vazia["id"]).outcome is FinalizeOutcome.CLOSED_EMPTY
    with pytest.raises(OrderNotFound):
        comandas.get_order(vazia["id"])


def test_unavailable_products_still_resolve_by_id(comandas, comanda):
    # Catálogo da tela filtra; a comanda aceita o id informado se existir
    view = comandas.add_item(comanda["id"], AGUA_SEM_ESTOQUE)
    assert view.item(AGUA_SEM_ESTOQUE)["preco_unitario"] == Decimal("4.00")
    assert INATIVO not in [p["id"] for p in comandas.catalog.list_available_products()]
