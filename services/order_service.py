"""
Comandas: inclusão e remoção de itens, finalização e Caixa Rápido.

O total da comanda é sempre recalculado a partir dos itens gravados
no banco depois de cada alteração, nunca a partir do estado da tela.
Se o recálculo falhar, a alteração do item é desfeita.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from models.order import OrderStatus, PaymentMethod
from services.catalog_service import CatalogService
from services.exceptions import (
    CheckoutFailed,
    ConflictError,
    ItemNotInOrder,
    OrderNotFound,
    OrderNotOpen,
    OrderUpdateFailed,
    PaymentMethodRequired,
    PdvError,
    ProductNotFound,
    StoreError,
    ValidationError,
)
from services.ledger_store import ORDER_ITEMS, ORDERS, LedgerStore, Record
from services.session_resolver import SessionResolver
from utils.clock import utcnow
from utils.money import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)


class FinalizeOutcome(str, enum.Enum):
    FINALIZED = "finalizada"
    # Comanda sem itens: removida, não é erro
    CLOSED_EMPTY = "comanda_vazia"


@dataclass(frozen=True)
class FinalizeResult:
    outcome: FinalizeOutcome
    order: Optional[Record] = None
    troco: Decimal = ZERO


@dataclass(frozen=True)
class OrderView:
    order: Record
    items: List[Record] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return to_decimal(self.order["total"])

    def item(self, product_id) -> Optional[Record]:
        return next((i for i in self.items if i["produto_id"] == product_id), None)


def calcular_troco(total, valor_pago, metodo) -> Decimal:
    """Troco só existe em pagamento em dinheiro acima do total."""
    if valor_pago is None or PaymentMethod(metodo) is not PaymentMethod.DINHEIRO:
        return ZERO
    troco = to_decimal(valor_pago) - to_decimal(total)
    return quantize(troco) if troco > ZERO else ZERO


def _parse_metodo(order_id, metodo_pagamento) -> PaymentMethod:
    if not metodo_pagamento:
        raise PaymentMethodRequired(order_id)
    try:
        return PaymentMethod(metodo_pagamento)
    except ValueError as exc:
        raise ValidationError(f"Método de pagamento inválido: {metodo_pagamento!r}") from exc


def _parse_valor_pago(valor_pago) -> Optional[Decimal]:
    if valor_pago is None or valor_pago == "":
        return None
    try:
        pago = to_decimal(valor_pago)
        quantize(pago)
    except ValueError as exc:
        raise ValidationError(f"Valor pago inválido: {valor_pago!r}") from exc
    if pago < ZERO:
        raise ValidationError("Valor pago não pode ser negativo.")
    return pago


def _check_pagamento(metodo: PaymentMethod, pago: Optional[Decimal], total: Decimal) -> None:
    if metodo is PaymentMethod.DINHEIRO and pago is not None and pago < total:
        raise ValidationError(f"Valor pago ({quantize(pago)}) menor que o total ({quantize(total)}).")


class OrderService:
    def __init__(
        self,
        store: LedgerStore,
        catalog: Optional[CatalogService] = None,
        resolver: Optional[SessionResolver] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.clock = clock
        self.catalog = catalog or CatalogService(store)
        self.resolver = resolver or SessionResolver(store, clock=clock)

    # ----- Leitura -----

    def get_order(self, order_id) -> OrderView:
        order = self.store.get(ORDERS, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return OrderView(order=order, items=self._items(order_id))

    def list_open_orders(self, colaborador_id=None) -> List[Record]:
        eq = {"status": OrderStatus.ABERTA.value}
        if colaborador_id is not None:
            eq["colaborador_id"] = colaborador_id
        return self.store.query(ORDERS, eq=eq, order_by="created_at")

    def _items(self, order_id) -> List[Record]:
        return self.store.query(ORDER_ITEMS, eq={"venda_id": order_id}, order_by="id")

    def _load_open(self, order_id) -> Record:
        order = self.store.get(ORDERS, order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if order["status"] != OrderStatus.ABERTA.value:
            raise OrderNotOpen(order_id)
        return order

    def _find_line(self, order_id, product_id) -> Optional[Record]:
        return self.store.query_one(ORDER_ITEMS, eq={"venda_id": order_id, "produto_id": product_id})

    def _require_line(self, order_id, product_id) -> Record:
        linha = self._find_line(order_id, product_id)
        if linha is None:
            raise ItemNotInOrder(order_id, product_id)
        return linha

    # ----- Comanda -----

    def create_order(self, colaborador_id, nome_cliente=None, numero_comanda=None) -> Record:
        agora = self.clock()
        order = self.store.insert(
            ORDERS,
            {
                "colaborador_id": colaborador_id,
                "nome_cliente": (nome_cliente or "").strip() or None,
                "numero_comanda": (numero_comanda or "").strip() or None,
                "status": OrderStatus.ABERTA.value,
                "metodo_pagamento": None,
                "total": quantize(ZERO),
                "created_at": agora,
                "updated_at": agora,
            },
        )
        logger.info("Comanda %s aberta por %s", order["id"], colaborador_id)
        return order

    def _recompute_total(self, order_id) -> Decimal:
        total = sum((to_decimal(i["subtotal"]) for i in self._items(order_id)), ZERO)
        self.store.update(ORDERS, order_id, {"total": total, "updated_at": self.clock()})
        return total

    def _mutate(self, order_id, operation: str, write, revert) -> None:
        """
        Grava o item e recalcula o total. Se o recálculo falhar, desfaz o
        item para que total e itens continuem consistentes.
        """
        try:
            write()
        except StoreError as exc:
            raise OrderUpdateFailed(
                "Falha ao alterar item da comanda", operation=operation, entity_id=order_id, cause=exc
            ) from exc
        try:
            self._recompute_total(order_id)
        except StoreError as exc:
            revert_error = None
            try:
                revert()
            except StoreError as rexc:
                revert_error = rexc
                logger.error("Comanda %s: falha ao desfazer %s: %s", order_id, operation, rexc)
            else:
                logger.warning("Comanda %s: %s desfeito após falha no total", order_id, operation)
            raise OrderUpdateFailed(
                "Falha ao recalcular o total da comanda",
                operation=operation,
                entity_id=order_id,
                cause=exc,
                compensation_error=revert_error,
            ) from exc

    def _insert_line(self, order_id, produto: Record, quantidade: int, operation: str) -> None:
        preco = to_decimal(produto["preco_venda"])
        registro = {
            "venda_id": order_id,
            "produto_id": produto["id"],
            "nome_produto": produto["nome"],
            "quantidade": quantidade,
            "preco_unitario": preco,
            "subtotal": preco * quantidade,
            "created_at": self.clock(),
        }
        criado = {}

        def write():
            criado.update(self.store.insert(ORDER_ITEMS, registro))

        def revert():
            self.store.delete(ORDER_ITEMS, criado["id"])

        self._mutate(order_id, operation, write, revert)

    def _set_quantity(self, order_id, linha: Record, quantidade: int, operation: str) -> None:
        preco = to_decimal(linha["preco_unitario"])

        def write():
            self.store.update(
                ORDER_ITEMS, linha["id"], {"quantidade": quantidade, "subtotal": preco * quantidade}
            )

        def revert():
            self.store.update(
                ORDER_ITEMS,
                linha["id"],
                {"quantidade": linha["quantidade"], "subtotal": linha["subtotal"]},
            )

        self._mutate(order_id, operation, write, revert)

    def _delete_line(self, order_id, linha: Record, operation: str) -> None:
        def write():
            self.store.delete(ORDER_ITEMS, linha["id"])

        def revert():
            self.store.insert(ORDER_ITEMS, linha)

        self._mutate(order_id, operation, write, revert)

    # ----- Itens -----

    def add_item(self, order_id, product_id) -> OrderView:
        """Inclui uma unidade; se o produto já está na comanda, incrementa."""
        self._load_open(order_id)
        linha = self._find_line(order_id, product_id)
        if linha is not None:
            self._set_quantity(order_id, linha, linha["quantidade"] + 1, "adicionar_item")
            return self.get_order(order_id)

        produto = self.catalog.get_product(product_id)
        if produto is None:
            raise ProductNotFound(product_id)
        try:
            self._insert_line(order_id, produto, 1, "adicionar_item")
        except OrderUpdateFailed as exc:
            if not isinstance(exc.cause, ConflictError):
                raise
            # Outro terminal incluiu o mesmo produto entre a leitura e a escrita
            linha = self._require_line(order_id, product_id)
            self._set_quantity(order_id, linha, linha["quantidade"] + 1, "adicionar_item")
        return self.get_order(order_id)

    def increment_item(self, order_id, product_id) -> OrderView:
        self._load_open(order_id)
        linha = self._require_line(order_id, product_id)
        self._set_quantity(order_id, linha, linha["quantidade"] + 1, "incrementar_item")
        return self.get_order(order_id)

    def decrement_item(self, order_id, product_id) -> OrderView:
        """Quantidade 1 -> 0 remove o item (nunca grava quantidade zero)."""
        self._load_open(order_id)
        linha = self._require_line(order_id, product_id)
        if linha["quantidade"] <= 1:
            self._delete_line(order_id, linha, "decrementar_item")
        else:
            self._set_quantity(order_id, linha, linha["quantidade"] - 1, "decrementar_item")
        return self.get_order(order_id)

    def remove_item(self, order_id, product_id) -> OrderView:
        self._load_open(order_id)
        linha = self._require_line(order_id, product_id)
        self._delete_line(order_id, linha, "remover_item")
        return self.get_order(order_id)

    # ----- Finalização -----

    def attempt_finalize(self, order_id, metodo_pagamento=None, valor_pago=None) -> FinalizeResult:
        """
        Comanda vazia é removida (CLOSED_EMPTY). Caso contrário exige método
        de pagamento e caixa aberto do colaborador da comanda; updated_at é
        carimbado aqui, pois a conciliação filtra por ele.
        """
        order = self._load_open(order_id)
        itens = self._items(order_id)
        if not itens:
            self.store.delete(ORDERS, order_id)
            logger.info("Comanda vazia %s fechada", order_id)
            return FinalizeResult(outcome=FinalizeOutcome.CLOSED_EMPTY)

        metodo = _parse_metodo(order_id, metodo_pagamento)
        pago = _parse_valor_pago(valor_pago)
        total = sum((to_decimal(i["subtotal"]) for i in itens), ZERO)
        _check_pagamento(metodo, pago, total)
        self.resolver.require(order["colaborador_id"])

        finalizada = self.store.update(
            ORDERS,
            order_id,
            {
                "status": OrderStatus.FINALIZADA.value,
                "metodo_pagamento": metodo.value,
                "total": total,
                "updated_at": self.clock(),
            },
        )
        logger.info("Comanda %s finalizada (%s) total %s", order_id, metodo.value, total)
        return FinalizeResult(
            outcome=FinalizeOutcome.FINALIZED,
            order=finalizada,
            troco=calcular_troco(total, pago, metodo),
        )

    # ----- Caixa Rápido -----

    def _discard(self, order_id) -> Optional[StoreError]:
        """Remove itens e comanda; retorna o primeiro erro, se houver."""
        try:
            for item in self._items(order_id):
                self.store.delete(ORDER_ITEMS, item["id"])
            self.store.delete(ORDERS, order_id)
        except StoreError as exc:
            logger.error("Falha ao descartar comanda %s: %s", order_id, exc)
            return exc
        logger.warning("Comanda %s descartada após falha na venda rápida", order_id)
        return None

    def quick_checkout(
        self,
        colaborador_id,
        itens: Iterable[Tuple[int, int]],
        metodo_pagamento=None,
        valor_pago=None,
    ) -> FinalizeResult:
        """
        Venda direta do carrinho: [(product_id, quantidade), ...].
        Tudo é validado antes da primeira escrita; qualquer falha depois
        disso descarta a venda inteira.
        """
        quantidades: Dict[int, int] = {}
        for product_id, quantidade in itens:
            if not isinstance(quantidade, int) or quantidade < 1:
                raise ValidationError(f"Quantidade inválida para o produto {product_id}: {quantidade!r}")
            quantidades[product_id] = quantidades.get(product_id, 0) + quantidade
        if not quantidades:
            raise ValidationError("Carrinho vazio.")

        metodo = _parse_metodo(None, metodo_pagamento)
        pago = _parse_valor_pago(valor_pago)
        produtos = []
        for product_id, quantidade in quantidades.items():
            produto = self.catalog.get_product(product_id)
            if produto is None:
                raise ProductNotFound(product_id)
            produtos.append((produto, quantidade))
        previsto = sum((to_decimal(p["preco_venda"]) * q for p, q in produtos), ZERO)
        _check_pagamento(metodo, pago, previsto)
        self.resolver.require(colaborador_id)

        order = self.create_order(colaborador_id)
        try:
            for produto, quantidade in produtos:
                self._insert_line(order["id"], produto, quantidade, "venda_rapida")
            return self.attempt_finalize(order["id"], metodo.value, pago)
        except PdvError as exc:
            compensation_error = self._discard(order["id"])
            if isinstance(exc, StoreError) or compensation_error is not None:
                raise CheckoutFailed(
                    "Falha ao registrar a venda",
                    operation="venda_rapida",
                    entity_id=order["id"],
                    cause=exc,
                    compensation_error=compensation_error,
                ) from exc
            raise
