"""
Conciliação do caixa: soma vendas finalizadas e movimentos da sessão
aberta e calcula o saldo esperado em dinheiro.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from models.cash_movement import MovementType
from models.order import OrderStatus, PaymentMethod
from services.exceptions import ReconciliationFailed, StoreError
from services.ledger_store import CASH_MOVEMENTS, ORDERS, LedgerStore, Record
from services.session_resolver import ActiveSession
from utils.clock import utcnow
from utils.money import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)

# Vendas sem método (ou com método desconhecido) entram neste grupo
NAO_INFORMADO = "nao_informado"

_METODOS = {m.value for m in PaymentMethod}


@dataclass
class ReconciliationSummary:
    session: ActiveSession
    as_of: datetime
    by_payment_method: Dict[str, Decimal]
    total_in: Decimal
    total_out: Decimal
    net_cash: Decimal
    grand_total: Decimal
    order_count: int
    orders: List[Record] = field(default_factory=list)
    movements: List[Record] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Versão arredondada em centavos, para exibição e exportação."""
        return {
            "colaborador_id": self.session.colaborador_id,
            "aberto_em": self.session.opened_at,
            "apurado_em": self.as_of,
            "por_metodo": {k: quantize(v) for k, v in self.by_payment_method.items()},
            "total_entradas": quantize(self.total_in),
            "total_saidas": quantize(self.total_out),
            "saldo_dinheiro": quantize(self.net_cash),
            "total_vendas": quantize(self.grand_total),
            "quantidade_vendas": self.order_count,
        }


class ReconciliationEngine:
    def __init__(self, store: LedgerStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock

    def compute(
        self, session: ActiveSession, as_of: Optional[datetime] = None
    ) -> ReconciliationSummary:
        """
        Apura a sessão entre a abertura e `as_of` (agora, por padrão).
        Se qualquer consulta falhar, nada é retornado: ReconciliationFailed.
        """
        as_of = as_of or self.clock()
        try:
            orders = self.store.query(
                ORDERS,
                eq={
                    "colaborador_id": session.colaborador_id,
                    "status": OrderStatus.FINALIZADA.value,
                },
                gte={"updated_at": session.opened_at},
                lte={"updated_at": as_of},
                order_by="updated_at",
            )
            movements = self.store.query(
                CASH_MOVEMENTS,
                eq={"responsavel_id": session.colaborador_id},
                gte={"created_at": session.opened_at},
                lte={"created_at": as_of},
                order_by="created_at",
            )
        except StoreError as exc:
            logger.error(
                "Falha na conciliação do caixa %s (colaborador %s): %s",
                session.session_id,
                session.colaborador_id,
                exc,
            )
            raise ReconciliationFailed(
                "Não foi possível apurar o caixa",
                operation="conciliar",
                entity_id=session.session_id,
                cause=exc,
            ) from exc

        by_method: Dict[str, Decimal] = {}
        grand_total = ZERO
        for order in orders:
            metodo = order.get("metodo_pagamento")
            if metodo not in _METODOS:
                metodo = NAO_INFORMADO
            total = to_decimal(order.get("total") or 0)
            by_method[metodo] = by_method.get(metodo, ZERO) + total
            grand_total += total

        total_in = ZERO
        total_out = ZERO
        for mov in movements:
            valor = to_decimal(mov["valor"])
            if mov["tipo"] == MovementType.ENTRADA.value:
                total_in += valor
            elif mov["tipo"] == MovementType.SAIDA.value:
                total_out += valor

        vendas_dinheiro = by_method.get(PaymentMethod.DINHEIRO.value, ZERO)
        return ReconciliationSummary(
            session=session,
            as_of=as_of,
            by_payment_method=by_method,
            total_in=total_in,
            total_out=total_out,
            net_cash=vendas_dinheiro + total_in - total_out,
            grand_total=grand_total,
            order_count=len(orders),
            orders=orders,
            movements=movements,
        )
