"""
Abertura e fechamento de caixa, suprimentos e sangrias.

Cada abertura/fechamento são duas escritas dependentes sem transação
entre tabelas. Se a segunda falhar, a primeira é desfeita uma única vez,
de forma síncrona, antes de o erro chegar à tela. No modo por movimentos
não há linha de sessão e cada operação é uma escrita só.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from models.cash_movement import (
    DESCRICAO_ABERTURA,
    DESCRICAO_FECHAMENTO,
    DESCRICAO_SANGRIA,
    DESCRICAO_SUPRIMENTO,
    MovementType,
)
from models.cash_session import CashSessionStatus
from services.exceptions import (
    AlreadyOpen,
    CloseInconsistent,
    ConflictError,
    NegativeBalance,
    OpenFailed,
    SessionNotFound,
    SessionNotOpen,
    StoreError,
    ValidationError,
)
from services.ledger_store import CASH_MOVEMENTS, CASH_SESSIONS, LedgerStore, Record
from services.reconciliation_service import ReconciliationEngine, ReconciliationSummary
from services.session_resolver import SOURCE_MOVIMENTOS, SOURCE_STATUS, ActiveSession, SessionResolver
from utils.clock import utcnow
from utils.money import ZERO, quantize, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CloseResult:
    session: Optional[Record]  # None em bases sem linha de sessão
    movement: Record
    summary: ReconciliationSummary


def _parse_valor(valor, campo: str):
    try:
        numero = to_decimal(valor)
        quantize(numero)
    except ValueError as exc:
        raise ValidationError(f"{campo} inválido: {valor!r}") from exc
    return numero


def _session_from_row(row: Record) -> ActiveSession:
    return ActiveSession(
        session_id=row["id"],
        colaborador_id=row["colaborador_id"],
        opened_at=row["data_abertura"],
        opening_float=to_decimal(row["valor_abertura"]),
        source=SOURCE_STATUS,
    )


class CashSessionService:
    """
    Ciclo de vida do caixa: fechado --abrir--> aberto --fechar--> fechado.
    Toda decisão relê o estado do banco; nada é confiado a leituras antigas.
    """

    def __init__(
        self,
        store: LedgerStore,
        resolver: Optional[SessionResolver] = None,
        reconciliation: Optional[ReconciliationEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.clock = clock
        self.resolver = resolver or SessionResolver(store, clock=clock)
        self.reconciliation = reconciliation or ReconciliationEngine(store, clock=clock)

    def _compensate(self, table: str, record_id, operation: str) -> Optional[StoreError]:
        """Desfaz uma escrita. Retorna o erro se a compensação também falhar."""
        try:
            self.store.delete(table, record_id)
        except StoreError as exc:
            logger.error(
                "Compensação falhou (%s): %s %s continua gravado: %s",
                operation,
                table,
                record_id,
                exc,
            )
            return exc
        logger.warning("Compensação aplicada (%s): %s %s removido", operation, table, record_id)
        return None

    # ----- Abertura -----

    def _movimento_abertura(self, colaborador_id, valor, quando) -> Record:
        return self.store.insert(
            CASH_MOVEMENTS,
            {
                "responsavel_id": colaborador_id,
                "tipo": MovementType.ENTRADA.value,
                "valor": valor,
                "descricao": DESCRICAO_ABERTURA,
                "created_at": quando,
            },
        )

    def open_session(self, colaborador_id, valor_abertura) -> ActiveSession:
        valor = _parse_valor(valor_abertura, "Valor de abertura")
        if valor < ZERO:
            raise ValidationError("Valor de abertura não pode ser negativo.")
        valor = quantize(valor)

        existente = self.resolver.resolve(colaborador_id)
        if existente is not None:
            raise AlreadyOpen(colaborador_id, existente.session_id)

        agora = self.clock()
        if self.resolver.uses_movements:
            # Base antiga: o movimento de abertura é a própria sessão
            movimento = self._movimento_abertura(colaborador_id, valor, agora)
            logger.info(
                "Caixa aberto por movimento %s para colaborador %s com %s",
                movimento["id"],
                colaborador_id,
                valor,
            )
            return ActiveSession(
                session_id=None,
                colaborador_id=colaborador_id,
                opened_at=movimento["created_at"],
                opening_float=valor,
                source=SOURCE_MOVIMENTOS,
            )

        try:
            sessao = self.store.insert(
                CASH_SESSIONS,
                {
                    "colaborador_id": colaborador_id,
                    "data_abertura": agora,
                    "data_fechamento": None,
                    "valor_abertura": valor,
                    "valor_fechamento": None,
                    "status": CashSessionStatus.ABERTO.value,
                },
            )
        except ConflictError as exc:
            # Outro terminal abriu o caixa entre a verificação e a escrita
            raise AlreadyOpen(colaborador_id) from exc

        try:
            self._movimento_abertura(colaborador_id, valor, sessao["data_abertura"])
        except StoreError as exc:
            compensation_error = self._compensate(CASH_SESSIONS, sessao["id"], "abrir_caixa")
            raise OpenFailed(
                "Falha ao registrar o movimento de abertura; caixa não foi aberto",
                operation="abrir_caixa",
                entity_id=sessao["id"],
                cause=exc,
                compensation_error=compensation_error,
            ) from exc

        logger.info(
            "Caixa %s aberto para colaborador %s com %s", sessao["id"], colaborador_id, valor
        )
        return _session_from_row(sessao)

    # ----- Fechamento -----

    def close_session(self, session_id=None, colaborador_id=None) -> CloseResult:
        """
        Fecha pelo id da sessão ou, sem id, pela sessão aberta do colaborador.
        Em bases antigas (sem linha de sessão) grava só o movimento de fechamento.
        """
        if session_id is None:
            if colaborador_id is None:
                raise ValidationError("Informe a sessão ou o colaborador para fechar o caixa.")
            ativa = self.resolver.require(colaborador_id)
            if ativa.session_id is None:
                movimento, resumo = self._registrar_fechamento(ativa, colaborador_id)
                logger.info(
                    "Caixa do colaborador %s fechado por movimento %s com %s",
                    colaborador_id,
                    movimento["id"],
                    movimento["valor"],
                )
                return CloseResult(session=None, movement=movimento, summary=resumo)
            session_id = ativa.session_id

        sessao = self.store.get(CASH_SESSIONS, session_id)
        if sessao is None:
            raise SessionNotFound(session_id)
        if sessao["status"] != CashSessionStatus.ABERTO.value:
            raise SessionNotOpen(session_id)
        ativa = _session_from_row(sessao)

        # Um fechamento gravado no mesmo instante da abertura pertence à sessão anterior
        candidatos = self.store.query(
            CASH_MOVEMENTS,
            eq={
                "responsavel_id": ativa.colaborador_id,
                "tipo": MovementType.SAIDA.value,
                "descricao": DESCRICAO_FECHAMENTO,
            },
            gte={"created_at": ativa.opened_at},
        )
        orfao = next((m for m in candidatos if m["created_at"] > ativa.opened_at), None)
        if orfao is not None:
            logger.error(
                "Caixa %s aberto com movimento de fechamento %s já gravado", session_id, orfao["id"]
            )
            raise CloseInconsistent(
                "Fechamento anterior ficou pela metade; confira o caixa manualmente antes de fechar",
                operation="fechar_caixa",
                entity_id=session_id,
            )

        movimento, resumo = self._registrar_fechamento(ativa, session_id)
        valor_fechamento = movimento["valor"]

        try:
            sessao = self.store.update(
                CASH_SESSIONS,
                session_id,
                {
                    "status": CashSessionStatus.FECHADO.value,
                    "valor_fechamento": valor_fechamento,
                    "data_fechamento": movimento["created_at"],
                },
            )
        except StoreError as exc:
            compensation_error = self._compensate(CASH_MOVEMENTS, movimento["id"], "fechar_caixa")
            if compensation_error is None:
                raise StoreError(
                    "Falha ao fechar o caixa; o movimento de fechamento foi desfeito",
                    operation="fechar_caixa",
                    entity_id=session_id,
                    cause=exc,
                ) from exc
            raise CloseInconsistent(
                "Caixa continua aberto com um movimento de fechamento gravado; conferência manual necessária",
                operation="fechar_caixa",
                entity_id=session_id,
                cause=exc,
                compensation_error=compensation_error,
            ) from exc

        logger.info("Caixa %s fechado com %s", session_id, valor_fechamento)
        return CloseResult(session=sessao, movement=movimento, summary=resumo)

    def _registrar_fechamento(self, ativa: ActiveSession, entity_id):
        """Apura a gaveta e grava a saída de fechamento. Nada é gravado se o saldo for negativo."""
        agora = self.clock()
        resumo = self.reconciliation.compute(ativa, as_of=agora)
        valor_fechamento = quantize(resumo.net_cash)
        if valor_fechamento < ZERO:
            raise NegativeBalance(entity_id, valor_fechamento)

        try:
            movimento = self.store.insert(
                CASH_MOVEMENTS,
                {
                    "responsavel_id": ativa.colaborador_id,
                    "tipo": MovementType.SAIDA.value,
                    "valor": valor_fechamento,
                    "descricao": DESCRICAO_FECHAMENTO,
                    "created_at": agora,
                },
            )
        except StoreError as exc:
            logger.warning("Falha ao registrar fechamento do caixa %s: %s", entity_id, exc)
            raise StoreError(
                "Falha ao registrar o movimento de fechamento; o caixa continua aberto",
                operation="fechar_caixa",
                entity_id=entity_id,
                cause=exc,
            ) from exc
        return movimento, resumo

    # ----- Suprimento / sangria -----

    def register_movement(self, colaborador_id, tipo, valor, descricao: Optional[str] = None) -> Record:
        try:
            tipo = MovementType(tipo)
        except ValueError as exc:
            raise ValidationError(f"Tipo de movimento inválido: {tipo!r}") from exc
        valor = _parse_valor(valor, "Valor")
        if valor <= ZERO:
            raise ValidationError("O valor do movimento deve ser maior que zero.")

        self.resolver.require(colaborador_id)
        if not descricao:
            descricao = DESCRICAO_SUPRIMENTO if tipo is MovementType.ENTRADA else DESCRICAO_SANGRIA
        movimento = self.store.insert(
            CASH_MOVEMENTS,
            {
                "responsavel_id": colaborador_id,
                "tipo": tipo.value,
                "valor": quantize(valor),
                "descricao": descricao,
                "created_at": self.clock(),
            },
        )
        logger.info(
            "Movimento %s (%s) de %s registrado por %s", movimento["id"], tipo.value, valor, colaborador_id
        )
        return movimento

    # ----- Consultas -----

    def current_summary(self, colaborador_id) -> Optional[ReconciliationSummary]:
        """Apuração da sessão aberta, ou None se o caixa estiver fechado."""
        ativa = self.resolver.resolve(colaborador_id)
        if ativa is None:
            return None
        return self.reconciliation.compute(ativa)

    def list_sessions(
        self, colaborador_id, since: Optional[datetime] = None, limit: int = 50
    ) -> List[Record]:
        if not self.store.has_table(CASH_SESSIONS):
            return []
        return self.store.query(
            CASH_SESSIONS,
            eq={"colaborador_id": colaborador_id},
            gte={"data_abertura": since} if since else None,
            order_by="data_abertura",
            descending=True,
            limit=limit,
        )
