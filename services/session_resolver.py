"""
Descobre se um colaborador tem caixa aberto e desde quando.

A fonte de verdade é a coluna status de cash_sessions. A inferência por
movimentos (última abertura mais nova que o último fechamento no dia) existe
para bases antigas sem a tabela de sessões ou com PDV_SESSION_MODE=movimentos;
nesse modo o caixa vive só nos movimentos de abertura e fechamento.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import Callable, Optional

from config import settings
from models.cash_movement import DESCRICAO_ABERTURA, DESCRICAO_FECHAMENTO, MovementType
from models.cash_session import CashSessionStatus
from services.exceptions import NoOpenSession, ResolutionFailed, StoreError
from services.ledger_store import CASH_MOVEMENTS, CASH_SESSIONS, LedgerStore
from utils.clock import utcnow
from utils.money import to_decimal

logger = logging.getLogger(__name__)

SOURCE_STATUS = "status"
SOURCE_MOVIMENTOS = "movimentos"


@dataclass(frozen=True)
class ActiveSession:
    session_id: Optional[int]
    colaborador_id: int
    opened_at: datetime
    opening_float: Decimal
    source: str = SOURCE_STATUS


class SessionResolver:
    def __init__(
        self,
        store: LedgerStore,
        mode: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.mode = mode or settings.SESSION_MODE
        self.clock = clock

    @property
    def uses_movements(self) -> bool:
        return self.mode == settings.SESSION_MODE_MOVIMENTOS or not self.store.has_table(
            CASH_SESSIONS
        )

    def resolve(self, colaborador_id) -> Optional[ActiveSession]:
        """
        Retorna a sessão aberta do colaborador ou None.
        Erro do banco vira ResolutionFailed; nunca é tratado como "fechado".
        """
        try:
            if self.uses_movements:
                return self._resolve_from_movements(colaborador_id)
            return self._resolve_from_status(colaborador_id)
        except StoreError as exc:
            logger.error("Falha ao verificar caixa do colaborador %s: %s", colaborador_id, exc)
            raise ResolutionFailed(
                "Não foi possível verificar o status do caixa",
                operation="resolver_sessao",
                entity_id=colaborador_id,
                cause=exc,
            ) from exc

    def require(self, colaborador_id) -> ActiveSession:
        session = self.resolve(colaborador_id)
        if session is None:
            raise NoOpenSession(colaborador_id)
        return session

    def _resolve_from_status(self, colaborador_id) -> Optional[ActiveSession]:
        row = self.store.query_one(
            CASH_SESSIONS,
            eq={"colaborador_id": colaborador_id, "status": CashSessionStatus.ABERTO.value},
            order_by="data_abertura",
            descending=True,
        )
        if row is None:
            return None
        return ActiveSession(
            session_id=row["id"],
            colaborador_id=colaborador_id,
            opened_at=row["data_abertura"],
            opening_float=to_decimal(row["valor_abertura"]),
            source=SOURCE_STATUS,
        )

    def _resolve_from_movements(self, colaborador_id) -> Optional[ActiveSession]:
        hoje = self.clock().date()
        inicio = datetime.combine(hoje, time.min)
        fim = inicio + timedelta(days=1) - timedelta(microseconds=1)

        # Suprimentos e sangrias não abrem nem fecham o caixa
        def ultimo(tipo: MovementType, descricao: str):
            return self.store.query_one(
                CASH_MOVEMENTS,
                eq={"responsavel_id": colaborador_id, "tipo": tipo.value, "descricao": descricao},
                gte={"created_at": inicio},
                lte={"created_at": fim},
                order_by="created_at",
                descending=True,
            )

        entrada = ultimo(MovementType.ENTRADA, DESCRICAO_ABERTURA)
        saida = ultimo(MovementType.SAIDA, DESCRICAO_FECHAMENTO)
        if entrada is None:
            return None
        if saida is not None and not entrada["created_at"] > saida["created_at"]:
            return None
        return ActiveSession(
            session_id=None,
            colaborador_id=colaborador_id,
            opened_at=entrada["created_at"],
            opening_float=to_decimal(entrada["valor"]),
            source=SOURCE_MOVIMENTOS,
        )
