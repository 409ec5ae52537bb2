import enum

from sqlalchemy import Column, DateTime, Index, Integer, Numeric, String, text

from config.database import Base
from utils.clock import utcnow


class CashSessionStatus(str, enum.Enum):
    ABERTO = "aberto"
    FECHADO = "fechado"


class CashSession(Base):
    """
    Sessão de caixa (turno da gaveta) de um colaborador.
    Apenas uma sessão com status 'aberto' pode existir por colaborador.
    """

    __tablename__ = "cash_sessions"
    __table_args__ = (
        Index(
            "uq_cash_sessions_colaborador_aberto",
            "colaborador_id",
            unique=True,
            sqlite_where=text("status = 'aberto'"),
            postgresql_where=text("status = 'aberto'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    colaborador_id = Column(Integer, nullable=False, index=True)
    data_abertura = Column(DateTime, nullable=False, default=utcnow)
    data_fechamento = Column(DateTime, nullable=True)
    valor_abertura = Column(Numeric(12, 2), nullable=False, default=0)
    valor_fechamento = Column(Numeric(12, 2), nullable=True)
    status = Column(String(20), nullable=False, default=CashSessionStatus.ABERTO.value)  # aberto / fechado
