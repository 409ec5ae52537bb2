import enum

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from config.database import Base
from utils.clock import utcnow


class MovementType(str, enum.Enum):
    ENTRADA = "entrada"  # suprimento / abertura
    SAIDA = "saida"  # sangria / fechamento


# A tela de histórico, a conferência de fechamento e a inferência por
# movimentos de bases antigas procuram por estes textos
DESCRICAO_ABERTURA = "Abertura de Caixa"
DESCRICAO_FECHAMENTO = "Fechamento de Caixa"
DESCRICAO_SUPRIMENTO = "Suprimento"
DESCRICAO_SANGRIA = "Sangria"


class CashMovement(Base):
    """
    Movimento de caixa (entrada/saída) auditável.
    Nunca é alterado: apenas inserido, ou removido como compensação
    de uma escrita em duas etapas que falhou.
    """

    __tablename__ = "cash_movements"

    id = Column(Integer, primary_key=True, index=True)
    responsavel_id = Column(Integer, nullable=False, index=True)
    tipo = Column(String(20), nullable=False)
    valor = Column(Numeric(12, 2), nullable=False)
    descricao = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
