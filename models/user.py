from sqlalchemy import Boolean, Column, DateTime, Integer, String

from config.database import Base
from utils.clock import utcnow

TIPO_ADMIN = "admin"
TIPO_COLABORADOR = "colaborador"
TIPOS_USUARIO = (TIPO_ADMIN, TIPO_COLABORADOR)


class User(Base):
    """
    Colaboradores do PDV. O id é o colaborador_id gravado nas sessões de
    caixa, movimentos e comandas.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    nome = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    tipo = Column(String(20), nullable=False, default=TIPO_COLABORADOR)  # admin / colaborador
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
