from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from config.database import Base
from utils.clock import utcnow


class Product(Base):
    """
    Produtos do bar/loja. Somente leitura para o núcleo do PDV:
    o preço é copiado para o item da comanda no momento da inclusão.
    """

    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(200), nullable=False)
    custo = Column(Numeric(12, 2), nullable=False, default=0)
    preco_venda = Column(Numeric(12, 2), nullable=False, default=0)
    quantidade = Column(Integer, nullable=False, default=0)  # estoque atual
    ativo = Column(Boolean, nullable=False, default=True)
    categoria_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    categoria_rel = relationship("ProductCategory", lazy="joined")
