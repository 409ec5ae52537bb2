from sqlalchemy import Column, DateTime, Integer, String

from config.database import Base
from utils.clock import utcnow


class ProductCategory(Base):
    """
    Categoria de produto para organização do catálogo.
    """

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    nome = Column(String(100), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
