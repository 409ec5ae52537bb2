import enum

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from config.database import Base
from utils.clock import utcnow


class OrderStatus(str, enum.Enum):
    ABERTA = "aberta"
    FINALIZADA = "finalizada"


class PaymentMethod(str, enum.Enum):
    DINHEIRO = "dinheiro"
    PIX = "pix"
    CARTAO_CREDITO = "cartao_credito"
    CARTAO_DEBITO = "cartao_debito"


PAYMENT_METHOD_LABELS = {
    PaymentMethod.DINHEIRO.value: "Dinheiro",
    PaymentMethod.PIX.value: "Pix",
    PaymentMethod.CARTAO_CREDITO.value: "Crédito",
    PaymentMethod.CARTAO_DEBITO.value: "Débito",
}


class Order(Base):
    """
    Comanda / venda. Aberta enquanto acumula itens; finalizada com
    método de pagamento. O total é sempre a soma dos subtotais dos itens.
    """

    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    colaborador_id = Column(Integer, nullable=False, index=True)
    nome_cliente = Column(String(200), nullable=True)
    numero_comanda = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default=OrderStatus.ABERTA.value)  # aberta / finalizada
    metodo_pagamento = Column(String(20), nullable=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    # Janela da conciliação usa updated_at (momento da finalização)
    updated_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    itens = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """
    Item da comanda. nome_produto e preco_unitario são fotografias do
    catálogo no momento da inclusão, não referências vivas.
    """

    __tablename__ = "order_items"
    __table_args__ = (UniqueConstraint("venda_id", "produto_id", name="uq_order_items_venda_produto"),)

    id = Column(Integer, primary_key=True, index=True)
    venda_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    produto_id = Column(Integer, nullable=False)
    nome_produto = Column(String(200), nullable=False)
    quantidade = Column(Integer, nullable=False, default=1)
    preco_unitario = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    order = relationship("Order", back_populates="itens")
