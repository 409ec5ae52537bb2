"""
LedgerStore sobre SQLAlchemy (SQLite local ou PostgreSQL em produção).
Cada operação abre sua própria sessão e faz commit: não há transação
entre chamadas, assim como no banco hospedado original.
"""
import logging
from contextlib import contextmanager
from typing import List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from config.database import SessionLocal, import_models
from services.exceptions import ConflictError, RecordNotFound, StoreError
from services.ledger_store import (
    CASH_MOVEMENTS,
    CASH_SESSIONS,
    CATEGORIES,
    ORDER_ITEMS,
    ORDERS,
    PRODUCTS,
    LedgerStore,
    Record,
)

logger = logging.getLogger(__name__)


def _models():
    import_models()
    from models.cash_movement import CashMovement
    from models.cash_session import CashSession
    from models.order import Order, OrderItem
    from models.product import Product
    from models.product_category import ProductCategory

    return {
        CASH_SESSIONS: CashSession,
        CASH_MOVEMENTS: CashMovement,
        ORDERS: Order,
        ORDER_ITEMS: OrderItem,
        PRODUCTS: Product,
        CATEGORIES: ProductCategory,
    }


_READ_ONLY = {PRODUCTS, CATEGORIES}


def _as_dict(obj) -> Record:
    return {attr.key: getattr(obj, attr.key) for attr in sa_inspect(obj).mapper.column_attrs}


class SqlLedgerStore(LedgerStore):
    """
    Adaptador do LedgerStore para os modelos SQLAlchemy do PDV.
    products e categories são somente leitura.
    """

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._models = _models()

    def has_table(self, table: str) -> bool:
        return table in self._models

    def _model(self, table: str, write: bool = False):
        model = self._models.get(table)
        if model is None:
            raise StoreError(f"Tabela desconhecida: {table}", operation="acesso")
        if write and table in _READ_ONLY:
            raise StoreError(f"Tabela {table} é somente leitura", operation="escrita")
        return model

    def _column(self, model, column: str):
        col = getattr(model, column, None)
        if col is None:
            raise StoreError(
                f"Coluna desconhecida: {model.__tablename__}.{column}", operation="query"
            )
        return col

    @contextmanager
    def _session(self, operation: str, table: str, entity_id=None):
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError(
                f"Violação de integridade em {table}",
                operation=operation,
                entity_id=entity_id,
                cause=exc,
            ) from exc
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning("Falha no banco (%s em %s): %s", operation, table, exc)
            raise StoreError(
                f"Falha no banco ao executar {operation} em {table}",
                operation=operation,
                entity_id=entity_id,
                cause=exc,
            ) from exc
        finally:
            db.close()

    def insert(self, table: str, record: Record) -> Record:
        model = self._model(table, write=True)
        with self._session("insert", table) as db:
            obj = model(**record)
            db.add(obj)
            db.flush()
            db.refresh(obj)
            return _as_dict(obj)

    def update(self, table: str, record_id, patch: Record) -> Record:
        model = self._model(table, write=True)
        with self._session("update", table, record_id) as db:
            obj = db.get(model, record_id)
            if obj is None:
                raise RecordNotFound(
                    f"Registro não encontrado em {table}", operation="update", entity_id=record_id
                )
            for column, value in patch.items():
                self._column(model, column)
                setattr(obj, column, value)
            db.flush()
            db.refresh(obj)
            return _as_dict(obj)

    def delete(self, table: str, record_id) -> None:
        model = self._model(table, write=True)
        with self._session("delete", table, record_id) as db:
            obj = db.get(model, record_id)
            if obj is not None:
                db.delete(obj)

    def query(
        self,
        table: str,
        eq: Optional[Record] = None,
        gte: Optional[Record] = None,
        lte: Optional[Record] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Record]:
        model = self._model(table)
        stmt = select(model)
        for column, value in (eq or {}).items():
            col = self._column(model, column)
            stmt = stmt.where(col.is_(None) if value is None else col == value)
        for column, value in (gte or {}).items():
            stmt = stmt.where(self._column(model, column) >= value)
        for column, value in (lte or {}).items():
            stmt = stmt.where(self._column(model, column) <= value)
        order_col = self._column(model, order_by or "id")
        if descending:
            stmt = stmt.order_by(order_col.desc(), model.id.desc())
        else:
            stmt = stmt.order_by(order_col, model.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session("query", table) as db:
            return [_as_dict(obj) for obj in db.execute(stmt).unique().scalars().all()]
