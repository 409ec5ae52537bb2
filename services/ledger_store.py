"""
Camada de acesso aos registros do caixa (ledger).

Interface genérica usada por todo o núcleo: registros são dicts com os
nomes das colunas. Não há regra de negócio aqui.
Implementações:
- MemoryLedgerStore: em memória (testes, demonstração)
- SqlLedgerStore (services.sql_ledger_store): SQLAlchemy sobre config.database
"""
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from services.exceptions import ConflictError, RecordNotFound, StoreError

CASH_SESSIONS = "cash_sessions"
CASH_MOVEMENTS = "cash_movements"
ORDERS = "orders"
ORDER_ITEMS = "order_items"
PRODUCTS = "products"
CATEGORIES = "categories"

LEDGER_TABLES = (CASH_SESSIONS, CASH_MOVEMENTS, ORDERS, ORDER_ITEMS)
READ_ONLY_TABLES = (PRODUCTS, CATEGORIES)

Record = Dict[str, Any]


class LedgerStore(ABC):
    """
    Contrato de acesso ao banco.
    Filtros: eq (==), gte (>=), lte (<=), cada um um dict coluna -> valor.
    Erros de acesso viram StoreError; unicidade violada vira ConflictError.
    """

    @abstractmethod
    def insert(self, table: str, record: Record) -> Record:
        """Insere e retorna o registro com id."""

    @abstractmethod
    def update(self, table: str, record_id, patch: Record) -> Record:
        """Atualiza campos; RecordNotFound se o id não existir."""

    @abstractmethod
    def delete(self, table: str, record_id) -> None:
        """Remove o registro; id inexistente não é erro."""

    @abstractmethod
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
        pass

    @abstractmethod
    def has_table(self, table: str) -> bool:
        pass

    def query_one(
        self,
        table: str,
        eq: Optional[Record] = None,
        gte: Optional[Record] = None,
        lte: Optional[Record] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Optional[Record]:
        rows = self.query(
            table, eq=eq, gte=gte, lte=lte, order_by=order_by, descending=descending, limit=1
        )
        return rows[0] if rows else None

    def get(self, table: str, record_id) -> Optional[Record]:
        return self.query_one(table, eq={"id": record_id})


# Mesmas regras de unicidade do schema SQL (models/*.py)
_UNIQUE_RULES = {
    CASH_SESSIONS: [(("colaborador_id",), lambda row: row.get("status") == "aberto")],
    ORDER_ITEMS: [(("venda_id", "produto_id"), None)],
}


def _sort_key(column):
    def key(row):
        value = row.get(column)
        return (value is None, value if value is not None else 0, row.get("id") or 0)

    return key


class MemoryLedgerStore(LedgerStore):
    """
    Store em memória. Cada chamada é serializada por um lock, como se
    fosse uma requisição ao banco; entre chamadas outro ator pode escrever.
    """

    def __init__(self, tables=LEDGER_TABLES + READ_ONLY_TABLES):
        self._rows: Dict[str, Dict[int, Record]] = {name: {} for name in tables}
        self._next_id: Dict[str, int] = {name: 1 for name in tables}
        self._lock = threading.RLock()

    def _table(self, table: str) -> Dict[int, Record]:
        try:
            return self._rows[table]
        except KeyError:
            raise StoreError(f"Tabela desconhecida: {table}", operation="acesso") from None

    def has_table(self, table: str) -> bool:
        return table in self._rows

    def seed(self, table: str, records) -> List[Record]:
        """Carrega registros prontos (ex.: catálogo de produtos)."""
        return [self.insert(table, r) for r in records]

    def _check_unique(self, table: str, candidate: Record, ignore_id=None) -> None:
        for columns, predicate in _UNIQUE_RULES.get(table, []):
            if predicate is not None and not predicate(candidate):
                continue
            key = tuple(candidate.get(c) for c in columns)
            for row in self._rows[table].values():
                if row["id"] == ignore_id:
                    continue
                if predicate is not None and not predicate(row):
                    continue
                if tuple(row.get(c) for c in columns) == key:
                    raise ConflictError(
                        f"Registro duplicado em {table} para {dict(zip(columns, key))}",
                        operation="insert" if ignore_id is None else "update",
                        entity_id=ignore_id,
                    )

    def insert(self, table: str, record: Record) -> Record:
        with self._lock:
            rows = self._table(table)
            row = dict(record)
            if row.get("id") is None:
                row["id"] = self._next_id[table]
            self._next_id[table] = max(self._next_id[table], row["id"]) + 1
            if row["id"] in rows:
                raise ConflictError(
                    f"Id {row['id']} já existe em {table}", operation="insert", entity_id=row["id"]
                )
            self._check_unique(table, row)
            rows[row["id"]] = row
            return dict(row)

    def update(self, table: str, record_id, patch: Record) -> Record:
        with self._lock:
            rows = self._table(table)
            if record_id not in rows:
                raise RecordNotFound(
                    f"Registro não encontrado em {table}", operation="update", entity_id=record_id
                )
            merged = {**rows[record_id], **patch, "id": record_id}
            self._check_unique(table, merged, ignore_id=record_id)
            rows[record_id] = merged
            return dict(merged)

    def delete(self, table: str, record_id) -> None:
        with self._lock:
            self._table(table).pop(record_id, None)

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
        with self._lock:
            rows = list(self._table(table).values())
            for column, value in (eq or {}).items():
                rows = [r for r in rows if r.get(column) == value]
            for column, value in (gte or {}).items():
                rows = [r for r in rows if r.get(column) is not None and r[column] >= value]
            for column, value in (lte or {}).items():
                rows = [r for r in rows if r.get(column) is not None and r[column] <= value]
            rows.sort(key=_sort_key(order_by or "id"), reverse=descending)
            if limit is not None:
                rows = rows[:limit]
            return [dict(r) for r in rows]
