"""
Consulta ao catálogo de produtos (somente leitura).
"""
from typing import List, Optional

from services.ledger_store import PRODUCTS, LedgerStore, Record


class CatalogService:
    def __init__(self, store: LedgerStore):
        self.store = store

    def list_available_products(self, termo: str = "") -> List[Record]:
        """Produtos ativos com estoque, por nome; filtra pelo termo se houver."""
        produtos = self.store.query(PRODUCTS, eq={"ativo": True}, order_by="nome")
        produtos = [p for p in produtos if (p.get("quantidade") or 0) > 0]
        termo = termo.strip().lower()
        if termo:
            produtos = [p for p in produtos if termo in (p.get("nome") or "").lower()]
        return produtos

    def get_product(self, product_id) -> Optional[Record]:
        return self.store.get(PRODUCTS, product_id)
