"""
Seed de categorias e produtos fictícios para testes do PDV.
Pode ser executado em ambiente local ou de produção (cuidado ao rodar em produção).
"""
import logging
import sys
from decimal import Decimal
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from config.database import SessionLocal, init_db
from models.product import Product
from models.product_category import ProductCategory
from utils.logging_config import configure_logging

logger = logging.getLogger(__name__)

CATALOGO = {
    "Cervejas": [
        ("Cerveja Lata 350ml", "3.20", "7.00", 120),
        ("Cerveja Long Neck", "4.50", "10.00", 80),
        ("Chopp 500ml", "5.00", "12.00", 200),
    ],
    "Drinks": [
        ("Caipirinha", "6.00", "18.00", 50),
        ("Gin Tônica", "9.00", "25.00", 40),
    ],
    "Sem álcool": [
        ("Refrigerante Lata", "2.50", "6.00", 100),
        ("Água Mineral", "1.00", "4.00", 150),
    ],
    "Petiscos": [
        ("Porção de Batata", "8.00", "30.00", 30),
        ("Porção de Calabresa", "12.00", "35.00", 25),
    ],
}


def main() -> None:
    configure_logging()
    init_db()
    db = SessionLocal()
    try:
        criados = 0
        for nome_categoria, produtos in CATALOGO.items():
            categoria = db.query(ProductCategory).filter(ProductCategory.nome == nome_categoria).first()
            if categoria is None:
                categoria = ProductCategory(nome=nome_categoria)
                db.add(categoria)
                db.flush()
            for nome, custo, preco, estoque in produtos:
                if db.query(Product).filter(Product.nome == nome).first():
                    continue
                db.add(
                    Product(
                        nome=nome,
                        custo=Decimal(custo),
                        preco_venda=Decimal(preco),
                        quantidade=estoque,
                        ativo=True,
                        categoria_id=categoria.id,
                    )
                )
                criados += 1
        db.commit()
        logger.info("%s produtos criados.", criados)
    finally:
        db.close()


if __name__ == "__main__":
    main()
