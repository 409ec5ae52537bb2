"""
Script para inicializar o banco de dados do PDV.
- Cria todas as tabelas
- Garante a existência de um usuário admin padrão
"""
import logging

from config.database import init_db
from services.auth_service import ensure_default_admin
from utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


def main() -> None:
    configure_logging()
    logger.info("Inicializando banco de dados do PDV...")
    init_db()
    logger.info("Tabelas criadas (se não existiam).")
    ensure_default_admin()


if __name__ == "__main__":
    main()
