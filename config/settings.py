"""
Configurações gerais do PDV lidas do ambiente (.env carregado em config.database).
"""
import os

import config.database  # noqa: F401  (carrega o .env)

SESSION_MODE_STATUS = "status"
SESSION_MODE_MOVIMENTOS = "movimentos"

LOG_LEVEL = os.getenv("PDV_LOG_LEVEL", "INFO").upper()

# "status": sessão aberta definida pela coluna status de cash_sessions.
# "movimentos": compatibilidade com bases antigas que só têm movimentos;
# abertura e fechamento gravam apenas cash_movements, sem linha de sessão.
SESSION_MODE = os.getenv("PDV_SESSION_MODE", SESSION_MODE_STATUS).lower()

# Usuário admin criado na primeira inicialização (troque a senha em produção)
DEFAULT_ADMIN_USERNAME = os.getenv("PDV_ADMIN_USERNAME", "admin").strip().lower()
DEFAULT_ADMIN_PASSWORD = os.getenv("PDV_ADMIN_PASSWORD", "admin123")
