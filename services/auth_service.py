"""
Login dos colaboradores e acesso às telas do PDV.

O colaborador logado vive só no st.session_state. As telas leem o id com
AuthService.colaborador_id() e repassam explicitamente para os serviços de
caixa e comanda; o núcleo nunca consulta o usuário logado.
"""
import logging
from typing import Optional

import bcrypt
import streamlit as st
from sqlalchemy.orm import Session

from config import settings
from config.database import SessionLocal
from models.user import TIPO_ADMIN, TIPO_COLABORADOR, TIPOS_USUARIO, User
from services.exceptions import ValidationError

logger = logging.getLogger(__name__)

# Chaves de tela que pertencem ao colaborador e saem junto com ele
_CHAVES_DO_TURNO = ("comanda_id", "cart_items", "confirmar_fechamento")


def _normalizar_username(username: str) -> str:
    return (username or "").strip().lower()


class AuthService:
    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def verify_password(password: str, hashed: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> Optional[User]:
        """Colaborador ativo com a senha informada, ou None."""
        username = _normalizar_username(username)
        user = db.query(User).filter(User.username == username, User.active.is_(True)).first()
        if user is None or not AuthService.verify_password(password, user.password_hash):
            logger.info("Login recusado para %r", username)
            return None
        return user

    @staticmethod
    def create_user(
        db: Session,
        username: str,
        nome: str,
        password: str,
        tipo: str = TIPO_COLABORADOR,
    ) -> User:
        username = _normalizar_username(username)
        if not username or not (nome or "").strip():
            raise ValidationError("Usuário e nome são obrigatórios.")
        if tipo not in TIPOS_USUARIO:
            raise ValidationError(f"Tipo de usuário inválido: {tipo!r}")
        if len(password or "") < 6:
            raise ValidationError("A senha precisa ter pelo menos 6 caracteres.")

        user = User(
            username=username,
            nome=nome.strip(),
            password_hash=AuthService.hash_password(password),
            tipo=tipo,
            active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Colaborador %s (%s) cadastrado", user.username, tipo)
        return user

    # ----- Estado da tela -----

    @staticmethod
    def init_session_state() -> None:
        st.session_state.setdefault("authenticated", False)
        st.session_state.setdefault("user", None)

    @staticmethod
    def login(user: User) -> None:
        st.session_state.authenticated = True
        st.session_state.user = {
            "id": user.id,
            "username": user.username,
            "nome": user.nome,
            "tipo": user.tipo,
        }

    @staticmethod
    def logout() -> None:
        st.session_state.authenticated = False
        st.session_state.user = None
        for chave in _CHAVES_DO_TURNO:
            st.session_state.pop(chave, None)

    @staticmethod
    def is_authenticated() -> bool:
        return st.session_state.get("authenticated", False)

    @staticmethod
    def get_current_user() -> Optional[dict]:
        return st.session_state.get("user")

    @staticmethod
    def colaborador_id() -> int:
        """Id do colaborador logado; interrompe a página se não houver login."""
        return AuthService.require_auth()["id"]

    # ----- Acesso às páginas -----

    @staticmethod
    def require_auth() -> dict:
        AuthService.init_session_state()
        user = AuthService.get_current_user()
        if not AuthService.is_authenticated() or user is None:
            st.warning("Faça login para acessar o PDV.")
            st.stop()
        return user


def ensure_default_admin(session_factory=SessionLocal) -> None:
    """Cria o admin padrão (PDV_ADMIN_USERNAME / PDV_ADMIN_PASSWORD) se não houver nenhum."""
    db = session_factory()
    try:
        if db.query(User).filter(User.tipo == TIPO_ADMIN).first() is not None:
            return
        AuthService.create_user(
            db,
            username=settings.DEFAULT_ADMIN_USERNAME,
            nome="Administrador",
            password=settings.DEFAULT_ADMIN_PASSWORD,
            tipo=TIPO_ADMIN,
        )
        logger.warning(
            "Admin padrão %r criado; troque a senha em produção", settings.DEFAULT_ADMIN_USERNAME
        )
    finally:
        db.close()
