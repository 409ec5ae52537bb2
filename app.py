import sys
from pathlib import Path

# Permite rodar `streamlit run app.py` de qualquer diretório
_ROOT = Path(__file__).resolve().parents[0]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

from config.database import SessionLocal, init_db
from services.auth_service import AuthService, ensure_default_admin
from services.cash_session_service import CashSessionService
from services.exceptions import PdvError
from services.order_service import OrderService
from utils.formatters import format_currency
from utils.logging_config import configure_logging
from utils.navigation import show_sidebar
from utils.ui_helpers import cash_status, get_store, show_error


st.set_page_config(
    page_title="PDV - Bar",
    page_icon="🍺",
    layout="wide",
    initial_sidebar_state="expanded",
    menu_items={"Get Help": None, "Report a bug": None, "About": None},
)


@st.cache_resource
def initialize_app():
    """Roda uma vez por processo: logging, tabelas e admin padrão."""
    configure_logging()
    init_db()
    ensure_default_admin()


def login_page():
    st.markdown("# 🍺 PDV - Bar")
    st.caption("Entre com seu usuário de colaborador para abrir o caixa e lançar comandas.")
    st.markdown("---")

    _, centro, _ = st.columns([1, 2, 1])
    with centro:
        with st.form("login_form"):
            username = st.text_input("Usuário")
            password = st.text_input("Senha", type="password")
            entrar = st.form_submit_button("Entrar", use_container_width=True, type="primary")

        if not entrar:
            return
        if not username or not password:
            st.error("Informe usuário e senha.")
            return

        db = SessionLocal()
        try:
            user = AuthService.authenticate(db, username, password)
        finally:
            db.close()
        if user is None:
            st.error("Usuário ou senha inválidos.")
            return
        AuthService.login(user)
        st.rerun()


def home_page():
    user = AuthService.require_auth()
    store = get_store()

    st.markdown(f"# Olá, {user['nome']}")
    st.markdown("---")

    try:
        resumo = CashSessionService(store).current_summary(user["id"])
        abertas = OrderService(store).list_open_orders(user["id"])
    except PdvError as exc:
        show_error(exc)
        return

    cash_status(resumo.session if resumo else None)

    col1, col2, col3 = st.columns(3)
    col1.metric("Comandas abertas", len(abertas))
    if resumo is not None:
        col2.metric("Vendas no turno", format_currency(resumo.grand_total), f"{resumo.order_count} vendas")
        col3.metric("Dinheiro na gaveta", format_currency(resumo.net_cash))

    if abertas:
        st.markdown("#### 🧾 Comandas em andamento")
        for comanda in abertas:
            st.markdown(
                f"- **{comanda['numero_comanda'] or comanda['id']}** "
                f"({comanda['nome_cliente'] or 'sem cliente'}): {format_currency(comanda['total'])}"
            )


def main():
    initialize_app()
    AuthService.init_session_state()

    if AuthService.is_authenticated():
        show_sidebar()
        home_page()
    else:
        login_page()


if __name__ == "__main__":
    main()
