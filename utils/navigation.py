import streamlit as st

from services.auth_service import AuthService
from services.exceptions import PdvError
from services.session_resolver import SessionResolver
from utils.ui_helpers import get_store

PAGINAS = [
    ("app.py", "Início", "🏠"),
    ("pages/0_Caixa.py", "Caixa", "💰"),
    ("pages/1_Comandas.py", "Comandas", "🧾"),
    ("pages/2_Caixa_Rapido.py", "Caixa Rápido", "⚡"),
]


def _situacao_caixa(colaborador_id) -> str:
    try:
        sessao = SessionResolver(get_store()).resolve(colaborador_id)
    except PdvError:
        # A página mostra o erro completo; aqui só a indicação
        return "⚠️ Caixa: indisponível"
    return "🟢 Caixa aberto" if sessao else "🔴 Caixa fechado"


def show_sidebar() -> None:
    """Colaborador logado, situação do caixa e menu."""
    user = AuthService.get_current_user()

    with st.sidebar:
        st.markdown("## 🍺 PDV")
        if user:
            st.markdown(f"**{user['nome']}** · {user['tipo']}")
            st.caption(_situacao_caixa(user["id"]))
        st.markdown("---")

        for caminho, rotulo, icone in PAGINAS:
            st.page_link(caminho, label=rotulo, icon=icone)

        st.markdown("---")
        if st.button("Sair", use_container_width=True):
            AuthService.logout()
            st.switch_page("app.py")
