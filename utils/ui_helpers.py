"""
Peças de tela compartilhadas pelas páginas do PDV.
"""
from typing import Optional

import streamlit as st

from services.exceptions import CloseInconsistent, PdvError, StoreError
from services.session_resolver import ActiveSession
from services.sql_ledger_store import SqlLedgerStore
from utils.formatters import format_currency, format_date

# tipo -> (fundo, borda, ícone)
_CORES = {
    "ok": ("#e8f5e9", "#43a047", "✅"),
    "atencao": ("#fff3e0", "#fb8c00", "⚠️"),
}


@st.cache_resource
def get_store() -> SqlLedgerStore:
    """Store compartilhado entre as páginas (uma sessão de banco por chamada)."""
    return SqlLedgerStore()


def page_header(title: str, icon: str, subtitle: str = ""):
    st.markdown(f"# {icon} {title}")
    if subtitle:
        st.caption(subtitle)
    st.markdown("---")


def status_box(message: str, tipo: str = "ok"):
    fundo, borda, icone = _CORES[tipo]
    st.markdown(
        f"<div style='background-color:{fundo}; border-left:4px solid {borda}; "
        f"padding:14px 18px; margin:12px 0; border-radius:0 8px 8px 0; font-weight:500;'>"
        f"{icone} {message}</div>",
        unsafe_allow_html=True,
    )


def cash_status(sessao: Optional[ActiveSession], detalhe: str = ""):
    """Faixa com a situação do caixa do colaborador, no topo das telas."""
    if sessao is None:
        status_box("Caixa fechado. Abra o caixa na página Caixa para liberar as vendas.", "atencao")
        return
    texto = (
        f"Caixa aberto desde {format_date(sessao.opened_at)} · "
        f"troco inicial {format_currency(sessao.opening_float)}"
    )
    status_box(f"{texto} · {detalhe}" if detalhe else texto)


def show_error(exc: PdvError) -> None:
    """
    Exibe um erro do PDV conforme a gravidade:
    - fechamento inconsistente: bloqueia a tela até conferência manual
    - erro de banco: mensagem com operação e id para recuperação
    - validação/pré-condição: aviso para o usuário corrigir
    """
    if isinstance(exc, CloseInconsistent):
        st.error(
            "🚨 O fechamento do caixa ficou pela metade. Não tente fechar de novo: "
            "confira os movimentos do caixa e avise o administrador."
        )
        st.code(str(exc))
        st.stop()
    elif isinstance(exc, StoreError):
        st.error(f"Erro ao acessar o banco de dados. Tente novamente.\n\n{exc}")
    else:
        st.warning(str(exc))
