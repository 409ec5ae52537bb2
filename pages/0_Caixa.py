import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import pandas as pd
import streamlit as st
from dateutil.relativedelta import relativedelta

from models.cash_movement import MovementType
from services.auth_service import AuthService
from services.cash_session_service import CashSessionService
from services.exceptions import PdvError
from utils.clock import utcnow
from utils.formatters import format_currency, format_date, format_payment_method
from utils.navigation import show_sidebar
from utils.ui_helpers import cash_status, get_store, page_header, show_error


st.set_page_config(page_title="Caixa", page_icon="💰", layout="wide")

user = AuthService.require_auth()
show_sidebar()
colaborador_id = user["id"]

page_header(
    "Caixa",
    "💰",
    "Abra o caixa no início do turno e feche ao encerrar. Vendas e movimentos contam a partir da abertura.",
)

caixa = CashSessionService(get_store())

try:
    resumo = caixa.current_summary(colaborador_id)
except PdvError as exc:
    show_error(exc)
    st.stop()

cash_status(
    resumo.session if resumo else None,
    f"vendas nesta sessão: {format_currency(resumo.grand_total)}" if resumo else "",
)

st.markdown("---")
col1, col2 = st.columns(2)

with col1:
    if not resumo:
        st.subheader("1. Abrir caixa")
        st.caption("Informe o valor de troco inicial (dinheiro na gaveta).")
        with st.form("abrir_caixa"):
            valor_abertura = st.number_input(
                "Valor de abertura (troco inicial)", min_value=0.0, value=0.0, step=1.0
            )
            abrir = st.form_submit_button("Abrir caixa", type="primary")
        if abrir:
            try:
                caixa.open_session(colaborador_id, valor_abertura)
            except PdvError as exc:
                show_error(exc)
            else:
                st.success("Caixa aberto com sucesso.")
                st.rerun()
    else:
        st.subheader("Suprimento / Sangria")
        st.caption("Registre entradas e retiradas de dinheiro durante o turno.")
        with st.form("movimento"):
            tipo = st.selectbox(
                "Tipo",
                options=[MovementType.ENTRADA.value, MovementType.SAIDA.value],
                format_func=lambda t: "Suprimento (entrada)" if t == "entrada" else "Sangria (saída)",
            )
            valor = st.number_input("Valor", min_value=0.0, value=0.0, step=1.0)
            descricao = st.text_input("Descrição (opcional)", placeholder="Ex: troco extra")
            registrar = st.form_submit_button("Registrar")
        if registrar:
            try:
                caixa.register_movement(colaborador_id, tipo, valor, descricao or None)
            except PdvError as exc:
                show_error(exc)
            else:
                st.success("Movimento registrado.")
                st.rerun()

with col2:
    st.subheader("2. Fechar caixa")
    if not resumo:
        st.info("Não há caixa aberto no momento.")
    else:
        c1, c2, c3 = st.columns(3)
        c1.metric("Entradas", format_currency(resumo.total_in))
        c2.metric("Saídas", format_currency(resumo.total_out))
        c3.metric("Saldo em dinheiro", format_currency(resumo.net_cash))
        for metodo, total in resumo.by_payment_method.items():
            st.markdown(f"**{format_payment_method(metodo)}:** {format_currency(total)}")
        st.markdown(f"**Total de vendas ({resumo.order_count}):** {format_currency(resumo.grand_total)}")

        if st.session_state.get("confirmar_fechamento"):
            st.warning(
                f"Fechar o caixa registrará uma saída de **{format_currency(resumo.net_cash)}**. "
                "Você deverá abrir um novo caixa no próximo turno."
            )
            col_ok, col_cancel = st.columns(2)
            with col_ok:
                if st.button("Sim, fechar o caixa", type="primary", use_container_width=True):
                    st.session_state.pop("confirmar_fechamento", None)
                    try:
                        fechamento = caixa.close_session(
                            resumo.session.session_id, colaborador_id=colaborador_id
                        )
                    except PdvError as exc:
                        show_error(exc)
                    else:
                        st.success(
                            "Caixa fechado com "
                            f"{format_currency(fechamento.movement['valor'])}."
                        )
                        st.rerun()
            with col_cancel:
                if st.button("Cancelar", use_container_width=True):
                    st.session_state.pop("confirmar_fechamento", None)
                    st.rerun()
        elif st.button("Fechar caixa", type="primary"):
            st.session_state.confirmar_fechamento = True
            st.rerun()

if resumo:
    st.markdown("---")
    with st.expander("📋 Vendas e movimentos desta sessão"):
        df_vendas = pd.DataFrame(
            [
                {
                    "Data": format_date(o["updated_at"]),
                    "Comanda": o.get("numero_comanda") or "-",
                    "Pagamento": format_payment_method(o.get("metodo_pagamento")),
                    "Total": format_currency(o["total"]),
                }
                for o in resumo.orders
            ]
        )
        df_movimentos = pd.DataFrame(
            [
                {
                    "Data": format_date(m["created_at"]),
                    "Tipo": "Entrada" if m["tipo"] == "entrada" else "Saída",
                    "Descrição": m["descricao"],
                    "Valor": format_currency(m["valor"]),
                }
                for m in resumo.movements
            ]
        )
        st.markdown("**Vendas finalizadas**")
        st.dataframe(df_vendas, use_container_width=True, hide_index=True)
        st.markdown("**Movimentações de caixa**")
        st.dataframe(df_movimentos, use_container_width=True, hide_index=True)

        dados = resumo.to_dict()
        df_resumo = pd.DataFrame(
            [{"Item": k, "Valor": v} for k, v in dados.items() if k != "por_metodo"]
            + [{"Item": f"vendas_{k}", "Valor": v} for k, v in dados["por_metodo"].items()]
        )
        st.download_button(
            "Exportar resumo (CSV)",
            data=df_resumo.to_csv(index=False).encode("utf-8"),
            file_name=f"caixa_{user['username']}_{utcnow():%Y-%m-%d}.csv",
            mime="text/csv",
        )

st.markdown("---")
with st.expander("📋 Histórico de sessões (último mês)"):
    try:
        sessoes = caixa.list_sessions(colaborador_id, since=utcnow() - relativedelta(months=1))
    except PdvError as exc:
        show_error(exc)
        sessoes = []
    if not sessoes:
        st.info("Nenhuma sessão de caixa registrada no período.")
    else:
        linhas = [
            {
                "ID": s["id"],
                "Abertura": format_date(s["data_abertura"]),
                "Fechamento": format_date(s["data_fechamento"]) if s["data_fechamento"] else "-",
                "Valor abertura": format_currency(s["valor_abertura"]),
                "Valor fechamento": format_currency(s["valor_fechamento"])
                if s["valor_fechamento"] is not None
                else "-",
                "Status": s["status"],
            }
            for s in sessoes
        ]
        st.dataframe(pd.DataFrame(linhas), use_container_width=True, hide_index=True)
