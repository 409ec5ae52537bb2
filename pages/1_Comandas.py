import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

from models.order import PAYMENT_METHOD_LABELS, PaymentMethod
from services.auth_service import AuthService
from services.exceptions import OrderNotFound, PdvError
from services.order_service import FinalizeOutcome, OrderService
from utils.formatters import format_currency
from utils.navigation import show_sidebar
from utils.ui_helpers import get_store, page_header, show_error


st.set_page_config(page_title="Comandas", page_icon="🧾", layout="wide")

colaborador_id = AuthService.colaborador_id()
show_sidebar()

page_header("Comandas", "🧾", "Abra comandas, lance os itens e finalize com o pagamento.")

comandas = OrderService(get_store())


def _executar(acao, *args):
    """Executa uma ação da comanda e recarrega a página; erros viram mensagem."""
    try:
        acao(*args)
    except PdvError as exc:
        show_error(exc)
    else:
        st.rerun()


col_lista, col_produtos, col_atual = st.columns([1, 1.3, 1.5])

# Coluna 1: comandas abertas
with col_lista:
    st.subheader("Comandas abertas")
    with st.expander("➕ Nova comanda"):
        with st.form("nova_comanda"):
            numero = st.text_input("Número da comanda", placeholder="Ex: Mesa 5 ou 101")
            nome = st.text_input("Nome do cliente (opcional)", placeholder="Ex: João Silva")
            criar = st.form_submit_button("Abrir comanda", type="primary")
        if criar:
            try:
                nova = comandas.create_order(colaborador_id, nome, numero)
            except PdvError as exc:
                show_error(exc)
            else:
                st.session_state.comanda_id = nova["id"]
                st.rerun()

    try:
        abertas = comandas.list_open_orders()
    except PdvError as exc:
        show_error(exc)
        abertas = []
    if not abertas:
        st.info("Nenhuma comanda aberta.")
    for c in abertas:
        rotulo = f"{c['numero_comanda'] or 'Sem número'} · {c['nome_cliente'] or 'Sem cliente'} · {format_currency(c['total'])}"
        tipo_botao = "primary" if st.session_state.get("comanda_id") == c["id"] else "secondary"
        if st.button(rotulo, key=f"sel_{c['id']}", use_container_width=True, type=tipo_botao):
            st.session_state.comanda_id = c["id"]
            st.rerun()

comanda = None
comanda_id = st.session_state.get("comanda_id")
if comanda_id is not None:
    try:
        comanda = comandas.get_order(comanda_id)
    except OrderNotFound:
        st.session_state.pop("comanda_id", None)
    except PdvError as exc:
        show_error(exc)

# Coluna 2: produtos (estoque lido só para exibição)
with col_produtos:
    st.subheader("Produtos")
    termo = st.text_input("Buscar produto", disabled=comanda is None)
    try:
        produtos = comandas.catalog.list_available_products(termo)
    except PdvError as exc:
        show_error(exc)
        produtos = []
    for p in produtos:
        c_nome, c_btn = st.columns([3, 1])
        c_nome.markdown(f"**{p['nome']}** · {format_currency(p['preco_venda'])}")
        c_nome.caption(f"Estoque: {p['quantidade']}")
        if c_btn.button("➕", key=f"add_{p['id']}", disabled=comanda is None):
            _executar(comandas.add_item, comanda.order["id"], p["id"])

# Coluna 3: comanda selecionada
with col_atual:
    if comanda is None:
        st.subheader("Comanda selecionada")
        st.info("Selecione ou abra uma comanda.")
    else:
        ordem = comanda.order
        st.subheader(f"Comanda: {ordem['numero_comanda'] or ordem['nome_cliente'] or ordem['id']}")
        if not comanda.items:
            st.caption("Nenhum item lançado.")
        for item in comanda.items:
            c1, c2, c3, c4, c5 = st.columns([2.2, 0.6, 0.6, 1.2, 0.6])
            c1.text(f"{item['quantidade']}x {item['nome_produto']}")
            if c2.button("➖", key=f"dec_{item['id']}"):
                _executar(comandas.decrement_item, ordem["id"], item["produto_id"])
            if c3.button("➕", key=f"inc_{item['id']}"):
                _executar(comandas.increment_item, ordem["id"], item["produto_id"])
            c4.text(format_currency(item["subtotal"]))
            if c5.button("🗑️", key=f"rem_{item['id']}"):
                _executar(comandas.remove_item, ordem["id"], item["produto_id"])

        st.markdown(f"### Total: {format_currency(comanda.total)}")
        st.markdown("---")

        metodo = st.radio(
            "Método de pagamento",
            options=[m.value for m in PaymentMethod],
            format_func=lambda m: PAYMENT_METHOD_LABELS[m],
            horizontal=True,
            disabled=not comanda.items,
        )
        valor_pago = None
        if metodo == PaymentMethod.DINHEIRO.value and comanda.items:
            valor_pago = st.number_input("Valor pago", min_value=0.0, value=0.0, step=1.0) or None

        if st.button("Finalizar venda", type="primary", use_container_width=True):
            try:
                resultado = comandas.attempt_finalize(ordem["id"], metodo, valor_pago)
            except PdvError as exc:
                show_error(exc)
            else:
                st.session_state.pop("comanda_id", None)
                if resultado.outcome is FinalizeOutcome.CLOSED_EMPTY:
                    st.info("Comanda vazia fechada.")
                else:
                    msg = "Venda finalizada com sucesso!"
                    if resultado.troco:
                        msg += f" Troco: {format_currency(resultado.troco)}"
                    st.success(msg)
