import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import streamlit as st

from models.order import PAYMENT_METHOD_LABELS, PaymentMethod
from services.auth_service import AuthService
from services.exceptions import PdvError
from services.order_service import OrderService
from services.session_resolver import SessionResolver
from utils.formatters import format_currency
from utils.money import ZERO, to_decimal
from utils.navigation import show_sidebar
from utils.ui_helpers import cash_status, get_store, page_header, show_error


st.set_page_config(page_title="Caixa Rápido", page_icon="⚡", layout="wide")

colaborador_id = AuthService.colaborador_id()
show_sidebar()

page_header("Caixa Rápido", "⚡", "Venda direta no balcão, sem comanda. O caixa precisa estar aberto.")

store = get_store()
vendas = OrderService(store)

try:
    sessao = SessionResolver(store).resolve(colaborador_id)
except PdvError as exc:
    show_error(exc)
    st.stop()
cash_status(sessao)

if "cart_items" not in st.session_state:
    st.session_state.cart_items = {}
# Carrinho só na tela: product_id -> quantidade
cart = st.session_state.cart_items

col_prod, col_cart = st.columns([1, 1])

with col_prod:
    st.subheader("Produtos")
    termo = st.text_input("Buscar produto...")
    try:
        produtos = vendas.catalog.list_available_products(termo)
    except PdvError as exc:
        show_error(exc)
        produtos = []
    por_id = {p["id"]: p for p in produtos}
    for p in produtos:
        c_nome, c_btn = st.columns([3, 1])
        c_nome.markdown(f"**{p['nome']}** · {format_currency(p['preco_venda'])}")
        c_nome.caption(f"Estoque: {p['quantidade']}")
        if c_btn.button("➕", key=f"add_{p['id']}"):
            cart[p["id"]] = cart.get(p["id"], 0) + 1
            st.rerun()

with col_cart:
    st.subheader("Carrinho")
    if not cart:
        st.info("Carrinho vazio.")
    total = ZERO
    for product_id, quantidade in list(cart.items()):
        produto = por_id.get(product_id)
        if produto is None:
            continue
        subtotal = to_decimal(produto["preco_venda"]) * quantidade
        total += subtotal
        c1, c2, c3, c4 = st.columns([2.5, 0.6, 0.6, 1.2])
        c1.text(f"{quantidade}x {produto['nome']}")
        if c2.button("➖", key=f"dec_{product_id}"):
            if quantidade <= 1:
                cart.pop(product_id)
            else:
                cart[product_id] = quantidade - 1
            st.rerun()
        if c3.button("➕", key=f"inc_{product_id}"):
            cart[product_id] = quantidade + 1
            st.rerun()
        c4.text(format_currency(subtotal))

    st.markdown(f"### Total: {format_currency(total)}")
    metodo = st.selectbox(
        "Método de pagamento",
        options=[""] + [m.value for m in PaymentMethod],
        format_func=lambda m: PAYMENT_METHOD_LABELS.get(m, "Selecione"),
    )
    valor_pago = None
    if metodo == PaymentMethod.DINHEIRO.value:
        valor_pago = st.number_input("Valor pago", min_value=0.0, value=0.0, step=1.0) or None

    col_fin, col_limpar = st.columns(2)
    with col_fin:
        if st.button("Finalizar venda", type="primary", use_container_width=True, disabled=sessao is None):
            try:
                resultado = vendas.quick_checkout(colaborador_id, list(cart.items()), metodo or None, valor_pago)
            except PdvError as exc:
                show_error(exc)
            else:
                st.session_state.cart_items = {}
                msg = "Venda finalizada com sucesso!"
                if resultado.troco:
                    msg += f" Troco: {format_currency(resultado.troco)}"
                st.success(msg)
    with col_limpar:
        if st.button("Limpar carrinho", use_container_width=True):
            st.session_state.cart_items = {}
            st.rerun()
