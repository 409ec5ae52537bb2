from datetime import date, datetime
from decimal import Decimal

from models.order import PAYMENT_METHOD_LABELS
from utils.money import quantize


def format_currency(value) -> str:
    """
    Formata um número como moeda em reais (R$ 1.234,56).
    """
    valor = quantize(value if value is not None else Decimal("0"))
    return f"R$ {valor:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(d: date | datetime) -> str:
    """
    Formata datas no padrão brasileiro.
    """
    if isinstance(d, datetime):
        return d.strftime("%d/%m/%Y %H:%M")
    return d.strftime("%d/%m/%Y")


def format_payment_method(metodo) -> str:
    if not metodo:
        return "N/A"
    return PAYMENT_METHOD_LABELS.get(metodo, "Não informado")
