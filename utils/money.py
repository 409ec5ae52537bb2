"""
Aritmética monetária do PDV: sempre Decimal, nunca float.
"""
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENTAVOS = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    """
    Converte entradas (str, int, float, Decimal) para Decimal.
    Floats passam por str() para não herdar o erro binário.
    NaN e infinito não são valores monetários e viram ValueError.
    """
    if value is None:
        raise ValueError("valor monetário ausente")
    if isinstance(value, Decimal):
        numero = value
    else:
        if isinstance(value, float):
            value = repr(value)
        try:
            numero = Decimal(str(value).strip().replace(",", "."))
        except InvalidOperation as exc:
            raise ValueError(f"valor monetário inválido: {value!r}") from exc
    if not numero.is_finite():
        raise ValueError(f"valor monetário inválido: {value!r}")
    return numero


def quantize(value: Decimal) -> Decimal:
    """Arredonda para centavos (apenas no resultado final)."""
    numero = to_decimal(value)
    try:
        return numero.quantize(CENTAVOS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # Expoente grande demais para caber em centavos
        raise ValueError(f"valor monetário fora do limite: {value!r}") from exc
