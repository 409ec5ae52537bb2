"""
Hierarquia de erros do núcleo do PDV.

- ValidationError: entrada inválida, rejeitada antes de qualquer escrita.
- PreconditionFailed: estado atual não permite a operação (mensagem acionável).
- StoreError: falha do banco; carrega operação, entidade e erro original.
- CloseInconsistent: fechamento aplicado pela metade; exige conferência manual.
"""
from typing import Optional


class PdvError(Exception):
    """Raiz de todos os erros do PDV."""


class ValidationError(PdvError):
    pass


class ProductNotFound(ValidationError):
    def __init__(self, product_id):
        super().__init__(f"Produto {product_id} não encontrado no catálogo.")
        self.product_id = product_id


class PreconditionFailed(PdvError):
    pass


class AlreadyOpen(PreconditionFailed):
    def __init__(self, colaborador_id, session_id=None):
        super().__init__(f"O caixa do colaborador {colaborador_id} já está aberto.")
        self.colaborador_id = colaborador_id
        self.session_id = session_id


class NoOpenSession(PreconditionFailed):
    def __init__(self, colaborador_id):
        super().__init__(
            f"Nenhum caixa aberto para o colaborador {colaborador_id}. Abra o caixa antes de continuar."
        )
        self.colaborador_id = colaborador_id


class SessionNotFound(PreconditionFailed):
    def __init__(self, session_id):
        super().__init__(f"Sessão de caixa {session_id} não encontrada.")
        self.session_id = session_id


class SessionNotOpen(PreconditionFailed):
    def __init__(self, session_id):
        super().__init__(f"Sessão de caixa {session_id} já está fechada.")
        self.session_id = session_id


class NegativeBalance(PreconditionFailed):
    def __init__(self, session_id, saldo):
        super().__init__(
            f"Saldo em dinheiro negativo ({saldo}) na sessão {session_id}; confira as sangrias antes de fechar."
        )
        self.session_id = session_id
        self.saldo = saldo


class OrderNotFound(PreconditionFailed):
    def __init__(self, order_id):
        super().__init__(f"Comanda {order_id} não encontrada.")
        self.order_id = order_id


class OrderNotOpen(PreconditionFailed):
    def __init__(self, order_id):
        super().__init__(f"Comanda {order_id} já foi finalizada.")
        self.order_id = order_id


class ItemNotInOrder(PreconditionFailed):
    def __init__(self, order_id, product_id):
        super().__init__(f"Produto {product_id} não está na comanda {order_id}.")
        self.order_id = order_id
        self.product_id = product_id


class PaymentMethodRequired(PreconditionFailed):
    def __init__(self, order_id=None):
        if order_id is None:
            super().__init__("Escolha um método de pagamento.")
        else:
            super().__init__(f"Escolha um método de pagamento para finalizar a comanda {order_id}.")
        self.order_id = order_id


class StoreError(PdvError):
    """
    Falha de acesso ao banco. `operation` e `entity_id` identificam o que
    estava sendo feito; `cause` é o erro original e `compensation_error`
    o erro da compensação, quando ela também falhou.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        entity_id=None,
        cause: Optional[BaseException] = None,
        compensation_error: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.entity_id = entity_id
        self.cause = cause
        self.compensation_error = compensation_error

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.operation:
            parts.append(f"operação={self.operation}")
        if self.entity_id is not None:
            parts.append(f"id={self.entity_id}")
        if self.cause is not None:
            parts.append(f"causa={self.cause}")
        if self.compensation_error is not None:
            parts.append(f"compensação={self.compensation_error}")
        return " | ".join(parts)


class ConflictError(StoreError):
    """Violação de unicidade no banco."""


class RecordNotFound(StoreError):
    pass


class ResolutionFailed(StoreError):
    pass


class ReconciliationFailed(StoreError):
    pass


class OpenFailed(StoreError):
    pass


class OrderUpdateFailed(StoreError):
    pass


class CheckoutFailed(StoreError):
    pass


class CloseInconsistent(StoreError):
    """Fechamento parcialmente aplicado: há um movimento de saída órfão."""
