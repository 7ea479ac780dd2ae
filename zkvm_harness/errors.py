"""
Hierarquia de exceções do harness de execução verificável.
"""


class HarnessError(Exception):
    """Erro base para falhas do harness."""


class HarnessStateError(HarnessError):
    """Operação chamada num estado que não permite a transição."""


class WitnessValidationError(HarnessError, ValueError):
    """Entradas do witness inválidas ou acima dos limites configurados."""


class ExecutionFault(HarnessError):
    """
    Falha dentro do programa guest.

    Attributes:
        operation: Operação em andamento (ex.: "homomorphic_add")
        index: Índice do ciphertext ou coluna envolvido, se houver
    """

    def __init__(self, operation: str, index: int = None, message: str = ""):
        self.operation = operation
        self.index = index
        self.message = message
        location = operation if index is None else f"{operation}[{index}]"
        super().__init__(f"{location}: {message}" if message else location)


class ProofVerificationFailure(HarnessError):
    """Recibo inválido; `reason` descreve a verificação que falhou."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
