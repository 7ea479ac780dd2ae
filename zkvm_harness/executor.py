"""
Executor do programa guest com orçamento de ciclos.
"""

import logging
from dataclasses import dataclass

from . import guest
from .errors import ExecutionFault
from .witness import DEFAULT_MAX_CIPHERTEXTS

logger = logging.getLogger(__name__)

DEFAULT_MAX_CYCLES = 50_000_000


class CycleMeter:
    """
    Conta os ciclos consumidos pelo guest e registra a operação corrente.

    Attributes:
        operation: Última operação iniciada
        index: Índice associado à última operação
        cycles_used: Ciclos consumidos até agora
    """

    def __init__(self, max_cycles: int, max_ciphertexts: int = DEFAULT_MAX_CIPHERTEXTS):
        self.max_cycles = max_cycles
        self.max_ciphertexts = max_ciphertexts
        self.cycles_used = 0
        self.operation = "start"
        self.index = None

    def charge(self, operation: str, index: int = None, cycles: int = 1):
        """
        Registra a operação e consome ciclos.

        Raises:
            ExecutionFault: Se o orçamento de ciclos for excedido
        """
        self.operation = operation
        self.index = index
        self.cycles_used += cycles
        if self.cycles_used > self.max_cycles:
            raise ExecutionFault(
                operation,
                index,
                f"orçamento de ciclos excedido ({self.cycles_used} > {self.max_cycles})",
            )


@dataclass(frozen=True)
class ExecutionResult:
    journal: bytes
    cycles_used: int


class GuestExecutor:
    """
    Executa o programa guest como função pura dos bytes do witness.

    Qualquer erro dentro do guest vira ExecutionFault com a operação e o
    índice em andamento; nenhum journal parcial é devolvido.
    """

    def __init__(
        self,
        program=guest.tally_program,
        max_cycles: int = DEFAULT_MAX_CYCLES,
        max_ciphertexts: int = DEFAULT_MAX_CIPHERTEXTS,
    ):
        if max_cycles < 1:
            raise ValueError("max_cycles deve ser positivo")
        self.program = program
        self.max_cycles = max_cycles
        self.max_ciphertexts = max_ciphertexts

    def run(self, witness_bytes: bytes) -> ExecutionResult:
        """
        Executa o guest.

        Returns:
            ExecutionResult: Journal comprometido e ciclos consumidos

        Raises:
            ExecutionFault: Falha dentro do guest ou orçamento excedido
        """
        meter = CycleMeter(self.max_cycles, self.max_ciphertexts)
        try:
            journal = self.program(bytes(witness_bytes), meter)
        except ExecutionFault:
            raise
        except Exception as e:
            raise ExecutionFault(
                meter.operation, meter.index, f"{type(e).__name__}: {e}"
            ) from e

        logger.debug("Guest concluído em %d ciclos", meter.cycles_used)
        return ExecutionResult(journal=journal, cycles_used=meter.cycles_used)
