"""
Harness de execução verificável.

Máquina de estados de uma execução:

    IDLE → WITNESS_ASSEMBLED → EXECUTING → COMMITTED → PROOF_GENERATED → VERIFIED
                     (qualquer etapa pode ir para FAILED)

FAILED é terminal para a execução e guarda o registro da falha; reset()
inicia uma nova execução.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

from bfv_core.bfv import BFVCiphertext
from bfv_core.key_factory import BFVPublicKey, BFVSecretKey

from .errors import (
    ExecutionFault,
    HarnessStateError,
    ProofVerificationFailure,
    WitnessValidationError,
)
from .executor import GuestExecutor
from .journal import ExecutionJournal
from .receipt import ProgramIdentity, Prover, Receipt, verify
from .witness import (
    DEFAULT_MAX_CIPHERTEXTS,
    DEFAULT_MAX_WITNESS_BYTES,
    ExecutionWitness,
    assemble_witness,
)

logger = logging.getLogger(__name__)


class HarnessState(Enum):
    IDLE = "idle"
    WITNESS_ASSEMBLED = "witness_assembled"
    EXECUTING = "executing"
    COMMITTED = "committed"
    PROOF_GENERATED = "proof_generated"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class FailureRecord:
    """Onde a execução falhou."""

    stage: str
    operation: Optional[str]
    index: Optional[int]
    message: str


class VerifiableExecutionHarness:
    """
    Conduz uma execução do guest do witness até o recibo verificado.

    Attributes:
        state: Estado corrente
        witness: Witness montado (sem chave secreta depois de COMMITTED)
        journal: Journal comprometido
        receipt: Recibo gerado
        failure: Registro da falha quando state == FAILED
    """

    def __init__(
        self,
        prover: Prover = None,
        executor: GuestExecutor = None,
        max_witness_bytes: int = DEFAULT_MAX_WITNESS_BYTES,
        max_ciphertexts: int = DEFAULT_MAX_CIPHERTEXTS,
    ):
        self.prover = prover if prover is not None else Prover()
        self.executor = (
            executor if executor is not None else GuestExecutor(max_ciphertexts=max_ciphertexts)
        )
        self.max_witness_bytes = max_witness_bytes
        self.max_ciphertexts = max_ciphertexts
        self._clear()

    def _clear(self):
        self.state = HarnessState.IDLE
        self.witness: Optional[ExecutionWitness] = None
        self.journal: Optional[ExecutionJournal] = None
        self.receipt: Optional[Receipt] = None
        self.failure: Optional[FailureRecord] = None
        self.cycles_used = 0

    @property
    def identity(self) -> ProgramIdentity:
        return self.prover.identity

    def _require(self, *states: HarnessState):
        if self.state not in states:
            expected = ", ".join(s.value for s in states)
            raise HarnessStateError(
                f"Operação inválida no estado {self.state.value} (esperado: {expected})"
            )

    def _transition(self, new_state: HarnessState):
        logger.info("Harness: %s → %s", self.state.value, new_state.value)
        self.state = new_state

    def _fail(self, stage: str, message: str, operation: str = None, index: int = None):
        self.failure = FailureRecord(stage, operation, index, message)
        # Nenhum resultado parcial sobrevive a uma falha
        self.journal = None
        self.receipt = None
        if self.witness is not None:
            self.witness = self.witness.without_secret_key()
        logger.warning("Execução falhou em %s: %s", stage, message)
        self._transition(HarnessState.FAILED)

    def assemble_witness(
        self,
        public_key: BFVPublicKey,
        ciphertexts: Sequence[Union[bytes, BFVCiphertext]],
        columns: int,
        secret_key: BFVSecretKey = None,
        strict: bool = True,
    ) -> ExecutionWitness:
        """
        Monta e valida o witness.

        Raises:
            HarnessStateError: Fora do estado IDLE
            WitnessValidationError: Entradas inválidas (a execução vai para FAILED)
        """
        self._require(HarnessState.IDLE)
        try:
            witness = assemble_witness(
                public_key,
                ciphertexts,
                columns,
                secret_key=secret_key,
                strict=strict,
                max_witness_bytes=self.max_witness_bytes,
                max_ciphertexts=self.max_ciphertexts,
            )
        except WitnessValidationError as e:
            self._fail("assemble_witness", str(e))
            raise

        self.witness = witness
        if witness.rejected:
            logger.info("%d cédulas descartadas na montagem", len(witness.rejected))
        self._transition(HarnessState.WITNESS_ASSEMBLED)
        return witness

    def execute(self) -> ExecutionJournal:
        """
        Executa o guest sobre o witness e compromete o journal.

        Raises:
            HarnessStateError: Sem witness montado
            ExecutionFault: Falha dentro do guest (a execução vai para FAILED)
        """
        self._require(HarnessState.WITNESS_ASSEMBLED)
        self._transition(HarnessState.EXECUTING)

        try:
            result = self.executor.run(self.witness.to_bytes())
        except ExecutionFault as e:
            self._fail("execute", e.message or str(e), e.operation, e.index)
            raise

        try:
            journal = ExecutionJournal.from_bytes(result.journal)
        except ProofVerificationFailure as e:
            self._fail("execute", e.reason, "commit_journal")
            raise ExecutionFault("commit_journal", None, e.reason) from e

        if journal.witness_digest != self.witness.public_digest:
            self._fail("execute", "journal não compromete o witness executado", "commit_journal")
            raise ExecutionFault("commit_journal", None, "journal não compromete o witness")

        self.journal = journal
        self.cycles_used = result.cycles_used
        # A chave secreta não sobrevive ao commit
        self.witness = self.witness.without_secret_key()
        self._transition(HarnessState.COMMITTED)
        return journal

    def prove(self) -> Receipt:
        """
        Gera o recibo do journal comprometido.

        Raises:
            HarnessStateError: Sem journal comprometido
        """
        self._require(HarnessState.COMMITTED)
        self.receipt = self.prover.prove(self.witness.public_digest, self.journal.to_bytes())
        self._transition(HarnessState.PROOF_GENERATED)
        return self.receipt

    def verify(
        self,
        program_identity: ProgramIdentity = None,
        expected_journal: Union[Sequence[int], ExecutionJournal, bytes, None] = None,
    ) -> bool:
        """
        Verifica o recibo gerado; VERIFIED em caso de sucesso, FAILED caso contrário.

        Args:
            program_identity: Identidade publicada (a do provador se None)
            expected_journal: Apurações ou journal esperados

        Returns:
            bool: Resultado da verificação
        """
        self._require(HarnessState.PROOF_GENERATED)
        if program_identity is None:
            program_identity = self.identity

        if verify(self.receipt, expected_journal, program_identity):
            self._transition(HarnessState.VERIFIED)
            return True

        self.failure = FailureRecord("verify", None, None, "recibo ou journal não conferem")
        logger.warning("Verificação do recibo falhou")
        self._transition(HarnessState.FAILED)
        return False

    def run(
        self,
        public_key: BFVPublicKey,
        ciphertexts: Sequence[Union[bytes, BFVCiphertext]],
        columns: int,
        secret_key: BFVSecretKey = None,
        strict: bool = True,
    ) -> Receipt:
        """Monta, executa e prova numa única chamada."""
        self.assemble_witness(public_key, ciphertexts, columns, secret_key, strict)
        self.execute()
        return self.prove()

    def reset(self):
        """
        Volta a IDLE para uma nova execução.

        Raises:
            HarnessStateError: Se a execução corrente não terminou
        """
        self._require(HarnessState.IDLE, HarnessState.VERIFIED, HarnessState.FAILED)
        logger.info("Harness reiniciado (estado anterior: %s)", self.state.value)
        self._clear()
