"""
Orquestração no host: execuções completas e execuções concorrentes.

Cada execução usa seu próprio harness; execuções não compartilham estado
mutável. Os tempos limite ficam no host, o guest só conhece o orçamento
de ciclos.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from bfv_core.bfv import BFVCiphertext
from bfv_core.key_factory import BFVPublicKey, BFVSecretKey

from .errors import HarnessError
from .executor import DEFAULT_MAX_CYCLES, GuestExecutor
from .harness import FailureRecord, HarnessState, VerifiableExecutionHarness
from .journal import ExecutionJournal
from .receipt import Prover, Receipt
from .witness import RejectedBallot

logger = logging.getLogger(__name__)


@dataclass
class TallyBatch:
    """Entradas de uma execução independente."""

    public_key: BFVPublicKey
    ciphertexts: Sequence[Union[bytes, BFVCiphertext]]
    columns: int
    secret_key: Optional[BFVSecretKey] = None
    expected_tallies: Optional[Sequence[int]] = None
    strict: bool = True


@dataclass
class TallyOutcome:
    success: bool
    state: HarnessState
    journal: Optional[ExecutionJournal] = None
    receipt: Optional[Receipt] = None
    failure: Optional[FailureRecord] = None
    rejected: List[RejectedBallot] = field(default_factory=list)
    cycles_used: int = 0
    error: Optional[str] = None

    @property
    def tallies(self) -> Optional[List[int]]:
        if self.journal is None or self.journal.tallies is None:
            return None
        return list(self.journal.tallies)


def run_tally(
    public_key: BFVPublicKey,
    ciphertexts: Sequence[Union[bytes, BFVCiphertext]],
    columns: int,
    secret_key: BFVSecretKey = None,
    expected_tallies: Sequence[int] = None,
    strict: bool = True,
    prover: Prover = None,
    max_cycles: int = DEFAULT_MAX_CYCLES,
) -> TallyOutcome:
    """
    Executa uma apuração completa: witness, execução, recibo e verificação.

    Falhas de witness e de execução viram um TallyOutcome sem sucesso com o
    registro da falha do harness.

    Returns:
        TallyOutcome: Resultado da execução
    """
    harness = VerifiableExecutionHarness(
        prover=prover, executor=GuestExecutor(max_cycles=max_cycles)
    )
    try:
        witness = harness.assemble_witness(public_key, ciphertexts, columns, secret_key, strict)
        harness.execute()
        harness.prove()
    except HarnessError as e:
        return TallyOutcome(
            success=False,
            state=harness.state,
            failure=harness.failure,
            error=str(e),
        )

    verified = harness.verify(expected_journal=expected_tallies)
    return TallyOutcome(
        success=verified,
        state=harness.state,
        journal=harness.journal,
        receipt=harness.receipt,
        failure=harness.failure,
        rejected=list(witness.rejected),
        cycles_used=harness.cycles_used,
    )


def _run_batch(batch: TallyBatch, prover: Prover, max_cycles: int) -> TallyOutcome:
    return run_tally(
        batch.public_key,
        batch.ciphertexts,
        batch.columns,
        secret_key=batch.secret_key,
        expected_tallies=batch.expected_tallies,
        strict=batch.strict,
        prover=prover,
        max_cycles=max_cycles,
    )


def run_many(
    batches: Sequence[TallyBatch],
    max_workers: int = 4,
    timeout: float = None,
    prover: Prover = None,
    max_cycles: int = DEFAULT_MAX_CYCLES,
) -> List[TallyOutcome]:
    """
    Executa apurações independentes em paralelo.

    Args:
        batches: Entradas de cada execução
        max_workers: Número de threads
        timeout: Tempo limite total em segundos (sem limite se None)
        prover: Provador compartilhado (um novo se None)
        max_cycles: Orçamento de ciclos de cada execução

    Returns:
        List[TallyOutcome]: Resultados na mesma ordem das entradas
    """
    if prover is None:
        prover = Prover()

    deadline = None if timeout is None else time.monotonic() + timeout
    pool = ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [pool.submit(_run_batch, batch, prover, max_cycles) for batch in batches]
        outcomes = []
        for i, future in enumerate(futures):
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                outcomes.append(future.result(timeout=remaining))
            except FutureTimeoutError:
                future.cancel()
                logger.warning("Execução %d excedeu o tempo limite de %ss", i, timeout)
                outcomes.append(
                    TallyOutcome(
                        success=False,
                        state=HarnessState.FAILED,
                        error=f"tempo limite de {timeout}s excedido",
                    )
                )
    finally:
        pool.shutdown(wait=deadline is None, cancel_futures=True)

    logger.info(
        "%d de %d execuções verificadas", sum(o.success for o in outcomes), len(outcomes)
    )
    return outcomes
