# Harness de execução verificável

from .challenger import Challenge, Challenger, VerificationResult
from .errors import (
    ExecutionFault,
    HarnessError,
    HarnessStateError,
    ProofVerificationFailure,
    WitnessValidationError,
)
from .executor import GuestExecutor
from .harness import FailureRecord, HarnessState, VerifiableExecutionHarness
from .host import TallyBatch, TallyOutcome, run_many, run_tally
from .journal import ExecutionJournal
from .receipt import ProgramIdentity, Prover, Receipt, compute_image_id, verify
from .witness import ExecutionWitness, RejectedBallot, assemble_witness

__all__ = [
    "Challenge",
    "Challenger",
    "VerificationResult",
    "ExecutionFault",
    "HarnessError",
    "HarnessStateError",
    "ProofVerificationFailure",
    "WitnessValidationError",
    "GuestExecutor",
    "FailureRecord",
    "HarnessState",
    "VerifiableExecutionHarness",
    "TallyBatch",
    "TallyOutcome",
    "run_many",
    "run_tally",
    "ExecutionJournal",
    "ProgramIdentity",
    "Prover",
    "Receipt",
    "compute_image_id",
    "verify",
    "ExecutionWitness",
    "RejectedBallot",
    "assemble_witness",
]
