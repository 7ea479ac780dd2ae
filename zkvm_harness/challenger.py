"""
Desafiante externo: detentor da chave que verifica o executor.

O desafiante gera o par de chaves depois que a imagem do guest foi
publicada e nunca entrega a chave secreta. Ele cifra plaintexts aleatórios,
o executor apura sem a chave e compromete as somas cifradas, e o
desafiante confere o recibo e descriptografa as somas.
"""

import logging
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np

from bfv_core import codec
from bfv_core.ciphertext_factory import BFVCiphertextFactory
from bfv_core.constants import BFVCryptographicParameters
from bfv_core.errors import BFVError
from bfv_core.key_factory import BFVKeyFactory, BFVPublicKey

from .errors import ProofVerificationFailure
from .receipt import ProgramIdentity, Receipt
from .witness import ExecutionWitness

logger = logging.getLogger(__name__)

# Opções de voto sorteadas por ciphertext do desafio
CHALLENGE_VALUE_RANGE = (0, 3)


@dataclass(frozen=True)
class Challenge:
    """Entradas públicas de um desafio (sem os plaintexts)."""

    challenge_id: str
    public_key: BFVPublicKey
    ciphertexts: Tuple[bytes, ...]
    columns: int

    @property
    def witness_digest(self) -> str:
        """Digest que o journal do executor deve comprometer."""
        return ExecutionWitness(
            params_id=self.public_key.crypto_params.identifier,
            public_key=codec.serialize_public_key(self.public_key),
            ciphertexts=self.ciphertexts,
            columns=self.columns,
        ).public_digest


@dataclass
class VerificationResult:
    success: bool
    error: Optional[str] = None
    decrypted_results: Optional[List[int]] = None
    verification_log: List[str] = field(default_factory=list)


class Challenger:
    """
    Detentor externo da chave secreta.

    A chave secreta nunca sai desta instância: o executor recebe apenas
    a chave pública e os ciphertexts do desafio.
    """

    def __init__(
        self,
        crypto_params: BFVCryptographicParameters = None,
        rng: np.random.Generator = None,
        key_epoch: int = 0,
    ):
        if crypto_params is None:
            crypto_params = BFVCryptographicParameters()
        self.crypto_params = crypto_params
        self._rng = rng if rng is not None else crypto_params.make_rng()
        self._ciphertext_factory = BFVCiphertextFactory(crypto_params)
        self._secret_key, self.public_key = BFVKeyFactory(crypto_params).generate_keypair(
            self._rng, key_epoch
        )
        self._expected: Dict[str, List[int]] = {}
        logger.info("Desafiante criado com a chave %s", self.public_key.key_id)

    def create_challenge(self, count: int, columns: int) -> Challenge:
        """
        Cifra `count` cédulas de `columns` valores aleatórios.

        Os plaintexts ficam com o desafiante; só as somas esperadas por
        coluna são guardadas para a verificação.

        Raises:
            ValueError: Se count ou columns não forem positivos ou as somas
                não couberem no orçamento de ruído ou no módulo t
        """
        if count < 1 or columns < 1:
            raise ValueError("count e columns devem ser positivos")
        if count > self.crypto_params.max_addition_depth:
            raise ValueError(
                f"{count} cédulas excedem a profundidade de adições "
                f"{self.crypto_params.max_addition_depth}"
            )
        low, high = CHALLENGE_VALUE_RANGE
        if count * (high - 1) > self.crypto_params.signed_range()[1]:
            raise ValueError("Somas do desafio não cabem no módulo do texto claro")

        values = self._rng.integers(low, high, size=(count, columns))
        ciphertexts = [
            codec.serialize_ciphertext(
                self._ciphertext_factory.encrypt(int(v), self.public_key, self._rng)
            )
            for v in values.flatten()
        ]

        challenge_id = secrets.token_hex(8)
        self._expected[challenge_id] = [int(s) for s in values.sum(axis=0)]
        logger.info(
            "Desafio %s criado: %d cédulas × %d colunas", challenge_id, count, columns
        )
        return Challenge(
            challenge_id=challenge_id,
            public_key=self.public_key,
            ciphertexts=tuple(ciphertexts),
            columns=columns,
        )

    def verify_result(
        self, challenge: Challenge, receipt: Receipt, identity: ProgramIdentity
    ) -> VerificationResult:
        """
        Confere o recibo do executor e as somas cifradas do journal.

        A verificação é por descriptografia, nunca por igualdade de
        ciphertexts, que é aleatorizada.

        Returns:
            VerificationResult: Sucesso, erro e registro das verificações
        """
        log = []
        expected = self._expected.get(challenge.challenge_id)
        if expected is None:
            return VerificationResult(False, "Desafio desconhecido", None, ["CHALLENGE_UNKNOWN"])

        try:
            journal = receipt.verify_integrity(identity)
        except (ProofVerificationFailure, TypeError, ValueError) as e:
            logger.info("Recibo do desafio %s rejeitado: %s", challenge.challenge_id, e)
            return VerificationResult(False, f"Recibo inválido: {e}", None, ["RECEIPT_INVALID"])
        log.append("RECEIPT_VALID")

        if journal.witness_digest != challenge.witness_digest:
            log.append("WITNESS_MISMATCH")
            return VerificationResult(False, "Journal compromete outro witness", None, log)
        log.append("WITNESS_BOUND")

        if not journal.is_encrypted:
            log.append("PLAINTEXT_JOURNAL")
            return VerificationResult(
                False, "Executor publicou apurações em claro sem deter a chave", None, log
            )

        decrypted = []
        for column, hex_data in enumerate(journal.encrypted_tallies):
            try:
                ciphertext = codec.deserialize_ciphertext(
                    bytes.fromhex(hex_data), self.crypto_params, self.public_key
                )
                decrypted.append(self._ciphertext_factory.decrypt(ciphertext, self._secret_key))
            except (BFVError, ValueError) as e:
                log.append(f"COLUMN_{column}_UNDECRYPTABLE")
                return VerificationResult(
                    False, f"Coluna {column} não descriptografa: {e}", decrypted, log
                )
            log.append(f"COLUMN_{column}_DECRYPTED")

        if decrypted != expected:
            log.append("TALLY_MISMATCH")
            return VerificationResult(
                False, f"Apurações {decrypted} diferem do esperado {expected}", decrypted, log
            )

        log.append("TALLY_MATCH")
        logger.info("Desafio %s verificado: %s", challenge.challenge_id, decrypted)
        return VerificationResult(True, None, decrypted, log)
