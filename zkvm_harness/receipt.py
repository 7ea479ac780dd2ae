"""
Recibos de execução: prova de que um journal saiu de um programa e witness.

O selo é uma assinatura ECDSA (P-256 / SHA-256) sobre o digest da
afirmação

    claim = SHA-256(image_id ‖ witness_digest ‖ SHA-256(journal))

feita pela chave do provador registrada na identidade do programa.
"""

import base64
import hashlib
import inspect
import logging
from dataclasses import dataclass
from types import ModuleType
from typing import Sequence, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from bfv_core import bfv, ciphertext_factory, codec, constants, key_factory, polynomial
from bfv_core import errors as bfv_errors

from . import errors as harness_errors
from . import guest
from . import journal as journal_module
from . import witness as witness_module
from .errors import ProofVerificationFailure
from .journal import ExecutionJournal

logger = logging.getLogger(__name__)


# Módulos executados pelo guest, na ordem em que entram no image_id
GUEST_IMAGE_MODULES = (
    guest,
    witness_module,
    journal_module,
    codec,
    ciphertext_factory,
    key_factory,
    bfv,
    constants,
    polynomial,
    bfv_errors,
    harness_errors,
)


def compute_image_id(
    program_modules: Sequence[ModuleType] = GUEST_IMAGE_MODULES,
    version: str = guest.GUEST_PROGRAM_VERSION,
) -> str:
    """SHA-256 da versão e do código fonte de todos os módulos do guest."""
    digest = hashlib.sha256()
    digest.update(version.encode("utf-8"))
    for module in program_modules:
        source = inspect.getsource(module).encode("utf-8")
        digest.update(b"\x00")
        digest.update(module.__name__.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(len(source).to_bytes(8, "little"))
        digest.update(source)
    return digest.hexdigest()


def compute_claim_digest(image_id: str, witness_digest: str, journal: bytes) -> str:
    try:
        image = bytes.fromhex(image_id)
        witness = bytes.fromhex(witness_digest)
    except (TypeError, ValueError) as e:
        raise ProofVerificationFailure(f"Digest não hexadecimal: {e}") from e
    return hashlib.sha256(image + witness + hashlib.sha256(journal).digest()).hexdigest()


@dataclass(frozen=True)
class ProgramIdentity:
    """Identidade publicada: imagem do guest e chave de verificação do provador."""

    image_id: str
    verifying_key_pem: str

    def verifying_key(self) -> ec.EllipticCurvePublicKey:
        try:
            key = serialization.load_pem_public_key(
                self.verifying_key_pem.encode("utf-8"), backend=default_backend()
            )
        except (ValueError, TypeError) as e:
            raise ProofVerificationFailure(f"Chave de verificação inválida: {e}") from e
        if not isinstance(key, ec.EllipticCurvePublicKey):
            raise ProofVerificationFailure("Chave de verificação não é de curva elíptica")
        return key


@dataclass(frozen=True)
class Receipt:
    """
    Prova imutável de uma execução.

    Attributes:
        image_id: Identificador do programa guest
        journal: Bytes canônicos do journal
        witness_digest: Digest público do witness
        claim_digest: Digest da afirmação assinada
        seal: Assinatura DER do provador
    """

    image_id: str
    journal: bytes
    witness_digest: str
    claim_digest: str
    seal: bytes

    def decode_journal(self) -> ExecutionJournal:
        return ExecutionJournal.from_bytes(self.journal)

    def verify_integrity(self, identity: ProgramIdentity) -> ExecutionJournal:
        """
        Confere imagem, afirmação, vínculo do witness e selo.

        Returns:
            ExecutionJournal: Journal decodificado

        Raises:
            ProofVerificationFailure: Com o motivo da falha
        """
        if self.image_id != identity.image_id:
            raise ProofVerificationFailure(
                f"image_id {self.image_id[:16]} difere do programa publicado "
                f"{identity.image_id[:16]}"
            )

        expected_claim = compute_claim_digest(self.image_id, self.witness_digest, self.journal)
        if self.claim_digest != expected_claim:
            raise ProofVerificationFailure("Digest da afirmação não confere com o conteúdo")

        journal = self.decode_journal()
        if journal.witness_digest != self.witness_digest:
            raise ProofVerificationFailure("Journal compromete outro witness")

        try:
            identity.verifying_key().verify(
                self.seal, bytes.fromhex(self.claim_digest), ec.ECDSA(hashes.SHA256())
            )
        except InvalidSignature as e:
            raise ProofVerificationFailure("Selo inválido para a chave do provador") from e
        return journal

    def to_dict(self) -> dict:
        return {
            "image_id": self.image_id,
            "journal": base64.b64encode(self.journal).decode("utf-8"),
            "witness_digest": self.witness_digest,
            "claim_digest": self.claim_digest,
            "seal": base64.b64encode(self.seal).decode("utf-8"),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Receipt":
        return cls(
            image_id=d["image_id"],
            journal=base64.b64decode(d["journal"]),
            witness_digest=d["witness_digest"],
            claim_digest=d["claim_digest"],
            seal=base64.b64decode(d["seal"]),
        )


class Prover:
    """
    Provador: assina afirmações de execução do programa guest.

    Cada provador tem um par ECDSA:
    - Chave privada: fica com o provador
    - Chave pública: publicada na ProgramIdentity para os verificadores
    """

    def __init__(self, private_key: ec.EllipticCurvePrivateKey = None, image_id: str = None):
        if private_key is None:
            private_key = ec.generate_private_key(ec.SECP256R1(), default_backend())
        self.private_key = private_key
        self.image_id = image_id or compute_image_id()

    @property
    def identity(self) -> ProgramIdentity:
        pem = self.private_key.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        return ProgramIdentity(image_id=self.image_id, verifying_key_pem=pem.decode("utf-8"))

    def prove(self, witness_digest: str, journal: bytes) -> Receipt:
        """
        Gera o recibo de uma execução.

        Args:
            witness_digest: Digest público do witness executado
            journal: Bytes do journal comprometido

        Returns:
            Receipt: Recibo assinado
        """
        claim_digest = compute_claim_digest(self.image_id, witness_digest, journal)
        seal = self.private_key.sign(bytes.fromhex(claim_digest), ec.ECDSA(hashes.SHA256()))
        logger.debug("Recibo emitido para a afirmação %s", claim_digest[:16])
        return Receipt(
            image_id=self.image_id,
            journal=bytes(journal),
            witness_digest=witness_digest,
            claim_digest=claim_digest,
            seal=seal,
        )


def _journal_matches(journal: ExecutionJournal, expected) -> bool:
    if expected is None:
        return True
    if isinstance(expected, ExecutionJournal):
        return journal.to_bytes() == expected.to_bytes()
    if isinstance(expected, (bytes, bytearray)):
        return journal.to_bytes() == bytes(expected)
    if journal.tallies is None:
        return False
    try:
        return list(journal.tallies) == list(expected)
    except TypeError:
        return False


def verify(
    proof: Receipt,
    expected_journal: Union[Sequence[int], ExecutionJournal, bytes, None],
    program_identity: ProgramIdentity,
) -> bool:
    """
    Verificação pura de um recibo; nunca lança exceção para provas inválidas.

    Args:
        proof: Recibo a verificar
        expected_journal: Apurações esperadas, journal esperado ou None
        program_identity: Identidade publicada do programa

    Returns:
        bool: True se o recibo é válido e o journal é o esperado
    """
    if not isinstance(proof, Receipt) or not isinstance(program_identity, ProgramIdentity):
        return False
    try:
        journal = proof.verify_integrity(program_identity)
    except (ProofVerificationFailure, TypeError, ValueError) as e:
        # Campos com tipos adulterados também invalidam o recibo
        logger.info("Recibo rejeitado: %s", e)
        return False

    if not _journal_matches(journal, expected_journal):
        logger.info("Journal do recibo difere do esperado")
        return False
    return True
