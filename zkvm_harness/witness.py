"""
Witness de execução: as entradas privadas que o host entrega ao guest.

O witness guarda apenas bytes já validados pelo codec. A codificação
canônica é a única coisa que o guest enxerga, e o digest público (que
exclui a chave secreta) é o que o journal compromete.
"""

import hashlib
import logging
import struct
from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Tuple, Union

from bfv_core import codec
from bfv_core.bfv import BFVCiphertext
from bfv_core.errors import KeyMismatchError, MalformedCiphertextError
from bfv_core.key_factory import BFVPublicKey, BFVSecretKey

from .errors import WitnessValidationError

logger = logging.getLogger(__name__)

WITNESS_MAGIC = b"BFVW"
WITNESS_VERSION = 1

DEFAULT_MAX_WITNESS_BYTES = 16 * 1024 * 1024
DEFAULT_MAX_CIPHERTEXTS = 4096

_HEADER = struct.Struct("<4sB")
_U8 = struct.Struct("<B")
_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")


@dataclass(frozen=True)
class RejectedBallot:
    """Cédula descartada na montagem tolerante."""

    ballot: int
    position: int
    reason: str


@dataclass(frozen=True)
class ExecutionWitness:
    """
    Entradas da execução.

    Attributes:
        params_id: Identificador dos parâmetros BFV
        public_key: Chave pública serializada
        ciphertexts: Ciphertexts serializados, em ordem de cédula e coluna
        columns: Largura da apuração (ciphertexts por cédula)
        secret_key: Chave secreta serializada, só quando o executor é o detentor
        rejected: Cédulas descartadas na montagem (fora da codificação)
    """

    params_id: str
    public_key: bytes
    ciphertexts: Tuple[bytes, ...]
    columns: int
    secret_key: Optional[bytes] = None
    rejected: Tuple[RejectedBallot, ...] = field(default=(), compare=False)

    @property
    def ballot_count(self) -> int:
        return len(self.ciphertexts) // self.columns

    @property
    def has_secret_key(self) -> bool:
        return self.secret_key is not None

    def to_bytes(self, include_secret_key: bool = True) -> bytes:
        """Codificação canônica consumida pelo guest."""
        params_id = self.params_id.encode("utf-8")
        parts = [
            _HEADER.pack(WITNESS_MAGIC, WITNESS_VERSION),
            _U16.pack(len(params_id)),
            params_id,
            _U32.pack(self.columns),
            _U32.pack(len(self.public_key)),
            self.public_key,
            _U32.pack(len(self.ciphertexts)),
        ]
        for data in self.ciphertexts:
            parts.append(_U32.pack(len(data)))
            parts.append(data)

        if include_secret_key and self.secret_key is not None:
            parts.append(_U8.pack(1))
            parts.append(_U32.pack(len(self.secret_key)))
            parts.append(self.secret_key)
        else:
            parts.append(_U8.pack(0))
        return b"".join(parts)

    @property
    def public_digest(self) -> str:
        """SHA-256 de tudo exceto a chave secreta."""
        return hashlib.sha256(self.to_bytes(include_secret_key=False)).hexdigest()

    def without_secret_key(self) -> "ExecutionWitness":
        return replace(self, secret_key=None)

    @classmethod
    def from_bytes(
        cls, data: bytes, max_ciphertexts: int = DEFAULT_MAX_CIPHERTEXTS
    ) -> "ExecutionWitness":
        """
        Decodifica a codificação canônica.

        Raises:
            WitnessValidationError: Estrutura truncada, excedente ou acima dos limites
        """
        view = memoryview(data)
        offset = 0

        def take(size):
            nonlocal offset
            if offset + size > len(view):
                raise WitnessValidationError(f"Witness truncado na posição {offset}")
            chunk = view[offset:offset + size]
            offset += size
            return chunk

        def unpack(layout):
            return layout.unpack(take(layout.size))

        magic, version = unpack(_HEADER)
        if magic != WITNESS_MAGIC or version != WITNESS_VERSION:
            raise WitnessValidationError("Cabeçalho de witness inválido")

        (id_len,) = unpack(_U16)
        try:
            params_id = bytes(take(id_len)).decode("utf-8")
        except UnicodeDecodeError as e:
            raise WitnessValidationError("Identificador de parâmetros inválido") from e

        (columns,) = unpack(_U32)
        if columns < 1:
            raise WitnessValidationError("Witness sem colunas")

        (pk_len,) = unpack(_U32)
        public_key = bytes(take(pk_len))

        (count,) = unpack(_U32)
        if count > max_ciphertexts:
            raise WitnessValidationError(
                f"Witness declara {count} ciphertexts, limite {max_ciphertexts}"
            )
        ciphertexts = []
        for _ in range(count):
            (ct_len,) = unpack(_U32)
            ciphertexts.append(bytes(take(ct_len)))

        (flag,) = unpack(_U8)
        secret_key = None
        if flag == 1:
            (sk_len,) = unpack(_U32)
            secret_key = bytes(take(sk_len))
        elif flag != 0:
            raise WitnessValidationError(f"Marcador de chave secreta inválido: {flag}")

        if offset != len(view):
            raise WitnessValidationError("Bytes excedentes após o witness")

        return cls(
            params_id=params_id,
            public_key=public_key,
            ciphertexts=tuple(ciphertexts),
            columns=columns,
            secret_key=secret_key,
        )

    def __repr__(self) -> str:
        return (
            f"ExecutionWitness(params={self.params_id}, ciphertexts={len(self.ciphertexts)}, "
            f"columns={self.columns}, secret_key={'sim' if self.has_secret_key else 'não'})"
        )


def _canonical_ciphertext(
    item: Union[bytes, BFVCiphertext], public_key: BFVPublicKey
) -> bytes:
    """Valida um item pelo codec e devolve seus bytes canônicos."""
    if isinstance(item, BFVCiphertext):
        if item.crypto_params != public_key.crypto_params:
            raise MalformedCiphertextError("Ciphertext usa parâmetros diferentes da chave")
        try:
            item = codec.serialize_ciphertext(item)
        except ValueError as e:
            raise MalformedCiphertextError(f"Ciphertext não serializável: {e}") from e

    codec.deserialize_ciphertext(item, public_key.crypto_params, public_key)
    return bytes(item)


def assemble_witness(
    public_key: BFVPublicKey,
    ciphertexts: Sequence[Union[bytes, BFVCiphertext]],
    columns: int,
    secret_key: BFVSecretKey = None,
    strict: bool = True,
    max_witness_bytes: int = DEFAULT_MAX_WITNESS_BYTES,
    max_ciphertexts: int = DEFAULT_MAX_CIPHERTEXTS,
) -> ExecutionWitness:
    """
    Monta o witness decodificando cada ciphertext com o codec.

    Args:
        public_key: Chave pública da época
        ciphertexts: Ciphertexts (bytes ou objetos) em ordem de cédula
        columns: Número de ciphertexts por cédula
        secret_key: Chave secreta, se o executor for o detentor
        strict: Falha no primeiro item inválido; senão descarta cédulas inteiras
        max_witness_bytes: Tamanho máximo da codificação
        max_ciphertexts: Número máximo de ciphertexts

    Returns:
        ExecutionWitness: Witness com os bytes canônicos

    Raises:
        WitnessValidationError: Entradas inválidas ou acima dos limites
    """
    if isinstance(columns, bool) or not isinstance(columns, int) or columns < 1:
        raise WitnessValidationError(f"columns deve ser inteiro >= 1, recebido: {columns!r}")

    items = list(ciphertexts)
    if len(items) > max_ciphertexts:
        raise WitnessValidationError(
            f"{len(items)} ciphertexts excedem o limite de {max_ciphertexts}"
        )

    if secret_key is not None and secret_key.key_id != public_key.key_id:
        raise WitnessValidationError(
            f"Chave secreta {secret_key.key_id} não pertence à chave pública {public_key.key_id}"
        )

    accepted = []
    rejected = []
    for ballot, start in enumerate(range(0, len(items), columns)):
        row = items[start:start + columns]
        canonical = []
        failure = None

        if len(row) != columns:
            failure = (start + len(row), f"cédula incompleta: {len(row)} de {columns} ciphertexts")
        else:
            for position, item in enumerate(row, start):
                try:
                    canonical.append(_canonical_ciphertext(item, public_key))
                except (MalformedCiphertextError, KeyMismatchError) as e:
                    if strict:
                        raise WitnessValidationError(
                            f"Cédula {ballot}, ciphertext {position}: {e}"
                        ) from e
                    failure = (position, str(e))
                    break

        if failure is not None:
            position, reason = failure
            if strict:
                raise WitnessValidationError(f"Cédula {ballot}, ciphertext {position}: {reason}")
            logger.debug("Cédula %d descartada: %s", ballot, reason)
            rejected.append(RejectedBallot(ballot, position, reason))
            continue

        accepted.extend(canonical)

    if not accepted:
        raise WitnessValidationError("Nenhuma cédula válida para apurar")

    witness = ExecutionWitness(
        params_id=public_key.crypto_params.identifier,
        public_key=codec.serialize_public_key(public_key),
        ciphertexts=tuple(accepted),
        columns=columns,
        secret_key=codec.serialize_secret_key(secret_key) if secret_key is not None else None,
        rejected=tuple(rejected),
    )

    size = len(witness.to_bytes())
    if size > max_witness_bytes:
        raise WitnessValidationError(
            f"Witness com {size} bytes excede o limite de {max_witness_bytes}"
        )

    logger.debug(
        "Witness montado: %d cédulas aceitas, %d descartadas, %d bytes",
        witness.ballot_count,
        len(rejected),
        size,
    )
    return witness
