"""
Codec binário para ciphertexts e chaves BFV.

Formato little-endian com cabeçalho fixo e vetores de coeficientes
prefixados pelo comprimento (u32 + comprimento × u64):

- ciphertext: b"BFVC" | versão u8 | key_id 8 bytes | noise_bound u64 | c0 | c1
- chave pública: b"BFVP" | versão u8 | época u32 | b | a
- chave secreta: b"BFVS" | versão u8 | key_id 8 bytes | s (u32 + N × i8)

O comprimento declarado é comparado com N antes de qualquer leitura ou
alocação do vetor, então um campo de tamanho adulterado nunca dimensiona
um buffer.
"""

import struct

import numpy as np

from .bfv import BFVCiphertext
from .constants import BFVCryptographicParameters
from .errors import KeyMismatchError, MalformedCiphertextError, MalformedKeyError
from .key_factory import BFVPublicKey, BFVSecretKey
from .polynomial import RingPolynomial

CODEC_VERSION = 1

CIPHERTEXT_MAGIC = b"BFVC"
PUBLIC_KEY_MAGIC = b"BFVP"
SECRET_KEY_MAGIC = b"BFVS"

_HEADER = struct.Struct("<4sB")
_LENGTH = struct.Struct("<I")
_U64 = struct.Struct("<Q")
_U32 = struct.Struct("<I")
_KEY_ID_BYTES = 8


class _Reader:
    """Cursor sobre um buffer que falha com a exceção configurada."""

    def __init__(self, data: bytes, error_cls):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise error_cls(f"Entrada deve ser bytes, recebido: {type(data)}")
        self.view = memoryview(data)
        self.offset = 0
        self.error_cls = error_cls

    def take(self, size: int) -> memoryview:
        end = self.offset + size
        if end > len(self.view):
            raise self.error_cls(
                f"Entrada truncada: esperado {size} bytes na posição {self.offset}, "
                f"restam {len(self.view) - self.offset}"
            )
        chunk = self.view[self.offset:end]
        self.offset = end
        return chunk

    def unpack(self, layout: struct.Struct):
        return layout.unpack(self.take(layout.size))

    def header(self, magic: bytes):
        found_magic, version = self.unpack(_HEADER)
        if found_magic != magic:
            raise self.error_cls(f"Assinatura inválida: {found_magic!r}, esperado {magic!r}")
        if version != CODEC_VERSION:
            raise self.error_cls(f"Versão de codec não suportada: {version}")

    def length(self, expected: int) -> int:
        (declared,) = self.unpack(_LENGTH)
        if declared != expected:
            raise self.error_cls(
                f"Comprimento declarado {declared} difere da dimensão do anel {expected}"
            )
        return declared

    def finish(self):
        if self.offset != len(self.view):
            raise self.error_cls(
                f"{len(self.view) - self.offset} bytes excedentes após o fim da estrutura"
            )


def _write_poly(poly: RingPolynomial) -> bytes:
    return _LENGTH.pack(poly.ring_dimension) + poly.coef.astype("<u8").tobytes()


def _read_poly(reader: _Reader, crypto_params: BFVCryptographicParameters) -> RingPolynomial:
    n = reader.length(crypto_params.POLYNOMIAL_DEGREE)
    raw = reader.take(n * _U64.size)
    values = np.frombuffer(raw, dtype="<u8")

    q = crypto_params.CIPHERTEXT_MODULUS
    if np.any(values >= q):
        raise reader.error_cls(f"Coeficiente fora do intervalo [0, {q})")
    return RingPolynomial(values.astype(np.int64), q, n)


def _key_id_bytes(key_id: str) -> bytes:
    raw = bytes.fromhex(key_id)
    if len(raw) != _KEY_ID_BYTES:
        raise ValueError(f"key_id deve ter {_KEY_ID_BYTES} bytes, recebido: {key_id}")
    return raw


# === CIPHERTEXTS ===
def serialize_ciphertext(ciphertext: BFVCiphertext) -> bytes:
    """
    Serializa um ciphertext no formato de transmissão.

    Returns:
        bytes: Representação canônica do ciphertext
    """
    parts = [
        _HEADER.pack(CIPHERTEXT_MAGIC, CODEC_VERSION),
        _key_id_bytes(ciphertext.key_id),
        _U64.pack(ciphertext.noise_bound),
    ]
    parts.extend(_write_poly(comp) for comp in ciphertext.components)
    return b"".join(parts)


def deserialize_ciphertext(
    data: bytes,
    crypto_params: BFVCryptographicParameters,
    expected_public_key: BFVPublicKey = None,
) -> BFVCiphertext:
    """
    Reconstrói um ciphertext validando toda a estrutura.

    Args:
        data: Bytes recebidos
        crypto_params: Parâmetros esperados
        expected_public_key: Se fornecida, o key_id do ciphertext deve coincidir

    Returns:
        BFVCiphertext: Ciphertext reconstruído

    Raises:
        MalformedCiphertextError: Entrada truncada, excedente ou inválida
        KeyMismatchError: Ciphertext produzido sob outra chave pública
    """
    reader = _Reader(data, MalformedCiphertextError)
    reader.header(CIPHERTEXT_MAGIC)
    key_id = bytes(reader.take(_KEY_ID_BYTES)).hex()
    (noise_bound,) = reader.unpack(_U64)
    c0 = _read_poly(reader, crypto_params)
    c1 = _read_poly(reader, crypto_params)
    reader.finish()

    if expected_public_key is not None and key_id != expected_public_key.key_id:
        raise KeyMismatchError(
            f"Ciphertext sob a chave {key_id}, esperado {expected_public_key.key_id}"
        )

    # Nenhum ciphertext válido tem ruído menor que o de uma cifragem nova
    noise_bound = max(noise_bound, crypto_params.fresh_noise_bound)

    return BFVCiphertext(
        components=[c0, c1],
        key_id=key_id,
        noise_bound=noise_bound,
        crypto_params=crypto_params,
    )


# === CHAVES ===
def serialize_public_key(public_key: BFVPublicKey) -> bytes:
    return b"".join(
        [
            _HEADER.pack(PUBLIC_KEY_MAGIC, CODEC_VERSION),
            _U32.pack(public_key.key_epoch),
            _write_poly(public_key.b),
            _write_poly(public_key.a),
        ]
    )


def deserialize_public_key(
    data: bytes, crypto_params: BFVCryptographicParameters
) -> BFVPublicKey:
    """
    Reconstrói uma chave pública; o key_id é recalculado a partir do conteúdo.

    Raises:
        MalformedKeyError: Entrada truncada, excedente ou inválida
    """
    reader = _Reader(data, MalformedKeyError)
    reader.header(PUBLIC_KEY_MAGIC)
    (key_epoch,) = reader.unpack(_U32)
    b = _read_poly(reader, crypto_params)
    a = _read_poly(reader, crypto_params)
    reader.finish()
    return BFVPublicKey(b, a, crypto_params, key_epoch)


def serialize_secret_key(secret_key: BFVSecretKey) -> bytes:
    return b"".join(
        [
            _HEADER.pack(SECRET_KEY_MAGIC, CODEC_VERSION),
            _key_id_bytes(secret_key.key_id),
            _LENGTH.pack(secret_key.s.ring_dimension),
            secret_key.s.centered().astype("i1").tobytes(),
        ]
    )


def deserialize_secret_key(
    data: bytes, crypto_params: BFVCryptographicParameters
) -> BFVSecretKey:
    """
    Reconstrói a chave secreta.

    Raises:
        MalformedKeyError: Entrada inválida ou coeficientes fora de {-1, 0, 1}
    """
    reader = _Reader(data, MalformedKeyError)
    reader.header(SECRET_KEY_MAGIC)
    key_id = bytes(reader.take(_KEY_ID_BYTES)).hex()
    n = reader.length(crypto_params.POLYNOMIAL_DEGREE)
    values = np.frombuffer(reader.take(n), dtype="i1").astype(np.int64)
    reader.finish()

    if np.any(np.abs(values) > 1):
        raise MalformedKeyError("Chave secreta deve ter coeficientes em {-1, 0, 1}")

    s = RingPolynomial.from_signed(values, crypto_params.CIPHERTEXT_MODULUS)
    return BFVSecretKey(s, crypto_params, key_id)
