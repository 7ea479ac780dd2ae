# Pacote BFV

from .bfv import BFVCiphertext, PlaintextValue
from .constants import BFVCryptographicParameters
from .polynomial import RingPolynomial
from .ciphertext_factory import (
    BFVCiphertextFactory,
    create_bfv_factory,
)
from .key_factory import (
    BFVKeyFactory,
    BFVPublicKey,
    BFVSecretKey,
    create_key_factory,
)
from .errors import (
    BFVError,
    KeyGenerationError,
    KeyMismatchError,
    MalformedCiphertextError,
    MalformedKeyError,
    NoiseOverflowError,
    PlaintextRangeError,
)

__all__ = [
    "BFVCiphertext",
    "PlaintextValue",
    "BFVCryptographicParameters",
    "RingPolynomial",
    "BFVCiphertextFactory",
    "BFVKeyFactory",
    "BFVPublicKey",
    "BFVSecretKey",
    "create_bfv_factory",
    "create_key_factory",
    "BFVError",
    "KeyGenerationError",
    "KeyMismatchError",
    "MalformedCiphertextError",
    "MalformedKeyError",
    "NoiseOverflowError",
    "PlaintextRangeError",
]
