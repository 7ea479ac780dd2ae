"""
Hierarquia de exceções do esquema BFV.

Os erros de validação também herdam de ValueError, para que chamadores que
já tratam ValueError (padrão usado nas fábricas) continuem funcionando.
"""


class BFVError(Exception):
    """Erro base para todas as falhas do esquema BFV."""


class PlaintextRangeError(BFVError, ValueError):
    """Plaintext fora do intervalo (-t/2, t/2] definido pelo módulo t."""


class MalformedCiphertextError(BFVError, ValueError):
    """Bytes de ciphertext com tamanho ou formato inválido."""


class MalformedKeyError(MalformedCiphertextError):
    """Bytes de chave (pública ou secreta) com tamanho ou formato inválido."""


class KeyMismatchError(BFVError, ValueError):
    """Ciphertexts ou chaves de pares de chaves diferentes foram combinados."""


class NoiseOverflowError(BFVError):
    """
    O ruído acumulado excedeu o orçamento e a descriptografia não é confiável.

    Não é recuperável: é preciso recriptografar entradas novas.
    """


class KeyGenerationError(BFVError):
    """A fonte de aleatoriedade não forneceu entropia suficiente."""
