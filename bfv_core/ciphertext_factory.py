"""
Fábrica para criação e manipulação de ciphertexts BFV.

Esta classe fornece uma interface de alto nível para operações
de codificação, criptografia e descriptografia no esquema BFV.
"""

from typing import Iterable, List, Union

import numpy as np

from .bfv import BFVCiphertext, PlaintextValue
from .constants import BFVCryptographicParameters
from .errors import KeyMismatchError, NoiseOverflowError
from .key_factory import BFVPublicKey, BFVSecretKey
from .polynomial import RingPolynomial, mod_centered


class BFVCiphertextFactory:
    """
    Fábrica para criação e manipulação de ciphertexts BFV.

    Esta classe encapsula a codificação de inteiros com sinal no termo
    constante, a criptografia com chave pública e a descriptografia com
    detecção de estouro de ruído.
    """

    def __init__(self, crypto_params: BFVCryptographicParameters = None):
        """
        Inicializa a fábrica com parâmetros criptográficos.

        Args:
            crypto_params: Parâmetros criptográficos BFV (usa padrão se None)
        """
        if crypto_params is None:
            crypto_params = BFVCryptographicParameters()

        self.crypto_params = crypto_params

    def encode_plaintext(self, value: Union[int, PlaintextValue]) -> RingPolynomial:
        """
        Codifica um inteiro como Δ·(m mod t) no coeficiente constante.

        Raises:
            PlaintextRangeError: Se o valor estiver fora de (-t/2, t/2]
        """
        if not isinstance(value, PlaintextValue):
            value = PlaintextValue(value, self.crypto_params)

        coeffs = np.zeros(self.crypto_params.POLYNOMIAL_DEGREE, dtype=np.int64)
        coeffs[0] = self.crypto_params.SCALING_FACTOR * value.residue
        return self.crypto_params.make_poly(coeffs)

    def encrypt(
        self,
        value: Union[int, PlaintextValue],
        public_key: BFVPublicKey,
        rng: np.random.Generator = None,
    ) -> BFVCiphertext:
        """
        Criptografa um inteiro usando a chave pública seguindo o esquema BFV.

        Conforme a definição:
        - Encryption: ct = (pk_b * u + e1 + Δm, pk_a * u + e2)
        onde u ← χ_ternário, e1, e2 ← DG(σ²)

        Args:
            value: Plaintext com sinal
            public_key: Chave pública (pk_b, pk_a)
            rng: Gerador de números aleatórios (entropia do sistema se None)

        Returns:
            BFVCiphertext: Ciphertext resultante

        Raises:
            PlaintextRangeError: Se o valor estiver fora do intervalo
            ValueError: Se a chave pública usar outros parâmetros
        """
        # O plaintext é validado antes de qualquer amostragem
        message_poly = self.encode_plaintext(value)

        if public_key.crypto_params != self.crypto_params:
            raise ValueError("Chave pública usa parâmetros diferentes da fábrica")

        if rng is None:
            rng = self.crypto_params.make_rng()

        pk_b, pk_a = public_key

        # Sample u ← χ_ternário, e1, e2 ← DG(σ²)
        u = self.crypto_params.generate_ternary_poly(rng)
        e1 = self.crypto_params.generate_gaussian_poly(rng)
        e2 = self.crypto_params.generate_gaussian_poly(rng)

        # c0 = pk_b*u + e1 + Δm (mod q)
        c0 = pk_b * u + e1 + message_poly

        # c1 = pk_a*u + e2 (mod q)
        c1 = pk_a * u + e2

        return BFVCiphertext(
            components=[c0, c1],
            key_id=public_key.key_id,
            noise_bound=self.crypto_params.fresh_noise_bound,
            crypto_params=self.crypto_params,
        )

    def encrypt_many(
        self,
        values: Iterable[int],
        public_key: BFVPublicKey,
        rng: np.random.Generator = None,
    ) -> List[BFVCiphertext]:
        """Criptografa uma sequência de valores compartilhando o mesmo gerador."""
        if rng is None:
            rng = self.crypto_params.make_rng()
        return [self.encrypt(value, public_key, rng) for value in values]

    def _phase(self, ciphertext: BFVCiphertext, secret_key: BFVSecretKey) -> np.ndarray:
        """v = c0 + c1·s (mod q), na representação centrada."""
        if ciphertext.crypto_params != self.crypto_params:
            raise ValueError("Ciphertext usa parâmetros diferentes da fábrica")
        if secret_key.key_id != ciphertext.key_id:
            raise KeyMismatchError(
                f"Chave secreta {secret_key.key_id} não corresponde ao "
                f"ciphertext {ciphertext.key_id}"
            )

        c0, c1 = ciphertext.components
        return (c0 + c1 * secret_key.s).centered()

    def decrypt(self, ciphertext: BFVCiphertext, secret_key: BFVSecretKey) -> int:
        """
        Descriptografa um ciphertext e decodifica o inteiro com sinal.

        Conforme a definição:
        - Decryption: m = ⌊(c0 + c1·s)/Δ⌉ mod t

        Args:
            ciphertext: Ciphertext a ser descriptografado
            secret_key: Chave secreta correspondente

        Returns:
            int: Plaintext em (-t/2, t/2]

        Raises:
            KeyMismatchError: Se a chave secreta não for a do ciphertext
            NoiseOverflowError: Se o orçamento de ruído foi esgotado ou o
                resultado não for uma codificação válida de plaintext
        """
        if ciphertext.noise_bound >= self.crypto_params.noise_budget:
            raise NoiseOverflowError(
                f"Limite de ruído {ciphertext.noise_bound} atingiu o orçamento "
                f"{self.crypto_params.noise_budget}; descriptografia não é confiável"
            )

        delta = self.crypto_params.SCALING_FACTOR
        t = self.crypto_params.PLAINTEXT_MODULUS
        v = self._phase(ciphertext, secret_key)

        # Coeficiente exatamente no meio de dois múltiplos de Δ: arredondamento ambíguo
        if delta % 2 == 0 and np.any(np.mod(v, delta) == delta // 2):
            raise NoiseOverflowError("Coeficiente em empate de arredondamento")

        rounded = np.floor_divide(v + delta // 2, delta)
        decoded = np.mod(rounded, t)

        if np.any(decoded[1:] != 0):
            raise NoiseOverflowError(
                "Coeficientes não constantes não decodificam para zero; "
                "ruído excedido ou chave incorreta"
            )

        return int(mod_centered(int(decoded[0]), t))

    def decrypt_many(
        self, ciphertexts: Iterable[BFVCiphertext], secret_key: BFVSecretKey
    ) -> List[int]:
        return [self.decrypt(ct, secret_key) for ct in ciphertexts]

    def measure_noise(self, ciphertext: BFVCiphertext, secret_key: BFVSecretKey) -> int:
        """
        Mede o ruído real ||v − Δ·m||∞ (diagnóstico, requer a chave secreta).

        Returns:
            int: Norma infinito do ruído
        """
        delta = self.crypto_params.SCALING_FACTOR
        q = self.crypto_params.CIPHERTEXT_MODULUS
        v = self._phase(ciphertext, secret_key)

        rounded = np.floor_divide(v + delta // 2, delta)
        noise = np.mod(v - rounded * delta, q)
        return RingPolynomial(noise, q).infinity_norm()


# Função de conveniência para criar instância da fábrica
def create_bfv_factory(
    crypto_params: BFVCryptographicParameters = None,
) -> BFVCiphertextFactory:
    """
    Cria uma nova instância da fábrica BFV.

    Args:
        crypto_params: Parâmetros criptográficos (usa padrão se None)

    Returns:
        BFVCiphertextFactory: Nova instância da fábrica
    """
    return BFVCiphertextFactory(crypto_params)
