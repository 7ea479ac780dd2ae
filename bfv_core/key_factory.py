"""
Fábrica para geração e gerenciamento de chaves BFV.

Esta classe implementa a geração de chaves do esquema BFV:

KeyGen:
- Sample s ← χ_ternário: chave secreta com coeficientes em {-1, 0, 1}
- Sample a ← R_q uniforme, e ← DG(σ²)
- Set pk ← (b, a) onde b ← −a·s + e (mod q)
"""

import hashlib
import struct

import numpy as np

from .constants import BFVCryptographicParameters
from .errors import KeyGenerationError
from .polynomial import RingPolynomial

# Sorteios de s antes de considerar a fonte de aleatoriedade defeituosa
MAX_SECRET_KEY_ATTEMPTS = 64


def compute_key_id(
    crypto_params: BFVCryptographicParameters,
    key_epoch: int,
    b: RingPolynomial,
    a: RingPolynomial,
) -> str:
    """Impressão digital (8 bytes em hex) de uma chave pública e sua época."""
    digest = hashlib.sha256()
    digest.update(crypto_params.identifier.encode("utf-8"))
    digest.update(struct.pack("<I", key_epoch))
    digest.update(b.coef.astype("<u8").tobytes())
    digest.update(a.coef.astype("<u8").tobytes())
    return digest.hexdigest()[:16]


class BFVPublicKey:
    """
    Chave pública pk = (b, a) de uma época de chaves.

    Attributes:
        b: −a·s + e (mod q)
        a: polinômio uniforme em R_q
        key_epoch: versão da chave na época da computação
        key_id: impressão digital usada para detectar mistura de chaves
    """

    def __init__(
        self,
        b: RingPolynomial,
        a: RingPolynomial,
        crypto_params: BFVCryptographicParameters,
        key_epoch: int = 0,
    ):
        n = crypto_params.POLYNOMIAL_DEGREE
        q = crypto_params.CIPHERTEXT_MODULUS
        for name, comp in (("b", b), ("a", a)):
            if comp.ring_dimension != n or comp.modulus != q:
                raise ValueError(
                    f"Componente {name} da chave pública deve estar em R_q com N={n}"
                )
        if not 0 <= key_epoch < 1 << 32:
            raise ValueError(f"Época de chave inválida: {key_epoch}")

        self.b = b
        self.a = a
        self.crypto_params = crypto_params
        self.key_epoch = key_epoch
        self.key_id = compute_key_id(crypto_params, key_epoch, b, a)

    def __iter__(self):
        # Permite desempacotar como pk_b, pk_a = public_key
        return iter((self.b, self.a))

    def __eq__(self, other) -> bool:
        if not isinstance(other, BFVPublicKey):
            return NotImplemented
        return (
            self.crypto_params == other.crypto_params
            and self.key_epoch == other.key_epoch
            and self.b == other.b
            and self.a == other.a
        )

    def __hash__(self):
        return hash(self.key_id)

    def __repr__(self) -> str:
        return f"BFVPublicKey(key_id={self.key_id}, epoch={self.key_epoch})"


class BFVSecretKey:
    """
    Chave secreta s (polinômio ternário).

    A representação não expõe os coeficientes em __repr__ para evitar
    vazamento acidental em logs.
    """

    def __init__(
        self,
        s: RingPolynomial,
        crypto_params: BFVCryptographicParameters,
        key_id: str,
    ):
        if s.ring_dimension != crypto_params.POLYNOMIAL_DEGREE:
            raise ValueError("Chave secreta deve ter N coeficientes")
        if s.infinity_norm() > 1:
            raise ValueError("Chave secreta deve ter coeficientes em {-1, 0, 1}")

        self.s = s
        self.crypto_params = crypto_params
        self.key_id = key_id

    def __eq__(self, other) -> bool:
        if not isinstance(other, BFVSecretKey):
            return NotImplemented
        return self.key_id == other.key_id and self.s == other.s

    def __hash__(self):
        return hash((self.key_id, self.s))

    def __repr__(self) -> str:
        return f"BFVSecretKey(key_id={self.key_id})"


class BFVKeyFactory:
    """
    Fábrica para geração e gerenciamento de chaves BFV.

    Uma única chave compartilhada por época: todos os participantes
    criptografam sob a mesma chave pública, e a chave secreta fica com
    exatamente um detentor.
    """

    def __init__(self, crypto_params: BFVCryptographicParameters = None):
        """
        Inicializa a fábrica de chaves com parâmetros criptográficos.

        Args:
            crypto_params: Parâmetros criptográficos BFV (usa padrão se None)
        """
        if crypto_params is None:
            crypto_params = BFVCryptographicParameters()

        self.crypto_params = crypto_params

    def _resolve_rng(self, rng):
        if rng is None:
            return self.crypto_params.make_rng()
        if not isinstance(rng, np.random.Generator):
            raise KeyGenerationError(
                f"Fonte de aleatoriedade deve ser np.random.Generator, recebido: {type(rng)}"
            )
        return rng

    def generate_secret_key(self, rng: np.random.Generator = None) -> RingPolynomial:
        """
        Amostra o polinômio secreto s ← χ_ternário.

        Args:
            rng: Gerador de números aleatórios (entropia do sistema se None)

        Returns:
            RingPolynomial: s com coeficientes em {-1, 0, 1}

        Raises:
            KeyGenerationError: Se a fonte falhar ou só produzir s nulos
        """
        rng = self._resolve_rng(rng)
        for _ in range(MAX_SECRET_KEY_ATTEMPTS):
            try:
                s = self.crypto_params.generate_ternary_poly(rng)
            except (OSError, NotImplementedError) as e:
                raise KeyGenerationError(f"Falha ao amostrar a chave secreta: {e}") from e
            if np.any(s.coef):
                return s

        raise KeyGenerationError(
            f"Fonte de aleatoriedade produziu {MAX_SECRET_KEY_ATTEMPTS} chaves secretas nulas"
        )

    def generate_public_key(
        self,
        s: RingPolynomial,
        rng: np.random.Generator = None,
        key_epoch: int = 0,
    ) -> BFVPublicKey:
        """
        Gera a chave pública a partir do polinômio secreto.

        - Sample a ← R_q and e ← DG(σ²)
        - Set pk ← (b, a) where b ← −a·s + e (mod q)

        Args:
            s: Polinômio secreto
            rng: Gerador de números aleatórios (entropia do sistema se None)
            key_epoch: Versão da chave

        Returns:
            BFVPublicKey: Chave pública (b, a)
        """
        rng = self._resolve_rng(rng)
        try:
            a = self.crypto_params.generate_uniform_random_poly(rng)
            e = self.crypto_params.generate_gaussian_poly(rng)
        except (OSError, NotImplementedError) as err:
            raise KeyGenerationError(f"Falha ao amostrar a chave pública: {err}") from err

        b = e - (a * s)
        return BFVPublicKey(b, a, self.crypto_params, key_epoch)

    def generate_keypair(self, rng: np.random.Generator = None, key_epoch: int = 0):
        """
        Gera um par completo de chaves (secreta e pública).

        Args:
            rng: Gerador de números aleatórios (entropia do sistema se None)
            key_epoch: Versão da chave

        Returns:
            Tuple: (secret_key, public_key)
        """
        rng = self._resolve_rng(rng)
        s = self.generate_secret_key(rng)
        public_key = self.generate_public_key(s, rng, key_epoch)
        secret_key = BFVSecretKey(s, self.crypto_params, public_key.key_id)
        return secret_key, public_key

    def validate_keypair(self, secret_key: BFVSecretKey, public_key: BFVPublicKey) -> bool:
        """
        Valida se um par de chaves é consistente.

        b + a·s = e deve ter norma no máximo B (limite das amostras de erro).

        Returns:
            bool: True se as chaves são consistentes, False caso contrário
        """
        if secret_key.key_id != public_key.key_id:
            return False
        if secret_key.crypto_params != public_key.crypto_params:
            return False

        residual = public_key.b + public_key.a * secret_key.s
        return residual.infinity_norm() <= self.crypto_params.NOISE_TAIL_BOUND


# Função de conveniência para criar instância da fábrica de chaves
def create_key_factory(
    crypto_params: BFVCryptographicParameters = None,
) -> BFVKeyFactory:
    """
    Cria uma nova instância da fábrica de chaves BFV.

    Args:
        crypto_params: Parâmetros criptográficos (usa padrão se None)

    Returns:
        BFVKeyFactory: Nova instância da fábrica de chaves
    """
    return BFVKeyFactory(crypto_params)
