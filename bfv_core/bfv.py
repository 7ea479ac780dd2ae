"""
Classes para representar ciphertexts e plaintexts do esquema BFV.

O ciphertext encapsula os componentes (c0, c1), a identificação da chave
pública sob a qual foi produzido e uma estimativa de pior caso do ruído
acumulado.
"""

from typing import Iterable, List

import numpy as np

from .constants import BFVCryptographicParameters
from .errors import KeyMismatchError, PlaintextRangeError
from .polynomial import RingPolynomial


class PlaintextValue:
    """
    Inteiro com sinal no intervalo (-t/2, t/2].

    A construção falha com PlaintextRangeError fora do intervalo.
    """

    __slots__ = ("value", "crypto_params")

    def __init__(self, value: int, crypto_params: BFVCryptographicParameters):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
            raise PlaintextRangeError(f"Plaintext deve ser inteiro, recebido: {value!r}")

        low, high = crypto_params.signed_range()
        if not low <= value <= high:
            raise PlaintextRangeError(
                f"Plaintext {value} fora do intervalo [{low}, {high}] "
                f"(t={crypto_params.PLAINTEXT_MODULUS})"
            )
        self.value = int(value)
        self.crypto_params = crypto_params

    @property
    def residue(self) -> int:
        """Representante em [0, t)."""
        return self.value % self.crypto_params.PLAINTEXT_MODULUS

    def __int__(self):
        return self.value

    def __eq__(self, other) -> bool:
        if isinstance(other, PlaintextValue):
            return self.value == other.value and self.crypto_params == other.crypto_params
        if isinstance(other, (int, np.integer)):
            return self.value == other
        return NotImplemented

    def __hash__(self):
        return hash(self.value)

    def __repr__(self) -> str:
        return f"PlaintextValue({self.value})"


class BFVCiphertext:
    """
    Classe que representa um ciphertext do esquema BFV.

    Attributes:
        components: [c0, c1], polinômios em R_q
        key_id: Impressão digital da chave pública de origem
        noise_bound: Limite de pior caso de ||ruído||∞
        crypto_params: Instância dos parâmetros criptográficos
    """

    def __init__(
        self,
        components: List[RingPolynomial],
        key_id: str,
        noise_bound: int,
        crypto_params: BFVCryptographicParameters = None,
    ):
        """
        Inicializa um novo ciphertext BFV.

        Raises:
            ValueError: Se os componentes forem inválidos para os parâmetros
        """
        if crypto_params is None:
            crypto_params = BFVCryptographicParameters()

        self.crypto_params = crypto_params
        self._validate_initialization_params(components, noise_bound)

        self.components = list(components)
        self.key_id = key_id
        self.noise_bound = int(noise_bound)

    def _validate_initialization_params(self, components, noise_bound):
        """Valida os parâmetros de inicialização."""
        if len(components) != 2:
            raise ValueError(
                f"Ciphertext BFV deve ter exatamente 2 componentes, recebido: {len(components)}"
            )

        n = self.crypto_params.POLYNOMIAL_DEGREE
        q = self.crypto_params.CIPHERTEXT_MODULUS
        for comp in components:
            if not isinstance(comp, RingPolynomial):
                raise ValueError("Todos os componentes devem ser instâncias de RingPolynomial")
            if comp.ring_dimension != n or comp.modulus != q:
                raise ValueError(f"Componentes devem estar em R_q com N={n} e q={q}")

        if noise_bound < 0:
            raise ValueError("Limite de ruído não pode ser negativo")

    @property
    def c0(self) -> RingPolynomial:
        return self.components[0]

    @property
    def c1(self) -> RingPolynomial:
        return self.components[1]

    @property
    def size(self) -> int:
        """Retorna o número de componentes do ciphertext."""
        return len(self.components)

    @property
    def noise_budget(self) -> int:
        """Orçamento de ruído restante (Δ/2 − limite acumulado)."""
        return self.crypto_params.noise_budget - self.noise_bound

    def is_noise_budget_exhausted(self) -> bool:
        return self.noise_budget <= 0

    def is_fresh(self) -> bool:
        """Um ciphertext é "fresh" se saiu diretamente da criptografia."""
        return self.noise_bound == self.crypto_params.fresh_noise_bound

    def can_add_with(self, other: "BFVCiphertext") -> bool:
        """
        Verifica se é possível somar com outro ciphertext.

        Returns:
            bool: True se ambos usam os mesmos parâmetros e a mesma chave
        """
        return (
            self.crypto_params == other.crypto_params
            and self.key_id == other.key_id
            and self.size == other.size
        )

    def copy(self) -> "BFVCiphertext":
        """Cria uma cópia do ciphertext (os polinômios são imutáveis)."""
        return BFVCiphertext(
            components=list(self.components),
            key_id=self.key_id,
            noise_bound=self.noise_bound,
            crypto_params=self.crypto_params,
        )

    def get_component(self, index: int) -> RingPolynomial:
        """
        Retorna um componente específico do ciphertext.

        Raises:
            IndexError: Se o índice estiver fora do alcance
        """
        if index < 0 or index >= len(self.components):
            raise IndexError(
                f"Índice {index} fora do alcance. Ciphertext tem {len(self.components)} componentes."
            )
        return self.components[index]

    def __eq__(self, other) -> bool:
        # Igualdade coeficiente a coeficiente; não serve para verificar a
        # criptografia, que é aleatorizada.
        if not isinstance(other, BFVCiphertext):
            return NotImplemented
        return (
            self.crypto_params == other.crypto_params
            and self.key_id == other.key_id
            and self.noise_bound == other.noise_bound
            and self.components == other.components
        )

    __hash__ = None

    def __repr__(self) -> str:
        return (
            f"BFVCiphertext(key_id={self.key_id}, noise_bound={self.noise_bound}, "
            f"budget={self.noise_budget})"
        )

    def print_summary(self):
        """Imprime um resumo detalhado do ciphertext."""
        print("=== RESUMO DO CIPHERTEXT BFV ===")
        print(f"Chave de origem: {self.key_id}")
        print(f"Número de componentes: {self.size}")
        print(f"Limite de ruído acumulado: {self.noise_bound}")
        print(f"Orçamento de ruído restante: {self.noise_budget}")
        print(f"Status: {'Fresh' if self.is_fresh() else 'Processado'}")
        for i, comp in enumerate(self.components):
            print(
                f"Componente {i}: {comp.ring_dimension} coeficientes, "
                f"max={int(np.max(comp.coef))}"
            )
        print("=" * 35)

    @staticmethod
    def add_homomorphic(ct1: "BFVCiphertext", ct2: "BFVCiphertext") -> "BFVCiphertext":
        """
        Realiza adição homomórfica entre dois ciphertexts BFV.

        Pré-condição explícita: os dois ciphertexts vêm da mesma chave
        pública. Somar ciphertexts de chaves diferentes produziria um
        ciphertext sem significado que ainda "descriptografa".

        Returns:
            BFVCiphertext: (c0 + c0', c1 + c1') mod q, com ruído somado

        Raises:
            KeyMismatchError: Se as chaves de origem forem diferentes
            ValueError: Se os parâmetros forem incompatíveis
        """
        if ct1.crypto_params != ct2.crypto_params:
            raise ValueError(
                f"Ciphertexts usam parâmetros diferentes: "
                f"{ct1.crypto_params.identifier} e {ct2.crypto_params.identifier}"
            )
        if ct1.key_id != ct2.key_id:
            raise KeyMismatchError(
                f"Ciphertexts de chaves diferentes não podem ser somados: "
                f"{ct1.key_id} e {ct2.key_id}"
            )

        result_components = [
            ct1.components[i] + ct2.components[i] for i in range(ct1.size)
        ]

        return BFVCiphertext(
            components=result_components,
            key_id=ct1.key_id,
            noise_bound=ct1.noise_bound + ct2.noise_bound,
            crypto_params=ct1.crypto_params,
        )

    @staticmethod
    def add_many(ciphertexts: Iterable["BFVCiphertext"]) -> "BFVCiphertext":
        """
        Soma homomorficamente uma sequência não vazia de ciphertexts.

        Raises:
            ValueError: Se a sequência estiver vazia
        """
        iterator = iter(ciphertexts)
        try:
            total = next(iterator)
        except StopIteration:
            raise ValueError("É preciso ao menos um ciphertext para somar") from None

        for ct in iterator:
            total = BFVCiphertext.add_homomorphic(total, ct)
        return total

    def __add__(self, other: "BFVCiphertext") -> "BFVCiphertext":
        return BFVCiphertext.add_homomorphic(self, other)
