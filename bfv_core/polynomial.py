"""
Polinômios do anel R_q = ℤ_q[X]/(X^N + 1) com comprimento fixo.

Cada polinômio guarda exatamente N coeficientes inteiros (int64) já reduzidos
em [0, q). Nenhuma operação redimensiona o vetor: soma, subtração e
multiplicação produzem sempre N coeficientes reduzidos.
"""

import numpy as np
from typing import Iterable, Union

# Limite para que a convolução em int64 seja exata (com folga de um bit)
_INT64_SAFE_BOUND = 1 << 62


def mod_centered(value, modulus):
    """
    Redução modular centrada em ℤ_a = (-a/2, a/2].

    Aceita escalares ou arrays numpy.
    """
    reduced = np.mod(value, modulus)
    half_modulus = modulus // 2

    if np.isscalar(reduced):
        if reduced > half_modulus:
            return reduced - modulus
        return reduced

    result = reduced.copy()
    mask = result > half_modulus
    result[mask] = result[mask] - modulus
    return result


class RingPolynomial:
    """
    Elemento de R_q representado por um vetor de coeficientes de tamanho fixo.

    Attributes:
        coef: Coeficientes em [0, modulus), do grau 0 ao grau N-1 (somente leitura)
        modulus: Módulo q dos coeficientes
    """

    __slots__ = ("coef", "modulus")

    def __init__(
        self,
        coeffs: Union[np.ndarray, Iterable[int]],
        modulus: int,
        ring_dimension: int = None,
    ):
        """
        Cria um polinômio validando comprimento e faixa dos coeficientes.

        Args:
            coeffs: Coeficientes já reduzidos em [0, modulus)
            modulus: Módulo q
            ring_dimension: Comprimento exigido N (não verificado se None)

        Raises:
            ValueError: Se o comprimento ou algum coeficiente for inválido
        """
        if modulus < 2:
            raise ValueError(f"Módulo deve ser >= 2, recebido: {modulus}")

        values = np.array(coeffs, dtype=np.int64)
        if values.ndim != 1:
            raise ValueError("Coeficientes devem formar um vetor unidimensional")
        if ring_dimension is not None and len(values) != ring_dimension:
            raise ValueError(
                f"Polinômio deve ter exatamente {ring_dimension} coeficientes, "
                f"recebido: {len(values)}"
            )
        if len(values) and (values.min() < 0 or values.max() >= modulus):
            raise ValueError(f"Coeficientes devem estar em [0, {modulus})")

        values.flags.writeable = False
        self.coef = values
        self.modulus = modulus

    @classmethod
    def from_signed(cls, coeffs, modulus: int) -> "RingPolynomial":
        """Reduz coeficientes arbitrários (inclusive negativos) para [0, q)."""
        values = np.mod(np.array(coeffs, dtype=np.int64), modulus)
        return cls(values, modulus)

    @classmethod
    def zero(cls, ring_dimension: int, modulus: int) -> "RingPolynomial":
        return cls(np.zeros(ring_dimension, dtype=np.int64), modulus)

    @property
    def ring_dimension(self) -> int:
        return len(self.coef)

    def centered(self) -> np.ndarray:
        """Retorna os coeficientes na representação centrada (-q/2, q/2]."""
        return mod_centered(self.coef, self.modulus)

    def infinity_norm(self) -> int:
        """Norma L-infinito da representação centrada."""
        if not len(self.coef):
            return 0
        return int(np.max(np.abs(self.centered())))

    def _check_compatible(self, other: "RingPolynomial"):
        if not isinstance(other, RingPolynomial):
            raise TypeError(f"Operando deve ser RingPolynomial, recebido: {type(other)}")
        if self.modulus != other.modulus:
            raise ValueError(
                f"Módulos incompatíveis: {self.modulus} e {other.modulus}"
            )
        if len(self.coef) != len(other.coef):
            raise ValueError(
                f"Dimensões incompatíveis: {len(self.coef)} e {len(other.coef)}"
            )

    def __add__(self, other: "RingPolynomial") -> "RingPolynomial":
        self._check_compatible(other)
        # Operandos < q < 2^62, a soma não transborda int64
        return RingPolynomial(np.mod(self.coef + other.coef, self.modulus), self.modulus)

    def __sub__(self, other: "RingPolynomial") -> "RingPolynomial":
        self._check_compatible(other)
        return RingPolynomial(np.mod(self.coef - other.coef, self.modulus), self.modulus)

    def __neg__(self) -> "RingPolynomial":
        return RingPolynomial(np.mod(-self.coef, self.modulus), self.modulus)

    def __mul__(self, other: "RingPolynomial") -> "RingPolynomial":
        """
        Multiplicação no anel: convolução negacíclica módulo X^N + 1 e q.

        Usa X^N ≡ -1: res[i] = pp[i] - pp[i+N], como no HEAAN.
        """
        self._check_compatible(other)
        n = len(self.coef)
        a = self.centered()
        b = other.centered()

        bound = (
            int(np.max(np.abs(a), initial=0))
            * int(np.max(np.abs(b), initial=0))
            * n
        )
        if bound < _INT64_SAFE_BOUND:
            full = np.convolve(a, b)
            result = full[:n].copy()
            result[: n - 1] -= full[n:]
            return RingPolynomial(np.mod(result, self.modulus), self.modulus)

        # Fallback exato com inteiros Python para operandos grandes
        acc = [0] * n
        a_list = [int(x) for x in a]
        b_list = [int(x) for x in b]
        for i, ai in enumerate(a_list):
            if ai == 0:
                continue
            for j, bj in enumerate(b_list):
                k = i + j
                if k < n:
                    acc[k] += ai * bj
                else:
                    acc[k - n] -= ai * bj
        return RingPolynomial([x % self.modulus for x in acc], self.modulus)

    def scalar_mul(self, scalar: int) -> "RingPolynomial":
        """Multiplica todos os coeficientes por um inteiro, módulo q."""
        scalar = scalar % self.modulus
        values = [(int(c) * scalar) % self.modulus for c in self.coef]
        return RingPolynomial(values, self.modulus)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RingPolynomial):
            return NotImplemented
        return self.modulus == other.modulus and np.array_equal(self.coef, other.coef)

    def __hash__(self):
        return hash((self.modulus, self.coef.tobytes()))

    def __repr__(self) -> str:
        head = ", ".join(str(int(c)) for c in self.coef[:4])
        suffix = ", ..." if len(self.coef) > 4 else ""
        return f"RingPolynomial([{head}{suffix}], N={len(self.coef)}, q={self.modulus})"
