"""
Testes para a aritmética de polinômios em R_q = ℤ_q[X]/(X^N + 1).
"""

import numpy as np
import pytest

from .polynomial import RingPolynomial, mod_centered


class TestRingPolynomial:
    """Testes para RingPolynomial"""

    def setup_method(self):
        """Configuração executada antes de cada teste"""
        self.n = 8
        self.q = 1 << 16

    def poly(self, coeffs):
        return RingPolynomial(coeffs, self.q, self.n)

    def test_construction_validates_length(self):
        """Comprimento diferente de N é rejeitado"""
        with pytest.raises(ValueError):
            RingPolynomial([1, 2, 3], self.q, self.n)

    def test_construction_validates_range(self):
        """Coeficientes fora de [0, q) são rejeitados"""
        with pytest.raises(ValueError):
            self.poly([self.q] + [0] * (self.n - 1))
        with pytest.raises(ValueError):
            self.poly([-1] + [0] * (self.n - 1))

    def test_coefficients_are_read_only(self):
        p = self.poly(range(self.n))
        with pytest.raises(ValueError):
            p.coef[0] = 5

    def test_from_signed_reduces(self):
        p = RingPolynomial.from_signed([-1, 2, -3, 0, 0, 0, 0, 0], self.q)
        assert int(p.coef[0]) == self.q - 1
        assert int(p.coef[2]) == self.q - 3
        assert list(p.centered()[:3]) == [-1, 2, -3]

    def test_addition_wraps_modulus(self):
        a = self.poly([self.q - 1] + [0] * (self.n - 1))
        b = self.poly([2] + [0] * (self.n - 1))
        assert int((a + b).coef[0]) == 1

    def test_subtraction_and_negation(self):
        a = self.poly([3] + [0] * (self.n - 1))
        b = self.poly([5] + [0] * (self.n - 1))
        assert (a - b).centered()[0] == -2
        assert (-a).centered()[0] == -3
        assert (a - a) == RingPolynomial.zero(self.n, self.q)

    def test_negacyclic_wraparound(self):
        """X^(N-1) · X = X^N = -1"""
        x_high = self.poly([0] * (self.n - 1) + [1])
        x = self.poly([0, 1] + [0] * (self.n - 2))
        product = x_high * x
        expected = RingPolynomial.from_signed([-1] + [0] * (self.n - 1), self.q)
        assert product == expected

    def test_multiplication_matches_schoolbook(self):
        """A convolução coincide com a multiplicação ingênua módulo X^N + 1"""
        rng = np.random.default_rng(7)
        a = self.poly(rng.integers(0, self.q, size=self.n))
        b = RingPolynomial.from_signed(rng.integers(-1, 2, size=self.n), self.q)

        expected = [0] * self.n
        for i, ai in enumerate(a.centered()):
            for j, bj in enumerate(b.centered()):
                if i + j < self.n:
                    expected[i + j] += int(ai) * int(bj)
                else:
                    expected[i + j - self.n] -= int(ai) * int(bj)

        assert a * b == RingPolynomial([x % self.q for x in expected], self.q)

    def test_multiplication_large_operands(self):
        """Operandos grandes usam o caminho exato com inteiros Python"""
        q = (1 << 61) - 1
        half = q // 2
        a = RingPolynomial([half, 1], q)
        b = RingPolynomial([half, 0], q)
        product = a * b
        assert int(product.coef[0]) == (half * half) % q
        assert int(product.coef[1]) == half

    def test_incompatible_operands(self):
        a = self.poly([0] * self.n)
        with pytest.raises(ValueError):
            a + RingPolynomial([0] * self.n, self.q + 1)
        with pytest.raises(ValueError):
            a + RingPolynomial([0] * (self.n * 2), self.q)
        with pytest.raises(TypeError):
            a + 3

    def test_infinity_norm_and_scalar_mul(self):
        p = RingPolynomial.from_signed([4, -7, 0, 1, 0, 0, 0, 0], self.q)
        assert p.infinity_norm() == 7
        assert list(p.scalar_mul(2).centered()[:4]) == [8, -14, 0, 2]


class TestModCentered:
    """Testes para a função mod_centered que implementa ℤ_a = (-a/2, a/2]"""

    def test_mod_centered_inside_interval(self):
        # Para modulus=10, o intervalo é (-5, 5]
        assert mod_centered(3, 10) == 3
        assert mod_centered(-3, 10) == -3
        assert mod_centered(5, 10) == 5  # Limite superior incluído
        assert mod_centered(7, 10) == -3

    def test_mod_centered_array(self):
        result = mod_centered(np.array([0, 5, 6, 23, -6]), 10)
        assert result.tolist() == [0, 5, -4, 3, 4]

    def test_centered_uses_same_interval(self):
        poly = RingPolynomial([0, 5, 6, 9], 10, 4)
        assert poly.centered().tolist() == mod_centered(poly.coef, 10).tolist()
        assert poly.centered().tolist() == [0, 5, -4, -1]
