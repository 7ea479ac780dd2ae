"""
Constantes centralizadas para o esquema de criptografia homomórfica BFV.

Esta classe organiza todos os parâmetros criptográficos de forma semântica
para facilitar manutenção e configuração do sistema.

Parâmetros do esquema:
- N = ring_dimension (grau do polinômio, potência de 2)
- t = plaintext_modulus (módulo do texto claro)
- q = ciphertext_modulus (módulo do texto cifrado, múltiplo de t)
- Δ = q / t (fator de escala, exato porque t divide q)
- σ = desvio padrão do ruído gaussiano (truncado em ±⌈tail·σ⌉)

Todos os produtos no anel envolvem um operando pequeno (ternário), então
exigimos N·q < 2^62 para que a aritmética em int64 seja exata.
"""

import math
import os
import secrets

import numpy as np

from .errors import KeyGenerationError
from .polynomial import RingPolynomial


class BFVCryptographicParameters:
    """
    Classe que centraliza todos os parâmetros criptográficos do esquema BFV.

    Esta classe organiza as constantes de forma semântica, separando:
    - Parâmetros estruturais (N, q, t)
    - Parâmetros de ruído (σ, corte da cauda)
    - Orçamento de ruído derivado (Δ/2 e profundidade de adições)

    Instâncias são imutáveis depois de construídas.
    """

    def __init__(
        self,
        ring_dimension: int = 32,  # N - grau do polinômio
        plaintext_modulus: int = 1024,  # t - módulo do texto claro
        ciphertext_modulus: int = 1 << 40,  # q - módulo do texto cifrado
        gaussian_noise_stddev: float = 3.2,  # σ - desvio padrão gaussiano
        noise_tail_cut: int = 6,  # amostras truncadas em ±⌈tail·σ⌉
    ):
        """
        Inicializa e valida os parâmetros BFV.

        Args:
            ring_dimension: N - grau do polinômio (potência de 2)
            plaintext_modulus: t - módulo do texto claro (deve dividir q)
            ciphertext_modulus: q - módulo do texto cifrado
            gaussian_noise_stddev: σ - desvio padrão para o erro
            noise_tail_cut: fator de truncamento da gaussiana

        Raises:
            ValueError: Se algum parâmetro for inconsistente
        """
        self.POLYNOMIAL_DEGREE = ring_dimension
        self.PLAINTEXT_MODULUS = plaintext_modulus
        self.CIPHERTEXT_MODULUS = ciphertext_modulus
        self.GAUSSIAN_NOISE_STDDEV = gaussian_noise_stddev
        self.NOISE_TAIL_CUT = noise_tail_cut

        self.validate_parameters()

        # Δ = q / t
        self.SCALING_FACTOR = ciphertext_modulus // plaintext_modulus

        # B = ⌈tail·σ⌉, limite de cada amostra de erro
        self.NOISE_TAIL_BOUND = int(math.ceil(noise_tail_cut * gaussian_noise_stddev))

        self._frozen = True

    def __setattr__(self, name, value):
        if getattr(self, "_frozen", False):
            raise AttributeError("Parâmetros BFV são imutáveis após a construção")
        super().__setattr__(name, value)

    # === VALIDAÇÃO ===
    def validate_parameters(self):
        """
        Valida a consistência dos parâmetros.

        Raises:
            ValueError: Se algum parâmetro for inválido
        """
        n = self.POLYNOMIAL_DEGREE
        t = self.PLAINTEXT_MODULUS
        q = self.CIPHERTEXT_MODULUS

        if n < 2 or n & (n - 1) != 0:
            raise ValueError(f"ring_dimension deve ser potência de 2 >= 2, recebido: {n}")
        if t < 2:
            raise ValueError(f"plaintext_modulus deve ser >= 2, recebido: {t}")
        if q <= t or q % t != 0:
            raise ValueError(
                f"ciphertext_modulus ({q}) deve ser múltiplo de plaintext_modulus ({t})"
            )
        if n * q >= 1 << 62:
            raise ValueError(
                f"N·q deve ser menor que 2^62 para aritmética exata em int64 "
                f"(N={n}, q={q})"
            )
        if self.GAUSSIAN_NOISE_STDDEV <= 0:
            raise ValueError("Desvio padrão do ruído deve ser positivo")
        if self.NOISE_TAIL_CUT < 1:
            raise ValueError("noise_tail_cut deve ser >= 1")

    # === IDENTIFICAÇÃO ===
    @property
    def identifier(self) -> str:
        """Identificador textual estável do conjunto de parâmetros."""
        return (
            f"bfv-n{self.POLYNOMIAL_DEGREE}"
            f"-t{self.PLAINTEXT_MODULUS}"
            f"-q{self.CIPHERTEXT_MODULUS}"
            f"-s{self.GAUSSIAN_NOISE_STDDEV}"
            f"-c{self.NOISE_TAIL_CUT}"
        )

    @classmethod
    def from_identifier(cls, identifier: str) -> "BFVCryptographicParameters":
        """
        Reconstrói os parâmetros a partir do identificador textual.

        Raises:
            ValueError: Se o identificador estiver malformado ou inconsistente
        """
        parts = identifier.split("-")
        if len(parts) != 6 or parts[0] != "bfv":
            raise ValueError(f"Identificador de parâmetros inválido: {identifier!r}")

        fields = {}
        for part, prefix in zip(parts[1:], ("n", "t", "q", "s", "c")):
            if not part.startswith(prefix):
                raise ValueError(f"Identificador de parâmetros inválido: {identifier!r}")
            fields[prefix] = part[len(prefix):]

        params = cls(
            ring_dimension=int(fields["n"]),
            plaintext_modulus=int(fields["t"]),
            ciphertext_modulus=int(fields["q"]),
            gaussian_noise_stddev=float(fields["s"]),
            noise_tail_cut=int(fields["c"]),
        )
        if params.identifier != identifier:
            raise ValueError(f"Identificador de parâmetros não canônico: {identifier!r}")
        return params

    def __eq__(self, other) -> bool:
        if not isinstance(other, BFVCryptographicParameters):
            return NotImplemented
        return self.identifier == other.identifier

    def __hash__(self):
        return hash(self.identifier)

    def __repr__(self) -> str:
        return f"BFVCryptographicParameters({self.identifier})"

    # === ORÇAMENTO DE RUÍDO ===
    @property
    def noise_budget(self) -> int:
        """Ruído máximo tolerado: a descriptografia exige |ruído| < Δ/2."""
        return self.SCALING_FACTOR // 2

    @property
    def fresh_noise_bound(self) -> int:
        """
        Limite de pior caso do ruído de um ciphertext recém-criptografado.

        ruído = e·u + e1 + e2·s com |e|,|e1|,|e2| <= B e u, s ternários,
        então ||ruído||∞ <= B·N + B + B·N = B·(2N + 1).
        """
        return self.NOISE_TAIL_BOUND * (2 * self.POLYNOMIAL_DEGREE + 1)

    @property
    def max_addition_depth(self) -> int:
        """Quantos ciphertexts novos podem ser somados sem esgotar o orçamento."""
        return (self.noise_budget - 1) // self.fresh_noise_bound

    def signed_range(self):
        """Intervalo (-t/2, t/2] dos plaintexts válidos, como (mínimo, máximo)."""
        t = self.PLAINTEXT_MODULUS
        return -((t - 1) // 2), t // 2

    # === ESTRUTURAS ALGÉBRICAS ===
    def make_poly(self, coeffs) -> RingPolynomial:
        """Cria um polinômio de R_q validando o comprimento N."""
        return RingPolynomial(coeffs, self.CIPHERTEXT_MODULUS, self.POLYNOMIAL_DEGREE)

    # === ALEATORIEDADE ===
    @staticmethod
    def make_rng() -> np.random.Generator:
        """
        Cria um gerador semeado com entropia do sistema operacional.

        Raises:
            KeyGenerationError: Se o sistema não puder fornecer entropia
        """
        try:
            seed = int.from_bytes(os.urandom(32), "little") ^ secrets.randbits(256)
        except (OSError, NotImplementedError) as e:
            raise KeyGenerationError(f"Fonte de entropia indisponível: {e}") from e
        return np.random.default_rng(np.random.SeedSequence(seed))

    def generate_gaussian_poly(self, rng: np.random.Generator) -> RingPolynomial:
        """
        Gera um polinômio com coeficientes gaussianos truncados (DG(σ²)).

        Os coeficientes ficam em [-B, B] com B = ⌈tail·σ⌉, o que mantém válido
        o limite de ruído de pior caso.
        """
        bound = self.NOISE_TAIL_BOUND
        samples = np.round(
            rng.normal(0, self.GAUSSIAN_NOISE_STDDEV, size=self.POLYNOMIAL_DEGREE)
        ).astype(np.int64)
        samples = np.clip(samples, -bound, bound)
        return RingPolynomial.from_signed(samples, self.CIPHERTEXT_MODULUS)

    def generate_ternary_poly(self, rng: np.random.Generator) -> RingPolynomial:
        """Gera um polinômio com coeficientes uniformes em {-1, 0, 1}."""
        coeffs = rng.integers(-1, 2, size=self.POLYNOMIAL_DEGREE, dtype=np.int64)
        return RingPolynomial.from_signed(coeffs, self.CIPHERTEXT_MODULUS)

    def generate_uniform_random_poly(self, rng: np.random.Generator) -> RingPolynomial:
        """Gera um polinômio com coeficientes uniformes em [0, q)."""
        coeffs = rng.integers(
            0, self.CIPHERTEXT_MODULUS, size=self.POLYNOMIAL_DEGREE, dtype=np.int64
        )
        return RingPolynomial(coeffs, self.CIPHERTEXT_MODULUS)

    # === CONFIGURAÇÕES ===
    @classmethod
    def default_config(cls):
        """
        Configuração padrão: N=32, t=1024, q=2^40.

        Returns:
            BFVCryptographicParameters: Parâmetros para apuração de votos
        """
        return cls()

    @classmethod
    def demo_config(cls):
        """
        Configuração mínima de demonstração: N=8, t=1024, q=2^40.

        Returns:
            BFVCryptographicParameters: Parâmetros de demonstração
        """
        return cls(ring_dimension=8)

    @classmethod
    def shallow_config(cls):
        """
        Configuração com orçamento de ruído pequeno: N=8, t=16, q=2^16.

        Comporta apenas algumas adições antes de esgotar o orçamento.

        Returns:
            BFVCryptographicParameters: Parâmetros de baixa profundidade
        """
        return cls(ring_dimension=8, plaintext_modulus=16, ciphertext_modulus=1 << 16)

    def print_parameters_summary(self):
        """
        Imprime um resumo dos parâmetros configurados.
        """
        low, high = self.signed_range()
        print("=== PARÂMETROS CRIPTOGRÁFICOS BFV ===")
        print(f"Identificador: {self.identifier}")
        print(f"Grau do polinômio (N): {self.POLYNOMIAL_DEGREE}")
        print(f"Módulo do texto claro (t): {self.PLAINTEXT_MODULUS} → plaintexts em [{low}, {high}]")
        print(
            f"Módulo do texto cifrado (q): {self.CIPHERTEXT_MODULUS} "
            f"(~{self.CIPHERTEXT_MODULUS.bit_length()} bits)"
        )
        print(f"Fator de escala (Δ = q/t): {self.SCALING_FACTOR}")
        print(f"Desvio padrão do ruído (σ): {self.GAUSSIAN_NOISE_STDDEV}")
        print(f"Limite de cada amostra de erro (B): {self.NOISE_TAIL_BOUND}")
        print(f"Ruído de um ciphertext novo (pior caso): {self.fresh_noise_bound}")
        print(f"Orçamento de ruído (Δ/2): {self.noise_budget}")
        print(f"Profundidade máxima de adições: {self.max_addition_depth}")
        print("=" * 50)


# Validação automática dos parâmetros
if __name__ == "__main__":
    try:
        print("=== CONFIGURAÇÃO PADRÃO ===")
        BFVCryptographicParameters.default_config().print_parameters_summary()
        print("\n=== CONFIGURAÇÃO DE DEMONSTRAÇÃO ===")
        BFVCryptographicParameters.demo_config().print_parameters_summary()
        print("\n=== CONFIGURAÇÃO DE BAIXA PROFUNDIDADE ===")
        BFVCryptographicParameters.shallow_config().print_parameters_summary()
        print("\n✓ Todas as configurações são válidas!")
    except ValueError as e:
        print(f"✗ Erro na validação dos parâmetros: {e}")
