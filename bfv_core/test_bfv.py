from .bfv import BFVCiphertext, PlaintextValue
from .ciphertext_factory import BFVCiphertextFactory
from .constants import BFVCryptographicParameters
from .errors import KeyMismatchError, PlaintextRangeError
from .key_factory import BFVKeyFactory
import numpy as np
import pytest


class TestBFVCiphertext:
    """Testes para a classe BFVCiphertext"""

    def setup_method(self):
        """Configuração executada antes de cada teste"""
        self.crypto_params = BFVCryptographicParameters.demo_config()
        self.rng = np.random.default_rng(11)
        self.key_factory = BFVKeyFactory(self.crypto_params)
        self.ciphertext_factory = BFVCiphertextFactory(self.crypto_params)
        self.sk, self.pk = self.key_factory.generate_keypair(self.rng)

    def encrypt(self, value, public_key=None):
        return self.ciphertext_factory.encrypt(value, public_key or self.pk, self.rng)

    def test_add_homomorphic_basic(self):
        """Teste de adição homomórfica básica"""
        ct1 = self.encrypt(10)
        ct2 = self.encrypt(-4)

        ct_sum = BFVCiphertext.add_homomorphic(ct1, ct2)

        assert ct_sum.size == ct1.size == 2
        assert ct_sum.key_id == self.pk.key_id
        assert ct_sum.noise_bound == ct1.noise_bound + ct2.noise_bound
        assert ct_sum.c0 == ct1.c0 + ct2.c0
        assert self.ciphertext_factory.decrypt(ct_sum, self.sk) == 6

    def test_add_operator_and_add_many(self):
        cts = [self.encrypt(v) for v in (1, 2, 3, 4)]
        total = BFVCiphertext.add_many(cts)
        assert total == ((cts[0] + cts[1]) + cts[2]) + cts[3]
        assert self.ciphertext_factory.decrypt(total, self.sk) == 10

    def test_add_many_empty(self):
        with pytest.raises(ValueError):
            BFVCiphertext.add_many([])

    def test_key_mismatch(self):
        """Ciphertexts de chaves diferentes não podem ser somados"""
        _, other_pk = self.key_factory.generate_keypair(self.rng)
        ct1 = self.encrypt(1)
        ct2 = self.encrypt(1, other_pk)

        assert not ct1.can_add_with(ct2)
        with pytest.raises(KeyMismatchError):
            BFVCiphertext.add_homomorphic(ct1, ct2)

    def test_parameter_mismatch(self):
        params = BFVCryptographicParameters.shallow_config()
        sk, pk = BFVKeyFactory(params).generate_keypair(self.rng)
        ct_other = BFVCiphertextFactory(params).encrypt(1, pk, self.rng)

        with pytest.raises(ValueError):
            BFVCiphertext.add_homomorphic(self.encrypt(1), ct_other)

    def test_invalid_components(self):
        ct = self.encrypt(1)
        with pytest.raises(ValueError):
            BFVCiphertext([ct.c0], ct.key_id, 0, self.crypto_params)
        with pytest.raises(ValueError):
            BFVCiphertext(
                [ct.c0, ct.c1], ct.key_id, 0, BFVCryptographicParameters.shallow_config()
            )
        with pytest.raises(ValueError):
            BFVCiphertext([ct.c0, ct.c1], ct.key_id, -1, self.crypto_params)

    def test_copy_and_get_component(self):
        ct = self.encrypt(3)
        clone = ct.copy()
        assert clone == ct
        assert clone is not ct
        assert ct.get_component(1) == ct.c1
        with pytest.raises(IndexError):
            ct.get_component(2)

    def test_noise_budget(self):
        ct = self.encrypt(3)
        assert ct.noise_budget == (
            self.crypto_params.noise_budget - self.crypto_params.fresh_noise_bound
        )
        assert not ct.is_noise_budget_exhausted()


class TestPlaintextValue:
    def setup_method(self):
        self.crypto_params = BFVCryptographicParameters.shallow_config()

    def test_range(self):
        assert PlaintextValue(8, self.crypto_params) == 8
        assert PlaintextValue(-7, self.crypto_params).residue == 9
        with pytest.raises(PlaintextRangeError):
            PlaintextValue(9, self.crypto_params)
        with pytest.raises(PlaintextRangeError):
            PlaintextValue(-8, self.crypto_params)

    def test_rejects_non_integers(self):
        with pytest.raises(PlaintextRangeError):
            PlaintextValue(True, self.crypto_params)
        with pytest.raises(PlaintextRangeError):
            PlaintextValue("3", self.crypto_params)
