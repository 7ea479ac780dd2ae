from bfv_core import codec
from bfv_core.ciphertext_factory import BFVCiphertextFactory
from bfv_core.constants import BFVCryptographicParameters
from bfv_core.key_factory import BFVKeyFactory
from zkvm_harness.errors import ExecutionFault, HarnessStateError, WitnessValidationError
from zkvm_harness.executor import GuestExecutor
from zkvm_harness.harness import HarnessState, VerifiableExecutionHarness
from zkvm_harness.receipt import Prover, verify
import numpy as np
import pytest

# Sete cédulas one-hot com três opções: apuração esperada [3, 3, 1]
BALLOTS = [
    [1, 0, 0],
    [0, 1, 0],
    [1, 0, 0],
    [0, 0, 1],
    [0, 1, 0],
    [1, 0, 0],
    [0, 1, 0],
]


class TestVerifiableExecutionHarness:
    """Testes do fluxo completo do harness"""

    def setup_method(self):
        """Configuração executada antes de cada teste"""
        self.crypto_params = BFVCryptographicParameters.demo_config()
        self.rng = np.random.default_rng(314)
        self.key_factory = BFVKeyFactory(self.crypto_params)
        self.factory = BFVCiphertextFactory(self.crypto_params)
        self.sk, self.pk = self.key_factory.generate_keypair(self.rng)
        self.ciphertexts = [
            codec.serialize_ciphertext(self.factory.encrypt(v, self.pk, self.rng))
            for ballot in BALLOTS
            for v in ballot
        ]
        self.harness = VerifiableExecutionHarness()

    def test_end_to_end_tally(self):
        """Sete cédulas apuram {3, 3, 1} e o recibo verifica"""
        self.harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)
        journal = self.harness.execute()
        receipt = self.harness.prove()

        assert journal.tallies == (3, 3, 1)
        assert journal.ciphertext_count == 21
        assert journal.key_id == self.pk.key_id
        assert self.harness.state == HarnessState.PROOF_GENERATED

        identity = self.harness.identity
        assert verify(receipt, [3, 3, 1], identity)
        assert not verify(receipt, [3, 3, 2], identity)

        assert self.harness.verify(expected_journal=[3, 3, 1])
        assert self.harness.state == HarnessState.VERIFIED

    def test_accepts_ciphertext_objects(self):
        cts = [
            self.factory.encrypt(v, self.pk, self.rng) for ballot in BALLOTS for v in ballot
        ]
        self.harness.run(self.pk, cts, 3, secret_key=self.sk)
        assert self.harness.journal.tallies == (3, 3, 1)

    def test_secret_key_dropped_after_commit(self):
        witness = self.harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)
        assert witness.has_secret_key

        self.harness.execute()

        assert not self.harness.witness.has_secret_key
        assert self.harness.witness.public_digest == witness.public_digest
        assert codec.serialize_secret_key(self.sk) not in self.harness.journal.to_bytes()

    def test_witness_digest_excludes_secret_key(self):
        with_key = self.harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)
        assert with_key.public_digest == with_key.without_secret_key().public_digest
        assert with_key.to_bytes() != with_key.to_bytes(include_secret_key=False)

    def test_challenger_mode_commits_encrypted_tallies(self):
        self.harness.run(self.pk, self.ciphertexts, 3)
        journal = self.harness.journal

        assert journal.is_encrypted
        assert journal.tallies is None
        decrypted = [
            self.factory.decrypt(
                codec.deserialize_ciphertext(bytes.fromhex(h), self.crypto_params, self.pk),
                self.sk,
            )
            for h in journal.encrypted_tallies
        ]
        assert decrypted == [3, 3, 1]

    def test_failed_verification(self):
        self.harness.run(self.pk, self.ciphertexts, 3, secret_key=self.sk)

        assert not self.harness.verify(expected_journal=[3, 3, 2])
        assert self.harness.state == HarnessState.FAILED
        assert self.harness.failure.stage == "verify"

        self.harness.reset()
        assert self.harness.state == HarnessState.IDLE
        assert self.harness.failure is None

    def test_wrong_program_identity(self):
        self.harness.run(self.pk, self.ciphertexts, 3, secret_key=self.sk)
        assert not self.harness.verify(Prover().identity, [3, 3, 1])


class TestHarnessStateMachine:
    """Transições inválidas"""

    def setup_method(self):
        self.harness = VerifiableExecutionHarness()

    def test_execute_without_witness(self):
        with pytest.raises(HarnessStateError):
            self.harness.execute()

    def test_prove_without_journal(self):
        with pytest.raises(HarnessStateError):
            self.harness.prove()

    def test_verify_without_receipt(self):
        with pytest.raises(HarnessStateError):
            self.harness.verify()

    def test_reset_from_idle(self):
        self.harness.reset()
        assert self.harness.state == HarnessState.IDLE


class TestHarnessFailures:
    """Falhas de montagem e de execução"""

    def setup_method(self):
        self.crypto_params = BFVCryptographicParameters.demo_config()
        self.rng = np.random.default_rng(2718)
        self.key_factory = BFVKeyFactory(self.crypto_params)
        self.factory = BFVCiphertextFactory(self.crypto_params)
        self.sk, self.pk = self.key_factory.generate_keypair(self.rng)
        self.ciphertexts = [
            codec.serialize_ciphertext(self.factory.encrypt(v, self.pk, self.rng))
            for ballot in BALLOTS
            for v in ballot
        ]

    def test_strict_assembly_rejects_malformed(self):
        harness = VerifiableExecutionHarness()
        items = list(self.ciphertexts)
        items[4] = items[4][:-3]

        with pytest.raises(WitnessValidationError):
            harness.assemble_witness(self.pk, items, 3, secret_key=self.sk)

        assert harness.state == HarnessState.FAILED
        assert harness.failure.stage == "assemble_witness"
        with pytest.raises(HarnessStateError):
            harness.execute()

    def test_lenient_assembly_drops_ballots(self):
        """Cédulas com itens inválidos são descartadas inteiras"""
        _, other_pk = self.key_factory.generate_keypair(self.rng)
        items = list(self.ciphertexts)
        items[7] = items[7][:10]  # cédula 2
        items[15] = codec.serialize_ciphertext(self.factory.encrypt(1, other_pk, self.rng))  # cédula 5

        harness = VerifiableExecutionHarness()
        witness = harness.assemble_witness(self.pk, items, 3, secret_key=self.sk, strict=False)

        assert [r.ballot for r in witness.rejected] == [2, 5]
        assert [r.position for r in witness.rejected] == [7, 15]
        assert witness.ballot_count == 5

        journal = harness.execute()
        assert journal.tallies == (1, 3, 1)

    def test_lenient_assembly_drops_incomplete_ballot(self):
        harness = VerifiableExecutionHarness()
        witness = harness.assemble_witness(
            self.pk, self.ciphertexts[:20], 3, secret_key=self.sk, strict=False
        )
        assert len(witness.rejected) == 1
        assert witness.rejected[0].ballot == 6
        assert harness.execute().tallies == (3, 2, 1)

    def test_incomplete_ballot_strict(self):
        with pytest.raises(WitnessValidationError):
            VerifiableExecutionHarness().assemble_witness(self.pk, self.ciphertexts[:20], 3)

    def test_size_limits(self):
        with pytest.raises(WitnessValidationError):
            VerifiableExecutionHarness(max_ciphertexts=5).assemble_witness(
                self.pk, self.ciphertexts, 3
            )
        with pytest.raises(WitnessValidationError):
            VerifiableExecutionHarness(max_witness_bytes=100).assemble_witness(
                self.pk, self.ciphertexts, 3
            )

    def test_foreign_secret_key(self):
        other_sk, _ = self.key_factory.generate_keypair(self.rng)
        with pytest.raises(WitnessValidationError):
            VerifiableExecutionHarness().assemble_witness(
                self.pk, self.ciphertexts, 3, secret_key=other_sk
            )

    def test_invalid_columns(self):
        with pytest.raises(WitnessValidationError):
            VerifiableExecutionHarness().assemble_witness(self.pk, self.ciphertexts, 0)

    def test_noise_overflow_fault(self):
        """Uma soma além do orçamento falha com operação e índice"""
        params = BFVCryptographicParameters.shallow_config()
        sk, pk = BFVKeyFactory(params).generate_keypair(self.rng)
        factory = BFVCiphertextFactory(params)
        count = params.max_addition_depth + 1
        cts = factory.encrypt_many([1] * count, pk, self.rng)

        harness = VerifiableExecutionHarness()
        harness.assemble_witness(pk, cts, 1, secret_key=sk)
        with pytest.raises(ExecutionFault) as exc_info:
            harness.execute()

        fault = exc_info.value
        assert fault.operation == "homomorphic_add"
        assert fault.index == count - 1
        assert harness.state == HarnessState.FAILED
        assert harness.failure.stage == "execute"
        assert harness.failure.operation == "homomorphic_add"
        assert harness.failure.index == count - 1
        assert harness.journal is None
        assert not harness.witness.has_secret_key

    def test_zeroed_noise_bound_still_faults(self):
        """Zerar o limite de ruído nos bytes não desliga a checagem no guest"""
        params = BFVCryptographicParameters.shallow_config()
        sk, pk = BFVKeyFactory(params).generate_keypair(self.rng)
        factory = BFVCiphertextFactory(params)
        count = params.max_addition_depth + 1
        cts = [
            data[:13] + bytes(8) + data[21:]
            for data in (
                codec.serialize_ciphertext(ct)
                for ct in factory.encrypt_many([1] * count, pk, self.rng)
            )
        ]

        harness = VerifiableExecutionHarness()
        harness.assemble_witness(pk, cts, 1, secret_key=sk)
        with pytest.raises(ExecutionFault) as exc_info:
            harness.execute()

        assert exc_info.value.operation == "homomorphic_add"
        assert exc_info.value.index == count - 1
        assert harness.state == HarnessState.FAILED

    def test_cycle_budget(self):
        harness = VerifiableExecutionHarness(executor=GuestExecutor(max_cycles=5))
        harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)

        with pytest.raises(ExecutionFault) as exc_info:
            harness.execute()

        assert exc_info.value.operation == "decode_witness"
        assert harness.failure.stage == "execute"

    def test_unexpected_guest_error_fails_run(self):
        """Qualquer exceção do guest vira ExecutionFault e o harness pode ser reiniciado"""

        def broken_program(witness_bytes, meter):
            meter.charge("lookup", 2)
            return {}["ausente"]

        harness = VerifiableExecutionHarness(executor=GuestExecutor(program=broken_program))
        harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)

        with pytest.raises(ExecutionFault) as exc_info:
            harness.execute()

        assert exc_info.value.operation == "lookup"
        assert exc_info.value.index == 2
        assert "KeyError" in exc_info.value.message
        assert harness.state == HarnessState.FAILED

        harness.reset()
        assert harness.state == HarnessState.IDLE

    def test_reset_after_failure(self):
        harness = VerifiableExecutionHarness()
        with pytest.raises(WitnessValidationError):
            harness.assemble_witness(self.pk, [b"lixo"] * 3, 3)

        harness.reset()
        harness.assemble_witness(self.pk, self.ciphertexts, 3, secret_key=self.sk)
        assert harness.execute().tallies == (3, 3, 1)
