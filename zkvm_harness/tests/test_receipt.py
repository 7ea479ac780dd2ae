"""
Testes para recibos, identidade do programa e verificação.
"""

from dataclasses import replace

import pytest

from bfv_core import ciphertext_factory, codec
from zkvm_harness import guest, host
from zkvm_harness.errors import ProofVerificationFailure
from zkvm_harness.journal import ExecutionJournal
from zkvm_harness.receipt import (
    GUEST_IMAGE_MODULES,
    ProgramIdentity,
    Prover,
    Receipt,
    compute_claim_digest,
    compute_image_id,
    verify,
)


class TestReceipt:
    """Testes de integridade do recibo"""

    def setup_method(self):
        self.prover = Prover()
        self.identity = self.prover.identity
        self.witness_digest = "ab" * 32
        self.journal = ExecutionJournal(
            witness_digest=self.witness_digest,
            key_id="00" * 8,
            ciphertext_count=21,
            columns=3,
            tallies=(3, 3, 1),
        )
        self.receipt = self.prover.prove(self.witness_digest, self.journal.to_bytes())

    def test_valid_receipt(self):
        assert verify(self.receipt, [3, 3, 1], self.identity)
        assert verify(self.receipt, self.journal, self.identity)
        assert verify(self.receipt, self.journal.to_bytes(), self.identity)
        assert verify(self.receipt, None, self.identity)
        assert self.receipt.verify_integrity(self.identity) == self.journal

    def test_unexpected_tallies(self):
        assert not verify(self.receipt, [3, 3, 2], self.identity)
        assert not verify(self.receipt, [3, 3], self.identity)

    def test_non_sequence_expectation(self):
        """Expectativas não iteráveis rejeitam o recibo sem lançar exceção"""
        assert verify(self.receipt, 5, self.identity) is False
        assert verify(self.receipt, 3.0, self.identity) is False
        assert verify(self.receipt, object(), self.identity) is False

    def test_claim_digest(self):
        assert self.receipt.claim_digest == compute_claim_digest(
            self.identity.image_id, self.witness_digest, self.journal.to_bytes()
        )

    def test_tampered_seal(self):
        seal = bytearray(self.receipt.seal)
        seal[-1] ^= 0x01
        tampered = replace(self.receipt, seal=bytes(seal))

        assert not verify(tampered, [3, 3, 1], self.identity)
        with pytest.raises(ProofVerificationFailure):
            tampered.verify_integrity(self.identity)

    def test_tampered_image_id(self):
        tampered = replace(self.receipt, image_id="cd" * 32)
        assert not verify(tampered, [3, 3, 1], self.identity)

        with pytest.raises(ProofVerificationFailure) as exc_info:
            tampered.verify_integrity(self.identity)
        assert "image_id" in exc_info.value.reason

    def test_tampered_journal(self):
        forged = replace(self.journal, tallies=(3, 3, 2))
        tampered = replace(self.receipt, journal=forged.to_bytes())

        assert not verify(tampered, [3, 3, 2], self.identity)

    def test_journal_bound_to_witness(self):
        """Um journal que compromete outro witness é rejeitado mesmo assinado"""
        other = replace(self.journal, witness_digest="ef" * 32)
        receipt = self.prover.prove(self.witness_digest, other.to_bytes())

        with pytest.raises(ProofVerificationFailure):
            receipt.verify_integrity(self.identity)
        assert not verify(receipt, None, self.identity)

    def test_other_prover(self):
        assert not verify(self.receipt, [3, 3, 1], Prover().identity)

    def test_garbage_inputs(self):
        assert not verify("recibo", [3, 3, 1], self.identity)
        assert not verify(self.receipt, [3, 3, 1], "identidade")
        bad_identity = ProgramIdentity(self.identity.image_id, "não é PEM")
        assert not verify(self.receipt, [3, 3, 1], bad_identity)
        assert not verify(replace(self.receipt, witness_digest="zz"), None, self.identity)

    def test_dict_roundtrip(self):
        restored = Receipt.from_dict(self.receipt.to_dict())
        assert restored == self.receipt
        assert verify(restored, [3, 3, 1], self.identity)

    def test_receipt_is_immutable(self):
        with pytest.raises(AttributeError):
            self.receipt.seal = b""


class TestProgramIdentity:
    def test_image_id_depends_on_version(self):
        assert compute_image_id() == compute_image_id(
            GUEST_IMAGE_MODULES, guest.GUEST_PROGRAM_VERSION
        )
        assert compute_image_id(version="bfv-tally-guest/2") != compute_image_id()
        assert len(compute_image_id()) == 64

    def test_image_id_covers_every_guest_module(self):
        """Trocar qualquer módulo executado pelo guest muda o image_id"""
        assert ciphertext_factory in GUEST_IMAGE_MODULES
        assert codec in GUEST_IMAGE_MODULES

        baseline = compute_image_id()
        for position in range(len(GUEST_IMAGE_MODULES)):
            modules = list(GUEST_IMAGE_MODULES)
            modules[position] = host
            assert compute_image_id(modules) != baseline

    def test_image_id_depends_on_module_order(self):
        reordered = tuple(reversed(GUEST_IMAGE_MODULES))
        assert compute_image_id(reordered) != compute_image_id()

    def test_prover_identity_is_stable(self):
        prover = Prover()
        assert prover.identity == prover.identity
        assert prover.identity.verifying_key_pem.startswith("-----BEGIN PUBLIC KEY-----")


class TestJournal:
    def test_canonical_encoding(self):
        journal = ExecutionJournal("aa", "bb", 3, 3, tallies=(1, 0, 2))
        data = journal.to_bytes()
        assert b" " not in data
        assert ExecutionJournal.from_bytes(data) == journal

    def test_non_canonical_rejected(self):
        journal = ExecutionJournal("aa", "bb", 3, 3, tallies=(1, 0, 2))
        spaced = journal.to_bytes().replace(b",", b", ")
        with pytest.raises(ProofVerificationFailure):
            ExecutionJournal.from_bytes(spaced)
        with pytest.raises(ProofVerificationFailure):
            ExecutionJournal.from_bytes(b"{}")

    def test_requires_one_kind_of_tally(self):
        with pytest.raises(ValueError):
            ExecutionJournal("aa", "bb", 3, 3)
        with pytest.raises(ValueError):
            ExecutionJournal("aa", "bb", 3, 3, tallies=(1,), encrypted_tallies=("00",))
        with pytest.raises(ValueError):
            ExecutionJournal("aa", "bb", 3, 3, tallies=(1, 2))
