"""
Journal: a saída pública comprometida pelo guest.
"""

import json
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import ProofVerificationFailure

JOURNAL_VERSION = 1


@dataclass(frozen=True)
class ExecutionJournal:
    """
    Saída pública de uma execução.

    Exatamente um de `tallies` (modo detentor da chave) ou
    `encrypted_tallies` (modo desafiante, ciphertexts em hex) é preenchido.
    """

    witness_digest: str
    key_id: str
    ciphertext_count: int
    columns: int
    tallies: Optional[Tuple[int, ...]] = None
    encrypted_tallies: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if (self.tallies is None) == (self.encrypted_tallies is None):
            raise ValueError("Journal deve conter apurações em claro ou cifradas, não ambas")
        results = self.tallies if self.tallies is not None else self.encrypted_tallies
        if len(results) != self.columns:
            raise ValueError(
                f"Journal com {len(results)} resultados para {self.columns} colunas"
            )

    @property
    def is_encrypted(self) -> bool:
        return self.encrypted_tallies is not None

    @property
    def ballot_count(self) -> int:
        return self.ciphertext_count // self.columns

    def to_dict(self) -> dict:
        return {
            "version": JOURNAL_VERSION,
            "witness_digest": self.witness_digest,
            "key_id": self.key_id,
            "ciphertext_count": self.ciphertext_count,
            "columns": self.columns,
            "tallies": list(self.tallies) if self.tallies is not None else None,
            "encrypted_tallies": (
                list(self.encrypted_tallies) if self.encrypted_tallies is not None else None
            ),
        }

    def to_bytes(self) -> bytes:
        """JSON canônico: chaves ordenadas e sem espaços."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExecutionJournal":
        """
        Decodifica e confere que os bytes são a forma canônica.

        Raises:
            ProofVerificationFailure: JSON inválido ou não canônico
        """
        try:
            d = json.loads(data.decode("utf-8"))
            if d.get("version") != JOURNAL_VERSION:
                raise ValueError(f"versão {d.get('version')!r}")
            tallies = d["tallies"]
            encrypted = d["encrypted_tallies"]
            journal = cls(
                witness_digest=d["witness_digest"],
                key_id=d["key_id"],
                ciphertext_count=d["ciphertext_count"],
                columns=d["columns"],
                tallies=tuple(tallies) if tallies is not None else None,
                encrypted_tallies=tuple(encrypted) if encrypted is not None else None,
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise ProofVerificationFailure(f"Journal malformado: {e}") from e

        if journal.to_bytes() != bytes(data):
            raise ProofVerificationFailure("Journal não está na forma canônica")
        return journal
