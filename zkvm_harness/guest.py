"""
Programa guest de apuração.

Função pura dos bytes do witness: não faz E/S, não usa aleatoriedade e não
depende de estado global. O identificador de imagem é o SHA-256 do código
fonte deste módulo, então qualquer alteração aqui muda a identidade do
programa.

Passos:
1. Decodifica o witness, os parâmetros e a chave pública
2. Decodifica cada ciphertext conferindo o key_id
3. Soma cada coluna, conferindo chave e ruído após cada adição
4. Se tiver a chave secreta, descriptografa as somas e descarta a chave
5. Compromete o journal
"""

from bfv_core import codec
from bfv_core.bfv import BFVCiphertext
from bfv_core.ciphertext_factory import BFVCiphertextFactory
from bfv_core.constants import BFVCryptographicParameters
from bfv_core.errors import KeyMismatchError, NoiseOverflowError

from .journal import ExecutionJournal
from .witness import ExecutionWitness

GUEST_PROGRAM_VERSION = "bfv-tally-guest/1"


def _cycle_costs(n: int) -> dict:
    # Custo aproximado por operação, proporcional ao trabalho no anel
    return {
        "decode_ciphertext": 2 * n,
        "homomorphic_add": 2 * n,
        "decrypt": 2 * n * n,
        "serialize_tally": 2 * n,
    }


def tally_program(witness_bytes: bytes, meter) -> bytes:
    """
    Apura as colunas do witness e devolve o journal canônico.

    Args:
        witness_bytes: Codificação canônica do witness
        meter: Medidor de ciclos; `meter.charge(operation, index, cycles)`

    Returns:
        bytes: Journal comprometido
    """
    meter.charge("decode_witness", None, len(witness_bytes) // 64 + 1)
    witness = ExecutionWitness.from_bytes(witness_bytes, meter.max_ciphertexts)
    digest = witness.public_digest

    meter.charge("decode_parameters")
    crypto_params = BFVCryptographicParameters.from_identifier(witness.params_id)
    costs = _cycle_costs(crypto_params.POLYNOMIAL_DEGREE)

    meter.charge("decode_public_key", None, costs["decode_ciphertext"])
    public_key = codec.deserialize_public_key(witness.public_key, crypto_params)

    if not witness.ciphertexts:
        raise ValueError("Witness sem ciphertexts")
    if len(witness.ciphertexts) % witness.columns != 0:
        raise ValueError("Número de ciphertexts não é múltiplo do número de colunas")

    tallies = [None] * witness.columns
    for index, data in enumerate(witness.ciphertexts):
        meter.charge("decode_ciphertext", index, costs["decode_ciphertext"])
        ciphertext = codec.deserialize_ciphertext(data, crypto_params, public_key)

        column = index % witness.columns
        if tallies[column] is None:
            tallies[column] = ciphertext
            continue

        meter.charge("homomorphic_add", index, costs["homomorphic_add"])
        total = BFVCiphertext.add_homomorphic(tallies[column], ciphertext)
        if total.key_id != public_key.key_id:
            raise KeyMismatchError(f"Soma da coluna {column} sob chave inesperada")
        if total.is_noise_budget_exhausted():
            raise NoiseOverflowError(
                f"Orçamento de ruído esgotado na coluna {column} "
                f"(limite {total.noise_bound})"
            )
        tallies[column] = total

    if witness.secret_key is not None:
        meter.charge("decode_secret_key")
        secret_key = codec.deserialize_secret_key(witness.secret_key, crypto_params)
        if secret_key.key_id != public_key.key_id:
            raise KeyMismatchError("Chave secreta não pertence à chave pública do witness")

        factory = BFVCiphertextFactory(crypto_params)
        plain_tallies = []
        for column, total in enumerate(tallies):
            meter.charge("decrypt", column, costs["decrypt"])
            plain_tallies.append(factory.decrypt(total, secret_key))
        del secret_key

        meter.charge("commit_journal")
        journal = ExecutionJournal(
            witness_digest=digest,
            key_id=public_key.key_id,
            ciphertext_count=len(witness.ciphertexts),
            columns=witness.columns,
            tallies=tuple(plain_tallies),
        )
    else:
        encrypted = []
        for column, total in enumerate(tallies):
            meter.charge("serialize_tally", column, costs["serialize_tally"])
            encrypted.append(codec.serialize_ciphertext(total).hex())

        meter.charge("commit_journal")
        journal = ExecutionJournal(
            witness_digest=digest,
            key_id=public_key.key_id,
            ciphertext_count=len(witness.ciphertexts),
            columns=witness.columns,
            encrypted_tallies=tuple(encrypted),
        )

    return journal.to_bytes()
