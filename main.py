"""
Demonstração: apuração de votos cifrados com BFV e recibo verificável.

Executa dois fluxos:
1. Executor detentor da chave: apura e publica as contagens em claro
2. Desafiante externo: o executor apura sem a chave e o desafiante confere
"""

import logging

from bfv_core import BFVCiphertextFactory, BFVCryptographicParameters, BFVKeyFactory
from zkvm_harness import Challenger, VerifiableExecutionHarness, verify

OPTIONS = ["Aumentar o tamanho do bloco", "Escalar com camada 2", "Manter os parâmetros"]


def encode_vote(option: int, num_options: int = len(OPTIONS)):
    """Codifica a escolha como vetor one-hot, um ciphertext por opção."""
    if not 0 <= option < num_options:
        raise ValueError(f"Opção {option} inválida para {num_options} opções")
    return [1 if i == option else 0 for i in range(num_options)]


def demo_key_holder(crypto_params, rng):
    print("=== FLUXO 1: EXECUTOR DETENTOR DA CHAVE ===")
    secret_key, public_key = BFVKeyFactory(crypto_params).generate_keypair(rng)
    factory = BFVCiphertextFactory(crypto_params)
    print(f"Chave pública gerada: {public_key.key_id}")

    choices = [0, 1, 0, 2, 1, 0, 1]
    ciphertexts = []
    for voter, choice in enumerate(choices):
        ciphertexts.extend(
            factory.encrypt(v, public_key, rng) for v in encode_vote(choice)
        )
        print(f"  Eleitor {voter + 1}: voto cifrado ({len(OPTIONS)} ciphertexts)")

    harness = VerifiableExecutionHarness()
    harness.assemble_witness(public_key, ciphertexts, len(OPTIONS), secret_key=secret_key)
    journal = harness.execute()
    receipt = harness.prove()

    for option, count in zip(OPTIONS, journal.tallies):
        print(f"  {option}: {count}")
    print(f"Ciclos do guest: {harness.cycles_used}")
    print(f"Digest do witness: {journal.witness_digest[:16]}...")

    expected = [choices.count(i) for i in range(len(OPTIONS))]
    print(f"verify(recibo, {expected}) = {verify(receipt, expected, harness.identity)}")
    wrong = list(expected)
    wrong[-1] += 1
    print(f"verify(recibo, {wrong}) = {verify(receipt, wrong, harness.identity)}")


def demo_challenger(crypto_params, rng):
    print("\n=== FLUXO 2: DESAFIANTE EXTERNO ===")
    challenger = Challenger(crypto_params, rng=rng)
    challenge = challenger.create_challenge(count=5, columns=len(OPTIONS))
    print(f"Desafio {challenge.challenge_id}: {len(challenge.ciphertexts)} ciphertexts")

    harness = VerifiableExecutionHarness()
    receipt = harness.run(challenge.public_key, challenge.ciphertexts, challenge.columns)

    result = challenger.verify_result(challenge, receipt, harness.identity)
    print(f"Sucesso: {result.success}")
    print(f"Resultados descriptografados: {result.decrypted_results}")
    print(f"Registro: {', '.join(result.verification_log)}")


def main():
    crypto_params = BFVCryptographicParameters.default_config()
    crypto_params.print_parameters_summary()
    rng = crypto_params.make_rng()

    demo_key_holder(crypto_params, rng)
    demo_challenger(crypto_params, rng)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    main()
