"""
Command-line interface for the panagram prover.

The ``prove`` command prints the ABI-encoded proof as ``0x`` hex on stdout so
that a Foundry ``ffi`` call can read it back directly.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from panagram_prover import __version__
from panagram_prover.config import load_config
from panagram_prover.pipeline import (
    PipelineError,
    PipelineFailed,
    PipelineRun,
    ProofRequest,
    decode,
    encode_bundle,
    hash_word,
    load_artifact,
    make_bundle,
)


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@click.group()
@click.version_option(version=__version__)
@click.option('--verbose', is_flag=True, help='Enable debug logging on stderr')
def main(verbose):
    """
    Panagram proof generator.

    Builds UltraHonk proofs that a guessed word matches the committed answer
    and encodes them for the on-chain verifier.
    """
    _configure_logging(verbose)


@main.command()
@click.argument('guess_hash')
@click.argument('answer_hash')
@click.option(
    '--artifact',
    type=click.Path(dir_okay=False),
    help='Compiled circuit JSON (default: $PANAGRAM_ARTIFACT or circuits/target/zk_panagram.json)'
)
@click.option('--threads', type=click.IntRange(min=1), help='Proving threads')
@click.option(
    '--hash-mode',
    type=click.Choice(['native', 'keccak'], case_sensitive=False),
    help='Public-input hash expected by the verifier (default: keccak)'
)
@click.option(
    '--config',
    'config_file',
    type=click.Path(exists=True, dir_okay=False),
    help='YAML configuration file'
)
@click.option(
    '--bundle-out',
    type=click.Path(dir_okay=False),
    help='Also write a CBOR proof bundle to this path'
)
@click.option('--verify', is_flag=True, help='Check the proof locally with bb verify')
def prove(guess_hash, answer_hash, artifact, threads, hash_mode, config_file, bundle_out, verify):
    """
    Generate an encoded proof for GUESS_HASH against ANSWER_HASH.

    Examples:

        panagram-prover prove 0x01 0x01

        panagram-prover prove "$(panagram-prover hash-word triangles)" \\
            "$(panagram-prover hash-word triangles)" --threads 4
    """
    try:
        config = load_config(
            config_file,
            artifact_path=artifact,
            parallelism=threads,
            hash_mode=hash_mode,
        )
        circuit = load_artifact(config.artifact_path)
    except PipelineError as e:
        click.echo(f"setup: {type(e).__name__}: {e}", err=True)
        sys.exit(1)

    pipeline = config.build_pipeline()
    state = PipelineRun()
    request = ProofRequest(guess_hash=guess_hash, answer_hash=answer_hash)
    try:
        encoded = pipeline.run(circuit, request, config.prover_options(), state=state)
    except PipelineFailed as failure:
        click.echo(f"{failure.stage.value}: {failure.kind}: {failure.error}", err=True)
        sys.exit(1)

    raw_proof = state.raw_proof
    if verify and not config.build_backend().verify(circuit, raw_proof):
        click.echo("verify: proof rejected by bb verify", err=True)
        sys.exit(1)

    if bundle_out:
        try:
            bundle = make_bundle(
                raw_proof,
                circuit.artifact_hash,
                meta={
                    "circuit": circuit.name,
                    "noir_version": circuit.noir_version,
                    "parallelism": config.parallelism,
                    "prover": "bb",
                },
            )
            Path(bundle_out).write_bytes(encode_bundle(bundle))
        except (PipelineError, OSError) as e:
            click.echo(f"bundle: {type(e).__name__}: {e}", err=True)
            sys.exit(1)

    click.echo(encoded.hex())


@main.command('hash-word')
@click.argument('word')
def hash_word_command(word):
    """Print the field hash of WORD (keccak256 reduced into BN254)."""
    click.echo(hash_word(word))


@main.command('decode')
@click.argument('encoded')
def decode_command(encoded):
    """Print the raw proof bytes (hex) inside an ABI-encoded proof."""
    try:
        click.echo("0x" + decode(encoded).hex())
    except PipelineError as e:
        click.echo(f"decode: {type(e).__name__}: {e}", err=True)
        sys.exit(1)


@main.command()
@click.argument('artifact', type=click.Path(dir_okay=False))
def inspect(artifact):
    """Show the ABI of a compiled circuit ARTIFACT."""
    try:
        circuit = load_artifact(artifact)
    except PipelineError as e:
        click.echo(f"inspect: {type(e).__name__}: {e}", err=True)
        sys.exit(1)

    table = Table(title=f"{circuit.name} (noir {circuit.noir_version or 'unknown'})")
    table.add_column("Parameter")
    table.add_column("Kind")
    table.add_column("Visibility")
    for param in circuit.parameters:
        table.add_row(param.name, param.kind, param.visibility)
    Console().print(table)
    click.echo(f"Program dir: {circuit.program_dir}")
    click.echo(f"Bytecode: {len(circuit.program)} bytes")


if __name__ == '__main__':
    main()
