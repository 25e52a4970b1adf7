"""Command-line interface for credgate operators.

This module provides CLI commands for hashing and verifying secrets,
generating strong secrets, and issuing or inspecting bearer tokens with the
engine configured from ``CREDGATE_*`` environment variables.

Example:
    >>> # From terminal:
    >>> # credgate --version
    >>> # credgate hash-secret demo123
    >>> # credgate hash-secret demo-secret --client
    >>> # credgate verify-secret demo123 '$argon2id$v=19$...'
    >>> # credgate generate-secret --length 48
    >>> # credgate issue-token demo-client --scope "read write" --ttl 600
    >>> # credgate inspect-token <token>
"""

import json
from typing import Annotated, Optional

import typer

from credgate import __version__
from credgate.auth.introspection import TokenIntrospector
from credgate.auth.scopes import is_valid_scope_format, normalize_scope
from credgate.config import EngineConfig
from credgate.crypto.hashing import SecretHasher
from credgate.crypto.secrets import MIN_SECRET_LENGTH, generate_secure_secret
from credgate.errors import ConfigurationError
from credgate.tokens.engine import TokenEngine

app = typer.Typer(help="credgate credential engine CLI.")

# Exit code for a secret that does not match its hash
EXIT_MISMATCH = 1


def _version_callback(value: bool) -> None:
    """Print the version and exit when requested."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


VERSION_OPTION = typer.Option(
    False,
    "--version",
    help="Show credgate version and exit.",
    callback=_version_callback,
    is_eager=True,
)


@app.callback()
def cli(version: bool = VERSION_OPTION) -> None:
    """credgate CLI entrypoint."""


def _load_config() -> EngineConfig:
    try:
        return EngineConfig.from_env()
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc.message}", err=True)
        raise typer.Exit(1) from exc


@app.command("hash-secret")
def hash_secret(
    secret: Annotated[str, typer.Argument(help="Secret to hash.")],
    client: Annotated[
        bool,
        typer.Option("--client", help="Use the client secret hashing parameters."),
    ] = False,
) -> None:
    """Print an Argon2id hash of SECRET."""
    config = _load_config()
    params = config.client_secret_hashing if client else config.password_hashing
    try:
        typer.echo(SecretHasher(params).hash(secret))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command("verify-secret")
def verify_secret(
    secret: Annotated[str, typer.Argument(help="Candidate secret.")],
    stored_hash: Annotated[str, typer.Argument(metavar="HASH", help="Stored hash.")],
) -> None:
    """Check SECRET against HASH; exits 1 on mismatch."""
    config = _load_config()
    hasher = SecretHasher(config.password_hashing, config.allow_plaintext_secrets)
    try:
        matches = hasher.verify(secret, stored_hash)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if not matches:
        typer.echo("Secret does not match", err=True)
        raise typer.Exit(EXIT_MISMATCH)
    typer.echo("Secret matches")
    if hasher.needs_rehash(stored_hash):
        typer.echo("Warning: hash should be regenerated with current parameters", err=True)


@app.command("generate-secret")
def generate_secret(
    length: Annotated[
        int,
        typer.Option("--length", "-n", help=f"Secret length (minimum {MIN_SECRET_LENGTH})."),
    ] = MIN_SECRET_LENGTH,
) -> None:
    """Print a random secret with upper, lower, digit and special characters."""
    try:
        typer.echo(generate_secure_secret(length))
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


@app.command("issue-token")
def issue_token(
    client_id: Annotated[str, typer.Argument(help="Token subject and client_id claim.")],
    scope: Annotated[
        Optional[str],
        typer.Option("--scope", "-s", help="Space-separated scopes to embed."),
    ] = None,
    ttl: Annotated[
        Optional[int],
        typer.Option("--ttl", help="Lifetime in seconds (capped at the configured maximum)."),
    ] = None,
) -> None:
    """Sign an access token for CLIENT_ID without client authentication."""
    if not client_id.strip():
        raise typer.BadParameter("client_id cannot be blank")
    if scope is not None and not is_valid_scope_format(scope):
        raise typer.BadParameter(f"Invalid scope: {scope}")
    config = _load_config()
    engine = TokenEngine(config.tokens)
    response = engine.issue_for_client(client_id.strip(), normalize_scope(scope), ttl)
    typer.echo(json.dumps(response.to_wire(), indent=2))


@app.command("inspect-token")
def inspect_token(
    token: Annotated[str, typer.Argument(help="Bearer token to introspect.")],
) -> None:
    """Print the RFC 7662 introspection response for TOKEN."""
    config = _load_config()
    introspector = TokenIntrospector(TokenEngine(config.tokens))
    typer.echo(json.dumps(introspector.introspect(token).to_wire(), indent=2))


def main() -> None:
    """Run the credgate CLI."""
    app()


if __name__ == "__main__":
    main()
