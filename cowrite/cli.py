from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import typer

from cowrite.client import AuthSession, DocumentApi
from cowrite.config import load_settings
from cowrite.docs.errors import CowriteError
from cowrite.identity import AccountRegistry, TokenVerifier
from cowrite.logging_config import init_logging

app = typer.Typer(add_completion=False, help="cowrite command line utilities.")
logger = logging.getLogger(__name__)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to settings)."),
    port: Optional[int] = typer.Option(None, help="Port (defaults to settings)."),
    reload: bool = typer.Option(False, help="Reload on code changes."),
) -> None:
    """Run the document API with uvicorn."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "cowrite.server.app:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


@app.command("add-user")
def add_user(
    email: str,
    name: str = typer.Option("", help="Display name."),
    user_id: Optional[str] = typer.Option(None, "--id", help="Explicit user id."),
) -> None:
    """Register an account with the local identity registry."""
    settings = load_settings()
    init_logging(settings.log_dir, level=settings.log_level, filename="cli.log")
    registry = AccountRegistry(settings.accounts_path)
    try:
        account = registry.register(email, display_name=name, user_id=user_id)
    except ValueError as exc:
        logger.error("Could not register %s: %s", email, exc)
        raise typer.Exit(code=1)
    print(json.dumps({"ok": True, **account.profile()}, indent=2))


@app.command()
def token(
    email: str,
    ttl: Optional[int] = typer.Option(None, help="Lifetime in seconds."),
) -> None:
    """Issue a development bearer token for a registered account."""
    settings = load_settings()
    account = AccountRegistry(settings.accounts_path).by_email(email)
    if account is None:
        logger.error("No account registered for %s", email)
        raise typer.Exit(code=1)
    verifier = TokenVerifier(
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_seconds=settings.token_ttl_seconds,
    )
    print(verifier.issue(account.id, ttl_seconds=ttl))


@app.command()
def docs(
    bearer: str = typer.Option(..., "--token", envvar="COWRITE_TOKEN", help="Bearer token."),
    url: Optional[str] = typer.Option(None, help="Server base URL."),
) -> None:
    """List the documents visible to the token's user."""
    settings = load_settings()
    init_logging(settings.log_dir, level=settings.log_level, filename="cli.log")

    async def _list() -> list:
        auth = AuthSession.login(bearer)
        async with DocumentApi(auth, url) as api:
            return await api.list_documents()

    try:
        documents = asyncio.run(_list())
    except CowriteError as exc:
        logger.error("Listing documents failed: %s", exc.message)
        print(json.dumps({"ok": False, "code": exc.code, "message": exc.message}, indent=2))
        raise typer.Exit(code=1)
    print(json.dumps(documents, indent=2))


def main() -> None:
    app()


if __name__ == "__main__":
    main()
