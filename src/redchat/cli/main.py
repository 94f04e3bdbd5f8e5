"""
redchat CLI - Main entry point

This module provides the command-line interface for the redchat terminal client.
"""

import asyncio
import logging
import sys

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..client.session import ChatSession, SessionError
from ..core.config import ChatConfig, DEFAULT_LEASE_TTL, DEFAULT_RENEW_INTERVAL, DEFAULT_STORE_URL
from ..core.store import KeyValueStore, StoreError, open_store

console = Console()


def setup_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr"""
    handler = RichHandler(console=Console(stderr=True), show_path=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("redchat")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


async def run_session(config: ChatConfig, store: KeyValueStore) -> int:
    """Run one chat session on an opened store"""
    try:
        await store.ping()
        session = ChatSession(
            config,
            store,
            console=console,
            read_line=lambda prompt: console.input(prompt, markup=False, emoji=False),
        )
        return await session.run()
    finally:
        await store.close()


@click.command()
@click.argument('username')
@click.option('--store-url', '-s', envvar='REDIS_URL', default=DEFAULT_STORE_URL,
              show_default=True, help='Store URI (redis://host:port/db or memory://)')
@click.option('--lease-ttl', default=DEFAULT_LEASE_TTL, show_default=True,
              help='Seconds before an unrenewed presence lease expires')
@click.option('--renew-interval', default=DEFAULT_RENEW_INTERVAL, type=float, show_default=True,
              help='Seconds between presence renewals')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.version_option(__version__, prog_name='redchat')
def cli(username: str, store_url: str, lease_ttl: int, renew_interval: float, verbose: bool):
    """Join the shared chat as USERNAME. Type /who to list users, /exit to leave."""
    setup_logging(verbose)

    try:
        config = ChatConfig(
            username=username,
            store_url=store_url,
            lease_ttl=lease_ttl,
            renew_interval=renew_interval
        )
    except ValidationError as e:
        for error in e.errors():
            console.print(error['msg'], markup=False)
        sys.exit(1)

    if verbose:
        console.print(f"[dim]Using store: {store_url}[/dim]")

    try:
        store = open_store(config.store_url)
    except ValueError as e:
        console.print(f"Invalid store URL: {e}", markup=False)
        sys.exit(1)

    try:
        status = asyncio.run(run_session(config, store))
    except KeyboardInterrupt:
        # the session has already released its presence on the way out
        console.print("\nGoodbye!")
        sys.exit(0)
    except SessionError as e:
        console.print(str(e), markup=False)
        sys.exit(1)
    except StoreError as e:
        console.print(str(e), markup=False)
        sys.exit(1)
    sys.exit(status)


def main():
    """Main entry point"""
    try:
        cli()
    except Exception as e:
        console.print(f"Unexpected error: {e}", markup=False)
        sys.exit(1)


if __name__ == '__main__':
    main()
