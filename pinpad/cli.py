#!/usr/bin/env python3
"""
PinPad CLI

Command-line interface for PIN-addressed peer sessions and the share store.

Usage:
    pinpad host                       # Host a session and show its PIN
    pinpad host --watch pad.py        # Keep a local file in sync with the document
    pinpad join PIN --peer HOST:PORT  # Join a session
    pinpad save FILE | --text TEXT    # Save to the share store
    pinpad load CODE                  # Load from the share store
    pinpad purge                      # Drop expired share store items
    pinpad config                     # Show the effective configuration
    pinpad serve                      # Run the share store HTTP API
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.syntax import Syntax
from rich.table import Table

from .config import EXAMPLE_CONFIG, load_config, parse_endpoint
from .errors import NoPeer, PinPadError
from .node import PeerPad
from .session.manager import PEER_DISCONNECTED
from .store import ItemKind, create_store
from .transfer import CompletedFile
from .transfer.engine import guess_mime_type

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(), help='JSON config file')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.pass_context
def cli(ctx, verbose, config_path, data_dir):
    """PinPad - share code and files with a 6-digit PIN."""
    config = load_config(Path(config_path) if config_path else None)
    if data_dir:
        config.data_dir = Path(data_dir)
        config.download_dir = config.data_dir / 'received'

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


# === Live sessions ===

async def _load_snippet(config, code: str) -> Optional[str]:
    store = create_store(config.data_dir)
    await store.open()
    try:
        item = await store.load(code)
    finally:
        await store.close()
    if item.kind != ItemKind.SNIPPET:
        console.print(f"[yellow]{code} holds a file, not a snippet[/yellow]")
        return None
    return item.content


async def watch_document(pad: PeerPad, path: Path, interval: float = 0.5):
    """
    Keep ``path`` and the shared document in step.

    Saving the file pushes its text as a local edit; a peer's edit is written
    back into the file. Whichever change is seen last wins.
    """
    synced: Optional[str] = None
    signature = None

    while True:
        if synced is not None and pad.text != synced:
            synced = pad.text
            async with aiofiles.open(path, 'w', encoding='utf-8') as f:
                await f.write(synced)
            stat = await aiofiles.os.stat(path)
            signature = (stat.st_mtime_ns, stat.st_size)
        elif await aiofiles.os.path.exists(path):
            stat = await aiofiles.os.stat(path)
            if (stat.st_mtime_ns, stat.st_size) != signature:
                signature = (stat.st_mtime_ns, stat.st_size)
                async with aiofiles.open(path, 'r', encoding='utf-8') as f:
                    synced = await f.read()
                if synced != pad.text:
                    try:
                        await pad.update_code(synced)
                    except NoPeer:
                        logger.debug(f"Peer gone before {path.name} could be sent")
        elif synced is None:
            synced = pad.text
        await asyncio.sleep(interval)


async def _run_session(pad: PeerPad, config, send_path: Optional[Path],
                       watch_path: Optional[Path] = None):
    """Print document changes, save received files, send a file once connected."""
    received: asyncio.Queue = asyncio.Queue()
    finished = asyncio.Event()

    def on_change(text: str, origin: str):
        if origin == 'remote':
            console.print(Panel(Syntax(text, "python", theme="monokai"), title="Document updated by peer"))

    def on_notice(notice: str):
        console.print(f"[yellow]{notice}[/yellow]")
        if notice == PEER_DISCONNECTED:
            finished.set()

    pad.document.on_change(on_change)
    pad.files.on_file_received(received.put_nowait)
    pad.session.on_notice(on_notice)

    async def save_received():
        while True:
            completed: CompletedFile = await received.get()
            path = await completed.save(config.download_dir)
            console.print(f"[green]✓ Received {completed.name} ({format_size(completed.size)}) -> {path}[/green]")

    async def send_when_connected():
        while not pad.is_connected:
            await asyncio.sleep(0.2)
        console.print("[green]Peer connected[/green]")
        if send_path is None:
            return
        size = send_path.stat().st_size
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Sending {send_path.name}", total=max(size, 1))
            pad.files.on_send_progress(lambda t: progress.update(task, completed=t.bytes_sent))
            try:
                await pad.send_file(send_path)
            except PinPadError as e:
                console.print(f"[red]✗ {e.message}[/red]")
                return
            progress.update(task, completed=max(size, 1))

    tasks = [
        asyncio.create_task(save_received()),
        asyncio.create_task(send_when_connected()),
    ]
    if watch_path is not None:
        console.print(f"[dim]Syncing document with {watch_path}[/dim]")
        tasks.append(asyncio.create_task(watch_document(pad, watch_path)))
    try:
        await finished.wait()
    finally:
        for task in tasks:
            task.cancel()
        await pad.leave()


@cli.command()
@click.option('--port', type=int, help='Session TCP port')
@click.option('--text', default='', help='Initial document text')
@click.option('--load', 'load_code', help='Seed the document from a share code')
@click.option('--file', 'send_file', type=click.Path(exists=True, dir_okay=False), help='File to send once a peer joins')
@click.option('--watch', 'watch_file', type=click.Path(dir_okay=False), help='Keep the document in sync with this file')
@click.pass_context
def host(ctx, port, text, load_code, send_file, watch_file):
    """Host a session and wait for a peer."""
    config = ctx.obj['config']
    if port:
        config.session_port = port

    async def run():
        pad = PeerPad.over_tcp(config, text)
        try:
            if load_code:
                loaded = await _load_snippet(config, load_code)
                if loaded is not None:
                    pad.set_initial_code(loaded)

            pin = await pad.create_session()
            console.print(Panel.fit(
                f"[bold green]Session Started[/bold green]\n\n"
                f"PIN (share this): [bold cyan]{pin}[/bold cyan]\n"
                f"Listening on: [yellow]{config.session_host}:{pad.session.transport.port}[/yellow]",
                title="Session"
            ))
            console.print("[dim]Waiting for peer... Press Ctrl+C to stop[/dim]\n")
            await _run_session(
                pad, config,
                Path(send_file) if send_file else None,
                Path(watch_file) if watch_file else None,
            )
        except PinPadError as e:
            console.print(f"[red]✗ {e.message}[/red]")
        finally:
            await pad.leave()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Session closed[/yellow]")


@cli.command()
@click.argument('pin')
@click.option('--peer', help='Host endpoint (host:port)')
@click.option('--text', default='', help='Initial document text')
@click.option('--file', 'send_file', type=click.Path(exists=True, dir_okay=False), help='File to send once connected')
@click.option('--watch', 'watch_file', type=click.Path(dir_okay=False), help='Keep the document in sync with this file')
@click.pass_context
def join(ctx, pin, peer, text, send_file, watch_file):
    """Join the session identified by PIN."""
    config = ctx.obj['config']
    if peer:
        try:
            config.peer_endpoint = parse_endpoint(peer)
        except ValueError as e:
            console.print(f"[red]{e}[/red]")
            return
    if config.peer_endpoint is None:
        console.print("[red]No host endpoint given (use --peer host:port)[/red]")
        return

    async def run():
        pad = PeerPad.over_tcp(config, text)
        try:
            await pad.join_session(pin)
            console.print(f"[green]Joined session {pin}[/green]")
            await _run_session(
                pad, config,
                Path(send_file) if send_file else None,
                Path(watch_file) if watch_file else None,
            )
        except PinPadError as e:
            console.print(f"[red]✗ {e.message}[/red]")
        finally:
            await pad.leave()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Session closed[/yellow]")


# === Share store ===

@cli.command()
@click.argument('file_path', required=False, type=click.Path(exists=True, dir_okay=False))
@click.option('--text', help='Snippet text to save instead of a file')
@click.option('--language', default='plaintext', help='Snippet language')
@click.pass_context
def save(ctx, file_path, text, language):
    """Save a snippet or a file to the share store."""
    config = ctx.obj['config']
    if not file_path and text is None:
        console.print("[red]Give a FILE or --text[/red]")
        return

    async def run():
        store = create_store(config.data_dir)
        try:
            await store.open()
            if text is not None:
                item = await store.save_snippet(text, language)
            else:
                path = Path(file_path)
                item = await store.save_file(path.name, path.read_bytes(), guess_mime_type(path.name))
        except PinPadError as e:
            console.print(f"[red]✗ {e.message}[/red]")
            return
        finally:
            await store.close()

        hours = (item.expires_at - item.created_at) / 3600
        console.print(Panel.fit(
            f"[bold green]Saved[/bold green]\n\n"
            f"Code (share this): [bold cyan]{item.code}[/bold cyan]\n"
            f"Expires in: [yellow]{hours:.0f} hours[/yellow]",
            title="Share Store"
        ))

    asyncio.run(run())


@cli.command()
@click.argument('code')
@click.option('--output', '-o', type=click.Path(), help='Where to write a loaded file')
@click.pass_context
def load(ctx, code, output):
    """Load a snippet or file from the share store."""
    config = ctx.obj['config']

    async def run():
        store = create_store(config.data_dir)
        try:
            await store.open()
            item = await store.load(code)
            if item.kind == ItemKind.SNIPPET:
                console.print(Panel(
                    Syntax(item.content or '', item.language or 'text', theme="monokai"),
                    title=f"Snippet {item.code}"
                ))
                return
            data = await store.fetch_file(item)
        except PinPadError as e:
            console.print(f"[red]✗ {e.message}[/red]")
            return
        finally:
            await store.close()

        completed = CompletedFile(name=item.name, size=item.size, content=data,
                                  mime_type=item.mime_type)
        if output:
            target = Path(output)
            target.write_bytes(data)
        else:
            target = await completed.save(config.download_dir)
        console.print(f"[green]✓ {item.name} ({format_size(item.size)}) -> {target}[/green]")

    asyncio.run(run())


@cli.command()
@click.pass_context
def purge(ctx):
    """Delete expired items from the share store."""
    config = ctx.obj['config']

    async def run():
        store = create_store(config.data_dir)
        try:
            await store.open()
            removed = await store.purge_expired()
        except PinPadError as e:
            console.print(f"[red]✗ {e.message}[/red]")
            return
        finally:
            await store.close()
        console.print(f"[green]Purged {removed} expired item(s)[/green]")

    asyncio.run(run())


@cli.command('config')
@click.option('--write', 'write_path', type=click.Path(dir_okay=False), help='Write the effective config as JSON')
@click.option('--example', is_flag=True, help='Print an example config file')
@click.pass_context
def show_config(ctx, write_path, example):
    """Show the effective configuration."""
    config = ctx.obj['config']

    if example:
        console.print(Syntax(EXAMPLE_CONFIG.strip(), "json"))
        return

    table = Table(title="Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value) if value is not None else "-")
    console.print(table)

    if write_path:
        config.save(Path(write_path))
        console.print(f"[green]Written to {write_path}[/green]")


@cli.command()
@click.option('--api-port', type=int, help='REST API port')
@click.pass_context
def serve(ctx, api_port):
    """Run the share store HTTP API."""
    config = ctx.obj['config']
    port = api_port or config.api_port

    from .api import run_api_server

    console.print(f"[dim]Share store API at http://localhost:{port} (docs at /docs)[/dim]")
    try:
        asyncio.run(run_api_server(create_store(config.data_dir), host=config.api_host, port=port))
    except PinPadError as e:
        console.print(f"[red]✗ {e.message}[/red]")


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


if __name__ == '__main__':
    cli()
