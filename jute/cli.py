"""
CLI interface for jute with Rich output.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from jute.errors import FormatError, JuteError
from jute.notebook import CodeCell, NotebookRoot, load_notebook
from jute.remote import JupyterClient, KernelInfo, RemoteKernel
from jute.utils import cell_preview, cell_type_label, count_cells


console = Console()


def _run(coro):
    """Run a coroutine, reporting jute errors instead of a traceback."""
    try:
        return asyncio.run(coro)
    except JuteError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


def _load(path: str) -> NotebookRoot:
    try:
        return load_notebook(Path(path))
    except FormatError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


def server_options(func):
    """Add --url and --token options, with environment fallbacks."""
    func = click.option(
        "--token",
        envvar="JUPYTER_TOKEN",
        default="",
        help="Jupyter server token (or JUPYTER_TOKEN)",
    )(func)
    func = click.option(
        "--url",
        envvar="JUPYTER_SERVER_URL",
        default="http://localhost:8888",
        show_default=True,
        help="Jupyter server URL (or JUPYTER_SERVER_URL)",
    )(func)
    return func


def _kernel_table(kernels: list[KernelInfo], title: str) -> Table:
    table = Table(title=title, border_style="blue")
    table.add_column("ID", style="bold cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("State", style="green")
    table.add_column("Connections", justify="right")
    table.add_column("Last Activity", style="dim")
    for kernel in kernels:
        table.add_row(
            escape(kernel.id),
            escape(kernel.name),
            escape(kernel.execution_state),
            str(kernel.connections),
            kernel.last_activity.isoformat(),
        )
    return table


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose: bool):
    """jute: Jupyter notebook files and remote kernels."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )


@main.command()
@click.argument("path", type=click.Path(exists=True))
def info(path: str):
    """Show a summary of a notebook."""
    nb = _load(path)
    meta = nb.metadata

    counts = count_cells(nb)
    lines = [f"[bold white]{escape(meta.title or Path(path).stem)}[/bold white]"]
    if meta.kernelspec is not None:
        lines.append(f"[dim]Kernel:[/dim] {escape(meta.kernelspec.display_name)} ({escape(meta.kernelspec.name)})")
    if meta.language_info is not None:
        lines.append(f"[dim]Language:[/dim] {escape(meta.language_info.name)}")
    if meta.authors:
        names = ", ".join(a.name for a in meta.authors if a.name)
        lines.append(f"[dim]Authors:[/dim] {escape(names)}")
    lines.append(f"[dim]Format:[/dim] nbformat {nb.nbformat}.{nb.nbformat_minor}")
    lines.append(
        f"[dim]Cells:[/dim] {len(nb.cells)} "
        f"({counts['code']} code, {counts['markdown']} markdown, {counts['raw']} raw)"
    )
    console.print(Panel("\n".join(lines), title="[bold blue]jute[/bold blue]", border_style="blue"))

    if not nb.cells:
        return

    table = Table(border_style="dim")
    table.add_column("#", style="bold cyan", justify="right")
    table.add_column("Type")
    table.add_column("In", justify="right")
    table.add_column("Out", justify="right")
    table.add_column("Source", style="white")
    for i, cell in enumerate(nb.cells):
        if isinstance(cell, CodeCell):
            exec_num = str(cell.execution_count) if cell.execution_count is not None else ""
            out_count = str(len(cell.outputs))
        else:
            exec_num = out_count = ""
        table.add_row(str(i), cell_type_label(cell.cell_type), exec_num, out_count, escape(cell_preview(cell)))
    console.print(table)


@main.command()
@click.argument("path", type=click.Path(exists=True))
def check(path: str):
    """Check that a file is a readable notebook."""
    nb = _load(path)
    console.print(f"[green]ok[/green] {escape(path)} [dim](nbformat {nb.nbformat}.{nb.nbformat_minor}, {len(nb.cells)} cells)[/dim]")


@main.command()
@click.argument("path", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), default=None, help="Write here instead of in place")
def normalize(path: str, output: Optional[str]):
    """Rewrite cell sources and stream texts as line lists."""
    nb = _load(path)
    nb.normalize_text()
    target = Path(output or path)
    nb.save(target)
    console.print(f"[green]Normalized:[/green] {escape(str(target))}")


@main.group()
def server():
    """Query a Jupyter server."""


@server.command()
@server_options
def version(url: str, token: str):
    """Show the server's API version."""
    async def _version():
        async with JupyterClient(url, token) as client:
            return await client.get_api_version()

    console.print(f"Jupyter server API [bold]{_run(_version())}[/bold]")


@main.group()
def kernels():
    """Manage kernels on a Jupyter server."""


@kernels.command("list")
@server_options
def list_kernels(url: str, token: str):
    """List running kernels."""
    async def _list():
        async with JupyterClient(url, token) as client:
            return await client.list_kernels()

    found = _run(_list())
    if not found:
        console.print("[yellow]No running kernels[/yellow]")
        return
    console.print(_kernel_table(found, "Running Kernels"))


@kernels.command()
@click.argument("kernel_id")
@server_options
def show(kernel_id: str, url: str, token: str):
    """Show one kernel."""
    async def _show():
        async with JupyterClient(url, token) as client:
            return await client.get_kernel_by_id(kernel_id)

    kernel = _run(_show())
    if kernel is None:
        console.print(f"[red]Error: no kernel with ID {escape(kernel_id)}[/red]")
        sys.exit(1)
    console.print(_kernel_table([kernel], "Kernel"))


@kernels.command()
@click.argument("spec_name", default="python3")
@server_options
def start(spec_name: str, url: str, token: str):
    """Start a kernel and check that its channel opens."""
    async def _start():
        async with JupyterClient(url, token) as client:
            kernel = await RemoteKernel.start(client, spec_name)
            await kernel.close()
            return kernel.id

    kernel_id = _run(_start())
    console.print(f"[green]Started:[/green] {escape(kernel_id)}")
    console.print(f"\n[dim]Stop with:[/dim] jute kernels stop {escape(kernel_id)}")


@kernels.command()
@click.argument("kernel_id")
@server_options
def stop(kernel_id: str, url: str, token: str):
    """Kill a kernel."""
    async def _stop():
        async with JupyterClient(url, token) as client:
            await client.kill_kernel(kernel_id)

    _run(_stop())
    console.print(f"[green]Stopped:[/green] {escape(kernel_id)}")


if __name__ == "__main__":
    main()
