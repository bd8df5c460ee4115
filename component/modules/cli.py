# component/modules/cli.py
"""
CLI do gerenciador de componentes.
- Usa rich para saída colorida, tabelas, painéis e barra de progresso.
- Sem serviço de catálogo acessível, opera com o que está em disco e com os
  descritores gravados no cdk_cache
  (list / show / run / delete continuam funcionando).

Exemplos:
  component list
  component install scanner --version 1.1.1
  component update scanner
  component run scanner -- --help
  component dev my-plugin
  component --catalog-file snapshot.yaml install scanner
"""

from __future__ import annotations
import argparse
import os
import sys
import traceback
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from component.modules.catalog import Catalog, Component
from component.modules.config import config
from component.modules.errors import CatalogServiceError, ComponentError, ProcessError, TransportError
from component.modules.remote import CatalogService, StaticCatalogService
from component.modules.staging import new_stage_tar_gz
from component.modules.status import Status
from component.modules import logger as _logger

LOG = _logger.Logger("cli")


def make_console(no_color: bool, quiet: bool) -> Console:
    if no_color:
        return Console(color_system=None, force_terminal=False, markup=False, quiet=quiet)
    return Console(quiet=quiet)


def print_panel(console: Console, title: str, text: str, style: str = "green"):
    console.print(Panel(text, title=title, style=style))


class CLI:
    def __init__(self, console: Console, catalog: Catalog):
        self.console = console
        self.catalog = catalog

    @classmethod
    def from_args(cls, console: Console, args: argparse.Namespace) -> "CLI":
        cache_dir = args.cache_dir or config.cache_dir()
        if args.catalog_file:
            service = StaticCatalogService.from_file(args.catalog_file)
            catalog = Catalog.load(service, new_stage_tar_gz, cache_dir=cache_dir)
        else:
            try:
                service = CatalogService(base_url=args.api_url)
                catalog = Catalog.load(service, new_stage_tar_gz, include_versions=False, cache_dir=cache_dir)
            except (CatalogServiceError, TransportError) as e:
                LOG.warning(f"Catalog service unavailable, using cached descriptors: {e}")
                return cls(console, Catalog.local(new_stage_tar_gz, cache_dir=cache_dir))
        try:
            catalog.persist()
        except OSError as e:
            LOG.warning(f"Unable to write descriptor cache in {catalog.cache_dir}: {e}")
        return cls(console, catalog)

    # -----------------------
    # list / show / versions
    # -----------------------
    def cmd_list(self, args: argparse.Namespace) -> int:
        table = Table(title="Components")
        table.add_column("Status")
        table.add_column("Name", style="bold")
        table.add_column("Version")
        table.add_column("Description")
        for comp in self.catalog.list_components():
            status, name, version, desc = comp.summary()
            table.add_row(f"[{comp.status.color}]{status}[/{comp.status.color}]", name, version, desc)
        self.console.print(table)
        if not len(self.catalog):
            self.console.print("[yellow]No components found[/yellow]")
        return 0

    def cmd_show(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        lines = [
            f"Name: {comp.name}",
            f"Status: {comp.status}",
            f"Type: {comp.type.value or '-'}",
            f"Installed: {comp.installed_version() or '-'}",
            f"Latest: {comp.latest_version() or '-'}",
            f"Description: {comp.description or '-'}",
        ]
        if comp.local is not None:
            lines.append(f"Path: {comp.local.install_dir}")
        print_panel(self.console, comp.name, "\n".join(lines), style=comp.status.color)
        return 0

    def cmd_versions(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        installed = comp.installed_version()
        table = Table(title=f"{comp.name} versions")
        table.add_column("Version")
        table.add_column("")
        for v in sorted(self.catalog.list_versions(comp), reverse=True):
            table.add_row(str(v), "installed" if installed is not None and v == installed else "")
        self.console.print(table)
        return 0

    # -----------------------
    # install / update / delete
    # -----------------------
    def _stage_verify_install(self, comp: Component, version: str) -> None:
        with Progress(SpinnerColumn(), TextColumn("[progress.description]{task.description}"),
                      BarColumn(), TimeElapsedColumn(), console=self.console,
                      disable=self.console.quiet) as p:
            task = p.add_task(f"download {comp.name}", total=None)

            def on_progress(path: str, done: int, total: int):
                p.update(task, completed=done, total=total or None)

            stage = self.catalog.stage(comp, version, progress=on_progress)

        try:
            self.catalog.verify(comp)
            self.catalog.install(comp)
        finally:
            stage.close()

    def cmd_install(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        self._stage_verify_install(comp, args.version or "")
        print_panel(self.console, "install",
                    f"{comp.name} {comp.installed_version()} installed", style="green")
        if comp.install_message:
            self.console.print(comp.install_message)
        return 0

    def cmd_update(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        if comp.status == Status.INSTALLED and not args.version:
            self.console.print(f"[green]{comp.name} is already at the latest version "
                               f"({comp.installed_version()})[/green]")
            return 0
        previous = comp.installed_version()
        self._stage_verify_install(comp, args.version or "")
        print_panel(self.console, "update",
                    f"{comp.name} updated from {previous or '-'} to {comp.installed_version()}",
                    style="green")
        if comp.update_message:
            self.console.print(comp.update_message)
        return 0

    def cmd_delete(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        self.catalog.delete(comp)
        print_panel(self.console, "delete", f"{comp.name} removed", style="yellow")
        return 0

    # -----------------------
    # run / dev
    # -----------------------
    def cmd_run(self, args: argparse.Namespace) -> int:
        comp = self.catalog.get(args.name)
        cmd_args = list(args.args)
        if cmd_args and cmd_args[0] == "--":
            cmd_args = cmd_args[1:]
        try:
            comp.executor.execute_and_stream(cmd_args)
        except ProcessError as e:
            LOG.debug(f"{comp.name} exited with {e.returncode}")
            return e.returncode
        return 0

    def cmd_dev(self, args: argparse.Namespace) -> int:
        if args.name not in self.catalog:
            self.catalog.components[args.name] = Component(args.name)
        comp = self.catalog.get(args.name)
        path = self.catalog.enter_dev_mode(comp)
        print_panel(self.console, "dev",
                    f"{comp.name} is now in development mode\n{path}\n"
                    f"Place the executable, .version and .signature in {os.path.dirname(path)}",
                    style="cyan")
        return 0


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="component", description="component manager CLI (rich-enabled)")
    ap.add_argument("--no-color", action="store_true", help="Disable color output")
    ap.add_argument("--quiet", action="store_true", help="Quiet mode; less output")
    ap.add_argument("--cache-dir", help="Install cache directory (one subdir per component)")
    ap.add_argument("--api-url", help="Catalog service base URL")
    ap.add_argument("--catalog-file", help="Offline catalog snapshot (YAML or JSON)")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("list", aliases=["ls"], help="List components and their status")

    p_show = sub.add_parser("show", aliases=["info"], help="Show component details")
    p_show.add_argument("name")

    p_versions = sub.add_parser("versions", help="List published versions")
    p_versions.add_argument("name")

    p_install = sub.add_parser("install", aliases=["i"], help="Download, verify and install a component")
    p_install.add_argument("name")
    p_install.add_argument("--version", help="Version to install (default: latest)")

    p_update = sub.add_parser("update", aliases=["up"], help="Update a component")
    p_update.add_argument("name")
    p_update.add_argument("--version", help="Target version (default: latest)")

    p_delete = sub.add_parser("delete", aliases=["rm"], help="Delete an installed component")
    p_delete.add_argument("name")

    p_run = sub.add_parser("run", help="Run an installed component")
    p_run.add_argument("name")
    p_run.add_argument("args", nargs=argparse.REMAINDER)

    p_dev = sub.add_parser("dev", help="Put a component in development mode")
    p_dev.add_argument("name")

    return ap


COMMANDS = {
    "list": "cmd_list", "ls": "cmd_list",
    "show": "cmd_show", "info": "cmd_show",
    "versions": "cmd_versions",
    "install": "cmd_install", "i": "cmd_install",
    "update": "cmd_update", "up": "cmd_update",
    "delete": "cmd_delete", "rm": "cmd_delete",
    "run": "cmd_run",
    "dev": "cmd_dev",
}


def main(argv: Optional[List[str]] = None, console: Optional[Console] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    parser = build_argparser()
    args = parser.parse_args(argv)
    console = console or make_console(args.no_color, args.quiet)

    try:
        cli = CLI.from_args(console, args)
        return getattr(cli, COMMANDS[args.command])(args)
    except ComponentError as e:
        print_panel(console, type(e).__name__, str(e), style="red")
        LOG.error(f"{args.command} failed: {e}")
        return 1
    except Exception as e:
        console.print(f"[red]Unhandled CLI error: {e}[/red]")
        LOG.error(traceback.format_exc())
        return 3


if __name__ == "__main__":
    raise SystemExit(main())
