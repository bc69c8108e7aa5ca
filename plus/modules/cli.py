# plus/modules/cli.py
"""
CLI do plus.
- Usa rich para saída colorida, tabelas e painéis.
- Comandos: install, remove, upgrade, build, sync, deps, list, orphans, clean.
- Flags comuns a install/remove/upgrade/build/sync: --dry-run, --no-install,
  --cflags=..., --ldflags=..., --destdir=..., --no-recommended, --jobs.
- Código de saída: 0 sucesso, 1 operação abortada/recusada, 2 uso inválido, 3 erro inesperado.

Exemplos:
  plus install curl --cflags="-O2 -march=native"
  plus remove zlib --force
  plus upgrade all --jobs 4
  plus --root /tmp/plus sync all
"""

from __future__ import annotations
import argparse
import sys
import traceback
from typing import Callable, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from plus.modules import logger as _logger
from plus.modules.clean import Cleaner
from plus.modules.config import config
from plus.modules.lifecycle import BuildOptions, OperationResult, Orchestrator, State
from plus.modules.registry import PackageRegistry
from plus.modules.resolver import CycleDetected, DependencyResolver
from plus.modules.utils import PlusError

EXIT_OK = 0
EXIT_ABORTED = 1
EXIT_USAGE = 2
EXIT_UNEXPECTED = 3


def make_console(no_color: bool) -> Console:
    if no_color:
        return Console(color_system=None, force_terminal=False)
    return Console()


class CLI:
    def __init__(self, console: Console, orchestrator_factory: Callable[..., Orchestrator] = Orchestrator):
        self.console = console
        self.orchestrator_factory = orchestrator_factory

    def _options(self, args: argparse.Namespace) -> BuildOptions:
        return BuildOptions(
            dry_run=args.dry_run,
            no_install=args.no_install,
            cflags=args.cflags,
            ldflags=args.ldflags,
            destdir=args.destdir,
            skip_recommended=True if args.no_recommended else None,
            jobs=args.jobs,
        )

    def _orchestrator(self, args: argparse.Namespace) -> Orchestrator:
        return self.orchestrator_factory(options=self._options(args))

    def _report(self, result: OperationResult) -> int:
        title = f"{result.operation} {result.package}"
        if result.dry_run and result.ok:
            plan = ", ".join(p for p in result.order if p not in result.skipped) or "-"
            self.console.print(Panel(f"Would process: {plan}", title=f"{title} (dry-run)", style="cyan"))
            return EXIT_OK
        if result.ok:
            lines = [f"State: {result.state.value}"]
            if result.built:
                lines.append(f"Built: {', '.join(result.built)}")
            if result.skipped:
                lines.append(f"Already installed: {', '.join(result.skipped)}")
            if result.registered:
                lines.append(f"Registered: {', '.join(result.registered)}")
            if result.orphans:
                lines.append(f"Orphans: {', '.join(result.orphans)}")
            self.console.print(Panel("\n".join(lines), title=title, style="green"))
            return EXIT_OK
        style = "yellow" if result.state == State.BLOCKED else "red"
        self.console.print(Panel(Text(f"{result.state.value}: {result.error}"), title=title, style=style))
        return EXIT_ABORTED

    # -----------------------
    # install / build / remove
    # -----------------------
    def cmd_install(self, args: argparse.Namespace) -> int:
        return self._report(self._orchestrator(args).install(args.package))

    def cmd_build(self, args: argparse.Namespace) -> int:
        return self._report(self._orchestrator(args).build(args.package))

    def cmd_remove(self, args: argparse.Namespace) -> int:
        return self._report(self._orchestrator(args).remove(args.package, force=args.force))

    # -----------------------
    # upgrade
    # -----------------------
    def cmd_upgrade(self, args: argparse.Namespace) -> int:
        orch = self._orchestrator(args)
        if args.target != "all":
            return self._report(orch.upgrade(args.target))

        results = orch.upgrade_all()
        table = Table(title="upgrade all")
        table.add_column("Package", style="bold")
        table.add_column("State")
        table.add_column("Error", overflow="fold")
        for r in results:
            table.add_row(r.package, f"[{'green' if r.ok else 'red'}]{r.state.value}[/]", str(r.error or ""))
        self.console.print(table)
        return EXIT_OK if all(r.ok for r in results) else EXIT_ABORTED

    # -----------------------
    # sync
    # -----------------------
    def cmd_sync(self, args: argparse.Namespace) -> int:
        orch = self._orchestrator(args)
        if args.package != "all":
            return self._report(orch.sync(args.package, args.url, args.branch))

        results = orch.sync_all()
        table = Table(title="sync all")
        table.add_column("Package", style="bold")
        table.add_column("State")
        table.add_column("Error", overflow="fold")
        for r in results:
            table.add_row(r.package, r.state.value, str(r.error or ""))
        self.console.print(table)
        return EXIT_OK if all(r.ok for r in results) else EXIT_ABORTED

    # -----------------------
    # consultas
    # -----------------------
    def cmd_deps(self, args: argparse.Namespace) -> int:
        skip = True if args.no_recommended else config.getboolean("deps", "skip_recommended", fallback=False)
        resolver = DependencyResolver(skip_recommended=skip)
        registry = PackageRegistry(recipes=resolver.recipes)
        try:
            order = resolver.resolve(args.package)
        except CycleDetected as e:
            self.console.print(str(e), style="red", markup=False)
            return EXIT_ABORTED
        declared = resolver.describe(args.package)
        missing = resolver.find_missing(args.package, registry.list_installed(), order=order)

        tbl = Table(title=f"Dependencies: {args.package}")
        tbl.add_column("Key", style="bold")
        tbl.add_column("Value", overflow="fold")
        for key in ("required", "recommended", "optional"):
            tbl.add_row(key, ", ".join(declared[key]) or "-")
        tbl.add_row("build order", " -> ".join(order))
        tbl.add_row("not installed", ", ".join(missing) or "-")
        self.console.print(tbl)
        return EXIT_OK

    def cmd_list(self, args: argparse.Namespace) -> int:
        registry = PackageRegistry()
        table = Table(title="Installed packages")
        table.add_column("Package", style="bold")
        table.add_column("Reason")
        table.add_column("Installed at")
        for name, rec in registry.latest().items():
            table.add_row(name, rec.reason, rec.timestamp)
        self.console.print(table)
        return EXIT_OK

    def cmd_orphans(self, args: argparse.Namespace) -> int:
        orphans = sorted(PackageRegistry().find_orphans())
        if not orphans:
            self.console.print("[green]No orphan packages[/green]")
        else:
            self.console.print(Panel("\n".join(orphans), title="orphans", style="yellow"))
        return EXIT_OK

    def cmd_clean(self, args: argparse.Namespace) -> int:
        cleaner = Cleaner(dry_run=args.dry_run)
        if args.all:
            cleaned = cleaner.clean_all()
        else:
            cleaned = cleaner.clean_workdir()
            if args.sync:
                cleaned += cleaner.clean_sync()
            if args.logs:
                cleaned += cleaner.clean_logs()
        self.console.print(Panel("\n".join(cleaned), title="clean", style="green"))
        return EXIT_OK


# -----------------------
# argparse
# -----------------------
def _common_flags() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--dry-run", action="store_true", help="Only resolve and show what would be done")
    common.add_argument("--no-install", action="store_true", help="Build without installing/registering")
    common.add_argument("--cflags", default=None, help="CFLAGS for the compiler")
    common.add_argument("--ldflags", default=None, help="LDFLAGS for the linker")
    common.add_argument("--destdir", default=None, help="DESTDIR for make install")
    common.add_argument("--no-recommended", action="store_true", help="Do not resolve recommended dependencies")
    common.add_argument("--jobs", type=int, default=None, help="Parallel packages for 'all' batches")
    return common


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="plus", description="plus - source based package manager")
    ap.add_argument("--conf", help="Path to plus.conf")
    ap.add_argument("--root", help="PLUS_ROOT (overrides [paths] root)")
    ap.add_argument("--no-color", action="store_true", help="Disable color output")
    ap.add_argument("--quiet", action="store_true", help="Only print results, no log lines")
    sub = ap.add_subparsers(dest="command", required=True)
    common = _common_flags()

    p = sub.add_parser("install", aliases=["i"], parents=[common], help="Resolve, build, install and register")
    p.add_argument("package")

    p = sub.add_parser("build", aliases=["b"], parents=[common], help="Build a package without registering it")
    p.add_argument("package")

    p = sub.add_parser("remove", aliases=["r"], parents=[common], help="Remove an installed package")
    p.add_argument("package")
    p.add_argument("--force", action="store_true", help="Remove even if other packages require it")

    p = sub.add_parser("upgrade", aliases=["ug"], parents=[common], help="Rebuild a package, or 'all'")
    p.add_argument("target", metavar="pkg|all")

    p = sub.add_parser("sync", aliases=["sy"], parents=[common], help="Fetch sources for a package, or 'all'")
    p.add_argument("package", metavar="pkg|all")
    p.add_argument("url", nargs="?")
    p.add_argument("branch", nargs="?")

    p = sub.add_parser("deps", aliases=["d"], help="Show resolved dependencies")
    p.add_argument("package")
    p.add_argument("--no-recommended", action="store_true")

    sub.add_parser("list", aliases=["ls"], help="List installed packages")
    sub.add_parser("orphans", help="List orphan packages")

    p = sub.add_parser("clean", help="Clean work directories")
    p.add_argument("--sync", action="store_true", help="Also clean downloaded sources")
    p.add_argument("--logs", action="store_true", help="Also clean logs")
    p.add_argument("--all", action="store_true", help="Clean everything")
    p.add_argument("--dry-run", action="store_true")
    return ap


COMMANDS = {
    "install": "cmd_install", "i": "cmd_install",
    "build": "cmd_build", "b": "cmd_build",
    "remove": "cmd_remove", "r": "cmd_remove",
    "upgrade": "cmd_upgrade", "ug": "cmd_upgrade",
    "sync": "cmd_sync", "sy": "cmd_sync",
    "deps": "cmd_deps", "d": "cmd_deps",
    "list": "cmd_list", "ls": "cmd_list",
    "orphans": "cmd_orphans",
    "clean": "cmd_clean",
}


def apply_global_flags(args: argparse.Namespace):
    if args.conf:
        if config.reload(args.conf) is None:
            raise PlusError(f"Config file not found: {args.conf}")
    if args.root:
        config.set("paths", "root", args.root)
    if args.quiet:
        config.set("logging", "log_to_console", "no")
    if args.no_color:
        config.set("logging", "color_output", "no")


def main(argv: Optional[List[str]] = None, orchestrator_factory=Orchestrator) -> int:
    parser = build_argparser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return EXIT_OK if e.code == 0 else EXIT_USAGE

    console = make_console(args.no_color)
    try:
        apply_global_flags(args)
        cli = CLI(console, orchestrator_factory=orchestrator_factory)
        return getattr(cli, COMMANDS[args.command])(args)
    except PlusError as e:
        console.print(str(e), style="red", markup=False)
        return EXIT_ABORTED
    except Exception as e:
        console.print(f"Unhandled CLI error: {e}", style="red", markup=False)
        _logger.Logger("cli").debug(traceback.format_exc())
        return EXIT_UNEXPECTED


if __name__ == "__main__":
    sys.exit(main())
