import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

from vulngate.__version__ import __version__
from vulngate.builders import builder_for_path, detect_builder
from vulngate.config import load_config
from vulngate.core.errors import PolicyViolation, VulngateError
from vulngate.core.rule import BanVulnerableDependencies, ProjectContext

EXIT_PASS = 0
EXIT_VIOLATION = 1
EXIT_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="vulngate",
        description="Fail the build when dependencies have known vulnerabilities.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to vulngate.toml or pyproject.toml.")
    parser.add_argument("--graph", help="Dependency tree file (dependency-tree.json or dependency-tree.txt).")
    parser.add_argument("--packaging", help="Project packaging; 'pom' modules are skipped.")
    parser.add_argument("--offline", action="store_true", help="Skip the check (build is offline).")
    parser.add_argument("--scope", help="Comma-separated scopes to check, e.g. 'compile,runtime'.")
    parser.add_argument("--no-transitive", dest="transitive", action="store_false", default=None,
                        help="Only check direct dependencies.")
    parser.add_argument("--threshold", type=float, help="Minimum CVSS score that fails the build.")
    parser.add_argument("--exclude-coordinate", action="append", metavar="GROUP:NAME:VERSION",
                        help="Ignore this component. Repeatable.")
    parser.add_argument("--exclude-vulnerability", action="append", metavar="ID",
                        help="Ignore this vulnerability id. Repeatable.")
    parser.add_argument("--interactive", action="store_true", help="Browse the result in a terminal UI.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def setup_logging(interactive: bool, verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    if interactive:
        # The terminal belongs to the UI
        logging.basicConfig(
            filename="debug.log",
            level=logging.DEBUG,
            filemode="w",
            format="%(asctime)s - %(levelname)s - %(message)s",
        )
    else:
        logging.basicConfig(
            level=level,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )


def main(argv: Optional[List[str]] = None) -> int:
    """ Entrypoint when is installed via pip """
    args = parse_args(argv)
    setup_logging(args.interactive, args.verbose)
    console = Console()

    try:
        config = load_config(args.config, overrides={
            "scope": args.scope,
            "transitive": args.transitive,
            "cvss-score-threshold": args.threshold,
            "exclude-coordinates": args.exclude_coordinate,
            "exclude-vulnerability-ids": args.exclude_vulnerability,
        })
    except VulngateError as e:
        logging.error(f"Invalid configuration: {e}")
        return EXIT_ERROR

    builder = builder_for_path(args.graph) if args.graph else detect_builder()
    if builder is None:
        logging.error("No dependency tree found. Run 'mvn dependency:tree -DoutputType=json "
                      "-DoutputFile=dependency-tree.json' first or pass --graph.")
        return EXIT_ERROR

    project = ProjectContext(packaging=args.packaging, offline=args.offline, graph_path=args.graph)

    if args.interactive:
        from vulngate.app import ReportApp

        app = ReportApp(config, builder, project)
        app.run()
        if app.outcome is None:
            return EXIT_ERROR
        if app.outcome.verdict and app.outcome.verdict.vulnerable:
            return EXIT_VIOLATION
        return EXIT_PASS

    rule = BanVulnerableDependencies(config, builder)
    try:
        outcome = rule.execute(project)
    except PolicyViolation as violation:
        console.print(f"[bold red]{type(rule).__name__} failed[/]")
        console.print(violation.explanation, markup=False, highlight=False)
        return EXIT_VIOLATION
    except VulngateError as e:
        logging.error(f"{type(e).__name__}: {e}", exc_info=e.__cause__ is not None)
        return EXIT_ERROR

    if outcome.skipped:
        console.print(f"[yellow]Skipped[/]: {outcome.skip_reason.value}")
    else:
        console.print(f"[green]No vulnerable dependencies[/] ({len(outcome.components)} components checked)")
    return EXIT_PASS


# Development mode
if __name__ == "__main__":
    sys.exit(main())
