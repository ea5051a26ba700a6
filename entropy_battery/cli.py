"""CLI for entropy-battery."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click

from entropy_battery import __version__


@click.group()
@click.version_option(__version__)
def main() -> None:
    """entropy-battery: NIST SP 800-22, DIEHARD and basic tests for random streams."""


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def _parse_ints(text: str) -> list:
    from entropy_battery.errors import InvalidSampleError

    values: list = []
    for i, token in enumerate(text.replace(",", " ").split()):
        try:
            values.append(int(token))
        except ValueError:
            try:
                values.append(float(token))
            except ValueError:
                raise InvalidSampleError(f"sample {i} ({token!r}) is not a number", index=i, value=token) from None
    return values


def _load_input(path: str, fmt: str):
    """Read INPUT as integer samples, raw bytes or ASCII bits."""
    from entropy_battery.bits import BitSequence

    p = Path(path)
    if fmt == "bytes":
        return None, BitSequence.from_bytes(p.read_bytes())
    text = p.read_text(encoding="utf-8")
    if fmt == "bits":
        return None, BitSequence.from_string(text)
    return _parse_ints(text), None


_GROUPS = {"both": ["nist", "diehard"], "all": ["nist", "diehard", "basic"]}


def _json_default(value):
    if hasattr(value, "item"):
        return value.item()
    raise TypeError(f"not JSON serialisable: {type(value).__name__}")


# ────────────────────────────────────────────────────────────
# Running batteries
# ────────────────────────────────────────────────────────────


@main.command()
@click.argument("input_path", metavar="INPUT", type=click.Path(exists=True, dir_okay=False))
@click.option("--format", "fmt", type=click.Choice(["ints", "bytes", "bits"]), default="ints",
              show_default=True, help="ints: whitespace/comma separated integers; bytes: raw file; bits: 0/1 text.")
@click.option("--battery", type=click.Choice(["nist", "diehard", "basic", "both", "all"]), default="nist",
              show_default=True, help="both: NIST and DIEHARD; all: every battery.")
@click.option("--tests", "selection", default="all", show_default=True, help="'all', 'quick' or comma-separated test ids.")
@click.option("--conversion", type=click.Choice(["auto", "direct", "minimal", "fixed32"]), default=None,
              help="How integer samples become bits.")
@click.option("--expand-to", type=int, default=None, help="Extend short inputs to N bits (flagged in the report).")
@click.option("--reuse", type=click.Choice(["scale", "wrap", "strict"]), default=None,
              help="DIEHARD behaviour when the input is shorter than a simulation needs.")
@click.option("--workers", type=int, default=None, help="Maximum tests run concurrently.")
@click.option("--timeout", type=float, default=None, help="Wall-clock budget per test in seconds.")
@click.option("--sequential", is_flag=True, help="Run tests one after another.")
@click.option("--json", "as_json", is_flag=True, help="Print the report as JSON.")
@click.option("--output", type=click.Path(dir_okay=False), default=None, help="Write a Markdown report here.")
@click.option("-v", "--verbose", count=True, help="-v for progress, -vv for per-test timing.")
def run(input_path: str, fmt: str, battery: str, selection: str, conversion: str | None, expand_to: int | None,
        reuse: str | None, workers: int | None, timeout: float | None, sequential: bool, as_json: bool,
        output: str | None, verbose: int) -> None:
    """Run a test battery over INPUT."""
    from pydantic import ValidationError

    from entropy_battery.battery import run_battery
    from entropy_battery.config import load_config
    from entropy_battery.errors import BatteryError
    from entropy_battery.report import render_battery, write_markdown

    _configure_logging(verbose)
    try:
        config = load_config(conversion=conversion, expand_to=expand_to, diehard_reuse=reuse,
                             max_workers=workers, test_timeout=timeout,
                             parallel=False if sequential else None)
    except ValidationError as exc:
        click.echo(f"Error: invalid settings\n{exc}", err=True)
        sys.exit(2)

    batteries = _GROUPS.get(battery, [battery])
    try:
        samples, bits = _load_input(input_path, fmt)
        reports = []
        t0 = time.monotonic()
        for name in batteries:
            reports.append(run_battery(samples, selection, bits=bits, battery=name, config=config))
    except (BatteryError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    elapsed = time.monotonic() - t0

    if as_json:
        payload = reports[0].to_dict() if len(reports) == 1 else {r.battery: r.to_dict() for r in reports}
        click.echo(json.dumps(payload, indent=2, default=_json_default))
    else:
        for report in reports:
            click.echo(render_battery(report))
        click.echo(f"Completed in {elapsed:.1f}s")
    if output:
        write_markdown(reports, output)
        click.echo(f"Report written to {output}", err=as_json)

    if any(r.passed is False for r in reports):
        sys.exit(1)


# ────────────────────────────────────────────────────────────
# Discovery
# ────────────────────────────────────────────────────────────


@main.command("tests")
@click.option("--battery", type=click.Choice(["nist", "diehard", "basic", "both", "all"]), default="all",
              show_default=True)
def list_tests(battery: str) -> None:
    """List test ids, names and the minimum input length of each."""
    from entropy_battery.battery import BATTERIES

    for name in _GROUPS.get(battery, [battery]):
        click.echo(f"{name.upper()}")
        for test in BATTERIES[name].values():
            click.echo(f"  {test.name:<28} {test.min_bits:>8,} {test.unit:<7}  {test.title}")
        click.echo()


@main.command()
@click.argument("bit_count", type=click.IntRange(min=0))
@click.option("--battery", type=click.Choice(["nist", "diehard", "both"]), default="both", show_default=True)
def available(bit_count: int, battery: str) -> None:
    """Show which tests a sequence of BIT_COUNT bits can run."""
    from entropy_battery.battery import available_tests, minimum_bits

    for name in _GROUPS.get(battery, [battery]):
        status = available_tests(bit_count, name)
        mins = minimum_bits(name)
        click.echo(f"{name.upper()}: {sum(status.values())}/{len(status)} runnable")
        for test, ok in status.items():
            mark = "✅" if ok else "⏭️ "
            click.echo(f"  {mark} {test:<28} needs {mins[test]:,}")
