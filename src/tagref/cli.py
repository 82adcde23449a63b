from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence

import typer

from tagref import __version__
from tagref.checks import unused_tags
from tagref.config import RunSettings, resolve_settings, tagref_defaults
from tagref.directive import Directive, DirectiveKind, compile_sigil_matchers, directive_sort_key
from tagref.engine import ScanResult, scan_with_settings
from tagref.exceptions import ConfigError, ValidationFailure
from tagref.logging_config import setup_logging
from tagref.report import build_report, count
from tagref.schema import CheckReportDTO, DirectiveListDTO

app = typer.Typer(
    add_completion=False,
    help=(
        "Check cross-references embedded in source files: every [ref:...] must "
        "point to a [tag:...], tags must be unique, and [file:...] / [dir:...] "
        "references must point to existing paths."
    ),
)

EXIT_VALIDATION_FAILED = 1
EXIT_CONFIG_ERROR = 2

_LABEL_COLUMN_MAX = 45


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"tagref {__version__}")
        raise typer.Exit()


def _fail_config(exc: ConfigError) -> typer.Exit:
    typer.secho(str(exc), err=True, fg=typer.colors.RED)
    return typer.Exit(code=EXIT_CONFIG_ERROR)


def _settings(ctx: typer.Context) -> RunSettings:
    settings = (ctx.obj or {}).get("settings")
    if not isinstance(settings, RunSettings):
        settings = RunSettings()
    return settings


def _run_scan(ctx: typer.Context) -> ScanResult:
    try:
        return scan_with_settings(_settings(ctx))
    except ConfigError as exc:
        raise _fail_config(exc) from exc


def _render_rows(directives: Sequence[Directive]) -> list[str]:
    if not directives:
        return []
    width = min(max(len(item.label) for item in directives), _LABEL_COLUMN_MAX)
    return [f"{item.label.ljust(width)}  {item.location()}" for item in directives]


def _emit_directives(kind: DirectiveKind, directives: Sequence[Directive], *, json_output: bool) -> None:
    if json_output:
        typer.echo(DirectiveListDTO.from_directives(kind, directives).model_dump_json(indent=2))
        return
    for line in _render_rows(directives):
        typer.echo(line)


def _sorted_for_listing(directives: Sequence[Directive]) -> list[Directive]:
    return sorted(directives, key=lambda item: (item.label, *directive_sort_key(item)))


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    paths: Optional[List[Path]] = typer.Option(
        None, "--path", "-p", help="Adds the path of a directory or file to scan (default: .)."
    ),
    tag_sigil: Optional[str] = typer.Option(
        None, "--tag-sigil", "-t", help="Sets the sigil used for tags (default: tag)."
    ),
    ref_sigil: Optional[str] = typer.Option(
        None, "--ref-sigil", "-r", help="Sets the sigil used for tag references (default: ref)."
    ),
    file_sigil: Optional[str] = typer.Option(
        None, "--file-sigil", "-f", help="Sets the sigil used for file references (default: file)."
    ),
    dir_sigil: Optional[str] = typer.Option(
        None, "--dir-sigil", "-d", help="Sets the sigil used for directory references (default: dir)."
    ),
    config: Optional[Path] = typer.Option(
        None, "--config", help="Path to a tagref.toml file (default: ./tagref.toml)."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", min=1, help="Number of worker threads used to scan."
    ),
    no_ignore: bool = typer.Option(
        False, "--no-ignore", help="Scan hidden and ignored files too."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log diagnostics to stderr."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """Checks all the tags and references when no command is given."""
    setup_logging("DEBUG" if verbose else None)
    payload = {
        "paths": [str(path) for path in paths] if paths else None,
        "tag_sigil": tag_sigil,
        "ref_sigil": ref_sigil,
        "file_sigil": file_sigil,
        "dir_sigil": dir_sigil,
        "workers": workers,
        "ignore": False if no_ignore else None,
    }
    try:
        settings = resolve_settings(payload, tagref_defaults(config_path=config))
        compile_sigil_matchers(settings.sigils)
    except ConfigError as exc:
        raise _fail_config(exc) from exc
    ctx.obj = {**(ctx.obj or {}), "settings": settings}
    if ctx.invoked_subcommand is None:
        check(ctx, json_output=False)


@app.command("check")
def check(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit the report as JSON."),
) -> None:
    """Checks all the tags and references (default)."""
    report = build_report(_run_scan(ctx))
    if json_output:
        typer.echo(CheckReportDTO.from_report(report).model_dump_json(indent=2))
    try:
        report.raise_for_errors()
    except ValidationFailure as exc:
        if not json_output:
            typer.secho(str(exc), err=True, fg=typer.colors.RED)
        raise typer.Exit(code=EXIT_VALIDATION_FAILED) from exc
    if not json_output:
        typer.secho(report.summary(), fg=typer.colors.GREEN)


@app.command("list-tags")
def list_tags(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Lists all the tags."""
    state = _run_scan(ctx).state
    _emit_directives(DirectiveKind.TAG, _sorted_for_listing(state.all_tags()), json_output=json_output)


@app.command("list-refs")
def list_refs(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Lists all the tag references."""
    state = _run_scan(ctx).state
    _emit_directives(DirectiveKind.REF, _sorted_for_listing(state.tag_refs), json_output=json_output)


@app.command("list-files")
def list_files(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Lists all the file references."""
    state = _run_scan(ctx).state
    _emit_directives(DirectiveKind.FILE, _sorted_for_listing(state.file_refs), json_output=json_output)


@app.command("list-dirs")
def list_dirs(
    ctx: typer.Context,
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Lists all the directory references."""
    state = _run_scan(ctx).state
    _emit_directives(DirectiveKind.DIR, _sorted_for_listing(state.dir_refs), json_output=json_output)


@app.command("list-unused")
def list_unused(
    ctx: typer.Context,
    fail_if_any: Optional[bool] = typer.Option(
        None,
        "--fail-if-any/--no-fail-if-any",
        help="Exit with an error status if any unused tags are found.",
    ),
    json_output: bool = typer.Option(False, "--json", help="Emit JSON instead of text."),
) -> None:
    """Lists the tags that no reference points to."""
    settings = _settings(ctx)
    unused = unused_tags(_run_scan(ctx).state)
    _emit_directives(DirectiveKind.TAG, unused, json_output=json_output)
    should_fail = settings.fail_if_any_unused if fail_if_any is None else fail_if_any
    if should_fail and unused:
        if not json_output:
            typer.secho(
                f"{count(len(unused), 'unused tag')} found.",
                err=True,
                fg=typer.colors.RED,
            )
        raise typer.Exit(code=EXIT_VALIDATION_FAILED)


def main() -> None:
    app(prog_name="tagref")
