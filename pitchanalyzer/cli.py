"""pitchanalyzer CLI entry point."""

import json
import re
import sys
from functools import lru_cache
from pathlib import Path
from typing import NoReturn

import click

from pitchanalyzer import __version__
from pitchanalyzer.abc_tokens import parse_note_text
from pitchanalyzer.adapters import classify, pcset_to_abc_notes
from pitchanalyzer.analysis_log import AnalysisImportError, AnalysisLog
from pitchanalyzer.content import ContentValidationError, upgrade_content, validate_content
from pitchanalyzer.renderers import PLACEHOLDER, RENDERERS, get_renderer
from pitchanalyzer.score_parser import parse_abc_score
from pitchanalyzer.score_selection import ScoreRange, select_tokens
from pitchanalyzer.set_catalog import SetClassCatalog, build_catalog

_POSITION_RE = re.compile(r"^\s*(\d{1,6})\s*(?::\s*(\d{1,6})\s*)?$")

FORMAT_OPTION = click.option(
    "--format",
    "output_format",
    type=click.Choice(sorted(RENDERERS), case_sensitive=False),
    default="text",
    show_default=True,
    help="Output format for the analysis.",
)


@lru_cache(maxsize=1)
def _get_catalog() -> SetClassCatalog:
    """Build the set-class catalog on first use."""
    return build_catalog()


def parse_position(value: str) -> tuple[int, int | None]:
    """
    Parse a ``MEASURE[:BEAT]`` position, both 1-based.

    Raises:
        ValueError: If the text is not a position.
    """
    match = _POSITION_RE.match(value)
    if match is None:
        raise ValueError(f"'{value}' is not a position; use MEASURE or MEASURE:BEAT (e.g. 3:2).")
    beat = int(match.group(2)) if match.group(2) else None
    return int(match.group(1)), beat


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _load_log(logfile: str) -> AnalysisLog:
    log = AnalysisLog()
    path = Path(logfile)
    if path.exists():
        log.import_json(path.read_text(encoding="utf-8"))
    return log


def _load_json(path: str) -> object:
    return json.loads(Path(path).read_text(encoding="utf-8"))


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="pitchanalyzer")
def main() -> None:
    """pitchanalyzer: pitch-class set analysis for ABC notation."""


# ── analyze subcommand ─────────────────────────────────────────────────────────

@main.command()
@click.argument("text", nargs=-1, required=True)
@FORMAT_OPTION
def analyze(text: tuple[str, ...], output_format: str) -> None:
    """
    Classify the notes in TEXT as a pitch-class set.

    TEXT is ABC note input; quote it if it contains ^ or brackets.

    \b
    Examples:
      pitchanalyzer analyze C E G
      pitchanalyzer analyze "A _G E" --format json
      pitchanalyzer analyze "[CEG^A]" --format markdown
    """
    notes = parse_note_text(" ".join(text))
    entry = classify(notes, _get_catalog())
    click.echo(get_renderer(output_format).render(notes=notes, entry=entry))


# ── lookup subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("key")
@FORMAT_OPTION
def lookup(key: str, output_format: str) -> None:
    """
    Look up a set class by prime-form KEY or Forte name.

    \b
    Examples:
      pitchanalyzer lookup 037
      pitchanalyzer lookup 4-Z15
      pitchanalyzer lookup 6-29 --format json
    """
    catalog = _get_catalog()
    entry = catalog.lookup(key.strip()) or catalog.by_forte_name(key)
    if entry is None:
        _fail(f"No set class for '{key}'. Use a prime form such as 037 or a Forte name such as 3-11.")
    notes = pcset_to_abc_notes(entry)
    click.echo(get_renderer(output_format).render(notes=notes, entry=entry))


# ── score subcommand ───────────────────────────────────────────────────────────

@main.command()
@click.argument("abc_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--voice",
    "voices",
    multiple=True,
    metavar="ID",
    help="Voice to include (repeatable). Defaults to every voice.",
)
@click.option(
    "--from",
    "from_position",
    default=None,
    metavar="M[:B]",
    help="First measure (and beat) of the selection. Defaults to the start of the score.",
)
@click.option(
    "--to",
    "to_position",
    default=None,
    metavar="M[:B]",
    help="Last measure (and beat) of the selection. Defaults to the end of the score.",
)
@click.option(
    "--no-key-signature",
    is_flag=True,
    default=False,
    help="Take accidentals only from the notes themselves, ignoring K: and earlier notes.",
)
@click.option(
    "--measures",
    "show_measures",
    is_flag=True,
    default=False,
    help="List the note tokens of every measure of the selected voices.",
)
@FORMAT_OPTION
def score(
    abc_file: str,
    voices: tuple[str, ...],
    from_position: str | None,
    to_position: str | None,
    no_key_signature: bool,
    show_measures: bool,
    output_format: str,
) -> None:
    """
    Analyse a selection of an ABC transcription.

    ABC_FILE is a tune in ABC notation, e.g. exported from MusicXML.

    \b
    Examples:
      pitchanalyzer score tune.abc
      pitchanalyzer score tune.abc --voice 1 --from 3 --to 4:2
      pitchanalyzer score tune.abc --measures --no-key-signature
    """
    try:
        text = Path(abc_file).read_text(encoding="utf-8")
        parsed = parse_abc_score(text, apply_key_signature=not no_key_signature)
        whole = ScoreRange.whole(parsed)
        from_measure, from_beat = parse_position(from_position) if from_position else (1, 1)
        to_measure, to_beat = parse_position(to_position) if to_position else (whole.to_measure, None)
    except OSError as exc:
        _fail(f"Could not read ABC file — {exc}")
    except ValueError as exc:
        _fail(str(exc))

    known = {v.id for v in parsed.voices}
    unknown = [v for v in voices if v not in known]
    if unknown:
        _fail(f"Unknown voice(s): {', '.join(unknown)}. Available: {', '.join(sorted(known))}.")
    selected = list(voices) if voices else None

    span = ScoreRange(
        from_measure=from_measure,
        from_beat=from_beat or 1,
        to_measure=to_measure,
        # Without a beat the last measure is taken whole
        to_beat=to_beat or max(m.numerator for m in parsed.measures),
    ).clamped(parsed)

    tokens = select_tokens(parsed, selected, span)
    entry = classify(tokens, _get_catalog())

    if output_format == "json":
        payload = json.loads(get_renderer("json").render(notes=tokens, entry=entry))
        payload["selection"] = {
            "voices": selected or [v.id for v in parsed.voices],
            "fromMeasure": span.from_measure,
            "fromBeat": span.from_beat,
            "toMeasure": span.to_measure,
            "toBeat": span.to_beat,
        }
        if show_measures:
            payload["parsedScore"] = parsed.to_dict()
        click.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    click.echo(f"pitchanalyzer v{__version__}")
    click.echo(f"  File     : {abc_file}")
    click.echo(f"  Voices   : {', '.join(v.label for v in parsed.voices)}")
    click.echo(f"  Measures : {parsed.measure_count}")
    click.echo(
        f"  Selection: {span.from_measure}:{span.from_beat} – {span.to_measure}:{span.to_beat}"
    )
    click.echo()

    if show_measures:
        for voice in parsed.voices:
            if selected is not None and voice.id not in selected:
                continue
            click.echo(f"[{voice.label}]")
            for number, measure in enumerate(parsed.voice_measures[voice.id], start=1):
                meter = parsed.measures[number - 1]
                notes = "  ".join(f"{t.token}@{float(t.beat_start) + 1:g}" for t in measure)
                click.echo(f"  {number:>4}  {meter.numerator}/{meter.denominator}  {notes or PLACEHOLDER}")
        click.echo()

    if not tokens:
        click.echo("  WARNING: No notes in the selection.", err=True)
    click.echo(get_renderer(output_format).render(notes=tokens, entry=entry))


# ── log subcommands ────────────────────────────────────────────────────────────

@main.group()
def log() -> None:
    """Keep a JSON log of saved analyses."""


@log.command("add")
@click.argument("logfile", type=click.Path(dir_okay=False))
@click.argument("text", nargs=-1, required=True)
@click.option("--measure", default="", metavar="TEXT", help="Where in the piece, e.g. 'm. 12'.")
@click.option("--comment", default="", metavar="TEXT", help="Free-text annotation.")
def log_add(logfile: str, text: tuple[str, ...], measure: str, comment: str) -> None:
    """
    Analyse TEXT and append the result to LOGFILE.

    LOGFILE is created if it does not exist.

    \b
    Examples:
      pitchanalyzer log add analysis.json C E G --measure "m. 1"
    """
    try:
        analysis_log = _load_log(logfile)
        notes = parse_note_text(" ".join(text))
        entry = classify(notes, _get_catalog())
        saved = analysis_log.add(
            notes,
            entry.to_dict() if entry is not None else None,
            measure=measure,
            comment=comment,
        )
        Path(logfile).write_text(analysis_log.to_json(), encoding="utf-8")
    except AnalysisImportError as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(f"Could not write log file — {exc}")

    name = entry.forte_name if entry is not None and entry.forte_name else PLACEHOLDER
    click.echo(f"Saved {saved.key}  {' '.join(notes) or PLACEHOLDER}  ({name})  → '{logfile}'")


@log.command("show")
@click.argument("logfile", type=click.Path(exists=True, dir_okay=False, readable=True))
def log_show(logfile: str) -> None:
    """List the entries of LOGFILE."""
    try:
        analysis_log = _load_log(logfile)
    except (AnalysisImportError, OSError) as exc:
        _fail(str(exc))

    if not len(analysis_log):
        click.echo("  WARNING: The log is empty.", err=True)
        return
    for index, entry in enumerate(analysis_log.entries, start=1):
        pc_set = entry.pc_set or {}
        name = pc_set.get("forteName") or PLACEHOLDER
        prime = pc_set.get("fortePrimeForm")
        click.echo(
            f"{index:>3}. {entry.key}  {entry.measure or PLACEHOLDER:<8}  "
            f"{' '.join(entry.abc_notes) or PLACEHOLDER:<20}  {name:<6}  "
            f"({','.join(prime) if prime else ''})"
        )
        if entry.comment:
            click.echo(f"     {entry.comment}")


@log.command("delete")
@click.argument("logfile", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.argument("key")
def log_delete(logfile: str, key: str) -> None:
    """Remove the entry KEY from LOGFILE."""
    try:
        analysis_log = _load_log(logfile)
        if not analysis_log.delete(key):
            _fail(f"No entry '{key}' in '{logfile}'.")
        Path(logfile).write_text(analysis_log.to_json(), encoding="utf-8")
    except (AnalysisImportError, OSError) as exc:
        _fail(str(exc))
    click.echo(f"Deleted {key}. {len(analysis_log)} entr{'y' if len(analysis_log) == 1 else 'ies'} left.")


# ── content subcommands ────────────────────────────────────────────────────────

@main.group()
def content() -> None:
    """Check and migrate stored analyzer content (JSON)."""


@content.command("validate")
@click.argument("content_file", type=click.Path(exists=True, dir_okay=False, readable=True))
def content_validate(content_file: str) -> None:
    """Validate CONTENT_FILE against the content schema."""
    try:
        validate_content(_load_json(content_file))
    except ContentValidationError as exc:
        for violation in exc.violations:
            click.echo(f"  ERROR: {violation}", err=True)
        sys.exit(1)
    except (OSError, ValueError) as exc:
        _fail(f"Could not read content file — {exc}")
    click.echo(f"OK  '{content_file}' is valid.")


@content.command("upgrade")
@click.argument("content_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination file. Defaults to printing the upgraded content.",
)
def content_upgrade(content_file: str, output: str | None) -> None:
    """Bring CONTENT_FILE up to the current content version."""
    try:
        stored = _load_json(content_file)
        upgraded = upgrade_content(stored)
        text = json.dumps(upgraded, indent=2, ensure_ascii=False)
        if output is None:
            click.echo(text)
            return
        Path(output).write_text(text + "\n", encoding="utf-8")
    except (OSError, ValueError) as exc:
        _fail(str(exc))

    if upgraded is stored:
        click.echo(f"'{content_file}' is already at version {upgraded.get('version')}; copied to '{output}'.")
    else:
        click.echo(f"Upgraded to version {upgraded['version']} → '{output}'.")
