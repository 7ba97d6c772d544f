"""Score loading: turns the exported JSON document into a Score."""

from __future__ import annotations

import json
import logging
import math
from fractions import Fraction
from pathlib import Path
from typing import Any, Final

from tabscribe.score_models import Beat, Measure, Note, Score, TempoChange

DEFAULT_SIGNATURE: Final[tuple[int, int]] = (4, 4)
DEFAULT_TUNING: Final[tuple[int, ...]] = (64, 59, 55, 50, 45, 40)  # E4 B3 G3 D3 A2 E2 (high -> low)
DEFAULT_DURATION: Final[Fraction] = Fraction(1, 4)

logger = logging.getLogger(__name__)


class ScoreFormatError(ValueError):
    """Raised when the input document cannot be turned into a score at all."""


def load_score(path: str | Path) -> Score:
    """
    Read and parse a score document from disk.

    Raises:
        ScoreFormatError: If the file is not valid JSON or has no measure list.
        OSError: If the file cannot be read.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ScoreFormatError(f"'{path}' is not valid JSON: {exc}") from exc
    return parse_score(data)


def parse_score(data: Any) -> Score:
    """
    Build a Score from an already decoded JSON document.

    Only the top-level shape is strict; every field below it falls back to a
    default when it is missing or malformed.
    """
    if not isinstance(data, dict):
        raise ScoreFormatError("Score document must be a JSON object.")
    raw_measures = data.get("measures")
    if not isinstance(raw_measures, list):
        raise ScoreFormatError("Score document has no 'measures' list.")

    measures: list[Measure] = []
    signature = DEFAULT_SIGNATURE
    for idx, raw in enumerate(raw_measures):
        raw = raw if isinstance(raw, dict) else {}
        signature = _parse_signature(raw.get("signature"), signature, idx)
        measures.append(_parse_measure(raw, idx, signature))

    automations = data.get("automations")
    tempo_entries = automations.get("tempo") if isinstance(automations, dict) else None

    return Score(
        measures=tuple(measures),
        tuning=_parse_tuning(data.get("tuning")),
        name=_optional_text(data.get("name")),
        artist=_optional_text(data.get("artist")),
        instrument=_optional_text(data.get("instrument")),
        part_id=_optional_text(data.get("partId")),
        tempo=_parse_tempo(tempo_entries),
    )


# ------------------------------------------------------------------
# Private helpers
# ------------------------------------------------------------------


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _whole_number(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not value.is_integer():
        return None
    return int(value)


def _positive_int(value: Any) -> int | None:
    number = _whole_number(value)
    if number is None or number <= 0:
        return None
    return number


def _parse_signature(raw: Any, previous: tuple[int, int], idx: int) -> tuple[int, int]:
    """Return the signature in effect for a measure; malformed values inherit."""
    if raw is None:
        return previous
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        numerator, denominator = _positive_int(raw[0]), _positive_int(raw[1])
        if numerator is not None and denominator is not None:
            return numerator, denominator
    logger.debug("measure %d: malformed signature %r, keeping %d/%d", idx, raw, *previous)
    return previous


def _parse_duration(raw: Any) -> Fraction:
    if isinstance(raw, (list, tuple)) and len(raw) == 2:
        numerator, denominator = _positive_int(raw[0]), _positive_int(raw[1])
        if numerator is not None and denominator is not None:
            return Fraction(numerator, denominator)
    return DEFAULT_DURATION


def _parse_tuning(raw: Any) -> tuple[int, ...]:
    if (
        isinstance(raw, list)
        and len(raw) == len(DEFAULT_TUNING)
        and all(_whole_number(m) is not None for m in raw)
    ):
        return tuple(int(m) for m in raw)
    if raw is not None:
        logger.debug("invalid tuning %r, using default tuning", raw)
    return DEFAULT_TUNING


def _parse_tempo(entries: Any) -> tuple[TempoChange, ...]:
    if not isinstance(entries, list):
        return ()

    changes: list[TempoChange] = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        position = entry.get("position")
        if position not in (None, 0):
            continue
        measure = entry.get("measure")
        bpm = entry.get("bpm")
        if not isinstance(measure, int) or isinstance(bpm, bool) or not isinstance(bpm, (int, float)):
            continue
        if not math.isfinite(bpm) or bpm <= 0:
            continue
        if isinstance(bpm, float) and bpm.is_integer():
            bpm = int(bpm)
        changes.append(TempoChange(measure=measure, bpm=bpm))
    return tuple(changes)


def _parse_measure(raw: dict[str, Any], idx: int, signature: tuple[int, int]) -> Measure:
    voices = raw.get("voices")
    voice = voices[0] if isinstance(voices, list) and voices and isinstance(voices[0], dict) else {}
    raw_beats = voice.get("beats")
    beats = [_parse_beat(b) for b in raw_beats if isinstance(b, dict)] if isinstance(raw_beats, list) else []

    marker = raw.get("marker")
    marker_text = marker.get("text") if isinstance(marker, dict) else None

    return Measure(
        index=idx,
        signature=signature,
        beats=tuple(beats),
        marker=_optional_text(marker_text),
        rest=bool(voice.get("rest")),
    )


def _parse_beat(raw: dict[str, Any]) -> Beat:
    raw_notes = raw.get("notes")
    notes = [_parse_note(n) for n in raw_notes if isinstance(n, dict)] if isinstance(raw_notes, list) else []

    tuplet = _positive_int(raw.get("tuplet"))
    dots = raw.get("dots")

    return Beat(
        duration=_parse_duration(raw.get("duration")),
        notes=tuple(notes),
        rest=bool(raw.get("rest")),
        tuplet=tuplet if tuplet is not None and tuplet > 1 else None,
        tuplet_start=bool(raw.get("tupletStart")),
        tuplet_stop=bool(raw.get("tupletStop")),
        palm_mute=bool(raw.get("palmMute")),
        let_ring=bool(raw.get("letRing")),
        dots=dots if isinstance(dots, int) and not isinstance(dots, bool) and dots > 0 else 0,
    )


def _parse_note(raw: dict[str, Any]) -> Note:
    fret = _whole_number(raw.get("fret"))
    slide = raw.get("slide")

    return Note(
        string=_whole_number(raw.get("string")),
        fret=fret if fret is not None and fret >= 0 else None,
        rest=bool(raw.get("rest")),
        tie=bool(raw.get("tie")),
        ghost=bool(raw.get("ghost")),
        dead=bool(raw.get("dead")),
        slide=str(slide) if slide else None,
        hammer=bool(raw.get("hp")),
    )
