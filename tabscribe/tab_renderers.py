"""Renderer implementations for tablature output formats."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from fractions import Fraction
from typing import Final

from tabscribe.layout import RenderUnit, fit_beats, layout_measure
from tabscribe.score_models import Beat, Measure, Note, Score, midi_to_note_name

DEFAULT_MEASURES_PER_LINE: Final[int] = 8


def _escape_quotes(text: str) -> str:
    """Escape backslashes and double quotes inside an alphaTex string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def center_text(text: str, width: int) -> str:
    if len(text) >= width:
        return text[:width]
    left = (width - len(text)) // 2
    return " " * left + text + " " * (width - len(text) - left)


class TabRenderer(ABC):
    """Abstract tablature renderer."""

    @property
    @abstractmethod
    def default_extension(self) -> str:
        """Default filename extension for this renderer."""

    @abstractmethod
    def render(self, *, score: Score, units: Sequence[RenderUnit]) -> str:
        """Render the printed measure sequence of a score into a string."""


class AsciiTabRenderer(TabRenderer):
    """
    Render units as a fixed-width ASCII tablature stave.

    Each printed line is a block of rows: marker texts, alternate-ending
    brackets, measure numbers, tuplet rails, palm-mute and let-ring rails,
    then one lane per string labelled with its note name. Optional rows only
    appear when some measure on the line needs them.
    """

    def __init__(self, measures_per_line: int = DEFAULT_MEASURES_PER_LINE) -> None:
        self.measures_per_line = max(1, measures_per_line)

    @property
    def default_extension(self) -> str:
        return ".txt"

    def wrap_units(self, units: Sequence[RenderUnit]) -> list[list[RenderUnit]]:
        """Split units into printed lines; a repeat close always ends its line."""
        lines: list[list[RenderUnit]] = []
        current: list[RenderUnit] = []
        for unit in units:
            current.append(unit)
            if len(current) >= self.measures_per_line or unit.repeat_close is not None:
                lines.append(current)
                current = []
        if current:
            lines.append(current)
        return lines

    def render(self, *, score: Score, units: Sequence[RenderUnit]) -> str:
        string_names = score.string_names()
        out: list[str] = []
        for line in self.wrap_units(units):
            out.extend(self._render_line(line, string_names))
            out.append("")
        return "\n".join(out)

    def _render_line(self, line: Sequence[RenderUnit], string_names: list[str]) -> list[str]:
        prefix_width = max((len(name) for name in string_names), default=0)
        indent = " " * prefix_width

        endings = indent
        numbers = indent
        tuplets = indent
        palm_mute = indent
        let_ring = indent
        strings = [name.ljust(prefix_width) for name in string_names]

        layouts = [layout_measure(unit.measure, len(string_names)) for unit in line]
        previous_ending: int | None = None

        for pos, (unit, layout) in enumerate(zip(line, layouts)):
            if unit.repeat_start:
                # Mid-line, the previous measure's closing bar supplies the "|".
                left = "|:" if pos == 0 else ":"
            elif pos == 0:
                left = "| "
            else:
                left = " "
            right = ":|" if unit.repeat_close is not None else "|"
            suffix = f" x{unit.repeat_close.count}" if unit.repeat_close is not None else ""

            box_width = len(left) + layout.width + len(right)
            full_width = box_width + len(suffix)

            numbers += center_text(str(unit.measure.index + 1), box_width) + suffix

            if unit.ending is None:
                endings += " " * full_width
            elif unit.ending != previous_ending:
                endings += f"[{unit.ending}.".ljust(full_width, "-")
            else:
                endings += "-" * full_width
            previous_ending = unit.ending

            pad = " " * len(suffix)
            tuplets += left + layout.tuplets.ljust(layout.width) + right + pad
            palm_mute += left + layout.palm_mute.ljust(layout.width) + right + pad
            let_ring += left + layout.let_ring.ljust(layout.width) + right + pad
            for si, lane in enumerate(layout.lanes):
                strings[si] += left + lane.ljust(layout.width, "-") + right + pad

        rows: list[str] = []
        if any(unit.ending is not None for unit in line):
            rows.append(endings)
        rows.append(numbers)
        if any(layout.has_tuplets for layout in layouts):
            rows.append(tuplets)
        if any(layout.has_palm_mute for layout in layouts):
            rows.append(palm_mute)
        if any(layout.has_let_ring for layout in layouts):
            rows.append(let_ring)
        rows.extend(strings)

        width = max(len(row) for row in rows)
        markers = [f"# {text}" for unit in line for text in unit.markers]
        return markers + [row.ljust(width) for row in rows]


# ── alphaTex ─────────────────────────────────────────────────────────────────

_DENOMINATORS: Final[tuple[int, ...]] = (1, 2, 4, 8, 16, 32, 64)

#: (value, denominator, dots) for every plain, dotted and double-dotted value.
_DURATION_VALUES: Final[list[tuple[Fraction, int, int]]] = [
    (Fraction(1, den) * (2 - Fraction(1, 2**dots)), den, dots)
    for den in _DENOMINATORS
    for dots in (0, 1, 2)
]


def _tuplet_normal(tuplet: int) -> int:
    """Largest power of two below the tuplet number (3 -> 2, 5 -> 4, 7 -> 4)."""
    return 1 << ((tuplet - 1).bit_length() - 1)


def split_rest(total: Fraction) -> list[Fraction]:
    """Split a rest duration into power-of-two parts, longest first."""
    parts: list[Fraction] = []
    remaining = total
    for den in _DENOMINATORS:
        unit = Fraction(1, den)
        while remaining >= unit:
            parts.append(unit)
            remaining -= unit
    if remaining > 0:
        parts.append(remaining)
    return parts


class AlphaTexRenderer(TabRenderer):
    """
    Render units as alphaTex markup.

    The header carries score metadata, track, staff and tuning; every printed
    measure becomes one line of bar metadata (signature, repeats, endings,
    tempo, section) followed by duration-prefixed beat tokens and a bar line.
    """

    @property
    def default_extension(self) -> str:
        return ".alphatex"

    def render(self, *, score: Score, units: Sequence[RenderUnit]) -> str:
        lines = self._header(score)
        tempo_map = score.tempo_map()
        signature: tuple[int, int] | None = None

        for unit in units:
            measure = unit.measure
            meta: list[str] = []
            if measure.signature != signature:
                signature = measure.signature
                meta.append(f"\\ts {signature[0]} {signature[1]}")
            if unit.repeat_start:
                meta.append("\\ro")
            if unit.ending is not None:
                meta.append(f"\\ae {unit.ending}")
            if unit.repeat_close is not None:
                meta.append(f"\\rc {unit.repeat_close.count}")
            for bpm in tempo_map.get(measure.index, []):
                meta.append(f"\\tempo {bpm}")
            if unit.markers:
                meta.append(f'\\section "{_escape_quotes(" / ".join(unit.markers))}"')

            lines.append(" ".join([*meta, *self.measure_tokens(measure), "|"]))

        return "\n".join(lines) + "\n"

    def _header(self, score: Score) -> list[str]:
        lines: list[str] = []
        if score.name:
            lines.append(f'\\title "{_escape_quotes(score.name)}"')
        if score.artist:
            lines.append(f'\\artist "{_escape_quotes(score.artist)}"')
        if score.instrument:
            lines.append(f'\\instrument "{_escape_quotes(score.instrument)}"')
        lines.append("\\multiBarRest")
        lines.append(".")

        track = score.part_id or score.name or "Guitar"
        lines.append(f'\\track "{_escape_quotes(track)}"')
        lines.append("\\staff {tabs}")
        lines.append("\\tuning " + " ".join(midi_to_note_name(midi) for midi in score.tuning))
        return lines

    # ------------------------------------------------------------------
    # Beat tokens
    # ------------------------------------------------------------------

    def measure_tokens(self, measure: Measure) -> list[str]:
        """Duration-prefixed beat tokens for one measure, fitted to its signature."""
        total = measure.total_duration
        if measure.rest or not measure.beats:
            beats = [Beat(duration=total, rest=True)]
        else:
            beats = fit_beats(measure.beats, total)

        tokens: list[str] = []
        current: int | None = None
        for beat in beats:
            for den, body in self._beat_bodies(beat):
                if den != current:
                    tokens.append(f":{den}")
                    current = den
                tokens.append(body)
        return tokens

    def _beat_bodies(self, beat: Beat) -> list[tuple[int, str]]:
        notes = [token for token in (self.note_token(n) for n in beat.notes) if token]

        if beat.rest or not notes:
            if beat.tuplet is not None and beat.tuplet > 1:
                den, dots = self.resolve_duration(beat.duration, beat.tuplet)
                return [(den, "r" + self._effects([f"tu {beat.tuplet}", *self._dot_effects(dots)]))]
            exact = self._exact_duration(beat.duration)
            if exact is not None:
                den, dots = exact
                return [(den, "r" + self._effects(self._dot_effects(dots)))]
            # Unrepresentable rests (padding remainders) are split into parts.
            bodies: list[tuple[int, str]] = []
            for part in split_rest(beat.duration):
                den, dots = self._nearest_duration(part)
                bodies.append((den, "r" + self._effects(self._dot_effects(dots))))
            return bodies

        den, dots = self.resolve_duration(beat.duration, beat.tuplet)
        body = notes[0] if len(notes) == 1 else f"({' '.join(notes)})"

        effects: list[str] = []
        if beat.palm_mute:
            effects.append("pm")
        if beat.let_ring:
            effects.append("lr")
        if beat.tuplet is not None and beat.tuplet > 1:
            effects.append(f"tu {beat.tuplet}")
        effects.extend(self._dot_effects(dots))
        return [(den, body + self._effects(effects))]

    def note_token(self, note: Note) -> str | None:
        """``fret.string`` token with note effects, or None for notes that don't sound."""
        if note.rest or note.string is None:
            return None
        if note.fret is None and not note.dead:
            return None

        value = "x" if note.dead else str(note.fret)
        effects: list[str] = []
        if note.ghost:
            effects.append("g")
        if note.hammer:
            effects.append("h")
        if note.slide == "shift":
            effects.append("ss")
        elif note.slide:
            effects.append("sl")
        if note.tie:
            effects.append("t")

        token = f"{value}.{note.string + 1}"
        if effects:
            token += "{" + " ".join(effects) + "}"
        return token

    def resolve_duration(self, duration: Fraction, tuplet: int | None = None) -> tuple[int, int]:
        """
        Map an exact beat duration to an alphaTex (denominator, dots) pair.

        Tuplet beats are scaled back to their written value first. Durations
        with no exact written form snap to the nearest one.
        """
        if tuplet is not None and tuplet > 1:
            duration = duration * tuplet / _tuplet_normal(tuplet)
        exact = self._exact_duration(duration)
        if exact is not None:
            return exact
        return self._nearest_duration(duration)

    def _exact_duration(self, duration: Fraction) -> tuple[int, int] | None:
        for value, den, dots in _DURATION_VALUES:
            if value == duration:
                return den, dots
        return None

    def _nearest_duration(self, duration: Fraction) -> tuple[int, int]:
        _, den, dots = min(_DURATION_VALUES, key=lambda entry: abs(entry[0] - duration))
        return den, dots

    def _dot_effects(self, dots: int) -> list[str]:
        if dots == 1:
            return ["d"]
        if dots == 2:
            return ["dd"]
        return []

    def _effects(self, effects: list[str]) -> str:
        if not effects:
            return ""
        return " {" + " ".join(effects) + "}"
