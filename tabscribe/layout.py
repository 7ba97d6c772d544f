"""Layout: render units and per-measure column layout for the ASCII stave."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from fractions import Fraction
from typing import Final

from tabscribe.repeat_inference import RepeatBlock
from tabscribe.score_models import Beat, Measure, Note

COLUMNS_PER_SIXTEENTH: Final[int] = 3

FILLER: Final[str] = "-"
SUSTAIN: Final[str] = "="
TIE_MARK: Final[str] = "~"
SHIFT_SLIDE_MARK: Final[str] = "/"

TUPLET_MIN_SPAN: Final[int] = 3
TUPLET_INSET_SPAN: Final[int] = 5


@dataclass(frozen=True)
class RenderUnit:
    """
    One printed measure.

    Attributes:
        measure:      The source measure.
        repeat_start: Opens a repeat (``|:``).
        repeat_close: The block closed after this measure (``:| xN``), or None.
        ending:       1-based alternate-ending number, or None.
        carried_markers: Marker texts of the same bar on later passes, which
                      are not printed themselves.
    """

    measure: Measure
    repeat_start: bool = False
    repeat_close: RepeatBlock | None = None
    ending: int | None = None
    carried_markers: tuple[str, ...] = ()

    @property
    def markers(self) -> tuple[str, ...]:
        texts: list[str] = [self.measure.marker] if self.measure.marker else []
        for text in self.carried_markers:
            if text not in texts:
                texts.append(text)
        return tuple(texts)


@dataclass(frozen=True)
class BeatSpan:
    start: int
    stop: int
    beat: Beat


@dataclass(frozen=True)
class MeasureLayout:
    """Column-aligned lanes for one measure, one per string plus the overlays."""

    lanes: list[str]
    tuplets: str
    palm_mute: str
    let_ring: str

    @property
    def width(self) -> int:
        return max((len(lane) for lane in self.lanes), default=len(self.tuplets))

    @property
    def has_tuplets(self) -> bool:
        return bool(self.tuplets.strip())

    @property
    def has_palm_mute(self) -> bool:
        return bool(self.palm_mute.strip())

    @property
    def has_let_ring(self) -> bool:
        return bool(self.let_ring.strip())


def build_units(measures: Sequence[Measure], blocks: Sequence[RepeatBlock]) -> list[RenderUnit]:
    """
    Expand measures plus inferred blocks into the printed measure sequence.

    A block contributes its body once (open marker on the first measure,
    close marker on the last) followed by its alternate endings. The other
    passes are skipped; their marker texts move onto the matching body unit.
    """
    block_at = {block.start: block for block in blocks}

    units: list[RenderUnit] = []
    i = 0
    while i < len(measures):
        block = block_at.get(i)
        if block is None:
            units.append(RenderUnit(measure=measures[i]))
            i += 1
            continue

        for k in range(block.length):
            carried = tuple(
                measures[start + k].marker
                for start in block.pass_starts[1:]
                if measures[start + k].marker
            )
            units.append(
                RenderUnit(
                    measure=measures[i + k],
                    repeat_start=(k == 0),
                    repeat_close=block if k == block.length - 1 else None,
                    carried_markers=carried,
                )
            )
        for ending in block.endings:
            for k in range(ending.length):
                units.append(RenderUnit(measure=measures[ending.start + k], ending=ending.number))
        i = block.end
    return units


def duration_to_cols(duration: Fraction) -> int:
    return int(duration * 16 * COLUMNS_PER_SIXTEENTH)


def rest_beat(duration: Fraction) -> Beat:
    return Beat(duration=duration, rest=True)


def fit_beats(beats: Sequence[Beat], total: Fraction) -> list[Beat]:
    """
    Fit beats to a measure's duration.

    Short measures get a trailing rest for the remainder. Long measures keep
    beats while they fit; the first overflowing beat becomes a rest of
    exactly the remaining duration and later beats are dropped.
    """
    fitted: list[Beat] = []
    acc = Fraction(0)
    for beat in beats:
        if acc >= total:
            break
        if acc + beat.duration <= total:
            fitted.append(beat)
            acc += beat.duration
        else:
            fitted.append(rest_beat(total - acc))
            acc = total

    if acc < total:
        fitted.append(rest_beat(total - acc))
    return fitted


def note_token(note: Note, merged: bool = False) -> str:
    """
    Printed form of a note on its string lane.

    ``merged`` notes continue a sustain rail from the previous beat, so they
    drop the tie marker.
    """
    token = "x" if note.dead else str(note.fret if note.fret is not None else 0)
    if note.ghost:
        token = f"({token})"
    if note.tie and not merged:
        token += TIE_MARK
    if note.slide == "shift":
        token += SHIFT_SLIDE_MARK
    return token


def _notes_by_string(beat: Beat, string_count: int) -> dict[int, Note]:
    if beat.rest:
        return {}
    by_string: dict[int, Note] = {}
    for note in beat.notes:
        if note.rest or note.string is None or not 0 <= note.string < string_count:
            continue
        by_string.setdefault(note.string, note)
    return by_string


def _continues(previous: Note | None, note: Note | None) -> bool:
    """True when ``note`` is tied to an identical note sounding just before it."""
    if previous is None or note is None or not note.tie:
        return False
    if previous.dead or note.dead:
        return False
    return previous.fret == note.fret


def _draw_tuplets(spans: Sequence[BeatSpan], total_cols: int) -> str:
    rail = [" "] * total_cols
    i = 0
    while i < len(spans):
        tuplet = spans[i].beat.tuplet
        if tuplet is None or tuplet <= 1:
            i += 1
            continue

        j = i
        while (
            j + 1 < len(spans)
            and not spans[j].beat.tuplet_stop
            and spans[j + 1].beat.tuplet == tuplet
            and not spans[j + 1].beat.tuplet_start
        ):
            j += 1

        start, stop = spans[i].start, min(spans[j].stop, total_cols)
        if stop - start >= TUPLET_MIN_SPAN:
            # Keep the rail off the bar lines when there is room.
            if stop - start >= TUPLET_INSET_SPAN:
                start += 1
                stop -= 1
            rail[start:stop] = FILLER * (stop - start)

            label = str(tuplet)
            pos = start + (stop - start) // 2 - len(label) // 2
            pos = min(max(pos, start), stop - len(label))
            for k, char in enumerate(label):
                if 0 <= pos + k < total_cols:
                    rail[pos + k] = char

        i = j + 1
    return "".join(rail)


def _draw_articulation(
    spans: Sequence[BeatSpan],
    total_cols: int,
    flagged: Callable[[Beat], bool],
    label: str,
    short_label: str,
    fill: str,
) -> str:
    rail = [" "] * total_cols
    i = 0
    while i < len(spans):
        if not flagged(spans[i].beat):
            i += 1
            continue

        j = i
        while j + 1 < len(spans) and flagged(spans[j + 1].beat):
            j += 1

        start, stop = spans[i].start, spans[j].stop
        width = stop - start
        if len(label) <= width:
            text = label
        elif len(short_label) <= width:
            text = short_label
        else:
            text = ""
        rail[start:stop] = text + fill * (width - len(text))
        i = j + 1
    return "".join(rail)


def layout_measure(measure: Measure, string_count: int = 6) -> MeasureLayout:
    """
    Lay out one measure as ``string_count`` lanes plus overlay lanes.

    Each beat takes the wider of its duration-derived width and its widest
    token. Overlays are drawn into their own buffers over the same columns.
    """
    total = measure.total_duration

    if measure.rest or not measure.beats:
        cols = duration_to_cols(total)
        blank = " " * cols
        return MeasureLayout(
            lanes=[FILLER * cols for _ in range(string_count)],
            tuplets=blank,
            palm_mute=blank,
            let_ring=blank,
        )

    beats = fit_beats(measure.beats, total)
    notes = [_notes_by_string(beat, string_count) for beat in beats]

    lanes = [""] * string_count
    spans: list[BeatSpan] = []
    cur_col = 0

    for bi, beat in enumerate(beats):
        previous = notes[bi - 1] if bi > 0 else {}
        following = notes[bi + 1] if bi + 1 < len(notes) else {}

        tokens: dict[int, str] = {}
        fills: dict[int, str] = {}
        for string, note in notes[bi].items():
            tokens[string] = note_token(note, merged=_continues(previous.get(string), note))
            if _continues(note, following.get(string)):
                fills[string] = SUSTAIN

        cols = max(duration_to_cols(beat.duration), 1)
        width = max([cols, *(len(token) for token in tokens.values())])

        spans.append(BeatSpan(start=cur_col, stop=cur_col + width, beat=beat))
        cur_col += width

        for string in range(string_count):
            token = tokens.get(string, "")
            lanes[string] += token + fills.get(string, FILLER) * (width - len(token))

    return MeasureLayout(
        lanes=lanes,
        tuplets=_draw_tuplets(spans, cur_col),
        palm_mute=_draw_articulation(spans, cur_col, lambda b: b.palm_mute, "PM", "PM", FILLER),
        let_ring=_draw_articulation(spans, cur_col, lambda b: b.let_ring, "let ring", "LR", TIE_MARK),
    )
