"""Canonical keys: structural fingerprints used to compare measures for repeats."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from fractions import Fraction

from tabscribe.score_models import Beat, Measure, Note


@dataclass(frozen=True)
class NoteKey:
    string: int | None
    fret: int | None
    rest: bool
    tie: bool
    ghost: bool
    dead: bool
    slide: str | None
    hammer: bool

    def sort_key(self) -> tuple:
        # None sorts before any real value so mixed keys stay comparable.
        return (
            self.string is not None,
            self.string or 0,
            self.fret is not None,
            self.fret or 0,
            self.rest,
            self.tie,
            self.ghost,
            self.dead,
            self.slide or "",
            self.hammer,
        )


@dataclass(frozen=True)
class BeatKey:
    duration: Fraction
    rest: bool
    tuplet: int | None
    tuplet_start: bool
    tuplet_stop: bool
    palm_mute: bool
    let_ring: bool
    dots: int
    notes: tuple[NoteKey, ...]

    @property
    def is_silent(self) -> bool:
        return self.rest or all(note.rest for note in self.notes)


@dataclass(frozen=True)
class CanonicalKey:
    """
    Order-independent projection of a measure's rendered musical content.

    Two measures are repeat-equivalent iff their keys compare equal. Marker
    text and the measure index are not part of the key; tuplet grouping is,
    since it changes the rendered tuplet rail. Tempo changes at the start of
    the measure are part of the key, so a repeat never hides one.
    """

    signature: tuple[int, int]
    rest: bool
    beats: tuple[BeatKey, ...]
    tempo: tuple[int | float, ...] = ()

    @property
    def is_silent(self) -> bool:
        """True for a full-measure silence."""
        return self.rest or all(beat.is_silent for beat in self.beats)


def _note_key(note: Note) -> NoteKey:
    return NoteKey(
        string=note.string,
        fret=note.fret,
        rest=note.rest,
        tie=note.tie,
        ghost=note.ghost,
        dead=note.dead,
        slide=note.slide,
        hammer=note.hammer,
    )


def _beat_key(beat: Beat) -> BeatKey:
    notes = sorted((_note_key(note) for note in beat.notes), key=NoteKey.sort_key)
    return BeatKey(
        duration=beat.duration,
        rest=beat.rest,
        tuplet=beat.tuplet,
        tuplet_start=beat.tuplet_start,
        tuplet_stop=beat.tuplet_stop,
        palm_mute=beat.palm_mute,
        let_ring=beat.let_ring,
        dots=beat.dots,
        notes=tuple(notes),
    )


def canonicalize(
    measure: Measure,
    signature: tuple[int, int] | None = None,
    tempo: Sequence[int | float] = (),
) -> CanonicalKey:
    """
    Map a measure to its canonical key.

    Args:
        measure:   The measure to fingerprint.
        signature: Signature in effect; defaults to the measure's own
                   (already inherited) signature.
        tempo:     BPM values of the tempo changes at the start of the measure.
    """
    return CanonicalKey(
        signature=signature if signature is not None else measure.signature,
        rest=measure.rest,
        beats=tuple(_beat_key(beat) for beat in measure.beats),
        tempo=tuple(tempo),
    )


def canonicalize_all(
    measures: Sequence[Measure],
    tempo_map: Mapping[int, Sequence[int | float]] | None = None,
) -> list[CanonicalKey]:
    tempo_map = tempo_map or {}
    return [canonicalize(measure, tempo=tempo_map.get(measure.index, ())) for measure in measures]
