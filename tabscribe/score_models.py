"""Data models for a loaded score."""

from dataclasses import dataclass
from fractions import Fraction

NOTE_NAMES: list[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def midi_to_note_name(midi: int, with_octave: bool = True) -> str:
    """
    Convert a MIDI note number to a sharp-spelled note name.

    Args:
        midi:        MIDI note number (60 = C4).
        with_octave: Append the scientific octave number (E4, A2, ...).

    Returns:
        Note name such as ``"E4"`` or ``"C#"``.
    """
    name = NOTE_NAMES[midi % 12]
    if not with_octave:
        return name
    return f"{name}{midi // 12 - 1}"


@dataclass(frozen=True)
class Note:
    """
    A single note sounding on one string.

    Attributes:
        string: String index as given in the document (0 = first tuning entry).
        fret:   Fret number, or None for dead/rest notes without a fret.
        slide:  Slide kind, e.g. ``"shift"``; None when the note does not slide.
        hammer: Hammer-on / pull-off into the next note.
    """

    string: int | None
    fret: int | None = None
    rest: bool = False
    tie: bool = False
    ghost: bool = False
    dead: bool = False
    slide: str | None = None
    hammer: bool = False


@dataclass(frozen=True)
class Beat:
    """A timed event in the primary voice, carrying simultaneous notes."""

    duration: Fraction
    notes: tuple[Note, ...] = ()
    rest: bool = False
    tuplet: int | None = None
    tuplet_start: bool = False
    tuplet_stop: bool = False
    palm_mute: bool = False
    let_ring: bool = False
    dots: int = 0

    @property
    def is_silent(self) -> bool:
        """True when the beat sounds nothing (rest flag, no notes, or rest notes only)."""
        return self.rest or all(note.rest for note in self.notes)


@dataclass(frozen=True)
class Measure:
    """
    One bar of the score.

    ``signature`` is always the effective signature, i.e. inherited from the
    previous measure when the document omits it.
    """

    index: int
    signature: tuple[int, int]
    beats: tuple[Beat, ...] = ()
    marker: str | None = None
    rest: bool = False

    @property
    def total_duration(self) -> Fraction:
        numerator, denominator = self.signature
        return Fraction(numerator, denominator)

    @property
    def is_silent(self) -> bool:
        return self.rest or all(beat.is_silent for beat in self.beats)


@dataclass(frozen=True)
class TempoChange:
    measure: int
    bpm: int | float


@dataclass(frozen=True)
class Score:
    """Neutral score representation consumed by the renderers."""

    measures: tuple[Measure, ...]
    tuning: tuple[int, ...]
    name: str | None = None
    artist: str | None = None
    instrument: str | None = None
    part_id: str | None = None
    tempo: tuple[TempoChange, ...] = ()

    def tempo_map(self) -> dict[int, list[int | float]]:
        """Group tempo changes by measure index, preserving document order."""
        tempo_map: dict[int, list[int | float]] = {}
        for change in self.tempo:
            tempo_map.setdefault(change.measure, []).append(change.bpm)
        return tempo_map

    def string_names(self) -> list[str]:
        """Lane labels, one per tuning entry, without octave numbers."""
        return [midi_to_note_name(midi, with_octave=False) for midi in self.tuning]
