"""Unit tests for canonical measure keys."""

from fractions import Fraction

from tabscribe.canonical import canonicalize, canonicalize_all
from tabscribe.score_models import Beat, Measure, Note


def _measure(*beats: Beat, index: int = 0, marker: str | None = None) -> Measure:
    return Measure(index=index, signature=(4, 4), beats=beats, marker=marker)


def _beat(*notes: Note, **kwargs) -> Beat:
    return Beat(duration=Fraction(1, 4), notes=notes, **kwargs)


def test_marker_text_and_index_are_ignored() -> None:
    a = _measure(_beat(Note(string=0, fret=3)), index=0, marker="Intro")
    b = _measure(_beat(Note(string=0, fret=3)), index=7, marker="Verse")
    assert canonicalize(a) == canonicalize(b)
    assert hash(canonicalize(a)) == hash(canonicalize(b))


def test_note_order_within_beat_is_ignored() -> None:
    a = _measure(_beat(Note(string=0, fret=3), Note(string=2, fret=5)))
    b = _measure(_beat(Note(string=2, fret=5), Note(string=0, fret=3)))
    assert canonicalize(a) == canonicalize(b)


def test_beat_order_matters() -> None:
    a = _measure(_beat(Note(string=0, fret=1)), _beat(Note(string=0, fret=2)))
    b = _measure(_beat(Note(string=0, fret=2)), _beat(Note(string=0, fret=1)))
    assert canonicalize(a) != canonicalize(b)


def test_tuplet_grouping_distinguishes_measures() -> None:
    plain = _measure(_beat(Note(string=0, fret=1)))
    grouped = _measure(_beat(Note(string=0, fret=1), tuplet=3, tuplet_start=True))
    assert canonicalize(plain) != canonicalize(grouped)


def test_articulations_distinguish_measures() -> None:
    plain = _measure(_beat(Note(string=5, fret=0)))
    muted = _measure(_beat(Note(string=5, fret=0), palm_mute=True))
    tied = _measure(_beat(Note(string=5, fret=0, tie=True)))
    assert len({canonicalize(plain), canonicalize(muted), canonicalize(tied)}) == 3


def test_signature_override_changes_key() -> None:
    measure = _measure(_beat(Note(string=0, fret=1)))
    assert canonicalize(measure, (3, 4)) != canonicalize(measure)
    assert canonicalize(measure, (3, 4)).signature == (3, 4)


def test_mixed_missing_fields_sort_without_error() -> None:
    measure = _measure(_beat(Note(string=1, fret=None, dead=True), Note(string=None, fret=2), Note(string=0, fret=4)))
    key = canonicalize(measure)
    assert [note.string for note in key.beats[0].notes] == [None, 0, 1]


def test_silence_detection() -> None:
    assert canonicalize(Measure(index=0, signature=(4, 4), rest=True)).is_silent
    assert canonicalize(Measure(index=0, signature=(4, 4))).is_silent
    assert canonicalize(_measure(_beat(rest=True), _beat(Note(string=0, rest=True)))).is_silent
    assert not canonicalize(_measure(_beat(rest=True), _beat(Note(string=0, fret=0)))).is_silent


def test_canonicalize_all_preserves_order() -> None:
    measures = [_measure(_beat(Note(string=0, fret=f)), index=i) for i, f in enumerate([1, 2, 1])]
    keys = canonicalize_all(measures)
    assert keys[0] == keys[2]
    assert keys[0] != keys[1]


def test_tempo_changes_distinguish_measures() -> None:
    measure = _measure(_beat(Note(string=0, fret=3)))
    assert canonicalize(measure, tempo=[120]) != canonicalize(measure)
    assert canonicalize(measure, tempo=[120]) == canonicalize(measure, tempo=(120,))


def test_canonicalize_all_reads_tempo_map_by_measure_index() -> None:
    measures = [_measure(_beat(Note(string=0, fret=3)), index=i) for i in range(3)]
    keys = canonicalize_all(measures, {1: [96]})
    assert keys[0] == keys[2]
    assert keys[1].tempo == (96,)
    assert keys[0] != keys[1]
