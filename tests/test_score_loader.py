"""Unit tests for loading score documents."""

import json
from fractions import Fraction

import pytest

from tabscribe.score_loader import DEFAULT_TUNING, ScoreFormatError, load_score, parse_score
from tabscribe.score_models import TempoChange, midi_to_note_name


def _beat(fret: int, **extra) -> dict:
    return {"duration": [1, 4], "notes": [{"string": 0, "fret": fret}], **extra}


def test_signature_is_sticky() -> None:
    score = parse_score(
        {
            "measures": [
                {"signature": [3, 4], "voices": [{"beats": [_beat(1)]}]},
                {"voices": [{"beats": [_beat(2)]}]},
                {"signature": [6, 8], "voices": [{"beats": [_beat(3)]}]},
            ]
        }
    )
    assert [m.signature for m in score.measures] == [(3, 4), (3, 4), (6, 8)]


def test_malformed_signature_keeps_previous() -> None:
    score = parse_score(
        {
            "measures": [
                {"signature": "4/4"},
                {"signature": [5, 4]},
                {"signature": [0, 4]},
                {"signature": [7]},
            ]
        }
    )
    assert [m.signature for m in score.measures] == [(4, 4), (5, 4), (5, 4), (5, 4)]


def test_beat_and_note_fields() -> None:
    score = parse_score(
        {
            "measures": [
                {
                    "marker": {"text": "Chorus"},
                    "voices": [
                        {
                            "beats": [
                                {
                                    "duration": [1, 12],
                                    "tuplet": 3,
                                    "tupletStart": True,
                                    "palmMute": True,
                                    "letRing": True,
                                    "notes": [
                                        {"string": 2, "fret": 7, "tie": True, "hp": True, "slide": "shift"},
                                        {"string": 3, "dead": True},
                                        {"string": 4, "fret": 5, "ghost": True},
                                    ],
                                }
                            ]
                        }
                    ],
                }
            ]
        }
    )
    measure = score.measures[0]
    beat = measure.beats[0]
    assert measure.marker == "Chorus"
    assert beat.duration == Fraction(1, 12)
    assert beat.tuplet == 3 and beat.tuplet_start and not beat.tuplet_stop
    assert beat.palm_mute and beat.let_ring
    first, dead, ghost = beat.notes
    assert (first.string, first.fret, first.tie, first.hammer, first.slide) == (2, 7, True, True, "shift")
    assert dead.dead and dead.fret is None
    assert ghost.ghost


def test_missing_or_invalid_duration_falls_back_to_quarter() -> None:
    score = parse_score(
        {
            "measures": [
                {
                    "voices": [
                        {
                            "beats": [
                                {"notes": []},
                                {"duration": [0, 4]},
                                {"duration": "1/8"},
                                {"duration": [1, 8]},
                            ]
                        }
                    ]
                }
            ]
        }
    )
    assert [b.duration for b in score.measures[0].beats] == [
        Fraction(1, 4),
        Fraction(1, 4),
        Fraction(1, 4),
        Fraction(1, 8),
    ]


def test_whole_measure_rest_flag() -> None:
    score = parse_score({"measures": [{"voices": [{"rest": True}]}, {}]})
    assert score.measures[0].rest
    assert score.measures[0].is_silent
    assert not score.measures[1].rest
    assert score.measures[1].beats == ()


def test_tuning_fallbacks() -> None:
    assert parse_score({"measures": []}).tuning == DEFAULT_TUNING
    assert parse_score({"measures": [], "tuning": [1, 2, 3]}).tuning == DEFAULT_TUNING
    assert parse_score({"measures": [], "tuning": ["E", 59, 55, 50, 45, 40]}).tuning == DEFAULT_TUNING
    custom = [62, 57, 55, 50, 45, 38]
    assert parse_score({"measures": [], "tuning": custom}).tuning == tuple(custom)


def test_tempo_keeps_position_zero_entries_only() -> None:
    score = parse_score(
        {
            "measures": [],
            "automations": {
                "tempo": [
                    {"measure": 0, "position": 0, "bpm": 120},
                    {"measure": 0, "position": 960, "bpm": 60},
                    {"measure": 4, "bpm": 96.0},
                    {"measure": 5, "position": 0, "bpm": 101.5},
                    "bogus",
                ]
            },
        }
    )
    assert score.tempo == (
        TempoChange(measure=0, bpm=120),
        TempoChange(measure=4, bpm=96),
        TempoChange(measure=5, bpm=101.5),
    )
    assert score.tempo_map() == {0: [120], 4: [96], 5: [101.5]}


def test_metadata_fields() -> None:
    score = parse_score({"measures": [], "name": "Song", "instrument": "Guitar", "partId": 3})
    assert (score.name, score.instrument, score.part_id, score.artist) == ("Song", "Guitar", "3", None)


def test_non_object_document_is_rejected() -> None:
    with pytest.raises(ScoreFormatError):
        parse_score([1, 2, 3])


def test_missing_measures_is_rejected() -> None:
    with pytest.raises(ScoreFormatError):
        parse_score({"tuning": list(DEFAULT_TUNING)})


def test_load_score_reads_file(tmp_path) -> None:
    path = tmp_path / "score.json"
    path.write_text(json.dumps({"measures": [{"voices": [{"beats": [_beat(5)]}]}]}), encoding="utf-8")
    score = load_score(path)
    assert score.measures[0].beats[0].notes[0].fret == 5


def test_load_score_invalid_json(tmp_path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ScoreFormatError):
        load_score(path)


def test_load_score_missing_file(tmp_path) -> None:
    with pytest.raises(OSError):
        load_score(tmp_path / "missing.json")


def test_midi_to_note_name() -> None:
    assert midi_to_note_name(64) == "E4"
    assert midi_to_note_name(40) == "E2"
    assert midi_to_note_name(61, with_octave=False) == "C#"
