"""Unit tests for repeat and alternate-ending inference."""

from fractions import Fraction

from tabscribe.canonical import CanonicalKey, canonicalize
from tabscribe.repeat_inference import Ending, RepeatBlock, RepeatInferenceEngine, infer_repeats
from tabscribe.score_models import Beat, Measure, Note


def _key(fret: int) -> CanonicalKey:
    beat = Beat(duration=Fraction(1, 4), notes=(Note(string=0, fret=fret),))
    return canonicalize(Measure(index=0, signature=(4, 4), beats=(beat,) * 4))


def _rest_key() -> CanonicalKey:
    return canonicalize(Measure(index=0, signature=(4, 4), rest=True))


def _keys(*frets: int) -> list[CanonicalKey]:
    return [_key(f) for f in frets]


def test_empty_sequence_yields_no_blocks() -> None:
    assert infer_repeats([]) == []


def test_simple_two_bar_repeat() -> None:
    blocks = infer_repeats(_keys(1, 2, 1, 2, 3), min_repeat_len=2)
    assert blocks == [RepeatBlock(start=0, length=2, count=2)]


def test_multi_pass_repeat() -> None:
    blocks = infer_repeats(_keys(1, 2, 1, 2, 1, 2, 3), min_repeat_len=2)
    assert blocks == [RepeatBlock(start=0, length=2, count=3)]


def test_two_independent_repeats() -> None:
    blocks = infer_repeats(_keys(1, 2, 1, 2, 3, 4, 3, 4, 5), min_repeat_len=2)
    assert blocks == [
        RepeatBlock(start=0, length=2, count=2),
        RepeatBlock(start=4, length=2, count=2),
    ]


def test_volta_repeat() -> None:
    blocks = infer_repeats(_keys(1, 2, 3, 1, 2, 4, 5), min_repeat_len=2)
    assert blocks == [
        RepeatBlock(
            start=0,
            length=2,
            count=2,
            endings=(Ending(number=1, start=2, length=1), Ending(number=2, start=5, length=1)),
        )
    ]
    assert blocks[0].span == 6


def test_volta_final_tail_matching_earlier_tail_is_not_an_ending() -> None:
    # The bar after the second pass repeats the first ending: plain continuation.
    blocks = infer_repeats(_keys(1, 2, 3, 1, 2, 3), max_body_len=2, min_repeat_len=2)
    assert blocks == [
        RepeatBlock(start=0, length=2, count=2, endings=(Ending(number=1, start=2, length=1),))
    ]


def test_volta_without_final_ending_at_score_end() -> None:
    blocks = infer_repeats(_keys(1, 2, 3, 1, 2), min_repeat_len=2)
    assert blocks == [
        RepeatBlock(start=0, length=2, count=2, endings=(Ending(number=1, start=2, length=1),))
    ]


def test_three_identical_measures_are_not_collapsed_by_default() -> None:
    assert infer_repeats(_keys(1, 1, 1)) == []


def test_short_oscillation_blocked_by_default() -> None:
    assert infer_repeats(_keys(1, 2, 1, 2)) == []


def test_single_bar_repeat_allowed_with_low_threshold() -> None:
    assert infer_repeats(_keys(1, 1, 1), min_repeat_len=2) == [RepeatBlock(start=0, length=1, count=3)]


def test_long_rest_run_collapses_to_one_bar_body() -> None:
    blocks = infer_repeats([_rest_key()] * 92)
    assert blocks == [RepeatBlock(start=0, length=1, count=92)]
    assert blocks[0].endings == ()


def test_rest_run_followed_by_music_has_no_ending() -> None:
    blocks = infer_repeats([_rest_key()] * 4 + _keys(7))
    assert blocks == [RepeatBlock(start=0, length=1, count=4)]


def test_longest_body_wins() -> None:
    keys = _keys(1, 2, 3, 1, 2, 3, 1, 2, 3)
    assert infer_repeats(keys, min_repeat_len=2) == [RepeatBlock(start=0, length=3, count=3)]


def test_max_body_len_bounds_search() -> None:
    keys = _keys(1, 2, 3, 1, 2, 3)
    assert infer_repeats(keys, max_body_len=1, min_repeat_len=2) == []


def test_blocks_partition_without_overlap() -> None:
    keys = _keys(5, 1, 2, 1, 2, 6, 3, 3, 3, 3, 7)
    blocks = RepeatInferenceEngine(min_repeat_len=2).infer(keys)
    covered: list[int] = []
    for block in blocks:
        assert block.count >= 2
        assert block.length >= 1
        assert block.end <= len(keys)
        covered.extend(range(block.start, block.end))
    assert covered == sorted(set(covered))
    assert [b.start for b in blocks] == sorted(b.start for b in blocks)


def test_volta_ending_longer_than_body() -> None:
    blocks = infer_repeats(_keys(1, 2, 3, 1, 4, 5), min_repeat_len=2)
    assert blocks == [
        RepeatBlock(
            start=0,
            length=1,
            count=2,
            endings=(Ending(number=1, start=1, length=2), Ending(number=2, start=4, length=2)),
        )
    ]
    assert blocks[0].end == 6


def test_pass_starts_for_plain_and_volta_blocks() -> None:
    assert RepeatBlock(start=2, length=2, count=3).pass_starts == [2, 4, 6]
    volta = RepeatBlock(
        start=0,
        length=2,
        count=2,
        endings=(Ending(number=1, start=2, length=1), Ending(number=2, start=5, length=1)),
    )
    assert volta.pass_starts == [0, 3]


def test_tempo_change_breaks_an_otherwise_identical_copy() -> None:
    beat = Beat(duration=Fraction(1, 4), notes=(Note(string=0, fret=1),))
    measure = Measure(index=0, signature=(4, 4), beats=(beat,) * 4)
    plain = [canonicalize(measure), canonicalize(measure)]
    assert infer_repeats(plain, min_repeat_len=2) == [RepeatBlock(start=0, length=1, count=2)]

    keys = [canonicalize(measure), canonicalize(measure, tempo=[90])]
    assert infer_repeats(keys, min_repeat_len=2) == []
