"""RepeatInferenceEngine: finds repeat blocks and alternate endings in a measure sequence."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from tabscribe.canonical import CanonicalKey

DEFAULT_MAX_BODY_LEN: Final[int] = 16
DEFAULT_MIN_REPEAT_LEN: Final[int] = 8

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ending:
    """
    An alternate ("volta") ending played on one pass of a repeat.

    Attributes:
        number: 1-based pass number the ending belongs to.
        start:  Index of the first measure of the ending.
        length: Number of measures in the ending.
    """

    number: int
    start: int
    length: int


@dataclass(frozen=True)
class RepeatBlock:
    """
    A body of ``length`` measures played ``count`` times from ``start``.

    ``endings`` is empty for a plain repeat. For a volta repeat it holds one
    ending per pass that has its own tail, in scan order.
    """

    start: int
    length: int
    count: int
    endings: tuple[Ending, ...] = ()

    @property
    def span(self) -> int:
        """Number of source measures the block consumes."""
        return self.length * self.count + sum(ending.length for ending in self.endings)

    @property
    def end(self) -> int:
        """Index one past the last consumed measure."""
        return self.start + self.span

    @property
    def pass_starts(self) -> list[int]:
        """Index of the first body measure of every pass, in play order."""
        if not self.endings:
            return [self.start + p * self.length for p in range(self.count)]
        # Each ending between two passes is followed directly by the next copy.
        starts = [self.start]
        for ending in self.endings[: self.count - 1]:
            starts.append(ending.start + ending.length)
        return starts


def _is_primitive(body: Sequence[CanonicalKey]) -> bool:
    """False when the body is itself a repetition of a shorter body."""
    size = len(body)
    for period in range(1, size):
        if size % period == 0 and list(body) == list(body[:period]) * (size // period):
            return False
    return True


class RepeatInferenceEngine:
    """
    Greedy, left-to-right repeat detection over canonical measure keys.

    Algorithm overview
    ------------------
    At scan position ``i``:

    1. **Candidate bodies** – body lengths are tried from ``max_body_len``
       down to 1 (longest first). Bodies that are themselves repetitions of a
       shorter body are skipped, so a run of identical bars is always one
       block with a one-bar body.

    2. **Plain repeat** – count consecutive, non-overlapping copies of the
       body starting at ``i``. Two or more copies make a candidate.

    3. **Volta repeat** – otherwise, look for the next copy of the body after
       a non-empty tail of at most ``max_body_len`` measures (independent of
       the body length), and chain further copies the same way. Each tail
       is the alternate ending of the pass it follows; tails must differ
       from each other. The last pass gets an
       ending of the same length as the previous tail only if that content
       differs from every earlier tail.

    4. **Gate** – the first (longest) candidate found is accepted when the
       body is a one-bar full-measure silence in a plain repeat, or when
       ``len * count >= min_repeat_len``. Otherwise the scan advances by one
       measure without trying shorter bodies.

    Accepted blocks advance the scan past every measure they consume, so
    blocks never overlap and are emitted in increasing start order.
    """

    def __init__(
        self,
        max_body_len: int = DEFAULT_MAX_BODY_LEN,
        min_repeat_len: int = DEFAULT_MIN_REPEAT_LEN,
    ) -> None:
        """
        Args:
            max_body_len:   Longest body and longest alternate ending (in
                            measures) to try. Bounds the scan cost on long
                            scores.
            min_repeat_len: Minimum ``len * count`` for a non-silent repeat.
                            Keeps short oscillations (A, B, A, B) expanded.
        """
        self.max_body_len = max(1, max_body_len)
        self.min_repeat_len = min_repeat_len

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _count_plain(self, keys: Sequence[CanonicalKey], start: int, length: int) -> int:
        body = keys[start : start + length]
        count = 1
        while start + (count + 1) * length <= len(keys):
            offset = start + count * length
            if keys[offset : offset + length] != body:
                break
            count += 1
        return count

    def _next_occurrence(self, keys: Sequence[CanonicalKey], pos: int, length: int) -> int | None:
        """
        Position of the nearest copy of the body at ``pos`` that follows a
        tail of 1..max_body_len measures, or None.
        """
        body = keys[pos : pos + length]
        after = pos + length
        if keys[after : after + length] == body:
            # Immediate continuation is a plain repeat, not a volta tail.
            return None
        for candidate in range(after + 1, after + self.max_body_len + 1):
            if candidate + length > len(keys):
                return None
            if keys[candidate : candidate + length] == body:
                return candidate
        return None

    def _find_volta(self, keys: Sequence[CanonicalKey], start: int, length: int) -> RepeatBlock | None:
        body = keys[start : start + length]
        tails: list[tuple[int, int]] = []
        pos = start

        while True:
            nxt = self._next_occurrence(keys, pos, length)
            if nxt is None:
                break
            tails.append((pos + length, nxt - pos - length))
            pos = nxt

        if not tails:
            return None

        contents = [tuple(keys[s : s + n]) for s, n in tails]
        if len(set(contents)) != len(contents):
            return None

        final_start = pos + length
        final_length = min(tails[-1][1], len(keys) - final_start)
        if final_length > 0:
            final = tuple(keys[final_start : final_start + final_length])
            starts_body = keys[final_start : final_start + length] == body
            if final not in contents and not starts_body:
                tails.append((final_start, final_length))

        endings = tuple(
            Ending(number=number, start=s, length=n)
            for number, (s, n) in enumerate(tails, start=1)
        )
        # Passes = body copies found, one more than the number of between-body tails.
        count = len(contents) + 1
        return RepeatBlock(start=start, length=length, count=count, endings=endings)

    def _candidate(self, keys: Sequence[CanonicalKey], start: int) -> RepeatBlock | None:
        longest = min(self.max_body_len, len(keys) - start)
        for length in range(longest, 0, -1):
            body = keys[start : start + length]
            if not _is_primitive(body):
                continue

            count = self._count_plain(keys, start, length)
            if count >= 2:
                return RepeatBlock(start=start, length=length, count=count)

            volta = self._find_volta(keys, start, length)
            if volta is not None:
                return volta
        return None

    def _accept(self, keys: Sequence[CanonicalKey], block: RepeatBlock) -> bool:
        if block.length == 1 and not block.endings and keys[block.start].is_silent:
            return True
        return block.length * block.count >= self.min_repeat_len

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def infer(self, keys: Sequence[CanonicalKey]) -> list[RepeatBlock]:
        """
        Scan canonical keys and return the repeat blocks, ordered by start.

        Args:
            keys: One canonical key per measure, in score order.

        Returns:
            Non-overlapping RepeatBlocks. Measures not covered by any block
            are ordinary, non-repeated measures.
        """
        blocks: list[RepeatBlock] = []
        i = 0
        while i < len(keys):
            block = self._candidate(keys, i)
            if block is not None and self._accept(keys, block):
                blocks.append(block)
                i = block.end
            else:
                i += 1

        logger.debug("inferred %d repeat block(s) over %d measure(s)", len(blocks), len(keys))
        return blocks


def infer_repeats(
    keys: Sequence[CanonicalKey],
    max_body_len: int = DEFAULT_MAX_BODY_LEN,
    min_repeat_len: int = DEFAULT_MIN_REPEAT_LEN,
) -> list[RepeatBlock]:
    """Convenience wrapper around :class:`RepeatInferenceEngine`."""
    return RepeatInferenceEngine(max_body_len=max_body_len, min_repeat_len=min_repeat_len).infer(keys)
