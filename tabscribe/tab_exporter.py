"""TabExporter: converts score JSON documents to ASCII tablature or alphaTex."""

from __future__ import annotations

import logging
from typing import Final

from tabscribe.canonical import canonicalize_all
from tabscribe.layout import RenderUnit, build_units
from tabscribe.repeat_inference import (
    DEFAULT_MAX_BODY_LEN,
    DEFAULT_MIN_REPEAT_LEN,
    RepeatBlock,
    RepeatInferenceEngine,
)
from tabscribe.score_loader import load_score
from tabscribe.score_models import Score
from tabscribe.tab_renderers import (
    DEFAULT_MEASURES_PER_LINE,
    AlphaTexRenderer,
    AsciiTabRenderer,
    TabRenderer,
)

SUPPORTED_FORMATS: Final[set[str]] = {"ascii", "alphatex"}

logger = logging.getLogger(__name__)


class TabExporter:
    """
    Convert a score into text output via a pluggable renderer.

    Supported formats:
    - ``ascii``: fixed-width tablature stave with repeat and volta markers.
    - ``alphatex``: alphaTex markup with ``\\ro``/``\\rc``/``\\ae`` bar metadata.

    Both formats share the same repeat inference, so the printed measure
    sequence is identical between them.
    """

    def __init__(
        self,
        output_format: str = "ascii",
        measures_per_line: int = DEFAULT_MEASURES_PER_LINE,
        min_repeat_len: int = DEFAULT_MIN_REPEAT_LEN,
        max_body_len: int = DEFAULT_MAX_BODY_LEN,
    ) -> None:
        normalized = output_format.strip().lower()
        if normalized not in SUPPORTED_FORMATS:
            supported = ", ".join(sorted(SUPPORTED_FORMATS))
            raise ValueError(f"Unsupported output format '{output_format}'. Use one of: {supported}.")
        self.output_format = normalized
        self.measures_per_line = measures_per_line
        self.engine = RepeatInferenceEngine(max_body_len=max_body_len, min_repeat_len=min_repeat_len)
        self.renderer = self._build_renderer(normalized)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_renderer(self, output_format: str) -> TabRenderer:
        if output_format == "ascii":
            return AsciiTabRenderer(measures_per_line=self.measures_per_line)
        return AlphaTexRenderer()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def default_extension(self) -> str:
        return self.renderer.default_extension

    def infer_blocks(self, score: Score) -> list[RepeatBlock]:
        return self.engine.infer(canonicalize_all(score.measures, score.tempo_map()))

    def build_units(self, score: Score) -> list[RenderUnit]:
        return build_units(score.measures, self.infer_blocks(score))

    def render(self, score: Score) -> str:
        """Run repeat inference and render the score in the selected format."""
        units = self.build_units(score)
        logger.debug(
            "rendering %d measure(s) as %d printed unit(s) in %s format",
            len(score.measures),
            len(units),
            self.output_format,
        )
        return self.renderer.render(score=score, units=units)

    def export(self, json_path: str, output_path: str) -> None:
        """
        Convert a score JSON file and write the rendering to disk.

        Raises:
            ScoreFormatError: If the input is not a usable score document.
            OSError: If the input cannot be read or the output cannot be written.
        """
        content = self.render(load_score(json_path))
        with open(output_path, "w", encoding="utf-8") as fh:
            fh.write(content)
