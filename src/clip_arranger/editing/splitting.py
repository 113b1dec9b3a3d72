"""Split one arrangement clip into independent segments."""

from __future__ import annotations

import logging

from clip_arranger.editing.holding import EdgeTrimmer, HoldingArea
from clip_arranger.editing.models import EditingSettings
from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.models import EPSILON, ClipRef

logger = logging.getLogger(__name__)


class SplittingEngine:
    """Splits with one staged template and two duplications per cut point.

    The original is right-trimmed in place to become the first segment. Every
    interior segment is a copy of the template trimmed on both edges in the holding
    region and committed to its final position; the template itself is left-trimmed
    into the last segment.
    """

    def __init__(
        self,
        client: TimelineServiceClient,
        settings: EditingSettings | None = None,
        trimmer: EdgeTrimmer | None = None,
    ) -> None:
        self._client = client
        self._settings = settings or EditingSettings()
        self._trimmer = trimmer or EdgeTrimmer(client, self._settings)

    def split(self, ref: ClipRef, cut_points: list[float]) -> list[ClipRef]:
        """Split at offsets from the clip start; returns fresh refs in timeline order."""
        state = self._client.read_clip(ref)
        points = sorted(set(cut_points))
        for point in points:
            if point <= EPSILON or point >= state.length - EPSILON:
                raise ValueError(f"cut point {point} is outside clip {ref.clip_id} (length {state.length})")
        if not points:
            return [state.ref]
        self._trimmer.ensure_supported(state.kind)

        track = ref.track_index
        boundaries = [0.0, *points, state.length]
        with HoldingArea(self._client, self._trimmer, track, self._settings) as holding:
            template = holding.stage_copy(state)
            first_cut = state.start_time + points[0]
            self._trimmer.truncate(track, first_cut, state.end_time - first_cut, state.kind)

            for segment_start, segment_end in zip(boundaries[1:-2], boundaries[2:-1]):
                segment = holding.clone(template)
                holding.trim_right(segment, segment_end)
                holding.trim_left(segment, segment_start)
                holding.commit(segment, state.start_time + segment_start)

            last_start = boundaries[-2]
            holding.trim_left(template, last_start)
            holding.commit(template, state.start_time + last_start)

        # Every id issued above may be stale now; re-query the original span.
        segments = self._client.clips_between(track, state.start_time, state.end_time)
        logger.debug("split clip %s into %d segments", ref.clip_id, len(segments))
        return segments
