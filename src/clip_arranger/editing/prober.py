"""Discover how much audio a clip's file really holds."""

from __future__ import annotations

import logging

from clip_arranger.editing.holding import session_clip
from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import UnsupportedForClipStateError
from clip_arranger.timeline.models import ClipKind, ClipState

logger = logging.getLogger(__name__)

PROBE_LOOP_END = 1.0


class ContentBoundaryProber:
    """Reads the file boundary from a throwaway session clip.

    An arrangement clip's end_marker is unclamped and may already point past the
    audio. A fresh session clip whose loop_end is pinned to one beat keeps the
    service's own default end_marker, which sits on the content boundary.
    """

    def __init__(self, client: TimelineServiceClient) -> None:
        self._client = client

    def probe(self, state: ClipState) -> float:
        """Return the content extent measured from the clip's start_marker, in beats."""
        if state.kind != ClipKind.AUDIO or not state.file_path:
            raise UnsupportedForClipStateError(f"clip {state.ref.clip_id} has no audio file to probe")

        with session_clip(self._client, state.ref.track_index, state.file_path) as probe:
            self._client.set_property(probe, "loop_end", PROBE_LOOP_END)
            boundary = self._client.get_float(probe, "end_marker")

        extent = boundary - state.start_marker
        logger.debug("probed clip %s: boundary %.3f, extent %.3f", state.ref.clip_id, boundary, extent)
        return extent
