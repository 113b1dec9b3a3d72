"""Marker writes that survive the service's unlooped-clip restrictions."""

from __future__ import annotations

from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.models import ClipRef

_WRITE_ORDER = ("loop_start", "loop_end", "start_marker", "end_marker")


class ClipMarkerWriter:
    def __init__(self, client: TimelineServiceClient) -> None:
        self._client = client

    def set_markers(
        self,
        ref: ClipRef,
        *,
        loop_start: float | None = None,
        loop_end: float | None = None,
        start_marker: float | None = None,
        end_marker: float | None = None,
    ) -> None:
        """Write the given markers in loop_start, loop_end, start_marker, end_marker order.

        Marker writes on an unlooped clip are dropped by the service, so looping is
        switched on before the first write and restored after the last one.
        """
        values = {
            "loop_start": loop_start,
            "loop_end": loop_end,
            "start_marker": start_marker,
            "end_marker": end_marker,
        }
        pending = [(name, values[name]) for name in _WRITE_ORDER if values[name] is not None]
        if not pending:
            return

        was_looping = self._client.get_flag(ref, "looping")
        if was_looping:
            self._write(ref, pending)
            return

        self._client.set_property(ref, "looping", True)
        try:
            self._write(ref, pending)
        finally:
            self._client.set_property(ref, "looping", False)

    def _write(self, ref: ClipRef, pending: list[tuple[str, float | None]]) -> None:
        for name, value in pending:
            self._client.set_property(ref, name, value)
