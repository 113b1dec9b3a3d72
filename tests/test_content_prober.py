import pytest

from clip_arranger.editing.prober import ContentBoundaryProber
from clip_arranger.timeline.errors import UnsupportedForClipStateError
from clip_arranger.timeline.models import ClipRef
from clip_arranger.timeline.simulator import SimulatedTimelineService


def _audio_clip(sim: SimulatedTimelineService, start_marker: float = 0.0) -> ClipRef:
    sim.register_audio_file("vocal.wav", 12.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0, start_marker=start_marker)
    return ClipRef(clip_id=clip_id, track_index=0)


def test_probe_ignores_an_overextended_end_marker() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    ref = _audio_clip(sim)
    sim.clips[ref.clip_id].end_marker = 40.0
    client = sim.client()

    extent = ContentBoundaryProber(client).probe(client.read_clip(ref))

    assert extent == pytest.approx(24.0)
    assert sim.session_clips(0) == []


def test_probe_is_measured_from_the_start_marker() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    ref = _audio_clip(sim, start_marker=4.0)
    client = sim.client()

    assert ContentBoundaryProber(client).probe(client.read_clip(ref)) == pytest.approx(20.0)


def test_probe_pins_loop_end_before_reading() -> None:
    sim = SimulatedTimelineService()
    ref = _audio_clip(sim)
    client = sim.client()
    state = client.read_clip(ref)
    sim.calls.clear()

    ContentBoundaryProber(client).probe(state)

    ops = [op for op, _ in sim.calls]
    assert ops.index("set_property") < ops.index("get_property")
    assert ops[-1] == "delete_slot_clip"


def test_probe_rejects_midi_clips() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 4.0)
    client = sim.client()

    with pytest.raises(UnsupportedForClipStateError):
        ContentBoundaryProber(client).probe(client.read_clip(ClipRef(clip_id=clip_id, track_index=0)))
