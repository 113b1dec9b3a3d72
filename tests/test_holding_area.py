import pytest

from clip_arranger.editing.holding import EdgeTrimmer, HoldingArea
from clip_arranger.editing.models import EditingSettings
from clip_arranger.timeline.errors import UnsupportedForClipStateError
from clip_arranger.timeline.models import ClipKind, ClipRef
from clip_arranger.timeline.simulator import SimulatedTimelineService


def _spans(sim: SimulatedTimelineService, track: int = 0) -> list[tuple[float, float]]:
    return [(clip.start_time, clip.end_time) for clip in sim.arrangement(track)]


def _holding(sim: SimulatedTimelineService, settings: EditingSettings | None = None) -> HoldingArea:
    client = sim.client()
    settings = settings or EditingSettings()
    return HoldingArea(client, EdgeTrimmer(client, settings), 0, settings)


def test_commit_returns_a_live_ref_when_ids_are_reissued() -> None:
    sim = SimulatedTimelineService(renumber_on_mutation=True)
    clip_id = sim.add_midi_clip(0, 0.0, 8.0)
    state = sim.client().read_clip(ClipRef(clip_id=clip_id, track_index=0))

    with _holding(sim) as holding:
        staged = holding.stage_copy(state)
        holding.trim_right(staged, 4.0)
        final = holding.commit(staged, 20.0)

    assert final.clip_id in sim.clips
    assert _spans(sim) == [(0.0, 8.0), (20.0, 24.0)]


def test_holding_region_starts_past_track_content() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 8.0)
    state = sim.client().read_clip(ClipRef(clip_id=clip_id, track_index=0))

    with _holding(sim, EditingSettings(holding_gap_beats=50.0)) as holding:
        first = holding.stage_copy(state)
        second = holding.stage_copy(state)
        assert (first.start, second.start) == (58.0, 70.0)
        holding.discard(first)
        holding.discard(second)

    assert _spans(sim) == [(0.0, 8.0)]


def test_leftover_clips_are_deleted_when_the_block_fails() -> None:
    sim = SimulatedTimelineService(renumber_on_mutation=True)
    clip_id = sim.add_midi_clip(0, 0.0, 8.0)
    state = sim.client().read_clip(ClipRef(clip_id=clip_id, track_index=0))

    with pytest.raises(RuntimeError):
        with _holding(sim) as holding:
            holding.stage_copy(state)
            holding.stage_copy(state)
            raise RuntimeError("edit failed")

    assert _spans(sim) == [(0.0, 8.0)]


def test_audio_transient_is_configured_before_it_is_placed() -> None:
    sim = SimulatedTimelineService()
    sim.register_audio_file("vocal.wav", 12.0)
    sim.register_audio_file("silence.wav", 1.0)
    sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0)
    client = sim.client()
    trimmer = EdgeTrimmer(client, EditingSettings(silence_wav_path="silence.wav"))
    sim.calls.clear()

    trimmer.truncate(0, 6.0, 10.0, ClipKind.AUDIO)

    ops = [op for op, _ in sim.calls]
    duplicate = ops.index("duplicate_clip_to_arrangement")
    assert ops[duplicate + 1] == "delete_clip"
    written = [(args["name"], args["value"]) for op, args in sim.calls[:duplicate] if op == "set_property"]
    assert ("loop_end", 10.0) in written
    assert _spans(sim) == [(0.0, 6.0)]
    assert sim.session_clips(0) == []


def test_audio_trims_need_a_silence_file() -> None:
    sim = SimulatedTimelineService()
    trimmer = EdgeTrimmer(sim.client(), EditingSettings())

    trimmer.ensure_supported(ClipKind.MIDI)
    with pytest.raises(UnsupportedForClipStateError):
        trimmer.ensure_supported(ClipKind.AUDIO)
