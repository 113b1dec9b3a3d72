import pytest

from clip_arranger.editing.models import EditingSettings, EditStatus
from clip_arranger.editing.tiling import TilingEngine
from clip_arranger.timeline.errors import UnsupportedForClipStateError
from clip_arranger.timeline.models import ClipRef
from clip_arranger.timeline.simulator import SimulatedTimelineService

BAR = 4.0


def _spans(sim: SimulatedTimelineService, track: int = 0) -> list[tuple[float, float]]:
    return [(clip.start_time, clip.end_time) for clip in sim.arrangement(track)]


def _assert_contiguous(sim: SimulatedTimelineService, start: float, total: float) -> None:
    spans = _spans(sim)
    assert spans[0][0] == pytest.approx(start)
    for (_, previous_end), (next_start, _) in zip(spans, spans[1:]):
        assert next_start == pytest.approx(previous_end)
    assert spans[-1][1] == pytest.approx(start + total)


def test_looping_midi_four_bars_to_ten_bars_makes_three_clips() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 4 * BAR, looping=True)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0, start_time=0.0), 10 * BAR)

    assert outcome.status == EditStatus.FULL
    assert len(outcome.clips) == 3
    assert outcome.achieved_duration == pytest.approx(10 * BAR)
    assert _spans(sim) == [(0.0, 16.0), (16.0, 32.0), (32.0, 40.0)]
    _assert_contiguous(sim, 0.0, 10 * BAR)


def test_short_looping_clip_reveals_later_loop_phases() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 4.0, looping=True, end_marker=16.0, loop_end=16.0)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 12.0)

    assert outcome.status == EditStatus.FULL
    assert [clip.start_marker for clip in sim.arrangement(0)] == [0.0, 4.0, 8.0]
    _assert_contiguous(sim, 0.0, 12.0)


def test_looping_clip_longer_than_its_content_is_trimmed_before_tiling() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(
        0, 0.0, 12.0, looping=True, start_marker=2.0, end_marker=8.0, loop_start=0.0, loop_end=8.0
    )
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 20.0)

    assert outcome.status == EditStatus.FULL
    assert _spans(sim) == [(0.0, 6.0), (6.0, 12.0), (12.0, 18.0), (18.0, 20.0)]


def test_unlooped_midi_grows_end_marker_and_tiles_sequential_content() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 16.0)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 40.0)

    clips = sim.arrangement(0)
    assert outcome.status == EditStatus.FULL
    assert _spans(sim) == [(0.0, 16.0), (16.0, 32.0), (32.0, 40.0)]
    assert [clip.start_marker for clip in clips] == [0.0, 16.0, 32.0]
    assert [clip.end_marker for clip in clips[1:]] == [32.0, 40.0]
    assert sim.clips[clip_id].end_marker == 40.0
    assert all(not clip.looping for clip in clips)


def test_warped_audio_is_capped_at_the_file_boundary() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("vocal.wav", 12.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=4 * BAR)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 8 * BAR)

    assert outcome.status == EditStatus.CAPPED
    assert outcome.achieved_duration == pytest.approx(6 * BAR)
    assert outcome.warnings
    assert _spans(sim) == [(0.0, 16.0), (16.0, 24.0)]
    tile = sim.arrangement(0)[1]
    assert tile.start_marker == 16.0
    assert tile.looping is False
    assert sim.session_clips(0) == []


def test_warped_audio_without_more_content_is_unchanged() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("vocal.wav", 8.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 32.0)

    assert outcome.status == EditStatus.UNCHANGED
    assert outcome.achieved_duration == pytest.approx(16.0)
    assert outcome.warnings
    assert _spans(sim) == [(0.0, 16.0)]


def test_warped_audio_with_enough_content_is_full() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("vocal.wav", 30.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0)
    engine = TilingEngine(sim.client())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 32.0)

    assert outcome.status == EditStatus.FULL
    assert outcome.warnings == []
    assert _spans(sim) == [(0.0, 16.0), (16.0, 32.0)]


def test_unwarped_audio_lengthens_through_loop_end() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("take.wav", 10.0)
    clip_id = sim.add_audio_clip(0, 0.0, "take.wav", length=8.0, warped=False)
    engine = TilingEngine(sim.client())
    ref = ClipRef(clip_id=clip_id, track_index=0)

    full = engine.lengthen(ref, 16.0)
    assert full.status == EditStatus.FULL
    assert full.achieved_duration == pytest.approx(16.0)
    assert sim.call_count("duplicate_clip_to_arrangement") == 0

    capped = engine.lengthen(ref, 30.0)
    assert capped.status == EditStatus.CAPPED
    assert capped.achieved_duration == pytest.approx(20.0)
    assert capped.warnings


def test_unwarped_audio_end_time_never_decreases() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("take.wav", 10.0)
    clip_id = sim.add_audio_clip(0, 0.0, "take.wav", length=8.0, warped=False)
    engine = TilingEngine(sim.client())
    ref = ClipRef(clip_id=clip_id, track_index=0)

    previous_end = sim.clips[clip_id].end_time
    for target in (12.0, 10.0, 18.0, 14.0, 40.0, 9.0):
        engine.lengthen(ref, target)
        assert sim.clips[clip_id].end_time >= previous_end - 1e-9
        previous_end = sim.clips[clip_id].end_time


def test_shorten_removes_the_tail_without_leaving_a_transient() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 0.0, 8 * BAR)
    engine = TilingEngine(sim.client())

    ref = engine.shorten(ClipRef(clip_id=clip_id, track_index=0), 4 * BAR)

    assert ref.clip_id == clip_id
    assert _spans(sim) == [(0.0, 16.0)]

    engine.shorten(ref, 4 * BAR)
    assert _spans(sim) == [(0.0, 16.0)]


def test_shorten_audio_uses_a_silent_transient() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("vocal.wav", 12.0)
    sim.register_audio_file("silence.wav", 1.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0)
    engine = TilingEngine(sim.client(), EditingSettings(silence_wav_path="silence.wav"))

    engine.shorten(ClipRef(clip_id=clip_id, track_index=0), 6.0)

    assert _spans(sim) == [(0.0, 6.0)]
    assert sim.session_clips(0) == []


def test_shorten_audio_without_silence_file_is_unsupported() -> None:
    sim = SimulatedTimelineService()
    sim.register_audio_file("vocal.wav", 12.0)
    clip_id = sim.add_audio_clip(0, 0.0, "vocal.wav", length=16.0)
    engine = TilingEngine(sim.client(), EditingSettings())

    with pytest.raises(UnsupportedForClipStateError):
        engine.shorten(ClipRef(clip_id=clip_id, track_index=0), 6.0)
    assert _spans(sim) == [(0.0, 16.0)]


def test_looping_audio_needing_a_trim_fails_before_any_change() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("loop.wav", 8.0)
    clip_id = sim.add_audio_clip(0, 0.0, "loop.wav", length=16.0, looping=True)
    engine = TilingEngine(sim.client(), EditingSettings())

    with pytest.raises(UnsupportedForClipStateError):
        engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 40.0)

    assert _spans(sim) == [(0.0, 16.0)]
    assert sim.call_count("duplicate_clip_to_arrangement") == 0
    assert sim.call_count("set_property") == 0


def test_looping_audio_in_whole_tiles_needs_no_silence_file() -> None:
    sim = SimulatedTimelineService(tempo=120.0)
    sim.register_audio_file("loop.wav", 8.0)
    clip_id = sim.add_audio_clip(0, 0.0, "loop.wav", length=16.0, looping=True)
    engine = TilingEngine(sim.client(), EditingSettings())

    outcome = engine.lengthen(ClipRef(clip_id=clip_id, track_index=0), 32.0)

    assert outcome.status == EditStatus.FULL
    assert _spans(sim) == [(0.0, 16.0), (16.0, 32.0)]
