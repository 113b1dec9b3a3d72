import pytest

from clip_arranger.timeline.client import TimelineServiceClient
from clip_arranger.timeline.errors import (
    InvalidReferenceError,
    ServiceUnavailableError,
    TimelineServiceError,
    UnsupportedForClipStateError,
)
from clip_arranger.timeline.models import ClipKind, ClipRef, normalize_clip_id
from clip_arranger.timeline.simulator import SimulatedTimelineService


def _recording_transport(response: dict[str, object]):
    calls: list[tuple[str, dict[str, object], dict[str, str], float]] = []

    def _transport(endpoint: str, payload: dict[str, object], headers: dict[str, str], timeout: float) -> dict[str, object]:
        calls.append((endpoint, payload, headers, timeout))
        return response

    return _transport, calls


def test_normalize_clip_id_accepts_every_service_shape() -> None:
    assert normalize_clip_id(7) == 7
    assert normalize_clip_id(7.0) == 7
    assert normalize_clip_id("7") == 7
    assert normalize_clip_id("id 7") == 7
    assert normalize_clip_id(["id", 7]) == 7
    assert normalize_clip_id(("id", "7")) == 7


@pytest.mark.parametrize("raw", [True, None, "clip 7", ["clip", 7], 7.5, "id -1"])
def test_normalize_clip_id_rejects_unknown_shapes(raw: object) -> None:
    with pytest.raises(ValueError):
        normalize_clip_id(raw)


def test_call_sends_op_args_and_bearer_header() -> None:
    transport, calls = _recording_transport({"result": None})
    client = TimelineServiceClient(
        endpoint="http://timeline.local/rpc",
        api_key="secret",
        timeout_sec=2.5,
        transport=transport,
    )

    client.delete_clip(ClipRef(clip_id=4, track_index=1))

    endpoint, payload, headers, timeout = calls[0]
    assert endpoint == "http://timeline.local/rpc"
    assert payload == {"op": "delete_clip", "args": {"track": 1, "clip": 4}}
    assert headers["Authorization"] == "Bearer secret"
    assert timeout == 2.5


def test_missing_endpoint_raises_service_unavailable() -> None:
    with pytest.raises(ServiceUnavailableError):
        TimelineServiceClient().get_children(0)


def test_transport_failure_raises_service_unavailable() -> None:
    def _broken(endpoint: str, payload: dict[str, object], headers: dict[str, str], timeout: float) -> dict[str, object]:
        raise OSError("connection refused")

    client = TimelineServiceClient(endpoint="http://timeline.local/rpc", transport=_broken)
    with pytest.raises(ServiceUnavailableError):
        client.get_children(0)


@pytest.mark.parametrize(
    ("code", "error_type"),
    [
        ("invalid_reference", InvalidReferenceError),
        ("unsupported", UnsupportedForClipStateError),
        ("boom", TimelineServiceError),
    ],
)
def test_error_payloads_map_to_exception_types(code: str, error_type: type[Exception]) -> None:
    transport, _ = _recording_transport({"error": {"code": code, "message": "nope"}})
    client = TimelineServiceClient(endpoint="http://timeline.local/rpc", transport=transport)

    with pytest.raises(error_type):
        client.get_property(ClipRef(clip_id=1, track_index=0), "start_time")


def test_unknown_error_code_is_kept_on_the_exception() -> None:
    transport, _ = _recording_transport({"error": {"code": "rate_limited", "message": "slow down"}})
    client = TimelineServiceClient(endpoint="http://timeline.local/rpc", transport=transport)

    with pytest.raises(TimelineServiceError) as excinfo:
        client.get_children(0)
    assert excinfo.value.code == "rate_limited"


def test_duplicate_normalizes_string_id() -> None:
    transport, _ = _recording_transport({"result": "id 12"})
    client = TimelineServiceClient(endpoint="http://timeline.local/rpc", transport=transport)

    ref = client.duplicate_clip(ClipRef(clip_id=3, track_index=2), 16.0)

    assert ref == ClipRef(clip_id=12, track_index=2, start_time=16.0)


def test_create_clip_validates_kind_specific_arguments() -> None:
    client = TimelineServiceClient(endpoint="http://timeline.local/rpc")

    with pytest.raises(ValueError):
        client.create_clip(0, 0.0, ClipKind.MIDI)
    with pytest.raises(ValueError):
        client.create_clip(0, 0.0, ClipKind.AUDIO, length=4.0, file_path="a.wav")
    with pytest.raises(ValueError):
        client.create_clip(0, 0.0, ClipKind.AUDIO)


def test_from_env_reads_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLIP_ARRANGER_TIMELINE_ENDPOINT", " http://timeline.local/rpc ")
    monkeypatch.setenv("CLIP_ARRANGER_TIMELINE_API_KEY", "token")
    monkeypatch.setenv("CLIP_ARRANGER_TIMELINE_TIMEOUT_SEC", "not-a-number")

    client = TimelineServiceClient.from_env()

    assert client.endpoint == "http://timeline.local/rpc"
    assert client.api_key == "token"
    assert client.timeout_sec == 6.0

    monkeypatch.setenv("CLIP_ARRANGER_TIMELINE_TIMEOUT_SEC", "0.01")
    assert TimelineServiceClient.from_env().timeout_sec == 0.1


def test_read_clip_reports_state_and_fresh_position() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 8.0, 4.0, looping=True)
    client = sim.client()

    state = client.read_clip(ClipRef(clip_id=clip_id, track_index=0))

    assert state.kind == ClipKind.MIDI
    assert state.ref.start_time == 8.0
    assert state.length == 4.0
    assert state.looping is True
    assert state.is_arrangement is True


def test_resolve_falls_back_to_recorded_position() -> None:
    sim = SimulatedTimelineService()
    clip_id = sim.add_midi_clip(0, 8.0, 4.0)
    client = sim.client()

    resolved = client.resolve(ClipRef(clip_id=999, track_index=0, start_time=8.0))

    assert resolved.clip_id == clip_id
    with pytest.raises(InvalidReferenceError):
        client.resolve(ClipRef(clip_id=999, track_index=0))


def test_find_free_slot_skips_occupied_slots() -> None:
    sim = SimulatedTimelineService()
    sim.register_audio_file("loop.wav", 2.0)
    client = sim.client()
    client.create_session_audio_clip(0, 0, "loop.wav")
    client.create_session_audio_clip(0, 1, "loop.wav")

    assert client.find_free_slot(0) == 2
