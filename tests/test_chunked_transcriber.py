import pytest

from conftest import FakeTranscriptionService, provider_response
from domain.chunked_transcriber import ChunkedTranscriber, plan_windows
from domain.models import AudioSlice, TranscriptionContext
from exceptions import AudioUnreadableError, RateLimitError, TranscriptionError


def audio_slice(duration, start_offset=0.0):
    return AudioSlice(data=b"\x01\x02" * 64, start_offset=start_offset, duration_estimate=duration)


def test_plan_windows_truncates_last_window():
    assert plan_windows(620, 300) == [(0, 300), (300, 600), (600, 620)]
    assert plan_windows(300, 300) == [(0, 300)]


@pytest.mark.asyncio
async def test_short_slice_is_sent_in_one_call(slicer):
    service = FakeTranscriptionService(provider_response([("Speaker 1", "hello world", 1.0, 2.0)]))
    transcriber = ChunkedTranscriber(service, slicer)

    result = await transcriber.transcribe(audio_slice(42.0), None, entity_id="b1")

    assert len(service.calls) == 1
    assert service.calls[0]["context"] is None
    assert slicer.calls == [(0.0, 42.0)]
    assert result.window_count == 1
    assert result.full_text == "hello world"
    assert result.word_count == 2
    assert result.context.total_duration == 42.0
    assert result.context.last_speaker == "Speaker 1"


@pytest.mark.asyncio
async def test_long_audio_windows_are_shifted_into_session_time(slicer):
    service = FakeTranscriptionService(
        provider_response([("Speaker 1", "first", 10.0, 12.0)]),
        provider_response([("Speaker 1", "second", 10.0, 12.0)]),
        provider_response([("Speaker 2", "third", 10.0, 12.0)]),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(620.0), None, entity_id="b1")

    assert result.window_count == 3
    assert slicer.calls == [(0, 300), (300, 600), (600, 620.0)]
    starts = [u.start_time for u in result.utterances]
    assert starts == [10.0, 310.0, 610.0]
    assert starts == sorted(starts)
    assert result.utterances[2].end_time == 612.0


@pytest.mark.asyncio
async def test_each_window_receives_context_from_previous_one(slicer):
    service = FakeTranscriptionService(
        provider_response([("Ada", "a", 0.0, 5.0)]),
        provider_response([("Grace", "b", 0.0, 5.0)]),
        provider_response([("Ada", "c", 0.0, 5.0)]),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(620.0), None, entity_id="b1")

    contexts = [call["context"] for call in service.calls]
    assert contexts[0] is None
    assert contexts[1].last_speaker == "Ada"
    assert contexts[1].total_duration == 300
    assert contexts[2].last_speaker == "Grace"
    assert contexts[2].speakers == ["Ada", "Grace"]
    assert result.context.total_duration == 620.0


@pytest.mark.asyncio
async def test_incoming_context_is_not_mutated(slicer):
    service = FakeTranscriptionService(provider_response([("Grace", "hi", 0.0, 1.0)]))
    transcriber = ChunkedTranscriber(service, slicer)
    context = TranscriptionContext(last_speaker="Ada", total_duration=60.0, speakers=["Ada"])

    result = await transcriber.transcribe(audio_slice(5.0, start_offset=60.0), context, entity_id="b1")

    assert service.calls[0]["context"].last_speaker == "Ada"
    assert context.speakers == ["Ada"]
    assert result.context.speakers == ["Ada", "Grace"]
    assert result.utterances[0].start_time == 60.0
    assert result.context.total_duration == 65.0


@pytest.mark.asyncio
async def test_failed_window_is_skipped_and_context_kept(slicer):
    service = FakeTranscriptionService(
        provider_response([("Ada", "a", 0.0, 5.0)]),
        TranscriptionError("b1"),
        provider_response([("Grace", "c", 1.0, 5.0)]),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(620.0), None, entity_id="b1")

    assert result.skipped_windows == 1
    assert [u.text for u in result.utterances] == ["a", "c"]
    assert result.utterances[1].start_time == 601.0
    assert service.calls[2]["context"].total_duration == 300
    assert service.calls[2]["context"].last_speaker == "Ada"


@pytest.mark.asyncio
async def test_unreadable_window_is_skipped(slicer):
    class BrokenSlicer(type(slicer)):
        def slice(self, audio_data, start, end):
            if start == 300:
                raise AudioUnreadableError("audio", "corrupt")
            return super().slice(audio_data, start, end)

    service = FakeTranscriptionService(provider_response([("Ada", "a", 0.0, 5.0)]))
    transcriber = ChunkedTranscriber(service, BrokenSlicer(), threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(620.0), None, entity_id="b1")

    assert result.skipped_windows == 1
    assert len(service.calls) == 2


@pytest.mark.asyncio
async def test_all_windows_failing_raises(slicer):
    service = FakeTranscriptionService(TranscriptionError("b1"))
    transcriber = ChunkedTranscriber(service, slicer)

    with pytest.raises(TranscriptionError):
        await transcriber.transcribe(audio_slice(30.0), None, entity_id="b1")


@pytest.mark.asyncio
async def test_rate_limit_aborts_the_whole_call(slicer):
    service = FakeTranscriptionService(
        provider_response([("Ada", "a", 0.0, 5.0)]),
        RateLimitError("Gemini API", 60),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    with pytest.raises(RateLimitError):
        await transcriber.transcribe(audio_slice(620.0), None, entity_id="b1")
    assert len(service.calls) == 2


@pytest.mark.asyncio
async def test_timestamps_are_clamped_to_their_window(slicer):
    service = FakeTranscriptionService(
        provider_response([("A", "late", 250.0, 400.0), ("A", "early", -3.0, 20.0)]),
        provider_response([("A", "next", 0.0, 1.0)]),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(400.0), None, entity_id="b1")

    assert result.utterances[0].end_time == 300.0
    starts = [u.start_time for u in result.utterances]
    assert starts == sorted(starts)
    assert result.utterances[2].start_time == 300.0


@pytest.mark.asyncio
async def test_overlapping_utterances_are_pushed_past_the_previous_end(slicer):
    service = FakeTranscriptionService(
        provider_response([("A", "first", 0.0, 5.0), ("B", "second", 3.0, 6.0), ("A", "third", 4.0, 4.5)])
    )
    transcriber = ChunkedTranscriber(service, slicer)

    result = await transcriber.transcribe(audio_slice(10.0), None, entity_id="b1")

    spans = [(u.start_time, u.end_time) for u in result.utterances]
    assert spans == [(0.0, 5.0), (5.0, 6.0), (6.0, 6.0)]


@pytest.mark.asyncio
async def test_language_is_chosen_by_majority(slicer):
    service = FakeTranscriptionService(
        provider_response([("A", "x", 0, 1)], language="de", confidence=0.6),
        provider_response([("A", "y", 0, 1)], language="en", confidence=0.8),
        provider_response([("A", "z", 0, 1)], language="de", confidence=1.0),
    )
    transcriber = ChunkedTranscriber(service, slicer, threshold_seconds=300, window_seconds=300)

    result = await transcriber.transcribe(audio_slice(700.0), None, entity_id="b1")

    assert result.detected_language == "de"
    assert result.language_confidence == pytest.approx(0.8)
    assert result.full_text == "x y z"
    assert result.word_count == 3


@pytest.mark.asyncio
async def test_single_roster_name_applies_to_every_utterance(slicer):
    service = FakeTranscriptionService(
        provider_response([("Speaker 1", "a", 0, 1), ("Unknown", "b", 1, 2), ("Bob", "c", 2, 3)])
    )
    transcriber = ChunkedTranscriber(service, slicer)

    result = await transcriber.transcribe(
        audio_slice(10.0), None, entity_id="b1", roster=["Ada"], named_speakers=True
    )

    assert {u.speaker for u in result.utterances} == {"Ada"}
    assert result.context.speakers == ["Ada"]


@pytest.mark.asyncio
async def test_fallback_utterance_spans_the_window(slicer):
    service = FakeTranscriptionService("not json at all")
    transcriber = ChunkedTranscriber(service, slicer)

    result = await transcriber.transcribe(audio_slice(8.0, start_offset=20.0), None, entity_id="b1")

    assert len(result.utterances) == 1
    assert result.utterances[0].start_time == 20.0
    assert result.utterances[0].end_time == 28.0
    assert result.utterances[0].speaker == "Unknown"
