import httpx
import pytest

from conftest import no_sleep
from exceptions import AudioFetchError, AudioNotFoundError, AudioNotReadyError, RegistryError
from infrastructure.http_audio_source import HttpAudioSource
from infrastructure.http_registry_client import HttpRegistryClient

BASE_URL = "https://bots.example"


def client_for(handler):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_registry_listing_is_parsed():
    def respond(request):
        assert request.url.path == "/api/google-meet-guest/pool/active"
        return httpx.Response(
            200,
            json={
                "count": 3,
                "bots": [
                    {
                        "poolBotId": "p1",
                        "legacyBotId": "l1",
                        "meetingUrl": "https://meet.example/a",
                        "status": "in_meeting",
                    },
                    {"botId": "p2", "legacyBotId": "l2"},
                    {"poolBotId": "p3"},
                ],
            },
        )

    async with client_for(respond) as http:
        handles = await HttpRegistryClient(http, sleep=no_sleep).list_active()

    assert [(h.entity_id, h.legacy_id) for h in handles] == [("p1", "l1"), ("p2", "l2")]
    assert handles[0].meeting_url == "https://meet.example/a"
    assert handles[0].status == "in_meeting"


@pytest.mark.asyncio
async def test_empty_registry_listing_is_valid():
    async with client_for(lambda request: httpx.Response(200, json={"count": 0, "bots": []})) as http:
        assert await HttpRegistryClient(http, sleep=no_sleep).list_active() == []


@pytest.mark.asyncio
async def test_registry_listing_without_count_is_malformed():
    async with client_for(lambda request: httpx.Response(200, json={"bots": []})) as http:
        with pytest.raises(RegistryError) as error:
            await HttpRegistryClient(http, sleep=no_sleep).list_active()

    assert error.value.status_code == 200


@pytest.mark.asyncio
async def test_malformed_bot_entries_are_skipped():
    listing = {
        "count": 4,
        "bots": [
            "not-a-dict",
            None,
            {"poolBotId": "p1", "legacyBotId": "l1", "meetingUrl": {"href": "x"}},
            {"poolBotId": "p2", "legacyBotId": "l2"},
        ],
    }
    async with client_for(lambda request: httpx.Response(200, json=listing)) as http:
        handles = await HttpRegistryClient(http, sleep=no_sleep).list_active()

    assert [h.entity_id for h in handles] == ["p2"]


@pytest.mark.asyncio
@pytest.mark.parametrize("bots", [{"poolBotId": "p1"}, "p1"])
async def test_registry_listing_with_non_list_bots_is_malformed(bots):
    async with client_for(lambda request: httpx.Response(200, json={"count": 1, "bots": bots})) as http:
        with pytest.raises(RegistryError) as error:
            await HttpRegistryClient(http, sleep=no_sleep).list_active()

    assert error.value.status_code == 200

@pytest.mark.asyncio
async def test_registry_server_errors_are_retried():
    calls = []

    def respond(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(502)
        return httpx.Response(200, json={"count": 0, "bots": []})

    async with client_for(respond) as http:
        assert await HttpRegistryClient(http, max_retries=3, sleep=no_sleep).list_active() == []

    assert len(calls) == 3


@pytest.mark.asyncio
async def test_registry_client_errors_are_not_retried():
    calls = []

    def respond(request):
        calls.append(request)
        return httpx.Response(401)

    async with client_for(respond) as http:
        with pytest.raises(RegistryError) as error:
            await HttpRegistryClient(http, sleep=no_sleep).list_active()

    assert error.value.status_code == 401
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_registry_transport_failure_is_registry_error():
    def respond(request):
        raise httpx.ConnectError("refused", request=request)

    async with client_for(respond) as http:
        with pytest.raises(RegistryError) as error:
            await HttpRegistryClient(http, max_retries=1, sleep=no_sleep).list_active()

    assert error.value.status_code is None


@pytest.mark.asyncio
async def test_audio_is_downloaded_by_legacy_id():
    def respond(request):
        assert request.url.path == "/api/google-meet-guest/audio-blob/l1"
        return httpx.Response(200, content=b"RIFFdata")

    async with client_for(respond) as http:
        assert await HttpAudioSource(http).fetch_audio("l1") == b"RIFFdata"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error",
    [(425, AudioNotReadyError), (404, AudioNotFoundError), (500, AudioFetchError)],
)
async def test_audio_status_codes_map_to_errors(status, error):
    async with client_for(lambda request: httpx.Response(status)) as http:
        with pytest.raises(error):
            await HttpAudioSource(http).fetch_audio("l1")


@pytest.mark.asyncio
async def test_audio_transport_failure_is_retryable():
    def respond(request):
        raise httpx.ReadTimeout("slow", request=request)

    async with client_for(respond) as http:
        with pytest.raises(AudioFetchError) as error:
            await HttpAudioSource(http, timeout_seconds=1.0).fetch_audio("l1")

    assert error.value.retryable


def test_audio_fetch_error_retryability():
    assert AudioFetchError("l1", 503).retryable
    assert not AudioFetchError("l1", 403).retryable
