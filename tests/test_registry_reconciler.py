import pytest

from conftest import FakeClock, FakeRegistryClient, handle
from domain.registry_reconciler import RegistryReconciler
from exceptions import RegistryError


def make_reconciler(client, clock=None, **kwargs):
    return RegistryReconciler(client, clock=clock or FakeClock(), **kwargs)


@pytest.mark.asyncio
async def test_first_poll_reports_every_bot_as_entered():
    client = FakeRegistryClient([handle("b1"), handle("b2")])
    reconciler = make_reconciler(client)

    diff = await reconciler.poll()

    assert [h.entity_id for h in diff.entered] == ["b1", "b2"]
    assert diff.left == []
    assert [h.entity_id for h in diff.current] == ["b1", "b2"]
    assert diff.healthy


@pytest.mark.asyncio
async def test_diff_reports_entered_and_left():
    client = FakeRegistryClient([handle("b1"), handle("b2")], [handle("b2"), handle("b3")])
    reconciler = make_reconciler(client)

    await reconciler.poll()
    diff = await reconciler.poll()

    assert [h.entity_id for h in diff.entered] == ["b3"]
    assert diff.left == ["b1"]
    assert {h.entity_id for h in diff.current} == {"b2", "b3"}


@pytest.mark.asyncio
async def test_unchanged_membership_still_refreshes_descriptive_fields():
    client = FakeRegistryClient(
        [handle("b1", meeting_url="https://meet.example/old")],
        [handle("b1", meeting_url="https://meet.example/new")],
    )
    reconciler = make_reconciler(client)

    await reconciler.poll()
    diff = await reconciler.poll()

    assert not diff.has_changes
    assert diff.current[0].meeting_url == "https://meet.example/new"
    assert reconciler.current[0].meeting_url == "https://meet.example/new"


@pytest.mark.asyncio
async def test_single_failure_keeps_last_known_bots():
    clock = FakeClock()
    client = FakeRegistryClient([handle("b1")], RegistryError("boom"))
    reconciler = make_reconciler(client, clock)

    await reconciler.poll()
    clock.advance(5)
    diff = await reconciler.poll()

    assert not diff.healthy
    assert diff.left == []
    assert [h.entity_id for h in diff.current] == ["b1"]


@pytest.mark.asyncio
async def test_failures_past_grace_and_threshold_clear_all_bots():
    clock = FakeClock()
    client = FakeRegistryClient([handle("b1"), handle("b2")], RegistryError("down"))
    reconciler = make_reconciler(client, clock, grace_seconds=30, failure_threshold=3)

    await reconciler.poll()
    for _ in range(2):
        clock.advance(20)
        diff = await reconciler.poll()
        assert diff.left == []

    clock.advance(20)
    diff = await reconciler.poll()

    assert sorted(diff.left) == ["b1", "b2"]
    assert diff.current == []
    assert reconciler.current == []


@pytest.mark.asyncio
async def test_many_quick_failures_within_grace_do_not_clear_bots():
    clock = FakeClock()
    client = FakeRegistryClient([handle("b1")], RegistryError("hiccup"))
    reconciler = make_reconciler(client, clock, grace_seconds=30, failure_threshold=3)

    await reconciler.poll()
    for _ in range(5):
        clock.advance(1)
        diff = await reconciler.poll()

    assert diff.left == []
    assert [h.entity_id for h in reconciler.current] == ["b1"]


@pytest.mark.asyncio
async def test_recovery_after_failure_resets_backoff():
    client = FakeRegistryClient([handle("b1")], RegistryError("x"), [handle("b1")])
    reconciler = make_reconciler(client, interval_seconds=5, max_backoff_seconds=30)

    await reconciler.poll()
    await reconciler.poll()
    assert reconciler.next_delay == 10

    diff = await reconciler.poll()

    assert diff.healthy
    assert not diff.has_changes
    assert reconciler.next_delay == 5


@pytest.mark.asyncio
async def test_backoff_is_capped():
    client = FakeRegistryClient(RegistryError("down"))
    reconciler = make_reconciler(client, interval_seconds=5, max_backoff_seconds=30)

    for _ in range(6):
        await reconciler.poll()

    assert reconciler.next_delay == 30
    assert reconciler.status()["consecutive_failures"] == 6


@pytest.mark.asyncio
async def test_unexpected_client_error_counts_as_failed_poll():
    clock = FakeClock()
    client = FakeRegistryClient([handle("b1")], AttributeError("'str' object has no attribute 'get'"))
    reconciler = make_reconciler(client, clock)

    await reconciler.poll()
    clock.advance(5)
    diff = await reconciler.poll()

    assert not diff.healthy
    assert [h.entity_id for h in diff.current] == ["b1"]
