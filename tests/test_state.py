import pytest

from reelrunner.scrape.errors import ProtocolViolation
from reelrunner.scrape.events import (
    DiscoverEmbedsEvent, EmbedDiscovery, InitEvent, StartEvent, UpdateEvent,
)
from reelrunner.scrape.state import ScrapeState
from reelrunner.scrape.store import CandidateStatus

NAMES = {"vidlink": "VidLink", "streamwish": "Streamwish"}


def _state():
    return ScrapeState(names=NAMES.get)


def test_init_registers_waiting_roots_with_display_names():
    state = _state()
    state.apply(InitEvent(source_ids=("vidlink", "other")))
    snap = state.snapshot()
    assert [item.id for item in snap.order] == ["vidlink", "other"]
    assert snap.segments["vidlink"].name == "VidLink"
    # unknown ids fall back to the id itself
    assert snap.segments["other"].name == "other"
    assert all(c.status is CandidateStatus.WAITING for c in snap.segments.values())


def test_init_prefers_names_carried_by_the_event():
    state = _state()
    state.apply(InitEvent(source_ids=("h1", "h2"), names=("Mirror 1", "Mirror 2")))
    assert [c.name for c in state.snapshot().segments.values()] == ["Mirror 1", "Mirror 2"]


def test_start_promotes_previous_pending_candidate():
    state = _state()
    state.apply(InitEvent(source_ids=("a", "b")))
    state.apply(StartEvent("a"))
    state.apply(StartEvent("b"))
    snap = state.snapshot()
    assert snap.segments["a"].status is CandidateStatus.SUCCESS
    assert snap.segments["b"].status is CandidateStatus.PENDING
    assert snap.current == "b"


def test_start_does_not_promote_a_failed_candidate():
    state = _state()
    state.apply(InitEvent(source_ids=("a", "b")))
    state.apply(StartEvent("a"))
    state.apply(UpdateEvent(id="a", status=CandidateStatus.FAILURE, percentage=100, error="x"))
    state.apply(StartEvent("b"))
    assert state.snapshot().segments["a"].status is CandidateStatus.FAILURE


def test_start_for_unknown_candidate_changes_nothing():
    state = _state()
    state.apply(InitEvent(source_ids=("a",)))
    state.apply(StartEvent("a"))
    with pytest.raises(ProtocolViolation):
        state.apply(StartEvent("ghost"))
    snap = state.snapshot()
    assert snap.segments["a"].status is CandidateStatus.PENDING
    assert snap.current == "a"


def test_discovered_embeds_are_waiting_children():
    state = _state()
    state.apply(InitEvent(source_ids=("vidlink",)))
    state.apply(DiscoverEmbedsEvent(
        source_id="vidlink",
        embeds=(EmbedDiscovery("vidlink-0", "streamwish"),),
    ))
    state.apply(DiscoverEmbedsEvent(
        source_id="vidlink",
        embeds=(EmbedDiscovery("vidlink-1", "mystery"),),
    ))
    snap = state.snapshot()
    assert snap.order[0].children == ("vidlink-0", "vidlink-1")
    embed = snap.segments["vidlink-0"]
    assert (embed.name, embed.parent_id, embed.embed_id, embed.status) == (
        "Streamwish", "vidlink", "streamwish", CandidateStatus.WAITING)
    assert snap.segments["vidlink-1"].name == "mystery"


def test_update_for_unknown_candidate_is_a_protocol_violation():
    state = _state()
    state.apply(InitEvent(source_ids=("a",)))
    with pytest.raises(ProtocolViolation):
        state.apply(UpdateEvent(id="ghost", status=CandidateStatus.SUCCESS, percentage=100))
    assert list(state.snapshot().segments) == ["a"]


def test_init_with_repeated_ids_keeps_store_and_tree_in_step():
    state = _state()
    state.apply(InitEvent(source_ids=("a", "b")))
    state.apply(StartEvent("a"))
    with pytest.raises(ProtocolViolation):
        state.apply(InitEvent(source_ids=("c", "c")))
    snap = state.snapshot()
    assert [item.id for item in snap.order] == ["a", "b"]
    assert list(snap.segments) == ["a", "b"]
    assert snap.current == "a"


def test_reset_empties_store_and_tree():
    state = _state()
    state.apply(InitEvent(source_ids=("a",)))
    state.apply(StartEvent("a"))
    state.reset()
    snap = state.snapshot()
    assert dict(snap.segments) == {}
    assert snap.order == ()
    assert snap.current is None
