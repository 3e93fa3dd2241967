import httpx

from fakes import RecordingSink, ScriptedStrategy, run, sse_body
from reelrunner.providers.base import MediaDescriptor, StreamResult
from reelrunner.providers.runner import PluginRunner
from reelrunner.scrape.events import (
    DiscoverEmbedsEvent, EmbedDiscovery, InitEvent, StartEvent, UpdateEvent, event_name,
)
from reelrunner.scrape.orchestrator import Orchestrator, RunState
from reelrunner.scrape.outcome import Cancelled, NotFound, Success
from reelrunner.scrape.remote import RemoteDelegatedStrategy, iter_sse, scrape_params
from reelrunner.scrape.store import CandidateStatus

MOVIE = MediaDescriptor(tmdb_id="603", title="The Matrix", year=1999)

RESULT = {
    "sourceId": "p1",
    "embedId": "x",
    "stream": {
        "type": "hls",
        "id": "primary",
        "playlist": "https://cdn.example/master.m3u8",
        "flags": ["cors-allowed"],
        "captions": [{"id": "c1", "url": "https://subs/en.vtt", "type": "vtt",
                      "language": "en", "hasCorsRestrictions": False}],
    },
}

SCENARIO_C = [
    ("init", {"sourceIds": ["p1"]}),
    ("start", "p1"),
    ("discoverEmbeds", {"sourceId": "p1", "embeds": [{"id": "e1", "embedScraperId": "x"}]}),
    ("update", {"id": "e1", "status": "success", "percentage": 100}),
    ("completed", RESULT),
]


def _client(body=b"", status=200, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, headers={"content-type": "text/event-stream"}, content=body)
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _orchestrator(client):
    return Orchestrator(runner=PluginRunner(sources=[], embeds=[]),
                        remote_urls=["https://providers.example"], remote_client=client)


def test_remote_run_replays_events_and_promotes_winner():
    seen = []
    orchestrator = _orchestrator(_client(sse_body(SCENARIO_C), seen=seen))

    outcome = run(orchestrator.start_run(MOVIE))

    assert isinstance(outcome, Success)
    assert outcome.result == StreamResult.from_dict(RESULT)
    assert outcome.result.source_id == "p1"
    snap = orchestrator.snapshot()
    assert [(i.id, i.children) for i in snap.order] == [("p1", ("e1",))]
    assert snap.segments["p1"].status is CandidateStatus.SUCCESS
    assert snap.segments["e1"].status is CandidateStatus.SUCCESS
    assert snap.segments["e1"].parent_id == "p1"
    assert orchestrator.status is RunState.RESOLVED
    request = seen[0]
    assert request.url.path == "/scrape"
    assert request.url.params["tmdbId"] == "603"
    assert request.headers["accept"] == "text/event-stream"


def test_no_output_resolves_not_found():
    body = sse_body([("init", {"sourceIds": ["p1"]}), ("start", "p1"),
                     ("update", {"id": "p1", "status": "notfound", "percentage": 100}),
                     ("noOutput", None)])
    orchestrator = _orchestrator(_client(body))
    outcome = run(orchestrator.start_run(MOVIE))
    assert outcome == NotFound()
    assert orchestrator.snapshot().segments["p1"].status is CandidateStatus.NOTFOUND


def test_unknown_events_are_ignored():
    body = sse_body([("init", {"sourceIds": ["p1"]}), ("heartbeat", {"t": 1}),
                     ("start", "p1"), ("noOutput", None)])
    outcome = run(_orchestrator(_client(body)).start_run(MOVIE))
    assert isinstance(outcome, NotFound)


def test_non_json_keepalives_are_ignored():
    body = (sse_body([("init", {"sourceIds": ["p1"]})])
            + b"event: heartbeat\ndata: keepalive\n\n"
            + b"data: ping\n\n"
            + sse_body([("start", "p1"), ("noOutput", None)]))
    orchestrator = _orchestrator(_client(body))
    outcome = run(orchestrator.start_run(MOVIE))
    assert outcome == NotFound()
    assert orchestrator.snapshot().segments["p1"].status is CandidateStatus.PENDING


def test_stream_closing_early_is_a_transport_failure_not_a_miss():
    body = sse_body([("init", {"sourceIds": ["p1"]}), ("start", "p1")])
    orchestrator = _orchestrator(_client(body))
    outcome = run(orchestrator.start_run(MOVIE))
    assert isinstance(outcome, Cancelled)
    assert "terminal" in outcome.detail
    assert orchestrator.status is RunState.CANCELLED
    # progress received before the fault stays visible
    assert orchestrator.snapshot().segments["p1"].status is CandidateStatus.PENDING


def test_http_error_is_a_transport_failure():
    outcome = run(_orchestrator(_client(status=502)).start_run(MOVIE))
    assert isinstance(outcome, Cancelled)
    assert "502" in outcome.detail


def test_malformed_frame_is_a_transport_failure():
    body = b"event: init\ndata: {not json\n\n"
    outcome = run(_orchestrator(_client(body)).start_run(MOVIE))
    assert isinstance(outcome, Cancelled)


def test_malformed_event_payload_is_a_transport_failure():
    body = sse_body([("update", {"status": "success"})])
    outcome = run(_orchestrator(_client(body)).start_run(MOVIE))
    assert isinstance(outcome, Cancelled)
    assert "update" in outcome.detail


def test_unknown_candidate_in_remote_stream_does_not_abort():
    body = sse_body([("init", {"sourceIds": ["p1"]}),
                     ("update", {"id": "ghost", "status": "failure", "percentage": 100}),
                     ("completed", RESULT)])
    orchestrator = _orchestrator(_client(body))
    outcome = run(orchestrator.start_run(MOVIE))
    assert isinstance(outcome, Success)
    assert "ghost" not in orchestrator.snapshot().segments


def test_remote_and_local_event_streams_build_identical_state():
    """The same lifecycle, delivered in-process or over the wire, yields the same state."""
    local_events = [
        InitEvent(source_ids=("p1", "p2")),
        StartEvent("p1"),
        UpdateEvent(id="p1", status=CandidateStatus.FAILURE, percentage=100,
                    reason="Failed to scrape", error="403"),
        StartEvent("p2"),
        DiscoverEmbedsEvent(source_id="p2", embeds=(EmbedDiscovery("p2-0", "x"),)),
        DiscoverEmbedsEvent(source_id="p2", embeds=(EmbedDiscovery("p2-1", "y"),)),
        StartEvent("p2-0"),
        UpdateEvent(id="p2-0", status=CandidateStatus.NOTFOUND, percentage=100, reason="gone"),
        StartEvent("p2-1"),
        UpdateEvent(id="p2-1", status=CandidateStatus.SUCCESS, percentage=100),
    ]
    result = StreamResult.from_dict({**RESULT, "sourceId": "p2", "embedId": "y"})

    local = Orchestrator(runner=PluginRunner(sources=[], embeds=[]))
    local_outcome = run(local.run_with(MOVIE, ScriptedStrategy(local_events, result)))

    wire = [(event_name(e), e.to_wire()) for e in local_events]
    remote = _orchestrator(_client(sse_body(wire + [("completed", result.to_dict())])))
    remote_outcome = run(remote.start_run(MOVIE))

    assert local_outcome == remote_outcome
    assert local.snapshot() == remote.snapshot()


def test_strategy_stops_forwarding_once_sink_goes_inactive():
    sink = RecordingSink()
    original_emit = sink.emit

    def emit(event):
        original_emit(event)
        sink.active = False
    sink.emit = emit

    strategy = RemoteDelegatedStrategy("https://providers.example", client=_client(sse_body(SCENARIO_C)))
    assert run(strategy.run(MOVIE, sink)) is None
    assert len(sink.events) == 1


def test_scrape_params_for_movies_and_episodes():
    assert scrape_params(MOVIE) == {"type": "movie", "tmdbId": "603", "title": "The Matrix",
                                    "releaseYear": "1999"}
    episode = MediaDescriptor(tmdb_id="1396", kind="series", season=2, episode=5, imdb_id="tt0903747")
    assert scrape_params(episode) == {"type": "show", "tmdbId": "1396", "imdbId": "tt0903747",
                                      "seasonNumber": "2", "episodeNumber": "5"}


def test_iter_sse_handles_comments_multiline_data_and_missing_blank_line():
    async def lines():
        for line in [": ping", "event: update", "data: {\"a\":", "data: 1}", "", "",
                     "data: plain", "", "event: noOutput", "data:"]:
            yield line

    async def collect():
        return [frame async for frame in iter_sse(lines())]

    assert run(collect()) == [
        ("update", "{\"a\":\n1}"),
        ("message", "plain"),
        ("noOutput", ""),
    ]
