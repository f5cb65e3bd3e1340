import re
from pathlib import Path

from hypothesis import given
from hypothesis import strategies as st

from auto_git_sync.aggregator import ChangeAggregator
from auto_git_sync.classifier import (
    ChangeKind,
    ClassifiedEvent,
    EventClassifier,
    RawEvent,
    RawEventKind,
    should_ignore_file,
)
from auto_git_sync.config import parse_time
from auto_git_sync.errors import redact, sanitize_repo_name

from .conftest import FakeClock

names = st.sampled_from(
    [
        "a.txt",
        "b.md",
        "New Text Document.txt",
        "report.docx.tmp",
        "~$report.docx",
        ".git/index.lock",
        ".gitignore",
        "sub/c.py",
        ".DS_Store",
    ]
)
kinds = st.sampled_from(
    [RawEventKind.CREATED, RawEventKind.MODIFIED, RawEventKind.MOVED, RawEventKind.DELETED]
)


@given(
    records=st.lists(
        st.tuples(st.sampled_from(["a", "b", "c", "d"]), st.sampled_from(ChangeKind))
    )
)
def test_aggregator_keeps_latest_record_per_path(
    records: list[tuple[str, ChangeKind]],
) -> None:
    """
    Property: The pending set holds exactly one record per distinct path, carrying
    the most recent kind, and force_sync is raised iff an addition was recorded.
    """
    agg = ChangeAggregator(2.0, clock=FakeClock())
    latest: dict[Path, ChangeKind] = {}

    for name, kind in records:
        agg.record(ClassifiedEvent(Path(name), kind))
        latest[Path(name)] = kind

    assert len(agg) == len(latest)
    assert {p: c.kind for p, c in agg.pending.items()} == latest
    assert agg.force_sync == any(k is ChangeKind.ADDED for _, k in records)


@given(
    events=st.lists(
        st.tuples(kinds, names, names, st.floats(min_value=0.0, max_value=3.0))
    )
)
def test_event_stream_never_pends_noise_and_debounce_holds(
    events: list[tuple[RawEventKind, str, str, float]],
) -> None:
    """
    Property: Whatever the raw stream, ignored paths never become pending, and
    the aggregator is quiet exactly when the debounce window has elapsed.
    """
    clock = FakeClock()
    classifier = EventClassifier()
    agg = ChangeAggregator(2.0, clock=clock)

    for kind, src, dest, gap in events:
        clock.advance(gap)
        paths = (Path(src), Path(dest)) if kind is RawEventKind.MOVED else (Path(src),)
        event = classifier.classify(RawEvent(kind, paths))
        if event is None:
            continue
        if event.repeat:
            agg.touch()
        else:
            agg.record(event)

        assert not agg.is_quiet()

    assert not any(should_ignore_file(p) for p in agg.pending)
    if agg.last_event_at is not None:
        assert agg.is_quiet(agg.last_event_at + 2.5)
        assert not agg.is_quiet(agg.last_event_at + 1.5)


@given(name=st.text())
def test_sanitized_names_are_valid_and_stable(name: str) -> None:
    sanitized = sanitize_repo_name(name)

    assert re.fullmatch(r"[a-z0-9_-]*", sanitized)
    assert not sanitized.startswith("-") and not sanitized.endswith("-")
    assert sanitize_repo_name(sanitized) == sanitized


@given(token=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_", min_size=1))
def test_redact_never_leaks_url_tokens(token: str) -> None:
    text = f"fatal: unable to access 'https://{token}@github.com/o/r.git/'"
    assert f"{token}@" not in redact(text)


@given(seconds=st.integers(min_value=0, max_value=10**6))
def test_parse_time_accepts_second_strings(seconds: int) -> None:
    assert parse_time(f"{seconds}s") == float(seconds)
    assert parse_time(seconds) == float(seconds)
