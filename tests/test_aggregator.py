"""
Hasher and Aggregator Tests
"""

import hashlib

import pytest

from logtrail.ingest.aggregator import Aggregator, minute_bucket, top_n
from logtrail.ingest.hasher import ContentHasher
from logtrail.ingest.parser import parse_line

from helpers import make_line


def test_hasher_matches_sha256_of_concatenated_lines():
    lines = [b"first line", b"", b"garbage \xff\xfe", b"last"]

    hasher = ContentHasher()
    for raw in lines:
        hasher.update(raw)

    assert hasher.hexdigest() == hashlib.sha256(b"".join(lines)).hexdigest()


def test_hasher_finalizes_once():
    hasher = ContentHasher()
    hasher.update(b"abc")
    digest = hasher.hexdigest()

    assert hasher.hexdigest() == digest
    with pytest.raises(RuntimeError):
        hasher.update(b"more")


def test_minute_bucket_keeps_first_two_colon_fields():
    assert minute_bucket("10/Oct/2000:13:55:36 -0700") == "10/Oct/2000:13"
    assert minute_bucket("10/Oct/2000:13:59:59 +0200") == "10/Oct/2000:13"
    assert minute_bucket("2024-01-01T10:15:00Z") == "2024-01-01T10:15"
    assert minute_bucket("no-colons") == "no-colons"


def test_top_n_is_stable_for_equal_counts():
    counts = {"c": 1, "a": 3, "b": 1, "d": 3, "e": 2}

    assert top_n(counts, 10) == [("a", 3), ("d", 3), ("e", 2), ("c", 1), ("b", 1)]
    assert top_n(counts, 2) == [("a", 3), ("d", 3)]


def test_aggregator_histograms():
    agg = Aggregator()
    lines = [
        make_line(ip="10.0.0.1", path="/a", status="200", ts="01/Jan/2024:10:00:01 +0000"),
        make_line(ip="10.0.0.2", path="/b", status="404", ts="01/Jan/2024:10:00:59 +0000"),
        make_line(ip="10.0.0.1", path="/a", status="200", ts="01/Jan/2024:11:30:00 +0000"),
        "garbage",
    ]
    for line in lines:
        agg.count_line()
        event = parse_line(line)
        if event:
            agg.add(event)

    assert agg.total_lines == 4
    assert agg.parsed_lines == 3
    assert dict(agg.status_counts) == {"200": 2, "404": 1}
    assert agg.top_ips() == [("10.0.0.1", 2), ("10.0.0.2", 1)]
    assert agg.top_paths() == [("/a", 2), ("/b", 1)]
    assert agg.over_time() == [("01/Jan/2024:10", 2), ("01/Jan/2024:11", 1)]


def test_top_lists_are_capped():
    agg = Aggregator()
    for i in range(25):
        event = parse_line(make_line(ip=f"10.0.0.{i}", path=f"/p{i}"))
        agg.count_line()
        agg.add(event)

    assert len(agg.top_ips()) == 10
    assert len(agg.top_paths()) == 10
    # all counts tie, so first-seen order wins
    assert [ip for ip, _ in agg.top_ips()] == [f"10.0.0.{i}" for i in range(10)]
