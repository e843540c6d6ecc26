import pytest

from models.illustration import Candidate
from tools.search.merge import dedupe_by_url, interleave

pytestmark = pytest.mark.unit


def _candidate(url, tag="commons"):
    return Candidate(url=url, thumbnail_url="", title=url, source_tag=tag)


def test_interleave_alternates_then_appends_remainder():
    assert interleave(["a0", "a1", "a2"], ["b0"]) == ["a0", "b0", "a1", "a2"]
    assert interleave(["a0"], ["b0", "b1", "b2"]) == ["a0", "b0", "b1", "b2"]


@pytest.mark.parametrize("m,n", [(0, 0), (0, 3), (4, 0), (2, 2), (5, 1)])
def test_interleave_keeps_every_item(m, n):
    first = [f"a{i}" for i in range(m)]
    second = [f"b{i}" for i in range(n)]
    merged = interleave(first, second)

    assert len(merged) == m + n
    for i in range(min(m, n)):
        assert merged[2 * i] == first[i]
        assert merged[2 * i + 1] == second[i]


def test_dedupe_keeps_first_occurrence_in_order():
    pool = [
        _candidate("https://x/1.jpg", "commons"),
        _candidate("https://x/2.jpg"),
        _candidate("https://x/1.jpg", "google"),
        _candidate("https://x/3.jpg"),
        _candidate("https://x/2.jpg"),
    ]
    unique = dedupe_by_url(pool)

    assert [c.url for c in unique] == ["https://x/1.jpg", "https://x/2.jpg", "https://x/3.jpg"]
    assert unique[0].source_tag == "commons"
    assert len({c.url for c in unique}) == len(unique)
