"""
Source Deduplication Tests
"""

from search_agent.orchestration import deduplicate_sources, flatten_sources
from search_agent.web.models import Source


def _source(url, title=None):
    return Source.from_url(url, title)


def test_first_occurrence_wins():
    sources = [
        _source("https://a.com/1", "First A"),
        _source("https://b.com/1"),
        _source("https://a.com/1", "Second A"),
        _source("https://c.com/1"),
        _source("https://b.com/1"),
    ]

    unique = deduplicate_sources(sources)

    assert [s.url for s in unique] == ["https://a.com/1", "https://b.com/1", "https://c.com/1"]
    assert unique[0].title == "First A"
    print("[PASS] First occurrence kept")


def test_result_is_ordered_subsequence():
    sources = [_source(f"https://example.com/{i % 4}") for i in range(10)]

    unique = deduplicate_sources(sources)

    assert len({s.url for s in unique}) == len(unique)
    # Every kept entry appears in the input, in the same relative order
    positions = [sources.index(s) for s in unique]
    assert positions == sorted(positions)


def test_distinct_urls_on_same_domain_are_kept():
    unique = deduplicate_sources(
        [_source("https://docs.python.org/3/a"), _source("https://docs.python.org/3/b")]
    )
    assert len(unique) == 2


def test_flatten_sources():
    groups = [
        [_source("https://a.com"), _source("https://b.com")],
        [],
        [_source("https://b.com"), _source("https://c.com")],
    ]

    assert [s.url for s in flatten_sources(groups)] == [
        "https://a.com",
        "https://b.com",
        "https://c.com",
    ]
    assert deduplicate_sources([]) == []
    assert flatten_sources([]) == []


def main():
    print("\n" + "=" * 60)
    print("SOURCE DEDUPLICATION TESTS")
    print("=" * 60)

    test_first_occurrence_wins()
    test_result_is_ordered_subsequence()
    test_distinct_urls_on_same_domain_are_kept()
    test_flatten_sources()

    print("\nALL TESTS PASSED!")


if __name__ == "__main__":
    main()
