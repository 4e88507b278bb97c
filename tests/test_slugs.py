from __future__ import annotations

from smol_digest.services.slugs import (
    MAX_SLUG_LENGTH,
    expand_two_digit_year_slug,
    extract_day_key_from_slug,
    find_issue_by_slug,
    normalize_slug_input,
    slug_from_link,
    slugify,
)
from tests.issue_factories import build_issues, make_issue_raw


def test_slugify_strips_scheme_and_punctuation() -> None:
    assert slugify("https://News.Smol.ai/Issues/Hello World!") == "news-smol-ai-issues-hello-world"
    assert slugify("---") == ""


def test_slugify_is_idempotent_and_bounded() -> None:
    long_value = "word-" * 40
    once = slugify(long_value)
    assert len(once) <= MAX_SLUG_LENGTH
    assert not once.endswith("-")
    assert slugify(once) == once


def test_slug_from_link_uses_last_path_segment() -> None:
    assert slug_from_link("https://news.smol.ai/issues/24-03-05-Agents/") == "24-03-05-agents"
    assert slug_from_link("https://news.smol.ai/") is None
    assert slug_from_link("not a url") is None
    assert slug_from_link(None) is None


def test_assign_unique_slugs_suffixes_collisions_in_feed_order() -> None:
    issues = build_issues(
        [
            make_issue_raw(title="Newest", day="2024-03-06", link="https://x.test/a/same"),
            make_issue_raw(title="Middle", day="2024-03-05", link="https://x.test/b/same"),
            make_issue_raw(title="Oldest", day="2024-03-04", link="https://x.test/c/same"),
        ]
    )

    assert [issue.slug for issue in issues] == ["same", "same-2", "same-3"]


def test_slug_falls_back_to_day_key_then_title() -> None:
    issues = build_issues(
        [
            make_issue_raw(title="Dated", day="2024-03-05"),
            make_issue_raw(title="Undated Title", day=None),
        ]
    )

    assert issues[0].slug == "2024-03-05"
    assert issues[1].slug == "undated-title"


def test_every_issue_round_trips_through_its_slug() -> None:
    issues = build_issues(
        [
            make_issue_raw(title="A", day="2024-03-06", link="https://x.test/issues/a"),
            make_issue_raw(title="A", day="2024-03-06"),
            make_issue_raw(title="A", day="2024-03-06"),
            make_issue_raw(title="A", day=None),
        ]
    )

    slugs = [issue.slug for issue in issues]
    assert len(set(slugs)) == len(slugs)
    for issue in issues:
        assert find_issue_by_slug(issues, issue.slug) is issue


def test_normalize_slug_input_decodes_and_lowercases() -> None:
    assert normalize_slug_input("Hello%20World") == "hello world"
    assert normalize_slug_input("bad%ffescape") == "bad%ffescape"


def test_two_digit_year_helpers() -> None:
    assert expand_two_digit_year_slug("24-03-05-agents") == "2024-03-05-agents"
    assert expand_two_digit_year_slug("24-03-05") == "2024-03-05"
    assert expand_two_digit_year_slug("agents") is None
    assert extract_day_key_from_slug("2024-03-05-anything") == "2024-03-05"
    assert extract_day_key_from_slug("24-03-05-anything") == "2024-03-05"
    assert extract_day_key_from_slug("anything") is None


def test_find_issue_by_slug_resolves_legacy_formats() -> None:
    issues = build_issues(
        [
            make_issue_raw(
                title="Agents Everywhere",
                day="2024-03-05",
                link="https://news.smol.ai/issues/2024-03-05-agents",
            ),
            make_issue_raw(title="Quiet day", day="2024-03-04"),
        ]
    )
    agents, quiet = issues

    assert find_issue_by_slug(issues, "2024-03-05-agents") is agents
    assert find_issue_by_slug(issues, "24-03-05-agents") is agents
    assert find_issue_by_slug(issues, "2024-03-05-AGENTS") is agents
    assert find_issue_by_slug(issues, "agents-everywhere") is agents
    assert find_issue_by_slug(issues, "24-03-04-some-old-title") is quiet
    assert find_issue_by_slug(issues, "2024-03-04") is quiet
    assert find_issue_by_slug(issues, "missing-issue") is None
