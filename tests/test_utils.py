import pytest

from common.utils.slugs import SLUG_ALPHABET, generate_random_slug, is_reserved_slug, is_valid_slug
from common.utils.urls import extract_utm_params, is_valid_url, merge_utm_params


@pytest.mark.parametrize(
    "slug",
    ["a", "demo", "Demo_2024", "spring-sale", "A" * 100, "0-_-0"],
)
def test_valid_slugs(slug):
    assert is_valid_slug(slug)


@pytest.mark.parametrize(
    "slug",
    ["", "A" * 101, "has space", "slash/slug", "dot.slug", "emoji🙂", "query?x", "tab\t", None],
)
def test_invalid_slugs(slug):
    assert not is_valid_slug(slug)


def test_reserved_slugs_are_case_insensitive():
    assert is_reserved_slug("api")
    assert is_reserved_slug("Health")
    assert not is_reserved_slug("campaign")


@pytest.mark.parametrize("length", [6, 7, 8, 9])
def test_generate_random_slug_length(length):
    slug = generate_random_slug(length)
    assert len(slug) == length
    assert all(c in SLUG_ALPHABET for c in slug)


@pytest.mark.parametrize(
    "url,expected",
    [
        ("https://example.com", True),
        ("http://example.com/path?x=1#frag", True),
        ("https://localhost:8080/", True),
        ("ftp://example.com", False),
        ("example.com", False),
        ("/relative/path", False),
        ("https://", False),
        ("https://exa mple.com", False),
        ("", False),
    ],
)
def test_is_valid_url(url, expected):
    assert is_valid_url(url) is expected


@pytest.mark.parametrize("utm", [None, {}, {"utm_source": ""}, {"utm_source": None, "utm_term": ""}])
def test_merge_without_parameters_returns_url_unchanged(utm):
    url = "https://Example.com/a%20b?z=1&a=2&&b#frag"
    assert merge_utm_params(url, utm) is url


def test_merge_appends_parameters():
    merged = merge_utm_params("https://example.com/x", {"utm_source": "nl"})
    assert merged == "https://example.com/x?utm_source=nl"


def test_merge_overwrites_existing_keys_and_keeps_others():
    url = "https://example.com/p?ref=abc&utm_source=old&page=2&utm_source=older"
    merged = merge_utm_params(url, {"utm_source": "new", "utm_medium": "email"})
    assert merged == "https://example.com/p?ref=abc&utm_source=new&page=2&utm_medium=email"


def test_merge_keeps_fragment_and_encodes_values():
    merged = merge_utm_params("https://example.com/#top", {"utm_campaign": "spring sale & more"})
    assert merged == "https://example.com/?utm_campaign=spring+sale+%26+more#top"


def test_merge_rejects_invalid_url():
    with pytest.raises(ValueError):
        merge_utm_params("not a url", {"utm_source": "nl"})


@pytest.mark.parametrize(
    "url,utm",
    [
        ("https://example.com", {"utm_source": "nl"}),
        ("https://example.com/path?utm_medium=old&x=1", {"utm_medium": "cpc", "utm_term": "shoes"}),
        ("http://example.com/?a=b", {
            "utm_source": "s", "utm_medium": "m", "utm_campaign": "c d", "utm_term": "t&t", "utm_content": "ü",
        }),
        ("https://example.com/x", {"utm_source": "nl", "utm_campaign": "", "utm_content": None}),
    ],
)
def test_merge_then_extract_round_trip(url, utm):
    expected = {key: value for key, value in utm.items() if value}
    assert extract_utm_params(merge_utm_params(url, utm)) == expected
