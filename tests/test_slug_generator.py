import pytest

from common.core.errors import ConflictError
from common.utils.slugs import SlugGenerator


class ExistsRecorder:
    """Answers ``exists`` lookups from a fixed set of taken slugs."""

    def __init__(self, taken=(), always_taken=False):
        self.taken = set(taken)
        self.always_taken = always_taken
        self.calls = []

    async def __call__(self, slug):
        self.calls.append(slug)
        return self.always_taken or slug in self.taken


@pytest.mark.asyncio
async def test_generates_free_slug_on_first_try():
    lookup = ExistsRecorder()
    slug = await SlugGenerator(length=6).generate(lookup)
    assert len(slug) == 6
    assert lookup.calls == [slug]


@pytest.mark.asyncio
async def test_length_grows_after_ten_collisions():
    # single-letter alphabet: every 6-char draw is "aaaaaa"
    lookup = ExistsRecorder(taken={"aaaaaa"})
    slug = await SlugGenerator(length=6, alphabet="a").generate(lookup)
    assert slug == "aaaaaaa"
    assert lookup.calls == ["aaaaaa"] * 10 + ["aaaaaaa"]


@pytest.mark.asyncio
async def test_conflict_after_max_attempts():
    lookup = ExistsRecorder(always_taken=True)
    with pytest.raises(ConflictError):
        await SlugGenerator(length=6).generate(lookup)
    assert len(lookup.calls) == 20
    assert {len(slug) for slug in lookup.calls[:10]} == {6}
    assert {len(slug) for slug in lookup.calls[10:]} == {7}


@pytest.mark.asyncio
async def test_reserved_candidates_are_skipped(monkeypatch):
    draws = iter(["api", "Health", "x1y2z3"])
    monkeypatch.setattr("common.utils.slugs.generate_random_slug", lambda length, alphabet: next(draws))
    lookup = ExistsRecorder()
    slug = await SlugGenerator(length=6).generate(lookup)
    assert slug == "x1y2z3"
    assert lookup.calls == ["x1y2z3"]
