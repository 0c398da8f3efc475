"""Test unique sibling naming"""
import pytest

from playlist_core.tree import resolve_batch, resolve_unique_name, split_numbered


class TestSplitNumbered:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("Promo", ("Promo", None)),
            ("Promo (3)", ("Promo", 3)),
            ("Promo(3)", ("Promo", 3)),
            ("(3)", ("(3)", None)),
            ("Promo (x)", ("Promo (x)", None)),
        ],
    )
    def test_split(self, name, expected):
        assert split_numbered(name) == expected


class TestResolveUniqueName:
    def test_no_collision_unchanged(self):
        assert resolve_unique_name("News", ["Weather", "Sports"]) == "News"

    def test_first_collision(self):
        assert resolve_unique_name("News", ["News"]) == "News (2)"

    def test_fills_first_gap(self):
        assert resolve_unique_name("News", ["News", "News (2)", "News (4)"]) == "News (3)"

    def test_past_maximum(self):
        assert resolve_unique_name("News", ["News", "News (2)", "News (3)"]) == "News (4)"

    def test_numbered_candidate_strips_suffix(self):
        """'News (2)' colliding is renumbered from the base name"""
        assert resolve_unique_name("News (2)", ["News", "News (2)"]) == "News (3)"

    def test_base_missing_still_starts_at_two(self):
        assert resolve_unique_name("News (2)", ["News (2)"]) == "News (3)"

    def test_other_bases_ignored(self):
        assert resolve_unique_name("News", ["News", "Newsroom (2)", "Sports (2)"]) == "News (2)"

    def test_deterministic_regardless_of_order(self):
        siblings = ["News (3)", "News", "News (2)", "News (5)"]
        assert resolve_unique_name("News", siblings) == "News (4)"
        assert resolve_unique_name("News", list(reversed(siblings))) == "News (4)"

    def test_resolved_name_never_collides_again(self):
        siblings = ["News", "News (2)"]
        first = resolve_unique_name("News", siblings)
        second = resolve_unique_name("News", siblings + [first])

        assert first not in siblings
        assert second not in siblings + [first]
        assert resolve_unique_name(first, siblings) == first


class TestResolveBatch:
    def test_batch_dedupes_within_itself(self):
        assert resolve_batch(["News", "News", "Sports"], ["News"]) == ["News (2)", "News (3)", "Sports"]

    def test_empty(self):
        assert resolve_batch([], ["News"]) == []
