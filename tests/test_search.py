"""Tests for search.py"""

import pytest

from conftest import make_item
from saveit.core.search import (
    SearchIntent,
    SortMode,
    filter_items,
    limit_items,
    parse_sort_mode,
    rank_items,
    search_items,
    tokenize,
)


@pytest.fixture
def crypto():
    return make_item(
        "crypto",
        title="Daily market recap",
        topic="Crypto Trading",
        date_added=100,
        sequence_number=1,
        engagement_score=0,
    )


@pytest.fixture
def recipes():
    return make_item(
        "recipes",
        title="Creamy pasta",
        topic="Recipes",
        date_added=200,
        sequence_number=2,
        engagement_score=500,
    )


class TestTokenize:
    def test_lowercases_and_splits(self):
        assert tokenize("  Last FINANCE\treel ") == ["last", "finance", "reel"]

    def test_collapses_whitespace_runs(self):
        assert tokenize("a   b\n\nc") == ["a", "b", "c"]

    def test_empty_and_blank(self):
        assert tokenize("") == []
        assert tokenize("   \t ") == []


class TestSearchIntent:
    """Tests for validating raw intent objects."""

    def test_from_response(self):
        intent = SearchIntent.from_response({
            "keywords": ["reel"],
            "topics": ["Finance"],
            "sortBy": "sequence-desc",
            "limit": 1,
            "intent": "latest finance",
        })
        assert intent.keywords == ("reel",)
        assert intent.topics == ("Finance",)
        assert intent.sort_by == SortMode.SEQUENCE_DESC
        assert intent.limit == 1
        assert intent.intent == "latest finance"

    def test_long_sort_names_accepted(self):
        assert parse_sort_mode("engagement-descending") == SortMode.ENGAGEMENT_DESC
        assert parse_sort_mode("save-order-descending") == SortMode.SEQUENCE_DESC
        assert parse_sort_mode("recency-ascending") == SortMode.DATE_ASC

    def test_unknown_sort_is_unset(self):
        intent = SearchIntent.from_response({"keywords": [], "topics": [], "sortBy": "random"})
        assert intent.sort_by is None
        assert intent.resolved_sort_mode == SortMode.DATE_DESC

    @pytest.mark.parametrize("limit", [0, -3, None, "2", True])
    def test_invalid_limit_is_unbounded(self, limit):
        intent = SearchIntent.from_response({"keywords": [], "topics": [], "limit": limit})
        assert intent.limit is None

    def test_float_limit_is_truncated(self):
        intent = SearchIntent.from_response({"keywords": [], "topics": [], "limit": 3.0})
        assert intent.limit == 3

    def test_non_string_entries_dropped(self):
        intent = SearchIntent.from_response({"keywords": ["a", 1, None], "topics": [{"x": 1}]})
        assert intent.keywords == ("a",)
        assert intent.topics == ()

    @pytest.mark.parametrize(
        "data",
        [
            None,
            ["keywords"],
            "finance",
            {"topics": []},
            {"keywords": "finance", "topics": []},
        ],
    )
    def test_schema_violation_raises(self, data):
        with pytest.raises(ValueError):
            SearchIntent.from_response(data)


class TestFilterItems:
    """Tests for category and text filtering."""

    def test_all_category_keeps_everything(self, crypto, recipes):
        assert filter_items([crypto, recipes], "all", "", None) == [crypto, recipes]

    def test_category_matches_normalized_topic(self, crypto, recipes):
        assert filter_items([crypto, recipes], "finance", "", None) == [crypto]

    def test_category_is_case_insensitive(self, crypto, recipes):
        assert filter_items([crypto, recipes], "Food", "", None) == [recipes]

    def test_category_matches_normalized_tag(self, crypto):
        tagged = make_item("gym", topic="Motivation", tags=["workout tips"], sequence_number=3)
        assert filter_items([crypto, tagged], "fitness", "", None) == [tagged]

    def test_category_filter_exact_set(self):
        items = [
            make_item("a", topic="money talk", sequence_number=1),
            make_item("b", topic="Comedy", tags=["stock trading"], sequence_number=2),
            make_item("c", topic="Comedy", tags=["cats"], sequence_number=3),
            make_item("d", topic="Capturing...", is_enriching=True, sequence_number=4),
        ]
        assert [i.id for i in filter_items(items, "finance", "", None)] == ["a", "b"]

    def test_all_words_must_match(self, crypto, recipes):
        assert filter_items([crypto, recipes], "all", "creamy PASTA", None) == [recipes]
        assert filter_items([crypto, recipes], "all", "creamy salad", None) == []

    def test_haystack_includes_creator_summary_and_tags(self):
        item = make_item(creator="@chefmario", summary="Quick dinner", tags=["italian"])
        assert filter_items([item], "all", "chefmario dinner italian", None) == [item]

    def test_substring_match_within_words(self, recipes):
        assert filter_items([recipes], "all", "past", None) == [recipes]

    def test_no_intent_drops_partial_match(self, crypto):
        assert filter_items([crypto], "all", "market news", None) == []

    def test_intent_keyword_fallback(self, crypto, recipes):
        intent = SearchIntent(keywords=("Pasta",))
        assert filter_items([crypto, recipes], "all", "noodle dishes", intent) == [recipes]

    def test_intent_topic_fallback(self, crypto, recipes):
        intent = SearchIntent(topics=("Food",))
        assert filter_items([crypto, recipes], "all", "most liked recipes", intent) == [recipes]

    def test_intent_topic_normalized_before_compare(self, crypto, recipes):
        intent = SearchIntent(topics=("investing",))
        assert filter_items([crypto, recipes], "all", "stonks", intent) == [crypto]

    def test_all_words_match_wins_regardless_of_intent(self, crypto, recipes):
        intent = SearchIntent(topics=("Travel",))
        assert filter_items([crypto, recipes], "all", "pasta", intent) == [recipes]

    def test_order_preserved(self, crypto, recipes):
        intent = SearchIntent(keywords=("a",))
        assert filter_items([recipes, crypto], "all", "zzz", intent) == [recipes, crypto]


class TestRankItems:
    """Tests for sort modes and tie-breaking."""

    def test_default_is_newest_first(self):
        items = [make_item(str(d), date_added=d, sequence_number=i) for i, d in enumerate([100, 300, 200])]
        assert [i.date_added for i in rank_items(items)] == [300, 200, 100]

    def test_date_asc(self):
        items = [make_item(str(d), date_added=d, sequence_number=i) for i, d in enumerate([100, 300, 200])]
        assert [i.date_added for i in rank_items(items, SortMode.DATE_ASC)] == [100, 200, 300]

    def test_engagement_desc(self, crypto, recipes):
        assert rank_items([crypto, recipes], SortMode.ENGAGEMENT_DESC) == [recipes, crypto]

    def test_engagement_ties_newest_first(self):
        older = make_item("older", engagement_score=10, date_added=400, sequence_number=1)
        newer = make_item("newer", engagement_score=10, date_added=500, sequence_number=2)
        ranked = rank_items([older, newer], SortMode.ENGAGEMENT_DESC)
        assert [i.date_added for i in ranked] == [500, 400]

    def test_engagement_tie_break_holds_for_every_pair(self):
        items = [
            make_item(f"i{n}", engagement_score=score, date_added=date, sequence_number=n)
            for n, (score, date) in enumerate([(5, 10), (5, 30), (9, 20), (5, 20), (9, 40), (0, 50)])
        ]
        ranked = rank_items(items, SortMode.ENGAGEMENT_DESC)
        for i, a in enumerate(ranked):
            for b in ranked[i + 1:]:
                assert a.engagement_score >= b.engagement_score
                if a.engagement_score == b.engagement_score:
                    assert a.date_added >= b.date_added

    def test_sequence_desc(self, crypto, recipes):
        assert rank_items([crypto, recipes], SortMode.SEQUENCE_DESC) == [recipes, crypto]

    def test_sequence_ties_newest_first(self):
        a = make_item("a", sequence_number=7, date_added=1)
        b = make_item("b", sequence_number=7, date_added=2)
        assert rank_items([a, b], SortMode.SEQUENCE_DESC) == [b, a]

    def test_chronological_ties_keep_input_order(self):
        a = make_item("a", date_added=5, sequence_number=1)
        b = make_item("b", date_added=5, sequence_number=2)
        assert rank_items([a, b]) == [a, b]
        assert rank_items([b, a], SortMode.DATE_ASC) == [b, a]

    def test_does_not_mutate_input(self, crypto, recipes):
        items = [crypto, recipes]
        rank_items(items)
        assert items == [crypto, recipes]


class TestLimitItems:
    def test_prefix(self):
        items = [make_item(str(n), sequence_number=n) for n in range(5)]
        for n in range(1, 8):
            result = limit_items(items, n)
            assert len(result) == min(n, len(items))
            assert result == items[:n]

    @pytest.mark.parametrize("limit", [None, 0, -1])
    def test_unbounded(self, limit):
        items = [make_item(str(n), sequence_number=n) for n in range(3)]
        assert limit_items(items, limit) == items


class TestSearchItems:
    """End-to-end pipeline scenarios."""

    def test_category_filter_scenario(self, crypto, recipes):
        assert search_items([crypto, recipes], "finance", "", None) == [crypto]

    def test_most_liked_recipes(self, crypto, recipes):
        intent = SearchIntent(topics=("Food",), sort_by=SortMode.ENGAGEMENT_DESC)
        assert search_items([crypto, recipes], "all", "most liked recipes", intent) == [recipes]

    def test_last_finance_reel(self, crypto, recipes):
        intent = SearchIntent(topics=("Finance",), sort_by=SortMode.SEQUENCE_DESC, limit=1)
        assert search_items([crypto, recipes], "all", "last finance reel", intent) == [crypto]

    def test_limit_applies_after_ranking(self, crypto, recipes):
        intent = SearchIntent(sort_by=SortMode.ENGAGEMENT_DESC, limit=1)
        assert search_items([crypto, recipes], "all", "", intent) == [recipes]

    def test_empty_query_default_ranking(self):
        items = [make_item(str(d), date_added=d, sequence_number=i) for i, d in enumerate([100, 300, 200])]
        assert [i.date_added for i in search_items(items, "all", "", None)] == [300, 200, 100]

    def test_unmatched_query_yields_empty(self, crypto, recipes):
        assert search_items([crypto, recipes], "all", "skateboarding", None) == []
