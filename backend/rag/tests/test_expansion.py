"""Test suite for lexical query expansion."""

import pytest

from ..expansion import QUERY_EXPANSIONS, expand_query, matching_terms


def test_query_without_trigger_is_unchanged():
    """No trigger phrase means the exact input comes back"""
    query = "What are the smoke alarm requirements?"

    assert expand_query(query) == query


def test_expansion_appends_terms_after_single_space():
    query = "Can I charge a late fee?"

    result = expand_query(query)

    assert result == "Can I charge a late fee? late charge late rent rent payment"


def test_matching_is_case_insensitive():
    """Triggers match the lower-cased query but the original casing is kept"""
    query = "EVICTION rules"

    result = expand_query(query)

    assert result.startswith("EVICTION rules ")
    assert "unlawful detainer" in result


def test_overlapping_triggers_include_each_term_once():
    """'emotional support animal' also contains 'support animal'; shared terms appear once"""
    query = "Do we have to allow an emotional support animal?"

    result = expand_query(query)
    appended = result[len(query) + 1:]

    for term in QUERY_EXPANSIONS["emotional support animal"]:
        assert term in appended
    for term in QUERY_EXPANSIONS["support animal"]:
        assert term in appended
    assert appended.count("assistance animal") == 1
    assert appended.count("service animal") == 1


def test_first_seen_order_is_preserved():
    terms = matching_terms("tenant wants to move out and get the deposit back")

    # 'deposit' comes before 'move out' in the table
    assert terms == [
        "security deposit", "prepaid rent", "last month rent",
        "termination", "vacate", "accounting",
    ]


def test_month_to_month_maps_to_periodic_tenancy():
    query = "What notice is required before ending a month to month tenancy?"

    assert "periodic tenancy" in expand_query(query)


@pytest.mark.parametrize("trigger", list(QUERY_EXPANSIONS))
def test_every_trigger_contributes_all_of_its_terms(trigger):
    """Whatever else matches, every related term of a matching trigger is present exactly once"""
    query = f"question about {trigger} please"

    terms = matching_terms(query)

    for term in QUERY_EXPANSIONS[trigger]:
        assert terms.count(term) == 1


def test_custom_table():
    table = {"hoa": ["homeowners association"]}

    assert expand_query("HOA dues", table) == "HOA dues homeowners association"
    assert expand_query("pool rules", table) == "pool rules"


def test_table_is_read_only():
    with pytest.raises(TypeError):
        QUERY_EXPANSIONS["pets"] = ["animal"]
