"""
Lexical query expansion for retrieval.

Maps colloquial landlord-tenant phrases to the vocabulary used in
ORS Chapter 90 and company policy documents. The expanded query only
feeds the embedding; the model always sees the original question.
"""

from types import MappingProxyType
from typing import List, Mapping, Sequence

QUERY_EXPANSIONS: Mapping[str, Sequence[str]] = MappingProxyType({
    # Animals
    "emotional support animal": ("assistance animal", "service animal", "pet", "animal accommodation"),
    "esa": ("assistance animal", "service animal", "emotional support animal"),
    "support animal": ("assistance animal", "service animal", "pet"),
    "service dog": ("service animal", "assistance animal"),
    "therapy animal": ("assistance animal", "service animal"),

    # Deposits
    "deposit": ("security deposit", "prepaid rent", "last month rent"),
    "move out": ("termination", "vacate", "security deposit", "accounting"),
    "move-out": ("termination", "vacate", "security deposit", "accounting"),

    # Evictions
    "eviction": ("termination", "for cause", "notice", "unlawful detainer"),
    "evict": ("terminate", "termination notice", "for cause"),
    "kick out": ("terminate", "termination", "eviction"),

    # Rent
    "late fee": ("late charge", "late rent", "rent payment"),
    "rent increase": ("rent raise", "increased rent"),
    "raise rent": ("rent increase", "increased rent"),

    # Repairs
    "repair": ("maintenance", "habitability", "essential services"),
    "fix": ("repair", "maintenance", "habitability"),
    "broken": ("repair", "maintenance", "defective"),

    # Leases
    "lease": ("rental agreement", "tenancy"),
    "month to month": ("periodic tenancy", "month-to-month"),
    "break lease": ("early termination", "terminate tenancy"),
})


def matching_terms(query: str, expansions: Mapping[str, Sequence[str]] = QUERY_EXPANSIONS) -> List[str]:
    """Return related terms of every trigger found in the query, first-seen order, no repeats."""
    lower_query = query.lower()
    terms: List[str] = []
    for trigger, related in expansions.items():
        if trigger in lower_query:
            for term in related:
                if term not in terms:
                    terms.append(term)
    return terms


def expand_query(query: str, expansions: Mapping[str, Sequence[str]] = QUERY_EXPANSIONS) -> str:
    """
    Expand a query with related domain terms.

    Returns the query unchanged when no trigger phrase matches.
    """
    terms = matching_terms(query, expansions)
    if not terms:
        return query
    return f"{query} {' '.join(terms)}"
