"""
Solr query compilation for the search_terms tool.

Turns a free-text query plus optional facet lists into the edismax
parameter set the VFB ontology index expects: an expanded ``q``, a list of
filter queries (``fq``) and a boost query (``bq``).

Facet semantics:
    filter_types   every listed facet must match (one fq clause each)
    exclude_types  matching any listed facet disqualifies a result
                   (one negated disjunctive fq clause)
    boost_types    soft preference, appended to bq, never filters
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

FACET_FIELD = "facets_annotation"

# Restrict to VFB/FlyBase identifiers, datasets and publications, and never
# return the VFBc_ channel records.
BASE_FILTER = (
    "(short_form:VFB* OR short_form:FB* OR facets_annotation:DataSet "
    "OR facets_annotation:pub) AND NOT short_form:VFBc_*"
)

BASELINE_BOOSTS = (
    "short_form:VFBexp*^10.0",
    "short_form:VFB*^100.0",
    "short_form:FBbt*^100.0",
    "short_form:FBbt_00003982^2",
    "facets_annotation:Deprecated^0.001",
)
BASELINE_BOOST_QUERY = " ".join(BASELINE_BOOSTS)

FACET_BOOST_WEIGHT = 1000.0

MIN_MATCH = "45%"
QUERY_FIELDS = "label^110 synonym^100 label_autosuggest synonym_autosuggest shortform_autosuggest"
RETURN_FIELDS = "short_form,label,synonym,id,facets_annotation,unique_facets"
MAX_ROWS = 150


def _clean_tokens(tokens: Optional[Iterable[str]]) -> List[str]:
    if not tokens:
        return []
    return [t.strip() for t in tokens if t and t.strip()]


@dataclass
class FacetQuery:
    """Free-text query with optional facet constraints."""

    query: str
    filter_types: List[str] = field(default_factory=list)
    exclude_types: List[str] = field(default_factory=list)
    boost_types: List[str] = field(default_factory=list)


@dataclass
class CompiledQuery:
    """Backend-ready search parameters derived from a FacetQuery."""

    q: str
    filter_queries: List[str]
    boost_query: str
    rows: int = MAX_ROWS

    def to_params(self) -> Dict[str, Any]:
        """Render as Solr select parameters (``fq`` repeats per clause)."""
        return {
            "q": self.q,
            "q.op": "OR",
            "defType": "edismax",
            "mm": MIN_MATCH,
            "qf": QUERY_FIELDS,
            "indent": "true",
            "fl": RETURN_FIELDS,
            "start": "0",
            "pf": "true",
            "fq": list(self.filter_queries),
            "rows": str(self.rows),
            "wt": "json",
            "bq": self.boost_query,
        }


def expand_text(query: str) -> str:
    """Exact term OR prefix wildcard OR substring wildcard."""
    query = query.strip()
    return f"{query} OR {query}* OR *{query}*"


def build_filter_queries(
    filter_types: Sequence[str] = (), exclude_types: Sequence[str] = ()
) -> List[str]:
    fq = [BASE_FILTER]
    for facet in _clean_tokens(filter_types):
        fq.append(f"{FACET_FIELD}:{facet}")

    excluded = _clean_tokens(exclude_types)
    if excluded:
        clause = " OR ".join(f"{FACET_FIELD}:{facet}" for facet in excluded)
        # Pure negative fq: Solr evaluates it against all docs, so records
        # without any facet annotation are kept.
        fq.append(f"NOT ({clause})")
    return fq


def build_boost_query(boost_types: Sequence[str] = ()) -> str:
    extra = [
        f"{FACET_FIELD}:{facet}^{FACET_BOOST_WEIGHT}"
        for facet in _clean_tokens(boost_types)
    ]
    return " ".join([BASELINE_BOOST_QUERY, *extra])


def compile_query(facet_query: FacetQuery) -> CompiledQuery:
    """Compile a FacetQuery. Empty facet lists yield base filter + baseline boosts."""
    return CompiledQuery(
        q=expand_text(facet_query.query),
        filter_queries=build_filter_queries(
            facet_query.filter_types, facet_query.exclude_types
        ),
        boost_query=build_boost_query(facet_query.boost_types),
    )
