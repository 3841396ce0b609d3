"""
Unit tests for search_terms query compilation.
"""

from src.query.query_compiler import (
    BASE_FILTER,
    BASELINE_BOOST_QUERY,
    MAX_ROWS,
    FacetQuery,
    compile_query,
    expand_text,
)


class TestTextExpansion:
    def test_exact_prefix_and_substring_forms(self):
        assert expand_text("medulla") == "medulla OR medulla* OR *medulla*"

    def test_surrounding_whitespace_is_dropped(self):
        assert expand_text("  lobula ") == "lobula OR lobula* OR *lobula*"


class TestDefaultCompilation:
    def test_no_facets_yields_base_filter_and_baseline_boosts(self):
        compiled = compile_query(FacetQuery(query="medulla"))

        assert compiled.filter_queries == [BASE_FILTER]
        assert compiled.boost_query == BASELINE_BOOST_QUERY

    def test_result_does_not_depend_on_call_order(self):
        compile_query(
            FacetQuery(query="x", filter_types=["neuron"], boost_types=["adult"])
        )
        first = compile_query(FacetQuery(query="medulla"))
        compile_query(FacetQuery(query="y", exclude_types=["larva"]))
        second = compile_query(FacetQuery(query="medulla"))

        assert first == second
        assert second.filter_queries == [BASE_FILTER]

    def test_base_filter_restricts_to_vfb_namespaces(self):
        assert "short_form:VFB*" in BASE_FILTER
        assert "short_form:FB*" in BASE_FILTER
        assert "NOT short_form:VFBc_*" in BASE_FILTER

    def test_baseline_boosts(self):
        assert "short_form:VFB*^100.0" in BASELINE_BOOST_QUERY
        assert "short_form:VFBexp*^10.0" in BASELINE_BOOST_QUERY
        assert "short_form:FBbt_00003982^2" in BASELINE_BOOST_QUERY
        assert "facets_annotation:Deprecated^0.001" in BASELINE_BOOST_QUERY


class TestFilters:
    def test_each_filter_type_is_its_own_required_clause(self):
        compiled = compile_query(
            FacetQuery(query="medulla", filter_types=["neuron", "adult"])
        )

        assert compiled.filter_queries == [
            BASE_FILTER,
            "facets_annotation:neuron",
            "facets_annotation:adult",
        ]

    def test_caller_filters_never_replace_base_clause(self):
        compiled = compile_query(
            FacetQuery(query="medulla", filter_types=["*:*"], exclude_types=["vfb"])
        )

        assert compiled.filter_queries[0] == BASE_FILTER

    def test_blank_tokens_are_ignored(self):
        compiled = compile_query(FacetQuery(query="medulla", filter_types=["", "  "]))

        assert compiled.filter_queries == [BASE_FILTER]


class TestExclusions:
    def test_single_exclusion_is_a_negated_clause(self):
        compiled = compile_query(FacetQuery(query="x", exclude_types=["larva"]))

        assert compiled.filter_queries == [
            BASE_FILTER,
            "NOT (facets_annotation:larva)",
        ]

    def test_multiple_exclusions_share_one_disjunctive_clause(self):
        compiled = compile_query(
            FacetQuery(query="x", exclude_types=["larva", "deprecated"])
        )

        assert compiled.filter_queries[-1] == (
            "NOT (facets_annotation:larva OR facets_annotation:deprecated)"
        )
        assert len(compiled.filter_queries) == 2

    def test_exclusion_is_pure_negative_clause(self):
        # A pure negative fq keeps records with no facets_annotation at all.
        compiled = compile_query(FacetQuery(query="x", exclude_types=["larva"]))

        clause = compiled.filter_queries[-1]
        assert clause.startswith("NOT (")
        assert "AND" not in clause


class TestBoosts:
    def test_boost_types_are_appended_to_baseline(self):
        compiled = compile_query(
            FacetQuery(query="medulla", boost_types=["neuron", "has_image"])
        )

        assert compiled.boost_query == (
            BASELINE_BOOST_QUERY
            + " facets_annotation:neuron^1000.0 facets_annotation:has_image^1000.0"
        )

    def test_boosts_never_add_filters(self):
        compiled = compile_query(FacetQuery(query="medulla", boost_types=["neuron"]))

        assert compiled.filter_queries == [BASE_FILTER]


class TestParams:
    def test_solr_parameters(self):
        params = compile_query(
            FacetQuery(query="medulla", filter_types=["neuron"])
        ).to_params()

        assert params["q"] == "medulla OR medulla* OR *medulla*"
        assert params["q.op"] == "OR"
        assert params["defType"] == "edismax"
        assert params["mm"] == "45%"
        assert params["qf"].startswith("label^110 synonym^100")
        assert params["rows"] == str(MAX_ROWS) == "150"
        assert params["wt"] == "json"
        assert params["fq"] == [BASE_FILTER, "facets_annotation:neuron"]
        assert params["bq"] == BASELINE_BOOST_QUERY
