"""
Facet vocabulary for the search_terms tool description.

The vocabulary is documentation only: compile_query never consults it and
unknown facet tokens are passed through unchanged.
"""

from typing import List, Sequence

from src.clients.remote_client import BackendFailure, RemoteClient
from src.query.query_compiler import FACET_FIELD
from src.shared.observability import get_logger

logger = get_logger(__name__)

DEFAULT_FACET_TYPES = (
    "entity", "anatomy", "nervous_system", "individual", "has_image", "adult",
    "cell", "neuron", "vfb", "has_neuron_connectivity", "nblast",
    "visual_system", "cholinergic", "class", "secondary_neuron",
    "expression_pattern", "gabaergic", "expression_pattern_fragment",
    "glutamatergic", "feature", "sensory_neuron", "neuronbridge", "deprecated",
    "larva", "has_region_connectivity", "nblastexp", "gene", "primary_neuron",
    "flycircuit", "mechanosensory_system", "histaminergic", "lineage_mbp",
    "peptidergic", "hasscrnaseq", "chemosensory_system", "split",
    "has_subclass", "olfactory_system", "dopaminergic", "fafb", "l1em", "pub",
    "enzyme", "motor_neuron", "cluster", "lineage_6", "lineage_3",
    "serotonergic", "lineage_19", "lineage_cm3", "lineage_dm6",
    "proprioceptive_system", "gustatory_system", "sense_organ", "lineage_mbp4",
    "lineage_mbp1", "lineage_1", "lineage_mbp2", "lineage_all1", "lineage_balc",
    "lineage_cm4", "lineage_dm4", "muscle", "lineage_13", "lineage_8",
    "lineage_mbp3", "lineage_12", "lineage_dm1", "lineage_dpmm1", "lineage_9",
    "lineage_cp2", "lineage_dl1", "fanc", "lineage_7", "lineage_vpnd2",
    "lineage_dm3", "lineage_dpmpm2", "lineage_14", "lineage_4", "lineage_blp1",
    "lineage_dalv2", "lineage_eba1", "lineage_dm2", "lineage_dpmpm1",
    "auditory_system", "lineage_16", "lineage_blvp1", "lineage_blav2",
    "lineage_vlpl2", "lineage_alad1", "lineage_bamv3", "lineage_bld6",
    "lineage_vpnd1", "synaptic_neuropil", "lineage_23", "lineage_17",
    "lineage_10", "lineage_dplpv", "lineage_21", "lineage_alv1",
)


def parse_facet_counts(payload: dict, facet_field: str = FACET_FIELD) -> List[str]:
    """Extract facet values from a Solr ``facet_counts`` response.

    Solr returns a flat ``[value, count, value, count, ...]`` list ordered by
    count. Values are lower-cased and de-duplicated, keeping that order.
    """
    flat = payload.get("facet_counts", {}).get("facet_fields", {}).get(facet_field)
    if not isinstance(flat, list):
        return []
    seen: List[str] = []
    for value in flat[::2]:
        if not isinstance(value, str):
            continue
        token = value.strip().lower()
        if token and token not in seen:
            seen.append(token)
    return seen


async def discover_facet_types(client: RemoteClient) -> Sequence[str]:
    """Ask the index for its facet vocabulary, falling back to the default list."""
    result = await client.facet_counts(FACET_FIELD)
    if isinstance(result, BackendFailure):
        logger.warning(
            "Facet discovery failed; using default vocabulary",
            error=result.description,
        )
        return DEFAULT_FACET_TYPES

    try:
        tokens = parse_facet_counts(result.payload)
    except (AttributeError, TypeError):
        tokens = []
    if not tokens:
        logger.warning("Facet discovery returned no values; using default vocabulary")
        return DEFAULT_FACET_TYPES

    logger.info("Discovered facet vocabulary", count=len(tokens))
    return tuple(tokens)
