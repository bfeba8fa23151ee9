"""
SPARQL builders for AllegroGraph's LLM magic predicates.

String arguments of magic predicates are written as single-quoted literals,
the form AllegroGraph's llm: predicates accept reliably.
"""

from allegro_mcp.sparql_helpers import escape_literal

LLM_PREFIXES = (
    "PREFIX llm: <http://franz.com/ns/allegrograph/8.0.0/llm/>\n"
    "PREFIX kw: <http://franz.com/ns/keyword#>\n"
)


def vector_store_spec(vector_store: str, catalog: str) -> str:
    """
    Qualify a vector store name with its catalog.

    Names that already contain ':' are returned unchanged.
    """
    if ':' in vector_store:
        return vector_store
    return f"{catalog}:{vector_store}"


def _single_quoted(value: str) -> str:
    return f"'{escape_literal(value)}'"


def build_nearest_neighbor_query(text: str, store_spec: str, top_n: int = 10, min_score: float = 0.0) -> str:
    """Nearest-neighbor search over a vector store (llm:nearestNeighbor)."""
    return (
        f"{LLM_PREFIXES}"
        "PREFIX vdbprop: <http://franz.com/vdb/prop/>\n\n"
        "SELECT ?id ?score ?text WHERE {\n"
        f"  (?id ?score ?text) llm:nearestNeighbor ({_single_quoted(text)} {_single_quoted(store_spec)} "
        f"kw:topN {int(top_n)} kw:minScore {float(min_score)}) .\n"
        "}"
    )


def build_ask_documents_query(question: str, store_spec: str, top_n: int = 5, min_score: float = 0.8) -> str:
    """Retrieval-augmented answer with citations (llm:askMyDocuments)."""
    return (
        f"{LLM_PREFIXES}\n"
        "SELECT ?response ?score ?citationId ?citedText WHERE {\n"
        f"  (?response ?score ?citationId ?citedText) llm:askMyDocuments ({_single_quoted(question)} "
        f"{_single_quoted(store_spec)} kw:topN {int(top_n)} kw:minScore {float(min_score)})\n"
        "}"
    )
