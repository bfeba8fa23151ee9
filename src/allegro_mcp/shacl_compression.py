"""
SHACL compression for SPARQL generation.

Turns the verbose SHACL JSON-LD produced by the repository's data generator
into a compact ``{prefixes, classes}`` map that costs far fewer tokens:

1. Seed namespace prefixes from @context
2. Convert full URIs to prefix:localName
3. Drop JSON-LD overhead (@id, @type, sh:NodeShape ...)
4. Skip OWL classes and rdf:type paths
5. Keep only properties that carry a datatype or class reference
"""

import logging
from typing import Any, Dict, List, Optional

from rdflib.namespace import OWL, RDF

from allegro_mcp.namespaces import NamespaceRegistry

logger = logging.getLogger(__name__)

OWL_NAMESPACE = str(OWL)
RDF_TYPE = str(RDF.type)


def _node_id(value) -> Optional[str]:
    """Return the identifier of a JSON-LD value given as a string or {"@id": ...}."""
    if isinstance(value, dict):
        value = value.get('@id')
    if isinstance(value, str) and value:
        return value
    return None


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def should_skip_class(target_class: str, owl_prefix: str = 'owl') -> bool:
    """
    OWL classes are upper-ontology noise, not domain data.

    Matches a full URI in the OWL namespace, or a compacted name whose
    prefix is the one bound to that namespace.
    """
    if target_class.startswith(OWL_NAMESPACE):
        return True
    prefix, sep, _ = target_class.partition(':')
    return bool(sep) and prefix == owl_prefix


def should_skip_property(path: str) -> bool:
    """rdf:type is structural and says nothing about the domain."""
    return path == 'rdf:type' or path == RDF_TYPE or path.endswith('rdf-syntax-ns#type')


def compress_shacl(shacl_jsonld) -> Dict[str, Dict]:
    """
    Compress SHACL JSON-LD into ``{"prefixes": {...}, "classes": {...}}``.

    ``classes`` maps each compacted target class to ``{property: {"type": t}}``.
    Classes without any typed property are left out. ``prefixes`` holds every
    prefix used in ``classes`` (prefix -> namespace).

    Args:
        shacl_jsonld: Parsed JSON-LD document with @context and @graph, or a
                      bare list of shapes

    Returns:
        Compressed schema dict
    """
    if isinstance(shacl_jsonld, list):
        context, graph = {}, shacl_jsonld
    else:
        context = shacl_jsonld.get('@context') or {}
        graph = shacl_jsonld.get('@graph') or []

    registry = NamespaceRegistry.from_context(context)
    classes: Dict[str, Dict[str, Dict[str, str]]] = {}

    for shape in _as_list(graph):
        if not isinstance(shape, dict):
            continue

        target_class = _node_id(shape.get('sh:targetClass'))
        if not target_class:
            continue

        class_qname = registry.to_prefixed(target_class)
        owl_prefix = registry.get(OWL_NAMESPACE) or 'owl'
        if should_skip_class(class_qname, owl_prefix) or should_skip_class(target_class, owl_prefix):
            continue

        class_props: Dict[str, Dict[str, str]] = {}
        for prop in _as_list(shape.get('sh:property')):
            if not isinstance(prop, dict):
                continue

            path = _node_id(prop.get('sh:path'))
            if not path or should_skip_property(path):
                continue

            prop_qname = registry.to_prefixed(path)

            datatype = _node_id(prop.get('sh:datatype'))
            class_ref = _node_id(prop.get('sh:class'))
            if datatype:
                type_value = registry.to_prefixed(datatype)
            elif class_ref:
                type_value = registry.to_prefixed(class_ref)
            else:
                continue

            class_props[prop_qname] = {'type': type_value}

        if class_props:
            classes[class_qname] = class_props

    logger.debug(f"Compressed SHACL: {len(classes)} classes, {len(registry)} namespaces")
    return {'prefixes': registry.prefixes(), 'classes': classes}
