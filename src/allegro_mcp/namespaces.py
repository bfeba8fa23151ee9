"""
Namespace compaction for URIs.

Rewrites full URIs as ``prefix:localName`` tokens. Namespaces that are not
already known get a synthetic ``ns<N>`` prefix, where N is the registry size
at the time of assignment.
"""

from typing import Dict, Optional, Tuple


def split_uri(uri: str) -> Tuple[str, str]:
    """
    Split a URI into namespace and local name.

    The namespace ends at the last '#', or at the last '/' when there is no
    '#'. The separator stays with the namespace. URIs with neither separator
    have an empty namespace.
    """
    hash_pos = uri.rfind('#')
    if hash_pos != -1:
        return uri[:hash_pos + 1], uri[hash_pos + 1:]

    slash_pos = uri.rfind('/')
    if slash_pos != -1:
        return uri[:slash_pos + 1], uri[slash_pos + 1:]

    return '', uri


class NamespaceRegistry:
    """
    Mapping of namespace -> prefix that grows during one compression pass.

    Insertion order is kept, so synthetic prefixes are numbered in the order
    namespaces are first encountered.
    """

    def __init__(self, seed: Optional[Dict[str, str]] = None):
        """
        Args:
            seed: Optional namespace -> prefix mapping of known namespaces
        """
        self._prefix_by_namespace: Dict[str, str] = dict(seed or {})

    @classmethod
    def from_context(cls, context) -> 'NamespaceRegistry':
        """
        Build a registry from a JSON-LD @context (prefix -> namespace).

        Keywords such as @vocab and term definitions that are not plain
        strings are ignored.
        """
        seed = {}
        if isinstance(context, dict):
            for prefix, namespace in context.items():
                if isinstance(namespace, str) and not prefix.startswith('@'):
                    seed[namespace] = prefix
        return cls(seed)

    def __len__(self) -> int:
        return len(self._prefix_by_namespace)

    def __contains__(self, namespace: str) -> bool:
        return namespace in self._prefix_by_namespace

    def get(self, namespace: str) -> Optional[str]:
        return self._prefix_by_namespace.get(namespace)

    def assign_prefix(self, namespace: str) -> str:
        """Return the prefix for a namespace, assigning ``ns<N>`` if it is new."""
        existing = self._prefix_by_namespace.get(namespace)
        if existing is not None:
            return existing

        taken = set(self._prefix_by_namespace.values())
        n = len(self._prefix_by_namespace)
        while f"ns{n}" in taken:
            n += 1
        prefix = f"ns{n}"
        self._prefix_by_namespace[namespace] = prefix
        return prefix

    def to_prefixed(self, uri: str) -> str:
        """Convert a full URI to prefix:localName, registering its namespace."""
        if not uri:
            return uri

        namespace, local_name = split_uri(uri)
        if not namespace:
            return local_name

        return f"{self.assign_prefix(namespace)}:{local_name}"

    def prefixes(self) -> Dict[str, str]:
        """Inverted view: prefix -> namespace."""
        return {prefix: namespace for namespace, prefix in self._prefix_by_namespace.items()}

