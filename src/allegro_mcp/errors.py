"""
Exception types raised by the allegro_mcp core.

Transport failures are not wrapped here: requests and SPARQLWrapper
exceptions propagate unchanged so callers see the underlying message.
"""


class AllegroMCPError(Exception):
    """Base class for errors raised by this package."""


class NotFoundError(AllegroMCPError):
    """A referenced query, visualization or repository does not exist."""


class QueryNotFoundError(NotFoundError):
    """No stored query matches the given title and repository."""

    def __init__(self, title: str, repository: str = None):
        self.title = title
        self.repository = repository
        where = f" for repository '{repository}'" if repository else ""
        super().__init__(
            f"Query '{title}' not found in the query library{where}. "
            f"Store the query with store_query before attaching a visualization."
        )


class RepositoryNotFoundError(NotFoundError):
    """Repository name is not configured."""

    def __init__(self, name: str, available=None):
        self.name = name
        self.available = list(available or [])
        super().__init__(f"Repository '{name}' not found. Available: {self.available}")


class MalformedResponseError(AllegroMCPError):
    """The store answered with content that cannot be parsed into the expected shape."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation}: {detail}")
