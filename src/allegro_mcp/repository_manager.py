"""
Repository manager for multi-repository support.
Holds repository settings, the current repository and lazily created clients.
"""

import logging
from typing import Any, Dict, List, Optional

from allegro_mcp.client import AllegroGraphClient
from allegro_mcp.config_loader import RepositoryConfig
from allegro_mcp.errors import RepositoryNotFoundError

logger = logging.getLogger(__name__)


class RepositoryManager:
    """Manages configured repositories and their clients with lazy creation"""

    def __init__(self, repositories: Dict[str, RepositoryConfig], default_repository: str,
                 query_library: Optional[RepositoryConfig] = None, client_factory=AllegroGraphClient):
        """
        Initialize the RepositoryManager.

        Args:
            repositories: Repository name -> connection settings
            default_repository: Name of the repository used when none is given
            query_library: Settings of the repository holding stored queries
            client_factory: Callable building a client from a RepositoryConfig
        """
        if default_repository not in repositories:
            raise RepositoryNotFoundError(default_repository, repositories.keys())

        self.repositories = dict(repositories)
        self.current_repository = default_repository
        self.query_library = query_library
        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}
        self._library_client = None

        logger.info(f"RepositoryManager initialized with {len(self.repositories)} repositories "
                    f"(current: {default_repository})")

    @classmethod
    def from_config(cls, repositories_config: Dict[str, Any], **kwargs) -> 'RepositoryManager':
        """Build from ConfigLoader.load_repositories_config() output."""
        return cls(
            repositories_config['repositories'],
            repositories_config['default_repository'],
            query_library=repositories_config.get('query_library'),
            **kwargs,
        )

    def resolve(self, name: Optional[str] = None) -> str:
        """Repository name to use: ``name`` if given, else the current one."""
        repo_name = name or self.current_repository
        if repo_name not in self.repositories:
            raise RepositoryNotFoundError(repo_name, self.repositories.keys())
        return repo_name

    def get_config(self, name: Optional[str] = None) -> RepositoryConfig:
        return self.repositories[self.resolve(name)]

    def get_client(self, name: Optional[str] = None):
        """Get or lazily create the client for a repository."""
        repo_name = self.resolve(name)
        if repo_name not in self._clients:
            logger.info(f"Creating client for repository: {repo_name}")
            self._clients[repo_name] = self._client_factory(self.repositories[repo_name])
        return self._clients[repo_name]

    def get_library_client(self):
        """Client for the query-library repository."""
        if self.query_library is None:
            raise RepositoryNotFoundError('query-library', self.repositories.keys())
        if self._library_client is None:
            logger.info(f"Creating client for query library: {self.query_library.endpoint}")
            self._library_client = self._client_factory(self.query_library)
        return self._library_client

    def set_current_repository(self, name: str) -> str:
        """Switch the current repository; returns the previous one."""
        if name not in self.repositories:
            raise RepositoryNotFoundError(name, self.repositories.keys())
        previous = self.current_repository
        self.current_repository = name
        logger.info(f"Current repository changed from '{previous}' to '{name}'")
        return previous

    def list_repositories(self) -> List[Dict[str, Any]]:
        """Configured repositories with their public settings."""
        return [
            {
                "name": name,
                "current": name == self.current_repository,
                "config": config.to_public_dict(),
            }
            for name, config in self.repositories.items()
        ]

    def get_repository_info(self, name: Optional[str] = None) -> Dict[str, Any]:
        """Name, catalog, triple count and endpoint of a repository."""
        repo_name = self.resolve(name)
        config = self.repositories[repo_name]
        return {
            "repository": repo_name,
            "catalog": config.catalog,
            "tripleCount": self.get_client(repo_name).get_size(),
            "endpoint": config.endpoint,
            "current": repo_name == self.current_repository,
        }

    def discover_repositories(self) -> List[str]:
        """
        Add repositories found in the current repository's catalog.

        New entries share the server settings of the current repository.
        The query library is never added.

        Returns:
            Names of newly added repositories
        """
        base = self.repositories[self.current_repository]
        known = {config.repository for config in self.repositories.values()}
        library_repo = self.query_library.repository if self.query_library else None

        added = []
        for entry in self.get_client(self.current_repository).list_catalog_repositories():
            repo_id = entry['id']
            if repo_id in known or repo_id == library_repo or repo_id in self.repositories:
                continue
            self.repositories[repo_id] = base.with_repository(repo_id, repo_id)
            added.append(repo_id)

        if added:
            logger.info(f"Discovered {len(added)} repositories: {', '.join(added)}")
        return added
