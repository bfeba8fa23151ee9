"""
Configuration loader for the AllegroGraph MCP server and query browser.
Loads settings from environment files and repository definitions from YAML.
"""

import logging
from logging.handlers import RotatingFileHandler
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from allegro_mcp import PROJECT_ROOT

logger = logging.getLogger(__name__)

CONFIG_DIR = PROJECT_ROOT / "config"

QUERY_LIBRARY_REPOSITORY = "query-library"

_ROOT_CATALOGS = ("", "/", "root")


@dataclass
class RepositoryConfig:
    """Connection settings for one AllegroGraph repository."""
    name: str
    host: str
    port: int
    username: str
    password: str
    catalog: str
    repository: str
    protocol: str = "https"
    timeout: int = 30

    @property
    def base_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def is_root_catalog(self) -> bool:
        return (self.catalog or "") in _ROOT_CATALOGS

    @property
    def catalog_path(self) -> str:
        """Path of the catalog's repository list."""
        if self.is_root_catalog:
            return "/repositories"
        return f"/catalogs/{self.catalog}/repositories"

    @property
    def repository_path(self) -> str:
        return f"{self.catalog_path}/{self.repository}"

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{self.repository_path}"

    def with_repository(self, name: str, repository: str) -> 'RepositoryConfig':
        """Same server and credentials, different repository."""
        return RepositoryConfig(
            name=name, host=self.host, port=self.port, username=self.username,
            password=self.password, catalog=self.catalog, repository=repository,
            protocol=self.protocol, timeout=self.timeout,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Settings without the password."""
        return {
            "host": self.host,
            "port": self.port,
            "username": self.username,
            "catalog": self.catalog,
            "repository": self.repository,
            "protocol": self.protocol,
        }


def _env_prefix(name: str) -> str:
    return name.upper().replace("-", "_")


def build_repository_config(name: str, values: Dict[str, Any], defaults: Dict[str, Any]) -> RepositoryConfig:
    """
    Build a RepositoryConfig from YAML values, with environment overrides.

    ``<NAME>_HOST``, ``<NAME>_PORT``, ``<NAME>_USERNAME``, ``<NAME>_PASSWORD``,
    ``<NAME>_CATALOG``, ``<NAME>_REPOSITORY`` and ``<NAME>_PROTOCOL`` win over
    the file.
    """
    merged = {**defaults, **(values or {})}
    prefix = _env_prefix(name)
    for key in ("host", "port", "username", "password", "catalog", "repository", "protocol"):
        env_value = os.environ.get(f"{prefix}_{key.upper()}")
        if env_value is not None:
            merged[key] = env_value

    protocol = str(merged.get("protocol", "https")).lower()
    if protocol not in ("http", "https"):
        raise ValueError(f"Repository '{name}' has invalid protocol: {protocol}")

    return RepositoryConfig(
        name=name,
        host=str(merged.get("host", "localhost")),
        port=int(merged.get("port", 10035)),
        username=str(merged.get("username", "")),
        password=str(merged.get("password", "")),
        catalog=str(merged.get("catalog", "/")),
        repository=str(merged.get("repository", name)),
        protocol=protocol,
        timeout=int(merged.get("timeout", defaults.get("timeout", 30))),
    )


class ConfigLoader:
    """Configuration loader for the AllegroGraph MCP server"""

    @staticmethod
    def load_config(env_file: str = None) -> Dict[str, Any]:
        """Load configuration from environment file"""
        if env_file:
            # If relative path provided, check both config/ and absolute path
            if not os.path.isabs(env_file):
                config_path = CONFIG_DIR / env_file
                if config_path.exists():
                    env_file = str(config_path)

            if os.path.exists(env_file):
                logger.info(f"Loading configuration from {env_file}")
                load_dotenv(env_file)
            else:
                logger.warning(f"Specified env file not found: {env_file}, loading default")
                default_env = CONFIG_DIR / ".env"
                if default_env.exists():
                    load_dotenv(default_env)
        else:
            default_env = CONFIG_DIR / ".env"
            if default_env.exists():
                logger.info(f"Loading configuration from {default_env}")
                load_dotenv(default_env)
            else:
                logger.warning("No .env file found in config/ directory")

        # Credentials live in config/.env.secrets (if it exists)
        secrets_file = CONFIG_DIR / ".env.secrets"
        if secrets_file.exists():
            logger.info(f"Loading secrets from {secrets_file}")
            load_dotenv(secrets_file, override=True)

        return {
            "shacl_cache_dir": os.environ.get("SHACL_CACHE_DIR", ".shacl-cache"),
            "web_port": int(os.environ.get("WEB_PORT", "3000")),
            "request_timeout": int(os.environ.get("AGRAPH_TIMEOUT", "30")),
            "discover_repositories": os.environ.get("DISCOVER_REPOSITORIES", "false").lower() in ("1", "true", "yes"),
            "repositories_file": os.environ.get("REPOSITORIES_FILE"),
        }

    @staticmethod
    def _env_defaults(timeout: int) -> Dict[str, Any]:
        return {
            "host": os.environ.get("AGRAPH_HOST", "localhost"),
            "port": os.environ.get("AGRAPH_PORT", "10035"),
            "username": os.environ.get("AGRAPH_USERNAME", ""),
            "password": os.environ.get("AGRAPH_PASSWORD", ""),
            "catalog": os.environ.get("AGRAPH_CATALOG", "/"),
            "protocol": os.environ.get("AGRAPH_PROTOCOL", "http"),
            "timeout": timeout,
        }

    @staticmethod
    def load_repositories_config(path: Optional[str] = None, timeout: int = 30) -> Dict[str, Any]:
        """
        Load repository definitions from config/repositories.yaml.

        Returns:
            Dict with 'repositories' (name -> RepositoryConfig),
            'default_repository' and 'query_library' (RepositoryConfig)
        """
        repositories_path = path or str(CONFIG_DIR / "repositories.yaml")
        defaults = ConfigLoader._env_defaults(timeout)

        loaded: Dict[str, Any] = {}
        if os.path.exists(repositories_path):
            try:
                with open(repositories_path, 'r', encoding='utf-8') as f:
                    loaded = yaml.safe_load(f) or {}
                logger.info(f"Loaded repository configuration from {repositories_path}")
            except (OSError, yaml.YAMLError) as e:
                logger.error(f"Error loading repositories config {repositories_path}: {str(e)}")
                raise
        else:
            logger.warning(f"Repositories config not found at {repositories_path}, using AGRAPH_* environment")

        defaults.update(loaded.get("defaults") or {})

        repositories: Dict[str, RepositoryConfig] = {}
        for name, values in (loaded.get("repositories") or {}).items():
            repositories[name] = build_repository_config(name, values, defaults)

        if not repositories:
            name = os.environ.get("AGRAPH_REPOSITORY", "default")
            repositories[name] = build_repository_config(name, {"repository": name}, defaults)

        default_repository = os.environ.get("DEFAULT_REPOSITORY") or loaded.get("default_repository")
        if not default_repository or default_repository not in repositories:
            if default_repository:
                logger.warning(f"Default repository '{default_repository}' is not configured")
            default_repository = next(iter(repositories))

        library_values = {"repository": QUERY_LIBRARY_REPOSITORY}
        library_values.update(loaded.get("query_library") or {})
        query_library = build_repository_config("query_library", library_values, defaults)

        return {
            "repositories": repositories,
            "default_repository": default_repository,
            "query_library": query_library,
        }


def setup_logging(log_name: str, debug: bool = False):
    """Log to logs/<log_name>.log (rotating) and to stderr."""
    log_dir = PROJECT_ROOT / 'logs'
    log_dir.mkdir(exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            RotatingFileHandler(str(log_dir / f'{log_name}.log'), maxBytes=10485760, backupCount=5),
            logging.StreamHandler()
        ]
    )
