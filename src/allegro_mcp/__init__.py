"""allegro_mcp: MCP tools, SHACL compression and a query library for AllegroGraph."""
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent.parent.parent  # src/allegro_mcp → src → repo root

__version__ = "0.3.0"
