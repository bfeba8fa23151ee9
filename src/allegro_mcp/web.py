"""
Flask application for browsing the query library.
Lists stored queries per repository and renders their visualizations.
"""

import argparse
import json
import logging
import sys

from flask import Flask, jsonify, render_template

from allegro_mcp import PROJECT_ROOT
from allegro_mcp.client import AllegroGraphClient
from allegro_mcp.config_loader import ConfigLoader, setup_logging
from allegro_mcp.query_library import QueryLibrary

logger = logging.getLogger(__name__)

CHART_TYPES = {
    'bar_chart', 'line_chart', 'pie_chart', 'scatter_plot',
    'bar', 'line', 'pie', 'scatter',
}


def is_html_config(config: str) -> bool:
    """Visualization configs stored as complete HTML (legacy or multi-chart dashboards)."""
    trimmed = config.strip()
    return (
        trimmed.startswith('<!DOCTYPE')
        or trimmed.lower().startswith('<html')
        or trimmed.startswith('<!--')
        or (trimmed.startswith('<') and '<canvas' in trimmed)
    )


def parse_config(viz) -> dict:
    """Visualization config as JSON, or the raw string marked as not JSON."""
    try:
        return json.loads(viz.config)
    except ValueError:
        logger.warning(f"Visualization {viz.uri} has invalid JSON config, returning raw string")
        return {'__raw': viz.config, '__error': 'Not valid JSON'}


def create_app(library: QueryLibrary, catalog_client, library_repository: str = 'query-library') -> Flask:
    """
    Create and configure the Flask application.

    Args:
        library: Query library reader
        catalog_client: Client whose catalog lists the browsable repositories
        library_repository: Repository id of the query library, hidden from the list
    """
    app = Flask(
        __name__,
        template_folder=str(PROJECT_ROOT / 'templates'),
        static_folder=str(PROJECT_ROOT / 'static'),
    )
    # Query and visualization URIs travel in the path and contain '//'
    app.url_map.merge_slashes = False

    def error_response(message, e):
        logger.error(f"{message}: {str(e)}")
        return jsonify({'error': message, 'details': str(e)}), 500

    # --- Routes ---

    @app.route('/')
    def index():
        """Query browser page"""
        return render_template('index.html')

    @app.route('/api/repositories')
    def list_repositories():
        """Repositories of the catalog, without the query library"""
        try:
            repos = catalog_client.list_catalog_repositories()
        except Exception as e:
            return error_response('Failed to fetch repositories', e)
        return jsonify([
            {'id': repo['id'], 'title': repo['title']}
            for repo in repos if repo['id'] != library_repository
        ])

    @app.route('/api/repositories/<repo>/queries')
    def list_queries(repo):
        """Stored queries of a repository, newest first"""
        try:
            queries = library.list_all_queries(repo)
        except Exception as e:
            return error_response('Failed to fetch queries', e)
        return jsonify([q.to_dict() for q in queries])

    @app.route('/api/queries/<path:query_uri>/visualizations')
    def list_visualizations(query_uri):
        """Visualizations of a stored query"""
        try:
            visualizations = library.get_visualizations_for_uri(query_uri)
        except ValueError as e:
            return jsonify({'error': 'Invalid query URI', 'details': str(e)}), 400
        except Exception as e:
            return error_response('Failed to fetch visualizations', e)

        results = []
        for viz in visualizations:
            data = viz.to_dict()
            data['config'] = parse_config(viz)
            results.append(data)
        return jsonify(results)

    @app.route('/api/queries/<path:query_uri>')
    def get_query(query_uri):
        """Details of one stored query"""
        try:
            query = library.get_query(query_uri)
        except ValueError as e:
            return jsonify({'error': 'Invalid query URI', 'details': str(e)}), 400
        except Exception as e:
            return error_response('Failed to fetch query details', e)

        if query is None:
            return jsonify({'error': 'Query not found'}), 404
        return jsonify(query.to_dict())

    @app.route('/api/visualizations/<path:viz_uri>/render')
    def render_visualization(viz_uri):
        """Render a visualization as a standalone HTML page"""
        try:
            viz = library.get_visualization(viz_uri)
        except ValueError as e:
            return f"Invalid visualization URI: {e}", 400
        except Exception as e:
            logger.error(f"Error rendering visualization: {str(e)}")
            return 'Failed to render visualization', 500

        if viz is None:
            return 'Visualization not found', 404

        if is_html_config(viz.config):
            return viz.config

        try:
            config = json.loads(viz.config)
        except ValueError:
            return 'Invalid visualization config: not valid JSON or HTML', 400

        if viz.type in CHART_TYPES:
            return render_template('chart.html', description=viz.description, config=config)
        if viz.type == 'other' and isinstance(config, dict) and config.get('type') == 'multi-chart':
            return render_template('dashboard.html', description=viz.description,
                                   charts=config.get('charts') or [])
        return render_template('visualization.html', description=viz.description, viz_type=viz.type,
                               config_text=json.dumps(config, indent=2))

    return app


def main():
    """Entry point: parse CLI args, configure logging, create app, and run."""
    parser = argparse.ArgumentParser(description='AllegroGraph Query Browser')
    parser.add_argument('--env', type=str, help='Path to environment file')
    parser.add_argument('--repositories', type=str, help='Path to repositories.yaml')
    parser.add_argument('--port', type=int, default=None, help='Web server port')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    setup_logging('query-browser', args.debug)

    config = ConfigLoader.load_config(args.env)
    try:
        repositories_config = ConfigLoader.load_repositories_config(
            args.repositories or config.get("repositories_file"),
            timeout=config["request_timeout"],
        )
    except Exception as e:
        logger.error(f"Error loading configuration: {str(e)}")
        sys.exit(1)

    library_config = repositories_config['query_library']
    client = AllegroGraphClient(library_config)
    app = create_app(QueryLibrary(client), client, library_config.repository)
    port = args.port or config["web_port"]

    print(f"AllegroGraph Query Browser running at http://localhost:{port}")
    print(f"  AllegroGraph: {library_config.base_url}")
    print(f"  Catalog: {library_config.catalog}")
    print("Press CTRL+C to stop the server")

    app.run(debug=False, host='127.0.0.1', port=port)


if __name__ == "__main__":
    main()
