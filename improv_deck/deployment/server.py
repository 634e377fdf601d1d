"""
HTTP server for the improv deck pipeline.
Provides REST endpoints to run a generation and browse stored generations.
"""

import asyncio
import concurrent.futures
import logging
import os
from typing import Callable, Optional

from flask import Flask, abort, jsonify, send_from_directory
from flask_cors import CORS

from improv_deck.core.app_initializer import AppInitializer
from improv_deck.core.artifact_store import ArtifactStore
from improv_deck.core.exceptions import FailureReason
from improv_deck.core.pipeline_orchestrator import PipelineOrchestrator, create_pipeline_orchestrator

logger = logging.getLogger(__name__)

# The deck was generated but could not be stored: our fault, not the upstream's
_SERVER_SIDE_FAILURES = {FailureReason.PERSISTENCE_FAILED.value}


def _run_in_new_loop(orchestrator: PipelineOrchestrator):
    """Run the pipeline in a new event loop in this thread"""
    new_loop = asyncio.new_event_loop()
    asyncio.set_event_loop(new_loop)
    try:
        return new_loop.run_until_complete(orchestrator.run())
    finally:
        new_loop.close()


def create_app(
    pipeline_factory: Optional[Callable[[], PipelineOrchestrator]] = None,
    artifact_store: Optional[ArtifactStore] = None,
) -> Flask:
    """
    Build the Flask application.

    Args:
        pipeline_factory: Returns a fresh orchestrator per request (default from config)
        artifact_store: Store backing the catalog and file routes

    Returns:
        Configured Flask app
    """
    artifact_store = artifact_store or ArtifactStore()
    if pipeline_factory is None:
        def pipeline_factory():
            return create_pipeline_orchestrator(artifact_store=artifact_store)

    app = Flask(__name__)
    CORS(app, origins="*", methods=["GET", "POST", "OPTIONS"], allow_headers=["Content-Type", "Authorization"])

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint."""
        return jsonify({"status": "healthy"}), 200

    @app.route('/generate', methods=['POST'])
    def generate():
        """
        Run one generation.

        Returns:
            200 with {status, topic, generation_id, images} on success,
            500/502 with {status: "failed", reason, error, images} on failure
        """
        try:
            orchestrator = pipeline_factory()
            # Isolated event loop per request; Flask worker threads have none
            with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
                result = executor.submit(_run_in_new_loop, orchestrator).result()
        except Exception as e:
            logger.exception("Generate request crashed")
            return jsonify({"status": "error", "error": str(e)}), 500

        body = result.to_dict(url_prefix=artifact_store.url_prefix)
        if result.succeeded:
            logger.info(f"✅ Generation stored: {result.stored.generation_id}")
            return jsonify(body), 200

        status_code = 500 if result.reason in _SERVER_SIDE_FAILURES else 502
        logger.warning(f"Generation failed ({result.reason}): {result.error}")
        return jsonify(body), status_code

    @app.route('/presentations', methods=['GET'])
    def list_presentations():
        """Catalog of stored generations, newest first."""
        entries = artifact_store.list_all()
        return jsonify({"presentations": [entry.to_dict() for entry in entries]}), 200

    @app.route('/presentations/<generation_id>', methods=['GET'])
    def get_presentation(generation_id):
        entry = artifact_store.get(generation_id)
        if entry is None:
            return jsonify({"error": f"Presentation '{generation_id}' not found"}), 404
        return jsonify(entry.to_dict()), 200

    @app.route(f"{artifact_store.url_prefix}/<path:filename>", methods=['GET'])
    def stored_file(filename):
        """Serve topic, manifest and image files of stored generations."""
        if not artifact_store.root_dir.is_dir():
            abort(404)
        return send_from_directory(str(artifact_store.root_dir.resolve()), filename)

    return app


app = create_app()


if __name__ == '__main__':
    if not AppInitializer().initialize():
        raise SystemExit(1)
    port = int(os.environ.get('PORT', 8080))
    app.run(host='0.0.0.0', port=port, debug=False)
