"""
docprompt Application Factory
"""
import logging
import os
from datetime import datetime, timezone

from flask import Flask, jsonify, send_from_directory

from .config import config
from .services import EXTENSION_KEY, build_processor
from .uploads import ensure_upload_dir


def configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    app.logger.setLevel(level)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def create_app(config_name='default', overrides=None):
    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config["default"])())
    if overrides:
        app.config.update(overrides)

    configure_logging(app)

    # Fatal on failure: the endpoint is useless without somewhere to write uploads
    ensure_upload_dir(app.config["UPLOAD_DIR"])
    app.logger.info("Directories ready: %s", app.config["UPLOAD_DIR"])

    processor = build_processor(app)
    app.extensions[EXTENSION_KEY] = processor
    missing = processor.missing_configuration()
    if missing:
        app.logger.warning("%s - /api/process will fail until it is set", missing)

    from .auth import auth_bp, init_auth
    from .api import api_bp

    init_auth(app)
    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)

    @app.route('/health')
    def health():
        """Health check for load balancers and monitoring"""
        return jsonify({
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    @app.route('/')
    def index():
        frontend = app.config["FRONTEND_DIR"]
        if not os.path.isfile(os.path.join(frontend, "index.html")):
            return jsonify({"success": False, "error": "Frontend not found"}), 404
        return send_from_directory(frontend, "index.html")

    return app
