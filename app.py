import logging

from flask import Flask
from flask_cors import CORS

from config import SECRET_KEY, LICENSE_SECRET, LICENSE_CACHE_SECONDS, LICENSE_DIAGNOSTICS, LOG_LEVEL
from routes import init_routes

logger = logging.getLogger(__name__)


def create_app(database_url=None, license_manager=None):
    """Application factory pattern for better testing and configuration.

    Args:
        database_url: Optional database URL override. If not provided, uses config default.
        license_manager: Optional pre-built LicenseManager (tests point it at temp directories).
    """
    logging.basicConfig(
        level=LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = Flask(__name__)
    app.config["SECRET_KEY"] = SECRET_KEY

    # Enable CORS for all routes
    CORS(app)

    logger.info("🚀 Initializing database")
    from db.database import create_tables
    try:
        create_tables(database_url=database_url)
    except Exception as e:
        logger.warning(f"⚠️ Database table creation warning: {e}")

    if license_manager is None:
        from datetime import timedelta
        from db.licensing.license_manager import LicenseManager
        license_manager = LicenseManager(
            LICENSE_SECRET,
            freshness_window=timedelta(seconds=LICENSE_CACHE_SECONDS),
            diagnostics=LICENSE_DIAGNOSTICS
        )
    license_manager.init_app(app)

    # Initialize routes
    init_routes(app)

    return app


# === Main ===
if __name__ == "__main__":
    import os
    app = create_app()
    debug_mode = os.getenv('FLASK_ENV') != 'production'
    app.run(host='0.0.0.0', port=5001, debug=debug_mode)
