"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, jsonify

from growth.errors import GrowthError


def create_app():
    """Create and configure the Flask application."""
    from growth.logging_config import configure_logging

    app = Flask(__name__)

    configure_logging(app)

    # Analytics payloads are ordered maps
    app.json.sort_keys = False

    @app.errorhandler(GrowthError)
    def handle_growth_error(e):
        return jsonify(e.to_dict()), e.status_code

    # Register blueprints
    from growth.routes.health import bp as health_bp
    from growth.routes.leads import bp as leads_bp
    from growth.routes.nurture import bp as nurture_bp
    from growth.routes.patients import bp as patients_bp
    from growth.routes.reputation import bp as reputation_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(nurture_bp)
    app.register_blueprint(patients_bp)
    app.register_blueprint(reputation_bp)

    # Import models so Base.metadata knows about them (required for SQLAlchemy).
    from growth.database import import_models
    import_models()

    return app
