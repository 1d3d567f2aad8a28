"""Flask application factory."""
from flask import Flask, request, jsonify
from studio_quotes.database import init_db
import os


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry for error tracking in production
    if os.getenv('SENTRY_DSN') and (app.config.get('ENV') == 'production' or os.getenv('FLASK_ENV') == 'production'):
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=os.getenv('SENTRY_DSN'),
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            profiles_sample_rate=0.1,
            environment=os.getenv('FLASK_ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for quotation read models
    from studio_quotes.services.cache_service import init_cache
    init_cache(app)

    # Prometheus metrics instrumentation
    from studio_quotes.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: trust the reverse proxy headers
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    # Initialize database
    init_db(app)

    # Multi-tenant: load tenant context before each request
    from studio_quotes.middleware import load_tenant

    @app.before_request
    def before_request_handler():
        """Load tenant context for each request."""
        load_tenant()

    # Error Handlers
    from studio_quotes.exceptions import QuotationError

    @app.errorhandler(QuotationError)
    def handle_quotation_error(error):
        """Handle engine exceptions that escape a route."""
        app.logger.error(f"QuotationError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'success': False, 'error': 'Not Found', 'code': 'not_found'}), 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception on {request.path}: {error}")
        return jsonify({'success': False, 'error': 'Internal Server Error', 'code': 'internal_error'}), 500

    # Register blueprints
    from studio_quotes.blueprints.quotations import quotations_bp
    from studio_quotes.blueprints.metrics import metrics_bp

    app.register_blueprint(quotations_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from studio_quotes.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
