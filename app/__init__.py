"""Flask application factory."""
import atexit
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from app.services.tenant_store_registry import TenantStoreRegistry


def create_app(config_object='config.Config', config_overrides=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize Sentry for error tracking in production
    if app.config.get('SENTRY_DSN') and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=app.config['SENTRY_DSN'],
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,  # 10% of transactions for performance monitoring
            environment=app.config.get('ENV', 'production'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Tenant store registry: one per process, released on shutdown
    stores = TenantStoreRegistry.from_config(app.config)
    app.extensions['tenant_stores'] = stores
    atexit.register(stores.release_all)
    app.logger.info(
        f"[STORES] Registry ready: {app.config['ORGANIZATIONS_DIR']} "
        f"(capacity={stores.capacity}, idle_timeout={stores.idle_timeout}s)"
    )

    # Setup Prometheus metrics instrumentation
    from app.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Production: Enable ProxyFix for HTTPS behind Nginx reverse proxy
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=1,      # Trust X-Forwarded-For with 1 proxy
            x_proto=1,    # Trust X-Forwarded-Proto
            x_host=1,     # Trust X-Forwarded-Host
            x_port=1,     # Trust X-Forwarded-Port
            x_prefix=0    # No prefix (not behind a URL prefix)
        )

    # Multi-Tenant: Load actor and organization context before each request
    from app.middleware import load_request_context, sweep_idle_stores

    @app.before_request
    def before_request_handler():
        """Load actor and organization context for each request."""
        load_request_context()

    app.teardown_request(sweep_idle_stores)

    # Error Handlers
    from app.exceptions import AppError

    @app.errorhandler(AppError)
    def handle_app_error(error):
        """Handle custom application exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"AppError [{error.status_code}]: {error.message}")
        else:
            app.logger.warning(f"AppError [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found'}), 404

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        import traceback
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from app.blueprints.proof_of_life import proof_of_life_bp
    from app.blueprints.recadastration import recadastration_bp
    from app.blueprints.admin import admin_bp
    from app.blueprints.metrics import metrics_bp

    app.register_blueprint(proof_of_life_bp)
    app.register_blueprint(recadastration_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(metrics_bp)

    # Register CLI commands
    from app.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
