import logging
from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix
from dotenv import load_dotenv
from .config import Config
from .models import db
from flask_migrate import Migrate

load_dotenv()


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku) so rate limits see the client IP
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    with app.app_context():
        db.create_all()

    from .routes_api import bp as api_bp
    from .routes_issuer import bp as issuer_bp
    from .services.outcomes import StoreUnavailable
    from .cli import register_cli
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(issuer_bp, url_prefix='/issuer')
    register_cli(app)

    @app.errorhandler(StoreUnavailable)
    def store_unavailable(e):
        app.logger.error('store unavailable: %s', e)
        return jsonify({'error': 'store_unavailable'}), 503

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
