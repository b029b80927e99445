import os
import logging
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from dotenv import load_dotenv

from .config import CONFIGS, ProdConfig

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_name: str | None = None, **overrides) -> Flask:
    """Application factory with environment based configuration.

    Keyword ``overrides`` are applied on top of the selected config class
    before any extension is initialised.
    """
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    os.makedirs(app.instance_path, exist_ok=True)

    # Pick configuration
    env = config_name or os.getenv('ENV') or os.getenv('FLASK_ENV') or 'production'
    app.config.from_object(CONFIGS.get(env, ProdConfig))
    app.config.update(overrides)

    # Initialise logging
    level = logging.DEBUG if app.debug else app.config.get('LOG_LEVEL', 'INFO')
    logging.basicConfig(level=level)

    db.init_app(app)
    migrate.init_app(app, db)

    # Ensure models loaded so tables can be created
    from quotedesk import models  # noqa
    with app.app_context():
        db.create_all()

    from quotedesk.errors import register_error_handlers
    from quotedesk.ratelimit import RateLimiter

    register_error_handlers(app)
    app.extensions['pdf_limiter'] = RateLimiter(
        app.config['PDF_RATE_LIMIT'], app.config['PDF_RATE_WINDOW']
    )

    from quotedesk.customers.routes import bp as customers_bp
    from quotedesk.quotations.routes import bp as quotations_bp
    from quotedesk.pdf.routes import bp as pdf_bp
    from quotedesk.cli import quotations_cli

    app.register_blueprint(customers_bp, url_prefix='/api/customers')
    app.register_blueprint(quotations_bp, url_prefix='/api/quotations')
    app.register_blueprint(pdf_bp, url_prefix='/api')
    app.cli.add_command(quotations_cli)

    return app
