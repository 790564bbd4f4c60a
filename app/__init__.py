# app/__init__.py

import logging
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_cors import CORS
from .config import Config

db = SQLAlchemy()
migrate = Migrate()

def create_app(config_class=Config):
    # We are NOT setting static_folder or static_url_path
    # The dashboard frontend is served separately.
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configure logging to show INFO level messages
    app.logger.setLevel(logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    formatter = logging.Formatter('[%(asctime)s] %(levelname)s: %(message)s')
    handler.setFormatter(formatter)
    app.logger.addHandler(handler)

    db.init_app(app)
    migrate.init_app(app, db)

    # The dashboard runs on its own origin, so the API must allow it explicitly.
    CORS(app, supports_credentials=True, origins=app.config['CORS_ORIGINS'])

    # --- REGISTER BLUEPRINTS ---
    from .api.health import bp as health_bp
    from .api.commissions import bp as commissions_bp
    from .api.parameters import bp as parameters_bp
    from .api.results import bp as results_bp
    from .api.variables import bp as variables_bp

    # Register them all with the '/api' prefix
    app.register_blueprint(health_bp, url_prefix='/api')
    app.register_blueprint(commissions_bp, url_prefix='/api')
    app.register_blueprint(parameters_bp, url_prefix='/api')
    app.register_blueprint(results_bp, url_prefix='/api')
    app.register_blueprint(variables_bp, url_prefix='/api')

    with app.app_context():
        from . import models

    return app
