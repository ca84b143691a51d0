from datetime import timedelta

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_mail import Mail
from flask_migrate import Migrate
from dotenv import load_dotenv
from flask_jwt_extended import JWTManager
from flask_cors import CORS

load_dotenv()

db = SQLAlchemy()
mail = Mail()
migrate = Migrate()
jwt = JWTManager()


def create_app(test_config=None):
    """Application factory; ``test_config`` overrides the environment-driven Config."""
    app = Flask(__name__)

    from cms_auth.config import Config
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    if not app.config.get("JWT_SECRET_KEY"):
        raise RuntimeError("JWT_SECRET_KEY is not configured; refusing to start")
    if not test_config or "JWT_COOKIE_SECURE" not in test_config:
        app.config["JWT_COOKIE_SECURE"] = app.config["APP_ENV"] == "production"
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=app.config["SESSION_TOKEN_TTL_DAYS"])

    from cms_auth.logs import configure_logging
    configure_logging(app)

    from cms_auth import models  # noqa: F401  registers tables for Flask-Migrate

    db.init_app(app)
    mail.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    from cms_auth import errors
    errors.init_app(app)

    from cms_auth.services import build_auth_flow
    app.extensions["auth_flow"] = build_auth_flow(app)

    from cms_auth.routes import auth_bp, user_bp
    app.register_blueprint(auth_bp, url_prefix='/api/users')
    app.register_blueprint(user_bp, url_prefix='/api/users')

    CORS(app)

    return app
