import logging

from flask import Flask

from linksaver.api import api_bp
from linksaver.auth import auth_bp
from linksaver.config import Config
from linksaver.errors import register_error_handlers
from linksaver.extensions import db, login_manager, migrate


def configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(api_bp)
    register_error_handlers(app)

    @app.cli.command("init-db")
    def init_db_command():
        db.create_all()
        print("Initialized LinkSaver database.")

    with app.app_context():
        db.create_all()

    return app
