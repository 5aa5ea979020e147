from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from dotenv import load_dotenv
from flask_migrate import Migrate
from flask_compress import Compress

# Load environment variables early so config is available for blueprint creation
load_dotenv()

from tutorhub.config import config

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
compress = Compress()


def create_app() -> Flask:
    """
    Application factory for the Flask app.
    Loads environment variables, configures the database,
    and registers blueprints.
    """
    # Re-initialize config to ensure latest .env values are loaded
    from tutorhub.config import Config
    app_config = Config()
    app_config.validate()

    app = Flask(__name__)

    app.config["SECRET_KEY"] = app_config.SECRET_KEY
    app.config["SQLALCHEMY_DATABASE_URI"] = app_config.SQLALCHEMY_DATABASE_URI
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = app_config.SQLALCHEMY_TRACK_MODIFICATIONS
    app.config["SQLALCHEMY_ECHO"] = app_config.SQLALCHEMY_ECHO
    if app_config.is_mysql:
        # Connection pooling only makes sense for the MySQL server backend
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = {
            "pool_size": 10,
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "max_overflow": 20,
            "connect_args": {
                "connect_timeout": 5,
                "read_timeout": 10,
                "write_timeout": 10,
                "charset": "utf8mb4",
            }
        }

    app.config["DB_RETRY_ATTEMPTS"] = app_config.DB_RETRY_ATTEMPTS
    app.config["DB_RETRY_DELAY_SECONDS"] = app_config.DB_RETRY_DELAY_SECONDS
    app.config["DEFAULT_PAGE_SIZE"] = app_config.DEFAULT_PAGE_SIZE
    app.config["MAX_PAGE_SIZE"] = app_config.MAX_PAGE_SIZE

    app.config["COMPRESS_MIMETYPES"] = ['application/json']
    app.config["COMPRESS_LEVEL"] = 6
    app.config["COMPRESS_MIN_SIZE"] = 500
    app.config["SESSION_COOKIE_SECURE"] = app_config.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = app_config.SESSION_COOKIE_HTTPONLY
    app.config["SESSION_COOKIE_SAMESITE"] = app_config.SESSION_COOKIE_SAMESITE

    app.logger.setLevel(app_config.LOG_LEVEL)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    compress.init_app(app)

    from tutorhub.security import init_security
    init_security(app, login_manager)

    from tutorhub.common.errors import register_error_handlers
    register_error_handlers(app)

    @login_manager.user_loader
    def load_user(user_id):
        from tutorhub.auth.models import User
        try:
            return db.session.get(User, int(user_id))
        except (ValueError, TypeError):
            return None

    # Register blueprints
    from tutorhub.auth import auth_bp
    app.register_blueprint(auth_bp)

    from tutorhub.quiz import quiz_bp
    app.register_blueprint(quiz_bp)

    from tutorhub.auth.cli import create_user_command
    app.cli.add_command(create_user_command)

    # Create tables if they do not exist
    with app.app_context():
        from tutorhub.auth import models as auth_models  # noqa: F401
        from tutorhub.directory import models as directory_models  # noqa: F401
        from tutorhub.quiz import models as quiz_models  # noqa: F401
        db.create_all()

    app.logger.info(f"Application created (database: {app_config.SQLALCHEMY_DATABASE_URI.split('://')[0]})")
    return app
