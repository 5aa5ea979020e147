"""
Configuration module for the application.
All configuration values are read from environment variables.
Values that have a sensible development default fall back to it.
"""
import os
import secrets
import warnings


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        """Initialize configuration from environment variables."""
        # Flask Configuration
        self.SECRET_KEY: str = os.getenv("SECRET_KEY", "")
        self.FLASK_ENV: str = os.getenv("FLASK_ENV", "")
        self.FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "").lower() == "true"
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Generate a development SECRET_KEY if not set and in development mode
        if not self.SECRET_KEY and self.FLASK_ENV != "production":
            self.SECRET_KEY = secrets.token_urlsafe(32)
            warnings.warn(
                "SECRET_KEY not set. Generated a temporary key for development. "
                "Set SECRET_KEY in your .env file for production!",
                UserWarning
            )

        # Database Configuration
        # DATABASE_URL wins over the individual MySQL settings (used for SQLite in tests)
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "")
        self.DB_USER: str = os.getenv("DB_USER", "")
        self.DB_PASSWORD: str = os.getenv("DB_PASSWORD", "")
        self.DB_HOST: str = os.getenv("DB_HOST", "")
        self.DB_PORT: str = os.getenv("DB_PORT", "")
        self.DB_NAME: str = os.getenv("DB_NAME", "")

        # Retry policy for read lookups that may hit a dropped connection
        self.DB_RETRY_ATTEMPTS: int = int(os.getenv("DB_RETRY_ATTEMPTS", "3"))
        self.DB_RETRY_DELAY_SECONDS: float = float(os.getenv("DB_RETRY_DELAY_SECONDS", "1.0"))

        # API Configuration
        self.AUTH_API_PREFIX: str = os.getenv("AUTH_API_PREFIX", "/api/auth")
        self.QUIZ_API_PREFIX: str = os.getenv("QUIZ_API_PREFIX", "/api/quizzes")

        # Pagination
        self.DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
        self.MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

        # Password hashing cost (passlib bcrypt, minimum 4)
        self.BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

        # Session Configuration
        session_secure = os.getenv("SESSION_COOKIE_SECURE", "")
        self.SESSION_COOKIE_SECURE: bool = session_secure.lower() == "true" if session_secure else False
        session_httponly = os.getenv("SESSION_COOKIE_HTTPONLY", "")
        self.SESSION_COOKIE_HTTPONLY: bool = session_httponly.lower() != "false"
        self.SESSION_COOKIE_SAMESITE: str = os.getenv("SESSION_COOKIE_SAMESITE", "Lax")

        # SQLAlchemy Configuration
        self.SQLALCHEMY_TRACK_MODIFICATIONS: bool = False
        sqlalchemy_echo = os.getenv("SQLALCHEMY_ECHO", "")
        self.SQLALCHEMY_ECHO: bool = sqlalchemy_echo.lower() == "true" if sqlalchemy_echo else False

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        """Construct database URI from environment variables."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"mysql+pymysql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}?charset=utf8mb4"
        )

    @property
    def is_mysql(self) -> bool:
        return self.SQLALCHEMY_DATABASE_URI.startswith("mysql")

    def validate(self) -> None:
        """
        Validate required configuration values.
        Only enforces SECRET_KEY in production environment.
        """
        if not self.SECRET_KEY and self.FLASK_ENV == "production":
            raise ValueError(
                "SECRET_KEY environment variable is required in production. "
                "Set it in your .env file or environment variables."
            )
        if self.DB_RETRY_ATTEMPTS < 1:
            raise ValueError("DB_RETRY_ATTEMPTS must be at least 1")


# Global config instance - will be re-initialized after load_dotenv()
config = Config()
