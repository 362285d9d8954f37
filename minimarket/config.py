import os
from datetime import timedelta


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    ENV = os.getenv("ENV", os.getenv("FLASK_ENV", "development"))
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    # guests send this header instead of a bearer token
    SESSION_HEADER = "X-Session-Id"

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'minimarket.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    ENV = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-enough-length-for-hs256"
