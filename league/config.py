import os


def _wallet_list(value: str) -> frozenset:
    return frozenset(w.strip() for w in value.split(',') if w.strip())


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-prod')

    # Database
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///fnfantasy.db')
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Redis (empty string disables notifications fan-out)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379')

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Wallets allowed to delete any team and edit the bracket
    ADMIN_WALLETS = _wallet_list(os.getenv('ADMIN_WALLETS', ''))

    # Identity
    REQUIRE_WALLET_SIGNATURE = os.getenv('REQUIRE_WALLET_SIGNATURE', 'true').lower() == 'true'
    AUTH_TOKEN_TTL = int(os.getenv('AUTH_TOKEN_TTL', str(7 * 24 * 3600)))
    AUTH_CHALLENGE_TTL = int(os.getenv('AUTH_CHALLENGE_TTL', '300'))

    # Uploads
    MAX_BANNER_BYTES = int(os.getenv('MAX_BANNER_BYTES', str(2 * 1024 * 1024)))

    # League rules
    MAX_TEAMS_PER_CREATOR = 5
    MIN_TEAM_MEMBERS = 5
    MAX_TEAM_MEMBERS = 10
    MAX_TOURNAMENT_TEAMS = 8


class DevelopmentConfig(Config):
    DEBUG = True


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    REDIS_URL = ''
    REQUIRE_WALLET_SIGNATURE = True


class ProductionConfig(Config):
    DEBUG = False


config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig
}
