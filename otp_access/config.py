import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    BASE_URL = os.environ.get('BASE_URL', 'http://localhost:5000')
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

    # Media pointers: RS256 when a key pair is present, HS256 over SECRET_KEY otherwise
    JWT_PRIVATE_KEY = os.environ.get('JWT_PRIVATE_KEY')
    JWT_PUBLIC_KEY = os.environ.get('JWT_PUBLIC_KEY')
    MEDIA_URL_TTL_SECONDS = int(os.environ.get('MEDIA_URL_TTL_SECONDS', '7200'))
    MEDIA_ROOT = os.environ.get('MEDIA_ROOT', 'media')

    # Object storage (s3:// asset refs)
    AWS_REGION = os.environ.get('AWS_REGION', 'eu-central-1')
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
    S3_ENDPOINT_URL = os.environ.get('S3_ENDPOINT_URL')

    # Code generation
    CODE_PREFIXES = {'knowledge': 'ZW', 'infolink': 'PL'}
    CODE_MAX_ATTEMPTS = int(os.environ.get('CODE_MAX_ATTEMPTS', '10'))
    DEFAULT_VALIDITY_HOURS = {'knowledge': 24, 'infolink': 24}
    DEFAULT_MAX_SESSIONS = {'knowledge': 3, 'infolink': 1}
    MAX_VALIDITY_HOURS = int(os.environ.get('MAX_VALIDITY_HOURS', str(24 * 365)))
    MAX_SESSIONS_LIMIT = int(os.environ.get('MAX_SESSIONS_LIMIT', '10000'))

    # Redemption
    REDEEM_RATE_LIMIT = int(os.environ.get('REDEEM_RATE_LIMIT', '20'))
    REDEEM_RATE_WINDOW = int(os.environ.get('REDEEM_RATE_WINDOW', '60'))
    ENFORCE_DEVICE_BINDING = os.environ.get('ENFORCE_DEVICE_BINDING', '0').lower() in ('1', 'true', 'yes')
    CASCADE_INVALIDATION = os.environ.get('CASCADE_INVALIDATION', '0').lower() in ('1', 'true', 'yes')

    RETENTION_HOURS = int(os.environ.get('RETENTION_HOURS', '720'))

    def __init__(self):
        # Optional fallbacks to support Secret Files on Render (/etc/secrets)
        if not self.JWT_PRIVATE_KEY:
            self.JWT_PRIVATE_KEY = _read_secret('/etc/secrets/jwt.key', 'jwt.key')
        if not self.JWT_PUBLIC_KEY:
            self.JWT_PUBLIC_KEY = _read_secret('/etc/secrets/jwt.pub', 'jwt.pub')
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret('/etc/secrets/secret_key') or self.SECRET_KEY


def _read_secret(*paths):
    for p in paths:
        try:
            with open(p, 'r') as f:
                return f.read().strip()
        except OSError:
            continue
    return None
