# qrcheckin/extensions.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from qrcheckin.services.token_service import TokenCodec


# Initialize extensions
db            = SQLAlchemy()
migrate       = Migrate()
login_manager = LoginManager()
token_codec   = TokenCodec()        # key derived once in init_app()


# Rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["2000 per day", "500 per hour"],
    storage_uri="memory://"
)
