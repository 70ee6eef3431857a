# Overview: Flask extension instances for database, migrations, and read-side caching.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .cache import MemoryCache

db = SQLAlchemy()
migrate = Migrate()
cache = MemoryCache()
