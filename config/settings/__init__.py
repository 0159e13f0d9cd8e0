# config/settings/__init__.py
# DJANGO_ENV=prod -> prod.py (PostgreSQL, strict CORS); anything else -> local.py
import os

env = os.getenv("DJANGO_ENV", "local").lower()

if env == "prod":
    from .prod import *  # noqa
else:
    from .local import *  # noqa
