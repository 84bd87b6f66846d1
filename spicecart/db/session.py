# spicecart/db/session.py
from sqlalchemy.orm import declarative_base

# Shared by the ORM models and Alembic; engines live in session_async.py.
Base = declarative_base()
