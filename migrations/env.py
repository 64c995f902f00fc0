import os
import sys
from logging.config import fileConfig
from sqlalchemy import engine_from_config, make_url
from sqlalchemy import pool
from alembic import context

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from count_engine.db.base import Base
import count_engine.models  # registers every table on Base.metadata
from count_engine.core.config import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def sync_database_url() -> str:
    """Alembic runs synchronously; drop the async driver from DATABASE_URL"""
    url = make_url(settings.DATABASE_URL)
    driver = url.drivername.split("+")[0]
    return url.set(drivername=driver).render_as_string(hide_password=False)


if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", sync_database_url())

target_metadata = Base.metadata


def _is_sqlite() -> bool:
    return make_url(config.get_main_option("sqlalchemy.url")).get_backend_name() == "sqlite"


def run_migrations_offline() -> None:
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    if settings.ENVIRONMENT.lower() == "production" and "downgrade" in sys.argv:
        raise RuntimeError("🚫 Downgrades are blocked in production!")

    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            # SQLite cannot ALTER constraints in place
            render_as_batch=_is_sqlite(),
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
