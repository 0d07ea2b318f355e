import os
from logging.config import fileConfig

from sqlalchemy import create_engine, pool
from alembic import context

from dailyquiz.models.base import Base
from dailyquiz.models import game, question, schedule  # noqa: F401  every model module used in migrations


# Alembic Config
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)


target_metadata = Base.metadata


# ALEMBIC_DATABASE_URL wins over PG_DSN; migrations run on the sync driver
def get_url():
    url = os.getenv("ALEMBIC_DATABASE_URL")
    if not url:
        url = os.getenv("PG_DSN")
    if not url:
        raise RuntimeError("ALEMBIC_DATABASE_URL or PG_DSN must be set")
    return url.replace("postgresql+asyncpg://", "postgresql://", 1)


def run_migrations_offline():
    url = get_url()
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    connectable = create_engine(
        get_url(),
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
