from __future__ import annotations
import os
import sys
from logging.config import fileConfig
from alembic import context
from sqlalchemy import create_engine, pool

# backend/ on sys.path so the ERP models import without installing the package
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from app.models.authz import Base  # noqa: E402
from app.models import audit, company, product, purchase_order, shipment, invoice, packing_list, proforma, work_sheet  # noqa: E402,F401

alembic_cfg = context.config
if alembic_cfg.config_file_name is not None:
    fileConfig(alembic_cfg.config_file_name)

DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
target_metadata = Base.metadata


def _configure(**kwargs):
    # SQLite needs batch mode to alter tables (invoice revision columns, override flags)
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=DATABASE_URL.startswith('sqlite'),
        **kwargs,
    )


def run_offline():
    _configure(url=DATABASE_URL, literal_binds=True, dialect_opts={'paramstyle': 'named'})
    with context.begin_transaction():
        context.run_migrations()


def run_online():
    engine = create_engine(DATABASE_URL, poolclass=pool.NullPool, future=True)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
