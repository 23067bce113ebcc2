"""Schema management for the SQLAlchemy-backed providers of the payments domain.

The memory provider used in development and tests needs no schema, so only
providers configured for sqlite or postgresql are touched.
"""

from collections.abc import Iterator

from protean.domain import Domain
from sqlalchemy import create_engine, inspect

from payments.utils.logging import get_logger

logger = get_logger(__name__)

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain) -> Iterator:
    for provider in domain.providers.values():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield provider


def _register_models(domain: Domain, provider) -> list[str]:
    """Build the SQLAlchemy model of every aggregate and entity stored in ``provider``.

    Models are created lazily on first DAO access, so each repository's DAO
    is touched before the provider's metadata is used.
    """
    names = []
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018
            names.append(record.cls.__name__)
    return names


def setup_db(domain: Domain) -> None:
    """Create the tables for transactions, items, products, customers and deliveries."""
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            models = _register_models(domain, provider)
            provider._metadata.create_all(engine)
            logger.info(
                "database_schema_created",
                provider=provider.name,
                models=models,
                tables=sorted(inspect(engine).get_table_names()),
            )
            engine.dispose()


def drop_db(domain: Domain) -> None:
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.drop_all(engine)
            logger.info("database_schema_dropped", provider=provider.name)
            engine.dispose()
