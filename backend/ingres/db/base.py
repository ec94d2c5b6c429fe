from sqlalchemy.engine import Engine
from ingres.models.base import Base


def _import_models() -> None:
    """Import all models so their metadata is registered on Base."""
    import ingres.models.location        # noqa: F401
    import ingres.models.scrape_cache    # noqa: F401
    import ingres.models.audit           # noqa: F401


def create_all(engine: Engine) -> None:
    """Create all tables for the registered models (SYNC)."""
    _import_models()
    Base.metadata.create_all(bind=engine)
