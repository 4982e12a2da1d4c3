"""Test fixtures: in-memory DB, seeded categories and a SQL-backed store."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from phonedex.database import Base
from phonedex.models import Brand, Category
from phonedex.store.sql import SqlCatalogStore, seed_default_categories


@pytest.fixture()
def db():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


@pytest.fixture()
def categories(db) -> dict[str, int]:
    seed_default_categories(db)
    return {c.name: c.id for c in db.query(Category).all()}


@pytest.fixture()
def brands(db) -> dict[str, int]:
    ids = {}
    for name in ("Samsung", "OnePlus", "Xiaomi", "Apple"):
        brand = Brand(name=name, slug=name.lower())
        db.add(brand)
        db.flush()
        ids[name] = brand.id
    db.commit()
    return ids


@pytest.fixture()
def store(db, categories) -> SqlCatalogStore:
    return SqlCatalogStore(db)
