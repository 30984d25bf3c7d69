"""
Pytest configuration and fixtures for backend tests.
"""

import os

# The app lifespan opens the configured database; keep it off disk during tests.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from shared.infrastructure.db import get_db
from shared.utils.schemas import (
    IngredientCreate,
    LotLineInput,
    RecipeLineInput,
    SplitOutputInput,
)
from trace_api.main import app
from trace_api.models import Allergen, Base
from trace_api.seed import seed
from trace_api.services.domain import IngredientService, LotService, RecipeService


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PRODUCTION_DAY = date(2024, 3, 1)
SUPPLIER_EXPIRY = date(2024, 6, 1)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def seeded(db_session):
    """Session with allergens, units and recipe types loaded."""
    seed(db_session)
    return db_session


@pytest.fixture(scope="function")
def client(seeded):
    """
    Create a test client with database session override.
    """
    def override_get_db():
        try:
            yield seeded
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# Domain helpers
# =============================================================================


@pytest.fixture
def allergen_id(seeded):
    """Look up a seeded allergen id by name."""
    def lookup(name):
        return seeded.scalar(select(Allergen.id).where(Allergen.name == name))
    return lookup


@pytest.fixture
def make_ingredient(seeded, allergen_id):
    """Create an ingredient with allergens given by name."""
    service = IngredientService(seeded)

    def create(name, allergens=(), care=None):
        return service.create_ingredient(
            IngredientCreate(
                name=name,
                care_instructions=care,
                allergen_ids=[allergen_id(a) for a in allergens],
            )
        )
    return create


@pytest.fixture
def recipe_service(seeded):
    return RecipeService(seeded)


@pytest.fixture
def lot_service(seeded):
    return LotService(seeded)


@pytest.fixture
def salmon(make_ingredient):
    return make_ingredient("Salmón entero", ["Pescado"], care="Conservar entre 0 y 4 ºC")


@pytest.fixture
def salmon_split(recipe_service, salmon):
    """Whole salmon portioned into loin (6) and trim (3), 1 kg left over."""
    return recipe_service.create_split_recipe(
        origin_ingredient_id=salmon.id,
        initial_weight=10.0,
        outputs=[
            SplitOutputInput(name="Lomo de salmón", quantity=6.0),
            SplitOutputInput(name="Recortes de salmón", quantity=3.0),
        ],
        description="Despiece de salmón",
        shelf_life_days=3,
    )


@pytest.fixture
def bread_recipe(recipe_service, make_ingredient):
    """Combine recipe: 10 kg reference, flour 6, egg 2, water 2, salt unspecified."""
    flour = make_ingredient("Harina", ["Gluten"])
    egg = make_ingredient("Huevo", ["Huevos"])
    water = make_ingredient("Agua")
    salt = make_ingredient("Sal")
    return recipe_service.create_combine_recipe(
        name="Masa de pan",
        description="Conservar en lugar fresco y seco",
        total_weight=10.0,
        shelf_life_days=5,
        lines=[
            RecipeLineInput(ingredient_id=flour.id, quantity=6.0),
            RecipeLineInput(ingredient_id=egg.id, quantity=2.0),
            RecipeLineInput(ingredient_id=water.id, quantity=2.0),
            RecipeLineInput(ingredient_id=salt.id, quantity=0.0),
        ],
    )


def supplier_lines(recipe, **overrides):
    """Lot entries with supplier data for every line of a recipe output."""
    entries = []
    for line in recipe.lines:
        data = {"supplier_lot": f"PROV-{line.ingredient_id}", "expiry_date": SUPPLIER_EXPIRY}
        data.update(overrides)
        entries.append(LotLineInput(ingredient_id=line.ingredient_id, **data))
    return entries


def dump_tables(session):
    """Every row of every table, in a stable order."""
    return {
        table.name: [
            tuple(row)
            for row in session.execute(table.select().order_by(*table.columns))
        ]
        for table in Base.metadata.sorted_tables
    }
