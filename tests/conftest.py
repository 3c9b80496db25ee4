"""
Configuración de pruebas
Base DuckDB en memoria, reloj fijo y app con servicios inyectados.
"""

import time
from datetime import date, datetime

import jwt
import pytest
from fastapi.testclient import TestClient

from comedor.app import create_app
from comedor.config.settings import Settings
from comedor.core.clock import FixedClock
from comedor.core.database import DatabaseManager
from comedor.schemas.menu import MenuCreateRequest
from comedor.services import build_services

TEST_SECRET = "test-secret-key"
TODAY = date(2026, 3, 5)
MENU_DATE = date(2026, 3, 10)


@pytest.fixture
def test_settings():
    """Configuración de pruebas"""
    return Settings(
        _env_file=None,
        database_url="duckdb://:memory:",
        jwt_secret_key=TEST_SECRET,
        jwt_audience="authenticated",
        day_close_enabled=False,
        api_title="Comedor API (Test)",
        debug=True,
    )


@pytest.fixture
def clock():
    """Hoy es 2026-03-05 a las 9:00 en UTC-5"""
    return FixedClock(datetime(2026, 3, 5, 9, 0))


@pytest.fixture
def test_db(clock):
    db = DatabaseManager(":memory:", clock)
    db.init_database()
    yield db
    db.close()


@pytest.fixture
def services(test_db, clock, test_settings):
    return build_services(test_db, clock, test_settings)


@pytest.fixture
def proteins(services):
    catalog = services.catalogs["protein_types"]
    return {
        "pollo": catalog.create("Pollo").id,
        "res": catalog.create("Res").id,
        "cerdo": catalog.create("Cerdo").id,
    }


@pytest.fixture
def side_dishes(services):
    catalog = services.catalogs["side_dishes"]
    return {
        "arroz": catalog.create("Arroz").id,
        "ensalada": catalog.create("Ensalada").id,
        "papa": catalog.create("Papa").id,
    }


@pytest.fixture
def soup(services):
    return services.catalogs["soups"].create("Sancocho").id


@pytest.fixture
def drink(services):
    return services.catalogs["drinks"].create("Limonada").id


@pytest.fixture
def employees(services):
    """Empleados habilitados en la lista blanca"""
    whitelist = services.whitelist
    return {
        "111": whitelist.create("111", "Ana Pérez"),
        "222": whitelist.create("222", "Luis Gómez"),
        "333": whitelist.create("333", "Marta Ruiz"),
    }


@pytest.fixture
def menu(services, proteins, side_dishes, soup, drink):
    """Menú del 2026-03-10 con {pollo, res}, por defecto pollo, acompañamientos arroz y ensalada"""
    return services.menus.create(MenuCreateRequest(
        date=MENU_DATE,
        soup_id=soup,
        drink_id=drink,
        default_protein_type_id=proteins["pollo"],
        protein_option_ids=[proteins["pollo"], proteins["res"]],
        side_option_ids=[side_dishes["arroz"], side_dishes["ensalada"]],
    ))


@pytest.fixture
def app_instance(test_settings, test_db, clock):
    return create_app(test_settings, test_db, clock)


@pytest.fixture
def client(app_instance):
    """Cliente de pruebas"""
    return TestClient(app_instance)


def make_token(roles=None, secret=TEST_SECRET, audience="authenticated", expires_in=3600):
    claims = {
        "sub": "admin-user-id",
        "email": "admin@comedor.test",
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "app_metadata": {"role": roles if roles is not None else "ADMIN"},
    }
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def admin_headers():
    """Cabeceras de administrador"""
    return {"Authorization": f"Bearer {make_token()}"}


@pytest.fixture
def user_headers():
    """Token válido sin rol de administrador"""
    return {"Authorization": f"Bearer {make_token(roles='USER')}"}
