"""
Programador de menús
"""

import threading
from datetime import date

import pytest

from comedor.config.settings import Settings
from comedor.core.exceptions import (
    ConflictError,
    InvalidReferenceError,
    NotFoundError,
    ValidationError,
)
from comedor.schemas.menu import MenuCreateRequest, MenuUpdateRequest

from .conftest import MENU_DATE, TODAY


class TestMenuCreate:
    """Creación y clonado"""

    def test_create_menu_success(self, services, menu, proteins, side_dishes, soup):
        """Deriva el día de la semana y carga los nombres relacionados"""
        assert menu.date == MENU_DATE
        assert menu.day_of_week == "MAR"
        assert menu.soup.id == soup
        assert menu.soup.name == "Sancocho"
        assert menu.default_protein_type.name == "Pollo"
        assert set(menu.protein_option_ids) == {proteins["pollo"], proteins["res"]}
        assert set(menu.side_option_ids) == {side_dishes["arroz"], side_dishes["ensalada"]}

    def test_create_menu_for_today_is_allowed(self, services):
        menu = services.menus.create(MenuCreateRequest(date=TODAY))
        assert menu.date == TODAY

    def test_create_menu_in_past_fails(self, services):
        with pytest.raises(ValidationError):
            services.menus.create(MenuCreateRequest(date=date(2026, 3, 4)))

    def test_default_protein_falls_back(self, services):
        """Sin proteína por defecto se usa la de respaldo sembrada en el esquema"""
        menu = services.menus.create(MenuCreateRequest(date=date(2026, 3, 20)))
        assert menu.default_protein_type_id == Settings().default_protein_type_id
        assert menu.default_protein_type.name == "Proteína del día"

    def test_duplicate_date_conflicts(self, services, menu):
        """Una sola fecha por menú"""
        with pytest.raises(ConflictError):
            services.menus.create(MenuCreateRequest(date=MENU_DATE))

    def test_invalid_reference_fails(self, services, proteins):
        with pytest.raises(InvalidReferenceError) as exc:
            services.menus.create(MenuCreateRequest(
                date=date(2026, 3, 11),
                soup_id="no-existe",
                protein_option_ids=[proteins["pollo"], "tampoco"],
            ))
        missing = exc.value.details["missing"]
        assert missing["soup_id"] == ["no-existe"]
        assert missing["protein_option_ids"] == ["tampoco"]
        # nada quedó a medias
        with pytest.raises(NotFoundError):
            services.menus.find_by_date("2026-03-11")

    def test_duplicate_option_conflicts(self, services, proteins):
        with pytest.raises(ConflictError):
            services.menus.create(MenuCreateRequest(
                date=date(2026, 3, 11),
                protein_option_ids=[proteins["pollo"], proteins["pollo"]],
            ))

    def test_clone_copies_fields_and_options(self, services, menu):
        clone = services.menus.clone(menu.id, date(2026, 3, 17))
        assert clone.id != menu.id
        assert clone.date == date(2026, 3, 17)
        assert clone.soup_id == menu.soup_id
        assert clone.drink_id == menu.drink_id
        assert clone.default_protein_type_id == menu.default_protein_type_id
        assert set(clone.protein_option_ids) == set(menu.protein_option_ids)
        assert set(clone.side_option_ids) == set(menu.side_option_ids)

    def test_clone_missing_source(self, services):
        with pytest.raises(NotFoundError):
            services.menus.clone("no-existe", date(2026, 3, 17))

    def test_clone_to_past_or_taken_date(self, services, menu):
        with pytest.raises(ValidationError):
            services.menus.clone(menu.id, date(2026, 3, 1))
        with pytest.raises(ConflictError):
            services.menus.clone(menu.id, MENU_DATE)


class TestMenuUpdate:
    """Actualización parcial y reemplazo de conjuntos"""

    def test_update_scalar_only(self, services, menu, proteins):
        """Los conjuntos ausentes no se tocan"""
        updated = services.menus.update(
            menu.id, MenuUpdateRequest(default_protein_type_id=proteins["res"])
        )
        assert updated.default_protein_type_id == proteins["res"]
        assert set(updated.protein_option_ids) == set(menu.protein_option_ids)

    def test_update_clears_soup_with_explicit_null(self, services, menu):
        updated = services.menus.update(menu.id, MenuUpdateRequest(soup_id=None))
        assert updated.soup_id is None
        assert updated.soup is None

    def test_replace_option_set(self, services, menu, proteins, side_dishes):
        """Reemplazo total, no mezcla; se pueden conservar ids existentes"""
        updated = services.menus.update(menu.id, MenuUpdateRequest(
            protein_option_ids=[proteins["res"], proteins["cerdo"]],
            side_option_ids=[side_dishes["papa"]],
        ))
        assert set(updated.protein_option_ids) == {proteins["res"], proteins["cerdo"]}
        assert updated.side_option_ids == [side_dishes["papa"]]

    def test_replace_with_empty_set(self, services, menu):
        updated = services.menus.update(menu.id, MenuUpdateRequest(protein_option_ids=[]))
        assert updated.protein_option_ids == []
        assert len(updated.side_options) == 2

    def test_update_invalid_reference_rolls_back(self, services, menu, proteins):
        """Un id inválido deja el menú como estaba"""
        with pytest.raises(InvalidReferenceError):
            services.menus.update(menu.id, MenuUpdateRequest(
                soup_id=None,
                protein_option_ids=[proteins["cerdo"], "no-existe"],
            ))
        current = services.menus.find_one(menu.id)
        assert current.soup_id == menu.soup_id
        assert set(current.protein_option_ids) == set(menu.protein_option_ids)

    def test_update_duplicate_options_conflict(self, services, menu, side_dishes):
        with pytest.raises(ConflictError):
            services.menus.update(menu.id, MenuUpdateRequest(
                side_option_ids=[side_dishes["papa"], side_dishes["papa"]]
            ))

    def test_update_missing_menu(self, services):
        with pytest.raises(NotFoundError):
            services.menus.update("no-existe", MenuUpdateRequest(soup_id=None))

    def test_update_rejects_null_option_list(self):
        with pytest.raises(ValueError):
            MenuUpdateRequest(protein_option_ids=None)

    def test_update_status(self, services, menu):
        assert services.menus.update_status(menu.id, "PUBLICADO").status == "PUBLICADO"
        with pytest.raises(NotFoundError):
            services.menus.update_status("no-existe", "PUBLICADO")

    def test_menu_delete_waits_for_update(self, services, test_db, menu, proteins, monkeypatch):
        """Un borrado concurrente espera a que termine el reemplazo; no quedan opciones huérfanas"""
        require = services.menus._require_menu
        race = {}

        def require_then_race(conn, menu_id):
            require(conn, menu_id)
            if race:
                return
            race["thread"] =threading.Thread(target=services.menus.delete, args=(menu_id,))
            race["thread"].start()
            race["thread"].join(timeout=0.2)
            race["blocked"] = race["thread"].is_alive()

        monkeypatch.setattr(services.menus, "_require_menu", require_then_race)
        monkeypatch.setattr(services.menus, "find_one", lambda menu_id: None)
        services.menus.update(menu.id, MenuUpdateRequest(protein_option_ids=[proteins["cerdo"]]))
        race["thread"].join()

        assert race["blocked"] is True
        assert test_db.fetch_value(
            "SELECT COUNT(*) FROM menu_protein_options WHERE menu_id = ?", [menu.id]
        ) == 0
        assert test_db.fetch_value("SELECT COUNT(*) FROM menus WHERE id = ?", [menu.id]) == 0


class TestMenuReadAndDelete:
    """Consultas y borrado"""

    def test_find_by_date(self, services, menu):
        assert services.menus.find_by_date("2026-03-10").id == menu.id
        with pytest.raises(NotFoundError):
            services.menus.find_by_date("2026-03-11")

    def test_find_by_date_for_user(self, services, menu, employees, proteins):
        reservation = services.reservations.create("111", menu.id, proteins["res"])
        mine = services.menus.find_by_date_for_user("2026-03-10", "111")
        assert mine.has_reservation is True
        assert mine.reservation_id == reservation.id
        other = services.menus.find_by_date_for_user("2026-03-10", "222")
        assert other.has_reservation is False
        assert other.reservation_id is None

    def test_find_all_orders_by_date_desc(self, services, menu):
        services.menus.create(MenuCreateRequest(date=date(2026, 3, 12)))
        services.menus.create(MenuCreateRequest(date=date(2026, 3, 6)))
        dates = [m.date for m in services.menus.find_all()]
        assert dates == [date(2026, 3, 12), MENU_DATE, date(2026, 3, 6)]
        assert len(services.menus.find_all(skip=1, take=1)) == 1

    def test_find_all_take_limit(self, services):
        with pytest.raises(ValidationError):
            services.menus.find_all(take=201)

    def test_delete_menu(self, services, menu):
        result = services.menus.delete(menu.id)
        assert result.deleted is True
        with pytest.raises(NotFoundError):
            services.menus.find_one(menu.id)
        with pytest.raises(NotFoundError):
            services.menus.delete(menu.id)

    def test_delete_menu_with_reservations_conflicts(self, services, menu, employees, proteins):
        services.reservations.create("111", menu.id, proteins["res"])
        with pytest.raises(ConflictError):
            services.menus.delete(menu.id)
        assert services.menus.find_one(menu.id).id == menu.id

    def test_changes_are_audited(self, services, menu):
        services.menus.update_status(menu.id, "PUBLICADO")
        actions = [entry.action for entry in services.logs.find_all().logs]
        assert "create_menu" in actions
        assert "update_menu_status" in actions
