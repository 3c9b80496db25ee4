"""
Motor de reservas
"""

import threading
from datetime import date, datetime

import pytest

from comedor.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from comedor.models.reservation import ReservationStatus
from comedor.schemas.menu import MenuCreateRequest, MenuUpdateRequest

from .conftest import MENU_DATE


def _mark(test_db, reservation_id, status):
    with test_db.transaction() as conn:
        conn.execute("UPDATE reservations SET status = ? WHERE id = ?", [status, reservation_id])


def _start_blocked(action):
    """Lanza `action` en otro hilo; devuelve el hilo, sus errores y si quedó esperando"""
    errors = []

    def run():
        try:
            action()
        except Exception as e:
            errors.append(e)

    thread = threading.Thread(target=run)
    thread.start()
    thread.join(timeout=0.2)
    return thread, errors, thread.is_alive()


class TestReservationCreate:
    """Creación con regla de corte"""

    def test_future_date_keeps_chosen_protein(self, services, menu, employees, proteins):
        """Hoy 2026-03-05, menú 2026-03-10: se respeta la elección"""
        reservation = services.reservations.create("111", menu.id, proteins["res"])
        assert reservation.status == ReservationStatus.RESERVADA
        assert reservation.protein_type_id == proteins["res"]
        assert reservation.protein_type.name == "Res"
        assert reservation.cc == "111"
        assert reservation.name == "Ana Pérez"
        assert reservation.whitelist_entry_id == employees["111"].id
        assert reservation.menu.date == MENU_DATE

    def test_same_day_forces_default_protein(self, services, menu, employees, proteins, clock):
        """El mismo día no se rechaza: se asigna la proteína por defecto"""
        clock.set(datetime(2026, 3, 10, 8, 0))
        reservation = services.reservations.create("222", menu.id, proteins["res"])
        assert reservation.status == ReservationStatus.AUTO_ASIGNADA
        assert reservation.protein_type_id == proteins["pollo"]

    def test_same_day_ignores_unknown_protein(self, services, menu, employees, clock):
        clock.set(datetime(2026, 3, 10, 8, 0))
        reservation = services.reservations.create("222", menu.id, "cualquiera")
        assert reservation.protein_type_id == menu.default_protein_type_id

    def test_cc_is_trimmed(self, services, menu, employees, proteins):
        reservation = services.reservations.create("  111 ", menu.id, proteins["pollo"])
        assert reservation.cc == "111"

    def test_side_dishes_snapshot_all_menu_sides(self, services, menu, employees, proteins):
        reservation = services.reservations.create("111", menu.id, proteins["pollo"])
        assert sorted(s.name_snapshot for s in reservation.side_dishes) == ["Arroz", "Ensalada"]

    def test_protein_not_in_options_fails(self, services, menu, employees, proteins):
        with pytest.raises(ValidationError):
            services.reservations.create("111", menu.id, proteins["cerdo"])

    def test_empty_options_reject_any_protein(self, services, menu, employees, proteins):
        """Con el conjunto vacío ninguna proteína es válida para fechas futuras"""
        services.menus.update(menu.id, MenuUpdateRequest(protein_option_ids=[]))
        for protein_id in proteins.values():
            with pytest.raises(ValidationError):
                services.reservations.create("111", menu.id, protein_id)

    def test_same_day_without_default_fails(self, services, employees, proteins, clock):
        menu = services.menus.create(MenuCreateRequest(date=date(2026, 3, 5)))
        services.menus.update(menu.id, MenuUpdateRequest(default_protein_type_id=None))
        with pytest.raises(ValidationError):
            services.reservations.create("111", menu.id, proteins["pollo"])

    def test_unknown_cc(self, services, menu, proteins):
        with pytest.raises(NotFoundError):
            services.reservations.create("999", menu.id, proteins["pollo"])

    def test_disabled_cc(self, services, menu, employees, proteins):
        services.whitelist.toggle_enabled(employees["111"].id)
        with pytest.raises(ForbiddenError):
            services.reservations.create("111", menu.id, proteins["pollo"])

    def test_blank_cc(self, services, menu, proteins):
        with pytest.raises(ValidationError):
            services.reservations.create("   ", menu.id, proteins["pollo"])

    def test_unknown_menu(self, services, employees, proteins):
        with pytest.raises(NotFoundError):
            services.reservations.create("111", "no-existe", proteins["pollo"])

    def test_duplicate_reservation_conflicts(self, services, menu, employees, proteins):
        services.reservations.create("111", menu.id, proteins["pollo"])
        with pytest.raises(ConflictError):
            services.reservations.create("111", menu.id, proteins["res"])

    def test_cancelled_reservation_still_blocks_new_one(self, services, menu, employees, proteins):
        reservation = services.reservations.create("111", menu.id, proteins["pollo"])
        services.reservations.cancel(reservation.id, "111")
        with pytest.raises(ConflictError):
            services.reservations.create("111", menu.id, proteins["res"])

    def test_menu_delete_waits_for_create(self, services, menu, employees, proteins, monkeypatch):
        """Borrar el menú durante la creación no deja reservas huérfanas"""
        load = services.reservations._menu_context
        race = {}

        def load_then_race(conn, menu_id):
            context = load(conn, menu_id)
            race["thread"], race["errors"], race["blocked"] = _start_blocked(
                lambda: services.menus.delete(menu_id)
            )
            return context

        monkeypatch.setattr(services.reservations, "_menu_context", load_then_race)
        reservation = services.reservations.create("111", menu.id, proteins["pollo"])
        race["thread"].join()

        assert race["blocked"] is True
        assert [type(e) for e in race["errors"]] == [ConflictError]
        assert services.menus.find_one(menu.id).id == reservation.menu_id


class TestReservationUpdate:
    """Cambio de proteína y acompañamientos"""

    @pytest.fixture
    def reservation(self, services, menu, employees, proteins):
        return services.reservations.create("111", menu.id, proteins["pollo"])

    def test_change_protein(self, services, reservation, proteins):
        updated = services.reservations.update(reservation.id, "111", proteins["res"])
        assert updated.protein_type_id == proteins["res"]
        assert updated.status == ReservationStatus.RESERVADA
        # sin side_dish_ids los acompañamientos se mantienen
        assert len(updated.side_dishes) == 2

    def test_replace_side_dishes(self, services, reservation, proteins, side_dishes):
        updated = services.reservations.update(
            reservation.id, "111", proteins["pollo"], [side_dishes["ensalada"]]
        )
        assert [s.side_dish_id for s in updated.side_dishes] == [side_dishes["ensalada"]]
        assert updated.side_dishes[0].name_snapshot == "Ensalada"

    def test_clear_side_dishes(self, services, reservation, proteins):
        updated = services.reservations.update(reservation.id, "111", proteins["pollo"], [])
        assert updated.side_dishes == []

    def test_side_dish_not_in_menu_fails(self, services, reservation, proteins, side_dishes):
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["pollo"], [side_dishes["papa"]])
        # la reserva no cambió
        assert len(services.reservations.find_one(reservation.id).side_dishes) == 2

    def test_snapshot_survives_rename(self, services, reservation, side_dishes):
        services.catalogs["side_dishes"].rename(side_dishes["arroz"], "Arroz con coco")
        names = sorted(s.name_snapshot for s in services.reservations.find_one(reservation.id).side_dishes)
        assert names == ["Arroz", "Ensalada"]

    def test_protein_not_in_menu_fails(self, services, reservation, proteins):
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["cerdo"])

    def test_update_on_menu_day_always_fails(self, services, reservation, proteins, clock):
        """El día del menú cualquier cambio se rechaza, aun con datos válidos"""
        clock.set(datetime(2026, 3, 10, 7, 0))
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["res"])

    def test_wrong_owner(self, services, reservation, proteins):
        with pytest.raises(ForbiddenError):
            services.reservations.update(reservation.id, "222", proteins["res"])

    def test_missing_reservation(self, services, proteins):
        with pytest.raises(NotFoundError):
            services.reservations.update("no-existe", "111", proteins["res"])

    def test_cancelled_cannot_be_updated(self, services, reservation, proteins):
        services.reservations.cancel(reservation.id, "111")
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["res"])

    def test_served_cannot_be_updated(self, services, test_db, reservation, proteins):
        _mark(test_db, reservation.id, "SERVIDA")
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["res"])
        current = services.reservations.find_one(reservation.id)
        assert current.status == ReservationStatus.SERVIDA
        assert current.protein_type_id == proteins["pollo"]

    def test_write_requires_open_status(self, services, reservation, proteins, monkeypatch):
        """El UPDATE no aplica si la reserva pasó a terminal después de la verificación"""
        check = services.reservations._owned_and_open

        def check_then_serve(conn, *args):
            result = check(conn, *args)
            conn.execute("UPDATE reservations SET status = 'SERVIDA' WHERE id = ?", [reservation.id])
            return result

        monkeypatch.setattr(services.reservations, "_owned_and_open", check_then_serve)
        with pytest.raises(ValidationError):
            services.reservations.update(reservation.id, "111", proteins["res"])
        assert services.reservations.find_one(reservation.id).protein_type_id == proteins["pollo"]


class TestReservationCancelAndDelete:
    """Cancelación y borrado administrativo"""

    @pytest.fixture
    def reservation(self, services, menu, employees, proteins):
        return services.reservations.create("111", menu.id, proteins["pollo"])

    def test_cancel(self, services, reservation):
        cancelled = services.reservations.cancel(reservation.id, " 111")
        assert cancelled.status == ReservationStatus.CANCELADA

    def test_cancel_twice_fails(self, services, reservation):
        services.reservations.cancel(reservation.id, "111")
        with pytest.raises(ValidationError):
            services.reservations.cancel(reservation.id, "111")

    def test_cancel_after_cutoff_fails(self, services, reservation, clock):
        clock.set(datetime(2026, 3, 10, 7, 0))
        with pytest.raises(ValidationError):
            services.reservations.cancel(reservation.id, "111")

    def test_cancel_wrong_owner(self, services, reservation):
        with pytest.raises(ForbiddenError):
            services.reservations.cancel(reservation.id, "222")

    def test_delete_ignores_cutoff(self, services, reservation, clock):
        clock.set(datetime(2026, 3, 11, 7, 0))
        assert services.reservations.delete(reservation.id).deleted is True
        with pytest.raises(NotFoundError):
            services.reservations.find_one(reservation.id)
        with pytest.raises(NotFoundError):
            services.reservations.delete(reservation.id)

    def test_history_survives_whitelist_delete(self, services, reservation, employees):
        services.whitelist.delete(employees["111"].id)
        kept = services.reservations.find_one(reservation.id)
        assert kept.whitelist_entry_id is None
        assert kept.cc == "111"
        assert kept.name == "Ana Pérez"

    def test_served_cannot_be_cancelled(self, services, test_db, reservation):
        _mark(test_db, reservation.id, "SERVIDA")
        with pytest.raises(ValidationError):
            services.reservations.cancel(reservation.id, "111")
        assert services.reservations.find_one(reservation.id).status == ReservationStatus.SERVIDA

    def test_bulk_served_waits_for_cancel(self, services, reservation, monkeypatch):
        """Un cierre masivo concurrente no se intercala entre la verificación y la escritura"""
        check = services.reservations._owned_and_open
        race = {}

        def check_then_race(conn, *args):
            result = check(conn, *args)
            race["thread"], race["errors"], race["blocked"] = _start_blocked(
                lambda: services.summary.bulk_mark_served(MENU_DATE)
            )
            return result

        monkeypatch.setattr(services.reservations, "_owned_and_open", check_then_race)
        services.reservations.cancel(reservation.id, "111")
        race["thread"].join()

        assert race["blocked"] is True
        assert race["errors"] == []
        current = services.reservations.find_one(reservation.id)
        assert current.status == ReservationStatus.CANCELADA
        assert current.served_at is None


class TestReservationQueries:
    """Listados"""

    def test_find_by_cc_and_menu(self, services, menu, employees, proteins, clock):
        first = services.reservations.create("111", menu.id, proteins["pollo"])
        clock.advance(minutes=1)
        other_menu = services.menus.clone(menu.id, date(2026, 3, 11))
        second = services.reservations.create("111", other_menu.id, proteins["res"])
        services.reservations.create("222", menu.id, proteins["res"])

        assert [r.id for r in services.reservations.find_by_cc("111")] == [second.id, first.id]
        assert [r.id for r in services.reservations.find_by_cc("111", "2026-03-10")] == [first.id]
        assert len(services.reservations.find_by_menu_id(menu.id)) == 2
        assert len(services.reservations.find_all(date="2026-03-11")) == 1
        assert len(services.reservations.find_all()) == 3

    def test_find_by_menu_id_unknown(self, services):
        with pytest.raises(NotFoundError):
            services.reservations.find_by_menu_id("no-existe")

    def test_find_all_take_limit(self, services):
        with pytest.raises(ValidationError):
            services.reservations.find_all(take=500)
