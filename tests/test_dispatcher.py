from datetime import datetime

import pytest

from conftest import fill_complete_draft, run

from models.command_models import Command, CommandKind
from services.commands.dispatcher import CommandDispatcher, censor_phone, format_order_date
from services.conversation import messages


@pytest.fixture
def dispatcher(store, catalog, settings):
    return CommandDispatcher(store, catalog, settings)


def test_select_known_service(dispatcher, store):
    session = store.get("u1")
    result = run(dispatcher.apply(session, Command(CommandKind.SELECT_SERVICE, {"service": "adhesivo vinilo"})))
    assert result.ok and result.order_updated
    assert session.draft_order.service.name == "Adhesivo Vinilo"
    assert session.draft_order.service.category == "Adhesivos"


def test_select_unknown_service_suggests_alternatives(dispatcher, store):
    session = store.get("u1")
    result = run(dispatcher.apply(session, Command(CommandKind.SELECT_SERVICE, {"servicio": "Tela PVC"})))
    assert result.error == "service_not_found"
    assert not result.order_updated
    assert "Tela PVC 13 oz" in result.data["suggestions"]
    assert "*Tela PVC*" in result.data["reply"]
    assert session.draft_order.service.name is None


def test_set_measures_accepts_decimal_comma(dispatcher, store):
    session = store.get("u1")
    run(dispatcher.apply(session, Command(CommandKind.SELECT_SERVICE, {"service": "Tela PVC 13 oz"})))
    result = run(dispatcher.apply(session, Command(CommandKind.SET_MEASURES, {"ancho": "1,5", "alto": 2})))
    assert result.order_updated
    assert session.draft_order.computed_area == 3.0
    assert "width_available" not in result.data

    result = run(dispatcher.apply(session, Command(CommandKind.SET_MEASURES, {"width": "2m"})))
    assert result.data["width_available"] is False
    assert session.draft_order.computed_area == 4.0


def test_set_measures_without_values_is_an_error(dispatcher, store):
    result = run(dispatcher.apply(store.get("u1"), Command(CommandKind.SET_MEASURES, {"width": "ancho"})))
    assert result.error == "invalid_measures"


@pytest.mark.parametrize("raw", [0, "-2", "muchos", None])
def test_invalid_quantity_is_rejected(dispatcher, store, raw):
    session = store.get("u1")
    result = run(dispatcher.apply(session, Command(CommandKind.SET_QUANTITY, {"quantity": raw})))
    assert result.error == "invalid_quantity"
    assert session.draft_order.quantity is None


def test_set_quantity_from_string(dispatcher, store):
    session = store.get("u1")
    result = run(dispatcher.apply(session, Command(CommandKind.SET_QUANTITY, {"cantidad": " 250 "})))
    assert result.data == {"quantity": 250}
    assert session.draft_order.quantity == 250


def test_set_finishes_flat_keys(dispatcher, store):
    session = store.get("u1")
    run(dispatcher.apply(session, Command(CommandKind.SELECT_SERVICE, {"service": "Tela PVC 13 oz"})))
    result = run(dispatcher.apply(session, Command(CommandKind.SET_FINISHES, {"sellado": "sí", "bolsillo": True})))
    assert result.data["finishes"] == {"sellado": True}


def test_unknown_and_transport_kinds_are_no_ops(dispatcher, store):
    session = store.get("u1")
    for kind in (CommandKind.UNKNOWN, CommandKind.REQUEST_HUMAN, CommandKind.REPORT_ABUSE):
        result = run(dispatcher.apply(session, Command(kind, {}, raw_name="X")))
        assert result.ok and not result.order_updated


def test_list_services_reply(dispatcher, store):
    result = run(dispatcher.apply(store.get("u1"), Command(CommandKind.LIST_SERVICES)))
    reply = result.data["reply"]
    assert reply.startswith("Aquí tienes la lista completa")
    assert "- Tela PVC 13 oz" in reply and "*Tarjetas*" in reply


def test_additional_info_filters_by_topic(dispatcher, store):
    result = run(dispatcher.apply(store.get("u1"), Command(CommandKind.ADDITIONAL_INFO, {"topic": "horario"})))
    assert result.data["reply"] == "*Horario:* Lunes a viernes 9:00 a 18:00"


def test_invalid_file_result_counts_an_upload_attempt(dispatcher, store):
    session = store.get("u1")
    result = run(dispatcher.apply(
        session, Command(CommandKind.VALIDATE_FILE_RESULT, {"isValid": False, "reason": "Resolución baja"})
    ))
    assert result.data == {"is_valid": False, "reason": "Resolución baja"}
    assert session.file_upload_attempts == 1
    assert session.draft_order.file_validation.reason == "Resolución baja"


def test_confirm_incomplete_order_saves_nothing(dispatcher, store, catalog):
    session = store.get("56912345678")
    result = run(dispatcher.apply(session, Command(CommandKind.CONFIRM_ORDER)))
    assert result.error == "order_incomplete"
    assert "service" in result.data["missing_fields"]
    assert not session.finalized
    assert run(catalog.orders_dal.list_orders()) == []


def test_confirm_complete_order_writes_to_sink(dispatcher, store, catalog):
    session = store.get("56912345678")
    fill_complete_draft(session)
    result = run(dispatcher.apply(session, Command(CommandKind.CONFIRM_ORDER), display_name="Ana"))
    assert result.ok and result.order_updated
    assert session.finalized
    assert result.data["replies"][1] == messages.ORDER_CONFIRMED
    assert result.data["replies"][0].startswith("*📋 Resumen de tu pedido:*\nTarjetas - 100x Tarjetas de Presentación")

    orders = run(catalog.orders_dal.list_orders())
    assert len(orders) == 1
    order = orders[0]
    assert order.id == result.data["row_index"]
    assert order.phone == "56******678"
    assert order.name == "Ana"
    assert order.observations == "Sin observaciones"
    assert order.file_path == "/tmp/diseno.pdf"

    again = run(dispatcher.apply(session, Command(CommandKind.CONFIRM_ORDER)))
    assert again.error == "already_finalized"


def test_censor_phone():
    assert censor_phone("56912345678") == "56******678"
    assert censor_phone("12345") == "12345"
    assert censor_phone("123456") == "12*456"


def test_format_order_date_uses_spanish_weekday():
    assert format_order_date(datetime(2024, 3, 6, 14, 5)) == "06-03-2024 14:05hrs - miércoles"
