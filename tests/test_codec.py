from models.command_models import CommandKind
from services.commands.codec import (
    extract_commands,
    find_fragments,
    normalize_kind,
    sanitize_fragment,
    strip_commands,
)


def test_extracts_commands_in_order_with_payload():
    text = (
        "¡Perfecto! Anoto tu pedido 😊\n"
        '{"command": "SELECT_SERVICE", "service": "Tela PVC 13 oz"}\n'
        '{"command": "SET_MEASURES", "width": 1.5, "height": 2}'
    )
    commands = extract_commands(text)
    assert [c.kind for c in commands] == [CommandKind.SELECT_SERVICE, CommandKind.SET_MEASURES]
    assert commands[0].payload == {"service": "Tela PVC 13 oz"}
    assert commands[1].payload == {"width": 1.5, "height": 2}
    assert commands[1].raw_name == "SET_MEASURES"


def test_repairs_unquoted_keys_single_quotes_and_trailing_commas():
    commands = extract_commands("Listo {command: 'SET_QUANTITY', quantity: 3,}")
    assert len(commands) == 1
    assert commands[0].kind is CommandKind.SET_QUANTITY
    assert commands[0].payload == {"quantity": 3}


def test_sanitize_only_quotes_keys():
    repaired = sanitize_fragment("{command: 'SET_OBSERVATIONS', observations: 'entrega 10:30'}")
    assert repaired == '{"command": "SET_OBSERVATIONS", "observations": "entrega 10:30"}'


def test_nested_braces_form_one_fragment():
    text = 'Ok {"command": "SET_FINISHES", "finishes": {"sellado": true, "ojetillos": false}} gracias'
    commands = extract_commands(text)
    assert len(commands) == 1
    assert commands[0].payload == {"finishes": {"sellado": True, "ojetillos": False}}


def test_braces_inside_strings_are_ignored():
    text = '{"command": "SET_OBSERVATIONS", "observations": "logo {azul} al centro"}'
    assert find_fragments(text) == [(0, len(text))]
    commands = extract_commands(text)
    assert commands[0].payload["observations"] == "logo {azul} al centro"


def test_unparseable_and_nameless_fragments_are_discarded():
    text = '{oops} texto {"quantity": 2} {"command": "LIST_ALL_SERVICES"} {sin cerrar'
    commands = extract_commands(text)
    assert [c.kind for c in commands] == [CommandKind.LIST_SERVICES]


def test_alternative_discriminator_keys():
    commands = extract_commands('{"action": "set quantity", "quantity": 5} {"type": "confirmOrder"}')
    assert [c.kind for c in commands] == [CommandKind.SET_QUANTITY, CommandKind.CONFIRM_ORDER]


def test_normalize_kind_variants():
    assert normalize_kind("SET_MEASURES") is CommandKind.SET_MEASURES
    assert normalize_kind("setMeasures") is CommandKind.SET_MEASURES
    assert normalize_kind("set measures") is CommandKind.SET_MEASURES
    assert normalize_kind("CONFIRMAR_PEDIDO") is CommandKind.CONFIRM_ORDER
    assert normalize_kind("SOLICITUD_HUMANO") is CommandKind.REQUEST_HUMAN
    assert normalize_kind("ADVERTENCIA_MAL_USO_DETECTADO") is CommandKind.REPORT_ABUSE
    assert normalize_kind("VALIDATE_FILE") is CommandKind.VALIDATE_FILE_RESULT
    assert normalize_kind("RESULT_ANALYSIS") is CommandKind.VALIDATE_FILE_RESULT


def test_normalize_kind_fuzzy_and_unknown():
    assert normalize_kind("SET_QUANTTY") is CommandKind.SET_QUANTITY
    assert normalize_kind("banana") is CommandKind.UNKNOWN
    assert normalize_kind("") is CommandKind.UNKNOWN
    assert normalize_kind(42) is CommandKind.UNKNOWN


def test_near_miss_names_do_not_become_other_commands():
    assert normalize_kind("UPDATE_ORDER") is CommandKind.UNKNOWN
    assert normalize_kind("update order") is CommandKind.UNKNOWN
    assert normalize_kind("GET_QUANTITY") is CommandKind.UNKNOWN


def test_terminal_commands_require_exact_names():
    assert normalize_kind("CONFIRM_ORDR") is CommandKind.UNKNOWN
    assert normalize_kind("CREATE_ORDERS") is CommandKind.UNKNOWN
    assert normalize_kind("REQUEST_HUMANS") is CommandKind.UNKNOWN
    assert normalize_kind("CONFIRM_ORDER") is CommandKind.CONFIRM_ORDER


def test_colons_inside_string_values_survive_repair():
    text = '{command: "SET_OBSERVATIONS", observations: "Entrega lunes, hora: 10am"}'
    commands = extract_commands(text)
    assert len(commands) == 1
    assert commands[0].kind is CommandKind.SET_OBSERVATIONS
    assert commands[0].payload == {"observations": "Entrega lunes, hora: 10am"}


def test_unknown_command_is_kept_as_unknown():
    commands = extract_commands('{"command": "DANCE_PARTY"}')
    assert len(commands) == 1
    assert commands[0].kind is CommandKind.UNKNOWN


def test_strip_commands_removes_every_fragment():
    text = 'Perfecto 👍\n{"command": "SET_QUANTITY", "quantity": 3}\n\n\n¿Algo más? {roto'
    assert strip_commands(text) == "Perfecto 👍\n\n¿Algo más? {roto"
    assert strip_commands("") == ""
