"""Prompt builders for the print-order conversation."""

import json
from typing import Dict, Iterable, List, Optional, Sequence

from models.catalog_models import FileAnalysis, ServiceInfo
from models.command_models import Command
from models.session_models import DraftOrder

COMMAND_GRAMMAR = """Cuando el cliente entregue datos del pedido, agrega al final de tu respuesta
uno o más comandos JSON, cada uno en su propia línea, con este formato exacto:
{"command": "SELECT_SERVICE", "service": "<nombre exacto del catálogo>"}
{"command": "SET_MEASURES", "width": <ancho en metros>, "height": <alto en metros>}
{"command": "SET_QUANTITY", "quantity": <entero>}
{"command": "SET_FINISHES", "sellado": true|false, "ojetillos": true|false, "bolsillo": true|false}
{"command": "SET_OBSERVATIONS", "observations": "<texto>"}
{"command": "VALIDATE_FILE", "isValid": true|false, "reason": "<motivo>"}
{"command": "LIST_ALL_SERVICES"}
{"command": "ADDITIONAL_INFO", "topic": "<tema>"}
{"command": "SERVICE_NOT_FOUND", "service": "<lo que pidió el cliente>"}
{"command": "CONFIRMAR_PEDIDO"}
{"command": "SOLICITUD_HUMANO"}
{"command": "ADVERTENCIA_MAL_USO_DETECTADO"}
Usa CONFIRMAR_PEDIDO solo cuando el cliente confirme explícitamente y el pedido tenga todos sus datos.
Usa SOLICITUD_HUMANO solo si el cliente pide hablar con una persona."""


def _catalog_block(services: Dict[str, List[ServiceInfo]]) -> str:
    rows = []
    for category in sorted(services):
        for service in services[category]:
            rows.append({
                "categoria": category,
                "nombre": service.name,
                "tipo": service.type,
                "anchos_disponibles": service.available_widths,
                "terminaciones": service.offered_finishes(),
                "dpi_minimo": service.min_dpi,
                "formatos": service.formats,
            })
    return json.dumps(rows, ensure_ascii=False, indent=2)


def system_prompt(
    services: Dict[str, List[ServiceInfo]],
    additional_info: Dict[str, str],
    draft: DraftOrder,
    measured_categories: Iterable[str],
) -> str:
    """Return the per-turn system prompt with catalog and draft state."""
    measured = ", ".join(sorted(measured_categories))
    return (
        "Eres un vendedor amable y eficiente de una imprenta. Ayudas al cliente a armar su pedido de "
        "impresión paso a paso: servicio, medidas (solo para las categorías que se venden por metro: "
        f"{measured}), cantidad, terminaciones, archivo de diseño y observaciones. "
        "Nunca calcules precios ni totales. Responde en español, en párrafos cortos, con algún emoji. "
        "Nunca digas que eres un bot.\n\n"
        f"{COMMAND_GRAMMAR}\n\n"
        "Catálogo (usa ÚNICAMENTE estos servicios):\n"
        f"{_catalog_block(services)}\n\n"
        "Información adicional (no la menciones a menos que la pidan):\n"
        f"{json.dumps(additional_info, ensure_ascii=False, indent=2)}\n\n"
        "Estado actual del pedido:\n"
        f"{json.dumps(draft.to_dict(), ensure_ascii=False, indent=2)}"
    )


def extraction_instruction(missing_labels: Iterable[str]) -> str:
    """Narrow prompt asking only for directives found in the last user message."""
    wanted = ", ".join(missing_labels)
    return (
        "Revisa SOLO el último mensaje del cliente y extrae los datos que correspondan a: "
        f"{wanted}. Responde únicamente con los comandos JSON correspondientes, sin texto adicional. "
        "No uses CONFIRMAR_PEDIDO. Si el mensaje no contiene esos datos, responde con un objeto vacío {}."
    )


def continuation_instruction(missing_labels: Iterable[str], applied: Sequence[Command] = ()) -> str:
    labels = list(missing_labels)
    pending = ", ".join(labels) if labels else "nada más"
    performed = "\n".join(
        f"- {command.kind.value}: {json.dumps(command.payload, ensure_ascii=False)}" for command in applied
    )
    return (
        "El cliente acaba de entregar estos datos y ya quedaron registrados:\n"
        f"{performed or '- (sin detalle)'}\n"
        "Responde en lenguaje natural, "
        f"confirma brevemente lo registrado y pide lo que aún falta: {pending}. "
        "No incluyas comandos JSON."
    )


def guided_instruction(draft: DraftOrder, missing_labels: Iterable[str]) -> str:
    wanted = ", ".join(missing_labels)
    return (
        "El pedido todavía NO se puede confirmar. Estado actual del pedido:\n"
        f"{json.dumps(draft.to_dict(), ensure_ascii=False, indent=2)}\n"
        f"Falta: {wanted}. Pide al cliente exactamente esa información, de forma amable y breve. "
        "No confirmes el pedido y no incluyas comandos JSON."
    )


def file_analysis_note(analysis: FileAnalysis, criteria: Optional[str], file_name: str) -> str:
    """Context message describing an uploaded design file."""
    lines = [
        f"El cliente envió el archivo {file_name}. Análisis técnico:",
        json.dumps(analysis.to_dict(), ensure_ascii=False, indent=2),
    ]
    if criteria:
        lines.append(f"Criterios de validación del servicio: {criteria}")
    lines.append(
        "Comenta el análisis al cliente y, si ya conoces el servicio y las medidas, "
        "valida el archivo con el comando VALIDATE_FILE."
    )
    return "\n".join(lines)
