"""Canned customer-facing texts (Spanish, WhatsApp-style markdown)."""

from __future__ import annotations

from typing import Dict, Iterable, List

from models.catalog_models import ServiceInfo
from models.session_models import DraftOrder

DEFAULT_WELCOME = (
	"*¡Hola!* 👋 Soy el asistente de pedidos de impresión. "
	"Cuéntame qué necesitas imprimir y te ayudo a armar tu pedido."
)
WELCOME_BACK = "*¡Bienvenido de nuevo!* 🎉 El bot ha sido reiniciado. *¿En qué puedo ayudarte hoy?* 😊"
IDLE_WARNING = "*⏰ ¿Sigues ahí? Si necesitas más tiempo, por favor responde cualquier mensaje.*"
IDLE_TIMEOUT = (
	"*😴 Lo siento, el tiempo de espera ha expirado. Tu pedido ha sido cancelado. "
	"Si deseas hacer un nuevo pedido, por favor envía un mensaje.*"
)
ORDER_CONFIRMED = (
	"*¡Gracias!* 🎉 Tu pedido ha sido registrado y será preparado pronto. "
	"Un representante se pondrá en contacto contigo para confirmar los detalles. 📞"
)
ORDER_SAVE_FAILED = (
	"Lo siento, ha ocurrido un error al procesar tu pedido. "
	"Por favor, intenta nuevamente o contacta con nuestro equipo de soporte."
)
HUMAN_REQUESTED = (
	"*Entendido* 👍. Un representante humano se pondrá en contacto contigo pronto. "
	"*Gracias por tu paciencia.* 🙏"
)
HUMAN_FOLLOW_UP = "Un representante humano se pondrá en contacto contigo pronto. Gracias por tu paciencia."
ABUSE_DETECTED = (
	"*Lo siento* 😔, pero hemos detectado un uso inapropiado del sistema. Tu acceso ha sido "
	"*temporalmente suspendido*. Si crees que esto es un error, por favor contacta con nuestro equipo de soporte."
)
UNEXPECTED_ERROR = "Lo siento, ha ocurrido un error inesperado. Por favor, intenta nuevamente en unos momentos."
VOICE_NOTE_FAILED = "Hubo un error al procesar la nota de voz. Por favor, intenta enviar un mensaje de texto."
FILE_ANALYSIS_FAILED = (
	"No pude analizar tu archivo 😕. Por favor, envíalo nuevamente en formato PDF, JPG o PNG."
)
MAX_UPLOAD_ATTEMPTS = (
	"Has alcanzado el número máximo de intentos de carga de archivos. "
	"Un representante revisará tu pedido y se pondrá en contacto contigo. 🙏"
)


def transcript_echo(transcript: str) -> str:
	return f"*📝 Transcripción:*\n{transcript}"


def missing_info_notice(labels: Iterable[str]) -> str:
	"""Deterministic prompt listing what the order still needs."""
	items = list(labels)
	if not items:
		return "Para confirmar tu pedido necesito revisar algunos datos. ¿Me los puedes indicar nuevamente?"
	lines = "\n".join(f"• {label}" for label in items)
	return f"Antes de confirmar tu pedido necesito la siguiente información:\n{lines}\n¿Me la puedes indicar? 😊"


def service_list(services: Dict[str, List[ServiceInfo]]) -> str:
	if not services:
		return "En este momento no tengo servicios disponibles para mostrar."
	lines = ["Aquí tienes la lista completa de nuestros servicios:", ""]
	for category in sorted(services):
		lines.append(f"*{category}*")
		lines.extend(f"- {service.name}" for service in services[category])
		lines.append("")
	return "\n".join(lines).strip()


def service_not_found(name: str, suggestions: Iterable[str]) -> str:
	options = list(suggestions)
	text = f"No encontré el servicio *{name}* en nuestro catálogo."
	if options:
		text += " ¿Quizás te refieres a: " + ", ".join(f"*{option}*" for option in options) + "?"
	return text


def additional_info(info: Dict[str, str], topic: str = "") -> str:
	if not info:
		return "Por ahora no tengo información adicional para compartir."
	if topic:
		wanted = topic.strip().casefold()
		matches = {key: value for key, value in info.items() if wanted in key.casefold()}
		if matches:
			info = matches
	return "\n".join(f"*{key}:* {value}" for key, value in info.items())


def order_details(draft: DraftOrder) -> str:
	"""One-line-per-fact description stored in the order sink."""
	service = draft.service
	lines = [f"{service.category or 'Servicio'} - {draft.quantity}x {service.name}"]
	if draft.measures.width is not None and draft.measures.height is not None:
		lines.append(f"Medidas: {draft.measures.width} x {draft.measures.height} m ({draft.computed_area} m²)")
	chosen = [name for name, wanted in draft.finishes.items() if wanted]
	if chosen:
		lines.append("Terminaciones: " + ", ".join(chosen))
	if draft.file_path:
		lines.append(f"Archivo: {draft.file_path}")
	return "\n".join(lines)


def order_summary(draft: DraftOrder) -> str:
	return "*📋 Resumen de tu pedido:*\n" + order_details(draft)
