import asyncio
import logging
import re
from typing import Optional
from urllib.parse import quote

from pydantic import BaseModel

from services.errors import MissingDestination

logger = logging.getLogger("quotation.delivery")

WHATSAPP_BASE_URL = "https://wa.me/"

# Caracteres que encodeURIComponent mantém sem escape
_URI_COMPONENT_SAFE = "-_.!~*'()"


class DeliveryReceipt(BaseModel):
	channel: str
	destination: str
	title: str
	description: str
	open_url: Optional[str] = None


def whatsapp_link(phone_number: str, quotation_number: str) -> str:
	digits = re.sub(r"\D", "", phone_number)
	message = quote(f"Here's your quotation {quotation_number}", safe=_URI_COMPONENT_SAFE)
	return f"{WHATSAPP_BASE_URL}{digits}?text={message}"


async def send_email(address: str, quotation_number: str, delay: float = 1.5) -> DeliveryReceipt:
	if not address:
		raise MissingDestination("Missing email", "Please enter an email address")

	# Envio simulado, nada sai pela rede
	await asyncio.sleep(delay)
	logger.info("Cotação %s 'enviada' por email para %s", quotation_number, address)
	return DeliveryReceipt(
		channel="email",
		destination=address,
		title="Quotation sent",
		description=f"Quotation has been sent to {address}",
	)


async def send_whatsapp(phone_number: str, quotation_number: str, delay: float = 1.5) -> DeliveryReceipt:
	if not phone_number:
		raise MissingDestination("Missing phone number", "Please enter a WhatsApp number")

	await asyncio.sleep(delay)
	link = whatsapp_link(phone_number, quotation_number)
	logger.info("Link do WhatsApp preparado para a cotação %s", quotation_number)
	# O navegador abre o link numa nova aba; nenhum resultado é verificado
	return DeliveryReceipt(
		channel="whatsapp",
		destination=re.sub(r"\D", "", phone_number),
		title="WhatsApp opened",
		description="Quotation message has been prepared for WhatsApp",
		open_url=link,
	)
