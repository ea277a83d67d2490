import asyncio

import pytest

from services.delivery import send_email, send_whatsapp, whatsapp_link
from services.errors import MissingDestination


def test_whatsapp_link_strips_non_digits():
	link = whatsapp_link("+20 123-456", "QT-2610-042")
	assert link == "https://wa.me/20123456?text=Here's%20your%20quotation%20QT-2610-042"


def test_send_whatsapp_returns_link():
	receipt = asyncio.run(send_whatsapp("+20 123-456", "QT-2610-042", delay=0))
	assert receipt.open_url.startswith("https://wa.me/20123456?text=")
	assert receipt.destination == "20123456"
	assert receipt.title == "WhatsApp opened"


def test_send_email_reports_success():
	receipt = asyncio.run(send_email("client@example.com", "QT-2610-042", delay=0))
	assert receipt.title == "Quotation sent"
	assert receipt.description == "Quotation has been sent to client@example.com"
	assert receipt.open_url is None


@pytest.mark.parametrize("sender", [send_email, send_whatsapp])
def test_empty_destination_rejected(sender):
	with pytest.raises(MissingDestination):
		asyncio.run(sender("", "QT-2610-042", delay=0))
