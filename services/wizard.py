import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from config import Settings
from models.quotation import CustomerInfo, QuotationDocument, new_document
from services.delivery import DeliveryReceipt, send_email, send_whatsapp
from services.errors import MissingDestination, MissingInformation, NavigationLocked
from services.export import ExportPipeline, ExportStage
from services.formatting import format_amount, format_date
from services.numbering import generate_quotation_number
from services.raster import Rasterizer
from services.steps import CustomerInfoStep, Items, ItemsStep, PreviewStep

logger = logging.getLogger("quotation.wizard")

Step = Union[CustomerInfoStep, ItemsStep, PreviewStep]

STEP_TITLES = (CustomerInfoStep.title, ItemsStep.title, PreviewStep.title)

# Mensagem exibida quando o passo atual não é válido
STEP_REQUIREMENTS = {
	0: "Please enter customer name",
	1: "Please add at least one item",
}


class WizardController:
	# Dono único do documento (imutável), do passo atual e do flag de envio
	def __init__(
		self,
		settings: Optional[Settings] = None,
		pipeline: Optional[ExportPipeline] = None,
		clock: Callable[[], datetime] = datetime.now,
		rng: Optional[random.Random] = None,
	):
		self.settings = settings or Settings()
		self.pipeline = pipeline or ExportPipeline(
			stage=ExportStage(self.settings.export_width_px, self.settings.export_padding_px),
			rasterizer=Rasterizer(self.settings.raster_scale),
			settle_seconds=self.settings.image_settle_seconds,
			page_width_mm=self.settings.page_width_mm,
			serialize=self.settings.serialize_exports,
		)
		self.clock = clock
		self.rng = rng or random.Random()
		self.document = self._new_document()
		self.current_step = 0
		self.is_submitting = False

	def _new_document(self) -> QuotationDocument:
		now = self.clock()
		number = generate_quotation_number(now, self.rng)
		logger.info("Nova cotação %s", number)
		return new_document(number, now, self.settings.validity_days)

	# Substituição do documento inteiro

	def _replace(self, **changes: Any) -> None:
		self.document = self.document.model_copy(update=changes)

	def _on_customer_update(self, customer_info: CustomerInfo) -> None:
		self._replace(customer_info=customer_info)

	def _on_items_update(self, items: Items, notes: str) -> None:
		self._replace(items=tuple(items), notes=notes)

	# Validação e navegação

	def is_step_valid(self, index: int) -> bool:
		if index == 0:
			return bool(self.document.customer_info.customer_name)
		if index == 1:
			return len(self.document.items) > 0
		return True

	@property
	def is_last_step(self) -> bool:
		return self.current_step == len(STEP_TITLES) - 1

	def advance(self) -> int:
		if self.is_submitting:
			raise NavigationLocked("Please wait", "A submission is in progress")
		if not self.is_step_valid(self.current_step):
			logger.warning("Avanço bloqueado no passo %d", self.current_step)
			raise MissingInformation("Missing information", STEP_REQUIREMENTS[self.current_step])
		self.current_step = min(self.current_step + 1, len(STEP_TITLES) - 1)
		logger.info("Passo atual: %d (%s)", self.current_step, STEP_TITLES[self.current_step])
		return self.current_step

	def retreat(self) -> int:
		self.current_step = max(self.current_step - 1, 0)
		return self.current_step

	def reset(self) -> None:
		self.document = self._new_document()
		self.current_step = 0
		self.is_submitting = False

	# Componentes de cada passo

	def active_step(self) -> Step:
		if self.current_step == 0:
			return CustomerInfoStep(
				self.document.customer_info,
				self._on_customer_update,
				max_upload_bytes=self.settings.max_upload_bytes,
				max_upload_pixels=self.settings.max_upload_pixels,
			)
		if self.current_step == 1:
			return ItemsStep(self.document.items, self.document.notes, self._on_items_update)
		return PreviewStep(
			self.document,
			self.send_email,
			self.send_whatsapp,
			self.pipeline,
			currency=self.settings.currency,
		)

	# Envio simulado

	def _begin_submission(self) -> None:
		# Um envio por vez; o segundo é recusado em vez de disputar o flag
		if self.is_submitting:
			raise NavigationLocked("Please wait", "A submission is in progress")
		self.is_submitting = True

	async def send_email(self, address: str) -> DeliveryReceipt:
		if not address:
			raise MissingDestination("Missing email", "Please enter an email address")
		self._begin_submission()
		try:
			return await send_email(address, self.document.quotation_number, self.settings.delivery_delay_seconds)
		finally:
			self.is_submitting = False

	async def send_whatsapp(self, phone_number: str) -> DeliveryReceipt:
		if not phone_number:
			raise MissingDestination("Missing phone number", "Please enter a WhatsApp number")
		self._begin_submission()
		try:
			return await send_whatsapp(phone_number, self.document.quotation_number, self.settings.delivery_delay_seconds)
		finally:
			self.is_submitting = False

	def state(self) -> Dict[str, Any]:
		doc = self.document
		info = doc.customer_info
		steps: List[Dict[str, Any]] = [
			{"index": i, "title": title, "valid": self.is_step_valid(i)}
			for i, title in enumerate(STEP_TITLES)
		]
		return {
			"steps": steps,
			"current_step": self.current_step,
			"is_submitting": self.is_submitting,
			"can_go_back": self.current_step > 0,
			"can_go_forward": not self.is_last_step and not self.is_submitting,
			"document": {
				"quotation_number": doc.quotation_number,
				"creation_date": doc.creation_date.isoformat(),
				"valid_until": doc.valid_until.isoformat(),
				"creation_date_display": format_date(doc.creation_date),
				"valid_until_display": format_date(doc.valid_until),
				"customer_info": {
					"customer_name": info.customer_name,
					"company_name": info.company_name,
					"logo_url": info.logo_url,
					"signature_url": info.signature_url,
				},
				"items": [
					{
						"id": it.id,
						"name": it.name,
						"description": it.description,
						"quantity": it.quantity,
						"unit_price": str(it.unit_price),
						"total": str(it.total),
						"unit_price_display": format_amount(it.unit_price),
						"total_display": format_amount(it.total),
					}
					for it in doc.items
				],
				"notes": doc.notes,
				"grand_total": str(doc.grand_total),
				"grand_total_display": format_amount(doc.grand_total),
				"currency": self.settings.currency,
			},
		}
