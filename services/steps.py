import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from models.quotation import CustomerInfo, ImageKind, QuotationDocument, QuotationItem
from services.delivery import DeliveryReceipt
from services.errors import InvalidItem, ItemNotFound
from services.export import ExportArtifact, ExportPipeline
from services.render import RenderedView, render_print_page, render_quotation
from services.uploads import DEFAULT_MAX_BYTES, DEFAULT_MAX_PIXELS, build_attachment

logger = logging.getLogger("quotation.steps")

Items = Tuple[QuotationItem, ...]


class CustomerInfoStep:
	title = "Customer Information"

	def __init__(
		self,
		customer_info: CustomerInfo,
		on_update: Callable[[CustomerInfo], None],
		max_upload_bytes: int = DEFAULT_MAX_BYTES,
		max_upload_pixels: int = DEFAULT_MAX_PIXELS,
	):
		self.customer_info = customer_info
		self.on_update = on_update
		self.max_upload_bytes = max_upload_bytes
		self.max_upload_pixels = max_upload_pixels

	def _emit(self, customer_info: CustomerInfo) -> None:
		self.customer_info = customer_info
		self.on_update(customer_info)

	def set_fields(self, customer_name: Optional[str] = None, company_name: Optional[str] = None) -> None:
		changes = {}
		if customer_name is not None:
			changes["customer_name"] = customer_name
		if company_name is not None:
			changes["company_name"] = company_name
		self._emit(self.customer_info.model_copy(update=changes))

	def upload(self, kind: ImageKind, filename: str, content_type: str, content: bytes) -> None:
		# Upload rejeitado não altera o estado
		attachment = build_attachment(
			filename, content_type, content, self.max_upload_bytes, self.max_upload_pixels
		)
		self._emit(self.customer_info.model_copy(update={kind: attachment}))

	def remove(self, kind: ImageKind) -> None:
		self._emit(self.customer_info.model_copy(update={kind: None}))


class ItemsStep:
	title = "Quotation Items"

	def __init__(self, items: Items, notes: str, on_update: Callable[[Items, str], None]):
		self.items = tuple(items)
		self.notes = notes
		self.on_update = on_update
		self.draft: Optional[QuotationItem] = None
		self.is_editing = False

	@property
	def is_open(self) -> bool:
		return self.draft is not None

	def _emit(self, items: Items, notes: str) -> None:
		self.items, self.notes = items, notes
		self.on_update(items, notes)

	def _index_of(self, item_id: str) -> int:
		for idx, it in enumerate(self.items):
			if it.id == item_id:
				return idx
		raise ItemNotFound("Item not found", f"No item with id {item_id}")

	def open_add(self) -> QuotationItem:
		self.is_editing = False
		self.draft = QuotationItem(name="", description="", quantity=1, unit_price=Decimal("0"))
		return self.draft

	def open_edit(self, item_id: str) -> QuotationItem:
		self.draft = self.items[self._index_of(item_id)]
		self.is_editing = True
		return self.draft

	def update_draft(self, **fields: Any) -> QuotationItem:
		if self.draft is None:
			self.open_add()
		fields.pop("id", None)
		self.draft = QuotationItem.model_validate({**self.draft.model_dump(), **fields})
		return self.draft

	def cancel(self) -> None:
		self.draft = None
		self.is_editing = False

	def save(self) -> QuotationItem:
		item = self.draft
		if item is None:
			raise InvalidItem("Invalid item", "No item is being edited")
		if not item.name or item.quantity <= 0 or item.unit_price <= 0:
			logger.warning("Item rejeitado: nome=%r qtd=%s preço=%s", item.name, item.quantity, item.unit_price)
			raise InvalidItem("Invalid item", "Please fill in all required fields with valid values")

		if self.is_editing:
			updated = tuple(item if it.id == item.id else it for it in self.items)
		else:
			updated = self.items + (item,)
		self._emit(updated, self.notes)
		self.cancel()
		logger.info("Item salvo: %s", item.name)
		return item

	def delete(self, item_id: str) -> None:
		self._index_of(item_id)
		self._emit(tuple(it for it in self.items if it.id != item_id), self.notes)

	def move(self, index: int, direction: str) -> None:
		if not 0 <= index < len(self.items):
			return
		if (direction == "up" and index == 0) or (direction == "down" and index == len(self.items) - 1):
			return
		target = index - 1 if direction == "up" else index + 1
		items: List[QuotationItem] = list(self.items)
		items[index], items[target] = items[target], items[index]
		self._emit(tuple(items), self.notes)

	def set_notes(self, notes: str) -> None:
		self._emit(self.items, notes)

	@staticmethod
	def total(item: QuotationItem) -> Decimal:
		return item.quantity * item.unit_price

	def grand_total(self) -> Decimal:
		return sum((self.total(it) for it in self.items), Decimal("0"))


class PreviewStep:
	title = "Preview & Send"

	def __init__(
		self,
		document: QuotationDocument,
		on_send_email: Callable[[str], Awaitable[DeliveryReceipt]],
		on_send_whatsapp: Callable[[str], Awaitable[DeliveryReceipt]],
		pipeline: ExportPipeline,
		currency: str = "EGP",
	):
		self.document = document
		self.on_send_email = on_send_email
		self.on_send_whatsapp = on_send_whatsapp
		self.pipeline = pipeline
		self.currency = currency

	def render(self) -> RenderedView:
		return render_quotation(self.document, self.currency)

	def print_view(self) -> str:
		return render_print_page(self.render())

	async def download_pdf(self) -> ExportArtifact:
		return await self.pipeline.export_pdf(self.render())

	def download_word(self) -> ExportArtifact:
		return self.pipeline.export_word(self.render())

	async def send_email(self, address: str) -> DeliveryReceipt:
		return await self.on_send_email(address)

	async def send_whatsapp(self, phone_number: str) -> DeliveryReceipt:
		return await self.on_send_whatsapp(phone_number)
