import base64
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


ImageKind = Literal["logo", "signature"]


class ImageAttachment(BaseModel):
	model_config = ConfigDict(frozen=True)

	filename: str = ""
	content_type: str
	content: bytes
	width: int = 0
	height: int = 0
	exif: Dict[str, str] = Field(default_factory=dict)

	@property
	def data_url(self) -> str:
		# Derivada do conteúdo: nunca existe URL sem o binário
		encoded = base64.b64encode(self.content).decode("ascii")
		return f"data:{self.content_type};base64,{encoded}"


class CustomerInfo(BaseModel):
	model_config = ConfigDict(frozen=True)

	customer_name: str = ""
	company_name: str = ""
	logo: Optional[ImageAttachment] = None
	signature: Optional[ImageAttachment] = None

	@property
	def logo_url(self) -> str:
		return self.logo.data_url if self.logo is not None else ""

	@property
	def signature_url(self) -> str:
		return self.signature.data_url if self.signature is not None else ""


def new_item_id() -> str:
	return uuid.uuid4().hex


class QuotationItem(BaseModel):
	model_config = ConfigDict(frozen=True)

	id: str = Field(default_factory=new_item_id)
	name: str = ""
	description: str = ""
	quantity: int = 1
	unit_price: Decimal = Decimal("0")

	@property
	def total(self) -> Decimal:
		return self.quantity * self.unit_price


class QuotationDocument(BaseModel):
	model_config = ConfigDict(frozen=True)

	customer_info: CustomerInfo = Field(default_factory=CustomerInfo)
	items: Tuple[QuotationItem, ...] = ()
	notes: str = ""
	quotation_number: str
	creation_date: datetime
	valid_until: datetime

	@property
	def grand_total(self) -> Decimal:
		return sum((it.total for it in self.items), Decimal("0"))


def new_document(quotation_number: str, now: datetime, validity_days: int = 7) -> QuotationDocument:
	return QuotationDocument(
		quotation_number=quotation_number,
		creation_date=now,
		valid_until=now + timedelta(days=validity_days),
	)


# Payloads da API

class CustomerFields(BaseModel):
	customer_name: Optional[str] = None
	company_name: Optional[str] = None


class ItemFields(BaseModel):
	name: str = ""
	description: str = ""
	quantity: int = Field(default=1, description="Quantidade do item")
	unit_price: Decimal = Field(default=Decimal("0"), description="Preço unitário")


class NotesPayload(BaseModel):
	notes: str = ""


class MoveRequest(BaseModel):
	direction: Literal["up", "down"]


class EmailRequest(BaseModel):
	email: str = ""


class WhatsAppRequest(BaseModel):
	phone_number: str = ""
