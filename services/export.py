import asyncio
import logging
import uuid
from contextlib import contextmanager
from html import escape
from typing import Iterator, List, Optional

from fpdf import FPDF
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field

from services.raster import Rasterizer
from services.render import RenderedView

logger = logging.getLogger("quotation.export")

PDF_MEDIA_TYPE = "application/pdf"
WORD_MEDIA_TYPE = "application/msword"


class ExportArtifact(BaseModel):
	model_config = ConfigDict(frozen=True)

	filename: str
	media_type: str
	content: bytes

	@property
	def content_disposition(self) -> str:
		return f'attachment; filename="{self.filename}"'


class StagedClone(BaseModel):
	model_config = ConfigDict(frozen=True)

	clone_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
	view: RenderedView
	width_px: int = 794
	padding_px: int = 40
	position: str = "absolute"
	left_px: int = -9999
	top_px: int = -9999
	background: str = "white"


class ExportStage:
	# Ponto de inserção fora da tela compartilhado por todas as exportações
	def __init__(self, width_px: int = 794, padding_px: int = 40):
		self.width_px = width_px
		self.padding_px = padding_px
		self._children: List[StagedClone] = []

	@property
	def children(self) -> List[StagedClone]:
		return list(self._children)

	def append(self, clone: StagedClone) -> None:
		self._children.append(clone)

	def remove(self, clone: StagedClone) -> None:
		self._children.remove(clone)

	@contextmanager
	def staged(self, view: RenderedView) -> Iterator[StagedClone]:
		# Geometria fixa: a exportação não depende da tela do usuário
		clone = StagedClone(view=view, width_px=self.width_px, padding_px=self.padding_px)
		self.append(clone)
		try:
			yield clone
		finally:
			self.remove(clone)


def pdf_filename(quotation_number: str) -> str:
	return f"Quotation-{quotation_number}.pdf"


def word_filename(quotation_number: str) -> str:
	return f"Quotation-{quotation_number}.doc"


def encode_pdf(bitmap: Image.Image, page_width_mm: float = 210.0) -> bytes:
	pdf = FPDF(orientation="P", unit="mm", format="A4")
	# Imagem única sangrada; altura proporcional à largura fixa da página
	pdf.set_auto_page_break(auto=False)
	pdf.set_margins(0, 0, 0)
	pdf.add_page()
	img_width = page_width_mm
	img_height = bitmap.height * img_width / bitmap.width
	pdf.image(bitmap, x=0, y=0, w=img_width, h=img_height)
	return bytes(pdf.output())


def wrap_word_document(view: RenderedView) -> str:
	number = escape(view.document.quotation_number)
	return f"""
<html>
	<head>
		<meta charset="utf-8">
		<title>Quotation {number}</title>
		<style>
			body {{ font-family: Arial, sans-serif; margin: 40px; }}
			table {{ width: 100%; border-collapse: collapse; }}
			th, td {{ border: 1px solid #ddd; padding: 8px; }}
			th {{ background-color: #f2f2f2; }}
		</style>
	</head>
	<body>
		{view.markup}
	</body>
</html>
"""


class ExportPipeline:
	def __init__(
		self,
		stage: Optional[ExportStage] = None,
		rasterizer: Optional[Rasterizer] = None,
		settle_seconds: float = 0.5,
		page_width_mm: float = 210.0,
		serialize: bool = True,
	):
		self.stage = stage or ExportStage()
		self.rasterizer = rasterizer or Rasterizer()
		self.settle_seconds = settle_seconds
		self.page_width_mm = page_width_mm
		self._lock: Optional[asyncio.Lock] = asyncio.Lock() if serialize else None

	async def export_pdf(self, view: RenderedView) -> ExportArtifact:
		if self._lock is None:
			return await self._export_pdf(view)
		async with self._lock:
			return await self._export_pdf(view)

	async def _export_pdf(self, view: RenderedView) -> ExportArtifact:
		number = view.document.quotation_number
		logger.info("Exportando PDF da cotação %s", number)
		with self.stage.staged(view) as clone:
			# Aguarda as imagens embutidas antes de rasterizar
			await asyncio.sleep(self.settle_seconds)
			try:
				bitmap = self.rasterizer.rasterize(clone)
				content = encode_pdf(bitmap, self.page_width_mm)
			except Exception:
				logger.exception("Falha ao exportar PDF da cotação %s", number)
				raise
		logger.info("PDF da cotação %s gerado (%d bytes)", number, len(content))
		return ExportArtifact(filename=pdf_filename(number), media_type=PDF_MEDIA_TYPE, content=content)

	def export_word(self, view: RenderedView) -> ExportArtifact:
		number = view.document.quotation_number
		content = wrap_word_document(view).encode("utf-8")
		logger.info("Documento Word da cotação %s gerado", number)
		return ExportArtifact(filename=word_filename(number), media_type=WORD_MEDIA_TYPE, content=content)
