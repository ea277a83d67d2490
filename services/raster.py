import logging
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from models.quotation import ImageAttachment, QuotationDocument
from services.formatting import format_amount, format_date
from services.uploads import decode_attachment

logger = logging.getLogger("quotation.raster")

Painter = Callable[[Image.Image, ImageDraw.ImageDraw, int], None]
Block = Tuple[int, Painter]
# (primeira coluna, última coluna, linhas de texto, alinhado à direita)
Cell = Tuple[int, int, List[str], bool]

# Larguras relativas das colunas: Item, Descrição, Qtd, Unitário, Total
COLUMN_RATIOS = (0.25, 0.30, 0.12, 0.16, 0.17)
TEXT = (17, 17, 17)
MUTED = (75, 85, 99)
BORDER = (221, 221, 221)
HEADER_FILL = (242, 242, 242)

# Tamanhos em px CSS, multiplicados pela escala
BODY_SIZE = 14
HEADING_SIZE = 18
TITLE_SIZE = 28
SPACING = 32
IMAGE_BOX = 80


def _font(size: int):
	return ImageFont.load_default(size=size)


def _line_height(size: int) -> int:
	return int(size * 1.5)


def _wrap(text: str, font, max_width: int) -> List[str]:
	# Quebra por palavras; palavras maiores que a largura são cortadas por caractere
	lines: List[str] = []
	for paragraph in (text or "").splitlines() or [""]:
		current = ""
		for word in paragraph.split(" "):
			candidate = f"{current} {word}" if current else word
			if font.getlength(candidate) <= max_width:
				current = candidate
				continue
			if current:
				lines.append(current)
			current = ""
			for ch in word:
				if current and font.getlength(current + ch) > max_width:
					lines.append(current)
					current = ""
				current += ch
		lines.append(current)
	return lines


class Rasterizer:
	# Geometria vem do clone; a escala multiplica tudo para qualidade de impressão
	def __init__(self, scale: int = 2):
		self.scale = scale

	def rasterize(self, clone) -> Image.Image:
		s = self.scale
		width = clone.width_px * s
		pad = clone.padding_px * s
		content_width = width - 2 * pad
		document: QuotationDocument = clone.view.document

		blocks: List[Block] = []
		blocks.extend(self._header(document, pad, content_width))
		blocks.extend(self._title(document, pad, content_width))
		blocks.extend(self._parties(document, pad, content_width))
		blocks.extend(self._table(document, clone.view.currency, pad, content_width))
		blocks.extend(self._notes(document, pad, content_width))
		blocks.extend(self._signature(document, pad, content_width))

		height = 2 * pad + sum(h for h, _ in blocks)
		img = Image.new("RGB", (width, height), clone.background)
		draw = ImageDraw.Draw(img)
		y = pad
		for h, paint in blocks:
			paint(img, draw, y)
			y += h
		logger.debug("Bitmap %dx%d para %s", width, height, document.quotation_number)
		return img

	def _px(self, value: int) -> int:
		return value * self.scale

	def _image(self, attachment: ImageAttachment) -> Image.Image:
		box = self._px(IMAGE_BOX)
		picture = decode_attachment(attachment).convert("RGBA")
		picture.thumbnail((box, box), Image.Resampling.LANCZOS)
		return picture

	def _header(self, document: QuotationDocument, pad: int, content_width: int) -> List[Block]:
		info = document.customer_info
		if info.logo is None and not info.company_name:
			return []

		size = self._px(TITLE_SIZE)
		font = _font(size)
		logo = self._image(info.logo) if info.logo is not None else None
		logo_height = logo.height if logo is not None else 0
		height = max(logo_height, _line_height(size)) + self._px(SPACING)

		def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
			if logo is not None:
				img.paste(logo, (pad, y), logo)
			if info.company_name:
				draw.text((pad + content_width, y), info.company_name, font=font, fill=TEXT, anchor="ra")

		return [(height, paint)]

	def _title(self, document: QuotationDocument, pad: int, content_width: int) -> List[Block]:
		title_size = self._px(TITLE_SIZE)
		number_size = self._px(HEADING_SIZE)
		title_font = _font(title_size)
		number_font = _font(number_size)
		height = _line_height(title_size) + _line_height(number_size) + self._px(SPACING)

		def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
			center = pad + content_width // 2
			draw.text((center, y), "Quotation", font=title_font, fill=TEXT, anchor="ma")
			draw.text(
				(center, y + _line_height(title_size)),
				document.quotation_number,
				font=number_font,
				fill=MUTED,
				anchor="ma",
			)

		return [(height, paint)]

	def _parties(self, document: QuotationDocument, pad: int, content_width: int) -> List[Block]:
		heading_size = self._px(HEADING_SIZE)
		body_size = self._px(BODY_SIZE)
		heading = _font(heading_size)
		body = _font(body_size)
		line = _line_height(body_size)
		name_lines = _wrap(document.customer_info.customer_name, body, content_width // 2)
		height = _line_height(heading_size) + max(len(name_lines), 2) * line + self._px(SPACING)

		dates = [
			f"Date: {format_date(document.creation_date)}",
			f"Valid Until: {format_date(document.valid_until)}",
		]

		def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
			draw.text((pad, y), "Customer", font=heading, fill=TEXT)
			yy = y + _line_height(heading_size)
			for text in name_lines:
				draw.text((pad, yy), text, font=body, fill=TEXT)
				yy += line
			right = pad + content_width
			for i, text in enumerate(dates):
				draw.text((right, y + i * line), text, font=body, fill=TEXT, anchor="ra")

		return [(height, paint)]

	def _table(self, document: QuotationDocument, currency: str, pad: int, content_width: int) -> List[Block]:
		size = self._px(BODY_SIZE)
		font = _font(size)
		line = _line_height(size)
		cell_pad = self._px(8)
		border = max(1, self.scale // 2)

		widths = [int(content_width * r) for r in COLUMN_RATIOS]
		widths[-1] = content_width - sum(widths[:-1])
		edges = [pad]
		for w in widths:
			edges.append(edges[-1] + w)

		def cell(first: int, last: int, text: str, right: bool) -> Cell:
			span = edges[last + 1] - edges[first] - 2 * cell_pad
			return first, last, _wrap(text, font, span), right

		def row(cells: Sequence[Cell], fill: Optional[Tuple[int, int, int]] = None) -> Block:
			height = max(len(c[2]) for c in cells) * line + 2 * cell_pad

			def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
				for first, last, lines, right in cells:
					left, end = edges[first], edges[last + 1]
					draw.rectangle((left, y, end, y + height), fill=fill, outline=BORDER, width=border)
					for n, text in enumerate(lines):
						ty = y + cell_pad + n * line
						if right:
							draw.text((end - cell_pad, ty), text, font=font, fill=TEXT, anchor="ra")
						else:
							draw.text((left + cell_pad, ty), text, font=font, fill=TEXT)

			return height, paint

		blocks: List[Block] = [row([
			cell(0, 0, "Item", False),
			cell(1, 1, "Description", False),
			cell(2, 2, "Quantity", True),
			cell(3, 3, f"Unit Price ({currency})", True),
			cell(4, 4, f"Total ({currency})", True),
		], fill=HEADER_FILL)]

		for it in document.items:
			blocks.append(row([
				cell(0, 0, it.name, False),
				cell(1, 1, it.description, False),
				cell(2, 2, str(it.quantity), True),
				cell(3, 3, format_amount(it.unit_price), True),
				cell(4, 4, format_amount(it.total), True),
			]))

		blocks.append(row([
			cell(0, 3, "Grand Total:", True),
			cell(4, 4, f"{format_amount(document.grand_total)} {currency}", True),
		]))
		blocks.append((self._px(SPACING), lambda img, draw, y: None))
		return blocks

	def _notes(self, document: QuotationDocument, pad: int, content_width: int) -> List[Block]:
		if not document.notes:
			return []
		heading_size = self._px(HEADING_SIZE)
		body_size = self._px(BODY_SIZE)
		heading = _font(heading_size)
		body = _font(body_size)
		line = _line_height(body_size)
		lines = _wrap(document.notes, body, content_width)
		height = _line_height(heading_size) + len(lines) * line + self._px(SPACING)

		def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
			draw.text((pad, y), "Notes", font=heading, fill=TEXT)
			yy = y + _line_height(heading_size)
			for text in lines:
				draw.text((pad, yy), text, font=body, fill=TEXT)
				yy += line

		return [(height, paint)]

	def _signature(self, document: QuotationDocument, pad: int, content_width: int) -> List[Block]:
		signature = document.customer_info.signature
		if signature is None:
			return []
		picture = self._image(signature)

		def paint(img: Image.Image, draw: ImageDraw.ImageDraw, y: int) -> None:
			img.paste(picture, (pad + content_width - picture.width, y), picture)

		return [(picture.height, paint)]
