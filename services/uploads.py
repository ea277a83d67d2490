import logging
from io import BytesIO
from typing import Any, Dict, Optional, Tuple

import exifread
from PIL import Image, ImageOps, UnidentifiedImageError

from models.quotation import ImageAttachment
from services.errors import UnsupportedUpload, UploadTooLarge

logger = logging.getLogger("quotation.uploads")

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
# Teto de pixels para logo e assinatura (bem abaixo do limite do Pillow)
DEFAULT_MAX_PIXELS = 25_000_000


def size_label(max_bytes: int) -> str:
	if max_bytes >= 1024 * 1024:
		return f"{max_bytes / (1024 * 1024):g}MB"
	if max_bytes >= 1024:
		return f"{max_bytes / 1024:g}KB"
	return f"{max_bytes} bytes"


def _read_exif(file_bytes: bytes) -> Dict[str, str]:
	# EXIF é opcional; arquivos sem metadados (PNG, GIF) retornam vazio
	with BytesIO(file_bytes) as bio:
		try:
			tags = exifread.process_file(bio, details=False)
		except Exception:
			logger.debug("EXIF ilegível, ignorando")
			return {}
	return {str(k): str(v) for k, v in tags.items()}


def _open_image(file_bytes: bytes, max_pixels: Optional[int] = None) -> Image.Image:
	img = Image.open(BytesIO(file_bytes))
	# Confere as dimensões do cabeçalho antes de decodificar
	if max_pixels is not None and img.width * img.height > max_pixels:
		raise Image.DecompressionBombError(f"{img.width}x{img.height} exceeds {max_pixels} pixels")
	img.load()
	return img


def apply_exif_orientation(img: Image.Image) -> Image.Image:
	try:
		return ImageOps.exif_transpose(img)
	except Exception:
		return img


def inspect_image(file_bytes: bytes, max_pixels: Optional[int] = None) -> Tuple[int, int, Dict[str, Any]]:
	img = apply_exif_orientation(_open_image(file_bytes, max_pixels))
	width, height = img.size
	return width, height, _read_exif(file_bytes)


def build_attachment(
	filename: str,
	content_type: str,
	file_bytes: bytes,
	max_bytes: int = DEFAULT_MAX_BYTES,
	max_pixels: int = DEFAULT_MAX_PIXELS,
) -> ImageAttachment:
	if len(file_bytes) > max_bytes:
		logger.warning("Upload rejeitado (tamanho %d bytes): %s", len(file_bytes), filename)
		raise UploadTooLarge("Upload rejected", f"File size should be less than {size_label(max_bytes)}")

	if not (content_type or "").startswith("image/"):
		logger.warning("Upload rejeitado (tipo %s): %s", content_type, filename)
		raise UnsupportedUpload("Upload rejected", "Only image files are allowed")

	try:
		width, height, exif = inspect_image(file_bytes, max_pixels)
	except Image.DecompressionBombError as e:
		logger.warning("Upload rejeitado (dimensões excessivas): %s", filename)
		raise UnsupportedUpload("Upload rejected", "Image dimensions are too large") from e
	except (UnidentifiedImageError, OSError) as e:
		logger.warning("Upload rejeitado (imagem inválida): %s", filename)
		raise UnsupportedUpload("Upload rejected", "Only image files are allowed") from e

	return ImageAttachment(
		filename=filename or "",
		content_type=content_type,
		content=file_bytes,
		width=width,
		height=height,
		exif=exif,
	)


def decode_attachment(attachment: ImageAttachment) -> Image.Image:
	return apply_exif_orientation(_open_image(attachment.content))
