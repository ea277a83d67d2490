from pydantic import BaseModel


class Settings(BaseModel):
	app_name: str = "Quotation Wizard"
	version: str = "0.1.0"
	currency: str = "EGP"
	validity_days: int = 7
	max_upload_bytes: int = 5 * 1024 * 1024
	max_upload_pixels: int = 25_000_000
	# Sessões sem acesso por esse tempo são descartadas
	session_idle_seconds: float = 2 * 60 * 60
	# Atrasos simulados (segundos)
	delivery_delay_seconds: float = 1.5
	image_settle_seconds: float = 0.5
	# Geometria da exportação: A4 a 96 DPI
	export_width_px: int = 794
	export_padding_px: int = 40
	raster_scale: int = 2
	page_width_mm: float = 210.0
	serialize_exports: bool = True
	log_level: str = "INFO"


settings = Settings()
