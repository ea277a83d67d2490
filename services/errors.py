class QuotationError(Exception):
	status_code = 400

	def __init__(self, title: str, description: str = ""):
		super().__init__(description or title)
		self.title = title
		self.description = description

	def as_detail(self) -> dict:
		return {"title": self.title, "description": self.description}


class MissingInformation(QuotationError):
	pass


class InvalidItem(QuotationError):
	pass


class UnsupportedUpload(QuotationError):
	pass


class UploadTooLarge(UnsupportedUpload):
	status_code = 413


class MissingDestination(QuotationError):
	pass


class NavigationLocked(QuotationError):
	status_code = 409


class StepNotActive(QuotationError):
	status_code = 409


class ItemNotFound(QuotationError):
	status_code = 404
