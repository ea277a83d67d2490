from io import BytesIO

from PIL import Image


def make_png(size=(40, 20), color=(200, 30, 30, 255)) -> bytes:
	buf = BytesIO()
	Image.new("RGBA", size, color).save(buf, format="PNG")
	return buf.getvalue()
