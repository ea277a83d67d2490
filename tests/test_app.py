import re
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app import create_app
from config import Settings
from helpers import make_png


@pytest.fixture
def client(fast_settings):
	return TestClient(create_app(fast_settings))


@pytest.fixture
def sid(client):
	resp = client.post("/api/wizard")
	assert resp.status_code == 200
	return resp.json()["session_id"]


def _to_items_step(client, sid):
	client.put(f"/api/wizard/{sid}/customer", json={"customer_name": "Acme"})
	assert client.post(f"/api/wizard/{sid}/next").json()["current_step"] == 1


def _to_preview(client, sid):
	_to_items_step(client, sid)
	client.post(f"/api/wizard/{sid}/items", json={"name": "Widget", "quantity": 3, "unit_price": 100})
	assert client.post(f"/api/wizard/{sid}/next").json()["current_step"] == 2


def test_index_page(client):
	resp = client.get("/")
	assert resp.status_code == 200
	assert "Quotation Wizard" in resp.text
	assert "__CURRENCY__" not in resp.text
	# a aba fechada descarta a sessão
	assert "pagehide" in resp.text and "keepalive: true" in resp.text


def test_end_to_end_pdf_export(client, sid):
	_to_items_step(client, sid)
	state = client.post(
		f"/api/wizard/{sid}/items",
		json={"name": "Widget", "quantity": 3, "unit_price": 100},
	).json()
	assert state["document"]["grand_total_display"] == "300"
	assert client.post(f"/api/wizard/{sid}/next").json()["current_step"] == 2

	resp = client.get(f"/api/wizard/{sid}/export/pdf")
	assert resp.status_code == 200
	assert resp.headers["content-type"] == "application/pdf"
	assert re.fullmatch(
		r'attachment; filename="Quotation-QT-\d{4}-\d{3}\.pdf"',
		resp.headers["content-disposition"],
	)
	assert resp.content.startswith(b"%PDF")

	wizard = client.app.state.registry.get(sid)
	assert wizard.pipeline.stage.children == []


def test_export_failure_returns_500_and_releases_clone(client, sid):
	_to_preview(client, sid)
	wizard = client.app.state.registry.get(sid)

	class Broken:
		def rasterize(self, clone):
			raise RuntimeError("boom")

	wizard.pipeline.rasterizer = Broken()
	resp = client.get(f"/api/wizard/{sid}/export/pdf")
	assert resp.status_code == 500
	assert wizard.pipeline.stage.children == []


def test_word_export(client, sid):
	_to_preview(client, sid)
	resp = client.get(f"/api/wizard/{sid}/export/word")
	assert resp.status_code == 200
	assert resp.headers["content-type"].startswith("application/msword")
	assert resp.headers["content-disposition"].endswith('.doc"')
	assert "Widget" in resp.text


def test_missing_customer_name_blocks_next(client, sid):
	resp = client.post(f"/api/wizard/{sid}/next")
	assert resp.status_code == 400
	assert resp.json()["detail"] == {"title": "Missing information", "description": "Please enter customer name"}
	assert client.get(f"/api/wizard/{sid}").json()["current_step"] == 0


def test_missing_items_blocks_next(client, sid):
	_to_items_step(client, sid)
	resp = client.post(f"/api/wizard/{sid}/next")
	assert resp.status_code == 400
	assert resp.json()["detail"]["description"] == "Please add at least one item"


def test_invalid_item_leaves_items_unchanged(client, sid):
	_to_items_step(client, sid)
	resp = client.post(f"/api/wizard/{sid}/items", json={"name": "Widget", "quantity": 0, "unit_price": 10})
	assert resp.status_code == 400
	assert client.get(f"/api/wizard/{sid}").json()["document"]["items"] == []


def test_edit_move_delete_items(client, sid):
	_to_items_step(client, sid)
	client.post(f"/api/wizard/{sid}/items", json={"name": "A", "quantity": 1, "unit_price": 1})
	state = client.post(f"/api/wizard/{sid}/items", json={"name": "B", "quantity": 2, "unit_price": 5}).json()
	a_id = state["document"]["items"][0]["id"]

	state = client.post(f"/api/wizard/{sid}/items/0/move", json={"direction": "down"}).json()
	assert [it["name"] for it in state["document"]["items"]] == ["B", "A"]

	state = client.put(f"/api/wizard/{sid}/items/{a_id}", json={"name": "A+", "quantity": 4, "unit_price": 1}).json()
	assert [it["name"] for it in state["document"]["items"]] == ["B", "A+"]
	assert state["document"]["grand_total_display"] == "14"

	state = client.delete(f"/api/wizard/{sid}/items/{a_id}").json()
	assert [it["name"] for it in state["document"]["items"]] == ["B"]
	assert client.delete(f"/api/wizard/{sid}/items/nope").status_code == 404


def test_upload_and_remove_logo(client, sid):
	files = {"file": ("logo.png", make_png(), "image/png")}
	state = client.post(f"/api/wizard/{sid}/customer/logo", files=files).json()
	assert state["document"]["customer_info"]["logo_url"].startswith("data:image/png;base64,")
	state = client.delete(f"/api/wizard/{sid}/customer/logo").json()
	assert state["document"]["customer_info"]["logo_url"] == ""


def test_upload_rejections():
	client = TestClient(create_app(Settings(max_upload_bytes=20, delivery_delay_seconds=0, image_settle_seconds=0)))
	sid = client.post("/api/wizard").json()["session_id"]
	resp = client.post(f"/api/wizard/{sid}/customer/logo", files={"file": ("a.txt", b"hi", "text/plain")})
	assert resp.status_code == 400
	assert resp.json()["detail"]["description"] == "Only image files are allowed"
	resp = client.post(f"/api/wizard/{sid}/customer/signature", files={"file": ("big.png", make_png((200, 200)), "image/png")})
	assert resp.status_code == 413
	info = client.get(f"/api/wizard/{sid}").json()["document"]["customer_info"]
	assert info["logo_url"] == "" and info["signature_url"] == ""


def test_huge_pixel_upload_rejected_with_notice(client, sid):
	# Poucos bytes comprimidos, mas 400 milhões de pixels
	buf = BytesIO()
	Image.new("1", (20000, 20000)).save(buf, format="PNG")
	files = {"file": ("huge.png", buf.getvalue(), "image/png")}
	resp = client.post(f"/api/wizard/{sid}/customer/logo", files=files)
	assert resp.status_code == 400
	assert resp.json()["detail"]["description"] == "Image dimensions are too large"
	assert client.get(f"/api/wizard/{sid}").json()["document"]["customer_info"]["logo_url"] == ""


def test_step_guard(client, sid):
	resp = client.post(f"/api/wizard/{sid}/items", json={"name": "A", "quantity": 1, "unit_price": 1})
	assert resp.status_code == 409
	assert client.get(f"/api/wizard/{sid}/export/pdf").status_code == 409


def test_send_options(client, sid):
	_to_preview(client, sid)
	resp = client.post(f"/api/wizard/{sid}/send/whatsapp", json={"phone_number": "+20 123-456"})
	assert resp.status_code == 200
	assert resp.json()["open_url"].startswith("https://wa.me/20123456?text=")

	resp = client.post(f"/api/wizard/{sid}/send/email", json={"email": ""})
	assert resp.status_code == 400
	assert resp.json()["detail"]["title"] == "Missing email"

	resp = client.post(f"/api/wizard/{sid}/send/email", json={"email": "client@example.com"})
	assert resp.json()["description"] == "Quotation has been sent to client@example.com"
	assert client.get(f"/api/wizard/{sid}").json()["is_submitting"] is False


def test_preview_and_print(client, sid):
	_to_preview(client, sid)
	preview = client.get(f"/api/wizard/{sid}/preview").text
	assert "Grand Total:" in preview and "300 EGP" in preview
	assert "window.print()" in client.get(f"/api/wizard/{sid}/print").text


def test_previous_reset_and_discard(client, sid):
	_to_items_step(client, sid)
	assert client.post(f"/api/wizard/{sid}/previous").json()["current_step"] == 0
	state = client.post(f"/api/wizard/{sid}/reset").json()
	assert state["document"]["customer_info"]["customer_name"] == ""
	assert client.delete(f"/api/wizard/{sid}").status_code == 200
	assert client.get(f"/api/wizard/{sid}").status_code == 404
