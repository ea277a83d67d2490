import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from services.errors import MissingDestination, MissingInformation, NavigationLocked
from services.steps import CustomerInfoStep, ItemsStep, PreviewStep
from services.wizard import WizardController


def _fill_customer(wizard, name="Acme"):
	wizard.active_step().set_fields(customer_name=name)


def _add_widget(wizard):
	step = wizard.active_step()
	step.open_add()
	step.update_draft(name="Widget", quantity=3, unit_price=Decimal("100"))
	step.save()


def test_new_document_defaults(wizard):
	doc = wizard.document
	assert wizard.current_step == 0
	assert doc.quotation_number.startswith("QT-2610-")
	assert doc.creation_date == wizard.clock()
	assert doc.valid_until - doc.creation_date == timedelta(days=7)
	assert doc.items == ()
	assert isinstance(wizard.active_step(), CustomerInfoStep)


def test_advance_without_customer_name_keeps_step(wizard):
	with pytest.raises(MissingInformation) as exc:
		wizard.advance()
	assert exc.value.description == "Please enter customer name"
	assert wizard.current_step == 0


def test_advance_without_items_keeps_step(wizard):
	_fill_customer(wizard)
	assert wizard.advance() == 1
	with pytest.raises(MissingInformation) as exc:
		wizard.advance()
	assert exc.value.description == "Please add at least one item"
	assert wizard.current_step == 1


def test_full_walkthrough(wizard):
	_fill_customer(wizard)
	wizard.advance()
	assert isinstance(wizard.active_step(), ItemsStep)
	_add_widget(wizard)
	assert wizard.document.grand_total == Decimal("300")
	assert wizard.advance() == 2
	assert isinstance(wizard.active_step(), PreviewStep)
	# último passo: avançar não sai do intervalo
	assert wizard.advance() == 2


def test_updates_replace_the_document(wizard):
	before = wizard.document
	_fill_customer(wizard)
	assert wizard.document is not before
	assert before.customer_info.customer_name == ""
	assert wizard.document.customer_info.customer_name == "Acme"


def test_retreat(wizard):
	assert wizard.retreat() == 0
	_fill_customer(wizard)
	wizard.advance()
	assert wizard.retreat() == 0


def test_forward_locked_while_submitting_but_back_allowed(wizard):
	_fill_customer(wizard)
	wizard.advance()
	wizard.is_submitting = True
	with pytest.raises(NavigationLocked):
		wizard.advance()
	assert wizard.current_step == 1
	assert wizard.retreat() == 0
	assert wizard.state()["can_go_forward"] is False


def test_send_sets_and_clears_submitting(wizard):
	seen = []

	async def run():
		task = asyncio.ensure_future(wizard.send_email("a@b.com"))
		await asyncio.sleep(0)
		seen.append(wizard.is_submitting)
		return await task

	receipt = asyncio.run(run())
	assert seen == [True]
	assert wizard.is_submitting is False
	assert receipt.description == "Quotation has been sent to a@b.com"


def test_send_with_empty_destination(wizard):
	with pytest.raises(MissingDestination):
		asyncio.run(wizard.send_whatsapp(""))
	assert wizard.is_submitting is False


def test_reset_starts_over(wizard):
	_fill_customer(wizard)
	wizard.advance()
	wizard.reset()
	assert wizard.current_step == 0
	assert wizard.document.customer_info.customer_name == ""


def test_state_snapshot(wizard):
	_fill_customer(wizard)
	wizard.advance()
	_add_widget(wizard)
	state = wizard.state()
	assert state["current_step"] == 1
	assert [s["valid"] for s in state["steps"]] == [True, True, True]
	assert state["document"]["grand_total_display"] == "300"
	assert state["document"]["items"][0]["total_display"] == "300"


def test_overlapping_sends_are_rejected(wizard):
	wizard.settings = wizard.settings.model_copy(update={"delivery_delay_seconds": 0.05})
	seen = []

	async def run():
		first = asyncio.ensure_future(wizard.send_email("a@b.com"))
		await asyncio.sleep(0)
		with pytest.raises(NavigationLocked):
			await wizard.send_whatsapp("+20 123")
		seen.append(wizard.is_submitting)
		return await first

	receipt = asyncio.run(run())
	assert seen == [True]
	assert receipt.channel == "email"
	assert wizard.is_submitting is False


def test_export_geometry_follows_settings(fast_settings):
	settings = fast_settings.model_copy(update={"export_width_px": 600, "export_padding_px": 10, "raster_scale": 1})
	wizard = WizardController(settings=settings)
	stage = wizard.pipeline.stage
	assert (stage.width_px, stage.padding_px, wizard.pipeline.rasterizer.scale) == (600, 10, 1)
	_fill_customer(wizard)
	wizard.advance()
	_add_widget(wizard)
	wizard.advance()
	with stage.staged(wizard.active_step().render()) as clone:
		bitmap = wizard.pipeline.rasterizer.rasterize(clone)
	assert bitmap.width == 600
