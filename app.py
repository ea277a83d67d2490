import logging
from io import BytesIO
from typing import Optional, Type, TypeVar

from fastapi import FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, StreamingResponse

from config import Settings, settings as default_settings
from logging_setup import setup_logging
from models.quotation import (
	CustomerFields,
	EmailRequest,
	ImageKind,
	ItemFields,
	MoveRequest,
	NotesPayload,
	WhatsAppRequest,
)
from services.errors import QuotationError, StepNotActive
from services.export import ExportArtifact
from services.sessions import WizardRegistry
from services.steps import CustomerInfoStep, ItemsStep, PreviewStep
from services.wizard import WizardController

logger = logging.getLogger("quotation.app")

StepT = TypeVar("StepT")


def _require_step(wizard: WizardController, step_type: Type[StepT]) -> StepT:
	# Cada componente só existe enquanto o seu passo está ativo
	step = wizard.active_step()
	if not isinstance(step, step_type):
		raise StepNotActive("Step not active", f"'{step_type.title}' is not the current step")
	return step


def _download(artifact: ExportArtifact) -> StreamingResponse:
	headers = {"Content-Disposition": artifact.content_disposition}
	return StreamingResponse(BytesIO(artifact.content), media_type=artifact.media_type, headers=headers)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
	settings = settings or default_settings
	setup_logging(settings.log_level)

	app = FastAPI(title=settings.app_name, version=settings.version)
	registry = WizardRegistry(
		lambda: WizardController(settings=settings),
		idle_seconds=settings.session_idle_seconds,
	)
	app.state.registry = registry

	def _wizard(session_id: str) -> WizardController:
		try:
			return registry.get(session_id)
		except KeyError:
			raise HTTPException(status_code=404, detail="Session not found. Start a new quotation.")

	@app.exception_handler(QuotationError)
	async def quotation_error_handler(request: Request, exc: QuotationError) -> JSONResponse:
		return JSONResponse(status_code=exc.status_code, content={"detail": exc.as_detail()})

	@app.get("/", response_class=HTMLResponse)
	async def wizard_ui() -> HTMLResponse:
		return HTMLResponse(content=WIZARD_PAGE.replace("__CURRENCY__", settings.currency))

	@app.post("/api/wizard")
	async def create_wizard() -> JSONResponse:
		session_id = registry.create()
		return JSONResponse(content={"session_id": session_id, **registry.get(session_id).state()})

	@app.get("/api/wizard/{session_id}")
	async def wizard_state(session_id: str) -> JSONResponse:
		return JSONResponse(content=_wizard(session_id).state())

	@app.delete("/api/wizard/{session_id}")
	async def discard_wizard(session_id: str) -> JSONResponse:
		_wizard(session_id)
		registry.discard(session_id)
		return JSONResponse(content={"discarded": session_id})

	@app.post("/api/wizard/{session_id}/reset")
	async def reset_wizard(session_id: str) -> JSONResponse:
		wizard = _wizard(session_id)
		wizard.reset()
		return JSONResponse(content=wizard.state())

	@app.post("/api/wizard/{session_id}/next")
	async def next_step(session_id: str) -> JSONResponse:
		wizard = _wizard(session_id)
		wizard.advance()
		return JSONResponse(content=wizard.state())

	@app.post("/api/wizard/{session_id}/previous")
	async def previous_step(session_id: str) -> JSONResponse:
		wizard = _wizard(session_id)
		wizard.retreat()
		return JSONResponse(content=wizard.state())

	# Passo 1: cliente

	@app.put("/api/wizard/{session_id}/customer")
	async def update_customer(session_id: str, payload: CustomerFields) -> JSONResponse:
		wizard = _wizard(session_id)
		step = _require_step(wizard, CustomerInfoStep)
		step.set_fields(customer_name=payload.customer_name, company_name=payload.company_name)
		return JSONResponse(content=wizard.state())

	@app.post("/api/wizard/{session_id}/customer/{kind}")
	async def upload_image(session_id: str, kind: ImageKind, file: UploadFile = File(...)) -> JSONResponse:
		wizard = _wizard(session_id)
		step = _require_step(wizard, CustomerInfoStep)
		file_bytes = await file.read()
		step.upload(kind, file.filename or "", file.content_type or "", file_bytes)
		return JSONResponse(content=wizard.state())

	@app.delete("/api/wizard/{session_id}/customer/{kind}")
	async def remove_image(session_id: str, kind: ImageKind) -> JSONResponse:
		wizard = _wizard(session_id)
		_require_step(wizard, CustomerInfoStep).remove(kind)
		return JSONResponse(content=wizard.state())

	# Passo 2: itens

	@app.post("/api/wizard/{session_id}/items")
	async def add_item(session_id: str, payload: ItemFields) -> JSONResponse:
		wizard = _wizard(session_id)
		step = _require_step(wizard, ItemsStep)
		step.open_add()
		step.update_draft(**payload.model_dump())
		step.save()
		return JSONResponse(content=wizard.state())

	@app.put("/api/wizard/{session_id}/items/{item_id}")
	async def edit_item(session_id: str, item_id: str, payload: ItemFields) -> JSONResponse:
		wizard = _wizard(session_id)
		step = _require_step(wizard, ItemsStep)
		step.open_edit(item_id)
		step.update_draft(**payload.model_dump())
		step.save()
		return JSONResponse(content=wizard.state())

	@app.delete("/api/wizard/{session_id}/items/{item_id}")
	async def delete_item(session_id: str, item_id: str) -> JSONResponse:
		wizard = _wizard(session_id)
		_require_step(wizard, ItemsStep).delete(item_id)
		return JSONResponse(content=wizard.state())

	@app.post("/api/wizard/{session_id}/items/{index}/move")
	async def move_item(session_id: str, index: int, payload: MoveRequest) -> JSONResponse:
		wizard = _wizard(session_id)
		_require_step(wizard, ItemsStep).move(index, payload.direction)
		return JSONResponse(content=wizard.state())

	@app.put("/api/wizard/{session_id}/notes")
	async def update_notes(session_id: str, payload: NotesPayload) -> JSONResponse:
		wizard = _wizard(session_id)
		_require_step(wizard, ItemsStep).set_notes(payload.notes)
		return JSONResponse(content=wizard.state())

	# Passo 3: pré-visualização, exportação e envio

	@app.get("/api/wizard/{session_id}/preview", response_class=HTMLResponse)
	async def preview(session_id: str) -> HTMLResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		return HTMLResponse(content=step.render().markup)

	@app.get("/api/wizard/{session_id}/print", response_class=HTMLResponse)
	async def print_page(session_id: str) -> HTMLResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		return HTMLResponse(content=step.print_view())

	@app.get("/api/wizard/{session_id}/export/pdf")
	async def export_pdf(session_id: str) -> StreamingResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		try:
			artifact = await step.download_pdf()
		except Exception:
			logger.warning("Exportação PDF falhou na sessão %s", session_id)
			raise HTTPException(status_code=500, detail="Export failed")
		return _download(artifact)

	@app.get("/api/wizard/{session_id}/export/word")
	async def export_word(session_id: str) -> StreamingResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		return _download(step.download_word())

	@app.post("/api/wizard/{session_id}/send/email")
	async def send_email(session_id: str, payload: EmailRequest) -> JSONResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		receipt = await step.send_email(payload.email)
		return JSONResponse(content=receipt.model_dump())

	@app.post("/api/wizard/{session_id}/send/whatsapp")
	async def send_whatsapp(session_id: str, payload: WhatsAppRequest) -> JSONResponse:
		step = _require_step(_wizard(session_id), PreviewStep)
		receipt = await step.send_whatsapp(payload.phone_number)
		return JSONResponse(content=receipt.model_dump())

	return app


WIZARD_PAGE = """
<!doctype html>
<html lang="en">
<head>
	<meta charset="utf-8" />
	<meta name="viewport" content="width=device-width, initial-scale=1" />
	<title>Quotation Wizard</title>
	<style>
		:root { --bg:#0b1020; --card:#12172b; --border:#1c2747; --text:#E6E8EC; --muted:#C6C9D3; --accent:#7bd2ff; --danger:#ff6b6b; --ok:#8ce99a; }
		html, body { margin:0; padding:0; background:radial-gradient(1200px 800px at 20% -10%, #13214a 0%, #0b1020 60%), var(--bg); color:var(--text); font-family: system-ui, -apple-system, Segoe UI, Roboto, Arial, sans-serif; }
		.container { max-width: 980px; margin: 0 auto; padding: 40px 20px; }
		.card { background: linear-gradient(180deg, rgba(255,255,255,0.02), rgba(255,255,255,0.0)); border: 1px solid var(--border); border-radius: 14px; box-shadow: 0 10px 30px rgba(0,0,0,0.25); overflow:hidden; }
		.steps { display:flex; justify-content:space-between; padding:16px 24px; border-bottom:1px solid var(--border); }
		.step { display:flex; flex-direction:column; align-items:center; color:var(--muted); font-size:13px; }
		.step .dot { width:32px; height:32px; border-radius:999px; display:flex; align-items:center; justify-content:center; border:1px solid var(--border); margin-bottom:6px; }
		.step.done, .step.done .dot { color:var(--accent); border-color:var(--accent); }
		.progress { height:4px; background:var(--border); margin:0 24px; }
		.progress > span { display:block; height:100%; background:var(--accent); transition: width .2s; }
		.content { padding:24px; }
		.nav { padding:16px 24px; border-top:1px solid var(--border); display:flex; justify-content:space-between; align-items:center; gap:8px; }
		.label { font-size: 13px; color: var(--muted); margin:12px 0 6px; display:block; }
		.input, .textarea { width:100%; box-sizing:border-box; padding:10px 12px; border-radius:10px; border:1px solid var(--border); background:#0b1020; color:var(--text); }
		.btn { appearance:none; border:1px solid var(--border); border-radius:10px; background:#0f1630; color:var(--text); padding:10px 14px; cursor:pointer; }
		.btn:hover { background:#101a3a; }
		.btn:disabled { opacity:.4; cursor:default; }
		.btn-sm { padding:4px 8px; font-size:12px; }
		table { width: 100%; border-collapse: collapse; }
		th, td { border-bottom:1px solid var(--border); padding:8px; text-align:left; }
		.right { text-align:right; }
		.thumb { width:96px; height:96px; object-fit:contain; border:1px solid var(--border); border-radius:10px; background:#fff; }
		.row { display:flex; gap:8px; align-items:center; flex-wrap:wrap; }
		.toast { position:fixed; right:20px; bottom:20px; max-width:360px; padding:12px 16px; border-radius:10px; border:1px solid var(--border); background:#12172b; display:none; }
		.toast.error { border-color:var(--danger); }
		.paper { background:#fff; color:#111; border-radius:10px; padding:24px; margin-top:12px; }
		.paper table th, .paper table td { border:1px solid #ddd; }
		.paper img { max-width:80px; max-height:80px; }
		.modal { position:fixed; inset:0; background:rgba(0,0,0,.6); display:none; align-items:center; justify-content:center; }
		.modal .card { padding:24px; width:min(520px, 92vw); background:var(--card); }
		.hidden { display:none; }
	</style>
</head>
<body>
	<div class="container">
		<div class="card">
			<div class="steps" id="steps"></div>
			<div class="progress"><span id="bar"></span></div>
			<div class="content">
				<h2 id="stepTitle"></h2>

				<div id="step0" class="hidden">
					<label class="label" for="customerName">Customer Name *</label>
					<input id="customerName" class="input" placeholder="Enter customer name" />
					<label class="label" for="companyName">Company Name (Optional)</label>
					<input id="companyName" class="input" placeholder="Enter company name" />
					<label class="label">Company Logo (Optional)</label>
					<div class="row" id="logoBox"></div>
					<label class="label">Signature (Optional)</label>
					<div class="row" id="signatureBox"></div>
				</div>

				<div id="step1" class="hidden">
					<div class="row" style="justify-content:space-between">
						<h3>Items</h3>
						<button class="btn" onclick="openItem()">Add Item</button>
					</div>
					<div id="itemsBox"></div>
					<label class="label" for="notes">Notes (Optional)</label>
					<textarea id="notes" class="textarea" rows="4" placeholder="Add any additional notes here (e.g., 'Thank you for your business')"></textarea>
				</div>

				<div id="step2" class="hidden">
					<div class="row" style="justify-content:flex-end">
						<button class="btn" onclick="printQuotation()">Print</button>
						<button class="btn" onclick="download('pdf')">PDF</button>
						<button class="btn" onclick="download('word')">Word</button>
					</div>
					<div class="paper" id="preview"></div>
					<label class="label" for="email">Email Address</label>
					<div class="row">
						<input id="email" class="input" style="flex:1" type="email" placeholder="recipient@example.com" />
						<button class="btn" onclick="sendEmail()">Send</button>
					</div>
					<label class="label" for="whatsapp">WhatsApp Number (with country code)</label>
					<div class="row">
						<input id="whatsapp" class="input" style="flex:1" type="tel" placeholder="+201234567890" />
						<button class="btn" onclick="sendWhatsApp()">Send</button>
					</div>
				</div>
			</div>
			<div class="nav">
				<button id="btnPrev" class="btn" onclick="go('previous')">Previous</button>
				<span id="busy" class="hidden">Processing...</span>
				<button id="btnNext" class="btn" onclick="go('next')">Next</button>
			</div>
		</div>
	</div>

	<div class="modal" id="itemModal">
		<div class="card">
			<h3 id="itemModalTitle">Add New Item</h3>
			<label class="label" for="itemName">Item Name *</label>
			<input id="itemName" class="input" placeholder="Enter item name" />
			<label class="label" for="itemDescription">Description (Optional)</label>
			<textarea id="itemDescription" class="textarea" placeholder="Enter item description"></textarea>
			<div class="row">
				<div style="flex:1"><label class="label" for="itemQuantity">Quantity *</label><input id="itemQuantity" class="input" type="number" min="1" /></div>
				<div style="flex:1"><label class="label" for="itemUnitPrice">Unit Price (__CURRENCY__) *</label><input id="itemUnitPrice" class="input" type="number" min="0" step="0.01" /></div>
			</div>
			<div class="row" style="justify-content:flex-end; margin-top:16px">
				<button class="btn" onclick="closeItem()">Cancel</button>
				<button class="btn" onclick="saveItem()">Save</button>
			</div>
		</div>
	</div>

	<div class="toast" id="toast"></div>

	<script>
		let sid = null;
		let state = null;
		let editingId = null;
		const currency = '__CURRENCY__';

		function el(id) { return document.getElementById(id); }
		function esc(s) { const d = document.createElement('div'); d.textContent = s ?? ''; return d.innerHTML; }

		function toast(title, description, isError) {
			const t = el('toast');
			t.innerHTML = '<strong>' + esc(title) + '</strong><div>' + esc(description || '') + '</div>';
			t.className = 'toast' + (isError ? ' error' : '');
			t.style.display = 'block';
			clearTimeout(t._h);
			t._h = setTimeout(() => { t.style.display = 'none'; }, 3500);
		}

		async function api(method, path, body, isForm) {
			const opts = { method };
			if (body !== undefined) {
				if (isForm) { opts.body = body; }
				else { opts.headers = { 'Content-Type': 'application/json' }; opts.body = JSON.stringify(body); }
			}
			const resp = await fetch('/api/wizard' + path, opts);
			const ctype = resp.headers.get('content-type') || '';
			const data = ctype.includes('application/json') ? await resp.json() : await resp.text();
			if (!resp.ok) {
				const d = data && data.detail;
				if (d && d.title) toast(d.title, d.description, true);
				else toast('Error', typeof d === 'string' ? d : 'Request failed', true);
				throw new Error('request failed');
			}
			return data;
		}

		async function start() {
			state = await api('POST', '');
			sid = state.session_id;
			render();
		}

		function imageBox(kind, url, label) {
			const box = el(kind + 'Box');
			if (url) {
				box.innerHTML = '<img class="thumb" src="' + url + '" alt="' + label + '" /><button class="btn btn-sm" onclick="removeImage(\\'' + kind + '\\')">Remove</button>';
			} else {
				box.innerHTML = '<input type="file" accept="image/*" id="' + kind + 'Input" class="hidden" onchange="uploadImage(\\'' + kind + '\\', this)" /><button class="btn" onclick="el(\\'' + kind + 'Input\\').click()">Upload ' + label + '</button>';
			}
		}

		function renderItems() {
			const items = state.document.items;
			if (!items.length) {
				el('itemsBox').innerHTML = '<p>No items added yet. Click the "Add Item" button to add your first item.</p>';
				return;
			}
			let rows = items.map((it, i) => '<tr><td><div>' + esc(it.name) + '</div><small>' + esc(it.description) + '</small></td>'
				+ '<td class="right">' + it.quantity + '</td><td class="right">' + it.unit_price_display + '</td><td class="right">' + it.total_display + '</td>'
				+ '<td><button class="btn btn-sm" onclick="openItem(\\'' + it.id + '\\')">Edit</button> '
				+ '<button class="btn btn-sm" onclick="deleteItem(\\'' + it.id + '\\')">Delete</button> '
				+ '<button class="btn btn-sm" ' + (i === 0 ? 'disabled' : '') + ' onclick="moveItem(' + i + ', \\'up\\')">Up</button> '
				+ '<button class="btn btn-sm" ' + (i === items.length - 1 ? 'disabled' : '') + ' onclick="moveItem(' + i + ', \\'down\\')">Down</button></td></tr>').join('');
			rows += '<tr><td colspan="3" class="right"><strong>Grand Total:</strong></td><td class="right"><strong>' + state.document.grand_total_display + ' ' + currency + '</strong></td><td></td></tr>';
			el('itemsBox').innerHTML = '<table><thead><tr><th>Item</th><th class="right">Quantity</th><th class="right">Unit Price (' + currency + ')</th><th class="right">Total (' + currency + ')</th><th>Actions</th></tr></thead><tbody>' + rows + '</tbody></table>';
		}

		async function render() {
			const cur = state.current_step;
			el('steps').innerHTML = state.steps.map(s => '<div class="step ' + (s.index <= cur ? 'done' : '') + '"><div class="dot">' + (s.index + 1) + '</div>' + esc(s.title) + '</div>').join('');
			el('bar').style.width = (cur / (state.steps.length - 1) * 100) + '%';
			el('stepTitle').textContent = state.steps[cur].title;
			[0, 1, 2].forEach(i => el('step' + i).classList.toggle('hidden', i !== cur));
			el('btnPrev').disabled = !state.can_go_back || state.is_submitting;
			el('btnNext').style.display = cur < state.steps.length - 1 ? '' : 'none';
			el('btnNext').disabled = state.is_submitting;
			el('busy').classList.toggle('hidden', !state.is_submitting);

			const info = state.document.customer_info;
			if (cur === 0) {
				if (document.activeElement !== el('customerName')) el('customerName').value = info.customer_name;
				if (document.activeElement !== el('companyName')) el('companyName').value = info.company_name;
				imageBox('logo', info.logo_url, 'Logo');
				imageBox('signature', info.signature_url, 'Signature');
			} else if (cur === 1) {
				if (document.activeElement !== el('notes')) el('notes').value = state.document.notes;
				renderItems();
			} else {
				el('preview').innerHTML = await api('GET', '/' + sid + '/preview');
			}
		}

		async function refresh(promise) {
			try { state = await promise; render(); } catch (e) {}
		}

		function go(direction) { refresh(api('POST', '/' + sid + '/' + direction)); }

		el('customerName').addEventListener('input', (e) => refresh(api('PUT', '/' + sid + '/customer', { customer_name: e.target.value })));
		el('companyName').addEventListener('input', (e) => refresh(api('PUT', '/' + sid + '/customer', { company_name: e.target.value })));
		el('notes').addEventListener('input', (e) => refresh(api('PUT', '/' + sid + '/notes', { notes: e.target.value })));

		function uploadImage(kind, input) {
			const f = input.files && input.files[0];
			if (!f) return;
			const fd = new FormData();
			fd.append('file', f, f.name);
			refresh(api('POST', '/' + sid + '/customer/' + kind, fd, true));
		}
		function removeImage(kind) { refresh(api('DELETE', '/' + sid + '/customer/' + kind)); }

		function openItem(id) {
			const it = id ? state.document.items.find(x => x.id === id) : null;
			editingId = it ? it.id : null;
			el('itemModalTitle').textContent = it ? 'Edit Item' : 'Add New Item';
			el('itemName').value = it ? it.name : '';
			el('itemDescription').value = it ? it.description : '';
			el('itemQuantity').value = it ? it.quantity : 1;
			el('itemUnitPrice').value = it ? it.unit_price : 0;
			el('itemModal').style.display = 'flex';
		}
		function closeItem() { el('itemModal').style.display = 'none'; }
		async function saveItem() {
			const body = {
				name: el('itemName').value,
				description: el('itemDescription').value,
				quantity: parseInt(el('itemQuantity').value) || 0,
				unit_price: parseFloat(el('itemUnitPrice').value) || 0,
			};
			try {
				state = editingId
					? await api('PUT', '/' + sid + '/items/' + editingId, body)
					: await api('POST', '/' + sid + '/items', body);
				closeItem();
				render();
			} catch (e) {}
		}
		function deleteItem(id) { refresh(api('DELETE', '/' + sid + '/items/' + id)); }
		function moveItem(index, direction) { refresh(api('POST', '/' + sid + '/items/' + index + '/move', { direction })); }

		function printQuotation() { window.open('/api/wizard/' + sid + '/print', '_blank'); }

		async function download(kind) {
			const resp = await fetch('/api/wizard/' + sid + '/export/' + kind);
			if (!resp.ok) { toast('Export failed', 'The document could not be generated', true); return; }
			const disposition = resp.headers.get('content-disposition') || '';
			const match = /filename="([^"]+)"/.exec(disposition);
			const blob = await resp.blob();
			const link = document.createElement('a');
			link.href = URL.createObjectURL(blob);
			link.download = match ? match[1] : 'quotation';
			link.click();
		}

		async function send(path, body) {
			state.is_submitting = true;
			render();
			try {
				const receipt = await api('POST', '/' + sid + '/send/' + path, body);
				if (receipt.open_url) window.open(receipt.open_url, '_blank');
				toast(receipt.title, receipt.description, false);
			} catch (e) {}
			state = await api('GET', '/' + sid);
			render();
		}
		function sendEmail() { send('email', { email: el('email').value }); }
		function sendWhatsApp() { send('whatsapp', { phone_number: el('whatsapp').value }); }

		// Fechar a aba descarta a cotação no servidor
		window.addEventListener('pagehide', () => {
			if (sid) fetch('/api/wizard/' + sid, { method: 'DELETE', keepalive: true });
		});
		window.addEventListener('pageshow', (e) => { if (e.persisted) start(); });

		start();
	</script>
</body>
</html>
"""


app = create_app()
