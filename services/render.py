from html import escape

from pydantic import BaseModel, ConfigDict

from models.quotation import QuotationDocument
from services.formatting import format_amount, format_date


class RenderedView(BaseModel):
	# Bloco da cotação já montado, pronto para ser exportado
	model_config = ConfigDict(frozen=True)

	element_id: str = "quotation-document"
	markup: str
	document: QuotationDocument
	currency: str = "EGP"


def _item_rows(document: QuotationDocument) -> str:
	rows = []
	for it in document.items:
		rows.append(
			"<tr>"
			f'<td class="border p-2">{escape(it.name)}</td>'
			f'<td class="border p-2">{escape(it.description)}</td>'
			f'<td class="border p-2 text-right">{it.quantity}</td>'
			f'<td class="border p-2 text-right">{format_amount(it.unit_price)}</td>'
			f'<td class="border p-2 text-right">{format_amount(it.total)}</td>'
			"</tr>"
		)
	return "".join(rows)


def render_quotation(document: QuotationDocument, currency: str = "EGP") -> RenderedView:
	info = document.customer_info
	cur = escape(currency)

	header = ['<div class="quotation-header">']
	if info.logo is not None:
		header.append(f'<div class="logo"><img src="{info.logo_url}" alt="Company Logo" /></div>')
	if info.company_name:
		header.append(f'<h3 class="company-name">{escape(info.company_name)}</h3>')
	header.append("</div>")
	header_html = "".join(header)

	notes = ""
	if document.notes:
		notes = (
			'<div class="notes"><h3>Notes</h3>'
			f'<p style="white-space: pre-line">{escape(document.notes)}</p></div>'
		)

	signature = ""
	if info.signature is not None:
		signature = f'<div class="signature"><img src="{info.signature_url}" alt="Signature" /></div>'

	markup = f"""<div id="quotation-document" class="quotation">
	{header_html}
	<div class="title">
		<h1>Quotation</h1>
		<p class="number">{escape(document.quotation_number)}</p>
	</div>
	<div class="parties">
		<div><h3>Customer</h3><p>{escape(info.customer_name)}</p></div>
		<div class="dates">
			<div><span class="label">Date: </span><span>{format_date(document.creation_date)}</span></div>
			<div><span class="label">Valid Until: </span><span>{format_date(document.valid_until)}</span></div>
		</div>
	</div>
	<table class="items">
		<thead>
			<tr>
				<th class="border p-2 text-left">Item</th>
				<th class="border p-2 text-left">Description</th>
				<th class="border p-2 text-right">Quantity</th>
				<th class="border p-2 text-right">Unit Price ({cur})</th>
				<th class="border p-2 text-right">Total ({cur})</th>
			</tr>
		</thead>
		<tbody>
			{_item_rows(document)}
			<tr class="grand-total">
				<td colspan="4" class="border p-2 text-right">Grand Total:</td>
				<td class="border p-2 text-right">{format_amount(document.grand_total)} {cur}</td>
			</tr>
		</tbody>
	</table>
	{notes}
	{signature}
</div>"""
	return RenderedView(markup=markup, document=document, currency=currency)


def render_print_page(view: RenderedView) -> str:
	number = escape(view.document.quotation_number)
	return f"""<!doctype html>
<html lang="en">
<head>
	<meta charset="utf-8" />
	<title>Quotation {number}</title>
	<style>
		body {{ font-family: Arial, sans-serif; margin: 40px; color: #111; }}
		.quotation-header {{ display:flex; justify-content:space-between; align-items:flex-start; margin-bottom:32px; }}
		.logo img {{ width:80px; height:80px; object-fit:contain; border-radius:999px; border:1px solid #ddd; }}
		.title {{ text-align:center; margin-bottom:32px; }}
		.parties {{ display:flex; justify-content:space-between; margin-bottom:32px; }}
		.dates {{ text-align:right; }}
		.label {{ font-weight:600; }}
		table {{ width:100%; border-collapse:collapse; margin-bottom:32px; }}
		th, td {{ border:1px solid #ddd; padding:8px; }}
		th {{ background:#f2f2f2; }}
		.text-right {{ text-align:right; }}
		.grand-total td {{ font-weight:700; }}
		.signature {{ display:flex; justify-content:flex-end; }}
		.signature img {{ width:80px; height:80px; object-fit:contain; }}
		@media print {{ body {{ margin: 0; }} }}
	</style>
</head>
<body onload="window.print()">
	{view.markup}
</body>
</html>
"""
