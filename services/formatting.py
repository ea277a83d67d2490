from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[Decimal, int, float]


def format_amount(value: Number) -> str:
	# Igual a Number.toLocaleString("en"): 3 casas com meio arredondado para longe do zero
	q = Decimal(str(value)).quantize(Decimal("0.001"), rounding=ROUND_HALF_UP)
	sign = "-" if q < 0 else ""
	int_part, _, frac_part = f"{abs(q):f}".partition(".")
	int_part = "{:,}".format(int(int_part))
	frac_part = frac_part.rstrip("0")
	if frac_part:
		return f"{sign}{int_part}.{frac_part}"
	return f"{sign}{int_part}"


def format_currency(value: Number, currency: str = "EGP") -> str:
	return f"{format_amount(value)} {currency}"


def format_date(value: datetime) -> str:
	return value.strftime("%d %b %Y")
