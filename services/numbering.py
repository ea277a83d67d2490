import random
from datetime import datetime
from typing import Optional


def generate_quotation_number(now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> str:
	# QT-YYMM-RRR; o sufixo aleatório não garante unicidade
	now = now or datetime.now()
	rng = rng or random.Random()
	suffix = rng.randint(0, 999)
	return f"QT-{now:%y%m}-{suffix:03d}"
