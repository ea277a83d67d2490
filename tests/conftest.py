import os, sys
from datetime import datetime
import random

import pytest

# raiz do projeto (onde ficam app.py, models/ e services/) primeiro no sys.path
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
	sys.path.insert(0, PROJECT_ROOT)

from config import Settings
from services.wizard import WizardController
from helpers import make_png


FIXED_NOW = datetime(2026, 10, 19, 9, 30)


@pytest.fixture
def fast_settings() -> Settings:
	return Settings(delivery_delay_seconds=0, image_settle_seconds=0)


@pytest.fixture
def png_bytes() -> bytes:
	return make_png()


@pytest.fixture
def wizard(fast_settings) -> WizardController:
	return WizardController(settings=fast_settings, clock=lambda: FIXED_NOW, rng=random.Random(7))
