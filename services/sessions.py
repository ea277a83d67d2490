import logging
import time
import uuid
from typing import Callable, Dict, Optional

from services.wizard import WizardController

logger = logging.getLogger("quotation.sessions")


class WizardRegistry:
	# Um assistente por aba do navegador; tudo em memória
	def __init__(
		self,
		factory: Callable[[], WizardController],
		idle_seconds: Optional[float] = None,
		clock: Callable[[], float] = time.monotonic,
	):
		self.factory = factory
		self.idle_seconds = idle_seconds
		self.clock = clock
		self._wizards: Dict[str, WizardController] = {}
		self._last_seen: Dict[str, float] = {}

	def __len__(self) -> int:
		return len(self._wizards)

	def purge_idle(self) -> int:
		# Abas fechadas sem aviso nunca mandam o DELETE
		if self.idle_seconds is None:
			return 0
		cutoff = self.clock() - self.idle_seconds
		expired = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
		for session_id in expired:
			self.discard(session_id)
		if expired:
			logger.info("%d sessões ociosas descartadas", len(expired))
		return len(expired)

	def create(self) -> str:
		self.purge_idle()
		session_id = uuid.uuid4().hex
		self._wizards[session_id] = self.factory()
		self._last_seen[session_id] = self.clock()
		logger.info("Sessão criada: %s", session_id)
		return session_id

	def get(self, session_id: str) -> WizardController:
		self.purge_idle()
		wizard = self._wizards[session_id]
		self._last_seen[session_id] = self.clock()
		return wizard

	def discard(self, session_id: str) -> None:
		self._last_seen.pop(session_id, None)
		if self._wizards.pop(session_id, None) is not None:
			logger.info("Sessão descartada: %s", session_id)
