import logging


def setup_logging(level: str = "INFO") -> logging.Logger:
	logger = logging.getLogger("quotation")
	logger.setLevel(getattr(logging, level.upper(), logging.INFO))

	# Evita handlers duplicados quando o app é recriado (testes, reload)
	if logger.handlers:
		return logger

	handler = logging.StreamHandler()
	handler.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s"))
	logger.addHandler(handler)
	return logger
