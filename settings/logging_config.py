from __future__ import annotations

import logging
from logging.config import dictConfig

from settings.config import settings


def configure_logging(level: int | str | None = None) -> None:
	if level is None:
		level = logging.DEBUG if settings.DEBUG_AI_PARSE else settings.LOG_LEVEL.upper()
	dictConfig(
		{
			"version": 1,
			"disable_existing_loggers": False,
			"formatters": {
				"standard": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
				"json": {"()": "services.json_logger.JsonFormatter"},
			},
			"handlers": {
				"console": {
					"class": "logging.StreamHandler",
					"formatter": "standard",
					"level": level,
				},
				"json_console": {
					"class": "logging.StreamHandler",
					"formatter": "json",
					"stream": "ext://sys.stdout",
				},
			},
			"loggers": {
				"": {"handlers": ["console"], "level": level},
				"uvicorn": {"handlers": ["console"], "level": level},
				"statement_ingest": {"handlers": ["json_console"], "level": level, "propagate": False},
				# pdfminer is chatty on malformed fonts; openai/httpx log request lines
				"pdfminer": {"handlers": ["console"], "level": logging.WARNING, "propagate": False},
				"openai": {"handlers": ["console"], "level": logging.WARNING, "propagate": False},
				"httpx": {"handlers": ["console"], "level": logging.WARNING, "propagate": False},
			},
		}
	)
