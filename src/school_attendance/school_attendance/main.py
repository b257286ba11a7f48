from __future__ import annotations

import importlib
import logging
from typing import Optional

import requests
from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .attendance.controller import register as register_attendance
from .common.logging_utils import setup_logging
from .container import build_container

logger = logging.getLogger(__name__)


def create_app(*, settings_module: Optional[str] = None, http: Optional[requests.Session] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    setup_logging(json_output=bool(getattr(settings, "LOG_JSON", False)), debug=app.config["DEBUG"])
    logger.info(
        "starting attendance client",
        extra={"settings": settings_module, "api_base_url": getattr(settings, "API_BASE_URL")},
    )

    container = build_container(settings=settings, http=http)
    app.extensions["school_attendance"] = container

    register_attendance(app, container)

    return app
