from __future__ import annotations

import atexit
import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .attendance.controller import register as register_attendance
from .config import get_settings_module
from .container import Container, build_container
from .roster.controller import register as register_roster

logger = logging.getLogger(__name__)

_SETTING_NAMES = (
    "API_BASE_URL",
    "API_TIMEOUT",
    "ROSTER_PAGE_SIZE",
    "CLASS_PAGE_SIZE",
    "FETCH_WORKERS",
    "SAVE_SUCCESS_SECONDS",
    "SESSION_IDLE_SECONDS",
)


def create_app(*, settings_module: Optional[str] = None, container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    values = {name: getattr(settings, name) for name in _SETTING_NAMES if hasattr(settings, name)}
    if container is None:
        container = build_container(settings=values)
        # a container passed in is shut down by its owner
        atexit.register(container.executor.shutdown, wait=False)
    app.extensions["roster_attendance"] = container

    logger.info("settings=%s api=%s", settings_module, container.api_config.base_url)

    register_roster(app, container)
    register_attendance(app, container)

    return app


if __name__ == "__main__":
    create_app().run()
