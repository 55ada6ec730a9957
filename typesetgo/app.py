"""Application entry point and setup for TypeSetGo."""

import logging
import sys

from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication

from typesetgo.core.api import HttpResultSink, HttpValidationService
from typesetgo.core.config import AppConfig, load_config
from typesetgo.core.plan import PlanRepository
from typesetgo.core.results import ResultStore
from typesetgo.core.texts import TextRepository
from typesetgo.ui.controller import TypingController
from typesetgo.ui.main_window import MainWindow


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_backends(config: AppConfig):
    """Pick the validation service and result sink for ``config``.

    Signed-in players with an API URL are verified against the server and
    fall back to the remote result endpoint; everyone else saves locally.
    """
    if config.online and config.user_id:
        service = HttpValidationService(config.api_url, timeout=config.request_timeout)
        sink = HttpResultSink(config.api_url, config.user_id, timeout=config.request_timeout)
        logging.info("Using validation service at %s", config.api_url)
        return service, sink
    return None, ResultStore(config.results_path)


def load_plans(config: AppConfig) -> PlanRepository:
    """Plans from the configured data directory, or the bundled ones when those are malformed."""
    try:
        return PlanRepository(config.data_dir / "plans" if config.data_dir else None)
    except ValueError as e:
        logging.error("Invalid plan file, using bundled plans: %s", e)
        return PlanRepository()


def run() -> None:
    """Load configuration and text data, then start the main window."""
    configure_logging()
    try:
        config = load_config()
    except ValueError as e:
        logging.error("Invalid configuration, using defaults: %s", e)
        config = AppConfig()

    app = QApplication(sys.argv)
    app.setApplicationName("TypeSetGo")
    app.setApplicationDisplayName("TypeSetGo")

    texts = TextRepository(config.data_dir)
    plans = load_plans(config)
    service, sink = build_backends(config)

    controller = TypingController(texts, config=config, service=service, sink=sink)
    window = MainWindow(controller, plans=plans)
    screen = QGuiApplication.primaryScreen()
    if screen is not None:
        geometry = screen.availableGeometry()
        window.resize(min(1100, geometry.width()), min(700, geometry.height()))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
