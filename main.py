"""Main application entry point for PulseRelay."""

import asyncio
import logging
import signal
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from src.config import Config, ConfigError
from src.control import SwitchController
from src.events import MqttEventPublisher
from src.switches import build_default_registry, build_switch_tables
from src.web.web_server import WebServer
from version import __version__


controller = None
controller_thread = None


def setup_logging(config: Config):
    """Set up console and rotating file logging."""
    log_config = config.logging_config
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)

    log_dir = Path('logs')
    log_dir.mkdir(exist_ok=True)

    logger = logging.getLogger()
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    max_bytes = log_config.get('max_file_size_mb', 10) * 1024 * 1024
    backup_count = log_config.get('backup_count', 5)

    file_handler = RotatingFileHandler(
        log_dir / 'pulserelay.log',
        maxBytes=max_bytes,
        backupCount=backup_count
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    logging.info("Logging initialized")


def signal_handler(signum, frame):
    """Handle shutdown signals."""
    logging.info(f"Received signal {signum}, initiating graceful shutdown...")
    if controller is not None:
        controller.request_shutdown()
    # Unblocks the Flask server in the main thread
    raise KeyboardInterrupt


def run_controller_thread(switch_controller: SwitchController):
    """
    Run the controller's event loop in a separate thread.

    Args:
        switch_controller: SwitchController instance to run
    """
    logger = logging.getLogger(__name__)

    try:
        asyncio.run(switch_controller.run())
    except Exception as e:
        logger.error(f"Fatal error in controller thread: {e}", exc_info=True)
    finally:
        logger.info("Controller thread exiting")


def build_controller(config: Config) -> SwitchController:
    """
    Create driver collections, named switches, groups and the event publisher.

    Raises:
        ConfigError: If the switch configuration is invalid
    """
    registry = build_default_registry()
    collections, switches, groups = build_switch_tables(
        config.collections, config.switches, config.groups, registry
    )

    publisher = None
    mqtt_config = config.mqtt
    if mqtt_config.get('server'):
        publisher = MqttEventPublisher(mqtt_config['server'], client_id=mqtt_config.get('client_id', 'pulserelay'))
        publisher.connect()

    return SwitchController(collections, switches, groups, publisher=publisher)


def main():
    """Main entry point for the application."""
    global controller, controller_thread

    try:
        config = Config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    logger = logging.getLogger(__name__)
    logger.info("=" * 60)
    logger.info(f"PulseRelay v{__version__}")
    logger.info("=" * 60)

    try:
        controller = build_controller(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    controller_thread = threading.Thread(
        target=run_controller_thread,
        args=(controller,),
        daemon=False,
        name="ControllerThread"
    )
    controller_thread.start()
    if not controller.wait_until_ready(timeout=60):
        logger.warning("Controller did not become ready within 60s; starting web server anyway")

    web_config = config.web
    web_server = WebServer(controller)
    try:
        web_server.run(host=web_config['bind_host'], port=web_config['port'], debug=False)
    except KeyboardInterrupt:
        logger.info("Web server interrupted")
    finally:
        controller.request_shutdown()
        logger.info("Waiting for controller thread to complete...")
        controller_thread.join(timeout=10)
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
