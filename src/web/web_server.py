"""Flask web server exposing the PulseRelay switch API."""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, jsonify

from src.control.switch_controller import (
    ControllerTimeoutError,
    ControllerUnavailableError,
    InvalidRequestError,
    UnknownTargetError,
    VALID_STATES,
)
from src.tasks.errors import TaskConfigurationError

logger = logging.getLogger(__name__)

# Seconds a request waits for the controller loop
REQUEST_TIMEOUT = 30


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_switch_request(data: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Validate a switch request body.

    Args:
        data: Decoded JSON body

    Returns:
        Tuple of (parsed request, None) or (None, error message)
    """
    if not isinstance(data, dict):
        return None, "Invalid JSON format"

    state = data.get('state')
    if state not in VALID_STATES:
        return None, f"State must be one of: {', '.join(VALID_STATES)}"

    duration = data.get('duration')
    if duration is not None:
        if not isinstance(duration, int) or isinstance(duration, bool) or duration <= 0:
            return None, "Duration must be a positive integer"

    period = data.get('period')
    duty_cycle = data.get('dutyCycle')
    if state in ('blink', 'flipflop'):
        if period is None:
            return None, f"Period is required for {state} state"
        if not _is_number(period) or period <= 0:
            return None, "Period must be positive"
        if duty_cycle is not None and (not _is_number(duty_cycle) or not 0 <= duty_cycle <= 1):
            return None, "DutyCycle must be between 0 and 1"
    else:
        period = None
        duty_cycle = None

    return {
        'state': state,
        'duration': duration,
        'period': period,
        'duty_cycle': duty_cycle,
    }, None


class WebServer:
    """
    Flask-based web server providing the JSON switch API.

    Every switch operation is executed on the controller's event loop via
    run_coro_in_loop; Flask itself runs in the main thread.
    """

    def __init__(self, controller):
        """
        Initialize web server.

        Args:
            controller: SwitchController instance
        """
        self.controller = controller

        self.app = Flask(__name__)

        # Disable Flask's default logging to stdout (use our logging)
        logging.getLogger('werkzeug').setLevel(logging.WARNING)

        self._register_routes()

        logger.info("WebServer initialized")

    @staticmethod
    def _ok(data: Any = None, code: int = 200):
        body = {'status': 'ok'}
        if data is not None:
            body['data'] = data
        return jsonify(body), code

    @staticmethod
    def _error(message: str, code: int):
        return jsonify({'status': 'error', 'message': message}), code

    def _run(self, coro):
        """Run a coroutine on the controller loop and map failures to responses."""
        try:
            return self.controller.run_coro_in_loop(coro, timeout=REQUEST_TIMEOUT), None
        except UnknownTargetError as e:
            return None, self._error(str(e), 404)
        except (InvalidRequestError, TaskConfigurationError) as e:
            return None, self._error(str(e), 400)
        except ControllerUnavailableError as e:
            logger.error(f"Controller loop not available: {e}")
            return None, self._error("Controller not available", 503)
        except ControllerTimeoutError as e:
            logger.error(f"Switch operation timed out: {e}")
            return None, self._error(f"Switch operation timed out after {REQUEST_TIMEOUT}s", 504)
        except Exception as e:
            logger.error(f"Switch operation failed: {e}", exc_info=True)
            return None, self._error(str(e), 500)

    def _register_routes(self):
        """Register all Flask routes."""

        @self.app.route('/')
        def index():
            """List available routes."""
            routes = sorted(
                f"{','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'}))} {rule.rule}"
                for rule in self.app.url_map.iter_rules()
                if rule.endpoint != 'static'
            )
            return self._ok({'routes': routes})

        @self.app.route('/api/ping', methods=['GET'])
        def api_ping():
            """Liveness check; does not touch the controller."""
            return jsonify({'status': 'ok', 'message': 'pong'})

        @self.app.route('/switch', methods=['GET'])
        def list_switches():
            """List configured switches and groups."""
            return self._ok(self.controller.list_targets())

        @self.app.route('/switch/<name>', methods=['GET'])
        def switch_status(name):
            """Get status of a switch, group, or all."""
            try:
                self.controller.resolve_target(name)
            except UnknownTargetError as e:
                return self._error(str(e), 404)

            status, error = self._run(self.controller.get_status(name))
            if error:
                return error
            return self._ok(status)

        @self.app.route('/switch/<name>', methods=['POST'])
        def switch_control(name):
            """
            Control a switch, group, or all.

            Expects JSON:
                {
                    "state": "on" | "off" | "blink" | "flipflop",
                    "duration": seconds (optional, auto-off),
                    "period": seconds (blink/flipflop),
                    "dutyCycle": 0..1 (optional, default 0.5)
                }
            """
            if not request.is_json:
                return self._error("Content-Type must be application/json", 400)

            data = request.get_json(silent=True)
            parsed, message = parse_switch_request(data)
            if message:
                return self._error(message, 400)

            try:
                self.controller.validate_request(
                    name, parsed['state'], parsed['duration'], parsed['period'], parsed['duty_cycle']
                )
            except UnknownTargetError as e:
                return self._error(str(e), 404)
            except InvalidRequestError as e:
                return self._error(str(e), 400)

            status, error = self._run(self.controller.handle_request(
                name,
                parsed['state'],
                duration=parsed['duration'],
                period=parsed['period'],
                duty_cycle=parsed['duty_cycle'],
            ))
            if error:
                return error

            logger.info(f"API request: {parsed['state']} on {name}")
            return self._ok(status)

    def run(self, host: str = '127.0.0.1', port: int = 8080, debug: bool = False):
        """
        Run the web server.

        Args:
            host: Host to bind to
            port: Port to bind to
            debug: Enable debug mode
        """
        if host not in ['127.0.0.1', 'localhost']:
            logger.warning(f"Web API is accessible over the network at {host}:{port} without authentication")

        logger.info(f"Starting web server on {host}:{port}")
        self.app.run(host=host, port=port, debug=debug, use_reloader=False)
