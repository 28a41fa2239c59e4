"""HTTP API server - JSON routes for the dashboard.

Runs a lightweight threaded HTTP server next to the asyncio core:
  GET /                          → Dashboard (auto-refreshing HTML page)
  GET /api/health                → Diagnostics + status
  GET /api/dashboard/...         → Real-time reading, alerts, statistics
  /api/records, /api/calendars, /api/notifications, /api/irrigation/..., /api/alerts/...

Every response uses the envelope {"success": bool, "data": ..., "message": str}.
Routes that touch the core (reading, irrigation, alerts) are executed on the
event loop; routes that only query sqlite run in the request thread.
"""

import asyncio
import json
import logging
import re
import socket
import threading
from dataclasses import dataclass, field
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from typing import Callable, Dict, List, Optional, Tuple
from urllib.parse import urlparse, parse_qs

from pydantic import ValidationError

from .. import config
from ..models.result import ErrorKind, OperationResult
from ..storage.models import (
    CalendarPayload,
    IrrigationConfigPatch,
    ScheduleWateringRequest,
    StartWateringRequest,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID: 400,
    ErrorKind.NOT_FOUND: 404,
}


class BadRequest(Exception):
    """Raised by a handler when the request payload cannot be used"""


@dataclass
class Request:
    method: str
    path: str
    params: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    body: dict = field(default_factory=dict)

    def int_query(self, name: str, default: int) -> int:
        try:
            return int(self.query.get(name, default))
        except (TypeError, ValueError):
            raise BadRequest(f"Query parameter '{name}' must be an integer")


@dataclass
class Route:
    method: str
    pattern: re.Pattern
    handler: Callable[[Request], Tuple[int, dict]]
    on_loop: bool


def envelope(success: bool, data=None, message: str = "") -> dict:
    return {'success': success, 'data': data, 'message': message}


def from_result(result: OperationResult, success_status: int = 200) -> Tuple[int, dict]:
    if result.success:
        return success_status, result.to_dict()
    return ERROR_STATUS.get(result.error, 400), result.to_dict()


class Router:
    """Method + regex route table returning (status, payload)"""

    def __init__(self):
        self.routes: List[Route] = []

    def add(self, method: str, pattern: str, handler, on_loop: bool = False):
        self.routes.append(Route(method, re.compile(f"^{pattern}$"), handler, on_loop))

    def match(self, method: str, path: str) -> Tuple[Optional[Route], Dict[str, str]]:
        for route in self.routes:
            if route.method != method:
                continue
            m = route.pattern.match(path)
            if m:
                return route, m.groupdict()
        return None, {}

    def dispatch(self, request: Request, run: Callable = None) -> Tuple[int, dict]:
        """Resolve and run a route. `run` executes on-loop handlers."""
        route, params = self.match(request.method, request.path)
        if route is None:
            return 404, envelope(False, None, f"Route not found: {request.method} {request.path}")
        request.params = params
        try:
            if route.on_loop and run is not None:
                return run(route.handler, request)
            return route.handler(request)
        except BadRequest as e:
            return 400, envelope(False, None, str(e))
        except ValidationError as e:
            return 400, envelope(False, None, f"Invalid payload: {e.errors()[0].get('msg', 'validation error')}")


class GreenhouseApi:
    """Route handlers bound to a GreenhouseServer"""

    def __init__(self, app):
        self.app = app
        self.router = Router()
        self._register()

    def _register(self):
        r = self.router
        r.add('GET', r'/', self.dashboard)
        r.add('GET', r'/api/health', self.health, on_loop=True)

        r.add('GET', r'/api/dashboard/realtime', self.realtime, on_loop=True)
        r.add('GET', r'/api/dashboard/alerts', self.list_alerts, on_loop=True)
        r.add('GET', r'/api/dashboard/statistics', self.statistics, on_loop=True)

        r.add('GET', r'/api/records', self.records, on_loop=True)
        r.add('GET', r'/api/records/reports', self.report)
        r.add('GET', r'/api/records/alerts-summary', self.alert_summary)

        r.add('GET', r'/api/calendars', self.list_calendars)
        r.add('POST', r'/api/calendars', self.create_calendar)
        r.add('PUT', r'/api/calendars/(?P<id>\d+)', self.update_calendar)
        r.add('DELETE', r'/api/calendars/(?P<id>\d+)', self.delete_calendar)

        r.add('GET', r'/api/notifications', self.list_alerts, on_loop=True)
        r.add('PUT', r'/api/notifications/(?P<id>[\w-]+)/read', self.mark_alert_read, on_loop=True)
        r.add('GET', r'/api/users/(?P<user>\d+)/notifications', self.user_notifications)
        r.add('PUT', r'/api/users/(?P<user>\d+)/notifications/(?P<id>\d+)/read', self.mark_notification_read)

        r.add('POST', r'/api/irrigation/start', self.start_watering, on_loop=True)
        r.add('POST', r'/api/irrigation/stop', self.stop_watering, on_loop=True)
        r.add('GET', r'/api/irrigation/status', self.irrigation_status, on_loop=True)
        r.add('GET', r'/api/irrigation/config', self.get_config, on_loop=True)
        r.add('PUT', r'/api/irrigation/config', self.update_config, on_loop=True)
        r.add('POST', r'/api/irrigation/schedule', self.schedule_watering, on_loop=True)
        r.add('GET', r'/api/irrigation/scheduled', self.scheduled_waterings, on_loop=True)
        r.add('DELETE', r'/api/irrigation/scheduled/(?P<id>\w+)', self.cancel_scheduled, on_loop=True)

        r.add('PUT', r'/api/alerts/read-all', self.mark_all_read, on_loop=True)
        r.add('PUT', r'/api/alerts/(?P<id>[\w-]+)/read', self.mark_alert_read, on_loop=True)
        r.add('DELETE', r'/api/alerts/(?P<id>[\w-]+)', self.delete_alert, on_loop=True)

    # ===== DASHBOARD =====

    def dashboard(self, request: Request):
        return 200, DASHBOARD_HTML

    def health(self, request: Request):
        data = self.app.diagnostics.get_health_summary()
        data['reading'] = self.app.current_reading().to_dict()
        return 200, envelope(True, data, "OK")

    def realtime(self, request: Request):
        return 200, envelope(True, self.app.dashboard_snapshot())

    def list_alerts(self, request: Request):
        limit = request.int_query('limit', 10)
        return 200, envelope(True, self.app.alerts(limit))

    def statistics(self, request: Request):
        return 200, envelope(True, self.app.statistics())

    # ===== RECORDS =====

    def records(self, request: Request):
        limit = request.int_query('limit', 24)
        if limit < 1 or limit > 1000:
            raise BadRequest("limit must be between 1 and 1000")
        return 200, envelope(True, [r.to_dict() for r in self.app.history(limit)])

    def report(self, request: Request):
        period = request.query.get('period', 'week')
        return from_result(self.app.reports.generate_report(config.GREENHOUSE_ID, period))

    def alert_summary(self, request: Request):
        days = request.int_query('days', 7)
        return from_result(self.app.reports.alert_summary(config.GREENHOUSE_ID, days))

    # ===== CALENDARS =====

    def list_calendars(self, request: Request):
        greenhouse_id = request.query.get('greenhouse_id')
        greenhouse = int(greenhouse_id) if greenhouse_id and greenhouse_id.isdigit() else None
        return from_result(self.app.calendars.list_calendars(greenhouse))

    def create_calendar(self, request: Request):
        payload = CalendarPayload.model_validate(request.body)
        data = payload.model_dump(exclude_none=True)
        data.setdefault('greenhouse_id', config.GREENHOUSE_ID)
        return from_result(self.app.calendars.create(data), success_status=201)

    def update_calendar(self, request: Request):
        payload = CalendarPayload.model_validate(request.body)
        return from_result(self.app.calendars.update(int(request.params['id']), payload.model_dump(exclude_none=True)))

    def delete_calendar(self, request: Request):
        return from_result(self.app.calendars.delete(int(request.params['id'])))

    # ===== NOTIFICATIONS =====

    def user_notifications(self, request: Request):
        unread_only = request.query.get('unread', '').lower() in ('1', 'true')
        return from_result(self.app.notifications.for_user(
            int(request.params['user']), limit=request.int_query('limit', 50), unread_only=unread_only))

    def mark_notification_read(self, request: Request):
        return from_result(self.app.notifications.mark_read(
            int(request.params['id']), int(request.params['user'])))

    # ===== IRRIGATION =====

    def start_watering(self, request: Request):
        payload = StartWateringRequest.model_validate(request.body)
        return from_result(self.app.start_watering(payload.duration))

    def stop_watering(self, request: Request):
        return from_result(self.app.stop_watering())

    def irrigation_status(self, request: Request):
        return 200, envelope(True, self.app.irrigation_state().to_dict())

    def get_config(self, request: Request):
        return 200, envelope(True, self.app.irrigation_config().to_dict())

    def update_config(self, request: Request):
        payload = IrrigationConfigPatch.model_validate(request.body)
        return from_result(self.app.update_irrigation_config(payload.model_dump(exclude_none=True)))

    def schedule_watering(self, request: Request):
        payload = ScheduleWateringRequest.model_validate(request.body)
        return from_result(
            self.app.schedule_watering(payload.date, payload.time, payload.duration),
            success_status=201,
        )

    def scheduled_waterings(self, request: Request):
        return 200, envelope(True, [w.to_dict() for w in self.app.scheduled_waterings()])

    def cancel_scheduled(self, request: Request):
        return from_result(self.app.cancel_scheduled(request.params['id']))

    # ===== ALERTS =====

    def mark_alert_read(self, request: Request):
        return from_result(self.app.mark_alert_read(request.params['id']))

    def mark_all_read(self, request: Request):
        return from_result(self.app.mark_all_read())

    def delete_alert(self, request: Request):
        return from_result(self.app.delete_alert(request.params['id']))


class ApiRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler delegating to the server's ApiServer."""

    # Suppress default access logging (we log it ourselves)
    def log_message(self, format, *args):
        pass

    def _send_json(self, data: dict, status: int = 200):
        """Send a JSON response."""
        body = json.dumps(data, default=str).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_html(self, html: str, status: int = 200):
        """Send an HTML response."""
        body = html.encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _read_body(self) -> dict:
        length = int(self.headers.get('Content-Length') or 0)
        if length == 0:
            return {}
        raw = self.rfile.read(length)
        data = json.loads(raw.decode('utf-8'))
        if not isinstance(data, dict):
            raise ValueError("JSON body must be an object")
        return data

    def _handle(self, method: str):
        api: ApiServer = self.server.api
        parsed = urlparse(self.path)
        query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        try:
            body = self._read_body() if method in ('POST', 'PUT') else {}
        except ValueError as e:
            self._send_json(envelope(False, None, f"Malformed JSON body: {e}"), 400)
            return

        status, payload = api.handle(Request(method, parsed.path.rstrip('/') or '/', query=query, body=body))
        if isinstance(payload, str):
            self._send_html(payload, status)
        else:
            self._send_json(payload, status)

    def do_GET(self):
        self._handle('GET')

    def do_POST(self):
        self._handle('POST')

    def do_PUT(self):
        self._handle('PUT')

    def do_DELETE(self):
        self._handle('DELETE')

    def do_OPTIONS(self):
        """CORS preflight"""
        self.send_response(204)
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, PUT, DELETE, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()


def _get_local_ip() -> str:
    """Best-effort LAN IP for the startup log line."""
    try:
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "127.0.0.1"


class ThreadingHTTPServer(ThreadingMixIn, HTTPServer):
    """Handle each request in a separate thread."""
    daemon_threads = True


class ApiServer:
    """Runs the HTTP API in a background thread."""

    def __init__(self, app, host: str = config.API_HOST, port: int = config.API_PORT,
                 timeout: float = config.API_REQUEST_TIMEOUT):
        self.app = app
        self.api = GreenhouseApi(app)
        self.host = host
        self.port = port
        self.timeout = timeout
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def _run_on_loop(self, handler, request: Request):
        """Execute a handler on the core's event loop and wait for its result."""
        async def _call():
            return handler(request)
        future = asyncio.run_coroutine_threadsafe(_call(), self.loop)
        return future.result(timeout=self.timeout)

    def handle(self, request: Request) -> Tuple[int, dict]:
        self.app.diagnostics.record_request()
        run = self._run_on_loop if self.loop is not None else None
        try:
            status, payload = self.api.router.dispatch(request, run)
        except Exception as e:
            logger.error(f"Error handling {request.method} {request.path}: {e}", exc_info=True)
            self.app.diagnostics.record_error()
            return 500, envelope(False, None, "Internal server error")
        logger.debug(f"{request.method} {request.path} -> {status}")
        return status, payload

    def start(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """Start the HTTP server in a daemon thread."""
        if self._server is not None:
            return
        self.loop = loop
        self._server = ThreadingHTTPServer((self.host, self.port), ApiRequestHandler)
        self._server.api = self
        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, name="api-server", daemon=True)
        self._thread.start()
        logger.info(f"🌐 API server listening on http://{_get_local_ip()}:{self.port}")

    def stop(self):
        """Stop the HTTP server."""
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None
        logger.info("API server stopped")


DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Greenhouse Monitor</title>
<style>
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { background: #0d1117; color: #c9d1d9; font-family: -apple-system, 'Segoe UI', sans-serif; font-size: 14px; }
  .header { background: #161b22; padding: 12px 20px; border-bottom: 1px solid #30363d; display: flex; justify-content: space-between; }
  .header h1 { font-size: 16px; color: #58a6ff; }
  .grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(220px, 1fr)); gap: 12px; padding: 20px; }
  .card { background: #161b22; border: 1px solid #30363d; border-radius: 8px; padding: 16px; }
  .card h2 { font-size: 12px; color: #8b949e; text-transform: uppercase; margin-bottom: 8px; }
  .value { font-size: 28px; }
  .NORMAL { color: #3fb950; } .WARNING { color: #d29922; } .CRITICAL { color: #f85149; }
  button { background: #21262d; color: #c9d1d9; border: 1px solid #30363d; padding: 4px 12px; border-radius: 6px; cursor: pointer; }
  #alerts { padding: 0 20px 20px; }
  .alert { padding: 8px 12px; border-left: 3px solid #30363d; margin-bottom: 6px; background: #161b22; }
  .alert.warning { border-color: #d29922; } .alert.error { border-color: #f85149; }
  .alert.success { border-color: #3fb950; } .alert.info { border-color: #58a6ff; }
  .alert.read { opacity: 0.6; }
</style>
</head>
<body>
<div class="header"><h1>🌱 Greenhouse Monitor</h1><span id="updated">connecting...</span></div>
<div class="grid">
  <div class="card"><h2>Temperature</h2><div class="value" id="temp">--</div></div>
  <div class="card"><h2>Humidity</h2><div class="value" id="hum">--</div></div>
  <div class="card"><h2>Status</h2><div class="value" id="status">--</div></div>
  <div class="card"><h2>Irrigation</h2><div id="irrigation">--</div>
    <p style="margin-top:8px"><button onclick="post('/api/irrigation/start')">Start</button>
    <button onclick="post('/api/irrigation/stop')">Stop</button></p></div>
</div>
<div id="alerts"></div>
<script>
function esc(s) { const d = document.createElement('div'); d.textContent = s || ''; return d.innerHTML; }
function post(url) { fetch(url, { method: 'POST', headers: {'Content-Type': 'application/json'}, body: '{}' }).then(refresh); }
function refresh() {
  fetch('/api/dashboard/realtime').then(r => r.json()).then(res => {
    const d = res.data;
    document.getElementById('temp').textContent = d.reading.temperature + ' °C';
    document.getElementById('hum').textContent = d.reading.humidity + ' %';
    const st = document.getElementById('status');
    st.textContent = d.reading.status; st.className = 'value ' + d.reading.status;
    const irr = d.irrigation;
    document.getElementById('irrigation').textContent = irr.in_progress
      ? 'Watering: ' + Math.round(irr.progress) + '% (' + irr.remaining_minutes + ' min left)'
      : 'Next: ' + (irr.next_scheduled_at || 'not scheduled');
    document.getElementById('updated').textContent = new Date().toLocaleTimeString();
  });
  fetch('/api/dashboard/alerts?limit=10').then(r => r.json()).then(res => {
    document.getElementById('alerts').innerHTML = res.data.items.map(a =>
      '<div class="alert ' + a.kind + (a.read ? ' read' : '') + '"><b>' + esc(a.title) + '</b> ' + esc(a.description) + '</div>'
    ).join('');
  });
}
refresh();
setInterval(refresh, 5000);
</script>
</body>
</html>"""
