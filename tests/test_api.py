"""Route table tests, dispatched without sockets, plus one loopback round trip"""

import json
import random
import urllib.error
import urllib.request

import pytest

from greenhouse.core.server import GreenhouseServer
from greenhouse.services.api_server import ApiServer, Request, Router
from greenhouse.services.firebase_service import FirebaseMirror


@pytest.fixture
def server(clock, timers, database, tmp_path):
    return GreenhouseServer(
        clock=clock,
        rng=random.Random(3),
        timers=timers,
        database=database,
        firebase=FirebaseMirror(str(tmp_path / "missing.json"), ""),
        auto_record=False,
        api_port=None,
    )


@pytest.fixture
def api(server):
    return ApiServer(server, host="127.0.0.1", port=0)


def call(api, method, path, body=None, **query):
    return api.handle(Request(method, path, query={k: str(v) for k, v in query.items()}, body=body or {}))


# ===== router =====

def test_router_matches_method_and_params():
    router = Router()
    router.add('GET', r'/items/(?P<id>\d+)', lambda req: (200, {'id': req.params['id']}))

    assert router.dispatch(Request('GET', '/items/7')) == (200, {'id': '7'})
    status, payload = router.dispatch(Request('DELETE', '/items/7'))
    assert status == 404
    assert payload['success'] is False


def test_unknown_route_is_404(api):
    status, payload = call(api, 'GET', '/api/nothing')
    assert status == 404
    assert payload == {'success': False, 'data': None, 'message': 'Route not found: GET /api/nothing'}


def test_dashboard_page(api):
    status, payload = call(api, 'GET', '/')
    assert status == 200
    assert payload.startswith("<!DOCTYPE html>")


# ===== dashboard =====

def test_health(api, server):
    status, payload = call(api, 'GET', '/api/health')
    assert status == 200
    assert payload['data']['status'] == 'healthy'
    assert payload['data']['reading']['temperature'] == server.current_reading().temperature
    assert server.diagnostics.counters['api_requests'] == 1


def test_realtime_snapshot(api):
    data = call(api, 'GET', '/api/dashboard/realtime')[1]['data']
    assert data['reading']['status'] == 'NORMAL'
    assert data['irrigation']['in_progress'] is False
    assert data['irrigation']['days_remaining'] is None


def test_statistics_fall_back_to_current_reading(api, server):
    data = call(api, 'GET', '/api/dashboard/statistics')[1]['data']
    assert data['total_records'] == 0
    assert data['temperature']['average'] == server.current_reading().temperature


def test_statistics_from_records(api, server):
    server.records.save_reading(server.sensors.configure(temperature=19, humidity=77))
    server.records.save_reading(server.sensors.configure(temperature=23, humidity=79))
    data = call(api, 'GET', '/api/dashboard/statistics')[1]['data']
    assert data['total_records'] == 2
    assert data['temperature']['average'] == 21.0


def test_records_limit(api):
    status, payload = call(api, 'GET', '/api/records', limit=5)
    assert status == 200
    assert len(payload['data']) == 5
    assert call(api, 'GET', '/api/records', limit='abc')[0] == 400
    assert call(api, 'GET', '/api/records', limit=0)[0] == 400


def test_report_route(api):
    status, payload = call(api, 'GET', '/api/records/reports', period='month')
    assert status == 200
    assert payload['data']['days'] == 30
    assert call(api, 'GET', '/api/records/alerts-summary')[1]['data']['total'] == 0


# ===== irrigation =====

def test_start_and_stop_watering(api, server):
    status, payload = call(api, 'POST', '/api/irrigation/start', {'duration': 10})
    assert status == 200
    assert payload['data'] == {'duration_minutes': 10, 'mode': 'manual'}

    assert call(api, 'POST', '/api/irrigation/start', {'duration': 10})[0] == 409
    assert call(api, 'GET', '/api/irrigation/status')[1]['data']['in_progress'] is True

    assert call(api, 'POST', '/api/irrigation/stop')[0] == 200
    assert call(api, 'POST', '/api/irrigation/stop')[0] == 409


@pytest.mark.parametrize("body", [{'duration': 500}, {'duration': 0}, {'duration': 'abc'}])
def test_start_with_bad_duration(api, body):
    status, payload = call(api, 'POST', '/api/irrigation/start', body)
    assert status == 400
    assert payload['success'] is False


def test_irrigation_config_routes(api):
    config = call(api, 'GET', '/api/irrigation/config')[1]['data']
    assert set(config) == {'frequency_days', 'duration_minutes', 'start_time', 'enabled'}

    status, payload = call(api, 'PUT', '/api/irrigation/config', {'frequencyDays': 3, 'startTime': '07:00'})
    assert status == 200
    assert payload['data']['frequency_days'] == 3
    assert payload['data']['next_scheduled_at'] == "2024-05-16T07:00:00"

    assert call(api, 'PUT', '/api/irrigation/config', {'start_time': '7pm'})[0] == 400


def test_schedule_routes(api):
    status, payload = call(api, 'POST', '/api/irrigation/schedule',
                           {'date': '2024-05-17', 'time': '08:00', 'duration': 15})
    assert status == 201
    watering_id = payload['data']['id']

    pending = call(api, 'GET', '/api/irrigation/scheduled')[1]['data']
    assert [w['id'] for w in pending] == [watering_id]

    assert call(api, 'DELETE', f'/api/irrigation/scheduled/{watering_id}')[0] == 200
    assert call(api, 'DELETE', f'/api/irrigation/scheduled/{watering_id}')[0] == 404

    past = call(api, 'POST', '/api/irrigation/schedule', {'date': '2024-05-01', 'time': '08:00'})
    assert past[0] == 400
    assert past[1]['message'] == "Date must be in the future"
    assert call(api, 'POST', '/api/irrigation/schedule', {'time': '08:00'})[0] == 400


# ===== alerts =====

def test_alert_routes(api, server):
    server.start_watering(5)
    server.sensors.configure(temperature=30)
    server.refresh_alerts()

    listing = call(api, 'GET', '/api/dashboard/alerts', limit=1)[1]['data']
    assert len(listing['items']) == 1
    assert listing['total'] >= 3

    alert_id = listing['items'][0]['id']
    assert call(api, 'PUT', f'/api/alerts/{alert_id}/read')[0] == 200
    assert call(api, 'PUT', f'/api/notifications/{alert_id}/read')[0] == 200
    assert call(api, 'PUT', '/api/alerts/read-all')[0] == 200
    assert call(api, 'GET', '/api/notifications')[1]['data']['unread_count'] == 0

    assert call(api, 'DELETE', f'/api/alerts/{alert_id}')[0] == 200
    assert call(api, 'DELETE', f'/api/alerts/{alert_id}')[0] == 404
    assert call(api, 'PUT', '/api/alerts/missing/read')[0] == 404


# ===== calendars and stored notifications =====

def test_calendar_routes(api):
    status, payload = call(api, 'POST', '/api/calendars',
                           {'name': 'Orchids', 'wateringTime': '07:30', 'durationMinutes': 12, 'days': [2, 5]})
    assert status == 201
    calendar_id = payload['data']['id']
    assert payload['data']['greenhouse_id'] == 1

    assert len(call(api, 'GET', '/api/calendars')[1]['data']) == 1
    updated = call(api, 'PUT', f'/api/calendars/{calendar_id}', {'days': [1]})
    assert updated[1]['data']['days'] == [1]

    assert call(api, 'POST', '/api/calendars', {'days': []})[0] == 400
    assert call(api, 'POST', '/api/calendars', {'days': 'monday'})[0] == 400
    assert call(api, 'DELETE', f'/api/calendars/{calendar_id}')[0] == 200
    assert call(api, 'DELETE', '/api/calendars/999')[0] == 404


def test_user_notification_routes(api, server):
    stored = server.notifications.create({'type': 'SYSTEM', 'title': 'Hello', 'message': 'Hi',
                                          'recipients': [7]}).data
    listing = call(api, 'GET', '/api/users/7/notifications')[1]['data']
    assert [n['title'] for n in listing['items']] == ['Hello']

    assert call(api, 'PUT', f"/api/users/7/notifications/{stored['id']}/read")[0] == 200
    assert call(api, 'GET', '/api/users/7/notifications', unread='true')[1]['data']['items'] == []
    assert call(api, 'PUT', f"/api/users/8/notifications/{stored['id']}/read")[0] == 404


# ===== failures =====

def test_handler_exception_is_500(api, server, monkeypatch):
    def broken():
        raise RuntimeError("sensor unavailable")

    monkeypatch.setattr(server, 'current_reading', broken)
    status, payload = call(api, 'GET', '/api/health')
    assert status == 500
    assert payload['message'] == "Internal server error"
    assert server.diagnostics.counters['total_errors'] == 1


def test_http_round_trip(api):
    api.start()
    try:
        base = f"http://127.0.0.1:{api.port}"
        with urllib.request.urlopen(f"{base}/api/health", timeout=5) as response:
            assert response.status == 200
            assert response.headers['Access-Control-Allow-Origin'] == '*'
            assert json.loads(response.read())['success'] is True

        bad = urllib.request.Request(f"{base}/api/irrigation/start", data=b"{not json",
                                     headers={'Content-Type': 'application/json'}, method='POST')
        with pytest.raises(urllib.error.HTTPError) as exc:
            urllib.request.urlopen(bad, timeout=5)
        assert exc.value.code == 400

        with pytest.raises(urllib.error.HTTPError) as exc:
            urllib.request.urlopen(f"{base}/api/unknown", timeout=5)
        assert exc.value.code == 404
    finally:
        api.stop()
