import hmac
import os
import socket
import sqlite3
import sys
from datetime import timedelta
from functools import wraps

from dotenv import load_dotenv
from flask import Flask, jsonify, request, session

from database import get_db_connection, init_db
from services.analytics import ReportLookupError, get_analytics_engine
from services.dates import DEFAULT_TIME_ZONE, parse_iso_date, today_in_zone
from services.entries import (
    DuplicateRepError,
    EntryValidationError,
    ROLE_REP,
    get_entry_service,
)
from services.metrics import MinimumStandards

# Load environment variables from .env file
load_dotenv()

# --- App Initialization ---
app = Flask(__name__)
app.json.sort_keys = False
app.secret_key = os.getenv('SECRET_KEY') or os.urandom(24)
app.permanent_session_lifetime = timedelta(hours=12)

TIME_ZONE = os.getenv('TRACKER_TIME_ZONE', DEFAULT_TIME_ZONE)
MANAGER_PIN = os.getenv('MANAGER_PIN', '')
SERVER_PORT = int(os.getenv('PORT', '5002'))
MANAGER_SESSION_KEY = 'manager_authed'


def _env_int(name, default):
    raw = os.getenv(name)
    if raw in (None, ''):
        return default
    try:
        return int(raw)
    except ValueError:
        app.logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


STANDARDS = MinimumStandards(
    dials=_env_int('TRACKER_MIN_DIALS', 50),
    prospects=_env_int('TRACKER_MIN_NEW_PROSPECTS', 10),
)

_db_bootstrapped = False


@app.before_request
def _ensure_database_initialized():
    """Guarantee the SQLite schema exists before serving any request."""
    global _db_bootstrapped
    if _db_bootstrapped:
        return
    try:
        init_db()
        _db_bootstrapped = True
    except Exception as exc:  # pragma: no cover - defensive logging
        app.logger.exception("Failed to initialize database before request: %s", exc)


def _is_manager():
    return bool(session.get(MANAGER_SESSION_KEY))


def manager_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if not _is_manager():
            return jsonify({'message': 'Manager PIN required.'}), 401
        return view(*args, **kwargs)
    return wrapped


def _run_report(conn, report_id, params):
    return get_analytics_engine().run_report(
        conn,
        report_id,
        params,
        timezone_name=TIME_ZONE,
        standards=STANDARDS,
    )


def _report_response(report_id, params):
    conn = get_db_connection()
    try:
        return jsonify({'report': _run_report(conn, report_id, params)})
    except ReportLookupError as exc:
        return jsonify({'message': exc.args[0]}), 404
    except ValueError as exc:
        return jsonify({'message': str(exc)}), 400
    except Exception as exc:  # pragma: no cover - defensive logging
        app.logger.exception("Failed to execute report %s: %s", report_id, exc)
        return jsonify({'message': 'Failed to generate report.'}), 500
    finally:
        conn.close()


# --- Manager session ---

@app.route('/api/manager/login', methods=['POST'])
def api_manager_login():
    payload = request.get_json(force=True, silent=True) or {}
    pin = str(payload.get('pin') or '')
    if pin and MANAGER_PIN and hmac.compare_digest(pin.encode(), MANAGER_PIN.encode()):
        session.permanent = True
        session[MANAGER_SESSION_KEY] = True
        return jsonify({'status': 'success'})
    app.logger.warning("Rejected manager login attempt")
    return jsonify({'status': 'error', 'message': 'Invalid PIN.'}), 401


@app.route('/api/manager/logout', methods=['POST'])
def api_manager_logout():
    session.pop(MANAGER_SESSION_KEY, None)
    return jsonify({'status': 'success'})


# --- Reps ---

@app.route('/api/reps', methods=['GET'])
def api_list_reps():
    role = request.args.get('role') or None
    conn = get_db_connection()
    try:
        return jsonify({'reps': get_entry_service().list_reps(conn, role=role)})
    except sqlite3.Error as e:
        app.logger.error(f"DB error listing reps: {e}")
        return jsonify({'message': 'Failed to load reps.'}), 500
    finally:
        conn.close()


@app.route('/api/reps', methods=['POST'])
@manager_required
def api_create_rep():
    payload = request.get_json(force=True, silent=True) or {}
    conn = get_db_connection()
    try:
        rep = get_entry_service().create_rep(conn, payload.get('name'), payload.get('role') or ROLE_REP)
        conn.commit()
        return jsonify({'rep': rep}), 201
    except EntryValidationError as exc:
        conn.rollback()
        return jsonify({'message': 'Validation failed.', 'errors': exc.errors}), 400
    except DuplicateRepError as exc:
        conn.rollback()
        return jsonify({'message': str(exc)}), 409
    finally:
        conn.close()


@app.route('/api/reps/<string:rep_id>', methods=['DELETE'])
@manager_required
def api_delete_rep(rep_id):
    conn = get_db_connection()
    try:
        get_entry_service().delete_rep(conn, rep_id)
        conn.commit()
        return jsonify({'status': 'success'})
    except KeyError:
        conn.rollback()
        return jsonify({'message': f'Rep {rep_id} not found.'}), 404
    finally:
        conn.close()


# --- Entries ---

@app.route('/api/reps/<string:rep_id>/entries/<string:entry_date>', methods=['GET'])
def api_get_entry(rep_id, entry_date):
    service = get_entry_service()
    conn = get_db_connection()
    try:
        rep = service.find_rep(conn, rep_id)
        if rep is None:
            return jsonify({'message': f'Rep {rep_id} not found.'}), 404
        entry = service.get_entry(conn, rep['id'], entry_date)
        return jsonify({'rep': rep, 'date': parse_iso_date(entry_date).isoformat(), 'entry': entry})
    except EntryValidationError as exc:
        return jsonify({'message': 'Validation failed.', 'errors': exc.errors}), 400
    finally:
        conn.close()


@app.route('/api/reps/<string:rep_id>/entries/<string:entry_date>/<string:section>', methods=['PUT', 'POST'])
def api_save_entry_section(rep_id, entry_date, section):
    if section not in ('goals', 'actuals'):
        return jsonify({'message': f"Unknown section '{section}'."}), 404
    payload = request.get_json(force=True, silent=True) or {}
    service = get_entry_service()
    conn = get_db_connection()
    try:
        rep = service.find_rep(conn, rep_id)
        if rep is None:
            return jsonify({'message': f'Rep {rep_id} not found.'}), 404
        entry = service.save_section(conn, section, rep['id'], entry_date, payload)
        conn.commit()
        app.logger.info("Saved %s for %s on %s", section, rep['name'], entry['date'])
        return jsonify({'status': 'success', 'saved': section, 'entry': entry})
    except EntryValidationError as exc:
        conn.rollback()
        return jsonify({'message': 'Validation failed.', 'errors': exc.errors}), 400
    except sqlite3.Error as e:
        conn.rollback()
        app.logger.error(f"DB error saving {section}: {e}")
        return jsonify({'message': 'Failed to save entry.'}), 500
    finally:
        conn.close()


@app.route('/api/reps/<string:rep_id>/standup', methods=['GET'])
def api_rep_standup(rep_id):
    conn = get_db_connection()
    try:
        rep = get_entry_service().find_rep(conn, rep_id)
    finally:
        conn.close()
    if rep is None:
        return jsonify({'message': f'Rep {rep_id} not found.'}), 404
    return _report_response('rep_standup', {'rep_id': rep['id']})


# --- Reporting ---

@app.route('/api/dashboard', methods=['GET'])
def api_dashboard():
    params = {
        name: request.args.get(name)
        for name in ('range', 'start', 'end', 'custom', 'metric', 'sort', 'direction')
    }
    return _report_response('team_dashboard', params)


@app.route('/api/manager/summary', methods=['GET'])
@manager_required
def api_manager_summary():
    return _report_response('manager_summary', {'months': request.args.get('months')})


@app.route('/api/manager/reps/<string:rep_id>', methods=['GET'])
@manager_required
def api_manager_rep_detail(rep_id):
    params = {
        'rep_id': rep_id,
        'days': request.args.get('days'),
        'lookback': request.args.get('lookback'),
    }
    return _report_response('rep_detail', params)


@app.route('/api/analytics/reports', methods=['GET'])
def api_list_analytics_reports():
    conn = get_db_connection()
    try:
        engine = get_analytics_engine()
        definitions = engine.list_report_definitions(conn, timezone_name=TIME_ZONE)
        return jsonify({'reports': definitions, 'today': today_in_zone(TIME_ZONE)})
    except Exception as exc:  # pragma: no cover - defensive logging
        app.logger.exception("Failed to list analytics reports: %s", exc)
        return jsonify({'message': 'Failed to load analytics definitions.'}), 500
    finally:
        conn.close()


@app.route('/api/analytics/reports/run', methods=['POST'])
def api_run_analytics_report():
    payload = request.get_json(force=True, silent=True) or {}
    report_id = payload.get('reportId') or payload.get('report_id')
    if not report_id:
        return jsonify({'message': 'reportId is required.'}), 400
    try:
        definition = get_analytics_engine().get_definition(report_id)
    except ReportLookupError as exc:
        return jsonify({'message': exc.args[0]}), 404
    if definition.manager_only and not _is_manager():
        return jsonify({'message': 'Manager PIN required.'}), 401
    return _report_response(report_id, payload.get('params') or {})


def is_port_in_use(port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        return s.connect_ex(('127.0.0.1', port)) == 0


def main():
    if is_port_in_use(SERVER_PORT):
        print(f"Port {SERVER_PORT} is already in use.")
        sys.exit(1)
    print(f"Port {SERVER_PORT} is free. Starting new server.")
    app.run(host='0.0.0.0', port=SERVER_PORT, debug=False)


if __name__ == '__main__':
    init_db()
    main()
