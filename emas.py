import logging

import mysql.connector
from flask import Blueprint, current_app, g, request

import db
from auth import login_required
from gold_scheduler import ERROR_STATUS, MetalsApiError
from helpers import ValidationError, fail, ok, parse_int, server_error

logger = logging.getLogger(__name__)

emas_bp = Blueprint('emas', __name__, url_prefix='/api/emas')


def _service():
    return current_app.extensions['gold_service']


@emas_bp.route('/latest', methods=['GET'])
@login_required
def latest():
    try:
        row = db.query_one("SELECT * FROM emas ORDER BY timestamp DESC LIMIT 1")
    except mysql.connector.Error as err:
        return server_error('Gagal memuat harga emas', err)
    if row is None:
        return fail('Belum ada data harga emas', 404)
    return ok(db.serialize_row(row))


@emas_bp.route('/history', methods=['GET'])
@login_required
def history():
    try:
        limit = parse_int(request.args.get('limit', 30), 'limit', minimum=1)
    except ValidationError as err:
        return fail(str(err))
    limit = min(limit, 365)

    try:
        rows = db.query("SELECT * FROM emas ORDER BY timestamp DESC LIMIT %s", (limit,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat riwayat harga emas', err)
    # grafik butuh urutan lama -> baru
    rows.reverse()
    return ok(db.serialize_rows(rows))


@emas_bp.route('/fetch', methods=['POST'])
@login_required
def fetch():
    logger.info("Manual refresh oleh %s", g.user.get("email"))
    try:
        result = _service().fetch_gold_price('manual')
    except mysql.connector.Error as err:
        return server_error('Gagal memperbarui harga emas', err)

    if not result['success']:
        extra = {'manualLimit': result['manualLimit']} if 'manualLimit' in result else {}
        return fail(result['message'], ERROR_STATUS.get(result['error'], 500),
                    error=result['error'], **extra)

    return ok(result.get('data'), result['message'], inserted=result['inserted'])


@emas_bp.route('/stats', methods=['GET'])
@login_required
def stats():
    try:
        recent = db.query("SELECT price, timestamp FROM emas ORDER BY timestamp DESC LIMIT 2")
        summary = db.query_one(
            "SELECT COUNT(*) AS total_records, MAX(price) AS highest, MIN(price) AS lowest, "
            "AVG(price) AS average FROM emas WHERE timestamp >= DATE_SUB(NOW(), INTERVAL 30 DAY)"
        )
    except mysql.connector.Error as err:
        return server_error('Gagal memuat statistik harga emas', err)

    latest_row = recent[0] if recent else None
    previous_row = recent[1] if len(recent) > 1 else None
    change = change_percent = None
    if latest_row and previous_row and previous_row['price']:
        change = latest_row['price'] - previous_row['price']
        change_percent = round(change / previous_row['price'] * 100, 2)

    summary = summary or {}
    return ok({
        'latest': db.serialize_row(latest_row),
        'previous': db.serialize_row(previous_row),
        'change': db.serialize(change),
        'change_percent': db.serialize(change_percent),
        'total_records': int(summary.get('total_records') or 0),
        'highest': db.serialize(summary.get('highest')),
        'lowest': db.serialize(summary.get('lowest')),
        'average': db.serialize(summary.get('average')),
    })


@emas_bp.route('/usage', methods=['GET'])
@login_required
def usage():
    try:
        data = _service().client.usage()
    except MetalsApiError as err:
        logger.warning("Gagal cek API usage: %s", err.message)
        return fail('Gagal mengambil data penggunaan API', ERROR_STATUS.get(err.code, 500),
                    error=err.code)
    return ok(data)


@emas_bp.route('/manual-refresh-status', methods=['GET'])
@login_required
def manual_refresh_status():
    try:
        status = _service().manual_refresh_status()
    except mysql.connector.Error as err:
        return server_error('Gagal memuat status manual refresh', err)
    return ok(status)


@emas_bp.route('/scheduler-status', methods=['GET'])
@login_required
def scheduler_status():
    return ok(current_app.extensions['gold_scheduler'].status())
