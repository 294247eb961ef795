import mysql.connector
from flask import Blueprint, request

import db
from auth import login_required
from helpers import (ValidationError, clean_str, fail, get_payload, ok, parse_date,
                     parse_time, server_error)

event_bp = Blueprint('event', __name__, url_prefix='/api/event')


def _event_values(data):
    nama_event = clean_str(data.get('nama_event'))
    lokasi = clean_str(data.get('lokasi'))
    penanggung_jawab = clean_str(data.get('penanggung_jawab'))
    tanggal = parse_date(data.get('tanggal_event'), 'tanggal event')
    waktu = parse_time(data.get('waktu_event'), 'waktu event')

    if not nama_event or not lokasi or not tanggal or not waktu or not penanggung_jawab:
        raise ValidationError('Mohon lengkapi semua field yang wajib diisi')

    return (nama_event, lokasi, tanggal, waktu, penanggung_jawab,
            clean_str(data.get('keterangan')))


def _format(row):
    row = db.serialize_row(row)
    # kalender cukup HH:MM
    if row.get('waktu_event'):
        row['waktu_event'] = row['waktu_event'][:5]
    return row


@event_bp.route('', methods=['GET'])
@login_required
def list_event():
    sql = "SELECT * FROM event WHERE 1=1"
    params = []
    bulan = clean_str(request.args.get('bulan'))
    if bulan:
        try:
            awal = parse_date(f"{bulan}-01", 'bulan')
        except ValidationError:
            return fail('Format bulan salah. Gunakan YYYY-MM.')
        sql += " AND tanggal_event >= %s AND tanggal_event < DATE_ADD(%s, INTERVAL 1 MONTH)"
        params.extend([awal, awal])
    sql += " ORDER BY tanggal_event ASC, waktu_event ASC"

    try:
        rows = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data event', err)
    return ok([_format(row) for row in rows])


@event_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_event(id):
    try:
        event = db.query_one("SELECT * FROM event WHERE id_event = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data event', err)
    if event is None:
        return fail('Event tidak ditemukan', 404)
    return ok(_format(event))


@event_bp.route('', methods=['POST'])
@login_required
def create_event():
    try:
        values = _event_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        event_id, _ = db.execute(
            "INSERT INTO event (nama_event, lokasi, tanggal_event, waktu_event, penanggung_jawab, keterangan) "
            "VALUES (%s, %s, %s, %s, %s, %s)",
            values
        )
    except mysql.connector.Error as err:
        return server_error('Gagal menambahkan event', err)

    return ok({'id_event': event_id}, 'Event berhasil ditambahkan', 201)


@event_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_event(id):
    try:
        values = _event_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        if db.query_one("SELECT id_event FROM event WHERE id_event = %s", (id,)) is None:
            return fail('Event tidak ditemukan', 404)
        db.execute(
            "UPDATE event SET nama_event = %s, lokasi = %s, tanggal_event = %s, waktu_event = %s, "
            "penanggung_jawab = %s, keterangan = %s WHERE id_event = %s",
            values + (id,)
        )
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate event', err)

    return ok(message='Event berhasil diperbarui')


@event_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_event(id):
    try:
        if db.query_one("SELECT id_event FROM event WHERE id_event = %s", (id,)) is None:
            return fail('Event tidak ditemukan', 404)
        db.execute("DELETE FROM event WHERE id_event = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus event', err)

    return ok(message='Event berhasil dihapus')
