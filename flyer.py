import logging

import mysql.connector
from flask import Blueprint, url_for

import db
from auth import login_required
from helpers import ValidationError, clean_str, fail, get_payload, ok, server_error
from uploads import get_upload, remove_upload, save_upload

logger = logging.getLogger(__name__)

# Satu definisi flyer; didaftarkan di /api/flyers dan /api/flyer (lama)
flyer_bp = Blueprint('flyers', __name__)


def _with_url(row):
    row = db.serialize_row(row)
    if row.get('gambar'):
        row['gambar_url'] = url_for('static', filename=f"uploads/flyers/{row['gambar']}")
    return row


@flyer_bp.route('', methods=['GET'])
@login_required
def list_flyers():
    try:
        flyers = db.query("SELECT * FROM flyers ORDER BY created_at DESC")
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data flyers', err)
    return ok([_with_url(row) for row in flyers])


@flyer_bp.route('/public', methods=['GET'])
def public_flyers():
    """Carousel dashboard, tanpa login."""
    try:
        flyers = db.query("SELECT id_flyer, gambar, nama, keterangan, created_at FROM flyers "
                          "ORDER BY created_at DESC")
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data flyers', err)
    return ok([_with_url(row) for row in flyers])


@flyer_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_flyer(id):
    try:
        flyer = db.query_one("SELECT * FROM flyers WHERE id_flyer = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data flyer', err)
    if flyer is None:
        return fail('Flyer tidak ditemukan', 404)
    return ok(_with_url(flyer))


@flyer_bp.route('', methods=['POST'])
@login_required
def create_flyer():
    data = get_payload()
    nama = clean_str(data.get('nama'))
    keterangan = clean_str(data.get('keterangan'))
    file = get_upload('gambar')

    if not nama or file is None:
        return fail('Nama dan gambar harus diisi')

    try:
        gambar = save_upload(file, 'flyers')
    except ValidationError as err:
        return fail(str(err))

    try:
        flyer_id, _ = db.execute(
            "INSERT INTO flyers (gambar, nama, keterangan) VALUES (%s, %s, %s)",
            (gambar, nama, keterangan)
        )
    except mysql.connector.Error as err:
        remove_upload(gambar, 'flyers')
        return server_error('Gagal menambahkan flyer', err)

    return ok(_with_url({'id_flyer': flyer_id, 'gambar': gambar, 'nama': nama,
                         'keterangan': keterangan}), 'Flyer berhasil ditambahkan', 201)


@flyer_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_flyer(id):
    if id <= 0:
        return fail('ID flyer tidak valid')

    data = get_payload()
    nama = clean_str(data.get('nama'))
    keterangan = clean_str(data.get('keterangan'))
    file = get_upload('gambar')

    if not nama:
        return fail('Nama harus diisi')

    try:
        existing = db.query_one("SELECT * FROM flyers WHERE id_flyer = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate flyer', err)
    if existing is None:
        return fail('Flyer tidak ditemukan', 404)

    gambar = None
    if file is not None:
        try:
            gambar = save_upload(file, 'flyers')
        except ValidationError as err:
            return fail(str(err))

    sql = "UPDATE flyers SET nama = %s, keterangan = %s"
    params = [nama, keterangan]
    if gambar:
        sql += ", gambar = %s"
        params.append(gambar)
    sql += ", updated_at = NOW() WHERE id_flyer = %s"
    params.append(id)

    try:
        db.execute(sql, params)
    except mysql.connector.Error as err:
        remove_upload(gambar, 'flyers')
        return server_error('Gagal mengupdate flyer', err)

    # file lama dihapus setelah database berhasil diupdate
    if gambar:
        remove_upload(existing['gambar'], 'flyers')

    return ok(message='Flyer berhasil diupdate')


@flyer_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_flyer(id):
    try:
        existing = db.query_one("SELECT * FROM flyers WHERE id_flyer = %s", (id,))
        if existing is None:
            return fail('Flyer tidak ditemukan', 404)
        db.execute("DELETE FROM flyers WHERE id_flyer = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus flyer', err)

    remove_upload(existing['gambar'], 'flyers')
    return ok(message='Flyer berhasil dihapus')
