import mysql.connector
from flask import Blueprint, request

import db
from auth import login_required
from helpers import (ValidationError, clean_str, fail, get_payload, ok, parse_date,
                     parse_int, server_error)

inventaris_bp = Blueprint('inventaris', __name__, url_prefix='/api/inventaris')

KONDISI = ('Baik', 'Rusak', 'Perlu Perbaikan')


def _inventaris_values(data):
    nama_barang = clean_str(data.get('nama_barang'))
    if not nama_barang:
        raise ValidationError('Nama barang harus diisi')
    jumlah = parse_int(data.get('jumlah'), 'Jumlah')
    kondisi = clean_str(data.get('kondisi'))
    if not kondisi:
        raise ValidationError('Kondisi harus dipilih')
    if kondisi not in KONDISI:
        raise ValidationError('Kondisi harus salah satu dari: ' + ', '.join(KONDISI))
    tanggal = parse_date(data.get('tanggal_update'), 'tanggal update')
    return (nama_barang, jumlah, kondisi, tanggal, clean_str(data.get('keterangan')))


@inventaris_bp.route('', methods=['GET'])
@login_required
def list_inventaris():
    sql = "SELECT * FROM inventaris WHERE 1=1"
    params = []
    kondisi = clean_str(request.args.get('kondisi'))
    if kondisi:
        sql += " AND kondisi = %s"
        params.append(kondisi)
    sql += " ORDER BY id_inventaris DESC"

    try:
        rows = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data inventaris', err)
    return ok(db.serialize_rows(rows))


@inventaris_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_inventaris(id):
    try:
        item = db.query_one("SELECT * FROM inventaris WHERE id_inventaris = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data inventaris', err)
    if item is None:
        return fail('Data inventaris tidak ditemukan', 404)
    return ok(db.serialize_row(item))


@inventaris_bp.route('', methods=['POST'])
@login_required
def create_inventaris():
    try:
        values = _inventaris_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        item_id, _ = db.execute(
            "INSERT INTO inventaris (nama_barang, jumlah, kondisi, tanggal_update, keterangan) "
            "VALUES (%s, %s, %s, COALESCE(%s, CURDATE()), %s)",
            values
        )
    except mysql.connector.Error as err:
        return server_error('Gagal menambahkan inventaris', err)

    return ok({'id_inventaris': item_id}, 'Inventaris berhasil ditambahkan', 201)


@inventaris_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_inventaris(id):
    try:
        values = _inventaris_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        if db.query_one("SELECT id_inventaris FROM inventaris WHERE id_inventaris = %s", (id,)) is None:
            return fail('Data inventaris tidak ditemukan', 404)
        db.execute(
            "UPDATE inventaris SET nama_barang = %s, jumlah = %s, kondisi = %s, "
            "tanggal_update = COALESCE(%s, CURDATE()), keterangan = %s WHERE id_inventaris = %s",
            values + (id,)
        )
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate inventaris', err)

    return ok(message='Inventaris berhasil diupdate')


@inventaris_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_inventaris(id):
    try:
        if db.query_one("SELECT id_inventaris FROM inventaris WHERE id_inventaris = %s", (id,)) is None:
            return fail('Data inventaris tidak ditemukan', 404)
        db.execute("DELETE FROM inventaris WHERE id_inventaris = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus inventaris', err)

    return ok(message='Inventaris berhasil dihapus')
