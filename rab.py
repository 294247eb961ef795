import logging
from decimal import Decimal

import mysql.connector
from flask import Blueprint, request

import db
from auth import login_required
from helpers import (ValidationError, clean_str, fail, get_payload, ok, parse_amount,
                     parse_date, server_error)

logger = logging.getLogger(__name__)

rab_bp = Blueprint('rab', __name__, url_prefix='/api/rab')

STATUS_RAB = ('Diajukan', 'Dalam Proses', 'Disetujui', 'Ditolak', 'Selesai')

RAB_SELECT = """
    SELECT r.*,
           (r.anggaran - r.realisasi) AS sisa_anggaran,
           CASE WHEN r.anggaran > 0 THEN ROUND(r.realisasi / r.anggaran * 100, 2) ELSE 0 END
               AS persentase_realisasi
    FROM rab r
"""


def validate_rab(data, current=None):
    """Gabungkan input dengan data lama (update) lalu cek realisasi <= anggaran."""
    current = current or {}

    def pick(field):
        return data[field] if field in data else current.get(field)

    nama_kegiatan = clean_str(pick('nama_kegiatan'))
    if not nama_kegiatan:
        raise ValidationError('Nama kegiatan harus diisi')

    anggaran = parse_amount(pick('anggaran'), 'Anggaran')
    realisasi = parse_amount(pick('realisasi'), 'Realisasi', default=Decimal('0'))
    if realisasi > anggaran:
        raise ValidationError('Realisasi tidak boleh melebihi anggaran')

    status = clean_str(pick('status')) or 'Diajukan'
    if status not in STATUS_RAB:
        raise ValidationError('Status RAB tidak valid')

    tanggal = parse_date(pick('tanggal_pengajuan'), 'tanggal pengajuan')
    return (nama_kegiatan, anggaran, realisasi, tanggal, status, clean_str(pick('keterangan')))


@rab_bp.route('', methods=['GET'])
@login_required
def list_rab():
    sql = RAB_SELECT + " WHERE 1=1"
    params = []
    status = clean_str(request.args.get('status'))
    if status:
        sql += " AND r.status = %s"
        params.append(status)
    sql += " ORDER BY r.tanggal_pengajuan DESC, r.id_rab DESC"

    try:
        rows = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data RAB', err)
    return ok(db.serialize_rows(rows))


@rab_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_rab(id):
    try:
        rab = db.query_one(RAB_SELECT + " WHERE r.id_rab = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data RAB', err)
    if rab is None:
        return fail('RAB tidak ditemukan', 404)
    return ok(db.serialize_row(rab))


@rab_bp.route('', methods=['POST'])
@login_required
def create_rab():
    try:
        values = validate_rab(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        rab_id, _ = db.execute(
            "INSERT INTO rab (nama_kegiatan, anggaran, realisasi, tanggal_pengajuan, status, keterangan) "
            "VALUES (%s, %s, %s, COALESCE(%s, CURDATE()), %s, %s)",
            values
        )
    except mysql.connector.Error as err:
        return server_error('Gagal menambahkan RAB', err)

    return ok({'id_rab': rab_id}, 'RAB berhasil ditambahkan', 201)


@rab_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_rab(id):
    data = get_payload()
    try:
        current = db.query_one("SELECT * FROM rab WHERE id_rab = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate RAB', err)
    if current is None:
        return fail('RAB tidak ditemukan', 404)

    try:
        values = validate_rab(data, current)
    except ValidationError as err:
        return fail(str(err))

    try:
        db.execute(
            "UPDATE rab SET nama_kegiatan = %s, anggaran = %s, realisasi = %s, "
            "tanggal_pengajuan = COALESCE(%s, tanggal_pengajuan), status = %s, keterangan = %s "
            "WHERE id_rab = %s",
            values + (id,)
        )
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate RAB', err)

    return ok(message='RAB berhasil diupdate')


@rab_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_rab(id):
    try:
        with db.transaction() as tx:
            rows = tx.query("SELECT id_rab FROM rab WHERE id_rab = %s FOR UPDATE", (id,))
            if not rows:
                return fail('RAB tidak ditemukan', 404)

            # LPJ tetap ada, hanya dilepas dari RAB
            _, unlinked = tx.execute("UPDATE lpj SET id_rab = NULL WHERE id_rab = %s", (id,))
            tx.execute("DELETE FROM rab WHERE id_rab = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus RAB', err)

    if unlinked:
        logger.info("RAB %s dihapus, %s LPJ dilepas dari RAB", id, unlinked)
    return ok(message='RAB berhasil dihapus', unlinked_lpj=unlinked)
