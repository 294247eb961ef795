import logging
from datetime import date

import mysql.connector
from flask import Blueprint, request

import db
from auth import login_required
from helpers import ValidationError, clean_str, fail, get_payload, ok, parse_date, server_error

logger = logging.getLogger(__name__)

# Blueprint untuk lead management
leads_bp = Blueprint('leads', __name__, url_prefix='/api/leads')

FIELDS = ('nama_nasabah', 'no_hp', 'email', 'produk', 'status_leads', 'tanggal_input', 'keterangan')

STATUS_KEYWORDS = (
    ('baru', ('baru', 'new')),
    ('proses', ('proses', 'process', 'follow', 'hot')),
    ('deal', ('deal', 'closed', 'done')),
    ('batal', ('tidak aktif', 'inactive', 'cold', 'batal')),
)


def status_category(status):
    """Kategori badge dari label status bebas (substring match)."""
    label = clean_str(status).lower()
    if not label:
        return 'lainnya'
    for category, keywords in STATUS_KEYWORDS:
        if any(word in label for word in keywords):
            return category
    return 'lainnya'


def _with_category(row):
    row = db.serialize_row(row)
    row['status_kategori'] = status_category(row.get('status_leads'))
    return row


def _lead_values(data):
    nama = clean_str(data.get('nama_nasabah'))
    if not nama:
        raise ValidationError('Nama nasabah harus diisi')
    tanggal = parse_date(data.get('tanggal_input'), 'tanggal input') or date.today()
    return (
        nama,
        clean_str(data.get('no_hp')),
        clean_str(data.get('email')),
        clean_str(data.get('produk')),
        clean_str(data.get('status_leads')) or 'Baru',
        tanggal,
        clean_str(data.get('keterangan')),
    )


@leads_bp.route('', methods=['GET'])
@login_required
def list_leads():
    sql = "SELECT * FROM leads WHERE 1=1"
    params = []
    status = clean_str(request.args.get('status'))
    if status:
        sql += " AND status_leads LIKE %s"
        params.append(f"%{status}%")
    sql += " ORDER BY id_leads DESC"

    try:
        rows = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data leads', err)
    return ok([_with_category(row) for row in rows])


@leads_bp.route('/summary', methods=['GET'])
@login_required
def leads_summary():
    try:
        rows = db.query(
            "SELECT COALESCE(NULLIF(status_leads, ''), 'Tidak Ada Status') AS status, COUNT(*) AS jumlah "
            "FROM leads GROUP BY status ORDER BY jumlah DESC"
        )
    except mysql.connector.Error as err:
        return server_error('Gagal memuat ringkasan leads', err)

    summary = [{'status': row['status'], 'jumlah': row['jumlah'],
                'kategori': status_category(row['status'])} for row in rows]
    return ok({'total': sum(item['jumlah'] for item in summary), 'per_status': summary})


@leads_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_lead(id):
    try:
        lead = db.query_one("SELECT * FROM leads WHERE id_leads = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data lead', err)
    if lead is None:
        return fail('Lead tidak ditemukan', 404)
    return ok(_with_category(lead))


@leads_bp.route('', methods=['POST'])
@login_required
def create_lead():
    try:
        values = _lead_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        lead_id, _ = db.execute(
            "INSERT INTO leads (nama_nasabah, no_hp, email, produk, status_leads, tanggal_input, keterangan) "
            "VALUES (%s, %s, %s, %s, %s, %s, %s)",
            values
        )
    except mysql.connector.Error as err:
        return server_error('Gagal menambahkan lead', err)

    data = db.serialize_row(dict(zip(FIELDS, values)))
    data['id_leads'] = lead_id
    return ok(data, 'Lead berhasil ditambahkan', 201)


@leads_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_lead(id):
    try:
        values = _lead_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        if db.query_one("SELECT id_leads FROM leads WHERE id_leads = %s", (id,)) is None:
            return fail('Lead tidak ditemukan', 404)

        db.execute(
            "UPDATE leads SET nama_nasabah = %s, no_hp = %s, email = %s, produk = %s, "
            "status_leads = %s, tanggal_input = %s, keterangan = %s WHERE id_leads = %s",
            values + (id,)
        )
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate lead', err)

    return ok(message='Lead berhasil diupdate')


@leads_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_lead(id):
    try:
        if db.query_one("SELECT id_leads FROM leads WHERE id_leads = %s", (id,)) is None:
            return fail('Lead tidak ditemukan', 404)
        db.execute("DELETE FROM leads WHERE id_leads = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus lead', err)

    return ok(message='Lead berhasil dihapus')
