import logging
from io import BytesIO

import mysql.connector
from flask import Blueprint, request, send_file
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

import db
from auth import login_required
from helpers import (ValidationError, clean_str, fail, get_payload, ok, parse_amount,
                     parse_date, parse_int, server_error)
from uploads import get_upload, remove_upload, save_upload

logger = logging.getLogger(__name__)

# LPJ (Laporan Pertanggungjawaban), relasi opsional ke RAB
laporan_bp = Blueprint('laporan', __name__, url_prefix='/api/laporan')

LPJ_SELECT = """
    SELECT l.*,
           r.nama_kegiatan AS rab_nama_kegiatan,
           r.anggaran AS rab_anggaran,
           r.status AS rab_status,
           CASE WHEN r.anggaran > 0
                THEN ROUND(l.total_pengeluaran / r.anggaran * 100, 2)
                ELSE NULL END AS persentase_terhadap_rab
    FROM lpj l
    LEFT JOIN rab r ON l.id_rab = r.id_rab
"""


def format_rupiah(amount):
    return f"Rp {amount or 0:,.0f}".replace(",", ".")


def _lpj_values(data):
    nama_kegiatan = clean_str(data.get('nama_kegiatan'))
    if not nama_kegiatan:
        raise ValidationError('Nama kegiatan harus diisi')
    total = parse_amount(data.get('total_pengeluaran'), 'Total pengeluaran')
    tanggal = parse_date(data.get('tanggal_lpj'), 'tanggal LPJ')

    id_rab = clean_str(data.get('id_rab'))
    id_rab = parse_int(id_rab, 'ID RAB', minimum=1) if id_rab else None

    return id_rab, nama_kegiatan, total, tanggal, clean_str(data.get('keterangan'))


def _date_filter(sql, params, column):
    start_date = parse_date(request.args.get('start_date'), 'start_date')
    end_date = parse_date(request.args.get('end_date'), 'end_date')
    if start_date:
        sql += f" AND {column} >= %s"
        params.append(start_date)
    if end_date:
        sql += f" AND {column} <= %s"
        params.append(end_date)
    return sql, start_date, end_date


def _rab_exists(id_rab):
    return db.query_one("SELECT id_rab FROM rab WHERE id_rab = %s", (id_rab,)) is not None


@laporan_bp.route('', methods=['GET'])
@login_required
def list_laporan():
    params = []
    try:
        sql, _, _ = _date_filter(LPJ_SELECT + " WHERE 1=1", params, "l.tanggal_lpj")
    except ValidationError as err:
        return fail(str(err))
    sql += " ORDER BY l.tanggal_lpj DESC, l.id_lpj DESC"

    try:
        rows = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data Laporan', err)
    return ok(db.serialize_rows(rows))


@laporan_bp.route('/<int:id>', methods=['GET'])
@login_required
def get_laporan(id):
    try:
        lpj = db.query_one(LPJ_SELECT + " WHERE l.id_lpj = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal memuat data Laporan', err)
    if lpj is None:
        return fail('Laporan tidak ditemukan', 404)
    return ok(db.serialize_row(lpj))


@laporan_bp.route('', methods=['POST'])
@login_required
def create_laporan():
    try:
        id_rab, nama_kegiatan, total, tanggal, keterangan = _lpj_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    file = get_upload('bukti_dokumen')
    if file is None:
        return fail('File PDF bukti dokumen harus diupload')

    try:
        if id_rab is not None and not _rab_exists(id_rab):
            return fail('RAB tidak ditemukan')
    except mysql.connector.Error as err:
        return server_error('Gagal menambahkan Laporan', err)

    try:
        bukti = save_upload(file, 'laporan')
    except ValidationError as err:
        return fail(str(err))

    try:
        lpj_id, _ = db.execute(
            "INSERT INTO lpj (id_rab, nama_kegiatan, total_pengeluaran, tanggal_lpj, bukti_dokumen, keterangan) "
            "VALUES (%s, %s, %s, COALESCE(%s, CURDATE()), %s, %s)",
            (id_rab, nama_kegiatan, total, tanggal, bukti, keterangan)
        )
    except mysql.connector.Error as err:
        remove_upload(bukti, 'laporan')
        return server_error('Gagal menambahkan Laporan', err)

    return ok({'id_lpj': lpj_id, 'bukti_dokumen': bukti}, 'Laporan berhasil ditambahkan', 201)


@laporan_bp.route('/<int:id>', methods=['PUT'])
@login_required
def update_laporan(id):
    try:
        id_rab, nama_kegiatan, total, tanggal, keterangan = _lpj_values(get_payload())
    except ValidationError as err:
        return fail(str(err))

    try:
        existing = db.query_one("SELECT * FROM lpj WHERE id_lpj = %s", (id,))
        if existing is None:
            return fail('Laporan tidak ditemukan', 404)
        if id_rab is not None and not _rab_exists(id_rab):
            return fail('RAB tidak ditemukan')
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate Laporan', err)

    bukti = None
    file = get_upload('bukti_dokumen')
    if file is not None:
        try:
            bukti = save_upload(file, 'laporan')
        except ValidationError as err:
            return fail(str(err))

    sql = ("UPDATE lpj SET id_rab = %s, nama_kegiatan = %s, total_pengeluaran = %s, "
           "tanggal_lpj = COALESCE(%s, tanggal_lpj), keterangan = %s")
    params = [id_rab, nama_kegiatan, total, tanggal, keterangan]
    if bukti:
        sql += ", bukti_dokumen = %s"
        params.append(bukti)
    sql += " WHERE id_lpj = %s"
    params.append(id)

    try:
        db.execute(sql, params)
    except mysql.connector.Error as err:
        remove_upload(bukti, 'laporan')
        return server_error('Gagal mengupdate Laporan', err)

    if bukti:
        remove_upload(existing['bukti_dokumen'], 'laporan')
    return ok(message='Laporan berhasil diupdate')


@laporan_bp.route('/<int:id>', methods=['DELETE'])
@login_required
def delete_laporan(id):
    try:
        existing = db.query_one("SELECT * FROM lpj WHERE id_lpj = %s", (id,))
        if existing is None:
            return fail('Laporan tidak ditemukan', 404)
        db.execute("DELETE FROM lpj WHERE id_lpj = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus Laporan', err)

    remove_upload(existing['bukti_dokumen'], 'laporan')
    return ok(message='Laporan berhasil dihapus')


@laporan_bp.route('/cetak', methods=['GET'])
@login_required
def cetak_laporan():
    params = []
    try:
        sql, start_date, end_date = _date_filter(LPJ_SELECT + " WHERE 1=1", params, "l.tanggal_lpj")
    except ValidationError as err:
        return fail(str(err))
    sql += " ORDER BY l.tanggal_lpj"

    try:
        data = db.query(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal mencetak Laporan', err)

    buffer = build_lpj_pdf(data, start_date, end_date)
    return send_file(buffer, as_attachment=True, download_name="laporan_lpj.pdf",
                     mimetype='application/pdf')


def build_lpj_pdf(rows, start_date=None, end_date=None):
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    width, height = A4

    # Judul Laporan
    pdf.setFont("Helvetica-Bold", 14)
    pdf.drawCentredString(width / 2, height - 30, "Laporan Pertanggungjawaban (LPJ)")

    date_range_str = ""
    if start_date and end_date:
        date_range_str = f"Periode: {start_date} s.d. {end_date}"
    elif start_date:
        date_range_str = f"Dari Tanggal: {start_date}"
    elif end_date:
        date_range_str = f"Sampai Tanggal: {end_date}"
    if date_range_str:
        pdf.setFont("Helvetica", 10)
        pdf.drawCentredString(width / 2, height - 45, date_range_str)

    x_start = 40
    col_widths = [70, 150, 95, 95, 60]
    headers = ["Tanggal", "Kegiatan", "Pengeluaran", "Anggaran RAB", "% RAB"]

    def draw_header(y):
        pdf.setFont("Helvetica-Bold", 10)
        x = x_start
        for i, header in enumerate(headers):
            pdf.drawString(x, y, header)
            x += col_widths[i]
        y -= 8
        pdf.line(x_start, y, x_start + sum(col_widths), y)
        pdf.setFont("Helvetica", 10)
        return y - 12

    y = draw_header(height - 80)
    total_pengeluaran = 0

    for row in rows:
        tanggal = row['tanggal_lpj'].strftime("%Y-%m-%d") if row.get('tanggal_lpj') else "-"
        persen = row.get('persentase_terhadap_rab')

        x = x_start
        pdf.drawString(x, y, tanggal)
        x += col_widths[0]
        pdf.drawString(x, y, (row['nama_kegiatan'] or "")[:28])
        x += col_widths[1]
        pdf.drawRightString(x + col_widths[2] - 10, y, format_rupiah(row['total_pengeluaran']))
        x += col_widths[2]
        anggaran = row.get('rab_anggaran')
        pdf.drawRightString(x + col_widths[3] - 10, y, format_rupiah(anggaran) if anggaran else "-")
        x += col_widths[3]
        pdf.drawRightString(x + col_widths[4] - 5, y, f"{persen}%" if persen is not None else "-")

        total_pengeluaran += row['total_pengeluaran'] or 0

        y -= 20
        if y < 50:  # halaman baru
            pdf.showPage()
            y = draw_header(height - 50)

    y -= 5
    pdf.line(x_start, y, x_start + sum(col_widths), y)
    y -= 20
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawRightString(x_start + col_widths[0] + col_widths[1] - 10, y, "TOTAL:")
    pdf.drawRightString(x_start + sum(col_widths[:3]) - 10, y, format_rupiah(total_pengeluaran))

    pdf.save()
    buffer.seek(0)
    return buffer
