import os
from datetime import date
from decimal import Decimal
from io import BytesIO

import mysql.connector

from laporan import build_lpj_pdf, format_rupiah


def pdf_upload(name='lpj.pdf', content_type='application/pdf'):
    return (BytesIO(b'%PDF-1.4 bukti'), name, content_type)


def laporan_dir(app):
    return os.path.join(app.config['UPLOAD_ROOT'], 'laporan')


def stored_files(app):
    folder = laporan_dir(app)
    return os.listdir(folder) if os.path.isdir(folder) else []


def test_format_rupiah():
    assert format_rupiah(Decimal('1500000')) == 'Rp 1.500.000'
    assert format_rupiah(None) == 'Rp 0'


def test_create_requires_pdf(as_user, fake_db):
    response = as_user.post('/api/laporan', data={'nama_kegiatan': 'Gathering', 'total_pengeluaran': '100'})

    assert response.status_code == 400
    assert fake_db.writes == []


def test_create_rejects_non_pdf(app, as_user, fake_db):
    response = as_user.post('/api/laporan', data={
        'nama_kegiatan': 'Gathering', 'total_pengeluaran': '100',
        'bukti_dokumen': pdf_upload('bukti.txt', 'text/plain')})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Hanya file PDF yang diperbolehkan'
    assert stored_files(app) == []


def test_create_with_unknown_rab(app, as_user, fake_db):
    response = as_user.post('/api/laporan', data={
        'nama_kegiatan': 'Gathering', 'total_pengeluaran': '100', 'id_rab': '9',
        'bukti_dokumen': pdf_upload()})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'RAB tidak ditemukan'
    assert fake_db.writes == []
    assert stored_files(app) == []


def test_create_laporan(app, as_user, fake_db):
    fake_db.on("SELECT id_rab FROM rab", [{'id_rab': 9}])
    fake_db.lastrowid = 4

    response = as_user.post('/api/laporan', data={
        'nama_kegiatan': 'Gathering', 'total_pengeluaran': '250000', 'id_rab': '9',
        'tanggal_lpj': '2024-03-01', 'bukti_dokumen': pdf_upload()})

    assert response.status_code == 201
    data = response.get_json()['data']
    assert data['id_lpj'] == 4
    assert data['bukti_dokumen'].startswith('lpj-') and data['bukti_dokumen'].endswith('.pdf')
    assert stored_files(app) == [data['bukti_dokumen']]
    (_, _, params), = fake_db.executed("INSERT INTO lpj")
    assert params[0] == 9
    assert params[2] == Decimal('250000')
    assert params[3] == date(2024, 3, 1)


def test_create_removes_file_when_insert_fails(app, as_user, fake_db):
    fake_db.on("INSERT INTO lpj", mysql.connector.Error(msg="disk full"))

    response = as_user.post('/api/laporan', data={
        'nama_kegiatan': 'Gathering', 'total_pengeluaran': '100', 'bukti_dokumen': pdf_upload()})

    assert response.status_code == 500
    assert stored_files(app) == []


def test_update_replaces_old_file(app, as_user, fake_db):
    os.makedirs(laporan_dir(app), exist_ok=True)
    with open(os.path.join(laporan_dir(app), 'lama.pdf'), 'wb') as f:
        f.write(b'%PDF-old')
    fake_db.on("SELECT * FROM lpj WHERE id_lpj", [{'id_lpj': 4, 'bukti_dokumen': 'lama.pdf'}])

    response = as_user.put('/api/laporan/4', data={
        'nama_kegiatan': 'Gathering', 'total_pengeluaran': '100', 'bukti_dokumen': pdf_upload('baru.pdf')})

    assert response.status_code == 200
    files = stored_files(app)
    assert 'lama.pdf' not in files
    assert len(files) == 1 and files[0].startswith('baru-')
    (_, sql, _), = fake_db.executed("UPDATE lpj")
    assert 'bukti_dokumen = %s' in sql


def test_update_without_file_keeps_document(as_user, fake_db):
    fake_db.on("SELECT * FROM lpj WHERE id_lpj", [{'id_lpj': 4, 'bukti_dokumen': 'lama.pdf'}])

    response = as_user.put('/api/laporan/4', json={'nama_kegiatan': 'Gathering', 'total_pengeluaran': 100})

    assert response.status_code == 200
    (_, sql, params), = fake_db.executed("UPDATE lpj")
    assert 'bukti_dokumen' not in sql
    assert params[0] is None


def test_delete_removes_file(app, as_user, fake_db):
    os.makedirs(laporan_dir(app), exist_ok=True)
    with open(os.path.join(laporan_dir(app), 'bukti.pdf'), 'wb') as f:
        f.write(b'%PDF')
    fake_db.on("SELECT * FROM lpj WHERE id_lpj", [{'id_lpj': 4, 'bukti_dokumen': 'bukti.pdf'}])

    response = as_user.delete('/api/laporan/4')

    assert response.status_code == 200
    assert stored_files(app) == []


def test_list_filters_by_date_range(as_user, fake_db):
    response = as_user.get('/api/laporan?start_date=2024-01-01&end_date=2024-01-31')

    assert response.status_code == 200
    (_, sql, params), = fake_db.calls
    assert 'l.tanggal_lpj >= %s' in sql and 'l.tanggal_lpj <= %s' in sql
    assert params == (date(2024, 1, 1), date(2024, 1, 31))


def test_list_rejects_bad_date(as_user, fake_db):
    response = as_user.get('/api/laporan?start_date=01-2024')

    assert response.status_code == 400
    assert fake_db.calls == []


def test_cetak_returns_pdf(as_user, fake_db):
    fake_db.on("FROM lpj l", [
        {'id_lpj': 1, 'nama_kegiatan': 'Gathering', 'total_pengeluaran': Decimal('250000'),
         'tanggal_lpj': date(2024, 1, 5), 'rab_anggaran': Decimal('500000'),
         'persentase_terhadap_rab': Decimal('50.00')},
        {'id_lpj': 2, 'nama_kegiatan': 'Pameran', 'total_pengeluaran': Decimal('100000'),
         'tanggal_lpj': date(2024, 1, 9), 'rab_anggaran': None, 'persentase_terhadap_rab': None},
    ])

    response = as_user.get('/api/laporan/cetak?start_date=2024-01-01')

    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert response.data.startswith(b'%PDF')
    assert 'laporan_lpj.pdf' in response.headers['Content-Disposition']


def test_build_pdf_paginates_many_rows():
    rows = [{'nama_kegiatan': f'Kegiatan {i}', 'total_pengeluaran': Decimal('1000'),
             'tanggal_lpj': date(2024, 1, 1), 'rab_anggaran': None, 'persentase_terhadap_rab': None}
            for i in range(80)]

    buffer = build_lpj_pdf(rows)

    assert buffer.getvalue().startswith(b'%PDF')
