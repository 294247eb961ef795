from flask import Blueprint, g, redirect, render_template

from auth import admin_required, guest_only, login_required
from inventaris import KONDISI
from rab import STATUS_RAB

# Halaman HTML; data diambil oleh resource-table.js dari /api/*
pages_bp = Blueprint('pages', __name__)


def col(field, label, type='text', required=False, options=None, table=True, form=True, **extra):
    """extra: source/optionValue/optionLabel (select-remote), badge, maxField."""
    column = {'field': field, 'label': label, 'type': type, 'required': required,
              'options': list(options or []), 'table': table, 'form': form}
    column.update(extra)
    return column


RESOURCE_PAGES = {
    'users': {
        'title': 'Management Users',
        'endpoint': '/api/users',
        'idField': 'id_user',
        'columns': [
            col('nama', 'Nama', required=True),
            col('email', 'Email', type='email', required=True),
            col('password', 'Password', type='password', table=False),
            col('role', 'Role', type='select', required=True, options=('admin', 'user')),
            col('keterangan', 'Keterangan'),
            col('created_at', 'Dibuat', form=False),
        ],
    },
    'leads': {
        'title': 'Lead Management',
        'endpoint': '/api/leads',
        'idField': 'id_leads',
        'columns': [
            col('nama_nasabah', 'Nama Nasabah', required=True),
            col('no_hp', 'No. HP'),
            col('email', 'Email', type='email'),
            col('produk', 'Produk'),
            col('status_leads', 'Status', type='select',
                options=('Baru', 'Follow Up', 'Proses', 'Deal', 'Batal'), badge='status_kategori'),
            col('tanggal_input', 'Tanggal Input', type='date'),
            col('keterangan', 'Keterangan'),
        ],
    },
    'event': {
        'title': 'Calendar Event',
        'endpoint': '/api/event',
        'idField': 'id_event',
        'calendar': {'titleField': 'nama_event', 'dateField': 'tanggal_event', 'timeField': 'waktu_event'},
        'columns': [
            col('nama_event', 'Nama Event', required=True),
            col('lokasi', 'Lokasi', required=True),
            col('tanggal_event', 'Tanggal', type='date', required=True),
            col('waktu_event', 'Waktu', type='time', required=True),
            col('penanggung_jawab', 'Penanggung Jawab', required=True),
            col('keterangan', 'Keterangan'),
        ],
    },
    'inventaris': {
        'title': 'Stock Inventaris',
        'endpoint': '/api/inventaris',
        'idField': 'id_inventaris',
        'columns': [
            col('nama_barang', 'Nama Barang', required=True),
            col('jumlah', 'Jumlah', type='number', required=True),
            col('kondisi', 'Kondisi', type='select', required=True, options=KONDISI),
            col('tanggal_update', 'Tanggal Update', type='date'),
            col('keterangan', 'Keterangan'),
        ],
    },
    'rab': {
        'title': 'Rencana Anggaran Biaya (RAB)',
        'endpoint': '/api/rab',
        'idField': 'id_rab',
        'columns': [
            col('nama_kegiatan', 'Nama Kegiatan', required=True),
            col('anggaran', 'Anggaran', type='currency', required=True),
            col('realisasi', 'Realisasi', type='currency', maxField='anggaran'),
            col('sisa_anggaran', 'Sisa', type='currency', form=False),
            col('persentase_realisasi', '% Realisasi', type='percent', form=False),
            col('tanggal_pengajuan', 'Tanggal Pengajuan', type='date'),
            col('status', 'Status', type='select', options=STATUS_RAB),
            col('keterangan', 'Keterangan'),
        ],
    },
    'laporan': {
        'title': 'Laporan Pertanggungjawaban (LPJ)',
        'endpoint': '/api/laporan',
        'idField': 'id_lpj',
        'multipart': True,
        'printUrl': '/api/laporan/cetak',
        'columns': [
            col('nama_kegiatan', 'Nama Kegiatan', required=True),
            col('id_rab', 'RAB', type='select-remote', table=False, source='/api/rab',
                optionValue='id_rab', optionLabel='nama_kegiatan', placeholder='Pilih RAB (Opsional)'),
            col('rab_nama_kegiatan', 'RAB', form=False),
            col('total_pengeluaran', 'Total Pengeluaran', type='currency', required=True),
            col('persentase_terhadap_rab', '% RAB', type='percent', form=False),
            col('tanggal_lpj', 'Tanggal LPJ', type='date'),
            col('bukti_dokumen', 'Bukti (PDF)', type='file'),
            col('keterangan', 'Keterangan'),
        ],
        'fileBase': '/public/uploads/laporan/',
    },
    'flyer': {
        'title': 'Flyer',
        'endpoint': '/api/flyers',
        'idField': 'id_flyer',
        'multipart': True,
        'columns': [
            col('gambar', 'Gambar', type='image'),
            col('nama', 'Nama', required=True),
            col('keterangan', 'Keterangan'),
            col('created_at', 'Dibuat', form=False),
        ],
        'fileBase': '/public/uploads/flyers/',
    },
}


def can_create_records(user, page):
    """Tombol tambah: admin hanya boleh menambah user, role lain semua halaman."""
    if user is None:
        return False
    if user.get('role') == 'admin':
        return page == 'users'
    return True


def render_resource(page):
    config = dict(RESOURCE_PAGES[page])
    config['canCreate'] = can_create_records(g.user, page)
    return render_template('pages/resource.html', page=page, page_config=config)


@pages_bp.route('/')
def index():
    return redirect('/dashboard')


@pages_bp.route('/login')
@guest_only
def login():
    return render_template('pages/login.html')


@pages_bp.route('/register')
@guest_only
def register():
    return render_template('pages/register.html')


@pages_bp.route('/dashboard')
@login_required
def dashboard():
    return render_template('pages/dashboard.html')


@pages_bp.route('/emas')
@login_required
def emas():
    return render_template('pages/emas.html')


@pages_bp.route('/users')
@admin_required
def users():
    return render_resource('users')


@pages_bp.route('/leads')
@login_required
def leads():
    return render_resource('leads')


@pages_bp.route('/event')
@login_required
def event():
    return render_resource('event')


@pages_bp.route('/inventaris')
@login_required
def inventaris():
    return render_resource('inventaris')


@pages_bp.route('/rab')
@login_required
def rab():
    return render_resource('rab')


@pages_bp.route('/laporan')
@login_required
def laporan():
    return render_resource('laporan')


@pages_bp.route('/flyer')
@login_required
def flyer():
    return render_resource('flyer')
