import logging
import os
import random
import time

from flask import current_app, request
from werkzeug.utils import secure_filename

from helpers import ValidationError

logger = logging.getLogger(__name__)

# kind -> (folder, ekstensi, mimetype, batas ukuran (config key), pesan)
UPLOAD_KINDS = {
    'flyers': (
        'flyers',
        {'jpg', 'jpeg', 'png', 'gif'},
        {'image/jpeg', 'image/jpg', 'image/png', 'image/gif'},
        'FLYER_MAX_SIZE',
        'Hanya file gambar (JPEG, PNG, GIF) yang diperbolehkan!',
    ),
    'laporan': (
        'laporan',
        {'pdf'},
        {'application/pdf'},
        'LPJ_MAX_SIZE',
        'Hanya file PDF yang diperbolehkan',
    ),
}


def upload_folder(kind):
    folder = os.path.join(current_app.config['UPLOAD_ROOT'], UPLOAD_KINDS[kind][0])
    os.makedirs(folder, exist_ok=True)
    return folder


def allowed_file(filename, extensions):
    return '.' in filename and \
           filename.rsplit('.', 1)[1].lower() in extensions


def _file_size(file):
    stream = file.stream
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(0)
    return size


def unique_filename(filename):
    """nama-<epoch ms>-<acak><ext>"""
    safe = secure_filename(filename) or 'file'
    base, ext = os.path.splitext(safe)
    suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    return f"{base}-{suffix}{ext.lower()}"


def save_upload(file, kind):
    """Validasi lalu simpan file upload. Return nama file tersimpan."""
    _, extensions, mimetypes, size_key, type_message = UPLOAD_KINDS[kind]

    if not allowed_file(file.filename, extensions) or file.mimetype not in mimetypes:
        raise ValidationError(type_message)

    limit = current_app.config[size_key]
    if _file_size(file) > limit:
        raise ValidationError(f"Ukuran file maksimal {limit // (1024 * 1024)}MB")

    filename = unique_filename(file.filename)
    file.save(os.path.join(upload_folder(kind), filename))
    logger.info("File %s disimpan ke %s", filename, kind)
    return filename


def remove_upload(filename, kind):
    """Hapus file lama; gagal hapus hanya dicatat."""
    if not filename:
        return
    path = os.path.join(current_app.config['UPLOAD_ROOT'], UPLOAD_KINDS[kind][0],
                        os.path.basename(filename))
    if os.path.exists(path):
        try:
            os.remove(path)
        except OSError as err:
            logger.warning("Tidak bisa menghapus file %s: %s", path, err)


def get_upload(field):
    file = request.files.get(field)
    if file is None or file.filename == '':
        return None
    return file
