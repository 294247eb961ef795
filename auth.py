import logging
from functools import wraps

import bcrypt
import mysql.connector
from flask import Blueprint, current_app, g, redirect, request, session

import db
from helpers import EMAIL_RE, clean_str, fail, get_payload, ok, server_error

logger = logging.getLogger(__name__)

# Blueprint untuk otentikasi
auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')

ROLES = ('admin', 'user')
SESSION_FIELDS = ('id_user', 'nama', 'email', 'role', 'keterangan')


def hash_password(password):
    rounds = current_app.config.get("BCRYPT_ROUNDS", 10)
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


def check_password(password, hashed):
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # hash di database bukan format bcrypt
        return False


def validate_user_fields(nama, email, password, role, password_required=True):
    """Return pesan error atau None"""
    if not nama or not email or (password_required and not password):
        if password_required:
            return 'Nama, email, dan password harus diisi'
        return 'Nama dan email harus diisi'
    if not EMAIL_RE.match(email):
        return 'Format email tidak valid'
    if password and len(password) < 6:
        return 'Password minimal 6 karakter'
    if role not in ROLES:
        return 'Role harus admin atau user'
    return None


def _wants_json():
    return request.path.startswith('/api/')


def load_logged_in_user():
    """Set user login di g.user sebelum setiap request"""
    g.user = session.get('user')


def login_required(view):
    """Dekorator: hanya boleh diakses setelah login"""
    @wraps(view)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            if _wants_json():
                return fail('Anda harus login terlebih dahulu', 401, isAuthenticated=False)
            return redirect('/login')
        return view(*args, **kwargs)
    return decorated_function


def admin_required(view):
    """Dekorator: hanya bisa diakses oleh admin"""
    @wraps(view)
    def decorated_function(*args, **kwargs):
        user = g.get('user')
        if user is None:
            if _wants_json():
                return fail('Anda harus login terlebih dahulu', 401, isAuthenticated=False)
            return redirect('/login')
        if user.get('role') != 'admin':
            logger.warning("Akses admin ditolak untuk %s ke %s", user.get('email'), request.path)
            if _wants_json():
                return fail('Anda tidak memiliki akses ke resource ini', 403, isAuthenticated=True)
            return redirect('/dashboard?error=forbidden')
        return view(*args, **kwargs)
    return decorated_function


def guest_only(view):
    """Dekorator: halaman login/register hanya untuk yang belum login"""
    @wraps(view)
    def decorated_function(*args, **kwargs):
        if g.get('user') is not None:
            return redirect('/dashboard')
        return view(*args, **kwargs)
    return decorated_function


@auth_bp.route('/login', methods=['POST'])
def login():
    data = get_payload()
    email = clean_str(data.get('email'))
    password = data.get('password') or ''

    if not email or not password:
        return fail('Email dan password harus diisi')

    try:
        user = db.query_one(
            "SELECT id_user, nama, email, password, role, keterangan FROM users WHERE email = %s",
            (email,)
        )
    except mysql.connector.Error as err:
        return server_error('Terjadi kesalahan saat login', err)

    # Pesan sama untuk email tidak terdaftar dan password salah
    if user is None or not check_password(password, user['password']):
        logger.info("Login gagal untuk %s", email)
        return fail('Email atau password salah', 401)

    session.clear()
    session.permanent = True
    session['user'] = {key: user[key] for key in SESSION_FIELDS}
    logger.info("Login berhasil: %s (%s)", user['email'], user['role'])
    return ok(session['user'], 'Login berhasil', redirect='/dashboard')


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return ok(message='Logout berhasil', redirect='/login')


@auth_bp.route('/me', methods=['GET'])
@login_required
def me():
    return ok(g.user, isAuthenticated=True)


@auth_bp.route('/register', methods=['POST'])
def register():
    data = get_payload()
    nama = clean_str(data.get('nama'))
    email = clean_str(data.get('email'))
    password = data.get('password') or ''
    role = clean_str(data.get('role')) or 'user'
    keterangan = clean_str(data.get('keterangan'))

    error = validate_user_fields(nama, email, password, role)
    if error:
        return fail(error)

    try:
        if db.query_one("SELECT id_user FROM users WHERE email = %s", (email,)):
            return fail('Email sudah terdaftar')

        user_id, _ = db.execute(
            "INSERT INTO users (nama, email, password, role, keterangan, created_at) "
            "VALUES (%s, %s, %s, %s, %s, NOW())",
            (nama, email, hash_password(password), role, keterangan)
        )
    except mysql.connector.IntegrityError:
        return fail('Email sudah terdaftar')
    except mysql.connector.Error as err:
        return server_error('Terjadi kesalahan saat registrasi', err)

    return ok({'id_user': user_id, 'nama': nama, 'email': email, 'role': role,
               'keterangan': keterangan}, 'Registrasi berhasil', 201)


@auth_bp.route('/change-password', methods=['POST'])
@login_required
def change_password():
    data = get_payload()
    old_password = data.get('old_password') or ''
    new_password = data.get('new_password') or ''

    if not old_password or not new_password:
        return fail('Password lama dan password baru harus diisi')
    if len(new_password) < 6:
        return fail('Password baru minimal 6 karakter')

    try:
        user = db.query_one("SELECT password FROM users WHERE id_user = %s", (g.user['id_user'],))
        if user is None:
            return fail('User tidak ditemukan', 404)

        if not check_password(old_password, user['password']):
            return fail('Password lama salah', 401)

        db.execute(
            "UPDATE users SET password = %s, updated_at = NOW() WHERE id_user = %s",
            (hash_password(new_password), g.user['id_user'])
        )
    except mysql.connector.Error as err:
        return server_error('Terjadi kesalahan saat mengubah password', err)

    return ok(message='Password berhasil diubah')
