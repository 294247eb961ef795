import logging

import mysql.connector
from flask import Blueprint, g

import db
from auth import admin_required, hash_password, validate_user_fields
from helpers import clean_str, fail, get_payload, ok, server_error

logger = logging.getLogger(__name__)

users_bp = Blueprint('users', __name__, url_prefix='/api/users')

USER_COLUMNS = "id_user, nama, email, role, created_at, updated_at, keterangan"


@users_bp.route('', methods=['GET'])
@admin_required
def list_users():
    try:
        users = db.query(f"SELECT {USER_COLUMNS} FROM users ORDER BY id_user DESC")
    except mysql.connector.Error as err:
        return server_error('Gagal mengambil data users', err)
    return ok(db.serialize_rows(users))


@users_bp.route('/<int:id>', methods=['GET'])
@admin_required
def get_user(id):
    try:
        user = db.query_one(f"SELECT {USER_COLUMNS} FROM users WHERE id_user = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal mengambil data user', err)
    if user is None:
        return fail('User tidak ditemukan', 404)
    return ok(db.serialize_row(user))


@users_bp.route('', methods=['POST'])
@admin_required
def create_user():
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
        return server_error('Gagal menambahkan user', err)

    logger.info("User %s dibuat oleh %s", email, g.user.get('email'))
    return ok({'id_user': user_id, 'nama': nama, 'email': email, 'role': role,
               'keterangan': keterangan}, 'User berhasil ditambahkan', 201)


@users_bp.route('/<int:id>', methods=['PUT'])
@admin_required
def update_user(id):
    if id <= 0:
        return fail('ID user tidak valid')

    data = get_payload()
    nama = clean_str(data.get('nama'))
    email = clean_str(data.get('email'))
    password = data.get('password') or ''
    if not password.strip():
        # password hanya diganti jika diisi
        password = ''
    role = clean_str(data.get('role'))
    keterangan = clean_str(data.get('keterangan'))

    try:
        existing = db.query_one("SELECT id_user, role FROM users WHERE id_user = %s", (id,))
        if existing is None:
            return fail('User tidak ditemukan', 404)

        # role tidak dikirim: pertahankan role lama
        role = role or existing['role']
        error = validate_user_fields(nama, email, password, role, password_required=False)
        if error:
            return fail(error)

        if db.query_one("SELECT id_user FROM users WHERE email = %s AND id_user != %s", (email, id)):
            return fail('Email sudah digunakan oleh user lain')

        sql = "UPDATE users SET nama = %s, email = %s, role = %s, keterangan = %s, updated_at = NOW()"
        params = [nama, email, role, keterangan]
        if password:
            sql += ", password = %s"
            params.append(hash_password(password))
        sql += " WHERE id_user = %s"
        params.append(id)

        db.execute(sql, params)
    except mysql.connector.Error as err:
        return server_error('Gagal mengupdate user', err)

    return ok(message='User berhasil diupdate')


@users_bp.route('/<int:id>', methods=['DELETE'])
@admin_required
def delete_user(id):
    try:
        user = db.query_one("SELECT id_user, email FROM users WHERE id_user = %s", (id,))
        if user is None:
            return fail('User tidak ditemukan', 404)

        if g.user.get('id_user') == id:
            return fail('Anda tidak dapat menghapus akun Anda sendiri')

        db.execute("DELETE FROM users WHERE id_user = %s", (id,))
    except mysql.connector.Error as err:
        return server_error('Gagal menghapus user', err)

    logger.info("User %s dihapus oleh %s", user['email'], g.user.get('email'))
    return ok(message='User berhasil dihapus')
