import os

import click
import mysql.connector
from flask import current_app
from flask.cli import with_appcontext

import db
from auth import hash_password


SCHEMA_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'schema.sql')

DEFAULT_USERS = (
    ('Administrator', 'admin@websiteemas.com', 'admin', 'Administrator sistem'),
    ('User Demo', 'user@websiteemas.com', 'user', 'User demo untuk testing'),
)
DEFAULT_PASSWORD = 'password123'


def split_statements(script):
    """Pisahkan isi schema.sql per statement (tanpa komentar)."""
    lines = [line for line in script.splitlines() if not line.strip().startswith('--')]
    return [stmt.strip() for stmt in "\n".join(lines).split(';') if stmt.strip()]


def init_db():
    cfg = current_app.config
    # database dibuat dulu, pool baru bisa dipakai setelah database ada
    conn = mysql.connector.connect(host=cfg['DB_HOST'], port=cfg['DB_PORT'],
                                   user=cfg['DB_USER'], password=cfg['DB_PASSWORD'])
    try:
        cursor = conn.cursor()
        cursor.execute(f"CREATE DATABASE IF NOT EXISTS `{cfg['DB_NAME']}`")
        cursor.execute(f"USE `{cfg['DB_NAME']}`")
        with open(SCHEMA_FILE, encoding='utf-8') as f:
            for statement in split_statements(f.read()):
                cursor.execute(statement)
        conn.commit()
        cursor.close()
    finally:
        conn.close()


def create_default_users():
    """Buat admin dan user demo jika belum ada. Return list email yang dibuat."""
    created = []
    for nama, email, role, keterangan in DEFAULT_USERS:
        if db.query_one("SELECT id_user FROM users WHERE email = %s", (email,)):
            continue
        db.execute(
            "INSERT INTO users (nama, email, password, role, keterangan) VALUES (%s, %s, %s, %s, %s)",
            (nama, email, hash_password(DEFAULT_PASSWORD), role, keterangan)
        )
        created.append(email)
    return created


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Buat database dan tabel dari schema.sql."""
    try:
        init_db()
    except mysql.connector.Error as err:
        raise click.ClickException(f"Gagal inisialisasi database: {err}")
    click.echo('Database berhasil diinisialisasi.')


@click.command('create-users')
@with_appcontext
def create_users_command():
    """Buat user default (admin dan user demo)."""
    try:
        created = create_default_users()
    except mysql.connector.Error as err:
        raise click.ClickException(f"Gagal membuat user: {err}")

    for _, email, role, _ in DEFAULT_USERS:
        if email in created:
            click.echo(f"User {email} ({role}) berhasil ditambahkan.")
        else:
            click.echo(f"User {email} sudah ada di database.")
    click.echo(f"Password default: {DEFAULT_PASSWORD}")


def init_app(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_users_command)
