import logging
import threading
import time
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal

import mysql.connector
from mysql.connector import errors, pooling
from flask import current_app, g

logger = logging.getLogger(__name__)

_pool_lock = threading.Lock()


def _get_pool():
    """Pool dibuat sekali per app, saat koneksi pertama diminta."""
    pool = current_app.extensions.get("emas_db_pool")
    if pool is not None:
        return pool

    with _pool_lock:
        pool = current_app.extensions.get("emas_db_pool")
        if pool is None:
            cfg = current_app.config
            pool = pooling.MySQLConnectionPool(
                pool_name="emas",
                pool_size=cfg["DB_POOL_SIZE"],
                host=cfg["DB_HOST"],
                port=cfg["DB_PORT"],
                user=cfg["DB_USER"],
                password=cfg["DB_PASSWORD"],
                database=cfg["DB_NAME"],
                autocommit=True,
            )
            current_app.extensions["emas_db_pool"] = pool
            logger.info("Database pool dibuat: %s@%s:%s/%s",
                        cfg["DB_USER"], cfg["DB_HOST"], cfg["DB_PORT"], cfg["DB_NAME"])
    return pool


def acquire_connection(pool, timeout, interval=0.05):
    """Tunggu koneksi bebas sampai timeout; pool mysql.connector langsung error saat habis."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            return pool.get_connection()
        except errors.PoolError:
            if time.monotonic() >= deadline:
                logger.error("Pool koneksi database habis setelah menunggu %ss", timeout)
                raise
            time.sleep(interval)


def get_db():
    """Ambil koneksi dari pool, disimpan di flask.g selama app context"""
    if 'db' not in g:
        g.db = acquire_connection(_get_pool(), current_app.config["DB_POOL_TIMEOUT"])
    return g.db


def close_db(e=None):
    db = g.pop('db', None)
    if db is not None:
        try:
            db.close()  # kembali ke pool
        except mysql.connector.Error as err:
            logger.warning("Gagal mengembalikan koneksi ke pool: %s", err)


def query(sql, params=()):
    """SELECT -> list of dict"""
    cursor = get_db().cursor(dictionary=True)
    try:
        cursor.execute(sql, params)
        return cursor.fetchall()
    finally:
        cursor.close()


def query_one(sql, params=()):
    rows = query(sql, params)
    return rows[0] if rows else None


def execute(sql, params=()):
    """INSERT/UPDATE/DELETE -> (lastrowid, rowcount)"""
    cursor = get_db().cursor()
    try:
        cursor.execute(sql, params)
        return cursor.lastrowid, cursor.rowcount
    finally:
        cursor.close()


class Transaction:
    def __init__(self, conn):
        self.conn = conn

    def query(self, sql, params=()):
        cursor = self.conn.cursor(dictionary=True)
        try:
            cursor.execute(sql, params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def execute(self, sql, params=()):
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql, params)
            return cursor.lastrowid, cursor.rowcount
        finally:
            cursor.close()


@contextmanager
def transaction():
    conn = get_db()
    conn.start_transaction()
    try:
        yield Transaction(conn)
        conn.commit()
    except Exception:
        conn.rollback()
        raise


@contextmanager
def named_lock(name, timeout=10):
    """MySQL GET_LOCK; yield True jika lock didapat."""
    row = query_one("SELECT GET_LOCK(%s, %s) AS got", (name, timeout))
    acquired = bool(row and row["got"] == 1)
    try:
        yield acquired
    finally:
        if acquired:
            query("SELECT RELEASE_LOCK(%s) AS released", (name,))


def serialize(value):
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, timedelta):
        # kolom TIME dikembalikan sebagai timedelta
        total = int(value.total_seconds())
        return "%02d:%02d:%02d" % (total // 3600, (total % 3600) // 60, total % 60)
    if isinstance(value, Decimal):
        return float(value)
    return value


def serialize_row(row):
    if row is None:
        return None
    return {key: serialize(value) for key, value in row.items()}


def serialize_rows(rows):
    return [serialize_row(row) for row in rows]
