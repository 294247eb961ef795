from contextlib import contextmanager

import pytest

import db
from app import create_app

ADMIN = {'id_user': 1, 'nama': 'Administrator', 'email': 'admin@websiteemas.com',
         'role': 'admin', 'keterangan': 'Administrator sistem'}
USER = {'id_user': 2, 'nama': 'User Demo', 'email': 'user@websiteemas.com',
        'role': 'user', 'keterangan': 'User demo untuk testing'}


class FakeDB:
    """Pengganti helper query di db.py; hasil diatur per potongan SQL."""

    def __init__(self):
        self.calls = []
        self.responses = []
        self.lastrowid = 1
        self.rowcount = 1
        self.lock_available = True
        self.transactions = []

    def on(self, fragment, result):
        """result: list of dict (SELECT), (lastrowid, rowcount) (write), atau exception."""
        self.responses.append((fragment, result))
        return self

    def _lookup(self, sql, default):
        for fragment, result in self.responses:
            if fragment in sql:
                if isinstance(result, Exception):
                    raise result
                return result
        return default

    def query(self, sql, params=()):
        self.calls.append(('query', sql, tuple(params)))
        return [dict(row) for row in self._lookup(sql, [])]

    def query_one(self, sql, params=()):
        rows = self.query(sql, params)
        return rows[0] if rows else None

    def execute(self, sql, params=()):
        self.calls.append(('execute', sql, tuple(params)))
        return self._lookup(sql, (self.lastrowid, self.rowcount))

    @contextmanager
    def transaction(self):
        self.transactions.append('begin')
        try:
            yield self
        except Exception:
            self.transactions.append('rollback')
            raise
        self.transactions.append('commit')

    @contextmanager
    def named_lock(self, name, timeout=10):
        self.calls.append(('lock', name, (timeout,)))
        yield self.lock_available

    @property
    def writes(self):
        return [call for call in self.calls if call[0] == 'execute']

    def executed(self, fragment):
        return [call for call in self.writes if fragment in call[1]]


@pytest.fixture
def fake_db(monkeypatch):
    fake = FakeDB()
    for name in ('query', 'query_one', 'execute', 'transaction', 'named_lock'):
        monkeypatch.setattr(db, name, getattr(fake, name))
    return fake


@pytest.fixture
def app(fake_db, tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'BCRYPT_ROUNDS': 4,
        'UPLOAD_ROOT': str(tmp_path / 'uploads'),
        'ENABLE_GOLD_SCHEDULER': False,
        'METALS_API_KEY': 'test-key',
        'EXPOSE_ERRORS': False,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client):
    def _login(user):
        with client.session_transaction() as sess:
            sess['user'] = dict(user)
        return client
    return _login


@pytest.fixture
def as_admin(login):
    return login(ADMIN)


@pytest.fixture
def as_user(login):
    return login(USER)
