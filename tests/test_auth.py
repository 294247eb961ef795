import bcrypt

from auth import check_password, hash_password, validate_user_fields
from conftest import ADMIN, USER


def make_hash(password):
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=4)).decode()


def stored_user(password='password123'):
    row = dict(ADMIN)
    row['password'] = make_hash(password)
    return row


def test_hash_password_is_bcrypt(app):
    with app.app_context():
        hashed = hash_password('password123')

    assert hashed != 'password123'
    assert hashed.startswith('$2')
    assert bcrypt.checkpw(b'password123', hashed.encode())
    assert not bcrypt.checkpw(b'password124', hashed.encode())


def test_check_password_rejects_non_bcrypt_hash():
    assert check_password('password123', make_hash('password123'))
    assert not check_password('password123', 'password123')
    assert not check_password('', make_hash('x'))
    assert not check_password('x', None)


def test_validate_user_fields():
    assert validate_user_fields('Budi', 'budi@example.com', 'rahasia', 'user') is None
    assert validate_user_fields('', 'budi@example.com', 'rahasia', 'user') == \
        'Nama, email, dan password harus diisi'
    assert validate_user_fields('Budi', 'budi.example.com', 'rahasia', 'user') == 'Format email tidak valid'
    assert validate_user_fields('Budi', 'budi@example.com', '123', 'user') == 'Password minimal 6 karakter'
    assert validate_user_fields('Budi', 'budi@example.com', 'rahasia', 'owner') == 'Role harus admin atau user'
    assert validate_user_fields('Budi', 'budi@example.com', '', 'user', password_required=False) is None


def test_login_success_sets_session(client, fake_db):
    fake_db.on("FROM users WHERE email", [stored_user()])

    response = client.post('/api/auth/login', json={'email': ADMIN['email'], 'password': 'password123'})

    assert response.status_code == 200
    body = response.get_json()
    assert body['success'] is True
    assert body['redirect'] == '/dashboard'
    assert body['data']['role'] == 'admin'
    assert 'password' not in body['data']
    with client.session_transaction() as sess:
        assert sess['user']['id_user'] == ADMIN['id_user']


def test_login_same_message_for_unknown_email_and_wrong_password(client, fake_db):
    unknown = client.post('/api/auth/login', json={'email': 'nobody@example.com', 'password': 'password123'})

    fake_db.on("FROM users WHERE email", [stored_user()])
    wrong = client.post('/api/auth/login', json={'email': ADMIN['email'], 'password': 'salah123'})

    assert unknown.status_code == wrong.status_code == 401
    assert unknown.get_json()['message'] == wrong.get_json()['message'] == 'Email atau password salah'


def test_login_requires_email_and_password(client, fake_db):
    response = client.post('/api/auth/login', json={'email': ADMIN['email']})

    assert response.status_code == 400
    assert fake_db.calls == []


def test_login_accepts_form_body(client, fake_db):
    fake_db.on("FROM users WHERE email", [stored_user()])

    response = client.post('/api/auth/login', data={'email': ADMIN['email'], 'password': 'password123'})

    assert response.status_code == 200


def test_register_stores_hashed_password(client, fake_db):
    fake_db.lastrowid = 12

    response = client.post('/api/auth/register', json={
        'nama': 'Budi', 'email': 'budi@example.com', 'password': 'rahasia1'})

    assert response.status_code == 201
    assert response.get_json()['data']['id_user'] == 12
    assert response.get_json()['data']['role'] == 'user'
    (_, _, params), = fake_db.executed("INSERT INTO users")
    stored = params[2]
    assert stored != 'rahasia1'
    assert bcrypt.checkpw(b'rahasia1', stored.encode())


def test_register_duplicate_email(client, fake_db):
    fake_db.on("SELECT id_user FROM users WHERE email", [{'id_user': 3}])

    response = client.post('/api/auth/register', json={
        'nama': 'Budi', 'email': 'budi@example.com', 'password': 'rahasia1'})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Email sudah terdaftar'
    assert fake_db.writes == []


def test_register_validation(client, fake_db):
    response = client.post('/api/auth/register', json={
        'nama': 'Budi', 'email': 'budi@example', 'password': 'rahasia1'})

    assert response.status_code == 400
    assert fake_db.calls == []


def test_me_requires_login(client):
    response = client.get('/api/auth/me')

    assert response.status_code == 401
    assert response.get_json() == {'success': False, 'message': 'Anda harus login terlebih dahulu',
                                   'isAuthenticated': False}


def test_me_returns_session_user(as_user):
    response = as_user.get('/api/auth/me')

    assert response.status_code == 200
    assert response.get_json()['data']['email'] == USER['email']


def test_logout_clears_session(as_user):
    response = as_user.post('/api/auth/logout')

    assert response.status_code == 200
    assert as_user.get('/api/auth/me').status_code == 401


def test_change_password_wrong_old_password(as_user, fake_db):
    fake_db.on("SELECT password FROM users", [{'password': make_hash('password123')}])

    response = as_user.post('/api/auth/change-password', json={
        'old_password': 'salah123', 'new_password': 'baru1234'})

    assert response.status_code == 401
    assert fake_db.writes == []


def test_change_password_updates_hash(as_user, fake_db):
    fake_db.on("SELECT password FROM users", [{'password': make_hash('password123')}])

    response = as_user.post('/api/auth/change-password', json={
        'old_password': 'password123', 'new_password': 'baru1234'})

    assert response.status_code == 200
    (_, _, params), = fake_db.executed("UPDATE users SET password")
    assert bcrypt.checkpw(b'baru1234', params[0].encode())
    assert params[1] == USER['id_user']


def test_change_password_too_short(as_user, fake_db):
    response = as_user.post('/api/auth/change-password', json={
        'old_password': 'password123', 'new_password': '123'})

    assert response.status_code == 400
    assert fake_db.calls == []
