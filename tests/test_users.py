import bcrypt
import mysql.connector

from conftest import ADMIN


def test_user_role_cannot_delete_users(as_user, fake_db):
    response = as_user.delete('/api/users/5')

    assert response.status_code == 403
    assert response.get_json()['isAuthenticated'] is True
    assert fake_db.calls == []


def test_user_role_cannot_create_users(as_user, fake_db):
    response = as_user.post('/api/users', json={
        'nama': 'Budi', 'email': 'budi@example.com', 'password': 'rahasia1'})

    assert response.status_code == 403
    assert fake_db.calls == []


def test_guest_gets_401(client, fake_db):
    assert client.get('/api/users').status_code == 401
    assert fake_db.calls == []


def test_list_users(as_admin, fake_db):
    fake_db.on("FROM users ORDER BY id_user DESC", [
        {'id_user': 2, 'nama': 'User Demo', 'email': 'user@websiteemas.com', 'role': 'user',
         'created_at': None, 'updated_at': None, 'keterangan': None},
        dict(ADMIN, created_at=None, updated_at=None),
    ])

    response = as_admin.get('/api/users')

    assert response.status_code == 200
    data = response.get_json()['data']
    assert [user['id_user'] for user in data] == [2, 1]
    assert all('password' not in user for user in data)


def test_get_user_not_found(as_admin):
    response = as_admin.get('/api/users/99')

    assert response.status_code == 404


def test_create_user(as_admin, fake_db):
    fake_db.lastrowid = 8

    response = as_admin.post('/api/users', json={
        'nama': 'Siti', 'email': 'siti@example.com', 'password': 'rahasia1', 'role': 'admin'})

    assert response.status_code == 201
    assert response.get_json()['data'] == {'id_user': 8, 'nama': 'Siti', 'email': 'siti@example.com',
                                           'role': 'admin', 'keterangan': ''}
    (_, _, params), = fake_db.executed("INSERT INTO users")
    assert bcrypt.checkpw(b'rahasia1', params[2].encode())


def test_create_user_duplicate_from_unique_index(as_admin, fake_db):
    fake_db.on("INSERT INTO users", mysql.connector.IntegrityError(msg="Duplicate entry"))

    response = as_admin.post('/api/users', json={
        'nama': 'Siti', 'email': 'siti@example.com', 'password': 'rahasia1'})

    assert response.status_code == 400
    assert response.get_json()['message'] == 'Email sudah terdaftar'


def test_update_user_without_password_keeps_hash(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 2, 'role': 'user'}])

    response = as_admin.put('/api/users/2', json={
        'nama': 'User Baru', 'email': 'user@websiteemas.com', 'role': 'user', 'password': ''})

    assert response.status_code == 200
    (_, sql, params), = fake_db.writes
    assert 'password' not in sql
    assert params == ('User Baru', 'user@websiteemas.com', 'user', '', 2)


def test_update_user_email_taken_by_other_user(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 2, 'role': 'user'}])
    fake_db.on("WHERE email = %s AND id_user != %s", [{'id_user': 3}])

    response = as_admin.put('/api/users/2', json={
        'nama': 'User', 'email': 'lain@example.com', 'role': 'user'})

    assert response.status_code == 400
    assert fake_db.writes == []


def test_update_user_password_is_hashed_as_given(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 2, 'role': 'user'}])

    response = as_admin.put('/api/users/2', json={
        'nama': 'User', 'email': 'user@websiteemas.com', 'role': 'user', 'password': 'rahasia1 '})

    assert response.status_code == 200
    (_, sql, params), = fake_db.writes
    assert 'password = %s' in sql
    assert bcrypt.checkpw(b'rahasia1 ', params[4].encode())
    assert not bcrypt.checkpw(b'rahasia1', params[4].encode())


def test_update_user_blank_password_keeps_hash(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 2, 'role': 'user'}])

    response = as_admin.put('/api/users/2', json={
        'nama': 'User', 'email': 'user@websiteemas.com', 'role': 'user', 'password': '   '})

    assert response.status_code == 200
    (_, sql, _), = fake_db.writes
    assert 'password' not in sql


def test_update_user_without_role_keeps_existing_role(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 3, 'role': 'admin'}])

    response = as_admin.put('/api/users/3', json={'nama': 'Admin Dua', 'email': 'admin2@example.com'})

    assert response.status_code == 200
    (_, _, params), = fake_db.writes
    assert params[2] == 'admin'


def test_update_user_rejects_unknown_role(as_admin, fake_db):
    fake_db.on("SELECT id_user, role FROM users WHERE id_user", [{'id_user': 2, 'role': 'user'}])

    response = as_admin.put('/api/users/2', json={
        'nama': 'User', 'email': 'user@websiteemas.com', 'role': 'owner'})

    assert response.status_code == 400
    assert fake_db.writes == []


def test_admin_cannot_delete_self(as_admin, fake_db):
    fake_db.on("SELECT id_user, email FROM users", [{'id_user': 1, 'email': ADMIN['email']}])

    response = as_admin.delete('/api/users/1')

    assert response.status_code == 400
    assert fake_db.writes == []


def test_delete_user(as_admin, fake_db):
    fake_db.on("SELECT id_user, email FROM users", [{'id_user': 2, 'email': 'user@websiteemas.com'}])

    response = as_admin.delete('/api/users/2')

    assert response.status_code == 200
    assert fake_db.executed("DELETE FROM users")


def test_database_error_is_hidden_in_production_mode(as_admin, fake_db):
    fake_db.on("FROM users ORDER BY", mysql.connector.Error(msg="Access denied for user 'root'"))

    response = as_admin.get('/api/users')

    assert response.status_code == 500
    assert 'error' not in response.get_json()
