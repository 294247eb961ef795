import logging
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation

from flask import current_app, jsonify, request

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ValidationError(ValueError):
    """Input tidak valid, dikirim ke client sebagai 400"""


def ok(data=None, message=None, status=200, **extra):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return jsonify(body), status


def fail(message, status=400, error=None, **extra):
    body = {"success": False, "message": message}
    if error:
        body["error"] = error
    body.update(extra)
    return jsonify(body), status


def server_error(message, err):
    """Log exception lalu kirim envelope 500."""
    logger.exception("%s: %s", message, err)
    if current_app.config.get("EXPOSE_ERRORS"):
        return fail(message, 500, error=str(err))
    return fail(message, 500)


def get_payload():
    """Body JSON atau form (multipart) sebagai dict."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


def clean_str(value):
    if value is None:
        return ""
    return str(value).strip()


def parse_date(value, field):
    value = clean_str(value)
    if not value:
        return None
    try:
        return datetime.strptime(value[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Format {field} salah. Gunakan YYYY-MM-DD.")


def parse_time(value, field):
    value = clean_str(value)
    if not value:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Format {field} salah. Gunakan HH:MM.")


def parse_amount(value, field, default=None):
    """Angka rupiah >= 0 (Decimal)."""
    if value is None or clean_str(value) == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} harus diisi")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} harus berupa angka")
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field} harus berupa angka positif")
    return amount


def parse_int(value, field, minimum=0):
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{field} harus berupa angka")
    if number < minimum:
        raise ValidationError(f"{field} tidak boleh < {minimum}")
    return number
