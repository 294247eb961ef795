"""
Gold price scheduler: ambil harga emas dari api.metals.dev.

PERINGATAN: API metals.dev memiliki limit 100 request/bulan.
- Scheduler: 3x sehari (06:00, 14:00, 22:00) = ~90 request/bulan
- Manual refresh: maksimal 10x/bulan (dihitung dari baris source='manual')

Scheduler hanya jalan jika ENABLE_GOLD_SCHEDULER=true.
"""
import logging
import threading
from datetime import datetime, timedelta

import mysql.connector
import requests

import db

logger = logging.getLogger(__name__)

MANUAL_LOCK_NAME = "emas_manual_refresh"

ERROR_STATUS = {
    'MANUAL_LIMIT_EXCEEDED': 429,
    'API_LIMIT_EXCEEDED': 429,
    'RATE_LIMIT_EXCEEDED': 429,
    'MANUAL_REFRESH_BUSY': 409,
    'API_KEY_MISSING': 500,
    'CONNECTION_FAILED': 500,
    'FETCH_FAILED': 500,
}


class MetalsApiError(Exception):
    def __init__(self, code, message):
        super().__init__(message)
        self.code = code
        self.message = message


class MetalsClient:
    """Client kecil untuk endpoint spot dan usage metals.dev"""

    def __init__(self, api_key, base_url="https://api.metals.dev", timeout=10, session=None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _get(self, path, **params):
        if not self.api_key:
            raise MetalsApiError('API_KEY_MISSING', 'METALS_API_KEY belum diset')

        params['api_key'] = self.api_key
        try:
            response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as err:
            raise MetalsApiError('CONNECTION_FAILED', f'Gagal terhubung ke API harga emas: {err}')
        except requests.exceptions.RequestException as err:
            raise MetalsApiError('FETCH_FAILED', f'Request ke API harga emas gagal: {err}')

        if response.status_code == 429:
            raise MetalsApiError('RATE_LIMIT_EXCEEDED', 'API rate limit exceeded. Silakan coba lagi nanti.')

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise MetalsApiError('FETCH_FAILED', f'Respon API tidak valid (HTTP {response.status_code})')
        return data

    def spot(self, metal="gold", currency="IDR"):
        data = self._get("/v1/metal/spot", metal=metal, currency=currency)
        if data.get('status') != 'success':
            raise MetalsApiError('FETCH_FAILED', f"API returned status: {data.get('status')}")
        return data

    def usage(self):
        return self._get("/usage")


def parse_timestamp(value):
    """ISO 8601 dari API -> datetime lokal tanpa tzinfo (kolom DATETIME)."""
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed.replace(microsecond=0)


def parse_spot(data, source):
    rate = data['rate']
    return {
        'timestamp': parse_timestamp(data['timestamp']),
        'currency': data.get('currency') or 'IDR',
        'metal': data.get('metal') or 'gold',
        'unit': data.get('unit') or 'toz',
        'price': float(rate['price']),
        'ask': rate.get('ask'),
        'bid': rate.get('bid'),
        'high': rate.get('high'),
        'low': rate.get('low'),
        'change_value': rate.get('change'),
        'change_percent': rate.get('change_percent'),
        'source': source,
    }


def failure(code, message, **extra):
    result = {'success': False, 'error': code, 'message': message}
    result.update(extra)
    return result


class GoldPriceService:

    def __init__(self, client, manual_limit=10, api_limit=100, clock=datetime.now, lock_timeout=10):
        self.client = client
        self.manual_limit = manual_limit
        self.api_limit = api_limit
        self.clock = clock
        self.lock_timeout = lock_timeout

    def check_api_usage(self):
        try:
            data = self.client.usage()
        except MetalsApiError as err:
            # fail open: usage gagal dicek, fetch tetap dicoba
            logger.warning("Gagal cek API usage: %s", err.message)
            return {'has_limit': False}

        if data.get('status') != 'success':
            return {'has_limit': False}

        try:
            used = int(data.get('used') or 0)
            total = int(data.get('total') or self.api_limit)
        except (TypeError, ValueError):
            logger.warning("Format API usage tidak dikenal: %s", data)
            return {'has_limit': False}
        remaining = total - used
        logger.info("API usage: %s/%s | remaining: %s", used, total, remaining)
        return {'used': used, 'total': total, 'remaining': remaining,
                'plan': data.get('plan'), 'has_limit': remaining <= 0}

    def manual_refresh_status(self):
        first_day = self.clock().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        row = db.query_one(
            "SELECT COUNT(*) AS count FROM emas WHERE source = 'manual' AND timestamp >= %s",
            (first_day,)
        )
        count = int(row['count']) if row else 0
        return {
            'count': count,
            'limit': self.manual_limit,
            'remaining': max(self.manual_limit - count, 0),
            'exceeded': count >= self.manual_limit,
        }

    def fetch_gold_price(self, source='scheduler'):
        if source != 'manual':
            return self._fetch_and_store(source)

        # cek limit dan insert di bawah satu lock agar request paralel tidak lolos bersamaan
        with db.named_lock(MANUAL_LOCK_NAME, self.lock_timeout) as acquired:
            if not acquired:
                return failure('MANUAL_REFRESH_BUSY',
                               'Manual refresh lain sedang berjalan. Silakan coba lagi.')

            status = self.manual_refresh_status()
            if status['exceeded']:
                logger.warning("Manual refresh limit tercapai (%s/%s)", status['count'], self.manual_limit)
                return failure(
                    'MANUAL_LIMIT_EXCEEDED',
                    f"Batas manual refresh bulan ini sudah tercapai ({self.manual_limit}x). "
                    "Silakan coba lagi bulan depan.",
                    manualLimit=status,
                )
            return self._fetch_and_store(source)

    def _fetch_and_store(self, source):
        usage = self.check_api_usage()
        if usage['has_limit']:
            logger.warning("API limit tercapai, fetch dilewati")
            message = ('API quota bulanan sudah habis. Silakan coba lagi bulan depan.'
                       if source == 'manual' else 'API limit reached')
            return failure('API_LIMIT_EXCEEDED', message)

        logger.info("Fetching gold price from API (%s)...", source)
        try:
            sample = parse_spot(self.client.spot(), source)
        except MetalsApiError as err:
            logger.error("Gagal mengambil harga emas: %s", err.message)
            return failure(err.code, err.message)
        except (KeyError, TypeError, ValueError) as err:
            logger.error("Format respon API tidak dikenal: %s", err)
            return failure('FETCH_FAILED', 'Format respon API harga emas tidak dikenal')

        if db.query_one("SELECT id_emas FROM emas WHERE timestamp = %s", (sample['timestamp'],)):
            logger.info("Harga emas untuk timestamp %s sudah ada, skip", sample['timestamp'])
            return {'success': True, 'message': 'Data already exists', 'inserted': False,
                    'data': db.serialize_row(sample)}

        try:
            id_emas, _ = db.execute(
                "INSERT INTO emas (timestamp, currency, metal, unit, price, ask, bid, high, low, "
                "change_value, change_percent, source) "
                "VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)",
                (sample['timestamp'], sample['currency'], sample['metal'], sample['unit'],
                 sample['price'], sample['ask'], sample['bid'], sample['high'], sample['low'],
                 sample['change_value'], sample['change_percent'], sample['source'])
            )
        except mysql.connector.IntegrityError:
            # UNIQUE(timestamp): baris yang sama disimpan oleh proses lain
            return {'success': True, 'message': 'Data already exists', 'inserted': False,
                    'data': db.serialize_row(sample)}

        logger.info("Gold price saved: Rp %s/%s (%s) [%s]", f"{sample['price']:,.0f}".replace(",", "."),
                    sample['unit'], sample['timestamp'], source)
        data = db.serialize_row(sample)
        data['id_emas'] = id_emas
        return {'success': True, 'message': 'Harga emas berhasil diperbarui', 'inserted': True,
                'data': data}


def next_run_after(now, hours):
    """Jadwal berikutnya setelah `now` dari daftar jam harian."""
    hours = sorted(hours)
    for hour in hours:
        if now.hour < hour:
            return now.replace(hour=hour, minute=0, second=0, microsecond=0)
    tomorrow = now + timedelta(days=1)
    return tomorrow.replace(hour=hours[0], minute=0, second=0, microsecond=0)


class GoldScheduler:
    """Task berulang di thread daemon; jam dan clock bisa diganti untuk test."""

    def __init__(self, app, service, hours=(6, 14, 22), enabled=False, clock=datetime.now,
                 run_on_start=True, api_limit=100):
        self.app = app
        self.service = service
        self.hours = tuple(sorted(hours))
        self.enabled = enabled
        self.clock = clock
        self.run_on_start = run_on_start
        self.api_limit = api_limit
        self.next_run = None
        self._stop = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    @property
    def schedule_label(self):
        return f"{len(self.hours)}x daily at " + ", ".join(f"{hour:02d}:00" for hour in self.hours)

    def start(self):
        if not self.enabled:
            logger.info("Gold price scheduler is DISABLED. Set ENABLE_GOLD_SCHEDULER=true untuk mengaktifkan.")
            return False
        if self.running:
            logger.info("Gold price scheduler is already running")
            return False

        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="gold-scheduler", daemon=True)
        self._thread.start()
        logger.info("Gold price scheduler started: %s (est. %s request/bulan, limit %s)",
                    self.schedule_label, len(self.hours) * 30, self.api_limit)
        return True

    def stop(self, timeout=5):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
        self._thread = None
        self.next_run = None
        logger.info("Gold price scheduler stopped")

    def _loop(self):
        if self.run_on_start:
            self.run_once()

        target = self.clock()
        while not self._stop.is_set():
            # dihitung dari target sebelumnya agar bangun lebih cepat tidak memicu jadwal yang sama
            target = next_run_after(max(self.clock(), target), self.hours)
            self.next_run = target
            delay = max((target - self.clock()).total_seconds(), 0)
            logger.info("Next fetch scheduled at: %s (in %d minutes)", target, round(delay / 60))
            if self._stop.wait(delay):
                break
            self.run_once()

    def run_once(self):
        with self.app.app_context():
            try:
                result = self.service.fetch_gold_price('scheduler')
            except Exception:
                logger.exception("Scheduled gold price fetch gagal")
                return None
        if not result['success']:
            logger.warning("Scheduled fetch tidak berhasil: %s", result.get('error'))
        return result

    def status(self):
        minutes = 0
        if self.running and self.next_run is not None:
            minutes = max(round((self.next_run - self.clock()).total_seconds() / 60), 0)
        return {
            'enabled': self.enabled,
            'running': self.running,
            'schedule': self.schedule_label,
            'nextRun': self.next_run.strftime("%Y-%m-%d %H:%M:%S") if self.running and self.next_run else None,
            'nextRunInMinutes': minutes,
            'estimatedMonthlyRequests': len(self.hours) * 30,
            'manualRefreshLimit': self.service.manual_limit,
            'apiLimit': f"{self.api_limit} requests/month",
        }


def init_app(app):
    cfg = app.config
    client = MetalsClient(cfg['METALS_API_KEY'], cfg['METALS_API_BASE'], cfg['METALS_API_TIMEOUT'])
    service = GoldPriceService(client, manual_limit=cfg['MANUAL_REFRESH_LIMIT'],
                               api_limit=cfg['API_MONTHLY_LIMIT'])
    scheduler = GoldScheduler(app, service, hours=cfg['SCHEDULE_HOURS'],
                              enabled=cfg['ENABLE_GOLD_SCHEDULER'], api_limit=cfg['API_MONTHLY_LIMIT'])
    app.extensions['gold_service'] = service
    app.extensions['gold_scheduler'] = scheduler
    return scheduler
