import logging
from datetime import datetime

from flask import Flask, render_template, request

import commands
import db
import gold_scheduler
from auth import auth_bp, load_logged_in_user
from config import Config
from emas import emas_bp
from event import event_bp
from flyer import flyer_bp
from helpers import fail
from inventaris import inventaris_bp
from laporan import laporan_bp
from leads import leads_bp
from pages import pages_bp
from rab import rab_bp
from users import users_bp

logger = logging.getLogger(__name__)


def create_app(test_config=None):
    app = Flask(__name__, static_folder='public', static_url_path='/public')
    app.config.from_object(Config)
    if test_config is not None:
        app.config.from_mapping(test_config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app.before_request(load_logged_in_user)
    app.teardown_appcontext(db.close_db)

    # Daftarkan Blueprint
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(leads_bp)
    app.register_blueprint(event_bp)
    app.register_blueprint(inventaris_bp)
    app.register_blueprint(rab_bp)
    app.register_blueprint(laporan_bp)
    app.register_blueprint(flyer_bp, url_prefix='/api/flyers')
    # alamat lama, resource yang sama
    app.register_blueprint(flyer_bp, url_prefix='/api/flyer', name='flyer_legacy')
    app.register_blueprint(emas_bp)
    app.register_blueprint(pages_bp)

    register_error_handlers(app)
    commands.init_app(app)

    # scheduler dijalankan dari entry point server, bukan dari perintah CLI
    gold_scheduler.init_app(app)

    @app.context_processor
    def inject_globals():
        return {
            'current_year': datetime.now().year
        }

    return app


def register_error_handlers(app):

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith('/api/'):
            return fail('Endpoint tidak ditemukan', 404)
        return render_template('404.html'), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        if request.path.startswith('/api/'):
            return fail('Method tidak diizinkan', 405)
        return e

    @app.errorhandler(413)
    def too_large(e):
        limit = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return fail(f'Ukuran file terlalu besar (maksimal {limit}MB)', 413)

    @app.errorhandler(500)
    def internal_error(e):
        logger.error("Unhandled error pada %s: %s", request.path,
                     getattr(e, "original_exception", None) or e)
        if request.path.startswith('/api/'):
            return fail('Terjadi kesalahan pada server', 500)
        return 'Terjadi kesalahan pada server', 500


if __name__ == '__main__':
    app = create_app()
    app.extensions['gold_scheduler'].start()
    logger.info("Server berjalan di http://localhost:%s (%s)", app.config['PORT'], app.config['APP_ENV'])
    app.run(host='0.0.0.0', port=app.config['PORT'], debug=app.config['APP_ENV'] != 'production',
            use_reloader=False, threaded=True)
