import os
import logging

from flask import Flask
from flask_session import Session
from .config import Config
from .data_manager import DataManager
from .lifecycle import JobLifecycleManager
from .notifications import Notifier
from .scheduler import MaintenanceScheduler
from .services import JobBoard
from .store import RecordStore

sess = Session()


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if isinstance(config, dict):
        app.config.update(config)
    elif config is not None:
        app.config.from_object(config)

    logging.basicConfig(level=app.config['LOG_LEVEL'])

    os.makedirs(app.config['SESSION_FILE_DIR'], exist_ok=True)
    sess.init_app(app)

    store = RecordStore(app.config['DATA_DIR'])
    store.initialize()
    notifier = Notifier()
    data_manager = DataManager(store)
    lifecycle = JobLifecycleManager(store)
    board = JobBoard(store, lifecycle, app.config['APPLICATION_MODEL'], notifier)
    scheduler = MaintenanceScheduler(lifecycle, data_manager, app.config, notifier)

    app.extensions['volunteer_hub'] = {
        'store': store,
        'notifier': notifier,
        'data_manager': data_manager,
        'lifecycle': lifecycle,
        'board': board,
        'scheduler': scheduler,
    }

    with app.app_context():
        from .auth import auth_bp
        from .routes import main as main_blueprint
        app.register_blueprint(auth_bp)
        app.register_blueprint(main_blueprint)

    if app.config['MAINTENANCE_ENABLED']:
        scheduler.start()

    return app
