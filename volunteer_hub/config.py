import os
from dotenv import load_dotenv # type: ignore

load_dotenv()


def _flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


def _list(name):
    return [item.strip() for item in os.environ.get(name, '').split(',') if item.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'volunteer_hub_change_me'
    DATA_DIR = os.environ.get('DATA_DIR') or 'data'
    SESSION_TYPE = 'filesystem'
    SESSION_FILE_DIR = os.environ.get('SESSION_FILE_DIR') or os.path.join('data', 'sessions')
    SESSION_PERMANENT = False
    APPLICATION_MODEL = os.environ.get('APPLICATION_MODEL', 'reviewed')
    BACKUP_RETENTION_DAYS = int(os.environ.get('BACKUP_RETENTION_DAYS', 30))
    ARCHIVE_AFTER_DAYS = int(os.environ.get('ARCHIVE_AFTER_DAYS', 90))
    BACKUP_TIME = os.environ.get('BACKUP_TIME', '02:00')
    ARCHIVE_TIME = os.environ.get('ARCHIVE_TIME', '03:00')
    MAINTENANCE_ENABLED = _flag('MAINTENANCE_ENABLED')
    MAINTENANCE_POLL_SECONDS = int(os.environ.get('MAINTENANCE_POLL_SECONDS', 30))
    MAINTENANCE_TIMEZONE = os.environ.get('MAINTENANCE_TIMEZONE', 'UTC')
    MAINTENANCE_ADMIN_IDS = _list('MAINTENANCE_ADMIN_IDS')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
