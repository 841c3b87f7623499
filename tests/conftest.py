"""Shared fixtures for the volunteer hub tests."""

from datetime import datetime, timedelta, timezone

import pytest

from volunteer_hub import create_app
from volunteer_hub.data_manager import DataManager
from volunteer_hub.lifecycle import JobLifecycleManager
from volunteer_hub.models import ApplicationModel
from volunteer_hub.notifications import Notifier
from volunteer_hub.services import JobBoard
from volunteer_hub.store import RecordStore, USERS, JOBS, APPLICATIONS
from volunteer_hub.utils import to_iso

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def iso(moment=None, **delta):
    return to_iso((moment or NOW) + timedelta(**delta))


def make_department(user_id='dept-1', **overrides):
    record = {
        'id': user_id,
        'firstName': 'Fire',
        'lastName': 'Station',
        'role': 'department',
        'email': f'{user_id}@example.org',
        'password': 'hashed',
    }
    record.update(overrides)
    return record


def make_volunteer(user_id='vol-1', **overrides):
    record = {
        'id': user_id,
        'firstName': 'Ada',
        'lastName': 'Lovelace',
        'role': 'volunteer',
        'phone': '555-0100',
    }
    record.update(overrides)
    return record


def make_job(job_id='job-1', department_id='dept-1', status='active', **overrides):
    record = {
        'id': job_id,
        'title': 'Food bank shift',
        'description': 'Sort donations',
        'ageGroup': '18+',
        'location': 'Main hall',
        'reportingTime': iso(days=3),
        'maxVolunteers': 2,
        'contactName': 'Sam',
        'contactPhone': '555-0199',
        'contactEmail': 'sam@example.org',
        'departmentId': department_id,
        'status': status,
        'createdAt': iso(days=-10),
    }
    record.update(overrides)
    return record


def make_application(app_id='app-1', job_id='job-1', volunteer_id='vol-1', status='pending', **overrides):
    record = {
        'id': app_id,
        'jobId': job_id,
        'volunteerId': volunteer_id,
        'status': status,
        'appliedAt': iso(days=-1),
    }
    record.update(overrides)
    return record


@pytest.fixture
def store(tmp_path):
    return RecordStore(str(tmp_path / 'data'))


@pytest.fixture
def seed(store):
    def _seed(users=(), jobs=(), applications=()):
        store.write(USERS, list(users))
        store.write(JOBS, list(jobs))
        store.write(APPLICATIONS, list(applications))
    return _seed


@pytest.fixture
def data_manager(store):
    return DataManager(store)


@pytest.fixture
def lifecycle(store):
    return JobLifecycleManager(store)


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def board(store, lifecycle, notifier):
    return JobBoard(store, lifecycle, ApplicationModel.REVIEWED, notifier)


@pytest.fixture
def auto_board(store, lifecycle, notifier):
    return JobBoard(store, lifecycle, ApplicationModel.AUTO_ACCEPT, notifier)


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'DATA_DIR': str(tmp_path / 'data'),
        'SESSION_FILE_DIR': str(tmp_path / 'sessions'),
        'MAINTENANCE_ENABLED': False,
        'MAINTENANCE_ADMIN_IDS': [],
    })
    yield app
    app.extensions['volunteer_hub']['scheduler'].stop()


@pytest.fixture
def client(app):
    return app.test_client()
