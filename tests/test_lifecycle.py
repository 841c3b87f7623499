import json
import os
import threading

import pytest

from volunteer_hub.errors import InvalidTransition, NotFound, ValidationError
from volunteer_hub.store import JOBS, APPLICATIONS
from volunteer_hub.utils import to_iso

from conftest import NOW, iso, make_application, make_department, make_job, make_volunteer


def _jobs_by_id(store):
    return {j['id']: j for j in store.read(JOBS)}


def test_update_statuses_completes_staffed_and_expires_unstaffed(seed, store, lifecycle):
    seed(users=[make_department(), make_volunteer()],
         jobs=[make_job('staffed', reportingTime=iso(hours=-1)),
               make_job('unstaffed', reportingTime=iso(hours=-1)),
               make_job('pending-only', reportingTime=iso(hours=-1)),
               make_job('future', reportingTime=iso(hours=1))],
         applications=[make_application('a1', job_id='staffed', status='accepted'),
                       make_application('a2', job_id='pending-only', status='pending')])

    assert lifecycle.update_job_statuses(now=NOW) == 3

    jobs = _jobs_by_id(store)
    assert jobs['staffed']['status'] == 'completed'
    assert jobs['staffed']['completedAt'] == to_iso(NOW)
    assert jobs['unstaffed']['status'] == 'expired'
    assert jobs['unstaffed']['expiredAt'] == to_iso(NOW)
    assert jobs['pending-only']['status'] == 'expired'
    assert jobs['future']['status'] == 'active'
    assert 'expiredAt' not in jobs['future']


def test_update_statuses_is_idempotent(seed, store, lifecycle):
    seed(users=[make_department()], jobs=[make_job(reportingTime=iso(days=-1))])

    assert lifecycle.update_job_statuses(now=NOW) == 1
    snapshot = store.read(JOBS)

    assert lifecycle.update_job_statuses(now=NOW) == 0
    assert store.read(JOBS) == snapshot


def test_update_statuses_leaves_terminal_jobs_alone(seed, store, lifecycle):
    cancelled = make_job(status='cancelled', reportingTime=iso(days=-1), cancelledAt=iso(days=-2))
    seed(users=[make_department()], jobs=[cancelled])

    assert lifecycle.update_job_statuses(now=NOW) == 0
    assert store.read(JOBS) == [cancelled]


def test_cancel_active_job(seed, store, lifecycle):
    seed(users=[make_department()], jobs=[make_job()], applications=[make_application()])

    job = lifecycle.cancel_job('job-1', 'Venue unavailable', now=NOW)

    assert job.status == 'cancelled'
    stored = store.read(JOBS)[0]
    assert stored['status'] == 'cancelled'
    assert stored['cancelledAt'] == to_iso(NOW)
    assert stored['cancellationReason'] == 'Venue unavailable'
    assert len(store.read(APPLICATIONS)) == 1


def test_cancel_unknown_job(seed, lifecycle):
    seed(users=[make_department()], jobs=[make_job()])

    with pytest.raises(NotFound):
        lifecycle.cancel_job('job-404', 'Duplicate posting')


@pytest.mark.parametrize('status', ['completed', 'expired', 'cancelled'])
def test_cancel_terminal_job_is_rejected_and_untouched(seed, store, lifecycle, status):
    seed(users=[make_department()], jobs=[make_job(status=status)])
    before = store.read(JOBS)

    with pytest.raises(InvalidTransition):
        lifecycle.cancel_job('job-1', 'Too late')
    assert store.read(JOBS) == before


def test_cancel_requires_reason(seed, lifecycle):
    seed(users=[make_department()], jobs=[make_job()])

    with pytest.raises(ValidationError):
        lifecycle.cancel_job('job-1', '   ')


def test_statistics(seed, lifecycle):
    jobs = [make_job('j1'), make_job('j2'),
            make_job('j3', status='completed'), make_job('j4', status='expired')]
    applications = [make_application(f'a{i}', job_id=f'j{i % 4 + 1}') for i in range(10)]
    seed(users=[make_department(), make_volunteer()], jobs=jobs, applications=applications)

    assert lifecycle.get_job_statistics() == {
        'total': 4,
        'active': 2,
        'completed': 1,
        'expired': 1,
        'cancelled': 0,
        'totalApplications': 10,
        'averageApplicationsPerJob': 2.5,
    }


def test_statistics_without_jobs(lifecycle):
    stats = lifecycle.get_job_statistics()

    assert stats['total'] == 0
    assert stats['averageApplicationsPerJob'] == 0


def test_statistics_rounds_average(seed, lifecycle):
    seed(jobs=[make_job('j1'), make_job('j2'), make_job('j3')],
         applications=[make_application('a1', job_id='j1')])

    assert lifecycle.get_job_statistics()['averageApplicationsPerJob'] == 0.33


def test_statistics_rounds_half_up(seed, lifecycle):
    seed(jobs=[make_job(f'j{n}') for n in range(8)],
         applications=[make_application('a1', job_id='j0')])

    assert lifecycle.get_job_statistics()['averageApplicationsPerJob'] == 0.13


def test_archive_moves_old_terminal_jobs_with_their_applications(seed, store, lifecycle):
    seed(users=[make_department(), make_volunteer()],
         jobs=[make_job('old-done', status='completed', completedAt=iso(days=-120)),
               make_job('old-expired', status='expired', expiredAt=iso(days=-91)),
               make_job('recent-done', status='completed', completedAt=iso(days=-10)),
               make_job('old-cancelled', status='cancelled', cancelledAt=iso(days=-200)),
               make_job('old-active', createdAt=iso(days=-300))],
         applications=[make_application('a1', job_id='old-done', status='accepted'),
                       make_application('a2', job_id='old-expired'),
                       make_application('a3', job_id='recent-done'),
                       make_application('a4', job_id='old-active')])

    assert lifecycle.archive_old_jobs(90, now=NOW) == 2

    assert sorted(_jobs_by_id(store)) == ['old-active', 'old-cancelled', 'recent-done']
    assert sorted(a['id'] for a in store.read(APPLICATIONS)) == ['a3', 'a4']

    [archive_name] = lifecycle.list_archives()
    with open(os.path.join(lifecycle.archive_dir, archive_name)) as f:
        archive = json.load(f)
    assert archive['archivedAt'] == to_iso(NOW)
    assert sorted(j['id'] for j in archive['jobs']) == ['old-done', 'old-expired']
    assert sorted(a['id'] for a in archive['applications']) == ['a1', 'a2']

    assert lifecycle.archive_old_jobs(90, now=NOW) == 0
    assert len(lifecycle.list_archives()) == 1


def test_archive_falls_back_to_created_at(seed, store, lifecycle):
    seed(users=[make_department()],
         jobs=[make_job(status='expired', createdAt=iso(days=-100))])

    assert lifecycle.archive_old_jobs(90, now=NOW) == 1
    assert store.read(JOBS) == []


def test_archive_with_nothing_to_do_writes_nothing(seed, lifecycle):
    seed(users=[make_department()], jobs=[make_job()])

    assert lifecycle.archive_old_jobs(90, now=NOW) == 0
    assert lifecycle.list_archives() == []


def test_concurrent_update_and_archive_keep_both_changes(seed, store, lifecycle, monkeypatch):
    seed(users=[make_department()],
         jobs=[make_job('due', reportingTime=iso(hours=-1)),
               make_job('old-done', status='completed', completedAt=iso(days=-120))])
    entered, release = threading.Event(), threading.Event()
    original_write = store.write

    def held_write(collection, records):
        if not entered.is_set():
            entered.set()
            release.wait(5)
        original_write(collection, records)

    monkeypatch.setattr(store, 'write', held_write)
    updater = threading.Thread(target=lifecycle.update_job_statuses, kwargs={'now': NOW})
    archiver = threading.Thread(target=lifecycle.archive_old_jobs, args=(90,), kwargs={'now': NOW})

    updater.start()
    assert entered.wait(5)
    archiver.start()
    archiver.join(0.2)
    assert archiver.is_alive()

    release.set()
    updater.join(5)
    archiver.join(5)

    jobs = _jobs_by_id(store)
    assert sorted(jobs) == ['due']
    assert jobs['due']['status'] == 'expired'
    assert len(lifecycle.list_archives()) == 1
