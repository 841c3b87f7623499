import os
import shutil
import logging
from datetime import timedelta

from .errors import StorageError
from .models import Role, JobStatus
from .store import USERS, JOBS, APPLICATIONS, COLLECTIONS
from .utils import utcnow, parse_timestamp, timestamp_slug

USER_REQUIRED_FIELDS = ('id', 'firstName', 'lastName', 'role')
JOB_REQUIRED_FIELDS = ('id', 'title', 'departmentId', 'reportingTime')
APPLICATION_REQUIRED_FIELDS = ('id', 'jobId', 'volunteerId')


def _missing(record, required):
    return [name for name in required if not record.get(name)]


class DataManager:
    """
    Integrity checks, orphan cleanup and backups over a RecordStore.

    Backups live in ``<data_dir>/backups``, one folder per snapshot holding a
    copy of each collection document.
    """

    def __init__(self, store):
        self.store = store
        self.backup_dir = os.path.join(store.data_dir, 'backups')
        os.makedirs(self.backup_dir, exist_ok=True)

    def validate_data(self, now=None):
        """
        Checks required fields, user invariants and references between collections.

        Args:
            now (datetime): Reference time for the past-reporting-time check.

        Returns:
            list: Human-readable findings. Empty when the data is consistent.
        """
        now = now or utcnow()
        errors = []

        with self.store.lock:
            users = self.store.read(USERS)
            jobs = self.store.read(JOBS)
            applications = self.store.read(APPLICATIONS)

        user_ids = {u.get('id') for u in users if u.get('id')}
        job_ids = {j.get('id') for j in jobs if j.get('id')}

        seen_user_ids = set()
        for user in users:
            user_id = user.get('id')
            missing = _missing(user, USER_REQUIRED_FIELDS)
            if missing:
                errors.append(f"Invalid user record {user_id}: missing {', '.join(missing)}")
            if user_id:
                if user_id in seen_user_ids:
                    errors.append(f"Duplicate user id: {user_id}")
                seen_user_ids.add(user_id)

            role = user.get('role')
            if role == Role.DEPARTMENT:
                if not user.get('password'):
                    errors.append(f"Department user {user_id} has no password")
            elif role == Role.VOLUNTEER:
                if not user.get('email') and not user.get('phone'):
                    errors.append(f"Volunteer user {user_id} has neither email nor phone")
            elif role:
                errors.append(f"User {user_id} has unknown role: {role}")

        for job in jobs:
            job_id = job.get('id')
            missing = _missing(job, JOB_REQUIRED_FIELDS)
            if missing:
                errors.append(f"Invalid job record {job_id}: missing {', '.join(missing)}")

            department_id = job.get('departmentId')
            if department_id and department_id not in user_ids:
                errors.append(f"Job {job_id} references non-existent department: {department_id}")

            raw_reporting_time = job.get('reportingTime')
            reporting_time = parse_timestamp(raw_reporting_time)
            if raw_reporting_time and reporting_time is None:
                errors.append(f"Job {job_id} has unparseable reporting time: {raw_reporting_time}")
            elif job.get('status') == JobStatus.ACTIVE and reporting_time is not None and reporting_time < now:
                errors.append(f"Active job {job_id} has past reporting time: {job.get('reportingTime')}")

        for app in applications:
            app_id = app.get('id')
            missing = _missing(app, APPLICATION_REQUIRED_FIELDS)
            if missing:
                errors.append(f"Invalid application record {app_id}: missing {', '.join(missing)}")

            job_id = app.get('jobId')
            if job_id and job_id not in job_ids:
                errors.append(f"Application {app_id} references non-existent job: {job_id}")

            volunteer_id = app.get('volunteerId')
            if volunteer_id and volunteer_id not in user_ids:
                errors.append(f"Application {app_id} references non-existent volunteer: {volunteer_id}")

        return errors

    def cleanup_orphaned_records(self):
        """
        Removes jobs whose department is gone, then applications whose job or
        volunteer is gone. Only the collections that changed are written.

        Returns:
            int: Number of records removed, 0 if the cleanup failed.
        """
        try:
            with self.store.lock:
                users = self.store.read(USERS)
                jobs = self.store.read(JOBS)
                applications = self.store.read(APPLICATIONS)

                user_ids = {u.get('id') for u in users if u.get('id')}

                valid_jobs = [j for j in jobs if j.get('departmentId') in user_ids]
                job_ids = {j.get('id') for j in valid_jobs}
                valid_applications = [
                    a for a in applications
                    if a.get('jobId') in job_ids and a.get('volunteerId') in user_ids
                ]

                removed_jobs = len(jobs) - len(valid_jobs)
                removed_applications = len(applications) - len(valid_applications)

                if removed_jobs:
                    self.store.write(JOBS, valid_jobs)
                if removed_applications:
                    self.store.write(APPLICATIONS, valid_applications)
        except Exception as e:
            logging.error(f"Orphaned record cleanup failed: {e}")
            return 0

        cleanup_count = removed_jobs + removed_applications
        if cleanup_count:
            logging.info(f"Cleaned up {cleanup_count} orphaned records "
                         f"({removed_jobs} jobs, {removed_applications} applications)")
        return cleanup_count

    def create_backup(self, now=None):
        """
        Copies every collection document into a new timestamped backup folder.

        Args:
            now (datetime): Time used to name the folder. Defaults to now.

        Returns:
            str: The backup folder name.

        Raises:
            StorageError: If the folder exists already or a copy fails.
        """
        name = f'backup-{timestamp_slug(now)}'
        folder = os.path.join(self.backup_dir, name)
        try:
            with self.store.lock:
                os.makedirs(folder)
                for collection in COLLECTIONS:
                    source = self.store.path_for(collection)
                    if os.path.exists(source):
                        shutil.copy2(source, os.path.join(folder, os.path.basename(source)))
        except OSError as e:
            logging.error(f"Backup failed: {e}")
            raise StorageError(f"Backup failed: {e}") from e

        logging.info(f"Backup created: {folder}")
        return name

    def list_backups(self):
        if not os.path.isdir(self.backup_dir):
            return []
        return sorted(
            entry for entry in os.listdir(self.backup_dir)
            if os.path.isdir(os.path.join(self.backup_dir, entry))
        )

    def clean_old_backups(self, days_to_keep=30):
        """
        Deletes backup folders last modified before the retention window.

        Failures are logged and never raised.

        Args:
            days_to_keep (int): Retention window in days.

        Returns:
            int: Number of backup folders deleted.
        """
        cutoff = (utcnow() - timedelta(days=days_to_keep)).timestamp()
        deleted_count = 0
        try:
            for entry in os.listdir(self.backup_dir):
                path = os.path.join(self.backup_dir, entry)
                if os.path.isdir(path) and os.path.getmtime(path) < cutoff:
                    shutil.rmtree(path)
                    deleted_count += 1
        except OSError as e:
            logging.error(f"Backup cleanup failed: {e}")

        logging.info(f"Cleaned {deleted_count} old backups")
        return deleted_count
