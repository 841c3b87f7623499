import os
import json
import logging
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP

from .errors import NotFound, InvalidTransition, StorageError, ValidationError
from .models import Job, JobStatus, ApplicationStatus, ARCHIVABLE_JOB_STATUSES
from .store import JOBS, APPLICATIONS
from .utils import utcnow, to_iso, parse_timestamp, timestamp_slug

STATISTIC_STATUSES = (JobStatus.ACTIVE, JobStatus.COMPLETED, JobStatus.EXPIRED, JobStatus.CANCELLED)


class JobLifecycleManager:
    """
    Moves jobs through their status lifecycle and archives old ones.

    active -> completed | expired once the reporting time has passed,
    active -> cancelled on request. The three terminal states are final;
    archival removes completed and expired jobs from the active store.
    """

    def __init__(self, store):
        self.store = store
        self.archive_dir = os.path.join(store.data_dir, 'archives')

    def update_job_statuses(self, now=None):
        """
        Closes every active job whose reporting time has passed.

        A job with at least one accepted application becomes completed,
        any other becomes expired.

        Args:
            now (datetime): Reference time. Defaults to now.

        Returns:
            int: Number of jobs whose status changed.
        """
        now = now or utcnow()
        stamp = to_iso(now)
        changes_count = 0

        with self.store.lock:
            jobs = self.store.read(JOBS)
            applications = self.store.read(APPLICATIONS)
            staffed_job_ids = {
                a.get('jobId') for a in applications
                if a.get('status') == ApplicationStatus.ACCEPTED
            }

            for job in jobs:
                if job.get('status') != JobStatus.ACTIVE:
                    continue
                reporting_time = parse_timestamp(job.get('reportingTime'))
                if reporting_time is None or reporting_time > now:
                    continue

                if job.get('id') in staffed_job_ids:
                    job['status'] = JobStatus.COMPLETED.value
                    job['completedAt'] = stamp
                else:
                    job['status'] = JobStatus.EXPIRED.value
                    job['expiredAt'] = stamp
                changes_count += 1

            if changes_count:
                self.store.write(JOBS, jobs)

        if changes_count:
            logging.info(f"Updated {changes_count} job statuses")
        return changes_count

    def cancel_job(self, job_id, reason, now=None):
        if not reason or not str(reason).strip():
            raise ValidationError('A cancellation reason is required')

        with self.store.lock:
            jobs = self.store.read(JOBS)
            index = next((i for i, j in enumerate(jobs) if j.get('id') == job_id), None)
            if index is None:
                raise NotFound('Job not found')

            job = Job.from_dict(jobs[index])
            if job.status != JobStatus.ACTIVE:
                raise InvalidTransition(f"Only active jobs can be cancelled (job is {job.status})")

            job.status = JobStatus.CANCELLED.value
            job.cancelled_at = to_iso(now or utcnow())
            job.cancellation_reason = str(reason).strip()
            jobs[index] = job.to_dict()
            self.store.write(JOBS, jobs)

        logging.info(f"Job {job_id} cancelled: {job.cancellation_reason}")
        return job

    def get_job_statistics(self):
        jobs = self.store.read(JOBS)
        applications = self.store.read(APPLICATIONS)

        stats = {'total': len(jobs)}
        for status in STATISTIC_STATUSES:
            stats[status.value] = 0
        stats['totalApplications'] = len(applications)
        stats['averageApplicationsPerJob'] = 0

        for job in jobs:
            status = job.get('status')
            if status:
                stats[status] = stats.get(status, 0) + 1

        if jobs:
            stats['averageApplicationsPerJob'] = float(
                (Decimal(len(applications)) / Decimal(len(jobs))).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))
        return stats

    def archive_old_jobs(self, days_old=90, now=None):
        """
        Moves completed and expired jobs older than ``days_old`` days, with
        their applications, into a single archive document.

        The archive file is written before the active store is touched, so a
        failed archive write leaves the active data as it was.

        Args:
            days_old (int): Age threshold in days, measured from the job's
                terminal timestamp (or its creation time when that is missing).
            now (datetime): Reference time. Defaults to now.

        Returns:
            int: Number of jobs archived.

        Raises:
            StorageError: If the archive or the active collections cannot be written.
        """
        now = now or utcnow()
        cutoff = now - timedelta(days=days_old)

        with self.store.lock:
            jobs = self.store.read(JOBS)
            applications = self.store.read(APPLICATIONS)

            jobs_to_archive = []
            for job in jobs:
                if job.get('status') not in ARCHIVABLE_JOB_STATUSES:
                    continue
                job_date = parse_timestamp(Job.from_dict(job).terminal_timestamp)
                if job_date is not None and job_date < cutoff:
                    jobs_to_archive.append(job)

            if not jobs_to_archive:
                logging.info('No jobs to archive')
                return 0

            archived_job_ids = {j.get('id') for j in jobs_to_archive}
            archived_applications = [a for a in applications if a.get('jobId') in archived_job_ids]

            archive_file = self._write_archive({
                'archivedAt': to_iso(now),
                'jobs': jobs_to_archive,
                'applications': archived_applications,
            }, now)

            self.store.write(JOBS, [j for j in jobs if j.get('id') not in archived_job_ids])
            self.store.write(APPLICATIONS, [a for a in applications if a.get('jobId') not in archived_job_ids])

        logging.info(f"Archived {len(jobs_to_archive)} old jobs to {archive_file}")
        return len(jobs_to_archive)

    def list_archives(self):
        if not os.path.isdir(self.archive_dir):
            return []
        return sorted(name for name in os.listdir(self.archive_dir) if name.endswith('.json'))

    def _write_archive(self, archive_data, now):
        archive_file = os.path.join(self.archive_dir, f'archived-jobs-{timestamp_slug(now)}.json')
        try:
            os.makedirs(self.archive_dir, exist_ok=True)
            with open(archive_file, 'x', encoding='utf-8') as f:
                json.dump(archive_data, f, indent=2)
        except OSError as e:
            logging.error(f"Archive write failed: {e}")
            raise StorageError(f"Archive write failed: {e}") from e
        return archive_file
