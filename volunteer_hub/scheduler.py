import logging
import threading
from datetime import datetime

import pytz

from .notifications import JOB_STATUSES_UPDATED
from .utils import parse_clock


class MaintenanceScheduler:
    """
    Runs periodic maintenance from a background thread.

    The thread wakes every ``poll_seconds`` and compares the wall clock with
    the targets: job statuses are updated at the top of every hour, the
    backup/prune/orphan cleanup runs daily at ``backup_time`` and archival
    daily at ``archive_time``. Each task fires at most once per matching
    minute, so a process that is down for the target minute skips that run.
    """

    def __init__(self, lifecycle, data_manager, config, notifier=None):
        self.lifecycle = lifecycle
        self.data_manager = data_manager
        self.notifier = notifier
        self.backup_time = parse_clock(config.get('BACKUP_TIME', '02:00'))
        self.archive_time = parse_clock(config.get('ARCHIVE_TIME', '03:00'))
        self.retention_days = int(config.get('BACKUP_RETENTION_DAYS', 30))
        self.archive_after_days = int(config.get('ARCHIVE_AFTER_DAYS', 90))
        self.poll_seconds = float(config.get('MAINTENANCE_POLL_SECONDS', 30))
        self.timezone = pytz.timezone(config.get('MAINTENANCE_TIMEZONE', 'UTC'))

        self._last_run = {}
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='maintenance-scheduler', daemon=True)
        self._thread.start()
        logging.info(f"Maintenance scheduler started (backup at {self.backup_time[0]:02d}:{self.backup_time[1]:02d}, "
                     f"archive at {self.archive_time[0]:02d}:{self.archive_time[1]:02d})")

    def stop(self, timeout=5):
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logging.info('Maintenance scheduler stopped')

    def _loop(self):
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(self.poll_seconds)

    def tick(self, now=None):
        """
        Runs whichever tasks are due at ``now``.

        Returns:
            list: Names of the tasks that ran.
        """
        now = now or datetime.now(self.timezone)
        minute_key = now.strftime('%Y-%m-%d %H:%M')
        due = []
        if now.minute == 0:
            due.append(('status_update', self.run_status_update))
        if (now.hour, now.minute) == self.backup_time:
            due.append(('daily_backup', self.run_daily_backup))
        if (now.hour, now.minute) == self.archive_time:
            due.append(('archival', self.run_archival))

        ran = []
        for name, task in due:
            if self._last_run.get(name) == minute_key:
                continue
            self._last_run[name] = minute_key
            logging.info(f"Triggering {name} at {minute_key}")
            try:
                task()
            except Exception as e:
                logging.error(f"Scheduled task {name} failed: {e}")
            ran.append(name)
        return ran

    def run_status_update(self):
        count = self.lifecycle.update_job_statuses()
        if count and self.notifier is not None:
            self.notifier.publish(JOB_STATUSES_UPDATED, {'count': count})
        return count

    def run_daily_backup(self):
        backup = None
        try:
            backup = self.data_manager.create_backup()
        except Exception as e:
            logging.error(f"Daily backup failed: {e}")
        self.data_manager.clean_old_backups(self.retention_days)
        self.data_manager.cleanup_orphaned_records()
        return backup

    def run_archival(self):
        return self.lifecycle.archive_old_jobs(self.archive_after_days)
