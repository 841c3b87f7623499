from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Optional


class Role(str, Enum):
    VOLUNTEER = 'volunteer'
    DEPARTMENT = 'department'


class JobStatus(str, Enum):
    ACTIVE = 'active'
    COMPLETED = 'completed'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'


TERMINAL_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.EXPIRED, JobStatus.CANCELLED)
ARCHIVABLE_JOB_STATUSES = (JobStatus.COMPLETED, JobStatus.EXPIRED)


class ApplicationStatus(str, Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'


# Applications that hold a spot on a job
OPEN_APPLICATION_STATUSES = (ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED)


class ApplicationModel(str, Enum):
    REVIEWED = 'reviewed'
    AUTO_ACCEPT = 'auto_accept'


def _snake_to_camel(name):
    head, *rest = name.split('_')
    return head + ''.join(part.title() for part in rest)


class Record:
    """Mixin mapping dataclass fields to the camelCase keys stored on disk.

    Keys found on disk that the dataclass does not declare are kept in
    ``extra`` and written back unchanged.
    """

    @classmethod
    def from_dict(cls, data):
        known = {}
        extra = dict(data)
        for f in fields(cls):
            if f.name == 'extra':
                continue
            key = _snake_to_camel(f.name)
            if key in extra:
                known[f.name] = extra.pop(key)
        return cls(**known, extra=extra)

    def to_dict(self):
        data = dict(self.extra)
        for f in fields(self):
            if f.name == 'extra':
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            data[_snake_to_camel(f.name)] = value
        return data


@dataclass
class User(Record):
    id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    hfn_id: Optional[str] = None
    password: Optional[str] = None
    created_at: Optional[str] = None
    extra: dict = field(default_factory=dict, repr=False)

    @property
    def name(self):
        return ' '.join(part for part in (self.first_name, self.last_name) if part)

    def public_dict(self):
        data = self.to_dict()
        data.pop('password', None)
        return data


@dataclass
class Job(Record):
    id: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    age_group: Optional[str] = None
    location: Optional[str] = None
    reporting_time: Optional[str] = None
    max_volunteers: Optional[int] = None
    contact_name: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    department_id: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    expired_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancellation_reason: Optional[str] = None
    extra: dict = field(default_factory=dict, repr=False)

    @property
    def terminal_timestamp(self):
        return self.completed_at or self.expired_at or self.created_at


@dataclass
class Application(Record):
    id: Optional[str] = None
    job_id: Optional[str] = None
    volunteer_id: Optional[str] = None
    status: Optional[str] = None
    applied_at: Optional[str] = None
    updated_at: Optional[str] = None
    accepted_at: Optional[str] = None
    extra: dict = field(default_factory=dict, repr=False)
