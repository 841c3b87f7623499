import logging

from werkzeug.security import generate_password_hash, check_password_hash

from .errors import (AuthenticationError, Conflict, Forbidden, InvalidTransition,
                     JobFull, NotFound, ValidationError)
from .models import (Application, ApplicationModel, ApplicationStatus, Job, JobStatus,
                     OPEN_APPLICATION_STATUSES, Role, User)
from .notifications import NEW_JOB, JOB_CANCELLED, APPLICATION_STATUS_CHANGED
from .store import USERS, JOBS, APPLICATIONS
from .utils import generate_id, is_valid_hfn_id, parse_timestamp, render_description, to_iso, utcnow

JOB_REQUIRED_FIELDS = ('title', 'description', 'ageGroup', 'location', 'reportingTime',
                       'contactName', 'contactPhone', 'contactEmail')


def _clean(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _find(records, record_id):
    return next((r for r in records if r.get('id') == record_id), None)


class JobBoard:
    """
    Volunteer and department workflows: accounts, job postings and applications.

    How a new application starts depends on ``application_model``: under
    ``reviewed`` it is pending until the owning department decides, under
    ``auto_accept`` it is accepted straight away and cannot be reviewed.
    """

    def __init__(self, store, lifecycle, application_model=ApplicationModel.REVIEWED, notifier=None):
        self.store = store
        self.lifecycle = lifecycle
        self.application_model = ApplicationModel(application_model)
        self.notifier = notifier

    def _publish(self, event, payload):
        if self.notifier is not None:
            self.notifier.publish(event, payload)

    # Accounts

    def register_user(self, data):
        first_name = _clean(data.get('firstName'))
        last_name = _clean(data.get('lastName'))
        role = _clean(data.get('role'))
        email = _clean(data.get('email'))
        phone = _clean(data.get('phone'))
        hfn_id = _clean(data.get('hfnId'))
        password = data.get('password') or None

        if not all([first_name, last_name, role]):
            raise ValidationError('First name, last name and role are required')
        if not password:
            raise ValidationError('A password is required')
        if role not in (Role.VOLUNTEER.value, Role.DEPARTMENT.value):
            raise ValidationError('Role must be "volunteer" or "department"')

        if role == Role.DEPARTMENT:
            if hfn_id is not None:
                if not is_valid_hfn_id(hfn_id):
                    raise ValidationError('HFN ID must be 6 letters followed by 3 digits')
                hfn_id = hfn_id.upper()
            if not email and not hfn_id:
                raise ValidationError('Departments need an email or an HFN ID to sign in')
        else:
            if hfn_id is not None:
                raise ValidationError('Only departments have an HFN ID')
            if not email and not phone:
                raise ValidationError('Volunteers need an email or a phone number')

        if email:
            email = email.lower()

        with self.store.lock:
            users = self.store.read(USERS)
            for existing in users:
                if email and existing.get('email') == email:
                    raise Conflict('User already exists')
                if phone and existing.get('phone') == phone:
                    raise Conflict('Phone number already registered')
                if hfn_id and existing.get('hfnId') == hfn_id:
                    raise Conflict('HFN ID already registered')

            user = User(
                id=generate_id(),
                first_name=first_name,
                last_name=last_name,
                role=role,
                email=email,
                phone=phone,
                hfn_id=hfn_id,
                password=generate_password_hash(password),
                created_at=to_iso(utcnow())
            )
            users.append(user.to_dict())
            self.store.write(USERS, users)

        logging.info(f"Registered {role} {user.id}")
        return user

    def authenticate(self, identifier, password=None):
        identifier = _clean(identifier)
        if not identifier:
            raise AuthenticationError('Invalid credentials')

        lowered = identifier.lower()
        upper = identifier.upper()
        for record in self.store.read(USERS):
            if record.get('email') == lowered or record.get('phone') == identifier \
                    or (record.get('hfnId') and record.get('hfnId') == upper):
                user = User.from_dict(record)
                break
        else:
            raise AuthenticationError('Invalid credentials')

        if not user.password or not password or not check_password_hash(user.password, password):
            raise AuthenticationError('Invalid credentials')
        return user

    def get_user(self, user_id):
        record = _find(self.store.read(USERS), user_id)
        return User.from_dict(record) if record else None

    # Jobs

    def create_job(self, department, data):
        if department.role != Role.DEPARTMENT:
            raise Forbidden('Only departments can post jobs')

        values = {name: _clean(data.get(name)) for name in JOB_REQUIRED_FIELDS}
        if not all(values.values()):
            raise ValidationError('All job fields including contact information are required')

        reporting_time = parse_timestamp(values['reportingTime'])
        if reporting_time is None:
            raise ValidationError('reportingTime must be an ISO-8601 date and time')

        raw_max = data.get('maxVolunteers')
        try:
            max_volunteers = 1 if raw_max in (None, '') else int(raw_max)
        except (TypeError, ValueError):
            raise ValidationError('maxVolunteers must be a whole number')
        if max_volunteers < 1:
            raise ValidationError('maxVolunteers must be at least 1')

        job = Job(
            id=generate_id(),
            title=values['title'],
            description=values['description'],
            age_group=values['ageGroup'],
            location=values['location'],
            reporting_time=to_iso(reporting_time),
            max_volunteers=max_volunteers,
            contact_name=values['contactName'],
            contact_phone=values['contactPhone'],
            contact_email=values['contactEmail'],
            department_id=department.id,
            status=JobStatus.ACTIVE.value,
            created_at=to_iso(utcnow())
        )

        with self.store.lock:
            jobs = self.store.read(JOBS)
            jobs.append(job.to_dict())
            self.store.write(JOBS, jobs)

        logging.info(f"Department {department.id} posted job {job.id}")
        self._publish(NEW_JOB, job.to_dict())
        return job

    def _with_counts(self, job, applications):
        job_applications = [a for a in applications if a.get('jobId') == job.get('id')]
        accepted = sum(1 for a in job_applications if a.get('status') == ApplicationStatus.ACCEPTED)
        pending = sum(1 for a in job_applications if a.get('status') == ApplicationStatus.PENDING)
        return {
            **job,
            'applicationCount': accepted + pending,
            'acceptedCount': accepted,
            'pendingCount': pending,
            'availableSpots': (job.get('maxVolunteers') or 1) - (accepted + pending),
        }

    def list_jobs(self, status=None):
        jobs = self.store.read(JOBS)
        applications = self.store.read(APPLICATIONS)
        if status:
            jobs = [j for j in jobs if j.get('status') == status]
        return [self._with_counts(job, applications) for job in jobs]

    def get_job(self, job_id):
        job = _find(self.store.read(JOBS), job_id)
        if job is None:
            raise NotFound('Job not found')
        details = self._with_counts(job, self.store.read(APPLICATIONS))
        details['descriptionHtml'] = render_description(job.get('description'))
        return details

    def _owned_job(self, department, jobs, job_id):
        if department.role != Role.DEPARTMENT:
            raise Forbidden('Only departments can manage jobs')
        job = _find(jobs, job_id)
        if job is None:
            raise NotFound('Job not found')
        if job.get('departmentId') != department.id:
            raise Forbidden('You can only manage your own jobs')
        return job

    def delete_job(self, department, job_id):
        with self.store.lock:
            jobs = self.store.read(JOBS)
            self._owned_job(department, jobs, job_id)
            applications = self.store.read(APPLICATIONS)
            remaining = [a for a in applications if a.get('jobId') != job_id]

            self.store.write(JOBS, [j for j in jobs if j.get('id') != job_id])
            if len(remaining) != len(applications):
                self.store.write(APPLICATIONS, remaining)

        logging.info(f"Job {job_id} removed with {len(applications) - len(remaining)} applications")

    def cancel_job(self, department, job_id, reason):
        with self.store.lock:
            self._owned_job(department, self.store.read(JOBS), job_id)
            job = self.lifecycle.cancel_job(job_id, reason)
        self._publish(JOB_CANCELLED, {'jobId': job_id, 'reason': job.cancellation_reason})
        return job

    def department_jobs(self, department):
        if department.role != Role.DEPARTMENT:
            raise Forbidden('Only departments can view their jobs')

        users = {u.get('id'): User.from_dict(u) for u in self.store.read(USERS)}
        applications = self.store.read(APPLICATIONS)
        result = []
        for job in self.store.read(JOBS):
            if job.get('departmentId') != department.id:
                continue
            job_applications = []
            for app in applications:
                if app.get('jobId') != job.get('id'):
                    continue
                volunteer = users.get(app.get('volunteerId'))
                if volunteer is not None:
                    app = {**app, 'volunteer': volunteer.public_dict()}
                job_applications.append(app)
            result.append({**self._with_counts(job, applications), 'applications': job_applications})
        return result

    # Applications

    def apply_for_job(self, volunteer, job_id):
        if volunteer.role != Role.VOLUNTEER:
            raise Forbidden('Only volunteers can apply for jobs')

        with self.store.lock:
            jobs = self.store.read(JOBS)
            applications = self.store.read(APPLICATIONS)

            job = _find(jobs, job_id)
            if job is None:
                raise NotFound('Job not found')
            if job.get('status') != JobStatus.ACTIVE:
                raise InvalidTransition('This job is no longer accepting applications')

            existing = next((a for a in applications
                             if a.get('jobId') == job_id and a.get('volunteerId') == volunteer.id), None)
            if existing is not None:
                if existing.get('status') == ApplicationStatus.REJECTED:
                    raise Conflict('Your previous application was rejected. You cannot reapply for this job.')
                raise Conflict('Already applied for this job')

            taken = sum(1 for a in applications
                        if a.get('jobId') == job_id and a.get('status') in OPEN_APPLICATION_STATUSES)
            if taken >= (job.get('maxVolunteers') or 1):
                raise JobFull()

            now = to_iso(utcnow())
            application = Application(
                id=generate_id(),
                job_id=job_id,
                volunteer_id=volunteer.id,
                status=ApplicationStatus.PENDING.value,
                applied_at=now
            )
            if self.application_model == ApplicationModel.AUTO_ACCEPT:
                application.status = ApplicationStatus.ACCEPTED.value
                application.accepted_at = now

            applications.append(application.to_dict())
            self.store.write(APPLICATIONS, applications)

        logging.info(f"Volunteer {volunteer.id} applied for job {job_id} ({application.status})")
        return application

    def withdraw_application(self, volunteer, application_id):
        with self.store.lock:
            applications = self.store.read(APPLICATIONS)
            application = _find(applications, application_id)
            if application is None:
                raise NotFound('Application not found')
            if application.get('volunteerId') != volunteer.id:
                raise Forbidden('You can only withdraw your own applications')

            job = _find(self.store.read(JOBS), application.get('jobId'))
            if job is not None and job.get('status') != JobStatus.ACTIVE:
                raise InvalidTransition('Applications can only be withdrawn while the job is active')

            self.store.write(APPLICATIONS, [a for a in applications if a.get('id') != application_id])

        logging.info(f"Volunteer {volunteer.id} withdrew application {application_id}")

    def update_application_status(self, department, application_id, status):
        if self.application_model == ApplicationModel.AUTO_ACCEPT:
            raise InvalidTransition('Applications are accepted automatically and cannot be reviewed')
        if department.role != Role.DEPARTMENT:
            raise Forbidden('Only departments can update application status')
        if status not in (ApplicationStatus.ACCEPTED.value, ApplicationStatus.REJECTED.value):
            raise ValidationError('Invalid status. Must be "accepted" or "rejected"')

        with self.store.lock:
            applications = self.store.read(APPLICATIONS)
            index = next((i for i, a in enumerate(applications) if a.get('id') == application_id), None)
            if index is None:
                raise NotFound('Application not found')

            application = Application.from_dict(applications[index])
            job = _find(self.store.read(JOBS), application.job_id)
            if job is None or job.get('departmentId') != department.id:
                raise Forbidden('You can only update applications for your own jobs')

            if status == ApplicationStatus.ACCEPTED and application.status == ApplicationStatus.REJECTED:
                taken = sum(1 for a in applications
                            if a.get('jobId') == application.job_id and a.get('status') in OPEN_APPLICATION_STATUSES)
                if taken >= (job.get('maxVolunteers') or 1):
                    raise JobFull()

            now = to_iso(utcnow())
            application.status = status
            application.updated_at = now
            if status == ApplicationStatus.ACCEPTED:
                application.accepted_at = now
            applications[index] = application.to_dict()
            self.store.write(APPLICATIONS, applications)

        self._publish(APPLICATION_STATUS_CHANGED, {
            'applicationId': application_id,
            'volunteerId': application.volunteer_id,
            'status': status
        })
        return application

    def volunteer_applications(self, volunteer):
        jobs = {j.get('id'): j for j in self.store.read(JOBS)}
        return [
            {**app, 'job': jobs.get(app.get('jobId'))}
            for app in self.store.read(APPLICATIONS)
            if app.get('volunteerId') == volunteer.id
        ]

    def job_contact(self, volunteer, job_id):
        if volunteer.role != Role.VOLUNTEER:
            raise Forbidden('Only volunteers can access contact information')

        applied = any(a.get('jobId') == job_id and a.get('volunteerId') == volunteer.id
                      for a in self.store.read(APPLICATIONS))
        if not applied:
            raise Forbidden('You must apply for this job to see contact information')

        job = _find(self.store.read(JOBS), job_id)
        if job is None:
            raise NotFound('Job not found')
        return {
            'contactName': job.get('contactName'),
            'contactPhone': job.get('contactPhone'),
            'contactEmail': job.get('contactEmail')
        }
