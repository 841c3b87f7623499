from flask import Blueprint, request, session, g, current_app, jsonify
import logging

from .errors import AuthenticationError, Forbidden, ValidationError, VolunteerHubError
from .models import Role
from .notifications import JOB_STATUSES_UPDATED

main = Blueprint('main', __name__, url_prefix='/api')


def _services():
    return current_app.extensions['volunteer_hub']


def _require_user(role=None):
    if g.user is None:
        raise AuthenticationError('You need to sign in first.')
    if role is not None and g.user.role != role:
        raise Forbidden(f'Only {Role(role).value} accounts can do this')
    return g.user


def _require_operator():
    user = _require_user(Role.DEPARTMENT)
    if user.id not in current_app.config.get('MAINTENANCE_ADMIN_IDS', ()):
        raise Forbidden('Only maintenance operators can do this')
    return user


def _whole_number(value, name, minimum=1):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a whole number')
    if number < minimum:
        raise ValidationError(f'{name} must be at least {minimum}')
    return number


@main.before_app_request
def load_user():
    user_id = session.get('user_id')
    if user_id:
        g.user = _services()['board'].get_user(user_id)
    else:
        g.user = None


@main.app_errorhandler(VolunteerHubError)
def handle_error(error):
    if error.status_code >= 500:
        logging.error(f"Request failed: {error.message}")
    return jsonify({'error': error.message}), error.status_code


# Jobs

@main.route('/jobs')
def list_jobs():
    return jsonify(_services()['board'].list_jobs(request.args.get('status')))


@main.route('/jobs/<job_id>')
def job_detail(job_id):
    return jsonify(_services()['board'].get_job(job_id))


@main.route('/jobs', methods=['POST'])
def create_job():
    user = _require_user(Role.DEPARTMENT)
    job = _services()['board'].create_job(user, request.get_json(silent=True) or {})
    return jsonify(job.to_dict()), 201


@main.route('/jobs/<job_id>', methods=['DELETE'])
def delete_job(job_id):
    user = _require_user(Role.DEPARTMENT)
    _services()['board'].delete_job(user, job_id)
    return jsonify({'message': 'Job deleted successfully'})


@main.route('/jobs/<job_id>/cancel', methods=['POST'])
def cancel_job(job_id):
    user = _require_user(Role.DEPARTMENT)
    reason = (request.get_json(silent=True) or {}).get('reason')
    if not reason or not str(reason).strip():
        raise ValidationError('A cancellation reason is required')
    job = _services()['board'].cancel_job(user, job_id, reason)
    return jsonify(job.to_dict())


@main.route('/my-jobs')
def my_jobs():
    user = _require_user(Role.DEPARTMENT)
    return jsonify(_services()['board'].department_jobs(user))


# Applications

@main.route('/jobs/<job_id>/apply', methods=['POST'])
def apply(job_id):
    user = _require_user(Role.VOLUNTEER)
    application = _services()['board'].apply_for_job(user, job_id)
    return jsonify(application.to_dict()), 201


@main.route('/jobs/<job_id>/contact')
def job_contact(job_id):
    user = _require_user(Role.VOLUNTEER)
    return jsonify(_services()['board'].job_contact(user, job_id))


@main.route('/my-applications')
def my_applications():
    user = _require_user(Role.VOLUNTEER)
    return jsonify(_services()['board'].volunteer_applications(user))


@main.route('/applications/<application_id>', methods=['DELETE'])
def withdraw_application(application_id):
    user = _require_user(Role.VOLUNTEER)
    _services()['board'].withdraw_application(user, application_id)
    return jsonify({'message': 'Application withdrawn'})


@main.route('/applications/<application_id>/status', methods=['PUT'])
def update_application_status(application_id):
    user = _require_user(Role.DEPARTMENT)
    status = (request.get_json(silent=True) or {}).get('status')
    application = _services()['board'].update_application_status(user, application_id, status)
    return jsonify({'message': 'Application status updated successfully', 'application': application.to_dict()})


# Maintenance

@main.route('/maintenance/validate')
def validate_data():
    _require_operator()
    errors = _services()['data_manager'].validate_data()
    return jsonify({'valid': not errors, 'errors': errors})


@main.route('/maintenance/statistics')
def statistics():
    _require_operator()
    return jsonify(_services()['lifecycle'].get_job_statistics())


@main.route('/maintenance/backups')
def list_backups():
    _require_operator()
    return jsonify({'backups': _services()['data_manager'].list_backups()})


@main.route('/maintenance/backups', methods=['POST'])
def create_backup():
    _require_operator()
    backup = _services()['data_manager'].create_backup()
    return jsonify({'backup': backup}), 201


@main.route('/maintenance/backups/clean', methods=['POST'])
def clean_backups():
    _require_operator()
    days = (request.get_json(silent=True) or {}).get('daysToKeep', current_app.config['BACKUP_RETENTION_DAYS'])
    deleted = _services()['data_manager'].clean_old_backups(_whole_number(days, 'daysToKeep'))
    return jsonify({'deleted': deleted})


@main.route('/maintenance/cleanup', methods=['POST'])
def cleanup_orphans():
    _require_operator()
    return jsonify({'removed': _services()['data_manager'].cleanup_orphaned_records()})


@main.route('/maintenance/update-statuses', methods=['POST'])
def update_statuses():
    _require_operator()
    count = _services()['lifecycle'].update_job_statuses()
    if count:
        _services()['notifier'].publish(JOB_STATUSES_UPDATED, {'count': count})
    return jsonify({'count': count})


@main.route('/maintenance/archive', methods=['POST'])
def archive_jobs():
    _require_operator()
    days = (request.get_json(silent=True) or {}).get('daysOld', current_app.config['ARCHIVE_AFTER_DAYS'])
    archived = _services()['lifecycle'].archive_old_jobs(_whole_number(days, 'daysOld'))
    return jsonify({'archived': archived})
