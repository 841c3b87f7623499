from flask import Blueprint, request, session, g, jsonify, current_app

from .errors import AuthenticationError

auth_bp = Blueprint('auth', __name__, url_prefix='/api')


def _board():
    return current_app.extensions['volunteer_hub']['board']


@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    user = _board().register_user(data)
    return jsonify({'message': 'User registered successfully', 'user': user.public_dict()}), 201


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    identifier = data.get('identifier') or data.get('email') or data.get('phone') or data.get('hfnId')
    user = _board().authenticate(identifier, data.get('password'))

    session.clear()
    session['user_id'] = user.id
    return jsonify({'message': 'Signin successful', 'user': user.public_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'You have been logged out.'})


@auth_bp.route('/me')
def me():
    if g.user is None:
        raise AuthenticationError('You need to sign in first.')
    return jsonify(g.user.public_dict())
