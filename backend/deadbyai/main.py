from flask import Blueprint, jsonify

from deadbyai import rooms

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Dead by AI game server!', 'rooms': len(rooms)})
