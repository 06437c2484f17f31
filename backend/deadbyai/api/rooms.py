from flask import Blueprint, current_app, jsonify

from deadbyai import rooms
from deadbyai.services.prompts import PRESET_PROMPTS

api = Blueprint('api', __name__)


@api.route('/rooms', methods=['GET'])
def list_rooms():
    """
    Lists public rooms with at least one player, for the room browser.
    """
    return jsonify(rooms.list_public())


@api.route('/prompts', methods=['GET'])
def list_prompts():
    """
    Returns the preset scenario prompts a host can pick from.
    """
    return jsonify(list(PRESET_PROMPTS))


@api.route('/config', methods=['GET'])
def game_config():
    cfg = current_app.config
    return jsonify({
        'timeLimitOptions': list(cfg.get('TIME_LIMIT_OPTIONS', ())),
        'defaultTimeLimit': int(cfg.get('DEFAULT_TIME_LIMIT', 120)),
        'maxPlayers': int(cfg.get('MAX_PLAYERS', 2)),
    })
