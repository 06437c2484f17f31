import pytest

from deadbyai.client import ClientProjection, GameClient

PLAYERS = [{'id': 'me', 'name': 'Alice', 'score': 0}, {'id': 'them', 'name': 'Bob', 'score': 0}]


class FakeSio:
    def __init__(self):
        self.handlers = {}
        self.emitted = []
        self.connected = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def emit(self, event, data=None):
        self.emitted.append((event, data))

    def connect(self, url, transports=None):
        self.connected = True
        self.url = url

    def disconnect(self):
        self.connected = False

    def deliver(self, event, data=None):
        self.handlers[event](data)


class FakeResponse:
    def __init__(self, body):
        self.body = body

    def raise_for_status(self):
        pass

    def json(self):
        return self.body


class FakeHttp:
    def __init__(self, body):
        self.body = body
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return FakeResponse(self.body)


@pytest.fixture()
def sio():
    return FakeSio()


@pytest.fixture()
def game(sio):
    return GameClient('http://localhost:3001/', sio=sio)


def writing(sio):
    sio.deliver('roomJoined', {'roomCode': 'ROOM01', 'playerId': 'me', 'players': PLAYERS})
    sio.deliver('gameStarted', {'prompt': 'A flood.', 'timeLimit': 60, 'timeRemaining': 60})


def test_projection_follows_a_full_round(game, sio):
    view = game.projection
    assert view.phase == 'login'
    writing(sio)
    assert view.phase == 'writing'
    assert view.current_prompt == 'A flood.'
    assert view.me['name'] == 'Alice'

    sio.deliver('timeUpdate', {'timeRemaining': 42})
    assert view.time_remaining == 42
    sio.deliver('timeUp', {'gamePhase': 'judging'})
    assert view.phase == 'judging'
    assert view.time_remaining == 0

    sio.deliver('judgingStarted', {})
    assert view.is_judging
    sio.deliver('roundResults', {
        'results': [{'playerId': 'me', 'playerName': 'Alice', 'survived': True, 'reasoning': 'ok'}],
        'players': [{'id': 'me', 'name': 'Alice', 'score': 1}, PLAYERS[1]],
    })
    assert view.phase == 'results'
    assert not view.is_judging
    assert view.me['score'] == 1


def test_submit_is_sent_once(game, sio):
    writing(sio)
    assert game.submit_story('  I swim.  ') is True
    assert game.submit_story('I swim again.') is False
    assert sio.emitted == [('submitStory', {'story': 'I swim.'})]
    assert game.projection.has_submitted_story
    assert game.projection.submission_pending


def test_server_confirmation_settles_submission(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('storySubmitted', {'playerId': 'me', 'totalSubmitted': 1, 'totalPlayers': 2})
    view = game.projection
    assert view.submission_confirmed
    assert not view.submission_pending
    assert view.total_submitted == 1


def test_other_players_submission_does_not_mark_mine(game, sio):
    writing(sio)
    sio.deliver('storySubmitted', {'playerId': 'them', 'totalSubmitted': 1, 'totalPlayers': 2})
    assert not game.projection.has_submitted_story
    assert game.submit_story('I swim.') is True


def test_rejected_submission_can_be_retried(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('error', {'message': 'Story cannot be empty'})
    assert game.projection.error == 'Story cannot be empty'
    assert not game.projection.has_submitted_story
    assert game.submit_story('I swim harder.') is True


def test_error_after_confirmation_keeps_submission(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('storySubmitted', {'playerId': 'me', 'totalSubmitted': 1, 'totalPlayers': 2})
    sio.deliver('error', {'message': 'Something else'})
    assert game.projection.submission_confirmed


def test_cannot_submit_outside_writing_or_after_time_up(game, sio):
    assert game.submit_story('too early') is False
    writing(sio)
    sio.deliver('timeUp', {'gamePhase': 'judging'})
    assert game.submit_story('too late') is False
    assert sio.emitted == []


def test_new_round_clears_submission(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('storySubmitted', {'playerId': 'me', 'totalSubmitted': 1, 'totalPlayers': 2})
    sio.deliver('gameStarted', {'prompt': 'A fire.', 'timeLimit': 120, 'timeRemaining': 120})
    assert not game.projection.has_submitted_story
    assert game.projection.time_limit == 120


def test_abandoned_round_returns_to_lobby(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('playerLeft', {'players': PLAYERS[:1]})
    sio.deliver('roundAbandoned', {'reason': 'player_left', 'gamePhase': 'lobby', 'players': PLAYERS[:1]})
    view = game.projection
    assert view.phase == 'lobby'
    assert view.players == PLAYERS[:1]
    assert not view.has_submitted_story
    assert view.current_prompt == ''


def test_room_left_resets_everything(game, sio):
    writing(sio)
    sio.deliver('roomLeft', {'roomCode': 'ROOM01'})
    assert game.projection.phase == 'login'
    assert game.projection.room_code == ''


def test_unknown_event_is_ignored():
    view = ClientProjection()
    view.apply('somethingNew', {'x': 1})
    assert view.phase == 'login'


def test_actions_emit_expected_payloads(game, sio):
    assert game.join_room('   ') is False
    assert game.join_room(' Alice ', room_code=' room01 ') is True
    game.join_room('Bob', is_public=False)
    game.start_game('  ', time_limit=60)
    game.start_game('A flood.', time_limit=180)
    game.judge_stories()
    game.next_round()
    game.leave_room()
    assert sio.emitted == [
        ('joinRoom', {'playerName': 'Alice', 'isPublic': True, 'roomCode': 'ROOM01'}),
        ('joinRoom', {'playerName': 'Bob', 'isPublic': False}),
        ('startGame', {'timeLimit': 60}),
        ('startGame', {'timeLimit': 180, 'customPrompt': 'A flood.'}),
        ('judgeStories', {}),
        ('nextRound', {}),
        ('leaveRoom', {}),
    ]


def test_on_change_hears_every_event(sio):
    heard = []
    game = GameClient('http://localhost:3001', sio=sio, on_change=heard.append)
    writing(sio)
    assert heard == ['roomJoined', 'gameStarted']
    assert game.projection.phase == 'writing'


def test_connect_and_queries(sio):
    http = FakeHttp([{'roomCode': 'ROOM01', 'playerCount': 1, 'maxPlayers': 2, 'gamePhase': 'lobby'}])
    game = GameClient('http://localhost:3001/', sio=sio, http=http)
    game.connect()
    assert game.connected
    assert sio.url == 'http://localhost:3001'
    assert game.fetch_rooms()[0]['roomCode'] == 'ROOM01'
    game.fetch_prompts()
    assert http.urls == ['http://localhost:3001/api/rooms', 'http://localhost:3001/api/prompts']
    game.disconnect()
    assert not game.connected


def test_error_outside_writing_keeps_pending_submission(game, sio):
    writing(sio)
    game.submit_story('I swim.')
    sio.deliver('timeUp', {'gamePhase': 'judging'})
    sio.deliver('error', {'message': 'Stories are not ready to be judged'})
    assert game.projection.error == 'Stories are not ready to be judged'
    assert game.projection.submission_pending
    assert game.projection.has_submitted_story
