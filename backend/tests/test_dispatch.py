import pytest

from studio_timer.errors import InvalidCommandShape
from studio_timer.models import Direction
from studio_timer.services.labels import LabelStore
from studio_timer.services.timers import engine
from studio_timer.services.timers.dispatch import key_to_command, parse_command


@pytest.fixture()
def labels():
    return LabelStore()


@pytest.mark.parametrize('name,canonical', [
    ('backspace', engine.BACKSPACE),
    ('enter', engine.COMMIT),
    ('start', engine.COMMIT),
    ('pause', engine.PAUSE),
    ('pauseResume', engine.TOGGLE),
    ('delete', engine.RESET),
    ('reset', engine.RESET),
    ('resetBoth', engine.RESET_ALL),
    ('timerFinished', engine.FINISH),
    ('tick', engine.TICK),
])
def test_legacy_names_map_to_canonical_commands(labels, name, canonical):
    req = parse_command({'command': name, 'roomCode': 'ctrlfr', 'timerId': 1}, labels)
    assert req.command.name == canonical
    assert req.room_code == 'CTRLFR'


def test_action_key_is_accepted_for_macro_pads(labels):
    req = parse_command({'action': 'number', 'roomCode': 'CTRLFR', 'value': 7}, labels)
    assert req.command.name == engine.DIGIT
    assert req.command.value == 7
    assert req.timer_id is None


def test_mode_commands_carry_direction(labels):
    up = parse_command({'command': 'modeUp', 'roomCode': 'CTRLFR'}, labels)
    down = parse_command({'command': 'modeDown', 'roomCode': 'CTRLFR'}, labels)
    assert up.command.value is Direction.UP
    assert down.command.value is Direction.DOWN


def test_enter_carries_optimistic_overrides(labels):
    req = parse_command(
        {'command': 'enter', 'roomCode': 'CTRLFR', 'timerId': 0, 'input': '130', 'selectedMode': 'up'},
        labels,
    )
    assert req.command.input == '130'
    assert req.command.direction is Direction.UP
    assert req.timer_id == 0


def test_select_timer_is_room_level(labels):
    req = parse_command({'command': 'selectTimer', 'roomCode': 'CTRLFR', 'value': 1}, labels)
    assert req.command.name == engine.SELECT_TIMER
    assert req.command.value == 1
    assert req.timer_id is None
    # Macro pads send the target as timerId
    req = parse_command({'command': 'selectTimer', 'roomCode': 'CTRLFR', 'timerId': 0}, labels)
    assert req.command.value == 0


@pytest.mark.parametrize('payload', [
    None,
    [],
    'pause',
    {'roomCode': 'CTRLFR'},
    {'command': 'pause'},
    {'command': 'explode', 'roomCode': 'CTRLFR'},
    {'command': 'number', 'roomCode': 'CTRLFR'},
    {'command': 'number', 'roomCode': 'CTRLFR', 'value': 12},
    {'command': 'number', 'roomCode': 'CTRLFR', 'value': True},
    {'command': 'number', 'roomCode': 'CTRLFR', 'value': '--5'},
    {'command': 'number', 'roomCode': 'CTRLFR', 'value': '\u00b2'},
    {'command': 'pause', 'roomCode': 'CTRLFR', 'timerId': '1-'},
    {'command': 'pause', 'roomCode': 'CTRLFR', 'timerId': 'first'},
    {'command': 'selectMode', 'roomCode': 'CTRLFR', 'value': 'sideways'},
    {'command': 'selectTimer', 'roomCode': 'CTRLFR'},
    {'command': 'setTime', 'roomCode': 'CTRLFR'},
    {'command': 'setLabel', 'roomCode': 'CTRLFR'},
    {'command': 'setLabel', 'roomCode': 'CTRLFR', 'labelIndex': 99},
    {'command': 'setLabel', 'roomCode': 'CTRLFR', 'value': 'missing'},
])
def test_malformed_payloads_are_rejected(labels, payload):
    with pytest.raises(InvalidCommandShape):
        parse_command(payload, labels)


def test_set_label_by_index_value_or_id(labels):
    by_index = parse_command({'command': 'setLabel', 'roomCode': 'R', 'labelIndex': 3}, labels)
    assert by_index.command.value == '3'
    assert labels.resolve(by_index.command.value) == 'BREAK'
    by_value = parse_command({'command': 'setLabel', 'roomCode': 'R', 'value': 4}, labels)
    assert labels.resolve(by_value.command.value) == 'LIVE'
    by_id = parse_command({'command': 'updateLabel', 'roomCode': 'R', 'timerId': 1, 'value': '6'}, labels)
    assert by_id.command.value == '6'
    assert by_id.timer_id == 1
    cleared = parse_command({'command': 'setLabel', 'roomCode': 'R', 'value': ''}, labels)
    assert cleared.command.value == ''


def test_set_time_and_sync_input_carry_digits(labels):
    req = parse_command({'command': 'setTime', 'roomCode': 'R', 'value': '001500'}, labels)
    assert req.command.name == engine.SET_INPUT
    assert req.command.value == '001500'
    sync = parse_command({'command': 'syncInput', 'roomCode': 'R', 'input': '12'}, labels)
    assert sync.command.value == '12'


@pytest.mark.parametrize('key,code,expected', [
    ('7', None, (engine.DIGIT, 7)),
    ('+', None, (engine.SELECT_DIRECTION, Direction.UP)),
    ('Unidentified', 'NumpadAdd', (engine.SELECT_DIRECTION, Direction.UP)),
    ('-', None, (engine.SELECT_DIRECTION, Direction.DOWN)),
    ('Backspace', None, (engine.BACKSPACE, None)),
    ('Delete', None, (engine.RESET, None)),
    ('Enter', None, (engine.TOGGLE, None)),
    ('ArrowUp', None, (engine.SELECT_PREVIOUS, None)),
    ('ArrowDown', None, (engine.SELECT_NEXT, None)),
])
def test_keyboard_mapping(key, code, expected):
    command = key_to_command(key, code)
    assert (command.name, command.value) == expected


def test_unknown_keys_map_to_nothing():
    assert key_to_command('q') is None
    assert key_to_command('ArrowLeft') is None


def test_label_store_orders_and_truncates():
    store = LabelStore([('a', 'FIRST'), ('b', 'A VERY LONG LABEL')])
    assert [lbl.id for lbl in store.list()] == ['a', 'b']
    assert store.get('b').text == 'A VERY LON'
    assert store.by_index(0) is None
    assert store.by_index(2).id == 'b'
    assert store.resolve('') == ''
    assert store.resolve('zzz') == ''
