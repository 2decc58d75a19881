import pytest

from models import Event, WonPlayer
from service import Ignored

from conftest import PORTERO, put_up


def test_create_room_seats_host(service, transport):
    events = service.create_room('host', {'name': '  ', 'avatar': 'a0'})
    code = events[0].payload['code']
    room = service.registry.get(code)

    assert room.host_id == 'host'
    assert room.budgets == {'host': 1100}
    assert room.teams == {'host': {}}
    assert [e.name for e in transport.events] == [
        'room_created', 'budget_update', 'market_state', 'participants_update',
    ]
    assert transport.events[0] == Event('room_created', {
        'code': code,
        'participants': [{'id': 'host', 'name': 'Anfitrión', 'avatar': 'a0'}],
    }, 'host')
    assert transport.events[2].payload == {'open': False, 'reason': 'init'}
    assert transport.memberships[code] == {'host'}
    assert service.registry.room_of('host') == code


def test_join_unknown_room_reports_error(service, transport):
    result = service.join_room('alice', {'code': 'ZZZZZZ', 'name': 'Alice'})

    assert isinstance(result, Ignored)
    assert transport.events == [Event('room_error', {'message': 'La sala no existe.'}, 'alice')]
    assert service.registry.room_of('alice') is None


def test_join_normalises_code_and_initialises_budget(room, service, transport):
    service.join_room('carol', {'code': ' %s ' % room.code.lower(), 'avatar': 'a3'})

    assert 'carol' in room.participants
    assert room.participants['carol'].name == 'Jugador'
    assert room.budgets['carol'] == 1100
    assert room.teams['carol'] == {}
    assert [e.name for e in transport.events] == [
        'room_joined', 'budget_update', 'market_state', 'participants_update',
    ]
    assert transport.events[2].payload == {'open': False, 'reason': 'sync'}
    assert transport.events[3].to == room.code


def test_join_with_taken_avatar_is_refused(room, service, transport):
    result = service.join_room('carol', {'code': room.code, 'avatar': 'a1'})

    assert isinstance(result, Ignored)
    assert 'carol' not in room.participants
    assert transport.events == [Event('room_error', {
        'message': 'El avatar seleccionado ya está en uso en esta sala. Elige otro.',
    }, 'carol')]


def test_rejoin_keeps_budget_and_own_avatar(room, service):
    room.budgets['alice'] = 300
    service.join_room('alice', {'code': room.code, 'name': 'Alice 2', 'avatar': 'a1'})

    assert room.participants['alice'].name == 'Alice 2'
    assert room.budgets['alice'] == 300


def test_late_joiner_catches_up_with_current_item(room, service, transport):
    put_up(service, room)
    service.place_bid('alice', {'code': room.code, 'value': 60})
    transport.clear()

    service.join_room('carol', {'code': room.code, 'avatar': 'a3'})
    direct = [e for e in transport.events if e.to == 'carol']

    assert [e.name for e in direct][-5:] == [
        'game_started', 'round_set', 'player_set', 'bid_update', 'timer_update',
    ]
    assert direct[-4].payload == {'positionName': 'Portero', 'rounds': 3}
    assert direct[-3].payload == {'player': PORTERO}
    assert direct[-2].payload == {'currentBid': 60, 'bidderId': 'alice'}
    assert direct[-1].payload == {'endAt': 1005000}


def test_late_joiner_without_item_gets_no_catch_up(room, service, transport):
    service.join_room('carol', {'code': room.code, 'avatar': 'a3'})
    assert not transport.named('game_started')


def test_host_leaving_hands_over_to_first_participant(room, service, transport):
    service.disconnect('host')

    assert room.host_id == 'alice'
    assert 'host' not in room.participants
    assert 'host' not in room.budgets
    assert [e.name for e in transport.events] == ['host_changed', 'participants_update', 'budget_update']
    assert transport.events[0].payload == {'code': room.code, 'hostId': 'alice'}


def test_team_survives_disconnect(room, service):
    room.teams['bob']['Portero'] = WonPlayer('Courtois', 50)
    service.disconnect('bob')

    assert 'bob' not in room.participants
    assert 'bob' not in room.budgets
    assert 'Portero' in room.teams['bob']


def test_last_participant_leaving_deletes_room(room, service):
    put_up(service, room)
    service.place_bid('alice', {'code': room.code, 'value': 50})
    timer = room.current.timer

    for sid in ('host', 'alice', 'bob'):
        service.disconnect(sid)

    assert room.code not in service.registry
    assert timer.cancelled


def test_switching_rooms_leaves_previous_room(room, service, transport):
    other = service.create_room('alice', {'avatar': 'x'})[0].payload['code']

    assert service.registry.room_of('alice') == other
    assert 'alice' not in room.participants
    assert 'alice' not in transport.memberships.get(room.code, set())


def test_host_only_operations_ignore_other_callers(room, service, transport):
    for op, data in (
        (service.start_game, {}),
        (service.set_round, {'positionName': 'Portero', 'rounds': 2}),
        (service.set_player, {'player': PORTERO}),
        (service.set_all_budgets, {'amount': 5}),
        (service.market_state, {'open': True}),
        (service.roulette_modal, {'open': True}),
        (service.roulette_close, {}),
        (service.confirm_winner, {}),
        (service.spin_roulette, {}),
        (service.player_revealed, {}),
    ):
        result = op('alice', dict(data, code=room.code))
        assert isinstance(result, Ignored), op.__name__

    assert transport.events == []
    assert room.market_open is False
    assert room.budgets['bob'] == 1100


def test_set_all_budgets(room, service, transport):
    service.set_all_budgets('host', {'code': room.code, 'amount': '900'})
    assert room.budgets == {'host': 900, 'alice': 900, 'bob': 900}

    service.set_all_budgets('host', {'code': room.code, 'amount': -20})
    assert set(room.budgets.values()) == {0}

    service.set_all_budgets('host', {'code': room.code, 'amount': 'lots'})
    assert set(room.budgets.values()) == {0}
    assert transport.events[-1] == Event('budget_update', {'budgets': room.budgets}, room.code)


def test_start_game_resets_round_and_winners(room, service, transport):
    put_up(service, room)
    service.place_bid('alice', {'code': room.code, 'value': 50})
    timer = room.current.timer
    room.winners('Portero').add('bob')

    service.start_game('host', {'code': room.code})

    assert timer.cancelled
    assert room.current.player is None
    assert room.current.position_name == ''
    assert room.winners_per_position == {}
    assert transport.events[-1] == Event('game_started', {'code': room.code}, room.code)


def test_set_round(room, service, transport):
    service.set_round('host', {'code': room.code, 'positionName': 'Mediocentro'})

    assert room.current.position_name == 'Mediocentro'
    assert room.current.rounds == 0
    assert room.winners_per_position['Mediocentro'] == set()
    assert transport.events == [Event('round_set', {'positionName': 'Mediocentro', 'rounds': 0}, room.code)]


def test_market_state_and_roulette_modal(room, service, transport):
    service.market_state('host', {'code': room.code, 'open': 1})
    service.roulette_modal('host', {'code': room.code, 'open': 0})
    service.roulette_close('host', {'code': room.code})

    assert room.market_open is True
    assert transport.events == [
        Event('market_state', {'open': True, 'reason': 'broadcast'}, room.code),
        Event('roulette_modal', {'open': False}, room.code),
        Event('roulette_close', None, room.code),
    ]


@pytest.mark.parametrize('position_name', [['Portero'], {'name': 'Portero'}, None, 7])
def test_set_round_needs_a_position_name(room, service, transport, position_name):
    result = service.set_round('host', {'code': room.code, 'positionName': position_name, 'rounds': 2})

    assert isinstance(result, Ignored)
    assert transport.events == []
    assert room.current.position_name == ''
    assert room.winners_per_position == {}
