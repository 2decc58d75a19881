"""
Room membership and host controls.

Every function works on a Room whose lock the caller already holds and
returns the events to emit. Host-only operations raise Unauthorized for
anyone else.
"""
import logging

from exceptions import AvatarTaken, InvalidRound
from models import Event, Participant
from schemas import as_amount

logger = logging.getLogger(__name__)

DEFAULT_HOST_NAME = 'Anfitrión'
DEFAULT_PLAYER_NAME = 'Jugador'


def _display_name(name, default):
    name = str(name).strip() if name is not None else ''
    return name or default


def _seat(room, sid, name, avatar, starting_budget):
    room.participants[sid] = Participant(sid, name, avatar)
    room.budgets.setdefault(sid, starting_budget)
    room.teams.setdefault(sid, {})


def create(room, sid, name, avatar, starting_budget):
    _seat(room, sid, _display_name(name, DEFAULT_HOST_NAME), avatar, starting_budget)
    participants = room.participants_payload()
    return [
        Event('room_created', {'code': room.code, 'participants': participants}, sid),
        Event('budget_update', room.budgets_payload(), sid),
        Event('market_state', {'open': room.market_open, 'reason': 'init'}, sid),
        Event('participants_update', {'code': room.code, 'participants': participants}, room.code),
    ]


def join(room, sid, name, avatar, starting_budget):
    if avatar:
        for other in room.participants.values():
            if other.id != sid and other.avatar == avatar:
                raise AvatarTaken(room.code, avatar)

    _seat(room, sid, _display_name(name, DEFAULT_PLAYER_NAME), avatar, starting_budget)
    participants = room.participants_payload()
    events = [
        Event('room_joined', {'code': room.code, 'participants': participants}, sid),
        Event('budget_update', room.budgets_payload(), sid),
        Event('market_state', {'open': room.market_open, 'reason': 'sync'}, sid),
        Event('participants_update', {'code': room.code, 'participants': participants}, room.code),
    ]
    return events + catch_up(room, sid)


def catch_up(room, sid):
    """Bring a late joiner into the item currently under auction."""
    current = room.current
    if not current.player:
        return []
    events = [
        Event('game_started', {'code': room.code}, sid),
        Event('round_set', {'positionName': current.position_name, 'rounds': current.rounds}, sid),
        Event('player_set', {'player': current.player}, sid),
    ]
    if current.current_bid > 0:
        events.append(Event('bid_update', {'currentBid': current.current_bid, 'bidderId': current.last_bidder_id}, sid))
    if current.timer_end_at:
        events.append(Event('timer_update', {'endAt': current.timer_end_at}, sid))
    return events


def leave(room, sid):
    """
    Drop a participant and their budget. The team stays in the room.

    Returns no events once the room is empty; the caller deletes it.
    """
    room.participants.pop(sid, None)
    room.budgets.pop(sid, None)
    if not room.participants:
        room.current.cancel_timer()
        return []

    events = []
    if room.host_id == sid:
        room.host_id = next(iter(room.participants))
        logger.info(f"Host of room {room.code} left, new host is {room.host_id}")
        events.append(Event('host_changed', {'code': room.code, 'hostId': room.host_id}, room.code))
    events.append(Event('participants_update', {'code': room.code, 'participants': room.participants_payload()}, room.code))
    events.append(Event('budget_update', room.budgets_payload(), room.code))
    return events


def set_all_budgets(room, sid, amount):
    room.require_host(sid, 'set_all_budgets')
    value = as_amount(amount)
    for participant_id in room.participants:
        room.budgets[participant_id] = value
    return [Event('budget_update', room.budgets_payload(), room.code)]


def start_game(room, sid):
    room.require_host(sid, 'start_game')
    room.clear_current()
    room.winners_per_position = {}
    return [Event('game_started', {'code': room.code}, room.code)]


def set_round(room, sid, position_name, rounds):
    room.require_host(sid, 'set_round')
    if not isinstance(position_name, str):
        raise InvalidRound(f"position name {position_name!r} is not a string")
    room.current.position_name = position_name
    room.current.rounds = rounds or 0
    room.winners(position_name)
    return [Event('round_set', {'positionName': position_name, 'rounds': room.current.rounds}, room.code)]


def set_market(room, sid, is_open, reason=None):
    room.require_host(sid, 'market_state')
    room.market_open = bool(is_open)
    reason = reason or 'broadcast'
    logger.info(f"market_state -> code={room.code} open={room.market_open} reason={reason} sender={sid}")
    return [Event('market_state', {'open': room.market_open, 'reason': reason}, room.code)]


def roulette_modal(room, sid, is_open):
    room.require_host(sid, 'roulette_modal')
    return [Event('roulette_modal', {'open': bool(is_open)}, room.code)]


def roulette_close(room, sid):
    room.require_host(sid, 'roulette_close')
    return [Event('roulette_close', None, room.code)]
