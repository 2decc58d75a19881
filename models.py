import threading
from collections import namedtuple

from exceptions import Unauthorized
from schemas import as_number

# name: socket event, payload: dict or None (emitted without arguments),
# to: room code for a broadcast or a sid for a single socket
Event = namedtuple('Event', ['name', 'payload', 'to'])


class Participant:
    def __init__(self, sid, name, avatar=None):
        self.id = sid
        self.name = name
        self.avatar = avatar

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'avatar': self.avatar}


class WonPlayer:
    """A roster entry: the item a participant won for one position."""

    def __init__(self, name, price, photo=None):
        self.name = name
        self.price = price
        self.photo = photo

    def to_dict(self):
        return {'name': self.name, 'price': self.price, 'photo': self.photo}


class CurrentRound:
    def __init__(self, position_name='', rounds=0):
        self.position_name = position_name
        self.rounds = rounds
        self.player = None  # item dict as sent by the host: name, price, photo, clues...
        self.current_bid = 0
        self.last_bidder_id = None
        self.awarded = False
        self.revealed = False
        self.timer = None
        self.timer_end_at = None

    @property
    def reserve_price(self):
        if not self.player:
            return 0
        return as_number(self.player.get('price'))

    def arm_timer(self, task, end_at):
        self.cancel_timer()
        self.timer = task
        self.timer_end_at = end_at

    def cancel_timer(self):
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        self.timer_end_at = None

    def reset_bidding(self):
        self.current_bid = 0
        self.last_bidder_id = None
        self.awarded = False
        self.revealed = False


class Room:
    def __init__(self, code, host_id):
        self.code = code
        self.host_id = host_id
        self.participants = {}  # {sid: Participant}, insertion ordered
        self.budgets = {}  # {sid: int}
        self.teams = {}  # {sid: {position_name: WonPlayer}}
        self.winners_per_position = {}  # {position_name: set(sid)}
        self.market_open = False
        self.current = CurrentRound()
        self.lock = threading.RLock()

    def is_host(self, sid):
        return self.host_id == sid

    def require_host(self, sid, operation):
        if not self.is_host(sid):
            raise Unauthorized(sid, operation)

    def winners(self, position_name):
        return self.winners_per_position.setdefault(position_name, set())

    def has_won(self, sid, position_name):
        return sid in self.winners_per_position.get(position_name, ())

    def roulette_eligible(self, min_price):
        """Participants without a win at the current position who can afford ``min_price``."""
        position = self.current.position_name
        return [
            sid for sid in self.participants
            if not self.has_won(sid, position) and self.budgets.get(sid, 0) >= min_price
        ]

    def participants_payload(self):
        return [p.to_dict() for p in self.participants.values()]

    def budgets_payload(self):
        return {'budgets': dict(self.budgets)}

    def team_payload(self, sid):
        return {pos: won.to_dict() for pos, won in self.teams.get(sid, {}).items()}

    def clear_current(self):
        self.current.cancel_timer()
        self.current = CurrentRound()
