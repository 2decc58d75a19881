"""
Auction service: one instance per process, built at startup.

Owns the room registry, the scheduler and the transport. Every client
intent goes through here: the room is looked up and locked, a transition
from ``lobby``, ``auction`` or ``trade`` runs, and the returned events are
emitted before the lock is released.

Rule violations are AuctionErrors. Apart from the two join errors, which
the client is told about, they are dropped and the call returns Ignored.
"""
import logging
import random
import time
from collections import namedtuple

import auction
import lobby
import trade
from exceptions import AuctionError, AvatarTaken, RoomNotFound
from models import Event

logger = logging.getLogger(__name__)

CREATE_FAILED_MESSAGE = 'No se pudo crear la sala. Intenta de nuevo.'

Ignored = namedtuple('Ignored', ['reason'])


def _payload(data):
    return data if isinstance(data, dict) else {}


def _code(data):
    code = _payload(data).get('code')
    return code if isinstance(code, str) else None


class AuctionService:
    def __init__(self, registry, scheduler, transport, settings, clock=None, rng=None):
        self.registry = registry
        self.scheduler = scheduler
        self.transport = transport
        self.settings = settings
        self.clock = clock or time.time
        self.rng = rng or random.Random()

    def _publish(self, events):
        for event in events:
            self.transport.emit(event.name, event.payload, event.to)
        return events

    def _now_ms(self):
        return int(self.clock() * 1000)

    def _run(self, code, operation, transition, *args):
        """Run ``transition(room, *args)`` under the room lock and emit its events."""
        with self.registry.locked(code) as room:
            if room is None:
                return Ignored(f"{operation}: no room {code}")
            try:
                events = transition(room, *args)
            except AuctionError as e:
                logger.debug(f"Ignored {operation} in room {code}: {e}")
                return Ignored(str(e))
            except Exception:
                logger.exception(f"{operation} failed in room {code}")
                raise
            return self._publish(events)

    # ============ Membership ============

    def create_room(self, sid, data=None):
        data = _payload(data)
        previous = self.registry.room_of(sid)
        room = None
        try:
            room = self.registry.create_room(sid)
            with room.lock:
                events = lobby.create(room, sid, data.get('name'), data.get('avatar'),
                                      self.settings.starting_budget)
                self.registry.bind(sid, room.code)
                self.transport.enter(sid, room.code)
                self._publish(events)
        except Exception:
            logger.exception(f"Could not create a room for {sid}")
            if room is not None:
                self.registry.delete(room.code)
                if previous:
                    self.registry.bind(sid, previous)
                else:
                    self.registry.unbind(sid)
            self.transport.emit('room_error', {'message': CREATE_FAILED_MESSAGE}, sid)
            return Ignored('create_room failed')
        self._switch_from(sid, previous, room.code)
        return events

    def join_room(self, sid, data=None):
        data = _payload(data)
        code = str(data.get('code') or '').upper().strip()
        previous = self.registry.room_of(sid)
        with self.registry.locked(code) as room:
            try:
                if room is None:
                    raise RoomNotFound(code)
                events = lobby.join(room, sid, data.get('name'), data.get('avatar'),
                                    self.settings.starting_budget)
            except (RoomNotFound, AvatarTaken) as e:
                logger.info(f"Join refused for {sid}: {e}")
                self.transport.emit('room_error', {'message': e.message}, sid)
                return Ignored(str(e))
            self.registry.bind(sid, code)
            self.transport.enter(sid, code)
            self._publish(events)
        self._switch_from(sid, previous, code)
        return events

    def _switch_from(self, sid, previous, code):
        # A socket belongs to one room at a time
        if previous and previous != code:
            self.transport.leave(sid, previous)
            self._leave(sid, previous)

    def disconnect(self, sid):
        code = self.registry.unbind(sid)
        if code is None:
            return Ignored(f"{sid} was not in a room")
        return self._leave(sid, code)

    def _leave(self, sid, code):
        with self.registry.locked(code) as room:
            if room is None:
                return Ignored(f"leave: no room {code}")
            events = lobby.leave(room, sid)
            if not room.participants:
                self.registry.delete(code)
                return []
            return self._publish(events)

    # ============ Host controls ============

    def set_all_budgets(self, sid, data):
        return self._run(_code(data), 'set_all_budgets', lobby.set_all_budgets,
                         sid, _payload(data).get('amount'))

    def start_game(self, sid, data):
        return self._run(_code(data), 'start_game', lobby.start_game, sid)

    def set_round(self, sid, data):
        data = _payload(data)
        return self._run(_code(data), 'set_round', lobby.set_round,
                         sid, data.get('positionName'), data.get('rounds'))

    def market_state(self, sid, data):
        data = _payload(data)
        return self._run(_code(data), 'market_state', lobby.set_market,
                         sid, data.get('open'), data.get('reason'))

    def roulette_modal(self, sid, data):
        return self._run(_code(data), 'roulette_modal', lobby.roulette_modal,
                         sid, _payload(data).get('open'))

    def roulette_close(self, sid, data):
        return self._run(_code(data), 'roulette_close', lobby.roulette_close, sid)

    def set_player(self, sid, data):
        data = _payload(data)
        return self._run(_code(data), 'set_player', auction.set_player,
                         sid, data.get('player'), data.get('index'))

    def player_revealed(self, sid, data):
        return self._run(_code(data), 'player_revealed', auction.reveal, sid)

    def confirm_winner(self, sid, data):
        return self._run(_code(data), 'confirm_winner', auction.confirm_winner, sid)

    # ============ Bidding ============

    def place_bid(self, sid, data):
        return self._run(_code(data), 'place_bid', self._bid, sid, _payload(data).get('value'))

    def _bid(self, room, sid, value):
        events = auction.place_bid(room, sid, value, self.settings.bid_step)
        delay = self.settings.bid_timer_seconds
        end_at = self._now_ms() + int(delay * 1000)
        task = self.scheduler.call_later(delay, self._countdown_expired, room.code)
        room.current.arm_timer(task, end_at)
        events.append(Event('timer_update', {'endAt': end_at}, room.code))
        return events

    def _countdown_expired(self, task, code):
        with self.registry.locked(code) as room:
            # Only the live countdown may award; replaced or cancelled ones are stale
            if room is None or task.cancelled or room.current.timer is not task:
                return Ignored('stale countdown')
            room.current.cancel_timer()
            return self._publish(auction.adjudicate(room))

    # ============ Roulette ============

    def spin_roulette(self, sid, data):
        return self._run(_code(data), 'spin_roulette', self._spin, sid)

    def _spin(self, room, sid):
        winner_id, events = auction.spin_roulette(room, sid, self.rng)
        if winner_id is not None:
            current = room.current
            self.scheduler.call_later(self.settings.roulette_settle_seconds, self._roulette_settled,
                                      room.code, current.position_name, winner_id, current.reserve_price)
        return events

    def _roulette_settled(self, task, code, position_name, winner_id, price):
        with self.registry.locked(code) as room:
            if room is None:
                return Ignored(f"roulette: room {code} is gone")
            return self._publish(auction.settle_roulette(room, position_name, winner_id, price))

    # ============ Transfer market ============

    def transfer_offer(self, sid, data):
        return self._run(_code(data), 'transfer_offer', trade.relay_offer, sid, data)

    def transfer_offer_update(self, sid, data):
        data = _payload(data)
        return self._run(_code(data), 'transfer_offer_update', self._offer_update,
                         sid, data.get('action'), data.get('offer'))

    def _offer_update(self, room, sid, action, offer_data):
        offer, events = trade.relay_update(room, offer_data, action)
        self._publish(events)
        if action != 'accept':
            return []
        try:
            return trade.accept(room, sid, offer)
        except AuctionError as e:
            logger.debug(f"Trade not applied in room {room.code}: {e}")
            return []
