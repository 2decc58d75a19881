"""
Bid/award engine and roulette selector.

Functions take a Room whose lock is held by the caller and return the
events to emit. Timers are not started here: the service arms the
countdown after an accepted bid and schedules the roulette settle step.

Every way an item can be won (countdown expiry, host confirmation,
roulette) ends in ``adjudicate``, which is idempotent.
"""
import logging
import math
import random

from exceptions import InvalidBid
from models import Event, WonPlayer
from schemas import parse_number

logger = logging.getLogger(__name__)

BID_STEP = 5


def snap_to_step(value, step=BID_STEP):
    """Round to the nearest multiple of ``step``, halves going up (53 -> 55, 52 -> 50)."""
    if value % step == 0:
        return int(value)
    return int(math.floor(value / step + 0.5) * step)


def minimum_bid(current, step=BID_STEP):
    if current.current_bid > 0:
        return current.current_bid + step
    return current.reserve_price


def roulette_update(room, min_price):
    count = len(room.roulette_eligible(min_price))
    return Event('roulette_update', {'count': count, 'positionName': room.current.position_name}, room.code)


def set_player(room, sid, player, index=None):
    room.require_host(sid, 'set_player')
    current = room.current
    current.cancel_timer()
    current.player = player if isinstance(player, dict) else None
    current.reset_bidding()
    index = parse_number(index)
    return [
        Event('player_set', {
            'player': current.player,
            'index': int(index) if index else 1,
            'totalRounds': current.rounds,
            'positionName': current.position_name,
        }, room.code),
        Event('bid_update', {'currentBid': 0, 'bidderId': None}, room.code),
        Event('timer_update', {'endAt': None}, room.code),
        roulette_update(room, current.reserve_price),
    ]


def reveal(room, sid):
    """Host shows the item to everybody; no more bids are taken for it."""
    room.require_host(sid, 'player_revealed')
    room.current.revealed = True
    return [_revealed(room)]


def _revealed(room):
    return Event('player_revealed', {
        'player': room.current.player,
        'positionName': room.current.position_name,
    }, room.code)


def place_bid(room, sid, value, step=BID_STEP):
    """
    Validate and record a bid.

    Raises InvalidBid when the bid is not taken. On success only the
    ``bid_update`` event is returned; arming the countdown is up to the
    caller.
    """
    current = room.current
    if not current.player:
        raise InvalidBid('no item under auction')
    if current.revealed:
        raise InvalidBid('item already revealed')
    if room.has_won(sid, current.position_name):
        raise InvalidBid(f"{sid} already won at {current.position_name}")

    number = parse_number(value)
    if number is None:
        raise InvalidBid(f"not a number: {value!r}")
    bid = snap_to_step(number, step)

    # Both the typed and the snapped amount must reach the minimum: 58 does not beat 55
    lowest = minimum_bid(current, step)
    if number < lowest or bid < lowest:
        raise InvalidBid(f"{number} is below the minimum of {lowest}")
    if bid > room.budgets.get(sid, 0):
        raise InvalidBid(f"{bid} is over the budget of {sid}")

    current.current_bid = bid
    current.last_bidder_id = sid
    return [Event('bid_update', {'currentBid': bid, 'bidderId': sid}, room.code)]


def adjudicate(room):
    """
    Award the current item to the last bidder if that is still valid.

    Safe to call any number of times: once the item is awarded, or when a
    precondition does not hold, nothing changes and no events are returned.
    The bidder's budget is read now, not when the bid was placed.
    """
    if room is None:
        return []
    current = room.current
    player = current.player
    winner_id = current.last_bidder_id
    if not player or not winner_id or current.awarded:
        return []

    bid = current.current_bid
    reserve = current.reserve_price
    budget = room.budgets.get(winner_id, 0)
    if bid < reserve or bid > budget:
        return []

    position = current.position_name
    if room.has_won(winner_id, position):
        return []

    room.budgets[winner_id] = budget - bid
    team = room.teams.setdefault(winner_id, {})
    team[position] = WonPlayer(player.get('name'), bid, player.get('photo'))
    room.winners(position).add(winner_id)

    current.current_bid = 0
    current.last_bidder_id = None
    current.awarded = True
    current.player = None
    current.cancel_timer()
    logger.info(f"Room {room.code}: {winner_id} won {player.get('name')} at {position} for {bid}")

    return [
        Event('budget_update', room.budgets_payload(), room.code),
        Event('player_revealed', None, room.code),
        Event('winner_confirmed', {
            'winnerId': winner_id,
            'price': bid,
            'player': player,
            'positionName': position,
        }, room.code),
        Event('teams_update', {'users': {winner_id: room.team_payload(winner_id)}}, room.code),
        roulette_update(room, reserve),
    ]


def confirm_winner(room, sid):
    room.require_host(sid, 'confirm_winner')
    current = room.current
    current.cancel_timer()
    current.revealed = True
    events = [_revealed(room)]
    events.extend(adjudicate(room))
    events.append(roulette_update(room, current.reserve_price))
    return events


def spin_roulette(room, sid, rng=random):
    """
    Pick a random eligible participant for the current item.

    Returns ``(winner_id, events)``; ``winner_id`` is None when nobody is
    eligible. The award itself happens later in ``settle_roulette``, once
    the clients have played the animation.
    """
    room.require_host(sid, 'spin_roulette')
    current = room.current
    if not current.player:
        return None, []

    price = current.reserve_price
    eligible = room.roulette_eligible(price)
    events = [Event('roulette_update', {'count': len(eligible), 'positionName': current.position_name}, room.code)]
    if not eligible:
        return None, events

    winner_id = rng.choice(eligible)
    current.cancel_timer()
    events.append(Event('timer_update', {'endAt': None}, room.code))
    events.append(Event('roulette_spun', {
        'winnerId': winner_id,
        'positionName': current.position_name,
        'price': price,
    }, room.code))
    return winner_id, events


def settle_roulette(room, position_name, winner_id, price):
    """Award the roulette winner at the reserve price, unless the host moved on meanwhile."""
    if room is None:
        return []
    current = room.current
    if not current.player or current.position_name != position_name:
        return []

    current.current_bid = price
    current.last_bidder_id = winner_id
    events = [Event('bid_update', {'currentBid': price, 'bidderId': winner_id}, room.code)]
    events.extend(adjudicate(room))
    events.append(roulette_update(room, price))
    return events
