"""
Transfer market: relaying offers and applying accepted trades.

A trade swaps roster slots between two participants, each pair of slots
staying inside one position group, plus cash in either direction. It is
applied completely or not at all.
"""
import logging

from pydantic import ValidationError

from exceptions import InvalidTrade, MarketClosed, Unauthorized
from models import Event
from schemas import TransferOffer

logger = logging.getLogger(__name__)

POSITION_GROUPS = {
    'gk': {'Portero'},
    'def': {'Lateral Izquierdo', 'Central Izquierdo', 'Central Derecho', 'Lateral Derecho'},
    'mid': {'Mediocentro Defensivo', 'Mediocentro', 'Mediocentro Ofensivo'},
    'att': {'Extremo Izquierdo', 'Delantero Centro', 'Extremo Derecho'},
}


def position_group(position_name):
    for group, positions in POSITION_GROUPS.items():
        if position_name in positions:
            return group
    return 'other'


def parse_offer(data):
    """TransferOffer from the raw envelope, or None if it lacks the counterparties."""
    if not isinstance(data, dict):
        return None
    try:
        return TransferOffer.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Malformed transfer offer {data!r}: {e}")
        return None


def relay_offer(room, sid, data):
    """Show a new offer to the whole room. Only the sender may publish it."""
    if not room.market_open:
        raise MarketClosed(room.code)
    offer = parse_offer(data)
    if offer is None:
        raise InvalidTrade('offer without counterparties')
    if offer.from_id != sid:
        raise Unauthorized(sid, 'transfer_offer')
    if offer.to_id == sid:
        raise InvalidTrade('cannot trade with yourself')
    return [Event('transfer_offer', data, room.code)]


def relay_update(room, data, action):
    """
    Show the answer to an offer to the room.

    Returns ``(offer, events)``. The answer goes out even when an accepted
    trade turns out not to be applicable.
    """
    offer = parse_offer(data)
    if offer is None:
        raise InvalidTrade('offer without counterparties')
    return offer, [Event('transfer_offer_update', {'action': action, 'offer': data}, room.code)]


def accept(room, sid, offer):
    """Apply an accepted offer. Raises before touching anything when it cannot be applied."""
    if not room.market_open:
        raise MarketClosed(room.code)
    from_id, to_id = offer.from_id, offer.to_id
    if sid not in (from_id, to_id):
        raise Unauthorized(sid, 'accept transfer')
    if from_id not in room.participants or to_id not in room.participants:
        raise InvalidTrade('both counterparties must be in the room')
    if from_id == to_id:
        raise InvalidTrade('cannot trade with yourself')

    budget_from = room.budgets.get(from_id, 0)
    budget_to = room.budgets.get(to_id, 0)
    cash_mine = offer.cash_mine
    cash_theirs = offer.cash_theirs
    if budget_from < cash_mine or budget_to < cash_theirs:
        raise InvalidTrade('not enough money for the cash part')

    # Work on copies so nothing changes unless everything checks out
    team_from = dict(room.teams.get(from_id, {}))
    team_to = dict(room.teams.get(to_id, {}))
    used_from, used_to = set(), set()
    swapped = 0
    for pair in offer.pairs:
        mine, theirs = pair.my_slot, pair.opponent_slot
        if not mine or not theirs:
            continue
        if mine in used_from or theirs in used_to:
            continue
        if position_group(mine) != position_group(theirs):
            continue
        if mine not in team_from or theirs not in team_to:
            continue
        team_from[mine], team_to[theirs] = team_to[theirs], team_from[mine]
        used_from.add(mine)
        used_to.add(theirs)
        swapped += 1

    if not swapped and cash_mine == 0 and cash_theirs == 0:
        raise InvalidTrade('nothing to exchange')

    new_from = budget_from - cash_mine + cash_theirs
    new_to = budget_to - cash_theirs + cash_mine
    if new_from < 0 or new_to < 0:
        raise InvalidTrade('trade would leave a negative budget')

    room.budgets[from_id] = new_from
    room.budgets[to_id] = new_to
    room.teams[from_id] = team_from
    room.teams[to_id] = team_to
    logger.info(
        f"Room {room.code}: trade {from_id} <-> {to_id}, {swapped} slot(s), "
        f"cash {cash_mine} / {cash_theirs}"
    )
    return [
        Event('teams_update', {'users': {
            from_id: room.team_payload(from_id),
            to_id: room.team_payload(to_id),
        }}, room.code),
        Event('budget_update', room.budgets_payload(), room.code),
    ]
