"""
Auction errors.

Transitions raise these; the service decides which ones reach the client
(``room_error``) and which ones are dropped quietly.
"""


class AuctionError(Exception):
    """Base class for every auction rule violation"""
    pass


# ============ Room ============

class RoomNotFound(AuctionError):
    """No room with that code"""
    message = "La sala no existe."

    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found")


class AvatarTaken(AuctionError):
    """Another participant of the room already uses the avatar"""
    message = "El avatar seleccionado ya está en uso en esta sala. Elige otro."

    def __init__(self, code, avatar):
        self.code = code
        self.avatar = avatar
        super().__init__(f"Avatar {avatar} already taken in room {code}")


class Unauthorized(AuctionError):
    """A non-host tried a host-only operation"""

    def __init__(self, sid, operation):
        self.sid = sid
        self.operation = operation
        super().__init__(f"{sid} is not allowed to {operation}")


# ============ Rounds ============

class InvalidRound(AuctionError):
    """Round rejected: the position name is not a string"""
    pass


# ============ Bidding ============

class InvalidBid(AuctionError):
    """Bid rejected: no item, revealed, already a winner, bad value, below minimum or over budget"""
    pass


# ============ Transfer market ============

class MarketClosed(AuctionError):
    """Transfer offers are only accepted while the market is open"""
    pass


class InvalidTrade(AuctionError):
    """Trade rejected: not enough cash, nothing to swap or a negative resulting budget"""
    pass
