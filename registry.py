"""
Room registry: the only owner of the room table.

Keeps code -> Room and sid -> code, hands out unique room codes and gives
callers a room with its lock held.
"""
import logging
import random
import threading
from contextlib import contextmanager

from models import Room

logger = logging.getLogger(__name__)

# No 0/O, 1/I so codes can be read aloud and typed
CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def generate_room_code(length=6, rng=random):
    """
    Random room code from CODE_ALPHABET.

    Uniqueness is not checked here; RoomRegistry.create_room retries on
    collision.
    """
    return ''.join(rng.choice(CODE_ALPHABET) for _ in range(length))


class RoomRegistry:
    def __init__(self, code_length=6, rng=None):
        self.code_length = code_length
        self.rng = rng or random.Random()
        self.rooms = {}
        self.player_rooms = {}  # {sid: room_code}
        self._lock = threading.Lock()

    def create_room(self, host_id):
        with self._lock:
            code = generate_room_code(self.code_length, self.rng)
            while code in self.rooms:
                logger.warning(f"Room code collision detected, regenerating: {code}")
                code = generate_room_code(self.code_length, self.rng)
            room = Room(code, host_id)
            self.rooms[code] = room
        logger.info(f"Created room {code} for host {host_id}")
        return room

    def get(self, code):
        if not code:
            return None
        return self.rooms.get(code)

    def delete(self, code):
        with self._lock:
            room = self.rooms.pop(code, None)
        if room is not None:
            logger.info(f"Deleted room {code}")
        return room

    def __contains__(self, code):
        return code in self.rooms

    def __len__(self):
        return len(self.rooms)

    # Socket membership

    def bind(self, sid, code):
        self.player_rooms[sid] = code

    def unbind(self, sid):
        return self.player_rooms.pop(sid, None)

    def room_of(self, sid):
        return self.player_rooms.get(sid)

    @contextmanager
    def locked(self, code):
        """
        Yield the room with its lock held, or None if there is no such room.

        The room is looked up again after acquiring the lock: a room deleted
        while we waited is reported as missing.
        """
        room = self.get(code)
        if room is None:
            yield None
            return
        with room.lock:
            if self.rooms.get(code) is not room:
                yield None
            else:
                yield room
