import random

import pytest

from config import Settings
from models import Event
from registry import RoomRegistry
from scheduler import ScheduledTask
from service import AuctionService

NOW = 1000.0
PORTERO = {'name': 'Courtois', 'price': 50, 'photo': 'Fotos/courtois.png'}


class ManualScheduler:
    """Keeps scheduled tasks until the test decides to run them."""

    def __init__(self):
        self.tasks = []

    def call_later(self, delay, callback, *args):
        task = ScheduledTask(delay, callback, args)
        self.tasks.append(task)
        return task

    @property
    def pending(self):
        return [t for t in self.tasks if not t.cancelled]

    def run_pending(self):
        tasks, self.tasks = self.tasks, []
        for task in tasks:
            task.run()


class RecordingTransport:
    def __init__(self):
        self.events = []
        self.memberships = {}

    def emit(self, name, payload, to):
        self.events.append(Event(name, payload, to))

    def enter(self, sid, code):
        self.memberships.setdefault(code, set()).add(sid)

    def leave(self, sid, code):
        self.memberships.get(code, set()).discard(sid)

    def named(self, name):
        return [e for e in self.events if e.name == name]

    def clear(self):
        self.events = []


class ScriptedRng(random.Random):
    """choice() walks through a fixed string; used to force room codes."""

    def __init__(self, script):
        super().__init__(0)
        self.script = iter(script)

    def choice(self, seq):
        return next(self.script)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_service(settings, scheduler, transport):
    def make(registry=None, rng=None):
        return AuctionService(
            registry=registry if registry is not None else RoomRegistry(rng=random.Random(7)),
            scheduler=scheduler,
            transport=transport,
            settings=settings,
            clock=lambda: NOW,
            rng=rng if rng is not None else random.Random(3),
        )
    return make


@pytest.fixture
def service(make_service):
    return make_service()


@pytest.fixture
def room(service, transport):
    """A room hosted by 'host' with 'alice' and 'bob' joined; transport cleared."""
    events = service.create_room('host', {'name': 'Host', 'avatar': 'a0'})
    code = events[0].payload['code']
    service.join_room('alice', {'code': code, 'name': 'Alice', 'avatar': 'a1'})
    service.join_room('bob', {'code': code, 'name': 'Bob', 'avatar': 'a2'})
    transport.clear()
    return service.registry.get(code)


def put_up(service, room, player=None, position='Portero', rounds=3):
    service.set_round('host', {'code': room.code, 'positionName': position, 'rounds': rounds})
    service.set_player('host', {'code': room.code, 'player': dict(player or PORTERO), 'index': 1})
