import logging
import os

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, join_room, leave_room

from config import get_settings
from registry import RoomRegistry
from scheduler import SocketIOScheduler
from service import AuctionService

logger = logging.getLogger(__name__)


class SocketIOTransport:
    """Sends service events over Socket.IO, to a room code or to a single sid."""

    def __init__(self, socketio):
        self.socketio = socketio

    def emit(self, name, payload, to):
        if payload is None:
            self.socketio.emit(name, to=to, namespace='/')
        else:
            self.socketio.emit(name, payload, to=to, namespace='/')

    def enter(self, sid, code):
        join_room(code, sid=sid, namespace='/')

    def leave(self, sid, code):
        leave_room(code, sid=sid, namespace='/')


def create_app(settings=None, scheduler=None, clock=None, rng=None):
    """Build the Flask app, its SocketIO server and the auction service behind it."""
    settings = settings or get_settings()
    static_dir = os.path.abspath(settings.static_dir)

    app = Flask(__name__, static_folder=static_dir, static_url_path='')
    app.config['SECRET_KEY'] = settings.secret_key
    socketio = SocketIO(
        app,
        async_mode=settings.async_mode,
        cors_allowed_origins=settings.cors_allowed_origins,
        engineio_logger=settings.engineio_logger,
        ping_timeout=60,
        ping_interval=25,
    )

    service = AuctionService(
        registry=RoomRegistry(code_length=settings.room_code_length),
        scheduler=scheduler or SocketIOScheduler(socketio),
        transport=SocketIOTransport(socketio),
        settings=settings,
        clock=clock,
        rng=rng,
    )
    app.extensions['auction'] = service

    register_routes(app, settings)
    register_events(socketio, service)
    return app, socketio


def register_routes(app, settings):
    @app.route('/')
    def index():
        return app.send_static_file('index.html')

    @app.route('/photo-manifest')
    def photo_manifest():
        photo_dir = os.path.join(app.static_folder, settings.photo_dir)
        try:
            files = sorted(
                f"{settings.photo_dir}/{entry.name}"
                for entry in os.scandir(photo_dir) if entry.is_file()
            )
        except OSError as e:
            logger.warning(f"Cannot list photos in {photo_dir}: {e}")
            return jsonify({'files': [], 'error': str(e)}), 500
        return jsonify({'files': files})


def register_events(socketio, service):
    # Socket events
    @socketio.on('connect')
    def handle_connect():
        logger.debug(f"Client connected: {request.sid}")

    @socketio.on('disconnect')
    def handle_disconnect(reason=None):
        logger.debug(f"Client disconnected: {request.sid} ({reason})")
        service.disconnect(request.sid)

    @socketio.on('create_room')
    def handle_create_room(data=None):
        service.create_room(request.sid, data)

    @socketio.on('join_room')
    def handle_join_room(data=None):
        service.join_room(request.sid, data)

    @socketio.on('set_all_budgets')
    def handle_set_all_budgets(data=None):
        service.set_all_budgets(request.sid, data)

    @socketio.on('start_game')
    def handle_start_game(data=None):
        service.start_game(request.sid, data)

    @socketio.on('set_round')
    def handle_set_round(data=None):
        service.set_round(request.sid, data)

    @socketio.on('set_player')
    def handle_set_player(data=None):
        service.set_player(request.sid, data)

    @socketio.on('place_bid')
    def handle_place_bid(data=None):
        service.place_bid(request.sid, data)

    @socketio.on('player_revealed')
    def handle_player_revealed(data=None):
        service.player_revealed(request.sid, data)

    @socketio.on('confirm_winner')
    def handle_confirm_winner(data=None):
        service.confirm_winner(request.sid, data)

    @socketio.on('spin_roulette')
    def handle_spin_roulette(data=None):
        service.spin_roulette(request.sid, data)

    @socketio.on('roulette_modal')
    def handle_roulette_modal(data=None):
        service.roulette_modal(request.sid, data)

    @socketio.on('roulette_close')
    def handle_roulette_close(data=None):
        service.roulette_close(request.sid, data)

    @socketio.on('market_state')
    def handle_market_state(data=None):
        service.market_state(request.sid, data)

    @socketio.on('transfer_offer')
    def handle_transfer_offer(data=None):
        service.transfer_offer(request.sid, data)

    @socketio.on('transfer_offer_update')
    def handle_transfer_offer_update(data=None):
        service.transfer_offer_update(request.sid, data)


def main():
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app, socketio = create_app(settings)
    logger.info(f"Server listening on http://localhost:{settings.port}")
    options = {}
    if settings.async_mode == 'threading':
        options['allow_unsafe_werkzeug'] = settings.allow_unsafe_werkzeug
    socketio.run(app, host=settings.host, port=settings.port, **options)


if __name__ == '__main__':
    main()
