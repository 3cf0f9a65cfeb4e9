"""Flask server exposing local Minesweeper sessions."""
import os
import logging
import threading
import uuid
from datetime import datetime
from typing import Dict
from flask import Flask, request, jsonify
from flask_cors import CORS

from ledgersweeper.errors import ConfigurationError, InvalidCoordinateError
from ledgersweeper.gateway import TemporalLedgerClient
from ledgersweeper.ledger import LedgerClient
from ledgersweeper.session import GameSessionController
from ledgersweeper.types import CellState, Difficulty, GameStatus, LedgerState, MoveRequest

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Set by main(); None runs games without a ledger
ledger: LedgerClient | None = None

games: Dict[str, GameSessionController] = {}
# Sessions are single-threaded; requests touching them hold this lock
games_lock = threading.RLock()

ACTIONS = ['reveal', 'flag', 'chord']

# Seconds a ledger query may block a request
LEDGER_QUERY_TIMEOUT = 10


def serialize_datetime(value):
    """Helper to serialize datetime objects."""
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def serialize_game_state(game_id: str, controller: GameSessionController):
    """Convert a session to JSON-serializable format."""
    session = controller.session
    board = session.board
    show_mines = session.status == GameStatus.LOST

    cells = []
    for row in board.cells:
        row_cells = []
        for cell in row:
            is_open = cell.state == CellState.OPEN
            row_cells.append({
                'x': cell.x,
                'y': cell.y,
                'state': cell.state.value,
                'isMine': cell.is_mine if (is_open or show_mines) else None,
                'adjacentMines': cell.adjacent_mines if is_open and not cell.is_mine else None,
            })
        cells.append(row_cells)

    return {
        'id': game_id,
        'remoteGameId': session.remote_game_id,
        'difficulty': session.difficulty.name,
        'board': {
            'cells': cells,
            'width': board.width,
            'height': board.height,
            'mineCount': session.config.mine_count,
        },
        'status': session.status.value,
        'startedAt': serialize_datetime(session.started_at),
        'finishedAt': serialize_datetime(session.finished_at),
        'timeElapsed': controller.elapsed_seconds(),
        'movesCount': session.moves_count,
        'flagsPlaced': session.flags_placed,
        'cellsRevealed': session.cells_revealed,
        'ledger': {
            'pending': controller.pending_submissions,
            'confirmed': len(session.confirmed),
            'unconfirmed': len(session.unconfirmed),
            'error': session.ledger_error,
        },
    }


def serialize_ledger_state(ledger_state: LedgerState):
    """Convert the ledger record of a game to JSON-serializable format."""
    config = ledger_state.config
    return {
        'gameId': ledger_state.game_id,
        'difficulty': Difficulty(ledger_state.difficulty).name,
        'board': {
            'width': config.width,
            'height': config.height,
            'mineCount': config.mine_count,
        },
        'status': ledger_state.status.value,
        'batches': [
            {'cellIndices': batch.cell_indices, 'adjacentMines': batch.adjacent_mines}
            for batch in ledger_state.batches
        ],
        'revealedIndices': ledger_state.revealed_indices,
        'flagToggles': [{'x': toggle.x, 'y': toggle.y} for toggle in ledger_state.flag_toggles],
        'createdAt': serialize_datetime(ledger_state.created_at),
        'settledAt': serialize_datetime(ledger_state.settled_at),
    }


def parse_difficulty(data) -> Difficulty | None:
    value = (data or {}).get('difficulty', Difficulty.BEGINNER.name)
    try:
        # JSON true/false decode to bool, which is an int subclass
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return Difficulty(value)
        return Difficulty[str(value).upper()]
    except (KeyError, ValueError):
        return None


def find_game(game_id: str) -> GameSessionController | None:
    with games_lock:
        return games.get(game_id)


@app.route('/api/games', methods=['POST'])
def create_game():
    """Create a new game."""
    try:
        difficulty = parse_difficulty(request.get_json(silent=True))
        if difficulty is None:
            return jsonify({'error': 'Invalid difficulty'}), 400

        controller = GameSessionController(ledger=ledger, difficulty=difficulty)
        game_id = str(uuid.uuid4())
        with games_lock:
            games[game_id] = controller

        logger.info(f"Created {difficulty.name} game {game_id}")
        return jsonify({'gameState': serialize_game_state(game_id, controller)})

    except ConfigurationError as error:
        logger.error(f"Invalid game configuration: {error}")
        return jsonify({'error': str(error)}), 400
    except Exception as error:
        logger.error(f"Error creating game: {error}")
        return jsonify({'error': 'Failed to create game'}), 500


@app.route('/api/games/<game_id>', methods=['GET'])
def get_game_state(game_id):
    """Get game state."""
    controller = find_game(game_id)
    if controller is None:
        return jsonify({'error': 'Game not found'}), 404

    with games_lock:
        controller.sync()
        return jsonify({'gameState': serialize_game_state(game_id, controller)})


@app.route('/api/games/<game_id>/ledger', methods=['GET'])
def get_ledger_state(game_id):
    """Get what the ledger has recorded for a game."""
    controller = find_game(game_id)
    if controller is None:
        return jsonify({'error': 'Game not found'}), 404
    if ledger is None:
        return jsonify({'error': 'Ledger is disabled'}), 404

    with games_lock:
        controller.sync()
        remote_game_id = controller.session.remote_game_id
    if remote_game_id is None:
        return jsonify({'error': 'Ledger game not created yet'}), 409

    try:
        ledger_state = ledger.fetch_ledger_state(remote_game_id).result(timeout=LEDGER_QUERY_TIMEOUT)
    except Exception as error:
        logger.error(f"Error querying ledger {remote_game_id}: {error}")
        return jsonify({'error': 'Failed to query ledger'}), 502

    return jsonify({'ledger': serialize_ledger_state(ledger_state)})


@app.route('/api/games/<game_id>/moves', methods=['POST'])
def make_move(game_id):
    """Make a move."""
    controller = find_game(game_id)
    if controller is None:
        return jsonify({'error': 'Game not found'}), 404

    data = request.get_json(silent=True) or {}
    if not isinstance(data.get('x'), int) or \
       not isinstance(data.get('y'), int) or \
       data.get('action') not in ACTIONS:
        return jsonify({'error': 'Invalid move request'}), 400

    move = MoveRequest(x=data['x'], y=data['y'], action=data['action'])

    try:
        with games_lock:
            if move.action == 'reveal':
                batch = controller.reveal(move.x, move.y)
            elif move.action == 'flag':
                controller.toggle_flag(move.x, move.y)
                batch = None
            else:
                batch = controller.chord(move.x, move.y)
            response = {'gameState': serialize_game_state(game_id, controller)}
    except InvalidCoordinateError as error:
        return jsonify({'error': str(error)}), 400
    except Exception as error:
        logger.error(f"Error making move: {error}")
        return jsonify({'error': 'Failed to make move'}), 500

    if batch is not None:
        response['revealed'] = {
            'cellIndices': batch.cell_indices,
            'adjacentMines': batch.adjacent_mines,
        }
    return jsonify(response)


@app.route('/api/games/<game_id>/restart', methods=['POST'])
def restart_game(game_id):
    """Restart game, optionally with another difficulty."""
    controller = find_game(game_id)
    if controller is None:
        return jsonify({'error': 'Game not found'}), 404

    data = request.get_json(silent=True) or {}
    difficulty = controller.session.difficulty
    if 'difficulty' in data:
        difficulty = parse_difficulty(data)
        if difficulty is None:
            return jsonify({'error': 'Invalid difficulty'}), 400

    try:
        with games_lock:
            controller.new_game(difficulty)
            state = serialize_game_state(game_id, controller)
    except Exception as error:
        logger.error(f"Error restarting game: {error}")
        return jsonify({'error': 'Failed to restart game'}), 500

    return jsonify({'gameState': state})


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'OK',
        'ledger': ledger is not None,
        'timestamp': datetime.now().isoformat()
    })


def main():
    """Start the Flask server."""
    global ledger
    try:
        if os.getenv("LEDGER_OFFLINE", "").lower() in ("1", "true", "yes"):
            logger.warning("LEDGER_OFFLINE set, games will not be recorded")
        else:
            ledger = TemporalLedgerClient.connect()
            logger.info("Make sure the ledger worker is running: python -m ledgersweeper.worker")

        port = int(os.getenv("PORT", 3000))
        logger.info(f"Minesweeper server running on http://localhost:{port}")
        try:
            app.run(host='0.0.0.0', port=port, debug=False)
        finally:
            if ledger is not None:
                ledger.close()

    except Exception as error:
        logger.error(f"Failed to start server: {error}")
        exit(1)


if __name__ == "__main__":
    main()
