"""
api_server.py
~~~~~~~~~~~~~

Flask-based REST API server with WebSocket support for neural network training.

This module provides endpoints for:
- Creating and managing networks from a JSON configuration
- Running predictions and reading weights
- Training networks in the background with real-time progress via WebSockets
- Tuning input significance/shift with the noise filtering search
- Persisting networks to/from SQLite database

The server uses:
- Flask for REST API endpoints
- Flask-SocketIO for WebSocket communication
- Gevent for async background tasks
- SQLite for network persistence
"""

import os
import sys
import uuid
import logging
from typing import Any, Dict, List, Optional

import gevent
from flask import Flask, request, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

from deepnet.network import Config, InputDimensionError, Network
from deepnet.persist import config_from_dict, config_to_dict
from deepnet.training import (
    Adam,
    BatchTrainer,
    Example,
    SGD,
    Solver,
    StatsPrinter,
    Trainer,
    calculate_loss,
    filter_noise,
)
from deepnet.weights import new_normal, new_uniform
from deepnet.model_persistence import (
    save_network,
    load_network,
    list_saved_networks,
    delete_network,
    delete_old_networks
)

# ============================================================================
# LOGGING SETUP
# ============================================================================

def configure_logging() -> None:
    """
    Set up logging based on environment.

    - In production: Show fewer logs (less noise) but keep important logs
    - In development: Show more detailed logs for debugging
    """
    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    is_production = os.getenv('FLASK_ENV') == 'production'

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    if is_production:
        for logger_name in ['socketio', 'engineio', 'engineio.server',
                            'socketio.server', 'werkzeug']:
            logging.getLogger(logger_name).setLevel(logging.WARNING)
        logging.getLogger('deepnet').setLevel(logging.INFO)
    else:
        logging.getLogger('socketio').setLevel(logging.INFO)
        logging.getLogger('engineio').setLevel(logging.INFO)


configure_logging()
logger = logging.getLogger(__name__)

# ============================================================================
# FLASK APP SETUP
# ============================================================================

app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": "*"}})

is_production = os.getenv('FLASK_ENV') == 'production'

# Directory holding the SQLite model store
MODEL_DIR = os.getenv('MODEL_DIR', 'models')

socketio = SocketIO(
    app,
    cors_allowed_origins="*",
    async_mode='gevent',
    logger=not is_production,
    engineio_logger=not is_production,
    ping_timeout=60,
    ping_interval=25
)

# ============================================================================
# GLOBAL STATE
# ============================================================================

# Networks currently loaded in memory: {network_id: network_info}
active_networks: Dict[str, Dict[str, Any]] = {}

# Training jobs being tracked: {job_id: job_info}
training_jobs: Dict[str, Dict[str, Any]] = {}


def reload_saved_networks() -> None:
    """
    Reload all saved networks from the database into memory.

    Called at startup to restore networks that were saved before the
    application was restarted.
    """
    saved_networks = list_saved_networks(MODEL_DIR)

    if not saved_networks:
        logger.info("No saved networks to reload")
        return

    loaded_count = 0
    for net_info in saved_networks:
        network_id = net_info['network_id']
        net = load_network(network_id, MODEL_DIR)
        if net is None:
            logger.warning(f"Failed to load network {network_id}")
            continue
        active_networks[network_id] = {
            'network': net,
            'config': net_info['config'],
            'trained': net_info['trained'],
            'loss': net_info['loss']
        }
        loaded_count += 1

    logger.info(f"Reloaded {loaded_count} network(s) from database")


reload_saved_networks()

# ============================================================================
# BACKGROUND TASKS
# ============================================================================

# Flag to ensure cleanup task only starts once
_cleanup_task_started = False


def cleanup_old_networks_task() -> None:
    """
    Background task that runs on startup, then every 24 hours to delete
    networks older than 2 days and drop finished training jobs.
    """
    while True:
        try:
            deleted_count = delete_old_networks(days=2, model_dir=MODEL_DIR)

            if deleted_count > 0:
                saved_ids = {net['network_id'] for net in list_saved_networks(MODEL_DIR)}
                stale = [
                    nid for nid, info in active_networks.items()
                    if info['trained'] and nid not in saved_ids
                ]
                for nid in stale:
                    del active_networks[nid]
                    logger.info(f"Removed network {nid} from memory (deleted from database)")
            elif deleted_count < 0:
                logger.error("Cleanup returned error code")

            cleanup_finished_training_jobs()

            gevent.sleep(86400)

        except Exception as e:
            logger.exception(f"Error during network cleanup: {e}")
            gevent.sleep(3600)


def cleanup_finished_training_jobs() -> None:
    """Remove completed or failed training jobs from memory."""
    finished_statuses = {'completed', 'failed'}
    jobs_to_remove = [
        job_id for job_id, job_info in training_jobs.items()
        if job_info.get('status') in finished_statuses
    ]

    for job_id in jobs_to_remove:
        del training_jobs[job_id]

    if jobs_to_remove:
        logger.info(f"Cleaned up {len(jobs_to_remove)} finished training job(s)")


def start_cleanup_task() -> None:
    """
    Start the background cleanup task.

    This function is idempotent - calling it multiple times has no effect.
    """
    global _cleanup_task_started

    if _cleanup_task_started:
        logger.debug("Cleanup task already started, skipping")
        return

    _cleanup_task_started = True
    logger.info("Starting cleanup task (runs immediately, then every 24 hours)")
    gevent.spawn(cleanup_old_networks_task)


start_cleanup_task()

# ============================================================================
# REQUEST PARSING
# ============================================================================

def build_config(data: Dict[str, Any]) -> Config:
    """
    Build a network Config from a request body.

    ``weight`` is optional: ``{'kind': 'uniform' | 'normal', 'stddev': .., 'mean': ..}``.

    Raises:
        KeyError, ValueError: On missing or invalid fields
    """
    weight = None
    weight_options = data.get('weight')
    if weight_options:
        kind = weight_options.get('kind', 'uniform')
        stddev = float(weight_options.get('stddev', 0.5))
        mean = float(weight_options.get('mean', 0.0))
        if kind == 'uniform':
            weight = new_uniform(stddev, mean)
        elif kind == 'normal':
            weight = new_normal(stddev, mean)
        else:
            raise ValueError(f"Unknown weight initializer: {kind}")
    return config_from_dict(data, weight=weight)


def build_solver(data: Dict[str, Any]) -> Solver:
    """Build a solver from ``{'kind': 'sgd' | 'adam', ...hyper-parameters}``."""
    kind = data.get('kind', 'sgd')
    if kind == 'sgd':
        return SGD(
            lr=float(data.get('lr', 0.01)),
            momentum=float(data.get('momentum', 0.0)),
            decay=float(data.get('decay', 0.0)),
            nesterov=bool(data.get('nesterov', False))
        )
    if kind == 'adam':
        return Adam(
            lr=float(data.get('lr', 0.001)),
            beta=float(data.get('beta', 0.9)),
            beta2=float(data.get('beta2', 0.999)),
            epsilon=float(data.get('epsilon', 1e-8))
        )
    raise ValueError(f"Unknown solver: {kind}")


def parse_examples(items: Optional[List[Dict[str, Any]]]) -> List[Example]:
    """Convert ``[{'input': [...], 'response': [...]}, ...]`` into Examples."""
    if not items:
        return []
    return [
        Example(
            input=[float(x) for x in item['input']],
            response=[float(y) for y in item['response']]
        )
        for item in items
    ]


def get_active_network(network_id: str) -> Optional[Network]:
    info = active_networks.get(network_id)
    return info['network'] if info else None

# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.route('/api/status', methods=['GET'])
def get_status():
    """Return server status and statistics."""
    active_statuses = ('pending', 'training')
    active_training = sum(
        1 for job in training_jobs.values()
        if job.get('status') in active_statuses
    )

    return jsonify({
        'status': 'online',
        'active_networks': len(active_networks),
        'training_jobs': active_training
    }), 200


@app.route('/api/networks', methods=['POST'])
def create_network():
    """
    Create a new neural network.

    Request body:
        {
            'inputs': 2,
            'layout': [3, 1],
            'activation': 'sigmoid',     # or one name per layer
            'mode': 'binary',            # optional
            'loss': 'none',              # optional
            'bias': true,                # optional
            'weight': {'kind': 'uniform', 'stddev': 0.5, 'mean': 0}
        }

    Returns:
        JSON with network_id, config, and status
    """
    data = request.get_json(silent=True) or {}

    try:
        config = build_config(data)
    except (KeyError, ValueError, TypeError) as e:
        logger.warning(f"Invalid network configuration requested: {data}: {e}")
        return jsonify({'error': f'Invalid configuration: {e}'}), 400

    network_id = str(uuid.uuid4())
    net = Network(config)
    config_data = config_to_dict(config)

    active_networks[network_id] = {
        'network': net,
        'config': config_data,
        'trained': False,
        'loss': None
    }

    logger.info(f"Created network {network_id} with layout {list(config.layout)}")

    return jsonify({
        'network_id': network_id,
        'config': config_data,
        'num_weights': net.num_weights(),
        'status': 'created'
    }), 201


@app.route('/api/networks/<network_id>/predict', methods=['POST'])
def predict(network_id: str):
    """
    Run a forward pass.

    Request body:
        {'input': [0.0, 1.0]}
    """
    net = get_active_network(network_id)
    if net is None:
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    try:
        inputs = [float(x) for x in data['input']]
        output = net.predict(inputs)
    except InputDimensionError as e:
        return jsonify({'error': str(e)}), 400
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid input: {e}'}), 400

    return jsonify({'network_id': network_id, 'output': output}), 200


@app.route('/api/networks/<network_id>/weights', methods=['GET'])
def get_weights(network_id: str):
    """Return the weights as [layer][neuron][synapse] with the input scalars."""
    net = get_active_network(network_id)
    if net is None:
        return jsonify({'error': 'Network not found'}), 404

    return jsonify({
        'network_id': network_id,
        'weights': net.weights(),
        'significance': net.significance.tolist(),
        'shift': net.shift.tolist()
    }), 200


@app.route('/api/networks/<network_id>/train', methods=['POST'])
def train_network(network_id: str):
    """
    Start training a network in the background.

    Request body:
        {
            'examples': [{'input': [...], 'response': [...]}, ...],
            'validation': [...],          # optional, defaults to examples
            'iterations': 100,
            'batch_size': 0,              # > 0 selects the batch trainer
            'parallelism': 1,
            'verbosity': 10,
            'solver': {'kind': 'sgd', 'lr': 0.5, 'momentum': 0.1}
        }

    Returns:
        JSON with job_id, network_id, and status
    """
    if network_id not in active_networks:
        logger.warning(f"Training requested for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    iterations = data.get('iterations', 100)
    batch_size = data.get('batch_size', 0)
    parallelism = data.get('parallelism', 1)
    verbosity = data.get('verbosity', 10)

    if not isinstance(iterations, int) or iterations < 1:
        return jsonify({'error': 'iterations must be a positive integer'}), 400
    if not isinstance(batch_size, int) or batch_size < 0:
        return jsonify({'error': 'batch_size must be a non-negative integer'}), 400
    if not isinstance(parallelism, int) or parallelism < 1:
        return jsonify({'error': 'parallelism must be a positive integer'}), 400
    if not isinstance(verbosity, int) or verbosity < 0:
        return jsonify({'error': 'verbosity must be a non-negative integer'}), 400

    try:
        examples = parse_examples(data.get('examples'))
        validation = parse_examples(data.get('validation')) or examples
        solver = build_solver(data.get('solver') or {})
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid training request: {e}'}), 400

    if not examples:
        return jsonify({'error': 'examples must not be empty'}), 400

    job_id = str(uuid.uuid4())

    training_jobs[job_id] = {
        'network_id': network_id,
        'status': 'pending',
        'progress': 0,
        'iterations': iterations
    }

    logger.info(
        f"Created training job {job_id} for network {network_id}: "
        f"iterations={iterations}, batch_size={batch_size}, "
        f"parallelism={parallelism}, solver={solver!r}"
    )

    socketio.start_background_task(
        train_network_task,
        network_id, job_id, examples, validation, iterations,
        solver, batch_size, parallelism, verbosity
    )

    return jsonify({
        'job_id': job_id,
        'network_id': network_id,
        'status': 'training_started'
    }), 202


def train_network_task(
    network_id: str,
    job_id: str,
    examples: List[Example],
    validation: List[Example],
    iterations: int,
    solver: Solver,
    batch_size: int,
    parallelism: int,
    verbosity: int
) -> None:
    """
    Background task that trains a network.

    Sends progress updates via WebSocket at the reporting cadence.
    """
    net = active_networks[network_id]['network']

    def on_progress(row: Dict[str, Any]) -> None:
        """Called by the stats printer at every progress report."""
        progress = (row['iteration'] / iterations) * 100

        training_jobs[job_id]['status'] = 'training'
        training_jobs[job_id]['progress'] = progress
        training_jobs[job_id]['loss'] = row['loss']

        socketio.emit('training_update', {
            'job_id': job_id,
            'network_id': network_id,
            'iteration': row['iteration'],
            'total_iterations': iterations,
            'loss': row['loss'],
            'accuracy': row.get('accuracy'),
            'elapsed_time': row['elapsed'],
            'progress': progress
        })

        # Let gevent send the message immediately
        gevent.sleep(0)

    printer = StatsPrinter(callback=on_progress)
    if batch_size > 0:
        trainer = BatchTrainer(solver, verbosity, batch_size, parallelism, printer=printer)
    else:
        trainer = Trainer(solver, verbosity, printer=printer)

    try:
        logger.info(f"Starting training for job {job_id}")
        training_jobs[job_id]['status'] = 'training'

        trainer.train(net, examples, validation, iterations)
        loss = calculate_loss(net, validation)

        active_networks[network_id]['trained'] = True
        active_networks[network_id]['loss'] = loss

        training_jobs[job_id]['status'] = 'completed'
        training_jobs[job_id]['loss'] = loss
        training_jobs[job_id]['progress'] = 100

        save_network(net, network_id, model_dir=MODEL_DIR, trained=True, loss=loss)

        logger.info(f"Training completed for job {job_id}: loss {loss:.6f}")

        socketio.emit('training_complete', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'completed',
            'loss': float(loss),
            'progress': 100
        })
        gevent.sleep(0)

    except Exception as e:
        logger.exception(f"Training failed for job {job_id}: {e}")

        training_jobs[job_id]['status'] = 'failed'
        training_jobs[job_id]['error'] = str(e)

        socketio.emit('training_error', {
            'job_id': job_id,
            'network_id': network_id,
            'status': 'failed',
            'error': str(e)
        })
        gevent.sleep(0)


@app.route('/api/training/<job_id>', methods=['GET'])
def get_training_status(job_id: str):
    """Get the current status of a training job."""
    if job_id in training_jobs:
        return jsonify(training_jobs[job_id]), 200

    logger.warning(f"Status requested for non-existent job: {job_id}")
    return jsonify({'error': 'Training job not found'}), 404


@app.route('/api/networks/<network_id>/filter_noise', methods=['POST'])
def filter_noise_endpoint(network_id: str):
    """
    Run the noise filtering search.

    Request body:
        {
            'examples': [...],        # validation examples
            'significance': 0.1,
            'shift': 0.1,
            'steps': 10
        }

    Returns:
        JSON with the initial and final loss and the tuned vectors
    """
    net = get_active_network(network_id)
    if net is None:
        return jsonify({'error': 'Network not found'}), 404

    data = request.get_json(silent=True) or {}
    steps = data.get('steps', 1)
    if not isinstance(steps, int) or steps < 1:
        return jsonify({'error': 'steps must be a positive integer'}), 400

    try:
        examples = parse_examples(data.get('examples'))
        significance = float(data.get('significance', 0.0))
        shift = float(data.get('shift', 0.0))
        if not examples:
            return jsonify({'error': 'examples must not be empty'}), 400

        initial = calculate_loss(net, examples)
        loss = initial
        for _ in range(steps):
            loss = filter_noise(net, examples, significance, shift)
    except InputDimensionError as e:
        return jsonify({'error': str(e)}), 400
    except (KeyError, TypeError, ValueError) as e:
        return jsonify({'error': f'Invalid request: {e}'}), 400

    logger.info(f"Noise filtering on {network_id}: loss {initial:.6f} -> {loss:.6f}")

    return jsonify({
        'network_id': network_id,
        'initial_loss': initial,
        'loss': loss,
        'significance': net.significance.tolist(),
        'shift': net.shift.tolist()
    }), 200


@app.route('/api/networks', methods=['GET'])
def list_networks():
    """List all available networks (both in-memory and saved to disk)."""
    in_memory = [
        {
            'network_id': nid,
            'config': info['config'],
            'trained': info['trained'],
            'loss': info['loss'],
            'status': 'in_memory'
        }
        for nid, info in active_networks.items()
    ]

    in_memory_ids = set(active_networks.keys())
    saved_only = []
    for net in list_saved_networks(MODEL_DIR):
        if net['network_id'] not in in_memory_ids:
            net['status'] = 'saved'
            saved_only.append(net)

    logger.debug(f"Listing networks: {len(in_memory)} in memory, {len(saved_only)} saved")

    return jsonify({'networks': in_memory + saved_only}), 200


@app.route('/api/networks/<network_id>', methods=['DELETE'])
def delete_network_endpoint(network_id: str):
    """Delete a network from both memory and disk."""
    deleted_from_memory = False
    if network_id in active_networks:
        del active_networks[network_id]
        deleted_from_memory = True

    deleted_from_disk = delete_network(network_id, MODEL_DIR)

    if not deleted_from_memory and not deleted_from_disk:
        logger.warning(f"Delete attempted for non-existent network: {network_id}")
        return jsonify({'error': 'Network not found'}), 404

    logger.info(f"Deleted network {network_id}: memory={deleted_from_memory}, disk={deleted_from_disk}")

    return jsonify({
        'network_id': network_id,
        'deleted_from_memory': deleted_from_memory,
        'deleted_from_disk': deleted_from_disk
    }), 200


@app.route('/api/networks', methods=['DELETE'])
def delete_all_networks():
    """Delete all networks from both memory and disk."""
    in_memory_ids = list(active_networks.keys())
    saved_ids = [net['network_id'] for net in list_saved_networks(MODEL_DIR)]
    all_network_ids = list(set(in_memory_ids + saved_ids))

    deleted_from_memory_count = 0
    deleted_from_disk_count = 0

    for network_id in all_network_ids:
        if network_id in active_networks:
            del active_networks[network_id]
            deleted_from_memory_count += 1

        if delete_network(network_id, MODEL_DIR):
            deleted_from_disk_count += 1

    logger.info(
        f"Deleted all networks: {len(all_network_ids)} total, "
        f"{deleted_from_memory_count} from memory, {deleted_from_disk_count} from disk"
    )

    return jsonify({
        'deleted_count': len(all_network_ids),
        'deleted_from_memory': deleted_from_memory_count,
        'deleted_from_disk': deleted_from_disk_count,
        'message': f'Successfully deleted {len(all_network_ids)} network(s)'
    }), 200


@app.route('/api/networks/cleanup', methods=['POST'])
def cleanup_old_networks_endpoint():
    """
    Manually trigger cleanup of networks older than specified days.

    Request body (optional):
        {'days': 2}  # defaults to 2
    """
    data = request.get_json(silent=True) or {}
    days = data.get('days', 2)

    if not isinstance(days, (int, float)) or days < 0:
        return jsonify({'error': 'days must be a non-negative number'}), 400

    deleted_count = delete_old_networks(days=int(days), model_dir=MODEL_DIR)

    if deleted_count == -1:
        return jsonify({'error': 'Error occurred during cleanup'}), 500

    logger.info(f"Manual cleanup: deleted {deleted_count} network(s) older than {days} day(s)")

    return jsonify({
        'deleted_count': deleted_count,
        'days': days,
        'message': f'Successfully deleted {deleted_count} network(s) older than {days} day(s)'
    }), 200

# ============================================================================
# SERVER STARTUP
# ============================================================================

if __name__ == '__main__':
    is_cloud = bool(os.environ.get('PORT'))
    port = int(os.environ.get('PORT', 8000))

    if is_cloud:
        logger.info(f"Starting server in production mode on port {port}")
    else:
        logger.info(f"Starting server at http://localhost:{port}/")

    try:
        socketio.run(
            app,
            host='0.0.0.0',
            port=port,
            debug=not is_cloud,
            use_reloader=False
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use.")
            sys.exit(1)
        else:
            raise
