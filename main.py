"""Application entry point - Flask web server."""
import argparse
import json
import logging
import os
import queue

from flask import Flask, Response, jsonify, request, stream_with_context
from werkzeug.utils import secure_filename

from backend import COMMANDS, Api
from mtgcollection import __version__, config
from mtgcollection.errors import CommandError, ValidationError
from mtgcollection.events import IMPORT_PROGRESS
from mtgcollection.logging_setup import setup_logging

logger = logging.getLogger('mtgcollection.server')

EVENTS = frozenset({IMPORT_PROGRESS})
KEEPALIVE_SECONDS = 15


def _error(e: Exception):
    if isinstance(e, CommandError):
        if e.status_code >= 500:
            logger.error("%s failed: %s", request.path, e.message)
        else:
            logger.info("%s rejected: %s", request.path, e.message)
        return jsonify({'error': e.message}), e.status_code
    logger.exception("Unhandled error in %s", request.path)
    return jsonify({'error': str(e)}), 500


def create_app(api: Api | None = None) -> Flask:
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_BYTES
    app.config['UPLOAD_FOLDER'] = str(config.UPLOAD_DIR)
    app.config['SECRET_KEY'] = config.SECRET_KEY or os.urandom(24).hex()
    app.extensions['mtg_api'] = api = api or Api()

    @app.route('/')
    def index():
        return jsonify({'name': 'mtg-collection-manager', 'version': __version__,
                        'commands': sorted(COMMANDS)})

    # File upload endpoint for CSV imports
    @app.route('/api/upload_csv', methods=['POST'])
    def upload_csv():
        if 'file' not in request.files:
            return jsonify({'error': 'No file provided'}), 400
        file = request.files['file']
        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400
        if not file.filename.lower().endswith('.csv'):
            return jsonify({'error': 'Invalid file type'}), 400
        os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)
        filepath = os.path.join(app.config['UPLOAD_FOLDER'], secure_filename(file.filename))
        file.save(filepath)
        try:
            with open(filepath, encoding='utf-8-sig', errors='replace') as f:
                content = f.read()
            return jsonify(api.import_collection(content))
        except Exception as e:
            return _error(e)
        finally:
            # Clean up uploaded file
            if os.path.exists(filepath):
                os.remove(filepath)

    @app.route('/api/events/<event>')
    def events(event):
        if event not in EVENTS:
            return jsonify({'error': f"Unknown event: {event}"}), 404
        q: queue.Queue = queue.Queue()
        unlisten = api.listen(event, q.put)

        def stream():
            try:
                while True:
                    try:
                        payload = q.get(timeout=KEEPALIVE_SECONDS)
                    except queue.Empty:
                        yield ": keepalive\n\n"
                        continue
                    yield f"event: {event}\ndata: {json.dumps(payload)}\n\n"
            finally:
                unlisten()

        return Response(stream_with_context(stream()), mimetype='text/event-stream',
                        headers={'Cache-Control': 'no-cache'})

    # Every backend command is reachable as /api/<command>
    @app.route('/api/<command>', methods=['GET', 'POST'])
    def api_proxy(command):
        if request.method == 'POST':
            params = request.get_json(silent=True)
            if params is None and request.data:
                return _error(ValidationError("Request body must be JSON"))
            params = params or {}
        else:
            params = request.args.to_dict()
        if not isinstance(params, dict):
            return _error(ValidationError("Arguments must be a JSON object"))
        try:
            return jsonify(api.invoke(command, params))
        except Exception as e:
            return _error(e)

    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description='MTG collection manager server')
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=config.PORT)
    parser.add_argument('-v', '--verbose', action='count', default=0)
    parser.add_argument('--log-file')
    parser.add_argument('--scanner', action='store_true', help='open the scanner window instead')
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.log_file)
    if args.scanner:
        import scanner_gui
        return scanner_gui.main(['-' + 'v' * args.verbose] if args.verbose else [])
    app = create_app()
    logger.warning("Serving on http://%s:%s", args.host, args.port)
    app.run(host=args.host, port=args.port, threaded=True)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
