# mtgcollection/client.py
"""Remote-invocation bridges: ``invoke(command, args)`` plus ``listen(event, handler)``.

``LocalBridge`` calls an in-process ``Api``; ``HttpBridge`` talks to the Flask
server in ``main.py``.
"""
import json
import logging
import threading

import requests

from . import config
from .errors import CommandError, NotFoundError, ScryfallError, ValidationError

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS = {400: ValidationError, 404: NotFoundError, 502: ScryfallError}


class LocalBridge:
    def __init__(self, api):
        self._api = api

    def invoke(self, command: str, args: dict | None = None):
        return self._api.invoke(command, args or {})

    def listen(self, event: str, handler):
        return self._api.listen(event, handler)


class HttpBridge:
    def __init__(self, base_url: str | None = None, timeout: float | None = None,
                 session: requests.Session | None = None):
        self.base_url = (base_url or f"http://127.0.0.1:{config.PORT}").rstrip('/')
        self.timeout = timeout
        self._session = session or requests.Session()

    def invoke(self, command: str, args: dict | None = None):
        url = f"{self.base_url}/api/{command}"
        try:
            resp = self._session.post(url, json=args or {}, timeout=self.timeout)
        except requests.RequestException as e:
            raise CommandError(f"Backend unreachable: {e}") from e
        try:
            body = resp.json()
        except ValueError:
            body = None
        if resp.status_code >= 400:
            message = body.get('error') if isinstance(body, dict) else None
            cls = _ERRORS_BY_STATUS.get(resp.status_code, CommandError)
            raise cls(message or f"HTTP {resp.status_code}")
        return body

    def listen(self, event: str, handler):
        """Follow the server's event stream on a daemon thread; returns an unlisten callable."""
        stop = threading.Event()
        holder = {}

        def run():
            try:
                with self._session.get(f"{self.base_url}/api/events/{event}",
                                       stream=True, timeout=None) as resp:
                    holder['resp'] = resp
                    for line in resp.iter_lines(decode_unicode=True):
                        if stop.is_set():
                            break
                        if not line or not line.startswith('data:'):
                            continue
                        try:
                            payload = json.loads(line[5:].strip())
                        except ValueError:
                            logger.warning("Bad event payload: %r", line)
                            continue
                        handler(payload)
            except requests.RequestException as e:
                if not stop.is_set():
                    logger.warning("Event stream %s closed: %s", event, e)

        thread = threading.Thread(target=run, name=f"events-{event}", daemon=True)
        thread.start()

        def unlisten():
            stop.set()
            resp = holder.get('resp')
            if resp is not None:
                resp.close()

        return unlisten
