# encoding: utf-8
"""
Streaming endpoints send one JSON document per line, each line ending with
CRLF, over a chunked HTTP response that never ends. Empty lines are sent
from time to time to keep the connection alive.

`StreamParser` rebuilds the documents from raw text chunks, whatever the
chunk boundaries are. `TweetStream` feeds a live HTTP response to a parser
and re-exposes its events along with the connection lifecycle.
"""

import codecs
import json
import time
from collections import deque

import requests
from urllib3.exceptions import ReadTimeoutError

from .errors import StreamParseError, TwitterError
from .response import wrap_response
from .settings import resolve

CRLF = '\r\n'
KEEP_ALIVE_TIMEOUT = 120.0

# In seconds
BASIC_RETRIES_ATTEMPT = [5, 15, 30, 60, 90, 120, 180, 300, 600, 900]

PARSED_DATA = 'parsed data'
PARSE_ERROR = 'parse error'


class EventEmitter(object):

    def __init__(self):
        self._handlers = {}

    def on(self, event, handler):
        self._handlers.setdefault(event, []).append(handler)
        return self

    def off(self, event, handler):
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)
        return self

    def emit(self, event, *args):
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            handler(*args)
        return bool(handlers)

    def listeners(self, event):
        return list(self._handlers.get(event, []))

    def remove_all_listeners(self):
        self._handlers = {}


class StreamParser(EventEmitter):
    """
    Push-based parser for CRLF-delimited JSON records.

    Every complete record pushed emits `PARSED_DATA` with the decoded value,
    or `PARSE_ERROR` with a `StreamParseError` if it is not valid JSON. Empty
    records (keep-alives) are skipped silently. Whatever follows the last
    CRLF is kept for the next `push`.
    """

    def __init__(self, settings=None):
        super(StreamParser, self).__init__()
        self.settings = resolve(settings)
        self.log = self.settings.get_logger(__name__)
        self.buf = ""
        self._scan_from = 0

    def push(self, chunk):
        buf = self.buf + chunk
        start = 0
        end = buf.find(CRLF, self._scan_from)
        while end != -1:
            record = buf[start:end]
            start = end + len(CRLF)
            if record:
                self._parse(record)
            end = buf.find(CRLF, start)

        self.buf = buf[start:]
        # A trailing '\r' may be completed by the next chunk.
        self._scan_from = max(len(self.buf) - 1, 0)

    def _parse(self, record):
        try:
            payload = json.loads(record)
        except ValueError as e:
            error = StreamParseError(record, e)
            self.log.warning("%s", error)
            self.emit(PARSE_ERROR, error)
            return
        self.emit(PARSED_DATA, payload)

    def reset(self):
        self.buf = ""
        self._scan_from = 0


def v2_payload_is_error(payload):
    return isinstance(payload, dict) and 'errors' in payload \
        and 'data' not in payload


def basic_reconnect_retry(try_occurence, error=None):
    """Seconds to wait before reconnection attempt `try_occurence` (from 1)."""
    if try_occurence > len(BASIC_RETRIES_ATTEMPT):
        return 901
    return BASIC_RETRIES_ATTEMPT[try_occurence - 1]


def is_read_timeout(error):
    if isinstance(error, (requests.exceptions.Timeout, ReadTimeoutError)):
        return True
    return any(isinstance(arg, ReadTimeoutError)
               for arg in getattr(error, 'args', ()))


class TweetStream(EventEmitter):
    """
    A live stream of tweets (or other payloads)::

        stream = twitter.v2.stream('tweets/search/stream')
        stream.on(TweetStream.TWEET_PARSE_ERROR, print)

        for tweet in stream:
            # ...do something with this tweet...

    Iterating yields each payload decoded from the stream. Records that
    are not valid JSON are reported through the ``tweet parse error`` and
    ``error`` events and never interrupt the iteration.

    If no byte (not even a keep-alive) is received for `keep_alive_timeout`
    seconds, the connection is considered lost. The read timeout of the
    underlying request enforces it, which is what `Readable.stream` sets up.

    When the connection breaks, the iterator stops after emitting
    ``connection closed``, unless `auto_reconnect` is set: then
    `reconnect` is called to open a fresh response, up to
    `auto_reconnect_retries` times, waiting `next_retry_timeout(n)`
    seconds before the n-th retry.
    """

    DATA = 'data'
    DATA_ERROR = 'data error'
    DATA_KEEP_ALIVE = 'data keep-alive'
    TWEET_PARSE_ERROR = 'tweet parse error'
    ERROR = 'error'
    CONNECTED = 'connected'
    RECONNECTED = 'reconnected'
    CONNECTION_ERROR = 'connection error'
    CONNECTION_LOST = 'connection lost'
    CONNECTION_CLOSED = 'connection closed'
    RECONNECT_ATTEMPT = 'reconnect attempt'
    RECONNECT_ERROR = 'reconnect error'
    RECONNECT_LIMIT_EXCEEDED = 'reconnect limit exceeded'
    CONNECT_ERROR = 'connect error'

    def __init__(self, response=None, reconnect=None, settings=None,
                 payload_is_error=None, auto_reconnect=False,
                 auto_reconnect_retries=5,
                 keep_alive_timeout=KEEP_ALIVE_TIMEOUT,
                 next_retry_timeout=basic_reconnect_retry, sleep=time.sleep):
        super(TweetStream, self).__init__()
        self.response = response
        self.reconnect_factory = reconnect
        self.settings = resolve(settings)
        self.log = self.settings.get_logger(__name__)
        self.payload_is_error = payload_is_error
        self.auto_reconnect = auto_reconnect
        self.auto_reconnect_retries = auto_reconnect_retries
        self.keep_alive_timeout = keep_alive_timeout
        self.next_retry_timeout = next_retry_timeout
        self.sleep = sleep
        self.closed = False

        self._pending = deque()
        self.parser = StreamParser(settings=self.settings)
        self.parser.on(PARSED_DATA, self._on_parsed_data)
        self.parser.on(PARSE_ERROR, self._on_parse_error)

    @property
    def headers(self):
        if self.response is None:
            return {}
        return self.response.headers

    def _on_parsed_data(self, payload):
        if not payload:
            return
        if self.payload_is_error and self.payload_is_error(payload):
            self.emit(self.DATA_ERROR, payload)
            self.emit(self.ERROR, {
                'type': self.DATA_ERROR,
                'error': payload,
                'message': 'Twitter sent a payload that is detected as an '
                           'error payload.',
            })
            return
        payload = wrap_response(payload, self.headers)
        self._pending.append(payload)
        self.emit(self.DATA, payload)

    def _on_parse_error(self, error):
        self.emit(self.TWEET_PARSE_ERROR, error)
        self.emit(self.ERROR, {
            'type': self.TWEET_PARSE_ERROR,
            'error': error,
            'message': 'Failed to parse stream data.',
        })

    def connect(self):
        """Open the initial connection if none was given. Returns self."""
        if self.response is not None:
            return self
        try:
            self._open(initial=True)
        except (TwitterError, requests.exceptions.RequestException) as e:
            self.emit(self.CONNECT_ERROR, e)
            self.emit(self.ERROR, {
                'type': self.CONNECT_ERROR,
                'error': e,
                'message': 'Connect error - Initial connection just failed.',
            })
            if not self.auto_reconnect:
                raise
            if not self._on_connection_error(e):
                raise
        return self

    def _open(self, initial):
        if self.reconnect_factory is None:
            raise TwitterError("This stream has no way to (re)connect.")
        self.response = self.reconnect_factory()
        self.parser.reset()
        self.emit(self.CONNECTED if initial else self.RECONNECTED)

    def feed(self, chunk):
        """Push one decoded text chunk received from the transport."""
        if chunk == CRLF and not self.parser.buf:
            self.emit(self.DATA_KEEP_ALIVE)
            return
        self.parser.push(chunk)

    def __iter__(self):
        if self.response is None:
            self.connect()
        while not self.closed:
            decoder = codecs.getincrementaldecoder("utf-8")('replace')
            try:
                for chunk in self.response.iter_content(chunk_size=None):
                    self.feed(decoder.decode(chunk))
                    while self._pending:
                        yield self._pending.popleft()
                    if self.closed:
                        return
            except (requests.exceptions.RequestException, ReadTimeoutError) as e:
                error = self._on_read_error(e)
            else:
                error = TwitterError("Connection closed by Twitter.")
                self.emit(self.CONNECTION_ERROR, error)
            while self._pending:
                yield self._pending.popleft()
            if self.closed or not self._on_connection_error(error):
                return

    def _on_read_error(self, error):
        if is_read_timeout(error):
            self.log.warning("No data received for %ss, connection lost",
                             self.keep_alive_timeout)
            self.emit(self.CONNECTION_LOST)
        else:
            self.emit(self.CONNECTION_ERROR, error)
            self.emit(self.ERROR, {
                'type': self.CONNECTION_ERROR,
                'error': error,
                'message': 'Connection lost or closed by Twitter.',
            })
        return error

    def _close_response(self):
        if self.response is not None:
            self.response.close()

    def _on_connection_error(self, error):
        """
        Returns True when a new connection is ready to be read.
        """
        self._close_response()
        if not self.auto_reconnect or self.reconnect_factory is None:
            self._closed_by_error()
            return False

        tries = 0
        while tries < self.auto_reconnect_retries:
            if tries:
                self.sleep(self.next_retry_timeout(tries, error))
            self.emit(self.RECONNECT_ATTEMPT, tries)
            self.log.warning("Reconnecting stream, attempt %d", tries + 1)
            try:
                self._open(initial=False)
                return True
            except (TwitterError, requests.exceptions.RequestException) as e:
                error = e
                self.emit(self.RECONNECT_ERROR, tries)
                self.emit(self.ERROR, {
                    'type': self.RECONNECT_ERROR,
                    'error': e,
                    'message': 'Reconnect error - %d attempts made yet.' % (
                        tries + 1),
                })
                tries += 1

        self.emit(self.RECONNECT_LIMIT_EXCEEDED)
        self._closed_by_error()
        return False

    def _closed_by_error(self):
        self.closed = True
        self.emit(self.CONNECTION_CLOSED)

    def close(self):
        """Terminate connection to Twitter."""
        if self.closed:
            return
        self.closed = True
        self.emit(self.CONNECTION_CLOSED)
        self._close_response()

    def destroy(self):
        """Unbind all listeners, and close connection."""
        self.remove_all_listeners()
        self.close()


__all__ = ["StreamParser", "TweetStream", "PARSED_DATA", "PARSE_ERROR"]
