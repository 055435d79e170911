# encoding: utf-8
"""
The request layer: signs, sends and decodes every call made to Twitter.

Simple API Requests
===================

Build a `Twitter` object and pick an API version::

    from tweetkit import Twitter, OAuth
    t = Twitter(auth=OAuth(consumer_key, consumer_secret,
                           token, token_secret))

    # GET https://api.twitter.com/2/tweets/search/recent?query=nasa
    t.v2.get('tweets/search/recent', query={'query': 'nasa'})

    # Post a tweet
    t.v2.post('tweets', body={'text': "Hello from tweetkit"})

A path segment starting with a colon is filled from `url_params`::

    t.v2.get('users/:id/tweets', url_params={'id': 12})

Results
=======

Calls return decoded JSON, wrapped in `TwitterResponse` subclasses of
dict, list or str that also carry the response `headers`, `status_code`
and `rate_limit`. A non 2xx status raises `TwitterHTTPError`; a request
that never got an answer raises `TwitterRequestError`.

Body encoding
=============

v2 endpoints and a handful of v1.1 ones take JSON bodies, media upload
takes multipart form data, everything else takes URL-encoded forms. The
mode is guessed from the URL (see `auto_detect_body_mode`) unless a
`body_mode` is given.

Read-only clients
=================

``Twitter(read_only=True)`` exposes `Readable` objects only: `get`,
`stream` and `paginate`. The default exposes `Writable` ones, which add
`post`, `put`, `patch` and `delete`.
"""

import json
from time import sleep, time

import certifi
import requests

from .auth import NoAuth
from .errors import (
    MissingCredentialsError, TwitterError, TwitterHTTPError,
    TwitterRequestError)
from .oauth import OAuth
from .oauth2 import OAuth2, get_code_challenge, get_code_verifier
from .page_shapes import get_family
from .paginator import Page, Paginator
from .ratelimit import RateLimit, RateLimitStore
from .response import wrap_response
from .settings import resolve
from .stream import KEEP_ALIVE_TIMEOUT, TweetStream, v2_payload_is_error
from .util import (
    base_url, deparam, deparam_url, percent_encode, random_string,
    stringify_query)

API_DOMAIN = 'api.twitter.com'
UPLOAD_DOMAIN = 'upload.twitter.com'
OAUTH2_AUTHORIZE_URL = 'https://twitter.com/i/oauth2/authorize'

BODY_METHODS = ('POST', 'PUT', 'PATCH')

JSON_1_1_ENDPOINTS = frozenset([
    'direct_messages/events/new.json',
    'direct_messages/welcome_messages/new.json',
    'direct_messages/welcome_messages/rules/new.json',
    'media/metadata/create.json',
    'collections/entries/curate.json',
])


def make_url(url, params):
    """
    Fill the ``:name`` segments of `url` from `params`. Returns the URL
    and the params that were not used.
    """
    remaining_params = dict(params or {})
    real_parts = []
    for part in url.split('/'):
        if part.startswith(':'):
            if part[1:] not in remaining_params:
                raise TwitterError("Missing parameter for '{}'".format(part))
            part = str(remaining_params.pop(part[1:]))
        real_parts.append(part)
    return '/'.join(real_parts), remaining_params


def _split_url(url):
    rest = url.partition('://')[2]
    host, _, path = rest.partition('/')
    return host, '/' + path


def auto_detect_body_mode(url):
    host, path = _split_url(base_url(url))
    if path.startswith('/2/') or path.startswith('/labs/2/'):
        # oauth2 endpoints are form encoded
        if path.startswith('/2/oauth2'):
            return 'url'
        return 'json'

    if host == UPLOAD_DOMAIN:
        if path == '/1.1/media/upload.json':
            return 'form-data'
        return 'json'

    endpoint = path.split('/1.1/', 1)[-1]
    if endpoint in JSON_1_1_ENDPOINTS:
        return 'json'
    return 'url'


def _flatten_query(query):
    flat = {}
    for key, value in stringify_query(query).items():
        if isinstance(value, list):
            value = ','.join(value)
        flat[key] = value
    return flat


def encode_query(query):
    return '&'.join(
        '%s=%s' % (percent_encode(k), percent_encode(v))
        for k, v in query.items())


def parse_oauth_tokens(result):
    """Decode the form encoded answer of the OAuth 1.0a token endpoints."""
    tokens = deparam(str(result))
    if not tokens.get('oauth_token') or not tokens.get('oauth_token_secret'):
        raise TwitterError("Twitter sent no OAuth token: %r" % (result,))
    return tokens


def encode_body(body, headers, mode):
    """
    Encode `body` for `mode`, setting the content type in `headers`.
    Returns ``(data, files)`` ready for `requests`.
    """
    if isinstance(body, (bytes, bytearray)):
        return body, None
    if mode == 'json':
        headers.setdefault('Content-Type', 'application/json;charset=UTF-8')
        return json.dumps(body), None
    if mode == 'url':
        headers.setdefault(
            'Content-Type', 'application/x-www-form-urlencoded;charset=UTF-8')
        return encode_query(_flatten_query(body)), None
    if mode == 'form-data':
        # requests sets the multipart content type and boundary itself
        files = {}
        for key, value in body.items():
            if value is None:
                continue
            if isinstance(value, (bytes, bytearray)) or hasattr(value, 'read'):
                files[key] = ('blob', value, 'application/octet-stream')
            else:
                files[key] = (None, str(value))
        return None, files
    raise TwitterError("Unknown body mode %r" % (mode,))


class RequestMaker(object):
    """
    Sends signed requests with a `requests.Session`.

    `rate_limit_saver`, if given, is called with
    ``(endpoint, method, rate_limit)`` after every response carrying rate
    limit headers. With `retry`, requests answered with 429 or 50x are
    sent again after a delay; an int caps the number of retries.
    """

    TWITTER_UNAVAILABLE_WAIT = 30  # delay after HTTP codes 502, 503 or 504

    def __init__(self, auth=None, settings=None, rate_limit_saver=None,
                 session=None, timeout=None, retry=False, sleep=sleep):
        self.auth = auth if auth is not None else NoAuth()
        self.settings = resolve(settings)
        self.log = self.settings.get_logger(__name__)
        self.rate_limit_saver = rate_limit_saver
        if session is None:
            session = requests.Session()
            session.verify = certifi.where()
        self.session = session
        self.timeout = timeout
        self.retry = retry
        self.sleep = sleep

    def prepare(self, method, url, query=None, body=None, body_mode=None,
                url_params=None):
        method = method.upper()
        if not url.startswith('http'):
            url = 'https://' + url
        url, _ = make_url(url, url_params)

        full_query = deparam_url(url)
        full_query.update(query or {})
        query = _flatten_query(full_query)
        url = base_url(url)

        body = body if body is not None else {}
        if isinstance(body, dict):
            body = dict((k, v) for k, v in body.items() if v is not None)
        mode = body_mode or auto_detect_body_mode(url)
        if mode == 'url' and isinstance(body, dict):
            # sign the values exactly as they are sent
            body = _flatten_query(body)

        body_in_signature = method in BODY_METHODS and mode == 'url'
        headers = self.auth.generate_headers(
            url, method, query=query, body=body,
            body_in_signature=body_in_signature)
        headers = dict(headers)

        data = files = None
        if method in BODY_METHODS:
            data, files = encode_body(body, headers, mode)

        full_url = url
        if query:
            full_url += '?' + encode_query(query)
        return method, url, full_url, headers, data, files

    def send(self, method, url, query=None, body=None, body_mode=None,
             url_params=None, stream=False, timeout=None):
        """
        Send one request and return the decoded, wrapped response. With
        `stream`, the raw `requests.Response` is returned unread.
        """
        args = (method, url, query, body, body_mode, url_params)
        if self.retry:
            return self._send_with_retry(args, query, stream, timeout)
        return self._send(self.prepare(*args), query, stream, timeout)

    def _send(self, prepared, query, stream, timeout):
        method, endpoint, full_url, headers, data, files = prepared
        if self.settings.debug:
            self.log.debug("%s %s", method, full_url)
        try:
            res = self.session.request(
                method, full_url, headers=headers, data=data, files=files,
                stream=stream, timeout=timeout or self.timeout)
        except requests.exceptions.RequestException as e:
            raise TwitterRequestError(e, full_url)

        rate_limit = RateLimit.from_headers(res.headers)
        if rate_limit is not None and self.rate_limit_saver is not None:
            self.rate_limit_saver(endpoint, method, rate_limit)
        if self.settings.debug:
            self.log.debug("Twitter answered %s for %s %s (rate limit: %s)",
                           res.status_code, method, endpoint, rate_limit)

        if not 200 <= res.status_code < 300:
            content = res.content
            res.close()
            raise TwitterHTTPError(
                res.status_code, endpoint, content, headers=res.headers,
                rate_limit=rate_limit, params=query)

        if stream:
            return res
        return self.handle_response(res)

    def handle_response(self, res):
        content_type = res.headers.get('Content-Type', '')
        if content_type in ('image/jpeg', 'image/png'):
            return res
        if not res.content:
            return wrap_response({}, res.headers, res.status_code)
        if 'json' in content_type:
            return wrap_response(res.json(), res.headers, res.status_code)
        return wrap_response(res.text, res.headers, res.status_code)

    def _send_with_retry(self, args, query, stream, timeout):
        retry = self.retry
        while True:
            # every attempt gets a fresh nonce and timestamp
            prepared = self.prepare(*args)
            try:
                return self._send(prepared, query, stream, timeout)
            except TwitterHTTPError as e:
                if e.status_code == 429:
                    # API rate limit reached
                    reset = int(e.headers.get('X-Rate-Limit-Reset', time() + 30))
                    delay = int(reset - time() + 2)  # add some extra margin
                    if delay <= 0:
                        delay = self.TWITTER_UNAVAILABLE_WAIT
                    self.log.warning(
                        "API rate limit reached; waiting for %ds...", delay)
                elif e.status_code in (502, 503, 504):
                    delay = self.TWITTER_UNAVAILABLE_WAIT
                    self.log.warning(
                        "Service unavailable; waiting for %ds...", delay)
                else:
                    raise
                if isinstance(retry, int) and not isinstance(retry, bool):
                    if retry <= 0:
                        raise
                    retry -= 1
                self.sleep(delay)


class Readable(object):
    """
    Read access to one API root (`prefix`, such as
    ``https://api.twitter.com/2/``).
    """

    def __init__(self, maker, prefix):
        self.maker = maker
        self.prefix = prefix

    @property
    def settings(self):
        return self.maker.settings

    @property
    def is_v2(self):
        return self.prefix.rstrip('/').endswith('/2')

    def url(self, endpoint):
        if endpoint.startswith('http'):
            return endpoint
        return self.prefix + endpoint

    def get(self, endpoint, query=None, url_params=None, **kwargs):
        return self.maker.send(
            'GET', self.url(endpoint), query=query, url_params=url_params,
            **kwargs)

    def stream(self, endpoint, query=None, method='GET', body=None,
               url_params=None, auto_connect=True, connect_timeout=None,
               **stream_options):
        """
        Open a streaming endpoint and return a `TweetStream`. Every
        reconnection sends the same request again.
        """
        keep_alive_timeout = stream_options.get(
            'keep_alive_timeout', KEEP_ALIVE_TIMEOUT)

        def open_response():
            return self.maker.send(
                method, self.url(endpoint), query=query, body=body,
                url_params=url_params, stream=True,
                timeout=(connect_timeout, keep_alive_timeout))

        stream_options.setdefault(
            'payload_is_error', v2_payload_is_error if self.is_v2 else None)
        stream = TweetStream(reconnect=open_response,
                             settings=self.settings, **stream_options)
        if auto_connect:
            stream.connect()
        return stream

    def fetch_page(self, endpoint, query_params, shared_params):
        response = self.get(endpoint, query_params, url_params=shared_params)
        return Page(response, response.rate_limit)

    def paginate(self, family, query=None, **shared):
        """
        Fetch the first page of a paginated endpoint family (see
        `tweetkit.page_shapes.FAMILIES`) and return its `Paginator`.
        Keyword arguments fill the ``:id`` like segments of the endpoint.
        """
        family = self._family(family)
        response = self.get(family.endpoint, query, url_params=shared)
        return self.wrap_page(family, response, query, shared)

    def wrap_page(self, family, response, query=None, shared=None):
        family = self._family(family)
        return Paginator(
            response, self.fetch_page, family.shape,
            rate_limit=response.rate_limit,
            query_params=query,
            shared_params=shared,
            endpoint=family.endpoint,
            settings=self.settings)

    def _family(self, family):
        if isinstance(family, str):
            family = get_family(family)
        if (family.api_version == '2') != self.is_v2:
            raise TwitterError(
                "%s is not served under %s" % (family.endpoint, self.prefix))
        return family


class Writable(object):
    """
    Read and write access to one API root. Reads are delegated to the
    wrapped `Readable`.
    """

    def __init__(self, readable):
        self.readable = readable

    def __getattr__(self, k):
        return getattr(self.readable, k)

    def _send(self, method, endpoint, body=None, query=None, **kwargs):
        return self.readable.maker.send(
            method, self.readable.url(endpoint), query=query, body=body,
            **kwargs)

    def post(self, endpoint, body=None, query=None, **kwargs):
        return self._send('POST', endpoint, body, query, **kwargs)

    def put(self, endpoint, body=None, query=None, **kwargs):
        return self._send('PUT', endpoint, body, query, **kwargs)

    def patch(self, endpoint, body=None, query=None, **kwargs):
        return self._send('PATCH', endpoint, body, query, **kwargs)

    def delete(self, endpoint, query=None, **kwargs):
        return self._send('DELETE', endpoint, None, query, **kwargs)


class Twitter(object):
    """
    The Twitter API client.

    Examples::

        from tweetkit import Twitter, OAuth, OAuth2

        t = Twitter(auth=OAuth2(bearer_token=token), read_only=True)

        # v1.1 endpoints end with .json
        t.v1.get('statuses/user_timeline.json',
                 query={'screen_name': 'nasa'})

        # Walk the followers of someone, 1000 at most
        followers = t.v2.paginate('followers', id=783214)
        followers.fetch_last(1000)
        for user in followers:
            print(user['username'])

        # Upload media
        t = Twitter(auth=OAuth(consumer_key, consumer_secret,
                               token, token_secret))
        with open('example.png', 'rb') as imagefile:
            t.upload.post('media/upload.json',
                          body={'media': imagefile.read()})

        # Three-legged OAuth 1.0a
        t = Twitter(auth=OAuth(consumer_key, consumer_secret))
        link = t.generate_auth_link('https://example.com/callback')
        # ... send the user to link['url'], get the verifier back ...
        t = Twitter(auth=OAuth(consumer_key, consumer_secret,
                               link['oauth_token'],
                               link['oauth_token_secret']))
        user = t.login(oauth_verifier)['client']

    `auth`      an `Auth` instance, `NoAuth()` by default
    `settings`  a `Settings` instance, shared by everything the client
                builds
    `read_only` only expose reading methods
    `timeout`   default timeout of every request, in seconds
    `retry`     send again requests answered with 429 or 50x; True for
                no limit, or the number of retries
    `client_id` and `client_secret` are the OAuth2 credentials of the app,
    used by the OAuth2 user context flow. Leave `client_secret` out for
    public clients.
    `domain` and `upload_domain` are the hosts of the REST and upload
    APIs.
    """

    def __init__(self, auth=None, settings=None, read_only=False,
                 domain=API_DOMAIN, upload_domain=UPLOAD_DOMAIN,
                 timeout=None, retry=False, session=None, client_id=None,
                 client_secret=None):
        self.settings = resolve(settings)
        self.rate_limits = RateLimitStore()
        self.maker = RequestMaker(
            auth=auth, settings=self.settings,
            rate_limit_saver=self.rate_limits.save,
            session=session, timeout=timeout, retry=retry)
        self.read_only = read_only
        self.domain = domain
        self.upload_domain = upload_domain
        self.client_id = client_id
        self.client_secret = client_secret

        self.v1 = self._capability('https://%s/1.1/' % domain)
        self.v2 = self._capability('https://%s/2/' % domain)
        self.upload = self._capability('https://%s/1.1/' % upload_domain)

    def _capability(self, prefix):
        readable = Readable(self.maker, prefix)
        if self.read_only:
            return readable
        return Writable(readable)

    @property
    def auth(self):
        return self.maker.auth

    def _spawn(self, auth):
        """A client like this one, signed with `auth`."""
        return self.__class__(
            auth=auth, settings=self.settings, read_only=self.read_only,
            domain=self.domain, upload_domain=self.upload_domain,
            timeout=self.maker.timeout, retry=self.maker.retry,
            session=self.maker.session, client_id=self.client_id,
            client_secret=self.client_secret)

    def _maker_for(self, auth):
        return RequestMaker(
            auth=auth, settings=self.settings,
            rate_limit_saver=self.rate_limits.save,
            session=self.maker.session, timeout=self.maker.timeout,
            retry=self.maker.retry, sleep=self.maker.sleep)

    def _auth_url(self, path):
        return 'https://%s/%s' % (self.domain, path)

    def _consumer_credentials(self):
        key = getattr(self.auth, 'consumer_key', None)
        secret = getattr(self.auth, 'consumer_secret', None)
        if not key or not secret:
            raise MissingCredentialsError(
                'This client must be built with a consumer_key and a '
                'consumer_secret.')
        return key, secret

    # OAuth 1.0a

    def generate_auth_link(self, callback='oob', auth_access_type=None,
                           link_mode='authenticate'):
        """
        Get a request token and the URL the user must visit to grant
        access to the app.

        `callback` is where Twitter sends the user back, ``'oob'`` for
        PIN based authentication. `auth_access_type` may be ``'read'`` or
        ``'write'``. `link_mode` is ``'authenticate'`` or ``'authorize'``.

        Returns Twitter's answer (``oauth_token``, ``oauth_token_secret``,
        ``oauth_callback_confirmed``) with the ``url`` added. Keep the
        token pair: `login` is signed with it.
        """
        key, secret = self._consumer_credentials()
        maker = self._maker_for(OAuth(key, secret, settings=self.settings))
        answer = maker.send(
            'POST', self._auth_url('oauth/request_token'),
            body={'oauth_callback': callback,
                  'x_auth_access_type': auth_access_type})
        tokens = parse_oauth_tokens(answer)
        tokens['url'] = '%s?oauth_token=%s' % (
            self._auth_url('oauth/' + link_mode),
            percent_encode(tokens['oauth_token']))
        return tokens

    def login(self, oauth_verifier):
        """
        Exchange `oauth_verifier` (the PIN, or the parameter Twitter adds
        to the callback) for the user's access token. This client must be
        signed with the request token pair of `generate_auth_link`.

        Returns ``oauth_token``, ``oauth_token_secret``, ``user_id``,
        ``screen_name`` and ``client``, a client signed as the user.
        """
        key, secret = self._consumer_credentials()
        token = getattr(self.auth, 'token', None)
        if not token:
            raise MissingCredentialsError(
                'Sign the client with the request token to log in.')
        answer = self.maker.send(
            'POST', self._auth_url('oauth/access_token'),
            body={'oauth_token': token, 'oauth_verifier': oauth_verifier})
        tokens = parse_oauth_tokens(answer)
        tokens['client'] = self._spawn(OAuth(
            key, secret, tokens['oauth_token'], tokens['oauth_token_secret'],
            settings=self.settings))
        return tokens

    def app_login(self):
        """
        Trade the consumer credentials for an app-only bearer token and
        return a client signed with it.
        """
        key, secret = self._consumer_credentials()
        maker = self._maker_for(
            OAuth2(consumer_key=key, consumer_secret=secret))
        answer = maker.send('POST', self._auth_url('oauth2/token'),
                            body={'grant_type': 'client_credentials'})
        return self._spawn(OAuth2(bearer_token=answer['access_token']))

    # OAuth2 user context, with PKCE

    def _oauth2_client_id(self):
        if not self.client_id:
            raise MissingCredentialsError(
                'This client must be built with a client_id to use OAuth2 '
                'user context.')
        return self.client_id

    def _oauth2_request(self, path, body):
        body = dict(body, client_id=self._oauth2_client_id())
        if self.client_secret:
            auth = OAuth2(consumer_key=self.client_id,
                          consumer_secret=self.client_secret)
        else:
            auth = NoAuth()
        return self._maker_for(auth).send(
            'POST', self._auth_url(path), body=body)

    def _oauth2_login(self, answer):
        return {
            'client': self._spawn(OAuth2(bearer_token=answer['access_token'])),
            'access_token': answer['access_token'],
            'refresh_token': answer.get('refresh_token'),
            'expires_in': answer.get('expires_in'),
            'scope': answer.get('scope', '').split(),
        }

    def generate_oauth2_auth_link(self, redirect_uri, state=None, scope=''):
        """
        Build the URL the user must visit to authorize the app. `scope`
        is a space separated string or a list of scopes.

        Returns ``url``, ``state``, ``code_verifier`` and
        ``code_challenge``. Keep the verifier for `login_with_oauth2` and
        check the state Twitter sends back to `redirect_uri`.
        """
        if state is None:
            state = random_string(32)
        code_verifier = get_code_verifier()
        code_challenge = get_code_challenge(code_verifier)
        if isinstance(scope, (list, tuple)):
            scope = ' '.join(scope)

        query = {
            'response_type': 'code',
            'client_id': self._oauth2_client_id(),
            'redirect_uri': redirect_uri,
            'state': state,
            'code_challenge': code_challenge,
            'code_challenge_method': 's256',
            'scope': scope,
        }
        link = {
            'url': OAUTH2_AUTHORIZE_URL + '?' + encode_query(query),
            'state': state,
            'code_verifier': code_verifier,
            'code_challenge': code_challenge,
        }
        if scope:
            link['scope'] = scope
        return link

    def login_with_oauth2(self, code, code_verifier, redirect_uri):
        """
        Exchange the authorization `code` sent to `redirect_uri` for the
        user's tokens. Returns ``client``, ``access_token``,
        ``refresh_token``, ``expires_in`` and the granted ``scope`` list.
        """
        answer = self._oauth2_request('2/oauth2/token', {
            'code': code,
            'code_verifier': code_verifier,
            'redirect_uri': redirect_uri,
            'grant_type': 'authorization_code',
        })
        return self._oauth2_login(answer)

    def refresh_oauth2_token(self, refresh_token):
        answer = self._oauth2_request('2/oauth2/token', {
            'refresh_token': refresh_token,
            'grant_type': 'refresh_token',
        })
        return self._oauth2_login(answer)

    def revoke_oauth2_token(self, token, token_type='access_token'):
        return self._oauth2_request('2/oauth2/revoke', {
            'token': token,
            'token_type_hint': token_type,
        })


__all__ = ["Twitter", "RequestMaker", "Readable", "Writable",
           "auto_detect_body_mode", "make_url", "parse_oauth_tokens"]
