"""
Visit the Twitter developer page and create a new application:

    https://developer.twitter.com/en/apps

This will get you a CONSUMER_KEY and CONSUMER_SECRET.

When users run your application they have to authenticate your app
with their Twitter account. A few HTTP calls to twitter are required
to do this (the "OAuth dance"). Once that is done you hold an access
token and token secret for that user, and requests are signed like so::

    auth = OAuth(CONSUMER_KEY, CONSUMER_SECRET, TOKEN, TOKEN_SECRET)
    twitter = Twitter(auth=auth)

During the dance itself, before any user token exists, build the
authenticator with the consumer credentials only; the ``oauth_token``
parameter is then left out of the signature.

The signer can also be used on its own::

    info = auth.authorize({
        'url': 'https://api.twitter.com/1.1/statuses/update.json',
        'method': 'POST',
        'data': {'status': 'Hello Ladies + Gentlemen'},
    })
    headers = auth.to_header(info)
"""

import base64
import hashlib
import hmac
from time import time

from .auth import Auth
from .errors import MissingCredentialsError, SignatureError
from .settings import resolve
from .util import (
    actually_bytes, base_url, deparam_url, is_oauth_serializable,
    percent_encode, random_string)


class OAuth(Auth):
    """
    An OAuth 1.0a (HMAC-SHA1) authenticator.
    """
    nonce_length = 32
    signature_method = 'HMAC-SHA1'
    version = '1.0'

    def __init__(self, consumer_key, consumer_secret, token=None,
                 token_secret=None, settings=None):
        """
        Create the authenticator. If you are in the initial stages of
        the OAuth dance and don't yet have a token or token_secret,
        leave them out.
        """
        if not consumer_key or not consumer_secret:
            raise MissingCredentialsError(
                'You must supply both a consumer_key and a consumer_secret '
                'to sign requests with OAuth 1.0a.')
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.token = token
        self.token_secret = token_secret
        self.settings = resolve(settings)
        self.log = self.settings.get_logger(__name__)

    def get_nonce(self):
        return random_string(self.nonce_length)

    def get_timestamp(self):
        return int(time())

    def authorize(self, request, access_tokens=None, nonce=None,
                  timestamp=None):
        """
        Sign `request`, a mapping with ``url``, ``method`` and ``data``
        keys, and return the ``oauth_*`` parameters including
        ``oauth_signature``.

        `access_tokens` is a ``{'key': ..., 'secret': ...}`` mapping and
        defaults to the token pair given to the constructor. `nonce` and
        `timestamp` are generated unless given.
        """
        if access_tokens is None:
            access_tokens = {'key': self.token, 'secret': self.token_secret}

        info = {
            'oauth_consumer_key': self.consumer_key,
            'oauth_nonce': nonce if nonce is not None else self.get_nonce(),
            'oauth_signature_method': self.signature_method,
            'oauth_timestamp': (
                timestamp if timestamp is not None else self.get_timestamp()),
            'oauth_version': self.version,
        }
        if access_tokens.get('key'):
            info['oauth_token'] = access_tokens['key']

        info['oauth_signature'] = self.get_signature(
            request, access_tokens.get('secret'), info)
        return info

    def to_header(self, info):
        """Render the ``Authorization`` header for `authorize`'s output."""
        pairs = [
            '%s="%s"' % (percent_encode(key), percent_encode(info[key]))
            for key in sorted(info) if key.startswith('oauth_')]
        return {'Authorization': 'OAuth ' + ', '.join(pairs)}

    def signing_key(self, token_secret=None):
        return (percent_encode(self.consumer_secret) + '&'
                + percent_encode(token_secret or ''))

    def base_string(self, request, info):
        return '&'.join([
            request['method'].upper(),
            percent_encode(base_url(request['url'])),
            percent_encode(self.parameter_string(request, info)),
        ])

    def parameter_string(self, request, info):
        params = dict(info)
        params.update(signable_data(request.get('data')))
        params.update(deparam_url(request['url']))

        encoded = {}
        for key, value in params.items():
            if isinstance(value, (list, tuple)):
                value = sorted(percent_encode(v) for v in value)
            else:
                value = percent_encode(value)
            encoded[percent_encode(key)] = value

        pairs = []
        for key in sorted(encoded):
            value = encoded[key]
            if isinstance(value, list):
                pairs.extend('%s=%s' % (key, v) for v in value)
            else:
                pairs.append('%s=%s' % (key, value))
        return '&'.join(pairs)

    def get_signature(self, request, token_secret, info):
        base = self.base_string(request, info)
        if self.settings.debug:
            self.log.debug("OAuth signature base string: %s", base)
        return self.hash(base, self.signing_key(token_secret))

    def hash(self, base, key):
        try:
            digest = hmac.new(
                actually_bytes(key), actually_bytes(base), hashlib.sha1).digest()
        except (TypeError, ValueError) as e:
            raise SignatureError("Unable to compute HMAC-SHA1 signature: %s" % e)
        return base64.b64encode(digest).decode('ascii')

    def generate_headers(self, url, method, query=None, body=None,
                         body_in_signature=False):
        data = dict(query or {})
        if body_in_signature:
            data.update(signable_data(body))
        info = self.authorize({'url': url, 'method': method, 'data': data})
        return self.to_header(info)


def signable_data(data):
    """
    Keep the parameters of `data` that take part in a signature. Binary
    bodies and binary values are left out entirely.
    """
    if not data or not isinstance(data, dict):
        return {}
    signable = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = [v for v in value if is_oauth_serializable(v)]
            if not value:
                continue
        elif not is_oauth_serializable(value):
            continue
        signable[key] = value
    return signable


__all__ = ["OAuth", "signable_data"]
