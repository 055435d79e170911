"""
Twitter supports the application-only flow of OAuth2 for read-only
endpoints, and OAuth2 with PKCE for user context. This module offers an
authenticator for the application-only flow and the helpers needed to
drive the PKCE flow.

To authenticate with OAuth2, visit the Twitter developer page and create a
new application. Exchange your CONSUMER_KEY and CONSUMER_SECRET for a
bearer token (``POST oauth2/token`` with ``grant_type=client_credentials``,
signed by ``OAuth2(consumer_key=..., consumer_secret=...)``), then::

    twitter = Twitter(auth=OAuth2(bearer_token=BEARER_TOKEN))

For the PKCE flow, keep the verifier on your side and send the challenge
along with the authorization URL::

    verifier = get_code_verifier()
    challenge = get_code_challenge(verifier)
"""

import hashlib
from base64 import b64encode, urlsafe_b64encode
from urllib.parse import quote

from .auth import Auth
from .errors import MissingCredentialsError
from .util import random_string

PKCE_ALPHABET = (
    'ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-._~')


class OAuth2(Auth):
    """
    An OAuth2 application-only authenticator.
    """
    def __init__(self, consumer_key=None, consumer_secret=None,
                 bearer_token=None):
        """
        Create an authenticator. You can supply consumer_key and
        consumer_secret if you are requesting a bearer_token. Otherwise
        you must supply the bearer_token.
        """
        self.bearer_token = bearer_token
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret

        if not (bearer_token or (consumer_key and consumer_secret)):
            raise MissingCredentialsError(
                'You must supply either a bearer token, or both a '
                'consumer_key and a consumer_secret.')

    def generate_headers(self, url=None, method=None, query=None, body=None,
                         body_in_signature=False):
        if self.bearer_token:
            return {'Authorization': 'Bearer {0}'.format(self.bearer_token)}
        return {
            'Content-Type': (
                'application/x-www-form-urlencoded;charset=UTF-8'),
            'Authorization': 'Basic {0}'.format(
                get_basic_auth_header(self.consumer_key, self.consumer_secret)),
        }


def get_basic_auth_header(client_id, client_secret):
    key = '{0}:{1}'.format(quote(client_id, safe=''), quote(client_secret, safe=''))
    return b64encode(key.encode('utf8')).decode('ascii')


def get_code_verifier(length=128):
    return random_string(length, PKCE_ALPHABET)


def get_code_challenge(verifier):
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')


__all__ = [
    "OAuth2", "get_basic_auth_header", "get_code_verifier",
    "get_code_challenge"]
