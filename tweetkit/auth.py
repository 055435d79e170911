from .errors import MissingCredentialsError


class Auth(object):
    """
    ABC for Authenticator objects.
    """

    def generate_headers(self, url, method, query=None, body=None,
                         body_in_signature=False):
        """Generates headers which should be added to the request if required
        by the authentication scheme in use.

        `url` is the request URL without its query string, `query` the
        query parameters and `body` the body parameters. `body_in_signature`
        tells signing schemes whether the body is URL-encoded and must take
        part in the signature."""
        raise NotImplementedError()


class NoAuth(Auth):
    """
    No authentication authenticator.
    """
    def __init__(self):
        pass

    def generate_headers(self, url, method, query=None, body=None,
                         body_in_signature=False):
        return {}


__all__ = ["Auth", "NoAuth", "MissingCredentialsError"]
