import json


class TwitterError(Exception):
    """
    Base Exception thrown by tweetkit when there is a general error
    interacting with the API.
    """
    pass


class MissingCredentialsError(TwitterError):
    """
    Raised when an authenticator is built without the credentials it
    needs. Nothing has been sent over the network at that point.
    """
    pass


class SignatureError(TwitterError):
    """The HMAC-SHA1 signature of a request could not be computed."""
    pass


class StreamParseError(TwitterError):
    """
    A single CRLF-delimited stream record was not valid JSON. The stream
    keeps going; this error is emitted, not raised.
    """
    def __init__(self, record, error):
        self.record = record
        self.error = error
        super(StreamParseError, self).__init__(
            "Failed to parse stream record %r: %s" % (record[:80], error))


class PaginatorBusyError(TwitterError):
    """A paginator was asked to fetch while one of its fetches was running."""
    pass


class TwitterRequestError(TwitterError):
    """
    The request never produced an HTTP response (DNS failure, refused
    connection, timeout...). The transport exception is kept as `error`.
    """
    def __init__(self, error, url):
        self.error = error
        self.url = url
        super(TwitterRequestError, self).__init__(
            "Request to %s failed: %s" % (url, error))


class TwitterHTTPError(TwitterError):
    """
    Exception thrown when Twitter answers with a non 2xx status code.
    """
    def __init__(self, status_code, url, response_data, headers=None,
                 rate_limit=None, params=None):
        self.status_code = status_code
        self.url = url
        self.headers = headers or {}
        self.rate_limit = rate_limit
        self.params = params
        if isinstance(response_data, bytes):
            response_data = response_data.decode('utf8', 'replace')
        if isinstance(response_data, str) and response_data:
            try:
                response_data = json.loads(response_data)
            except ValueError:
                # We try to load the response as json as a nicety; if it fails, carry on.
                pass
        self.response_data = response_data if response_data else {}
        super(TwitterHTTPError, self).__init__(str(self))

    @property
    def errors(self):
        if isinstance(self.response_data, dict):
            return self.response_data.get('errors', [])
        return []

    @property
    def rate_limit_error(self):
        return self.status_code == 429

    def __str__(self):
        return (
            "Twitter sent status %i for URL: %s using parameters: "
            "(%s)\ndetails: %s" % (
                self.status_code, self.url, self.params,
                self.response_data))
