"""
A small Twitter API client: signed requests, tweet streams and paginators.

The Twitter class is the key to building your own Twitter-enabled
applications. TweetStream and Paginator are what its `stream` and
`paginate` methods hand back.

"""

from textwrap import dedent

from .api import Twitter, RequestMaker, Readable, Writable
from .auth import NoAuth
from .errors import (
    TwitterError, TwitterHTTPError, TwitterRequestError,
    MissingCredentialsError, SignatureError, StreamParseError,
    PaginatorBusyError)
from .oauth import OAuth, __doc__ as oauth_doc
from .oauth2 import (
    OAuth2, get_code_challenge, get_code_verifier,
    __doc__ as oauth2_doc)
from .page_shapes import FAMILIES
from .paginator import Paginator, __doc__ as paginator_doc
from .ratelimit import RateLimit, RateLimitStore
from .response import TwitterResponse
from .settings import Settings
from .stream import StreamParser, TweetStream

__doc__ = __doc__ or ""

__doc__ += """
The Twitter class
-----------------
"""
__doc__ += dedent(Twitter.__doc__ or "")

__doc__ += """
The TweetStream class
---------------------
"""
__doc__ += dedent(TweetStream.__doc__ or "")


__doc__ += """
Paginators
----------
"""
__doc__ += dedent(paginator_doc or "")


__doc__ += """
Twitter Response Objects
------------------------
"""
__doc__ += dedent(TwitterResponse.__doc__ or "")


__doc__ += """
Authentication
--------------

You can authenticate with Twitter in three ways: NoAuth, OAuth, or
OAuth2. Get help() on these classes to learn how to use them.


Working with OAuth
------------------
"""

__doc__ += dedent(oauth_doc or "")

__doc__ += """
Working with OAuth2
-------------------
"""

__doc__ += dedent(oauth2_doc or "")

__all__ = [
    "FAMILIES",
    "MissingCredentialsError",
    "NoAuth",
    "OAuth",
    "OAuth2",
    "Paginator",
    "PaginatorBusyError",
    "RateLimit",
    "RateLimitStore",
    "Readable",
    "RequestMaker",
    "Settings",
    "SignatureError",
    "StreamParseError",
    "StreamParser",
    "TweetStream",
    "Twitter",
    "TwitterError",
    "TwitterHTTPError",
    "TwitterRequestError",
    "TwitterResponse",
    "Writable",
    "get_code_challenge",
    "get_code_verifier",
    ]
