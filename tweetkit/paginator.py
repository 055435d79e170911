"""
Pagination over cursored, id-bounded, page-numbered and token-based
result pages.

A `Paginator` holds the pages fetched so far and knows how to ask for the
next one. It never builds URLs or headers itself: the request layer hands
it a `fetch(endpoint, query_params, shared_params)` callable returning a
`Page`, plus a page shape (see `tweetkit.page_shapes`) telling how items,
cursors and merges work for the endpoint family::

    paginator = twitter.v2.paginate('tweets_search_recent',
                                    query={'query': 'nasa'})
    paginator.fetch_next()
    paginator.fetch_last(1000)

    for tweet in paginator:
        # ...the tweets fetched so far...

    for tweet in paginator.live_sequence():
        # ...keeps fetching pages until the rate limit or the results run out

A paginator instance is not meant to be driven from two threads at once;
doing so raises `PaginatorBusyError`.
"""

from collections import namedtuple

from .errors import PaginatorBusyError, TwitterError
from .ratelimit import is_exchange_allowed
from .settings import resolve

Page = namedtuple('Page', 'data rate_limit')


class Paginator(object):

    def __init__(self, data, fetch, shape, rate_limit=None, query_params=None,
                 shared_params=None, endpoint=None, settings=None):
        self._data = data
        self._fetch = fetch
        self.shape = shape
        self._rate_limit = rate_limit
        self._query_params = dict(query_params or {})
        self._shared_params = dict(shared_params or {})
        self.endpoint = endpoint
        self.settings = resolve(settings)
        self.log = self.settings.get_logger(__name__)
        self._in_flight = False

    def __repr__(self):
        return "<%s %s: %d items>" % (
            self.__class__.__name__, self.endpoint, len(self.items))

    # State

    @property
    def data(self):
        """Raw data returned by Twitter, merged across fetched pages."""
        return self._data

    @property
    def rate_limit(self):
        return self._rate_limit

    @property
    def query_params(self):
        return dict(self._query_params)

    @property
    def items(self):
        return self.shape.items(self._data)

    @property
    def meta(self):
        if isinstance(self._data, dict):
            return self._data.get('meta', {})
        return {}

    @property
    def includes(self):
        if isinstance(self._data, dict):
            return self._data.get('includes', {})
        return {}

    @property
    def done(self):
        return not self.shape.can_fetch_next(self._data)

    @property
    def is_rate_limit_ok(self):
        return is_exchange_allowed(self._rate_limit)

    def __len__(self):
        return len(self.items)

    # Fetching

    def _make_request(self, query_params):
        if self._in_flight:
            raise PaginatorBusyError(
                "A request of this paginator is already running.")
        self._in_flight = True
        try:
            if self.settings.debug:
                self.log.debug("Fetching page of %s with %s",
                               self.endpoint, query_params)
            return self._fetch(self.endpoint, query_params,
                               self._shared_params)
        finally:
            self._in_flight = False

    def _new_instance(self, page, query_params):
        return self.__class__(
            page.data, self._fetch, self.shape,
            rate_limit=page.rate_limit,
            query_params=query_params,
            shared_params=self._shared_params,
            endpoint=self.endpoint,
            settings=self.settings)

    def _refresh(self, page, query_params, is_next):
        self._rate_limit = page.rate_limit
        self._data = self.shape.merge(self._data, page.data, is_next)
        self._query_params = self.shape.carry_params(
            self._query_params, query_params, is_next)

    def _check_bidirectional(self):
        if not self.shape.bidirectional:
            raise TwitterError(
                "%s pages can only be fetched forward."
                % self.shape.__class__.__name__)

    def next(self, max_results=None):
        """
        Fetch the next page and return it in a new paginator. This
        paginator is left untouched.
        """
        query_params = self.shape.next_params(
            self._data, self._query_params, max_results)
        page = self._make_request(query_params)
        return self._new_instance(page, query_params)

    def fetch_next(self, max_results=None):
        """Fetch the next page and append its items to this paginator."""
        query_params = self.shape.next_params(
            self._data, self._query_params, max_results)
        page = self._make_request(query_params)
        self._refresh(page, query_params, True)
        return self

    def previous(self, max_results=None):
        """Fetch the previous page (newer items) into a new paginator."""
        self._check_bidirectional()
        query_params = self.shape.previous_params(
            self._data, self._query_params, max_results)
        page = self._make_request(query_params)
        return self._new_instance(page, query_params)

    def fetch_previous(self, max_results=None):
        """Fetch the previous page and prepend its items to this paginator."""
        self._check_bidirectional()
        query_params = self.shape.previous_params(
            self._data, self._query_params, max_results)
        page = self._make_request(query_params)
        self._refresh(page, query_params, False)
        return self

    def fetch_last(self, count=float('inf')):
        """
        Fetch up to `count` items after the current page, as long as the
        rate limit is not hit and Twitter has some results. Running out
        of either is not an error: whatever was gathered is kept.
        """
        page_size = self.shape.fetch_last_page_size
        result_count = 0

        while result_count < count and self.is_rate_limit_ok \
                and not self.done:
            query_params = self.shape.next_params(
                self._data, self._query_params, page_size)
            page = self._make_request(query_params)
            self._refresh(page, query_params, True)

            result_count += self.shape.page_length(page.data)
            if self.shape.is_fetch_last_over(page.data):
                break

        if not self.is_rate_limit_ok:
            self.log.info("Rate limit of %s exhausted until %s",
                          self.endpoint, self._rate_limit.reset)
        return self

    # Iteration

    def snapshot_iterator(self):
        """Iterate over the items fetched so far."""
        return iter(list(self.items))

    def __iter__(self):
        return self.snapshot_iterator()

    def live_sequence(self, cancel=None):
        """
        Iterate over items fetched so far, then keep fetching pages until
        the rate limit is hit, a page comes back empty or Twitter has no
        more results. Fetched pages are merged into this paginator.

        `cancel` is an optional object with an ``is_set()`` method, such
        as a `threading.Event`; it is checked before every request.
        """
        for item in self.snapshot_iterator():
            yield item

        paginator = self
        can_fetch_next = self.shape.can_fetch_next(self._data)
        while can_fetch_next and self.is_rate_limit_ok and paginator.items:
            if cancel is not None and cancel.is_set():
                return
            next_page = paginator.next(self.shape.fetch_last_page_size)
            self._refresh(
                Page(next_page.data, next_page.rate_limit),
                next_page.query_params, True)

            can_fetch_next = self.shape.can_fetch_next(next_page.data)
            for item in next_page.items:
                yield item
            paginator = next_page

    def fetch_and_iterate(self, cancel=None):
        """
        Like `live_sequence`, but yields ``(item, paginator)`` couples where
        `paginator` holds the page of the item. Only the rate limit of this
        paginator is updated.
        """
        for item in self.snapshot_iterator():
            yield item, self

        paginator = self
        can_fetch_next = self.shape.can_fetch_next(self._data)
        while can_fetch_next and self.is_rate_limit_ok and paginator.items:
            if cancel is not None and cancel.is_set():
                return
            next_page = paginator.next(self.shape.fetch_last_page_size)
            self._rate_limit = next_page.rate_limit

            can_fetch_next = self.shape.can_fetch_next(next_page.data)
            for item in next_page.items:
                yield item, next_page
            paginator = next_page


__all__ = ["Page", "Paginator"]
