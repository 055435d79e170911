'''
Page shapes: how one family of endpoints lays out its result pages.

Each shape knows where the items of a page live, how to compute the query
parameters of the next (and sometimes previous) page, and how to merge a
freshly fetched page into the accumulated data. `Paginator` is generic over
them.

    .. data:: FAMILIES
        Named endpoint families, each an API version, an endpoint
        (possibly with ``:id`` style placeholders) and a page shape.
'''

from collections import namedtuple

from .errors import TwitterError
from .util import snowflake_from_date

CURSOR_FIELDS = (
    'next_cursor', 'next_cursor_str', 'previous_cursor', 'previous_cursor_str')


def is_cursor_invalid(value):
    return value is None or value in (0, -1, '0', '-1')


def _set_or_pop(mapping, key, value):
    if value is None:
        mapping.pop(key, None)
    else:
        mapping[key] = value


class PageShape(object):
    bidirectional = False
    fetch_last_page_size = 100

    def items(self, data):
        raise NotImplementedError()

    def next_params(self, data, query_params, max_results=None):
        raise NotImplementedError()

    def previous_params(self, data, query_params, max_results=None):
        raise TwitterError(
            "%s pages can only be fetched forward." % self.__class__.__name__)

    def merge(self, data, page, is_next):
        """Merge `page` into `data` and return the accumulated data."""
        raise NotImplementedError()

    def can_fetch_next(self, data):
        raise NotImplementedError()

    def is_fetch_last_over(self, page):
        return not self.can_fetch_next(page)

    def page_length(self, page):
        return len(self.items(page))

    def carry_params(self, query_params, sent_params, is_next):
        """Query parameters to keep once a page was merged in place."""
        return query_params


class CursorShape(PageShape):
    """
    v1.1 cursored listings: ``{"ids": [...], "next_cursor": 123,
    "next_cursor_str": "123"}``.

    A cursor of 0 or -1 (or a missing one) means there is no further page.
    Both cursor fields are checked and a page is fetchable if *either* is
    valid; one of them is known to be stale on some endpoints.
    """

    def __init__(self, items_key, fetch_last_page_size=100):
        self.items_key = items_key
        self.fetch_last_page_size = fetch_last_page_size

    def items(self, data):
        return data.get(self.items_key) or []

    def next_cursor(self, data):
        cursor = data.get('next_cursor_str')
        if cursor is None:
            cursor = data.get('next_cursor')
        return cursor

    def next_params(self, data, query_params, max_results=None):
        params = dict(query_params)
        params['cursor'] = self.next_cursor(data)
        if max_results:
            params['count'] = max_results
        return params

    def merge(self, data, page, is_next):
        if not is_next:
            return data
        data.setdefault(self.items_key, []).extend(self.items(page))
        for field in CURSOR_FIELDS:
            _set_or_pop(data, field, page.get(field))
        return data

    def can_fetch_next(self, data):
        return not is_cursor_invalid(data.get('next_cursor')) \
            or not is_cursor_invalid(data.get('next_cursor_str'))


class EventCursorShape(CursorShape):
    """
    v1.1 direct message style listings, where the last page simply has no
    ``next_cursor``.
    """

    def next_cursor(self, data):
        return data.get('next_cursor')

    def can_fetch_next(self, data):
        return data.get('next_cursor') is not None


class TimelineV1Shape(PageShape):
    """v1.1 tweet timelines: plain arrays walked backwards with ``max_id``."""

    def items(self, data):
        return data or []

    def next_params(self, data, query_params, max_results=None):
        if not data:
            raise TwitterError("Cannot paginate an empty timeline.")
        latest_id = int(data[-1]['id_str'])
        params = {'count': max_results} if max_results else {}
        params.update(query_params)
        params['max_id'] = str(latest_id - 1)
        return params

    def merge(self, data, page, is_next):
        if data is None:
            data = []
        if is_next:
            data.extend(page or [])
        return data

    def can_fetch_next(self, data):
        return len(data or []) > 0


class PageNumberShape(TimelineV1Shape):
    """v1.1 page-numbered listings (``users/search``)."""

    def next_params(self, data, query_params, max_results=None):
        previous_page = int(query_params.get('page', 1))
        params = dict(query_params)
        params['page'] = previous_page + 1
        if max_results:
            params['count'] = max_results
        return params

    def carry_params(self, query_params, sent_params, is_next):
        carried = dict(query_params)
        carried['page'] = sent_params['page']
        return carried


class TokenShape(PageShape):
    """
    v2 listings: ``{"data": [...], "meta": {"result_count": 10,
    "next_token": "...", "previous_token": "..."}, "includes": {...}}``.

    The token is sent back as `token_param`. With `track_ids`, the
    ``oldest_id`` and ``newest_id`` of the meta are kept up to date.
    """
    bidirectional = True

    def __init__(self, token_param='pagination_token', track_ids=False):
        self.token_param = token_param
        self.track_ids = track_ids

    def items(self, data):
        return data.get('data') or []

    def meta(self, data):
        meta = data.get('meta')
        if meta is None:
            raise TwitterError("This page has no meta and cannot be paginated.")
        return meta

    def inject_params(self, query_params, max_results):
        params = {'max_results': max_results} if max_results else {}
        params.update(query_params)
        return params

    def next_params(self, data, query_params, max_results=None):
        params = self.inject_params(query_params, max_results)
        params[self.token_param] = self.meta(data).get('next_token')
        return params

    def previous_params(self, data, query_params, max_results=None):
        params = self.inject_params(query_params, max_results)
        params[self.token_param] = self.meta(data).get('previous_token')
        return params

    def merge(self, data, page, is_next):
        page_items = self.items(page)
        page_meta = page.get('meta', {})
        if data.get('data') is None:
            data['data'] = []
        meta = data.setdefault('meta', {})
        meta['result_count'] = (
            meta.get('result_count', 0) + page_meta.get('result_count', 0))

        if is_next:
            _set_or_pop(meta, 'next_token', page_meta.get('next_token'))
            if self.track_ids:
                _set_or_pop(meta, 'oldest_id', page_meta.get('oldest_id'))
            data['data'].extend(page_items)
        else:
            _set_or_pop(meta, 'previous_token', page_meta.get('previous_token'))
            if self.track_ids:
                _set_or_pop(meta, 'newest_id', page_meta.get('newest_id'))
            data['data'][:0] = page_items

        self.merge_includes(data, page)
        return data

    def merge_includes(self, data, page):
        if not page.get('includes'):
            return
        includes = data.setdefault('includes', {})
        for key, values in page['includes'].items():
            includes[key] = list(includes.get(key, [])) + list(values)

    def can_fetch_next(self, data):
        return bool(data.get('meta', {}).get('next_token'))

    def is_fetch_last_over(self, page):
        return not self.items(page) or not self.can_fetch_next(page)


class TweetTimelineV2Shape(TokenShape):
    """
    v2 search timelines. Forward pages use ``next_token`` when Twitter
    gives one, ``until_id`` otherwise; backward pages use ``since_id``.
    """

    def __init__(self):
        super(TweetTimelineV2Shape, self).__init__(
            token_param='next_token', track_ids=True)

    def next_params(self, data, query_params, max_results=None):
        meta = self.meta(data)
        params = self.inject_params(query_params, max_results)

        if meta.get('next_token'):
            params['next_token'] = meta['next_token']
        else:
            params.pop('next_token', None)
            if params.get('start_time'):
                # until_id and start_time are refused together.
                params['since_id'] = snowflake_from_date(
                    params.pop('start_time'))
            params.pop('end_time', None)
            params['until_id'] = meta.get('oldest_id')
        return params

    def previous_params(self, data, query_params, max_results=None):
        meta = self.meta(data)
        params = self.inject_params(query_params, max_results)
        params.pop('next_token', None)
        params.pop('until_id', None)
        params['since_id'] = meta.get('newest_id')
        return params


PaginatorFamily = namedtuple('PaginatorFamily', 'api_version endpoint shape')

_timeline_v1 = TimelineV1Shape()
_ids_v1 = CursorShape('ids', fetch_last_page_size=5000)
_users_v1 = CursorShape('users')
_lists_v1 = CursorShape('lists')
_token_v2 = TokenShape()
_tracked_token_v2 = TokenShape(track_ids=True)
_search_v2 = TweetTimelineV2Shape()

FAMILIES = {
    # v1.1 tweet timelines
    'home_timeline_v1': PaginatorFamily('1.1', 'statuses/home_timeline.json', _timeline_v1),
    'mention_timeline_v1': PaginatorFamily('1.1', 'statuses/mentions_timeline.json', _timeline_v1),
    'user_timeline_v1': PaginatorFamily('1.1', 'statuses/user_timeline.json', _timeline_v1),
    'list_timeline_v1': PaginatorFamily('1.1', 'lists/statuses.json', _timeline_v1),
    'user_favorites_v1': PaginatorFamily('1.1', 'favorites/list.json', _timeline_v1),

    # v1.1 cursored listings
    'follower_ids_v1': PaginatorFamily('1.1', 'followers/ids.json', _ids_v1),
    'friend_ids_v1': PaginatorFamily('1.1', 'friends/ids.json', _ids_v1),
    'friend_list_v1': PaginatorFamily('1.1', 'friends/list.json', _users_v1),
    'mute_ids_v1': PaginatorFamily('1.1', 'mutes/users/ids.json', _ids_v1),
    'mute_list_v1': PaginatorFamily('1.1', 'mutes/users/list.json', _users_v1),
    'friendships_incoming_v1': PaginatorFamily('1.1', 'friendships/incoming.json', _ids_v1),
    'friendships_outgoing_v1': PaginatorFamily('1.1', 'friendships/outgoing.json', _ids_v1),
    'list_memberships_v1': PaginatorFamily('1.1', 'lists/memberships.json', _lists_v1),
    'list_ownerships_v1': PaginatorFamily('1.1', 'lists/ownerships.json', _lists_v1),
    'list_subscriptions_v1': PaginatorFamily('1.1', 'lists/subscriptions.json', _lists_v1),
    'list_members_v1': PaginatorFamily('1.1', 'lists/members.json', _users_v1),
    'list_subscribers_v1': PaginatorFamily('1.1', 'lists/subscribers.json', _users_v1),
    'dm_events_v1': PaginatorFamily('1.1', 'direct_messages/events/list.json', EventCursorShape('events')),
    'welcome_dms_v1': PaginatorFamily('1.1', 'direct_messages/welcome_messages/list.json', EventCursorShape('welcome_messages')),
    'user_search_v1': PaginatorFamily('1.1', 'users/search.json', PageNumberShape()),

    # v2 tweet timelines
    'tweets_search_recent': PaginatorFamily('2', 'tweets/search/recent', _search_v2),
    'tweets_search_all': PaginatorFamily('2', 'tweets/search/all', _search_v2),
    'quote_tweets': PaginatorFamily('2', 'tweets/:id/quote_tweets', _tracked_token_v2),
    'home_timeline': PaginatorFamily('2', 'users/:id/timelines/reverse_chronological', _tracked_token_v2),
    'user_timeline': PaginatorFamily('2', 'users/:id/tweets', _tracked_token_v2),
    'user_mention_timeline': PaginatorFamily('2', 'users/:id/mentions', _tracked_token_v2),
    'bookmarks': PaginatorFamily('2', 'users/:id/bookmarks', _tracked_token_v2),
    'liked_tweets': PaginatorFamily('2', 'users/:id/liked_tweets', _token_v2),
    'list_tweets': PaginatorFamily('2', 'lists/:id/tweets', _token_v2),

    # v2 users, lists and direct messages
    'followers': PaginatorFamily('2', 'users/:id/followers', _token_v2),
    'following': PaginatorFamily('2', 'users/:id/following', _token_v2),
    'blocking': PaginatorFamily('2', 'users/:id/blocking', _token_v2),
    'muting': PaginatorFamily('2', 'users/:id/muting', _token_v2),
    'owned_lists': PaginatorFamily('2', 'users/:id/owned_lists', _token_v2),
    'list_memberships': PaginatorFamily('2', 'users/:id/list_memberships', _token_v2),
    'followed_lists': PaginatorFamily('2', 'users/:id/followed_lists', _token_v2),
    'list_members': PaginatorFamily('2', 'lists/:id/members', _token_v2),
    'list_followers': PaginatorFamily('2', 'lists/:id/followers', _token_v2),
    'dm_events': PaginatorFamily('2', 'dm_events', _token_v2),
    'dm_conversation_with': PaginatorFamily('2', 'dm_conversations/with/:participant_id/dm_events', _token_v2),
    'dm_conversation': PaginatorFamily('2', 'dm_conversations/:dm_conversation_id/dm_events', _token_v2),
}


def get_family(name):
    try:
        return FAMILIES[name]
    except KeyError:
        raise TwitterError("Unknown paginated endpoint family %r" % (name,))


__all__ = [
    "PageShape", "CursorShape", "EventCursorShape", "TimelineV1Shape",
    "PageNumberShape", "TokenShape", "TweetTimelineV2Shape", "FAMILIES",
    "PaginatorFamily", "get_family", "is_cursor_invalid"]
