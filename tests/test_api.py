# encoding: utf-8
import json
from unittest import mock

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from tweetkit import OAuth, OAuth2, Twitter
from tweetkit.api import (
    RequestMaker, Readable, auto_detect_body_mode, encode_body, make_url,
    parse_oauth_tokens)
from tweetkit.errors import (
    MissingCredentialsError, TwitterError, TwitterHTTPError,
    TwitterRequestError)
from tweetkit.oauth2 import get_basic_auth_header, get_code_challenge
from tweetkit.paginator import Paginator
from tweetkit.ratelimit import RateLimit
from tweetkit.stream import TweetStream
from tweetkit.util import deparam, deparam_url

RATE_LIMIT_HEADERS = {
    'x-rate-limit-limit': '15',
    'x-rate-limit-remaining': '14',
    'x-rate-limit-reset': '1700000000',
}


class FakeResponse(object):
    def __init__(self, status_code=200, payload=None, headers=None,
                 chunks=None):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        if payload is None:
            self.content = b''
        else:
            self.content = json.dumps(payload).encode('utf-8')
            self.headers.setdefault(
                'Content-Type', 'application/json; charset=utf-8')
        self.chunks = chunks or []
        self.closed = False

    @property
    def text(self):
        return self.content.decode('utf-8')

    def json(self):
        return json.loads(self.text)

    def iter_content(self, chunk_size=None):
        return iter(self.chunks)

    def close(self):
        self.closed = True


def fake_session(*responses):
    session = mock.Mock()
    session.request.side_effect = list(responses)
    return session


def sent(session, index=0):
    args, kwargs = session.request.call_args_list[index]
    return args[0], args[1], kwargs


def test_make_url():
    url, remaining = make_url(
        'https://api.twitter.com/2/users/:id/tweets', {'id': 12, 'other': 1})
    assert 'https://api.twitter.com/2/users/12/tweets' == url
    assert {'other': 1} == remaining


def test_make_url_missing_parameter():
    with pytest.raises(TwitterError):
        make_url('https://api.twitter.com/2/users/:id/tweets', {})


def test_auto_detect_body_mode():
    assert 'json' == auto_detect_body_mode('https://api.twitter.com/2/tweets')
    assert 'json' == auto_detect_body_mode('https://api.twitter.com/labs/2/tweets')
    assert 'url' == auto_detect_body_mode('https://api.twitter.com/2/oauth2/token')
    assert 'form-data' == auto_detect_body_mode(
        'https://upload.twitter.com/1.1/media/upload.json')
    assert 'json' == auto_detect_body_mode(
        'https://upload.twitter.com/1.1/media/metadata/create.json')
    assert 'json' == auto_detect_body_mode(
        'https://api.twitter.com/1.1/direct_messages/events/new.json')
    assert 'url' == auto_detect_body_mode(
        'https://api.twitter.com/1.1/statuses/update.json?x=1')


def test_encode_body():
    headers = {}
    data, files = encode_body({'a': 'b c', 'n': 1, 'l': [1, 2]}, headers, 'url')
    assert 'a=b%20c&n=1&l=1%2C2' == data
    assert files is None
    assert headers['Content-Type'].startswith('application/x-www-form-urlencoded')

    headers = {}
    data, _ = encode_body({'text': 'hi'}, headers, 'json')
    assert {'text': 'hi'} == json.loads(data)
    assert headers['Content-Type'].startswith('application/json')

    data, files = encode_body({'media': b'\x89PNG', 'command': 'APPEND'}, {},
                              'form-data')
    assert data is None
    assert ('blob', b'\x89PNG', 'application/octet-stream') == files['media']
    assert (None, 'APPEND') == files['command']

    assert (b'raw', None) == encode_body(b'raw', {}, 'json')


def test_get_v2():
    session = fake_session(
        FakeResponse(payload={'data': [{'id': '1'}]}, headers=RATE_LIMIT_HEADERS))
    t = Twitter(session=session)
    response = t.v2.get('tweets/search/recent',
                        query={'query': 'nasa mars', 'max_results': 10,
                               'tweet.fields': ['created_at', 'lang'],
                               'until_id': None})

    method, url, kwargs = sent(session)
    assert 'GET' == method
    assert ('https://api.twitter.com/2/tweets/search/recent?query=nasa%20mars'
            '&max_results=10&tweet.fields=created_at%2Clang') == url
    assert kwargs['data'] is None
    assert {} == kwargs['headers']

    assert [{'id': '1'}] == response['data']
    assert 200 == response.status_code
    assert RateLimit(15, 14, 1700000000) == response.rate_limit
    assert RateLimit(15, 14, 1700000000) == t.rate_limits.get(
        'https://api.twitter.com/2/tweets/search/recent', 'GET')


def test_signed_post_v1():
    session = fake_session(FakeResponse(payload={'id_str': '1'}))
    auth = OAuth("xvz1evFS4wEEPTGEFPHBog",
                 "kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw",
                 "370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb",
                 "LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE")
    auth.get_nonce = lambda: "kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg"
    auth.get_timestamp = lambda: 1318622958
    t = Twitter(auth=auth, session=session)

    t.v1.post('statuses/update.json',
              body={'status': 'Hello Ladies + Gentlemen, a signed OAuth request!'},
              query={'include_entities': True})

    method, url, kwargs = sent(session)
    assert 'POST' == method
    assert ('https://api.twitter.com/1.1/statuses/update.json'
            '?include_entities=true') == url
    assert ('status=Hello%20Ladies%20%2B%20Gentlemen%2C%20a%20signed%20OAuth'
            '%20request%21') == kwargs['data']
    assert 'oauth_signature="hCtSmYh%2BiHYCEqBWrE7C7hYmtUk%3D"' in \
        kwargs['headers']['Authorization']


def test_url_body_signed_as_sent():
    session = fake_session(FakeResponse(payload={'id_str': '1'}))
    auth = OAuth("key", "secret", "token", "token_secret")
    auth.get_nonce = lambda: "nonce"
    auth.get_timestamp = lambda: 1318622958
    t = Twitter(auth=auth, session=session)
    t.v1.post('statuses/update.json', body={'status': 'hi', 'trim_user': True})

    url = 'https://api.twitter.com/1.1/statuses/update.json'
    kwargs = sent(session)[2]
    assert 'status=hi&trim_user=true' == kwargs['data']
    expected = auth.generate_headers(
        url, 'POST', {}, {'status': 'hi', 'trim_user': 'true'}, True)
    assert expected['Authorization'] == kwargs['headers']['Authorization']


def test_url_body_lists_signed_comma_joined():
    session = fake_session(FakeResponse(payload={'id_str': '1'}))
    auth = OAuth("key", "secret", "token", "token_secret")
    auth.get_nonce = lambda: "nonce"
    auth.get_timestamp = lambda: 1318622958
    t = Twitter(auth=auth, session=session)
    t.v1.post('lists/members/create_all.json',
              body={'list_id': 7, 'screen_name': ['a', 'b']})

    url = 'https://api.twitter.com/1.1/lists/members/create_all.json'
    kwargs = sent(session)[2]
    assert 'list_id=7&screen_name=a%2Cb' == kwargs['data']
    as_sent = auth.generate_headers(
        url, 'POST', {}, {'list_id': '7', 'screen_name': 'a,b'}, True)
    as_pairs = auth.generate_headers(
        url, 'POST', {}, {'list_id': '7', 'screen_name': ['a', 'b']}, True)
    assert as_sent['Authorization'] == kwargs['headers']['Authorization']
    assert as_pairs['Authorization'] != kwargs['headers']['Authorization']



def test_post_v2_json_body():
    session = fake_session(FakeResponse(201, payload={'data': {'id': '1'}}))
    t = Twitter(session=session)
    response = t.v2.post('tweets', body={'text': 'hello', 'reply': None})

    _, url, kwargs = sent(session)
    assert 'https://api.twitter.com/2/tweets' == url
    assert {'text': 'hello'} == json.loads(kwargs['data'])
    assert kwargs['headers']['Content-Type'].startswith('application/json')
    assert 201 == response.status_code


def test_upload_is_multipart():
    session = fake_session(FakeResponse(payload={'media_id_string': '9'}))
    t = Twitter(session=session)
    t.upload.post('media/upload.json', body={'media': b'\x89PNG'})

    _, url, kwargs = sent(session)
    assert 'https://upload.twitter.com/1.1/media/upload.json' == url
    assert 'media' in kwargs['files']
    assert kwargs['data'] is None


def test_delete_url_params():
    session = fake_session(FakeResponse(payload={'data': {'deleted': True}}))
    t = Twitter(session=session)
    t.v2.delete('tweets/:id', url_params={'id': '20'})

    method, url, kwargs = sent(session)
    assert 'DELETE' == method
    assert 'https://api.twitter.com/2/tweets/20' == url
    assert kwargs['data'] is None


def test_empty_and_text_responses():
    text = FakeResponse()
    text.content = b'plain'
    text.headers['Content-Type'] = 'text/plain'
    session = fake_session(FakeResponse(204), text)
    maker = RequestMaker(session=session)

    assert {} == maker.send('POST', 'api.twitter.com/2/users/1/muting')
    assert 'plain' == maker.send('GET', 'https://example.com/robots.txt')


def test_http_error():
    payload = {'errors': [{'code': 88, 'message': 'Rate limit exceeded'}]}
    session = fake_session(
        FakeResponse(429, payload=payload, headers=RATE_LIMIT_HEADERS))
    t = Twitter(session=session)
    with pytest.raises(TwitterHTTPError) as excinfo:
        t.v1.get('followers/ids.json', query={'screen_name': 'nasa'})

    error = excinfo.value
    assert 429 == error.status_code
    assert error.rate_limit_error
    assert payload['errors'] == error.errors
    assert RateLimit(15, 14, 1700000000) == error.rate_limit
    assert 'https://api.twitter.com/1.1/followers/ids.json' == error.url
    assert 'Twitter sent status 429' in str(error)


def test_transport_error():
    session = mock.Mock()
    session.request.side_effect = requests.exceptions.ConnectionError("refused")
    t = Twitter(session=session)
    with pytest.raises(TwitterRequestError) as excinfo:
        t.v2.get('users/me')
    assert isinstance(excinfo.value.error, requests.exceptions.ConnectionError)


def test_retry_on_unavailable():
    session = fake_session(FakeResponse(503), FakeResponse(payload={'ok': 1}))
    sleeps = []
    maker = RequestMaker(session=session, retry=True, sleep=sleeps.append)
    assert {'ok': 1} == maker.send('GET', 'https://api.twitter.com/2/users/me')
    assert [RequestMaker.TWITTER_UNAVAILABLE_WAIT] == sleeps


def test_retry_limit():
    session = fake_session(FakeResponse(503), FakeResponse(503))
    maker = RequestMaker(session=session, retry=1, sleep=lambda delay: None)
    with pytest.raises(TwitterHTTPError):
        maker.send('GET', 'https://api.twitter.com/2/users/me')
    assert 2 == session.request.call_count


def test_retry_signs_every_attempt():
    session = fake_session(FakeResponse(503), FakeResponse(payload={'ok': 1}))
    auth = OAuth("key", "secret", "token", "token_secret")
    timestamps = iter([1000, 2000])
    auth.get_timestamp = lambda: next(timestamps)
    maker = RequestMaker(auth=auth, session=session, retry=True,
                         sleep=lambda delay: None)
    assert {'ok': 1} == maker.send('GET', 'https://api.twitter.com/2/users/me')

    first = sent(session, 0)[2]['headers']['Authorization']
    second = sent(session, 1)[2]['headers']['Authorization']
    assert first != second
    assert 'oauth_timestamp="1000"' in first
    assert 'oauth_timestamp="2000"' in second



def test_read_only_client():
    t = Twitter(read_only=True, session=mock.Mock())
    assert isinstance(t.v2, Readable)
    assert not hasattr(t.v2, 'post')
    assert hasattr(Twitter(session=mock.Mock()).v2, 'post')


def test_paginate():
    first = {'data': [{'id': '1'}], 'meta': {'result_count': 1, 'next_token': 't1'}}
    second = {'data': [{'id': '2'}], 'meta': {'result_count': 1}}
    session = fake_session(
        FakeResponse(payload=first, headers=RATE_LIMIT_HEADERS),
        FakeResponse(payload=second, headers=RATE_LIMIT_HEADERS))
    t = Twitter(session=session, read_only=True)

    followers = t.v2.paginate('followers', query={'max_results': 1}, id=12)
    assert isinstance(followers, Paginator)
    assert RateLimit(15, 14, 1700000000) == followers.rate_limit

    followers.fetch_next()
    assert [{'id': '1'}, {'id': '2'}] == followers.items
    assert followers.done
    assert 'https://api.twitter.com/2/users/12/followers?max_results=1' == \
        sent(session, 0)[1]
    assert ('https://api.twitter.com/2/users/12/followers?max_results=1'
            '&pagination_token=t1') == sent(session, 1)[1]


def test_paginate_wrong_api_version():
    t = Twitter(session=mock.Mock())
    with pytest.raises(TwitterError):
        t.v1.paginate('followers', id=12)


def test_stream():
    chunks = [b'{"data":{"id":"1"}}\r\n', b'\r\n',
              b'{"errors":[{"title":"x"}]}\r\n']
    session = fake_session(FakeResponse(chunks=chunks))
    t = Twitter(session=session, read_only=True)
    stream = t.v2.stream('tweets/search/stream', query={'expansions': 'author_id'})
    assert isinstance(stream, TweetStream)

    data_errors = []
    stream.on(TweetStream.DATA_ERROR, data_errors.append)
    assert [{'data': {'id': '1'}}] == list(stream)
    assert 1 == len(data_errors)

    method, url, kwargs = sent(session)
    assert ('https://api.twitter.com/2/tweets/search/stream'
            '?expansions=author_id') == url
    assert kwargs['stream']
    assert (None, 120.0) == kwargs['timeout']


def test_multipart_body_not_signed():
    session = fake_session(FakeResponse(payload={'media_id_string': '9'}))
    auth = OAuth("key", "secret", "token", "token_secret")
    auth.get_nonce = lambda: "nonce"
    auth.get_timestamp = lambda: 1318622958
    t = Twitter(auth=auth, session=session)
    t.upload.post('media/upload.json',
                  body={'media': b'\x89PNG', 'media_category': 'tweet_image'})

    url = 'https://upload.twitter.com/1.1/media/upload.json'
    unsigned_body = auth.generate_headers(url, 'POST', {}, {}, False)
    assert unsigned_body['Authorization'] == \
        sent(session)[2]['headers']['Authorization']


def form_response(text):
    response = FakeResponse()
    response.content = text.encode('utf-8')
    response.headers['Content-Type'] = 'text/html;charset=utf-8'
    return response


def test_parse_oauth_tokens():
    assert {'oauth_token': 'a', 'oauth_token_secret': 'b'} == \
        parse_oauth_tokens('oauth_token=a&oauth_token_secret=b')
    with pytest.raises(TwitterError):
        parse_oauth_tokens('')


def test_generate_auth_link():
    session = fake_session(form_response(
        'oauth_token=req&oauth_token_secret=reqsecret'
        '&oauth_callback_confirmed=true'))
    t = Twitter(auth=OAuth('key', 'secret', 'user', 'usersecret'),
                session=session)
    link = t.generate_auth_link('https://example.com/cb',
                                auth_access_type='read')

    assert 'https://api.twitter.com/oauth/authenticate?oauth_token=req' == \
        link['url']
    assert 'reqsecret' == link['oauth_token_secret']
    assert 'true' == link['oauth_callback_confirmed']

    method, url, kwargs = sent(session)
    assert 'POST' == method
    assert 'https://api.twitter.com/oauth/request_token' == url
    assert ('oauth_callback=https%3A%2F%2Fexample.com%2Fcb'
            '&x_auth_access_type=read') == kwargs['data']
    assert 'oauth_token="' not in kwargs['headers']['Authorization']


def test_generate_auth_link_authorize_mode():
    session = fake_session(form_response(
        'oauth_token=req&oauth_token_secret=reqsecret'))
    t = Twitter(auth=OAuth('key', 'secret'), session=session)
    link = t.generate_auth_link(link_mode='authorize')
    assert 'https://api.twitter.com/oauth/authorize?oauth_token=req' == \
        link['url']
    assert 'oauth_callback=oob' == sent(session)[2]['data']


def test_login():
    session = fake_session(form_response(
        'oauth_token=acc&oauth_token_secret=accsecret&user_id=12'
        '&screen_name=nasa'))
    t = Twitter(auth=OAuth('key', 'secret', 'req', 'reqsecret'),
                session=session)
    result = t.login('1234')

    assert '12' == result['user_id']
    assert 'nasa' == result['screen_name']
    client = result['client']
    assert isinstance(client, Twitter)
    assert 'key' == client.auth.consumer_key
    assert ('acc', 'accsecret') == (client.auth.token, client.auth.token_secret)

    _, url, kwargs = sent(session)
    assert 'https://api.twitter.com/oauth/access_token' == url
    assert 'oauth_token=req&oauth_verifier=1234' == kwargs['data']
    assert 'oauth_token="req"' in kwargs['headers']['Authorization']


def test_login_needs_request_token():
    t = Twitter(auth=OAuth('key', 'secret'), session=mock.Mock())
    with pytest.raises(MissingCredentialsError):
        t.login('1234')


def test_app_login():
    session = fake_session(
        FakeResponse(payload={'token_type': 'bearer', 'access_token': 'AAAA'}),
        FakeResponse(payload={'data': {'id': '1'}}))
    t = Twitter(auth=OAuth('key', 'secret'), session=session)
    app = t.app_login()

    _, url, kwargs = sent(session, 0)
    assert 'https://api.twitter.com/oauth2/token' == url
    assert 'grant_type=client_credentials' == kwargs['data']
    assert 'Basic ' + get_basic_auth_header('key', 'secret') == \
        kwargs['headers']['Authorization']

    assert isinstance(app.auth, OAuth2)
    app.v2.get('tweets/1')
    assert 'Bearer AAAA' == sent(session, 1)[2]['headers']['Authorization']


def test_app_login_needs_consumer_credentials():
    with pytest.raises(MissingCredentialsError):
        Twitter(session=mock.Mock()).app_login()


def test_generate_oauth2_auth_link():
    t = Twitter(client_id='cid', session=mock.Mock())
    link = t.generate_oauth2_auth_link(
        'https://example.com/cb', scope=['tweet.read', 'users.read'])

    assert link['url'].startswith(
        'https://twitter.com/i/oauth2/authorize?response_type=code'
        '&client_id=cid&')
    query = deparam_url(link['url'])
    assert 'https://example.com/cb' == query['redirect_uri']
    assert link['state'] == query['state']
    assert 32 == len(link['state'])
    assert 128 == len(link['code_verifier'])
    assert get_code_challenge(link['code_verifier']) == link['code_challenge']
    assert link['code_challenge'] == query['code_challenge']
    assert 's256' == query['code_challenge_method']
    assert 'tweet.read users.read' == query['scope']
    assert 'tweet.read users.read' == link['scope']


def test_generate_oauth2_auth_link_keeps_state():
    t = Twitter(client_id='cid', session=mock.Mock())
    link = t.generate_oauth2_auth_link('https://example.com/cb', state='xyz')
    assert 'xyz' == link['state']
    assert 'scope' not in link


def test_oauth2_needs_client_id():
    t = Twitter(session=mock.Mock())
    with pytest.raises(MissingCredentialsError):
        t.generate_oauth2_auth_link('https://example.com/cb')
    with pytest.raises(MissingCredentialsError):
        t.refresh_oauth2_token('refresh')


def test_login_with_oauth2_public_client():
    session = fake_session(FakeResponse(payload={
        'token_type': 'bearer', 'expires_in': 7200,
        'access_token': 'user-token', 'scope': 'tweet.read offline.access',
        'refresh_token': 'refresh'}))
    t = Twitter(client_id='cid', session=session)
    result = t.login_with_oauth2('code', 'verifier', 'https://example.com/cb')

    _, url, kwargs = sent(session)
    assert 'https://api.twitter.com/2/oauth2/token' == url
    assert {'code': 'code', 'code_verifier': 'verifier',
            'redirect_uri': 'https://example.com/cb',
            'grant_type': 'authorization_code',
            'client_id': 'cid'} == deparam(kwargs['data'])
    assert 'Authorization' not in kwargs['headers']

    assert 'user-token' == result['access_token']
    assert 'refresh' == result['refresh_token']
    assert 7200 == result['expires_in']
    assert ['tweet.read', 'offline.access'] == result['scope']
    assert 'Bearer user-token' == \
        result['client'].auth.generate_headers()['Authorization']


def test_refresh_oauth2_token_confidential_client():
    session = fake_session(FakeResponse(payload={
        'token_type': 'bearer', 'expires_in': 7200,
        'access_token': 'new-token', 'scope': 'tweet.read',
        'refresh_token': 'new-refresh'}))
    t = Twitter(client_id='cid', client_secret='csecret', session=session)
    result = t.refresh_oauth2_token('refresh')

    _, url, kwargs = sent(session)
    assert 'https://api.twitter.com/2/oauth2/token' == url
    assert {'refresh_token': 'refresh', 'grant_type': 'refresh_token',
            'client_id': 'cid'} == deparam(kwargs['data'])
    assert 'Basic ' + get_basic_auth_header('cid', 'csecret') == \
        kwargs['headers']['Authorization']
    assert 'new-refresh' == result['refresh_token']
    assert 'cid' == result['client'].client_id


def test_revoke_oauth2_token():
    session = fake_session(FakeResponse(payload={'revoked': True}))
    t = Twitter(client_id='cid', session=session)
    assert {'revoked': True} == t.revoke_oauth2_token('user-token')

    _, url, kwargs = sent(session)
    assert 'https://api.twitter.com/2/oauth2/revoke' == url
    assert {'token': 'user-token', 'token_type_hint': 'access_token',
            'client_id': 'cid'} == deparam(kwargs['data'])
