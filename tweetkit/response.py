from .ratelimit import RateLimit


class TwitterResponse(object):
    """
    Response from a twitter request. Behaves like a list, a dict or a
    string (depending on what was returned) but it has a few other
    interesting attributes.

    `headers` gives you access to the response headers as a
    case-insensitive mapping. You can do `response.headers.get('h')` to
    retrieve a header.
    """

    @property
    def rate_limit(self):
        """
        The `RateLimit` announced with this response, or None.
        """
        return RateLimit.from_headers(self.headers)

    @property
    def rate_limit_remaining(self):
        """
        Remaining requests in the current rate-limit.
        """
        return int(self.headers.get('X-Rate-Limit-Remaining', "0"))

    @property
    def rate_limit_limit(self):
        """
        The rate limit ceiling for that given request.
        """
        return int(self.headers.get('X-Rate-Limit-Limit', "0"))

    @property
    def rate_limit_reset(self):
        """
        Time in UTC epoch seconds when the rate limit will reset.
        """
        return int(self.headers.get('X-Rate-Limit-Reset', "0"))


class TwitterDictResponse(dict, TwitterResponse):
    pass


class TwitterListResponse(list, TwitterResponse):
    pass


class TwitterStrResponse(str, TwitterResponse):
    pass


def wrap_response(response, headers, status_code=None):
    response_typ = type(response)
    if response_typ is dict:
        res = TwitterDictResponse(response)
    elif response_typ is list:
        res = TwitterListResponse(response)
    elif response_typ is str:
        res = TwitterStrResponse(response)
    else:
        return response
    res.headers = headers if headers is not None else {}
    res.status_code = status_code
    return res


__all__ = ["TwitterResponse", "wrap_response"]
