# Copyright 2020 The Syncthing-FUSE Developers
# See COPYING for details.

"""
HTTP client for the syncthing-fuse agent's REST API.
"""

import json

from eliot import (
    start_action,
)
from eliot.twisted import (
    inline_callbacks,
)

from twisted.internet.defer import (
    returnValue,
)
from twisted.internet.endpoints import (
    clientFromString,
)
from twisted.internet.error import (
    ConnectError,
)
from twisted.web import (
    http,
)
from twisted.web.client import (
    Agent,
)
from twisted.web.iweb import (
    IAgentEndpointFactory,
)

from hyperlink import (
    DecodedURL,
)

from treq.client import (
    HTTPClient,
)
from treq.testing import (
    StubTreq,
)
from zope.interface import (
    implementer,
)

import attr

from .model import (
    Configuration,
)

DEFAULT_API_ROOT = u"http://127.0.0.1:5833/api/"


class ClientError(Exception):
    """
    Base class for all exceptions in this module
    """


class CannotAccessAPIError(ClientError):
    """
    The agent's HTTP API can't be reached at all
    """


@attr.s(auto_exc=True)
class ConfigApiError(ClientError):
    """
    The agent's HTTP API returned a failure code.
    """
    code = attr.ib()
    body = attr.ib()

    def __repr__(self):
        return "<ConfigApiError code={} body={!r}>".format(
            self.code,
            self.body,
        )

    def __str__(self):
        return u"syncthing-fuse API reported error {}: {}".format(
            self.code,
            self.body.decode("utf8", "replace").strip() if isinstance(self.body, bytes) else self.body,
        )


@inline_callbacks
def _get_content_check_code(acceptable_codes, res):
    """
    Check that the given response's code is acceptable and read the response
    body.

    :raise ConfigApiError: If the response code is not acceptable.

    :return Deferred[bytes]: If the response code is acceptable, a Deferred
        which fires with the response body.
    """
    body = yield res.content()
    if res.code not in acceptable_codes:
        raise ConfigApiError(res.code, body)
    returnValue(body)


@inline_callbacks
def _get_json_check_code(acceptable_codes, res):
    """
    Like ``_get_content_check_code`` but parse the body as JSON.
    """
    body = yield _get_content_check_code(acceptable_codes, res)
    try:
        returnValue(json.loads(body.decode("utf8")))
    except ValueError:
        raise ConfigApiError(res.code, body)


@attr.s
class ConfigApiClient(object):
    """
    An object that knows how to call a particular agent's REST API.

    :ivar DecodedURL url: The root of the API (``.../api/``).

    :ivar HTTPClient http_client: The client to use to make HTTP requests.
    """

    url = attr.ib(validator=attr.validators.instance_of(DecodedURL))

    # HTTPClient does real networking, StubTreq operates in-memory on a
    # local resource object.
    http_client = attr.ib(
        validator=attr.validators.instance_of((HTTPClient, StubTreq)),
    )

    @inline_callbacks
    def _request(self, method, url, **kwargs):
        """
        Issue a request, turning connection problems into
        ``CannotAccessAPIError``.

        :param str method: GET, POST etc http verb

        :param DecodedURL url: the url to request
        """
        try:
            response = yield self.http_client.request(
                method,
                url.to_uri().to_text().encode("ascii"),
                **kwargs
            )
        except ConnectError as e:
            raise CannotAccessAPIError(
                "Can't reach the syncthing-fuse agent at all: {}".format(e)
            )
        returnValue(response)

    @inline_callbacks
    def get_config(self):
        """
        Fetch the configuration document.

        :returns Deferred[Configuration]:
        """
        with start_action(action_type=u"stfuse-config:client:get-config"):
            response = yield self._request(u"GET", self.url.child(u"system", u"config"))
            body = yield _get_json_check_code({http.OK}, response)
        returnValue(Configuration.from_json(body))

    @inline_callbacks
    def get_config_insync(self):
        """
        Ask the agent whether the configuration it runs with is the one it
        has stored.

        :returns Deferred[bool]:
        """
        response = yield self._request(
            u"GET",
            self.url.child(u"system", u"config", u"insync"),
        )
        body = yield _get_json_check_code({http.OK}, response)
        if not isinstance(body, bool):
            raise ConfigApiError(response.code, body)
        returnValue(body)

    @inline_callbacks
    def post_config(self, config):
        """
        Replace the agent's configuration.

        :param Configuration config: the whole document to store

        :returns Deferred[None]:
        """
        data = json.dumps(config.to_json(), ensure_ascii=False).encode("utf8")
        with start_action(action_type=u"stfuse-config:client:post-config", size=len(data)):
            response = yield self._request(
                u"POST",
                self.url.child(u"system", u"config"),
                data=data,
                headers={b"Content-Type": [b"application/json"]},
            )
            yield _get_content_check_code({http.OK, http.CREATED, http.NO_CONTENT}, response)

    @inline_callbacks
    def verify_device_id(self, candidate):
        """
        Ask the agent whether ``candidate`` is a well-formed device-ID.

        :returns Deferred[str|None]: the agent's error message, or ``None``
            if the device-ID is fine.
        """
        url = self.url.child(u"verify", u"deviceid").replace(
            query=[(u"id", candidate)],
        )
        response = yield self._request(u"GET", url)
        body = yield _get_json_check_code({http.OK}, response)
        if not isinstance(body, dict):
            raise ConfigApiError(response.code, body)
        returnValue(body.get(u"error") or None)

    @inline_callbacks
    def verify_human_size(self, candidate):
        """
        Ask the agent to parse ``candidate`` as a size such as "512 MiB".

        :raise ConfigApiError: (asynchronously) if the agent can't parse it

        :returns Deferred[None]:
        """
        response = yield self._request(
            u"POST",
            self.url.child(u"verify", u"humansize"),
            data=candidate.encode("utf8"),
        )
        yield _get_content_check_code({http.OK}, response)


@implementer(IAgentEndpointFactory)
@attr.s
class _StaticEndpointFactory(object):
    """
    Return the same endpoint for every request. This is the endpoint
    factory used by `create_http_client`.

    :ivar endpoint: the endpoint returned for every request
    """

    endpoint = attr.ib()

    def endpointForURI(self, uri):
        return self.endpoint


def create_http_client(reactor, api_client_endpoint_str):
    """
    :param reactor: Twisted reactor

    :param str api_client_endpoint_str: a Twisted client endpoint-string

    :returns: a Treq HTTPClient which will do all requests to the
        indicated endpoint
    """
    return HTTPClient(
        agent=Agent.usingEndpointFactory(
            reactor,
            _StaticEndpointFactory(
                clientFromString(reactor, api_client_endpoint_str),
            ),
        ),
    )


def create_config_api_client(url, http_client):
    """
    Create a new ConfigApiClient instance that is speaking to a particular
    agent.

    :param DecodedURL url: the root of the agent's REST API

    :param http_client: a Treq HTTP client

    :returns: a ConfigApiClient instance
    """
    return ConfigApiClient(
        url=url,
        http_client=http_client,
    )
