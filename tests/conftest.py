import dataclasses
import logging
from typing import Dict, List, Optional

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from gcemeta.metadata import MetadataClient, PresenceProbe

logger = logging.getLogger(__name__)

TEST_HOST = "metadata.test"


@dataclasses.dataclass
class FakeRoute:
    status: int = 200
    body: str = ""
    headers: Dict[str, str] = dataclasses.field(default_factory=dict)
    error: Optional[Exception] = None


class FakeAdapter(BaseAdapter):
    """Transport adapter answering from a route table and recording requests.

    Requests to unknown URLs fail the way an unresolvable host does.
    """

    def __init__(self) -> None:
        super().__init__()
        self.routes: Dict[str, FakeRoute] = {}
        self.requests: List[requests.PreparedRequest] = []

    def add(self, url: str, **kwargs) -> None:
        self.routes[url] = FakeRoute(**kwargs)

    def send(self, request, **kwargs):
        logger.debug("fake request: %s", request.url)
        self.requests.append(request)

        route = self.routes.get(request.url)
        if route is None:
            raise requests.exceptions.ConnectionError(
                f"Failed to resolve host for {request.url}"
            )
        if route.error is not None:
            raise route.error

        response = requests.Response()
        response.status_code = route.status
        response.headers = CaseInsensitiveDict(route.headers)
        response._content = route.body.encode("utf-8")
        response.url = request.url
        response.request = request
        response.encoding = "utf-8"
        return response

    def close(self) -> None:
        pass


@pytest.fixture
def adapter():
    yield FakeAdapter()


@pytest.fixture
def session(adapter):
    session = requests.Session()
    session.mount("http://", adapter)
    yield session
    session.close()


@pytest.fixture
def presence():
    yield PresenceProbe()


@pytest.fixture
def client(session, presence):
    yield MetadataClient(host=TEST_HOST, session=session, presence=presence)


@pytest.fixture
def metadata(adapter):
    def _add(path: str, body: str = "", **kwargs) -> None:
        adapter.add(
            f"http://{TEST_HOST}/computeMetadata/v1/{path}", body=body, **kwargs
        )

    yield _add


@pytest.fixture(autouse=True)
def cleanup_logging():
    yield
    for name in ("gcemeta", "urllib3"):
        log = logging.getLogger(name)
        log.handlers = []
        log.propagate = True
        log.setLevel(logging.NOTSET)
