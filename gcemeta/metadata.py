import dataclasses
import json
import logging
import threading
from typing import List, Optional, Tuple

import requests

from .config import MetadataConfig

logger = logging.getLogger(__name__)

METADATA_FLAVOR_HEADER = "Metadata-Flavor"
METADATA_FLAVOR = "Google"
METADATA_PATH_PREFIX = "/computeMetadata/v1/"

# DNS name rather than the IP; fails fast when not on GCE.
PROBE_URL = "http://metadata.google.internal"


class MetadataError(Exception):
    pass


class NotDefinedError(MetadataError):
    def __init__(self, path: str) -> None:
        super().__init__(f'metadata: GCE metadata "{path}" not defined')
        self.path = path


class UnexpectedStatusError(MetadataError):
    def __init__(self, status_code: int, url: str) -> None:
        super().__init__(f"status code {status_code} trying to fetch {url}")
        self.status_code = status_code
        self.url = url


class TransportError(MetadataError):
    def __init__(self, url: str, cause: Exception) -> None:
        super().__init__(f"failed to fetch {url}: {cause}")
        self.url = url
        self.cause = cause


class ParseError(MetadataError):
    def __init__(self, path: str, body: str) -> None:
        super().__init__(f"metadata: unable to parse GCE metadata {path!r}: {body!r}")
        self.path = path
        self.body = body


class PresenceProbe:
    """Compute-once check for whether this process runs on GCE."""

    def __init__(self, url: str = PROBE_URL) -> None:
        self.url = url
        self._lock = threading.Lock()
        self._value: Optional[bool] = None

    def check(self, session: requests.Session) -> bool:
        with self._lock:
            if self._value is None:
                self._value = self._probe(session)
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = None

    def _probe(self, session: requests.Session) -> bool:
        try:
            logger.debug("probing metadata server: %s", self.url)
            response = session.get(self.url)
        except requests.exceptions.RequestException as exc:
            logger.debug("metadata probe failed (error=%r)", exc)
            return False

        flavor = response.headers.get(METADATA_FLAVOR_HEADER)
        logger.debug("metadata probe %s=%r", METADATA_FLAVOR_HEADER, flavor)
        return flavor == METADATA_FLAVOR


_presence = PresenceProbe()


def _last_path_segment(value: str) -> str:
    return value[value.rfind("/") + 1 :]


@dataclasses.dataclass
class MetadataClient:
    host: str
    session: requests.Session = dataclasses.field(default_factory=requests.Session)
    timeout: Optional[float] = None
    presence: PresenceProbe = dataclasses.field(default=_presence, repr=False)

    @classmethod
    def from_config(
        cls, config: MetadataConfig, *, session: Optional[requests.Session] = None
    ) -> "MetadataClient":
        if session is None:
            session = requests.Session()
        return cls(host=config.host, session=session, timeout=config.timeout)

    @classmethod
    def from_env(cls, *, session: Optional[requests.Session] = None) -> "MetadataClient":
        return cls.from_config(MetadataConfig.from_env(), session=session)

    def url(self, path: str) -> str:
        return f"http://{self.host}{METADATA_PATH_PREFIX}{path}"

    def fetch(self, path: str) -> Tuple[str, str]:
        """Fetch the raw value and etag stored under path.

        :raises NotDefinedError: path is not defined (404).
        :raises UnexpectedStatusError: any other non-200 status.
        :raises TransportError: the request could not be completed.
        """
        url = self.url(path)
        try:
            logger.debug("fetching: %s", url)
            response = self.session.get(
                url,
                headers={METADATA_FLAVOR_HEADER: METADATA_FLAVOR},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.debug("fetch of %s failed (error=%r)", url, exc)
            raise TransportError(url, exc) from exc

        logger.debug("fetched %s (status=%d)", url, response.status_code)
        if response.status_code == 404:
            raise NotDefinedError(path)
        if response.status_code != 200:
            raise UnexpectedStatusError(response.status_code, url)

        body = response.content.decode("utf-8", errors="replace")
        return body, response.headers.get("Etag", "")

    def get(self, path: str) -> str:
        value, _ = self.fetch(path)
        return value

    def fetch_trimmed(self, path: str) -> str:
        return self.get(path).strip()

    def fetch_lines(self, path: str) -> List[str]:
        return [line.strip() for line in self.get(path).strip().split("\n")]

    def on_gce(self) -> bool:
        """Report whether this process is running on Google Compute Engine.

        The probe runs at most once per process; later calls return the
        cached answer.
        """
        return self.presence.check(self.session)

    probe_presence = on_gce

    def project_id(self) -> str:
        return self.fetch_trimmed("project/project-id")

    def numeric_project_id(self) -> str:
        return self.fetch_trimmed("project/numeric-project-id")

    def internal_ip(self) -> str:
        return self.fetch_trimmed("instance/network-interfaces/0/ip")

    def external_ip(self) -> str:
        return self.fetch_trimmed(
            "instance/network-interfaces/0/access-configs/0/external-ip"
        )

    def hostname(self) -> str:
        """Hostname of the form "<instance>.c.<project>.internal"."""
        return self.fetch_trimmed("instance/hostname")

    def description(self) -> str:
        return self.fetch_trimmed("instance/description")

    def instance_id(self) -> str:
        return self.fetch_trimmed("instance/id")

    def zone(self) -> str:
        # projects/<project-number>/zones/<zone>
        return _last_path_segment(self.fetch_trimmed("instance/zone"))

    def machine_type(self) -> str:
        # projects/<project-number>/machineTypes/<machine-type>
        return _last_path_segment(self.fetch_trimmed("instance/machine-type"))

    def instance_name(self) -> str:
        return self.hostname().split(".")[0]

    def instance_tags(self) -> List[str]:
        path = "instance/tags"
        body = self.get(path)
        try:
            tags = json.loads(body)
        except (ValueError, RecursionError) as exc:
            raise ParseError(path, body) from exc

        if tags is None:
            return []

        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise ParseError(path, body)

        return tags

    def instance_attributes(self) -> List[str]:
        return self.fetch_lines("instance/attributes/")

    def instance_attribute_value(self, name: str) -> str:
        """Return the untrimmed value of a custom instance attribute.

        An attribute defined as the empty string returns "". An undefined
        attribute raises NotDefinedError.
        """
        return self.get(f"instance/attributes/{name}")


def on_gce(session: Optional[requests.Session] = None) -> bool:
    if session is None:
        with requests.Session() as session:
            return _presence.check(session)
    return _presence.check(session)
