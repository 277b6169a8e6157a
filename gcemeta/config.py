import dataclasses
import logging
import os
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

METADATA_HOST_ENV = "GCE_METADATA_HOST"

# Fixed IP rather than a DNS name so the service is hard to spoof; the
# environment override exists for local testing against a fake server.
DEFAULT_METADATA_HOST = "169.254.169.254"


@dataclasses.dataclass(frozen=True)
class MetadataConfig:
    host: str = DEFAULT_METADATA_HOST
    timeout: Optional[float] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "MetadataConfig":
        if environ is None:
            environ = os.environ

        host = environ.get(METADATA_HOST_ENV)
        if not host:
            host = DEFAULT_METADATA_HOST
        else:
            logger.debug("using metadata host from %s: %s", METADATA_HOST_ENV, host)

        return cls(host=host)
