"""
HTTP session with connection pooling, automatic retry, and a certifi CA bundle.

Uploads and downloads run on worker threads; the shared session is never
used from the host's tick.
"""

import os

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import BUILD_VERSION, COMPONENT_NAME, VERSION

_retry_strategy = Retry(
    total=3,
    backoff_factor=2,                           # Wait 2s, 4s, 8s between retries
    status_forcelist=[502, 503, 504],
    allowed_methods=["HEAD", "GET", "POST"],
)


def _get_ca_bundle():
    """CA bundle path: env override first, then certifi."""
    env_ca = os.environ.get("REQUESTS_CA_BUNDLE") or os.environ.get("SSL_CERT_FILE")
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def component_headers():
    """Identify the component, its build and the protocol version."""
    return {
        "User-Agent": "%s/%d" % (COMPONENT_NAME, VERSION),
        "X-ModStatistics-Build": BUILD_VERSION,
        "X-ModStatistics-Protocol": str(VERSION),
    }


def create_session():
    """Create a new requests.Session with connection pooling, retry, and SSL."""
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=3,
        max_retries=_retry_strategy,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    session.headers.update(component_headers())
    return session


# Global shared session
http = create_session()
