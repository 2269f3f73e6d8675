import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamStatus:
    name: str
    reachable: bool
    status_code: Optional[int]
    checked_at_unix_s: float


def probe_upstream(name: str, url: str, timeout_s: float = 1.0) -> UpstreamStatus:
    """Cheap reachability check for an external dependency.

    Any HTTP answer below 500 counts as reachable (auth errors included).
    Never raises; callers decide what an unreachable upstream means.
    """
    try:
        resp = requests.get(url, timeout=timeout_s)
        return UpstreamStatus(
            name=name,
            reachable=resp.status_code < 500,
            status_code=resp.status_code,
            checked_at_unix_s=time.time(),
        )
    except requests.RequestException as e:
        logger.warning("%s unavailable: %s", name, e)
        return UpstreamStatus(
            name=name,
            reachable=False,
            status_code=None,
            checked_at_unix_s=time.time(),
        )
