from __future__ import annotations

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import parse_url
from urllib3.util.retry import Retry


def make_session(retries: int = 0, backoff_factor: float = 1.0) -> requests.Session:
    """
    requests session with an urllib3 retry policy mounted on both schemes.
    retries=0 (the default) disables automatic retries entirely.
    """
    session = requests.Session()
    policy = Retry(
        total=retries,
        connect=retries,
        read=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["GET", "POST"],
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=policy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update({"Accept": "application/json"})
    return session


def public_url(url: str) -> str:
    """URL without credentials, query string or fragment; API keys travel in the query."""
    try:
        return parse_url(url)._replace(auth=None, query=None, fragment=None).url
    except ValueError:
        return "<unparseable url>"


def describe_error(e: Exception, url: str) -> str:
    """
    Safe one-line description of a failed request.
    requests/urllib3 exception text embeds the full request URL, so only the
    exception class and the public URL are kept.
    """
    return f"{type(e).__name__} calling {public_url(url)}"
