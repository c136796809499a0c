"""
Remote store access over WebDAV.

Remote paths are slash-delimited and relative to the client's base URL, with
raw (unencoded) segments: "2023/05/IMG 0001.jpg". The client percent-encodes
each segment on the way out and decodes names on the way back in.
"""

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import quote, unquote, urlsplit
from xml.etree import ElementTree

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .constants import DIRECTORY_LENGTH, get_logger
from .errors import RemoteStoreError

DAV_NS = "{DAV:}"

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8"?>'
    '<d:propfind xmlns:d="DAV:"><d:prop>'
    '<d:resourcetype/><d:getcontentlength/>'
    '</d:prop></d:propfind>'
)


@dataclass(frozen=True)
class RemoteEntry:
    """One child of a remote directory: its name and byte length (-1 for directories)."""
    name: str
    length: int

    @property
    def is_directory(self) -> bool:
        return self.length == DIRECTORY_LENGTH


def join_remote(parent: str, name: str) -> str:
    """Join a remote directory path and a child name."""
    parent = parent.strip('/')
    return f"{parent}/{name}" if parent else name


def create_retry_session(
    retries: int = 3,
    backoff_factor: float = 1.0,
    status_forcelist: tuple = (429, 500, 502, 503, 504)
) -> requests.Session:
    """
    Create a requests session that retries listings and directory creation.

    PUT is left out: a streamed file body cannot be replayed, and a failed
    upload is simply retried on the next sync run.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=status_forcelist,
        allowed_methods=["HEAD", "GET", "PROPFIND", "MKCOL"],
        raise_on_status=False
    )

    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


class WebDavClient:
    """List, create-directory and put-file against a WebDAV collection."""

    def __init__(self, base_url: str, username: Optional[str] = None,
                 password: Optional[str] = None, timeout: float = 60.0,
                 retries: int = 3):
        self.base_url = base_url.rstrip('/') + '/'
        self.auth: Optional[Tuple[str, str]] = (username, password or "") if username else None
        self.timeout = timeout
        self.retries = retries
        self.logger = get_logger("photoshelf.remote")
        self._local = threading.local()

    def _get_session(self) -> requests.Session:
        """Return the thread-local session, creating it on first access."""
        if not hasattr(self._local, "session"):
            session = create_retry_session(retries=self.retries)
            session.auth = self.auth
            self._local.session = session
        return self._local.session

    def url_for(self, path: str, directory: bool = False) -> str:
        """Absolute URL for a remote path, each segment percent-encoded."""
        segments = [quote(segment, safe="") for segment in path.strip('/').split('/') if segment]
        url = self.base_url + '/'.join(segments)
        if directory and segments:
            url += '/'
        return url

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            return self._get_session().request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise RemoteStoreError(f"{method} {url} failed: {e}") from e

    def _check(self, response: requests.Response, method: str, url: str, *ok: int) -> None:
        if response.status_code in ok:
            return
        if response.status_code in (401, 403):
            raise RemoteStoreError(f"{method} {url}: access denied ({response.status_code})",
                                   response.status_code)
        raise RemoteStoreError(f"{method} {url}: unexpected status {response.status_code}",
                               response.status_code)

    def list(self, path: str = "") -> List[RemoteEntry]:
        """List the direct children of a remote directory."""
        url = self.url_for(path, directory=True)
        response = self._request("PROPFIND", url, data=PROPFIND_BODY,
                                 headers={"Depth": "1",
                                          "Content-Type": "application/xml; charset=utf-8"})
        self._check(response, "PROPFIND", url, 207)

        entries = parse_multistatus(response.content, url)
        self.logger.debug(f"Listed {len(entries)} entries at /{path.strip('/')}")
        return entries

    def create_directory(self, path: str) -> bool:
        """Create a remote directory. Returns False if it already existed."""
        url = self.url_for(path, directory=True)
        response = self._request("MKCOL", url)
        if response.status_code == 405:
            # MKCOL on an existing resource
            return False
        self._check(response, "MKCOL", url, 200, 201)
        return True

    def put(self, path: str, local_file: Path) -> None:
        """Upload a local file to a remote path, replacing any existing file."""
        url = self.url_for(path)
        with open(local_file, 'rb') as f:
            response = self._request("PUT", url, data=f)
        self._check(response, "PUT", url, 200, 201, 204)


def parse_multistatus(content: bytes, request_url: str) -> List[RemoteEntry]:
    """Turn a PROPFIND Depth:1 response into the children of request_url."""
    try:
        root = ElementTree.fromstring(content)
    except ElementTree.ParseError as e:
        raise RemoteStoreError(f"Malformed PROPFIND response from {request_url}: {e}") from e

    own_path = unquote(urlsplit(request_url).path).rstrip('/')
    entries = []
    for response in root.iter(f"{DAV_NS}response"):
        href = response.findtext(f"{DAV_NS}href")
        if not href:
            continue
        href_path = unquote(urlsplit(href.strip()).path).rstrip('/')
        if href_path == own_path:
            continue

        name = href_path.rsplit('/', 1)[-1]
        is_collection = False
        length = 0
        for prop in response.iter(f"{DAV_NS}prop"):
            if prop.find(f"{DAV_NS}resourcetype/{DAV_NS}collection") is not None:
                is_collection = True
            content_length = prop.findtext(f"{DAV_NS}getcontentlength")
            if content_length and content_length.strip().isdigit():
                length = int(content_length.strip())

        entries.append(RemoteEntry(name=name, length=DIRECTORY_LENGTH if is_collection else length))
    return entries
