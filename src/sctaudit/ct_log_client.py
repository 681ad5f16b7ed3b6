import base64
import http.client
import io
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

from .config import DEFAULT_TIMEOUT
from .log_directory import LogInfo
from .merkle import HASH_SIZE, AuditProof, TreeHead


def normalize_log_url(ct_log: str) -> str:
    if (not ct_log.startswith("http://")) and (not ct_log.startswith("https://")):
        ct_log = "https://" + ct_log
    if not ct_log.endswith('/'):
        ct_log += '/'
    return ct_log


def _decode_hash(value: str) -> bytes:
    decoded = base64.b64decode(value, validate=True)
    if len(decoded) != HASH_SIZE:
        raise ValueError("Expected a {} byte hash, got {} bytes".format(HASH_SIZE, len(decoded)))
    return decoded


class CtLogClient:
    """
    Minimal RFC 6962 client for the two read endpoints needed to check inclusion. Every request is made once, with
    the configured timeout, and any failure is reported as None rather than raised.
    """

    def __init__(self, timeout: float = DEFAULT_TIMEOUT, debug_file: Optional[io.IOBase] = None):
        self._timeout = timeout
        self._debug_file = debug_file

    def _debug(self, message: str) -> None:
        if self._debug_file is not None:
            print(message, file=self._debug_file)

    def _fetch_json(self, url: str) -> Optional[dict]:
        self._debug("Fetching {}".format(url))
        try:
            with urllib.request.urlopen(url, timeout=self._timeout) as response:
                return json.loads(response.read())
        except urllib.error.HTTPError as e:
            self._debug("{} returned HTTP {}".format(url, e.code))
            return None
        except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
            self._debug("Unable to fetch {}: {}".format(url, e))
            return None
        except ValueError as e:
            self._debug("Malformed response from {}: {}".format(url, e))
            return None

    def get_sth(self, ct_log: str) -> Optional[TreeHead]:
        url = "{}ct/v1/get-sth".format(normalize_log_url(ct_log))
        sth = self._fetch_json(url)
        if sth is None:
            return None
        try:
            return TreeHead(int(sth["tree_size"]), _decode_hash(sth["sha256_root_hash"]))
        except (KeyError, TypeError, ValueError) as e:
            self._debug("Unusable STH from {}: {}".format(url, e))
            return None

    def get_tree_head(self, log_info: LogInfo) -> Optional[TreeHead]:
        # A frozen log will never grow, so its published final tree head is authoritative
        if log_info.is_frozen and log_info.final_tree_head is not None:
            return log_info.final_tree_head
        return self.get_sth(log_info.url)

    def get_proof_by_hash(self, ct_log: str, leaf_hash: bytes, tree_size: int) -> Optional[AuditProof]:
        url = "{}ct/v1/get-proof-by-hash?{}".format(normalize_log_url(ct_log), urllib.parse.urlencode({
            "hash": base64.b64encode(leaf_hash).decode('utf-8'),
            "tree_size": tree_size
        }))
        proof = self._fetch_json(url)
        if proof is None:
            return None
        try:
            return AuditProof(int(proof["leaf_index"]), [_decode_hash(node) for node in proof["audit_path"]])
        except (KeyError, TypeError, ValueError) as e:
            self._debug("Unusable proof from {}: {}".format(url, e))
            return None
