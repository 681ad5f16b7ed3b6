import io
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import List, Optional

from .cert_encoding import MAX_TBS_CERTIFICATE_LENGTH, ChainCertificate, build_precert_merkle_tree_leaf, \
    issuer_key_hash, leaf_hash
from .config import DEFAULT_MAX_WORKERS
from .ct_log_client import CtLogClient
from .log_directory import LogDirectory, LogInfo
from .merkle import verify_audit_path
from .precert import reconstruct_precertificate
from .sct_parser import SignedCertificateTimestamp, extract_scts

REASON_VERIFIED = "verified"
REASON_UNKNOWN_LOG = "unknown_log"
REASON_TREE_HEAD_UNAVAILABLE = "tree_head_unavailable"
REASON_PROOF_UNAVAILABLE = "proof_unavailable"
REASON_PROOF_INVALID = "proof_invalid"
REASON_ERROR = "error"

# How often a running batch looks at its cancel event
CANCEL_POLL_INTERVAL = 0.05


class CertificateData:
    def __init__(self, certificates: List[ChainCertificate], scts: Optional[List[SignedCertificateTimestamp]] = None):
        self.certificates = certificates
        if scts is None:
            if len(certificates) > 0 and certificates[0].raw_der:
                scts = extract_scts(certificates[0].raw_der)
            else:
                scts = []
        self.scts = scts


class SctVerificationResult:
    def __init__(self, sct: SignedCertificateTimestamp, verified: bool, reason: str,
                 log_info: Optional[LogInfo] = None):
        self.sct = sct
        self.verified = verified
        # Diagnostic only; callers should rely on `verified`
        self.reason = reason
        self.log_info = log_info


def _result_to_dict(result: SctVerificationResult) -> dict:
    sct = result.sct
    log_info = result.log_info
    return {
        "sct": {
            "version": sct.version,
            "logId": sct.log_id_hex,
            "timestamp": sct.timestamp,
            "timestampDate": sct.timestamp_date,
            "signatureHashAlgorithm": sct.signature_hash_algorithm,
            "signatureAlgorithm": sct.signature_algorithm,
            "origin": sct.origin,
            "logOperator": log_info.operator_name if log_info is not None else None,
            "logDescription": log_info.description if log_info is not None else None,
            "logUrl": log_info.url if log_info is not None else None,
            "logState": log_info.state if log_info is not None else None,
        },
        "verified": result.verified,
        "reason": result.reason,
    }


class VerificationSummary:
    def __init__(self, results: Optional[List[SctVerificationResult]] = None,
                 verification_time_ms: Optional[int] = None):
        self.results = results if results is not None else []
        self.verification_time_ms = verification_time_ms

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def verified(self) -> int:
        return len([x for x in self.results if x.verified])

    @property
    def failed(self) -> int:
        return self.total - self.verified

    def to_dict(self) -> dict:
        summary = {
            "total": self.total,
            "verified": self.verified,
            "failed": self.failed,
            "results": [_result_to_dict(x) for x in self.results],
        }
        if self.verification_time_ms is not None:
            summary["verificationTimeMs"] = self.verification_time_ms
        return summary


class SctVerifier:
    def __init__(self, log_directory: LogDirectory, client: Optional[CtLogClient] = None,
                 max_workers: int = DEFAULT_MAX_WORKERS, debug_file: Optional[io.IOBase] = None):
        self._log_directory = log_directory
        self._client = client if client is not None else CtLogClient(debug_file=debug_file)
        self._max_workers = max_workers
        self._debug_file = debug_file

    def _debug(self, message: str) -> None:
        if self._debug_file is not None:
            print(message, file=self._debug_file)

    def verify_sct(self, sct: SignedCertificateTimestamp, key_hash: bytes,
                   tbs_certificate: bytes) -> SctVerificationResult:
        log_info = self._log_directory.lookup_ct_log_by_id(sct.log_id)
        if log_info is None or not log_info.url:
            self._debug("No log known for id {}".format(sct.log_id_hex))
            return SctVerificationResult(sct, False, REASON_UNKNOWN_LOG, log_info)

        merkle_tree_leaf = build_precert_merkle_tree_leaf(sct, key_hash, tbs_certificate)
        sct_leaf_hash = leaf_hash(merkle_tree_leaf)

        tree_head = self._client.get_tree_head(log_info)
        if tree_head is None:
            return SctVerificationResult(sct, False, REASON_TREE_HEAD_UNAVAILABLE, log_info)

        proof = self._client.get_proof_by_hash(log_info.url, sct_leaf_hash, tree_head.tree_size)
        if proof is None:
            return SctVerificationResult(sct, False, REASON_PROOF_UNAVAILABLE, log_info)

        if not verify_audit_path(sct_leaf_hash, proof.leaf_index, proof.audit_path, tree_head.tree_size,
                                 tree_head.root_hash):
            self._debug("Inclusion proof from {} does not match its tree head".format(log_info.url))
            return SctVerificationResult(sct, False, REASON_PROOF_INVALID, log_info)

        self._debug("SCT from {} verified at index {} of {}".format(log_info.url, proof.leaf_index,
                                                                  tree_head.tree_size))
        return SctVerificationResult(sct, True, REASON_VERIFIED, log_info)

    def _task_result(self, future: Future, sct: SignedCertificateTimestamp) -> SctVerificationResult:
        try:
            return future.result()
        except Exception as e:
            # Only this SCT is scored as failed
            self._debug("Verifying SCT from log {} failed: {!r}".format(sct.log_id_hex, e))
            log_info = self._log_directory.lookup_ct_log_by_id(sct.log_id)
            return SctVerificationResult(sct, False, REASON_ERROR, log_info)

    def verify_certificate_scts(self, cert_data: CertificateData,
                                cancel_event: Optional[threading.Event] = None) -> VerificationSummary:
        """
        Checks every SCT of the leaf certificate against its log. The precertificate and the issuer key hash are
        computed once and shared read-only between the per-SCT tasks.

        A malformed leaf raises DecodeError. Anything that goes wrong for a single SCT only marks that SCT as
        unverified. If `cancel_event` gets set, unfinished SCTs are left out of the summary.
        """
        if cert_data is None or len(cert_data.certificates) < 2 or len(cert_data.scts) == 0:
            return VerificationSummary()
        leaf, issuer = cert_data.certificates[0], cert_data.certificates[1]
        if not leaf.raw_der or not issuer.raw_der:
            return VerificationSummary()

        tbs_certificate = reconstruct_precertificate(leaf.raw_der)
        if len(tbs_certificate) > MAX_TBS_CERTIFICATE_LENGTH:
            raise ValueError("Precertificate of {} bytes is too large for a log entry".format(len(tbs_certificate)))
        key_hash = issuer_key_hash(issuer)

        scts = cert_data.scts
        results = [None] * len(scts)
        executor = ThreadPoolExecutor(max_workers=min(self._max_workers, len(scts)))
        try:
            futures = {}
            for i, sct in enumerate(scts):
                futures[executor.submit(self.verify_sct, sct, key_hash, tbs_certificate)] = i

            pending = set(futures)
            while pending:
                if cancel_event is not None and cancel_event.is_set():
                    self._debug("Verification cancelled with {} SCTs outstanding".format(len(pending)))
                    break
                done, pending = wait(pending, timeout=CANCEL_POLL_INTERVAL if cancel_event is not None else None,
                                     return_when=FIRST_COMPLETED)
                for future in done:
                    results[futures[future]] = self._task_result(future, scts[futures[future]])
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return VerificationSummary([x for x in results if x is not None])


def check_chain(cert_data: CertificateData, verifier: SctVerifier,
                cancel_event: Optional[threading.Event] = None) -> VerificationSummary:
    start = time.monotonic()
    summary = verifier.verify_certificate_scts(cert_data, cancel_event=cancel_event)
    summary.verification_time_ms = int((time.monotonic() - start) * 1000)
    return summary
