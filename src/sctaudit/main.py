import base64
import io
import json
import os.path
import sys
from typing import List, Optional, Tuple

from . import cert_encoding
from .config import Config
from .ct_log_client import CtLogClient
from .log_directory import LogDirectory
from .precert import reconstruct_precertificate
from .sct_parser import extract_scts
from .verify import CertificateData, SctVerifier, check_chain


def _read_chain(path: str) -> List[bytes]:
    if not os.path.isfile(path):
        raise Exception("File not found: " + path)
    with open(path, "rb") as f:
        chain = cert_encoding.pem_to_der_chain(f.read())
    if len(chain) == 0:
        raise Exception("No certificates found in " + path)
    return chain


class SctAuditMain:
    def __init__(self, config: Optional[Config] = None, log_directory: Optional[LogDirectory] = None,
                 client: Optional[CtLogClient] = None, debug_file: Optional[io.IOBase] = None,
                 out: Optional[io.IOBase] = None):
        self._config = config if config is not None else Config.from_env()
        self._log_directory = log_directory
        self._debug_file = debug_file
        self._client = client if client is not None else CtLogClient(timeout=self._config.timeout,
                                                                      debug_file=debug_file)
        self._out = out if out is not None else sys.stdout

    def _resolve_log_directory(self, path: Optional[str]) -> Optional[LogDirectory]:
        if path is not None:
            return LogDirectory.load(path)
        if self._log_directory is not None:
            return self._log_directory
        if self._config.log_list_path is not None:
            return LogDirectory.load(self._config.log_list_path)
        return None

    def scts(self, cliArgs: List[str]) -> int:
        if len(cliArgs) not in (1, 2):
            raise Exception("sctaudit scts expects a certificate and an optional log list")
        chain = _read_chain(cliArgs[0])
        log_directory = self._resolve_log_directory(cliArgs[1] if len(cliArgs) == 2 else None)
        scts = extract_scts(chain[0])
        if len(scts) == 0:
            print("No embedded SCTs", file=self._out)
            return 0
        for sct in scts:
            line = "{}\t{}\t{}/{}\tv{}".format(sct.log_id_hex, sct.timestamp_date, sct.signature_hash_algorithm,
                                                sct.signature_algorithm, sct.version + 1)
            log_info = log_directory.lookup_ct_log_by_id(sct.log_id) if log_directory is not None else None
            if log_info is not None:
                line += "\t{}\t{}".format(log_info.operator_name, log_info.description)
            print(line, file=self._out)
        return 0

    def precert(self, cliArgs: List[str]) -> int:
        if len(cliArgs) not in (1, 2):
            raise Exception("sctaudit precert expects a certificate and an optional output path")
        chain = _read_chain(cliArgs[0])
        tbs_certificate = reconstruct_precertificate(chain[0])
        if len(cliArgs) == 2:
            with open(cliArgs[1], "wb") as f:
                f.write(tbs_certificate)
        else:
            sys.stdout.buffer.write(tbs_certificate)
            sys.stdout.buffer.flush()
        return 0

    def leaf_hashes(self, cliArgs: List[str]) -> int:
        if len(cliArgs) != 1:
            raise Exception("sctaudit leaf-hashes expects exactly one argument")
        chain = _read_chain(cliArgs[0])
        if len(chain) < 2:
            raise Exception("A leaf and its issuer are needed to compute leaf hashes")
        for log_id, leaf_hash in cert_encoding.cert_to_leaf_hashes(chain[0], cert_encoding.ChainCertificate(chain[1])):
            print("{}|{}".format(base64.b64encode(log_id).decode('utf-8'),
                                 base64.b64encode(leaf_hash).decode('utf-8')), file=self._out)
        return 0

    def verify(self, cliArgs: List[str]) -> int:
        if len(cliArgs) not in (1, 2):
            raise Exception("sctaudit verify expects a certificate chain and an optional log list")
        chain = _read_chain(cliArgs[0])
        log_directory = self._resolve_log_directory(cliArgs[1] if len(cliArgs) == 2 else None)
        if log_directory is None:
            raise Exception("No log list given. Pass one or set SCTAUDIT_LOG_LIST.")

        verifier = SctVerifier(log_directory, client=self._client, max_workers=self._config.max_workers,
                               debug_file=self._debug_file)
        cert_data = CertificateData([cert_encoding.ChainCertificate(x) for x in chain])
        summary = check_chain(cert_data, verifier)
        print(json.dumps(summary.to_dict(), indent=2), file=self._out)
        if summary.total > 0 and summary.failed == 0:
            return 0
        return 1


def _parse_options(args: List[str]) -> Tuple[dict, List[str]]:
    options = {}
    positional = []
    for arg in args:
        if arg == "-v":
            options["verbose"] = True
        elif arg.startswith("--timeout="):
            options["timeout"] = float(arg[len("--timeout="):])
        elif arg.startswith("--max-workers="):
            options["max_workers"] = int(arg[len("--max-workers="):])
        elif arg.startswith("-"):
            raise Exception("Unsupported option: " + arg)
        else:
            positional.append(arg)
    return options, positional


def main(args: List[str]) -> int:
    options, args = _parse_options(args)
    if len(args) == 0:
        raise Exception("Usage: sctaudit [-v] [--timeout=N] [--max-workers=N] scts|precert|leaf-hashes|verify ...")

    env_config = Config.from_env()
    config = Config(timeout=options.get("timeout", env_config.timeout),
                    max_workers=options.get("max_workers", env_config.max_workers),
                    log_list_path=env_config.log_list_path)
    debug_file = sys.stderr if options.get("verbose") else None

    sct_audit_main = SctAuditMain(config=config, debug_file=debug_file)
    if args[0] == 'scts':
        return sct_audit_main.scts(args[1:])
    elif args[0] == 'precert':
        return sct_audit_main.precert(args[1:])
    elif args[0] == 'leaf-hashes':
        return sct_audit_main.leaf_hashes(args[1:])
    elif args[0] == 'verify':
        return sct_audit_main.verify(args[1:])
    else:
        raise Exception("Unsupported subcommand: " + args[0])


def run():
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
