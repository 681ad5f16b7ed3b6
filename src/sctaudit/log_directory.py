import base64
import json
from typing import Dict, Iterator, Optional

from .merkle import TreeHead

STATE_USABLE = "usable"
STATE_READONLY = "readonly"
STATE_RETIRED = "retired"
FROZEN_STATES = (STATE_READONLY, STATE_RETIRED)


class LogInfo:
    def __init__(self, log_id: bytes, operator_name: str, description: str, url: str, state: Optional[str] = None,
                 final_tree_head: Optional[TreeHead] = None):
        self.log_id = log_id
        self.operator_name = operator_name
        self.description = description
        self.url = url
        self.state = state
        self.final_tree_head = final_tree_head

    @property
    def is_frozen(self) -> bool:
        return self.state in FROZEN_STATES


def _parse_state(state: Optional[dict]):
    # v3 log lists nest the details under a single key naming the state, e.g. {"readonly": {"timestamp": ...}}
    if not state:
        return None, None
    name = next(iter(state))
    details = state[name] or {}
    final_tree_head = None
    if "final_tree_head" in details:
        sth = details["final_tree_head"]
        final_tree_head = TreeHead(int(sth["tree_size"]), base64.b64decode(sth["sha256_root_hash"]))
    return name, final_tree_head


class LogDirectory:
    def __init__(self, logs: Optional[Dict[str, LogInfo]] = None):
        self._logs = logs if logs is not None else {}

    @classmethod
    def from_log_list(cls, log_list: dict) -> "LogDirectory":
        logs = {}
        for operator in log_list.get("operators", []):
            for log in operator.get("logs", []) + operator.get("tiled_logs", []):
                if "log_id" not in log:
                    continue
                log_id = base64.b64decode(log["log_id"])
                state, final_tree_head = _parse_state(log.get("state"))
                logs[log_id.hex()] = LogInfo(
                    log_id=log_id,
                    operator_name=operator.get("name"),
                    description=log.get("description"),
                    url=log.get("url") or log.get("submission_url"),
                    state=state,
                    final_tree_head=final_tree_head
                )
        return cls(logs)

    @classmethod
    def load(cls, path: str) -> "LogDirectory":
        with open(path, "r") as f:
            return cls.from_log_list(json.loads(f.read()))

    def add_log(self, log_info: LogInfo) -> None:
        self._logs[log_info.log_id.hex()] = log_info

    def lookup_ct_log_by_id(self, log_id: bytes) -> Optional[LogInfo]:
        return self._logs.get(log_id.hex())

    def lookup_ct_log_by_hex_id(self, log_id_hex: str) -> Optional[LogInfo]:
        return self._logs.get(log_id_hex.lower())

    def __len__(self):
        return len(self._logs)

    def __iter__(self) -> Iterator[LogInfo]:
        return iter(self._logs.values())
