"""Context handed to merged inputs of a DAG vertex.

A merged input groups several physical inputs under one name. Its context
only forwards the user payload, the readiness signal and the work directories;
it takes no access decisions.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Mapping, Optional, Sequence


class InputReadyTracker(ABC):
    """Tracks which inputs of a task have data available."""

    @abstractmethod
    def set_input_is_ready(self, merged_input: Any) -> None:
        """Mark ``merged_input`` as ready to be consumed."""


class UserPayload:
    """Immutable wrapper around an optional opaque payload."""

    def __init__(self, payload: Optional[bytes] = None) -> None:
        self._payload = bytes(payload) if payload is not None else None

    def get_payload(self) -> Optional[bytes]:
        return self._payload

    def has_payload(self) -> bool:
        return self._payload is not None


class MergedInputContext:
    def __init__(
        self,
        user_payload: Optional[bytes],
        group_input_name: str,
        group_inputs: Mapping[str, Any],
        input_ready_tracker: InputReadyTracker,
        work_dirs: Sequence[str],
    ) -> None:
        if group_input_name is None:
            raise ValueError("group_input_name is None")
        if group_inputs is None:
            raise ValueError("input-group map is None")
        if input_ready_tracker is None:
            raise ValueError("input_ready_tracker is None")

        self._user_payload = UserPayload(user_payload)
        self._group_input_name = group_input_name
        self._group_inputs = group_inputs
        self._input_ready_tracker = input_ready_tracker
        self._work_dirs = list(work_dirs or [])

    def get_user_payload(self) -> Optional[bytes]:
        return self._user_payload.get_payload()

    def input_is_ready(self) -> None:
        self._input_ready_tracker.set_input_is_ready(self._group_inputs.get(self._group_input_name))

    def get_work_dirs(self) -> List[str]:
        return list(self._work_dirs)
