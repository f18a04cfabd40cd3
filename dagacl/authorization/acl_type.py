"""ACL types shared by the parser, the group mappings and the ACL manager."""

from collections.abc import MutableSet
from enum import Enum
from typing import Dict, Iterable, Iterator, Optional

WILDCARD_ACL_VALUE = "*"


class ACLType(Enum):
    """Actions protected by the ACL manager.

    AM actions cover the whole application master and every DAG running in
    it. DAG actions cover a single DAG only.
    """

    AM_VIEW_ACL = "am_view"
    AM_MODIFY_ACL = "am_modify"
    DAG_VIEW_ACL = "dag_view"
    DAG_MODIFY_ACL = "dag_modify"


DAG_ACL_TYPES = frozenset({ACLType.DAG_VIEW_ACL, ACLType.DAG_MODIFY_ACL})


class ApplicationAccessType(Enum):
    """Rights understood by the cluster resource manager's application ACLs."""

    VIEW_APP = "VIEW_APP"
    MODIFY_APP = "MODIFY_APP"


class PrincipalSet(MutableSet):  # type: ignore[type-arg]
    """Set of user or group names that remembers insertion order.

    The order only matters for rendering ACL strings, membership semantics are
    those of a regular set.
    """

    def __init__(self, principals: Optional[Iterable[str]] = None) -> None:
        self._items: Dict[str, None] = dict.fromkeys(principals or ())

    def __contains__(self, principal: object) -> bool:
        return principal in self._items

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add(self, value: str) -> None:
        self._items[value] = None

    def discard(self, value: str) -> None:
        self._items.pop(value, None)

    def update(self, principals: Iterable[str]) -> None:
        for principal in principals:
            self._items[principal] = None

    def copy(self) -> "PrincipalSet":
        return PrincipalSet(self._items)

    def __repr__(self) -> str:
        return f"PrincipalSet({list(self._items)!r})"


AllowList = Dict[ACLType, PrincipalSet]


def copy_allow_list(allow_list: AllowList) -> AllowList:
    return {acl_type: principals.copy() for acl_type, principals in allow_list.items()}


def merge_allow_list(target: AllowList, source: AllowList) -> None:
    """Union-merge ``source`` into ``target`` key by key.

    Existing principals are kept; entries missing in ``target`` are created.
    """
    for acl_type, principals in source.items():
        target.setdefault(acl_type, PrincipalSet()).update(principals)
