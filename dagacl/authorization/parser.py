"""Parser for the ACL options of AM and DAG configurations.

ACL option values use the application ACL format understood by the cluster
resource manager::

    view_acls = alice,bob analysts,ops

The users list comes first, followed by whitespace and the groups list. Both
lists are comma separated. A value of ``*`` grants the action to everyone, and
a value starting with whitespace lists groups only.
"""

import re
from typing import Callable, Mapping, Optional, Tuple

from dagacl.authorization.acl_type import WILDCARD_ACL_VALUE, ACLType, AllowList, PrincipalSet

# AM level options
VIEW_ACLS_OPTION = "view_acls"
MODIFY_ACLS_OPTION = "modify_acls"

# DAG level options, only read for DAG configurations
DAG_VIEW_ACLS_OPTION = "dag_view_acls"
DAG_MODIFY_ACLS_OPTION = "dag_modify_acls"

AM_ACL_OPTIONS = {
    VIEW_ACLS_OPTION: ACLType.AM_VIEW_ACL,
    MODIFY_ACLS_OPTION: ACLType.AM_MODIFY_ACL,
}

DAG_ACL_OPTIONS = {
    DAG_VIEW_ACLS_OPTION: ACLType.DAG_VIEW_ACL,
    DAG_MODIFY_ACLS_OPTION: ACLType.DAG_MODIFY_ACL,
}

_SPLIT_PATTERN = re.compile(r"\s+")

ParserFunc = Callable[[Optional[Mapping[str, str]], bool], Tuple[AllowList, AllowList]]


def _to_principal_set(value: str) -> PrincipalSet:
    return PrincipalSet(p.strip() for p in value.split(",") if p.strip())


class ACLConfigurationParser:
    """Parse the allowed users and groups out of a configuration mapping.

    For AM configurations (``dag_acls=False``) only ``view_acls`` and
    ``modify_acls`` are read. For DAG configurations only ``dag_view_acls``
    and ``dag_modify_acls`` are read, so a DAG cannot widen AM level access.
    """

    def __init__(self, conf: Optional[Mapping[str, str]], dag_acls: bool = False) -> None:
        self._allowed_users: AllowList = {}
        self._allowed_groups: AllowList = {}
        if conf is None:
            return

        options = DAG_ACL_OPTIONS if dag_acls else AM_ACL_OPTIONS
        for option, acl_type in options.items():
            self._parse_acl_type(conf.get(option), acl_type)

    def _parse_acl_type(self, acls_str: Optional[str], acl_type: ACLType) -> None:
        if acls_str is None or not acls_str.strip():
            return

        if acls_str.strip() == WILDCARD_ACL_VALUE:
            self._allowed_users[acl_type] = PrincipalSet([WILDCARD_ACL_VALUE])
            return

        acl_parts = _SPLIT_PATTERN.split(acls_str.rstrip(), maxsplit=1)

        users = _to_principal_set(acl_parts[0])
        if users:
            self._allowed_users[acl_type] = users

        if len(acl_parts) > 1:
            groups = _to_principal_set(acl_parts[1])
            if groups:
                self._allowed_groups[acl_type] = groups

    def get_allowed_users(self) -> AllowList:
        return self._allowed_users

    def get_allowed_groups(self) -> AllowList:
        return self._allowed_groups


def parse_acls(conf: Optional[Mapping[str, str]], dag_acls: bool = False) -> Tuple[AllowList, AllowList]:
    """Return the ``(allowed_users, allowed_groups)`` pair for ``conf``."""
    parser = ACLConfigurationParser(conf, dag_acls)
    return parser.get_allowed_users(), parser.get_allowed_groups()
