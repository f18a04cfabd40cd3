"""ACL manager for the AM and its DAGs.

The AM scoped manager is created once per process from the global
configuration. A DAG scoped manager is derived from it for every submitted
DAG, adding the DAG owner and the ACLs submitted with the DAG.
"""

import getpass
import logging
from configparser import RawConfigParser
from typing import Dict, Iterable, Mapping, Optional

from dagacl import config
from dagacl.authorization.acl_type import (
    DAG_ACL_TYPES,
    WILDCARD_ACL_VALUE,
    ACLType,
    AllowList,
    ApplicationAccessType,
    copy_allow_list,
    merge_allow_list,
)
from dagacl.authorization.groups import GroupMappingProvider, get_group_mapping
from dagacl.authorization.parser import ParserFunc, parse_acls
from dagacl.common.exception import ACLConfigurationError, GroupLookupError

logger = logging.getLogger(__name__)

ACLS_ENABLED_OPTION = "acls_enabled"
ACLS_ENABLED_DEFAULT = True

# Global AM scoped ACL manager instance
_manager: Optional["ACLManager"] = None


def _acls_enabled(conf: Mapping[str, str]) -> bool:
    raw = conf.get(ACLS_ENABLED_OPTION)
    if raw is None or not raw.strip():
        return ACLS_ENABLED_DEFAULT
    value = raw.strip('" ').lower()
    if value not in RawConfigParser.BOOLEAN_STATES:
        raise ACLConfigurationError(f"Invalid boolean value for {ACLS_ENABLED_OPTION}: {raw}")
    return RawConfigParser.BOOLEAN_STATES[value]


def to_comma_separated_string(principals: Iterable[str]) -> str:
    return ",".join(principals)


class ACLManager:
    """Decides whether a user may view or modify the AM or a DAG.

    Access is granted, in order, to:

    1. everyone, when ACLs are disabled
    2. the AM user, for every action
    3. the DAG user, for DAG actions of its own DAG
    4. users listed for the action, or everyone when the list holds ``*``
    5. members of the groups listed for the action

    AM level grants imply the DAG level ones, see :meth:`check_dag_view_access`
    and :meth:`check_dag_modify_access`.

    The allow-lists are filled during construction and never modified
    afterwards, so checks can run concurrently.
    """

    def __init__(
        self,
        group_mapping: GroupMappingProvider,
        am_user: str,
        conf: Optional[Mapping[str, str]] = None,
        parser: ParserFunc = parse_acls,
    ) -> None:
        """Create the AM scoped ACL manager.

        Args:
            group_mapping: Provider used to resolve the groups of a user
            am_user: The user owning the AM, always authorized
            conf: AM configuration. ACLs are enabled with empty allow-lists
                  when no configuration is given
            parser: Callable returning the ``(users, groups)`` allow-lists of
                    a configuration

        Raises:
            ACLConfigurationError: If ``am_user`` is empty, ``group_mapping``
                                   is missing or ``acls_enabled`` is invalid
        """
        if group_mapping is None:
            raise ACLConfigurationError("A group mapping provider is required")
        if not am_user:
            raise ACLConfigurationError("The AM user must not be empty")

        self._group_mapping = group_mapping
        self._am_user = am_user
        self._dag_user: Optional[str] = None
        self._parser = parser
        self._users: AllowList = {}
        self._groups: AllowList = {}

        if conf is None:
            self._acls_enabled = True
            return

        self._acls_enabled = _acls_enabled(conf)
        if not self._acls_enabled:
            logger.info("ACLs are disabled, access is granted to all users")
            return

        users, groups = parser(conf, False)
        merge_allow_list(self._users, users)
        merge_allow_list(self._groups, groups)
        logger.info("ACL manager initialized for AM user %s", am_user)

    @classmethod
    def for_dag(
        cls, am_acl_manager: "ACLManager", dag_user: str, dag_conf: Optional[Mapping[str, str]] = None
    ) -> "ACLManager":
        """Derive the DAG scoped ACL manager from the AM scoped one.

        The AM allow-lists are copied before the DAG ACLs are merged into them,
        so the AM manager and the managers of other DAGs never see the ACLs of
        this DAG.

        Raises:
            ACLConfigurationError: If ``dag_user`` is empty
        """
        if not dag_user:
            raise ACLConfigurationError("The DAG user must not be empty")

        manager = cls.__new__(cls)
        manager._group_mapping = am_acl_manager._group_mapping
        manager._am_user = am_acl_manager._am_user
        manager._dag_user = dag_user
        manager._parser = am_acl_manager._parser
        manager._acls_enabled = am_acl_manager._acls_enabled
        manager._users = copy_allow_list(am_acl_manager._users)
        manager._groups = copy_allow_list(am_acl_manager._groups)

        if not manager._acls_enabled or dag_conf is None:
            return manager

        users, groups = manager._parser(dag_conf, True)
        merge_allow_list(manager._users, users)
        merge_allow_list(manager._groups, groups)
        logger.debug("ACL manager derived for DAG user %s", dag_user)
        return manager

    @property
    def am_user(self) -> str:
        return self._am_user

    @property
    def dag_user(self) -> Optional[str]:
        return self._dag_user

    @property
    def acls_enabled(self) -> bool:
        return self._acls_enabled

    def get_allowed_users(self) -> AllowList:
        return copy_allow_list(self._users)

    def get_allowed_groups(self) -> AllowList:
        return copy_allow_list(self._groups)

    def check_access(self, user: str, acl_type: ACLType) -> bool:
        if not isinstance(acl_type, ACLType):
            raise TypeError(f"Unknown ACL type: {acl_type!r}")

        if not self._acls_enabled:
            return True
        if user == self._am_user:
            return True
        if acl_type in DAG_ACL_TYPES and self._dag_user is not None and user == self._dag_user:
            return True

        allowed_users = self._users.get(acl_type)
        if allowed_users:
            if WILDCARD_ACL_VALUE in allowed_users or user in allowed_users:
                return True

        allowed_groups = self._groups.get(acl_type)
        if allowed_groups:
            try:
                user_groups = self._group_mapping.get_groups(user)
            except (GroupLookupError, OSError) as e:
                logger.warning("Failed to retrieve groups for user, user=%s: %s", user, e)
                user_groups = set()
            if any(g in allowed_groups for g in user_groups):
                return True

        logger.debug("Access denied: user=%s, acl_type=%s", user, acl_type.value)
        return False

    def check_am_view_access(self, user: str) -> bool:
        return self.check_access(user, ACLType.AM_VIEW_ACL)

    def check_am_modify_access(self, user: str) -> bool:
        return self.check_access(user, ACLType.AM_MODIFY_ACL)

    def check_dag_view_access(self, user: str) -> bool:
        return self.check_access(user, ACLType.AM_VIEW_ACL) or self.check_access(user, ACLType.DAG_VIEW_ACL)

    def check_dag_modify_access(self, user: str) -> bool:
        return self.check_access(user, ACLType.AM_MODIFY_ACL) or self.check_access(user, ACLType.DAG_MODIFY_ACL)

    def to_application_acls(self) -> Dict[ApplicationAccessType, str]:
        """Render the AM ACLs for the cluster resource manager.

        Each right maps to ``"<am_user>[,<users>][ <groups>]"``, or to ``*``
        when ACLs are disabled or the right is granted to everyone. DAG ACLs
        are never rendered.
        """
        if not self._acls_enabled:
            return {
                ApplicationAccessType.VIEW_APP: WILDCARD_ACL_VALUE,
                ApplicationAccessType.MODIFY_APP: WILDCARD_ACL_VALUE,
            }

        rights = {
            ApplicationAccessType.VIEW_APP: ACLType.AM_VIEW_ACL,
            ApplicationAccessType.MODIFY_APP: ACLType.AM_MODIFY_ACL,
        }
        acls: Dict[ApplicationAccessType, str] = {}
        for access_type, acl_type in rights.items():
            allowed_users = self._users.get(acl_type) or ()
            if WILDCARD_ACL_VALUE in allowed_users:
                acls[access_type] = WILDCARD_ACL_VALUE
                continue

            acls_str = self._am_user
            users_str = to_comma_separated_string(allowed_users)
            if users_str:
                acls_str += "," + users_str

            allowed_groups = self._groups.get(acl_type)
            if allowed_groups:
                acls_str += " " + to_comma_separated_string(allowed_groups)

            acls[access_type] = acls_str

        return acls


def get_acl_manager(am_user: Optional[str] = None, component: str = "acl") -> ACLManager:
    """Get the process wide AM scoped ACL manager.

    The manager is created on first access from the configuration of
    ``component`` and reused for all subsequent calls; the arguments are only
    used on first initialization. ``am_user`` defaults to the user running the
    process.
    """
    global _manager

    if _manager is None:
        _manager = ACLManager(
            get_group_mapping(component),
            am_user or getpass.getuser(),
            config.get_acl_conf(component),
        )

    return _manager


def reset_acl_manager() -> None:
    """Drop the process wide ACL manager, the next access recreates it."""
    global _manager
    _manager = None
