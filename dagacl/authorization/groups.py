"""Group mapping providers.

A group mapping resolves a user name into the set of group names the user
belongs to. The ACL manager only calls it when a group allow-list exists for
the checked action.

Available providers:
- unix: Primary and supplementary groups from the local account database
- shell: Output of ``id -Gn -- <user>``
- static: User to groups mapping from the [groups] configuration section

Any provider can be wrapped with :class:`CachedGroupMapping`.
"""

import grp
import logging
import pwd
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, Mapping, Optional, Set, Tuple

from dagacl import cmd_exec, config
from dagacl.common.exception import GroupLookupError

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SECS = 300


class GroupMappingProvider(ABC):
    """Abstract base class for group mapping providers.

    Providers may be called concurrently for different users and may block on
    I/O. They must raise :class:`GroupLookupError` when the backend fails, and
    return an empty set for users without groups.
    """

    @abstractmethod
    def get_groups(self, user: str) -> Set[str]:
        """Return the names of the groups ``user`` belongs to.

        Raises:
            GroupLookupError: If the groups could not be resolved
        """

    @abstractmethod
    def get_name(self) -> str:
        """Get the provider name for logging and debugging."""


class UnixGroupMapping(GroupMappingProvider):
    """Resolve groups from the local passwd and group databases."""

    def get_groups(self, user: str) -> Set[str]:
        try:
            passwd = pwd.getpwnam(user)
        except KeyError as e:
            raise GroupLookupError(f"Could not resolve user {user}: {e}") from e

        groups = set()
        try:
            groups.add(grp.getgrgid(passwd.pw_gid).gr_name)
        except KeyError:
            logger.debug("Primary group %d of user %s has no name", passwd.pw_gid, user)

        groups.update(g.gr_name for g in grp.getgrall() if user in g.gr_mem)
        return groups

    def get_name(self) -> str:
        return "unix"


class ShellGroupMapping(GroupMappingProvider):
    """Resolve groups by running ``id -Gn -- <user>``."""

    def __init__(self, command: Tuple[str, ...] = ("id", "-Gn", "--")) -> None:
        self._command = command

    def get_groups(self, user: str) -> Set[str]:
        try:
            ret = cmd_exec.run([*self._command, user])
        except cmd_exec.CommandError as e:
            raise GroupLookupError(f"Could not resolve groups for user {user}: {e}") from e

        groups = set()
        for line in ret["retout"]:
            groups.update(line.decode("utf-8", errors="replace").split())
        return groups

    def get_name(self) -> str:
        return "shell"


class StaticGroupMapping(GroupMappingProvider):
    """Resolve groups from a fixed user to groups mapping.

    Values can be given as iterables of group names or as comma separated
    strings, as found in the [groups] configuration section.
    """

    def __init__(self, mapping: Mapping[str, Iterable[str]]) -> None:
        self._mapping: Dict[str, Set[str]] = {}
        for user, groups in mapping.items():
            if isinstance(groups, str):
                groups = groups.split(",")
            self._mapping[user] = {g.strip() for g in groups if g.strip()}

    def get_groups(self, user: str) -> Set[str]:
        return set(self._mapping.get(user, ()))

    def get_name(self) -> str:
        return "static"


class CachedGroupMapping(GroupMappingProvider):
    """Cache the successful lookups of another provider for ``cache_secs``.

    Failed lookups are not cached, so that a recovering backend is retried on
    the next check.
    """

    def __init__(
        self,
        provider: GroupMappingProvider,
        cache_secs: float = DEFAULT_CACHE_SECS,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._cache_secs = cache_secs
        self._timer = timer
        self._cache: Dict[str, Tuple[float, Set[str]]] = {}
        self._lock = threading.Lock()

    def get_groups(self, user: str) -> Set[str]:
        now = self._timer()
        with self._lock:
            self._expire(now)
            cached = self._cache.get(user)
        if cached is not None:
            return set(cached[1])

        groups = self._provider.get_groups(user)
        with self._lock:
            self._cache.pop(user, None)
            self._cache[user] = (now, set(groups))
        return set(groups)

    def _expire(self, now: float) -> None:
        # Entries are inserted in lookup order, so the oldest come first
        while self._cache:
            user, (fetched, _) = next(iter(self._cache.items()))
            if now - fetched < self._cache_secs:
                break
            del self._cache[user]

    def invalidate(self, user: Optional[str] = None) -> None:
        """Drop the cached groups of ``user``, or of every user."""
        with self._lock:
            if user is None:
                self._cache.clear()
            else:
                self._cache.pop(user, None)

    def get_name(self) -> str:
        return f"cached({self._provider.get_name()})"


def get_group_mapping(component: str = "acl") -> GroupMappingProvider:
    """Build the group mapping provider configured for ``component``.

    Reads the ``group_mapping`` option (default: unix) and the
    ``group_cache_secs`` option (default: 300, 0 disables caching).
    Unknown provider names fall back to the unix provider.
    """
    provider_name = config.get(component, "group_mapping", fallback="unix")

    provider: GroupMappingProvider
    if provider_name == "unix":
        provider = UnixGroupMapping()
    elif provider_name == "shell":
        provider = ShellGroupMapping()
    elif provider_name == "static":
        provider = StaticGroupMapping(config.get_section_dict(component, "groups"))
    else:
        logger.error("Unknown group mapping provider: %s, falling back to unix", provider_name)
        provider = UnixGroupMapping()

    cache_secs = config.getint(component, "group_cache_secs", fallback=DEFAULT_CACHE_SECS)
    if cache_secs > 0:
        provider = CachedGroupMapping(provider, cache_secs)

    logger.info("Group mapping provider %s loaded", provider.get_name())
    return provider
