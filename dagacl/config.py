import logging
import os
import os.path
from configparser import RawConfigParser
from typing import Any, Dict, List, Optional

import yaml

try:
    from yaml import CSafeLoader as SafeLoader
except ImportError:
    from yaml import SafeLoader  # type: ignore

from yaml import YAMLError

from dagacl.common.exception import ACLConfigurationError

base_logger = logging.getLogger("dagacl.config")


# Possible paths for base configuration files
CONFIG_FILES = {
    "acl": ["/etc/dagacl/acl.conf", "/usr/etc/dagacl/acl.conf"],
    "logging": ["/etc/dagacl/logging.conf", "/usr/etc/dagacl/logging.conf"],
}

# Paths to directories in which options can be overriden using configuration
# snippets
CONFIG_SNIPPETS_DIRS = {
    "acl": ["/usr/etc/dagacl/acl.conf.d", "/etc/dagacl/acl.conf.d"],
    "logging": ["/usr/etc/dagacl/logging.conf.d", "/etc/dagacl/logging.conf.d"],
}

CONFIG_ENV = {
    "acl": "",
    "logging": "",
}

# Add files from environment variables, if set
if "DAGACL_ACL_CONFIG" in os.environ:
    CONFIG_ENV["acl"] = os.environ["DAGACL_ACL_CONFIG"]
if "DAGACL_LOGGING_CONFIG" in os.environ:
    CONFIG_ENV["logging"] = os.environ["DAGACL_LOGGING_CONFIG"]

# ACL options read from the main section of a component
ACL_OPTIONS = ["acls_enabled", "view_acls", "modify_acls", "dag_view_acls", "dag_modify_acls"]

# Single instance
_config: Optional[Dict[str, RawConfigParser]] = None


def _validate_config_files(component: str, file_paths: List[str], files_read: List[str]) -> None:
    """Log an error for every existing config file that could not be parsed."""
    for file_path in file_paths:
        if not os.path.exists(file_path):
            continue

        if not os.access(file_path, os.R_OK):
            base_logger.error("Config file %s for component %s exists but is not readable", file_path, component)
            continue

        if file_path not in files_read:
            base_logger.error(
                "Config file %s for component %s exists but failed to parse. Check it for duplicate options "
                "in the [%s] section or invalid INI syntax",
                file_path,
                component,
                component,
            )


def get_config(component: str) -> RawConfigParser:
    """Find the configuration file to use for the given component and apply the
    overrides defined by configuration snippets.

    Configuration files are expected to be installed by the distribution on
    /usr/etc/dagacl or /etc/dagacl. If a configuration file is found in
    /etc/dagacl, the configuration file in /usr/etc/dagacl is ignored.

    If a configuration file path is set through a DAGACL_*_CONFIG environment
    variable, all configuration from other files for that component are ignored.

    The system administrator can define overrides for the values through
    configuration snippets in /etc/dagacl/<component>.conf.d, where
    <component> is one of: "acl" or "logging". Snippets are applied in
    lexicographic order.
    """

    global _config

    if not _config:
        _config = {}

    if not component:
        raise Exception("No component provided to get_config")

    if component not in _config:
        # Use RawConfigParser, so we can also use it as the logging config
        _config[component] = RawConfigParser()

        if not CONFIG_ENV or not isinstance(CONFIG_ENV, dict):
            raise Exception("Invalid CONFIG_ENV")

        if not component in CONFIG_ENV:
            raise Exception(f"Invalid component '{component}'")

        # A file set through environment variable overrides everything else
        if CONFIG_ENV[component]:
            if os.path.isfile(CONFIG_ENV[component]):
                config_files = _config[component].read(CONFIG_ENV[component])
                base_logger.info("Reading configuration from %s", config_files)
                return _config[component]

            base_logger.info(
                "Configuration file %s for %s set through environment variable not found, falling back to installed configuration",
                CONFIG_ENV[component],
                component,
            )

        if not CONFIG_FILES or not isinstance(CONFIG_FILES, dict):
            raise Exception("Invalid CONFIG_FILES")

        if not component in CONFIG_FILES:
            raise Exception(f"Invalid component {component}")

        if not any(os.path.exists(c) for c in CONFIG_FILES[component]):
            base_logger.debug("Config file not found in %s, using defaults for %s", CONFIG_FILES[component], component)
        else:
            for c in CONFIG_FILES[component]:
                # The first base configuration file found is used, the others
                # are ignored
                config_file = _config[component].read(c)
                _validate_config_files(component, [c], config_file)

                if config_file:
                    base_logger.info("Reading configuration from %s", config_file)

                    for d in (x for x in CONFIG_SNIPPETS_DIRS.get(component, []) if os.path.exists(x)):
                        snippets = sorted(
                            [os.path.join(d, f) for f in os.listdir(d) if f and os.path.isfile(os.path.join(d, f))]
                        )
                        applied_snippets = _config[component].read(snippets)
                        _validate_config_files(component, snippets, applied_snippets)

                        if applied_snippets:
                            base_logger.info("Applied configuration snippets from %s", d)

                    break

    return _config[component]


def _get_env(component: str, option: str, section: Optional[str]) -> Optional[str]:
    opt_section = f"_{section.upper()}" if section and section != component else ""
    env_name = f"DAGACL_{component.upper()}{opt_section}_{option.upper()}"
    env_value = os.environ.get(env_name, None)
    if env_value is not None:
        log_msg = f'option "{option}" on section {section} for component {component}.conf was overriden by environment variable {env_name}'
        base_logger.info(log_msg.replace("on section None ", ""))

    return env_value


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return env_value.strip('" ')

    return get_config(component).get(section, option, fallback=fallback).strip('" ')


def getint(component: str, option: str, section: Optional[str] = None, fallback: int = -1) -> int:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return int(env_value)

    return get_config(component).getint(section, option, fallback=fallback)


def has_option(component: str, option: str, section: Optional[str] = None) -> bool:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return True

    return get_config(component).has_option(section, option)


def get_section_dict(component: str, section: str) -> Dict[str, str]:
    """Return all the options of a section as a plain dictionary.

    A missing section results in an empty dictionary.
    """
    c = get_config(component)
    if not c.has_section(section):
        return {}
    return {option: value.strip('" ') for option, value in c.items(section)}


def get_acl_conf(component: str = "acl") -> Dict[str, str]:
    """Return the ACL options of the component main section.

    Options that are neither set in the configuration files nor through
    environment variables are left out, so that the ACL parser applies its own
    defaults.
    """
    acl_conf = {}
    for option in ACL_OPTIONS:
        if has_option(component, option):
            acl_conf[option] = get(component, option)
    return acl_conf


def _conf_value_to_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(str(v) for v in value)
    return str(value)


def load_dag_conf(path: str) -> Dict[str, str]:
    """Load the configuration submitted along with a DAG from a YAML file.

    The document must be a mapping. Scalar values are converted to strings and
    lists are joined with commas, so that ``dag_view_acls: [alice, bob]`` is
    equivalent to ``dag_view_acls: alice,bob``.

    :raises ACLConfigurationError: if the file cannot be read or is not a
        YAML mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.load(f, Loader=SafeLoader)
    except OSError as e:
        raise ACLConfigurationError(f"Could not read DAG configuration {path}: {e}") from e
    except YAMLError as e:
        raise ACLConfigurationError(f"Could not parse DAG configuration {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ACLConfigurationError(f"DAG configuration {path} must be a YAML mapping")

    return {str(k): _conf_value_to_str(v) for k, v in data.items() if v is not None}
