import argparse
import logging
import sys
from contextlib import nullcontext
from typing import List, NoReturn, Optional

from dagacl import acl_logging, config
from dagacl.authorization.manager import ACLManager, get_acl_manager
from dagacl.common.exception import ACLConfigurationError

logger = acl_logging.init_logging("acl_check")

ACTIONS = {
    "am_view": ACLManager.check_am_view_access,
    "am_modify": ACLManager.check_am_modify_access,
    "dag_view": ACLManager.check_dag_view_access,
    "dag_modify": ACLManager.check_dag_modify_access,
}


class CheckParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        sys.stderr.write(f"error: {message}\n")
        self.print_help(sys.stderr)
        sys.exit(2)


def _build_parser() -> CheckParser:
    parser = CheckParser(description="Check whether a user may view or modify the AM or a DAG")
    parser.add_argument("-u", "--user", help="user to check", required=True)
    parser.add_argument("-a", "--action", help="action to check", choices=sorted(ACTIONS), required=True)
    parser.add_argument("--am-user", help="user owning the AM (default: current user)", default=None)
    parser.add_argument("--dag-user", help="user owning the DAG", default=None)
    parser.add_argument("--dag-conf", help="YAML file with the ACLs submitted with the DAG", default=None)
    parser.add_argument("--render", help="print the application ACLs", action="store_true")
    parser.add_argument("--debug", help="raise log level to DEBUG", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.dag_conf and not args.dag_user:
        parser.error("a DAG user (--dag-user) is required with --dag-conf")

    if args.debug:
        logging.getLogger("dagacl").setLevel(logging.DEBUG)

    log_context = acl_logging.dag_log_context(args.dag_user) if args.dag_user else nullcontext()
    with log_context:
        try:
            manager = get_acl_manager(am_user=args.am_user)
            if args.dag_user:
                dag_conf = config.load_dag_conf(args.dag_conf) if args.dag_conf else None
                manager = ACLManager.for_dag(manager, args.dag_user, dag_conf)
        except ACLConfigurationError as e:
            logger.error("Invalid ACL configuration: %s", e)
            return 2

        allowed = ACTIONS[args.action](manager, args.user)

    print(f"{'GRANTED' if allowed else 'DENIED'}: user={args.user}, action={args.action}")

    if args.render:
        for access_type, acls in manager.to_application_acls().items():
            print(f"{access_type.value}={acls}")

    return 0 if allowed else 1


if __name__ == "__main__":
    sys.exit(main())
