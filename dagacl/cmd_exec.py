import os
import subprocess
from typing import Any, Dict, List, Optional, Sequence, Tuple, TypedDict, cast

from dagacl.common.exception import DagACLException

EXIT_SUCCESS = 0

EnvType = Dict[str, str]


class CommandError(DagACLException):
    _msg_fmt = "Command failed."


class RetDictType(TypedDict):
    retout: List[bytes]
    reterr: List[bytes]
    code: int


def _execute(cmd: Sequence[str], env: Optional[EnvType] = None, **kwargs: Any) -> Tuple[bytes, bytes, int]:
    with subprocess.Popen(cmd, env=env, stdout=subprocess.PIPE, stderr=subprocess.PIPE, **kwargs) as proc:
        out, err = proc.communicate()
        return out, err, proc.returncode


def run(
    cmd: Sequence[str],
    expectedcode: int = EXIT_SUCCESS,
    raiseOnError: bool = True,
    env: Optional[EnvType] = None,
    **kwargs: Any,
) -> RetDictType:
    """Execute external command.

    :param cmd: a sequence of command arguments
    :raises CommandError: if the command cannot be started, or exits with a
        code other than ``expectedcode`` while ``raiseOnError`` is set
    """
    if env is None:
        env = cast(EnvType, os.environ)

    try:
        retout, reterr, code = _execute(cmd, env=env, **kwargs)
    except OSError as e:
        raise CommandError(f"Command: {cmd} could not be executed: {e}") from e

    retout_list = retout.splitlines(keepends=True)
    reterr_list = reterr.splitlines(keepends=True)

    if code != expectedcode and raiseOnError:
        raise CommandError(f"Command: {cmd} returned {code}, expected {expectedcode}, stderr {reterr_list}")

    return {
        "retout": retout_list,
        "reterr": reterr_list,
        "code": code,
    }
