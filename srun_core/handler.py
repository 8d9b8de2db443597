"""
Online handler: an operator command run once the session is online.

The command is split shell-style and started without a shell. Its exit is
watched on a daemon thread; a non-zero code is logged, never escalated.
"""

import shlex
import subprocess
import threading

from .config import log


def _watch(proc, command):
    try:
        ret = proc.wait()
    except Exception as e:
        log.error("Failed to wait for online handler %r: %s", command, e)
        return
    if ret != 0:
        log.warning("Online handler exited with non-zero code: %d", ret)
    else:
        log.debug("Online handler executed successfully")


def run_online_handler(command, wait=False):
    """
    Start ``command``. Returns the watcher thread, or None if it could not start.

    With ``wait`` the call blocks until the command exits.
    """
    log.debug("Network is online, executing online handler: %s", command)
    try:
        args = shlex.split(command)
        if not args:
            log.warning("Online handler command is empty")
            return None
        proc = subprocess.Popen(args, stdin=subprocess.DEVNULL)
    except (OSError, ValueError) as e:
        log.error("Failed to execute online handler: %s", e)
        return None

    watcher = threading.Thread(
        target=_watch, args=(proc, command), name="srun-online-handler", daemon=True,
    )
    watcher.start()
    if wait:
        watcher.join()
    return watcher
