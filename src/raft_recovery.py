#!/usr/bin/env python3
"""
Raft data directory recovery
Wipes the node's persisted Raft state and exits so the supervisor restarts it clean
"""

import os
import shutil
import sys
from pathlib import Path
from typing import NoReturn
import logging

import probe_metrics

logger = logging.getLogger(__name__)

RECOVERY_EXIT_CODE = 100
RAFT_DATA_SUBPATH = os.path.join("data", "protocol", "raft")


class RecoveryTarget:
    """Location of the Raft persisted state under the node home"""

    def __init__(self, node_home: str, subpath: str = RAFT_DATA_SUBPATH):
        self.path = Path(node_home) / subpath

    @property
    def absolute_path(self) -> Path:
        return self.path.absolute()


def _log_delete_failure(function, path, excinfo):
    exc = excinfo[1] if isinstance(excinfo, tuple) else excinfo
    logger.warning(f"[ops monitor]could not delete {path}: {exc}")


def delete_directory(directory: Path) -> bool:
    """Remove a tree children-first, skipping entries that cannot be deleted.

    A symlink at the target is removed itself, never followed.
    Returns True when nothing is left at the path afterwards.
    """
    if directory.is_symlink():
        try:
            directory.unlink()
        except OSError as e:
            _log_delete_failure(os.unlink, directory, e)
        return not os.path.lexists(directory)
    if not directory.exists():
        return True
    if sys.version_info >= (3, 12):
        shutil.rmtree(directory, onexc=_log_delete_failure)
    else:
        shutil.rmtree(directory, onerror=_log_delete_failure)
    return not os.path.lexists(directory)


class RecoveryAction:
    def __init__(self, target: RecoveryTarget, exit_code: int = RECOVERY_EXIT_CODE):
        self.target = target
        self.exit_code = exit_code

    def execute(self) -> NoReturn:
        """Delete the Raft directory and terminate the process"""
        path = self.target.absolute_path
        logger.info(f"[ops monitor]delete raft module dir: {path}")
        if not delete_directory(path):
            logger.warning(f"[ops monitor]raft module dir only partially deleted: {path}")
        probe_metrics.recoveries.inc()
        logger.info("[ops monitor]system exit")
        raise SystemExit(self.exit_code)
