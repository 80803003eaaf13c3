"""Lock and state file handling for the puppetd agent.

puppetd encodes its state in a single lock file:

    absent          enabled, not running
    present, empty  disabled by an administrator
    present, data   a run is in progress (the file holds the run's pid)
"""

from enum import Enum
from pathlib import Path

from rpc_common.exceptions import LockFileError


class LockState(Enum):
    UNLOCKED = "unlocked"
    DISABLED = "disabled"
    RUNNING = "running"

    @property
    def enabled(self) -> bool:
        return self is not LockState.DISABLED

    @property
    def running(self) -> bool:
        return self is LockState.RUNNING


def read_lock_state(lockfile: Path) -> LockState:
    """Current lock state derived from the lock file's presence and size."""
    try:
        size = Path(lockfile).stat().st_size
    except FileNotFoundError:
        return LockState.UNLOCKED
    return LockState.DISABLED if size == 0 else LockState.RUNNING


def create_lock(lockfile: Path) -> None:
    """Create an empty lock file, disabling scheduled runs."""
    try:
        Path(lockfile).touch(exist_ok=False)
    except OSError as e:
        raise LockFileError(f"Could not create lock: {e}", path=str(lockfile)) from e


def remove_lock(lockfile: Path) -> None:
    """Remove the lock file, enabling scheduled runs."""
    try:
        Path(lockfile).unlink()
    except OSError as e:
        raise LockFileError(f"Could not remove lock: {e}", path=str(lockfile)) from e


def last_run(statefile: Path) -> int:
    """Epoch seconds of the last completed run, 0 if puppetd never ran."""
    try:
        return int(Path(statefile).stat().st_mtime)
    except FileNotFoundError:
        return 0
