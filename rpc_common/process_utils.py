"""Process execution utilities for agent plugins."""

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rpc_common.exceptions import ProcessExecutionError
from rpc_common.logging import get_bound_logger

logger = get_bound_logger("process_utils")


class ProcessManager:
    """Manages async subprocess execution with timeout and cleanup.

    Commands are always executed as an argument vector; nothing here ever
    goes through a shell.
    """

    def __init__(self):
        self.active_processes: Dict[str, asyncio.subprocess.Process] = {}
        self.process_lock = asyncio.Lock()

    async def run_subprocess(
        self,
        cmd: List[str],
        process_id: str,
        working_dir: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> Tuple[int, str, str]:
        """Run a subprocess and collect its output.

        Args:
            cmd: Command and arguments to execute
            process_id: Unique ID for tracking this process
            working_dir: Working directory for the process
            env: Environment variables (defaults to os.environ)
            timeout: Overall timeout in seconds (None waits forever)

        Returns:
            Tuple of (returncode, stdout, stderr)

        Raises:
            ProcessExecutionError: If the command cannot be started
            asyncio.TimeoutError: If timeout exceeded (the process is killed)
        """
        if env is None:
            env = dict(os.environ)

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(working_dir) if working_dir else None,
                env=env
            )
        except OSError as e:
            raise ProcessExecutionError(f"{cmd[0]}: {e.strerror or e}", cmd=cmd) from e

        async with self.process_lock:
            self.active_processes[process_id] = process

        logger.info("Started process", process_id=process_id, pid=process.pid, cmd=cmd)

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Process timed out, killing", process_id=process_id, timeout=timeout)
            await self._kill(process)
            raise
        except asyncio.CancelledError:
            logger.warning("Process cancelled, killing", process_id=process_id)
            await self._kill(process)
            raise
        finally:
            async with self.process_lock:
                self.active_processes.pop(process_id, None)

        stdout_str = stdout.decode('utf-8', errors='replace')
        stderr_str = stderr.decode('utf-8', errors='replace')

        if stderr_str.strip():
            logger.debug("Process stderr", process_id=process_id, stderr=stderr_str.strip())

        logger.info("Process finished", process_id=process_id, returncode=process.returncode)
        return process.returncode, stdout_str, stderr_str

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()


# Global process manager instance
_process_manager: Optional[ProcessManager] = None


def get_process_manager() -> ProcessManager:
    """Get or create the global process manager."""
    global _process_manager
    if _process_manager is None:
        _process_manager = ProcessManager()
    return _process_manager


async def run_subprocess(
    cmd: List[str],
    process_id: str,
    **kwargs
) -> Tuple[int, str, str]:
    """Convenience function to run subprocess with global manager."""
    manager = get_process_manager()
    return await manager.run_subprocess(cmd, process_id, **kwargs)
