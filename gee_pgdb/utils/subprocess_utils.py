"""Common subprocess utilities for the PostgreSQL admin binaries."""

import subprocess
import time
from pathlib import Path
from typing import Dict, List, Optional, Union


class SubprocessRunner:
    """Subprocess execution with consistent error reporting."""

    def __init__(self, timeout: int = 3600):
        self.timeout = timeout

    def run_command(self,
                   cmd: List[str],
                   env: Optional[Dict[str, str]] = None,
                   cwd: Optional[Union[str, Path]] = None) -> Dict[str, Union[bool, str, float, int]]:
        """
        Execute command and collect its outcome.

        Returns dict with keys: success, error, duration, returncode, stdout, stderr
        """
        result = {
            'success': False,
            'error': None,
            'duration': 0,
            'returncode': -1,
            'stdout': '',
            'stderr': ''
        }

        start = time.time()
        try:
            process = subprocess.run(
                cmd,
                env=env,
                cwd=cwd,
                capture_output=True,
                text=True,
                errors='replace',
                timeout=self.timeout
            )
            result['returncode'] = process.returncode
            result['stdout'] = process.stdout
            result['stderr'] = process.stderr
            result['duration'] = time.time() - start

            if process.returncode == 0:
                result['success'] = True
            else:
                result['error'] = f"Command failed with exit code {process.returncode}"
                if process.stderr:
                    result['error'] += f"\nSTDERR: {process.stderr.strip()}"

        except subprocess.TimeoutExpired as e:
            result['duration'] = time.time() - start
            result['error'] = f"Command timed out after {self.timeout} seconds"
            if e.stderr:
                result['stderr'] = e.stderr.decode('utf-8', errors='replace') if isinstance(e.stderr, bytes) else str(e.stderr)
        except FileNotFoundError:
            result['error'] = f"Command not found: {cmd[0] if cmd else 'unknown'}"
        except OSError as e:
            result['error'] = f"Could not execute {cmd[0] if cmd else 'unknown'}: {e}"
        except Exception as e:
            result['error'] = f"Unexpected error: {e}"

        return result


def validate_path(path: Union[str, Path], must_exist: bool = True) -> Path:
    """Resolve a command-line path; raises ValueError if it must exist and does not."""
    path = Path(path).expanduser().resolve()
    if must_exist and not path.exists():
        raise ValueError(f"Path does not exist: {path}")
    return path
