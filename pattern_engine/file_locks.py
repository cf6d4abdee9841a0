"""
File Locks

One threading.Lock per resolved store path, shared by every store instance
in the process that points at the same file.
"""

import threading
from pathlib import Path
from typing import Dict

_file_locks: Dict[str, threading.Lock] = {}
_file_locks_guard = threading.Lock()


def lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _file_locks_guard:
        if key not in _file_locks:
            _file_locks[key] = threading.Lock()
        return _file_locks[key]
