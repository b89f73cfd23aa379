import os
import sys
from datetime import datetime, timezone


def get_base_path() -> str:
    """
    Return the base directory used for data files.

    Returns:
        str: the executable's directory when frozen, otherwise the project root
    """
    if getattr(sys, 'frozen', False):
        return os.path.dirname(sys.executable)
    else:
        # tasksync/utils.py -> two levels up is the project root
        return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
