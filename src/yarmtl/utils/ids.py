"""Task ids: short random hex strings written as ``[id:xxxxxxxx]``."""

import secrets
from typing import Collection

ID_LENGTH = 8


def generate_task_id(length: int = ID_LENGTH) -> str:
    return secrets.token_hex((length + 1) // 2)[:length]


def unique_task_id(taken: Collection[str], length: int = ID_LENGTH) -> str:
    """
    Draw random ids until one is not in ``taken``.

    ``taken`` should include ids of deleted tasks so they are never handed out
    again while the store is open.
    """
    while True:
        task_id = generate_task_id(length)
        if task_id not in taken:
            return task_id
