"""
Snapshot Persistence
====================

Durable storage for experiment snapshots, addressed by identifier.

A store exposes ``save(snapshot, identifier) -> handle`` and
``load(identifier) -> snapshot``. Saving under an existing identifier
replaces the previous snapshot, which is how the early stopper keeps a
single "best" snapshot per experiment.

FileSnapshotStore writes ``torch.save`` output to a temporary file in
the target directory and moves it into place with ``os.replace``. The
previous snapshot is only replaced once the new one is fully on disk.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Protocol, Union

import torch

from .errors import ResourceError


class SnapshotStore(Protocol):
    """Persistence collaborator consumed by the early stopper."""

    def save(self, snapshot: Dict[str, Any], identifier: str) -> Any:
        ...

    def load(self, identifier: str) -> Dict[str, Any]:
        ...


_UNSAFE = re.compile(r'[^A-Za-z0-9_.-]')


class FileSnapshotStore:
    """
    One ``.pt`` file per identifier.

    Parameters:
        directory: Target directory (created if missing)

    Example:
        >>> store = FileSnapshotStore('checkpoints')
        >>> path = store.save(experiment.state_dict(), experiment.id)
        >>> experiment.load_state_dict(store.load(experiment.id))
    """

    def __init__(self, directory: Union[str, Path] = 'checkpoints'):
        self.directory = Path(directory)
        self.directory.mkdir(exist_ok=True, parents=True)

    def path_for(self, identifier: str) -> Path:
        return self.directory / f"{_UNSAFE.sub('_', identifier)}.pt"

    def save(self, snapshot: Dict[str, Any], identifier: str) -> Path:
        """
        Atomically write ``snapshot``.

        Raises:
            ResourceError: If writing fails. The previous snapshot for
                ``identifier`` is left untouched.
        """
        path = self.path_for(identifier)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.stem}.", suffix='.tmp', dir=str(self.directory)
            )
            with os.fdopen(fd, 'wb') as f:
                torch.save(snapshot, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except Exception as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise ResourceError(f"Could not save snapshot '{identifier}' to {path}: {exc}") from exc
        return path

    def load(self, identifier: str) -> Dict[str, Any]:
        path = self.path_for(identifier)
        if not path.exists():
            raise ResourceError(f"No snapshot '{identifier}' at {path}")
        try:
            return torch.load(path, map_location='cpu', weights_only=False)
        except Exception as exc:
            raise ResourceError(f"Could not load snapshot '{identifier}' from {path}: {exc}") from exc

    def exists(self, identifier: str) -> bool:
        return self.path_for(identifier).exists()


__all__ = ['SnapshotStore', 'FileSnapshotStore']
