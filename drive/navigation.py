"""Current-folder pointer and breadcrumb stack."""

import logging
from typing import List, Optional

from common.types import Address, NavigationFrame

logger = logging.getLogger(__name__)


class NavigationState:
    """
    Breadcrumb stack of opened folders; the top frame is the current folder.

    Holds addresses only. When a folder is re-synthesized under a new address
    every frame pointing at the old one is rewritten.
    """

    def __init__(self):
        self._frames: List[NavigationFrame] = []

    @property
    def current(self) -> Optional[NavigationFrame]:
        return self._frames[-1] if self._frames else None

    @property
    def current_address(self) -> Optional[Address]:
        """Address of the open folder, None at the root."""
        frame = self.current
        return frame.address if frame else None

    @property
    def at_root(self) -> bool:
        return not self._frames

    def push(self, frame: NavigationFrame) -> None:
        self._frames.append(frame)
        logger.debug(f"Opened folder [address={frame.address}, depth={len(self._frames)}]")

    def pop(self) -> Optional[NavigationFrame]:
        """Leave the current folder; no-op at the root."""
        if not self._frames:
            return None
        return self._frames.pop()

    def pop_to(self, index: int) -> None:
        """
        Truncate the stack so that the frame at index becomes current.

        Args:
            index: Breadcrumb index to keep; -1 returns to the root

        Raises:
            IndexError: If index is outside the stack
        """
        if index == -1:
            self._frames.clear()
            return
        if index < 0 or index >= len(self._frames):
            raise IndexError(f"Breadcrumb index out of range: {index}")
        del self._frames[index + 1:]

    def repoint(self, old_address: Address, new_address: Address) -> int:
        """
        Rewrite every frame that references old_address.

        Returns:
            Number of frames rewritten
        """
        rewritten = 0
        for i, frame in enumerate(self._frames):
            if frame.address == old_address:
                self._frames[i] = NavigationFrame(address=new_address, display_name=frame.display_name)
                rewritten += 1
        if rewritten:
            logger.debug(f"Navigation repointed [old={old_address}, new={new_address}, frames={rewritten}]")
        return rewritten

    def breadcrumbs(self) -> List[NavigationFrame]:
        return list(self._frames)

    def path(self) -> str:
        """Human readable path such as /photos/2024."""
        return '/' + '/'.join(frame.display_name for frame in self._frames)
