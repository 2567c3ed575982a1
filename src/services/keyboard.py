# -*- coding: utf-8 -*-
"""Keyboard session over the currently rendered result list."""

from enum import Enum


class Key(str, Enum):
    """Keys the search panel reacts to (DOM `KeyboardEvent.key` names)."""

    DOWN = "ArrowDown"
    UP = "ArrowUp"
    ENTER = "Enter"
    ESCAPE = "Escape"


class KeyAction(str, Enum):
    """What the controller should do after a key press."""

    NONE = "none"
    SELECT = "select"
    COMMIT = "commit"
    CLOSE = "close"


class KeyboardSession:
    """Highlight index over a candidate list of a given length.

    The index is always -1 (nothing highlighted) or a valid position.
    """

    def __init__(self):
        self._index = -1
        self._length = 0

    @property
    def index(self) -> int:
        return self._index

    @property
    def length(self) -> int:
        return self._length

    def reset(self, length: int = 0) -> None:
        """Start over on a new candidate list."""
        self._length = max(length, 0)
        self._index = -1

    def down(self) -> int:
        self._index = min(self._index + 1, self._length - 1)
        return self._index

    def up(self) -> int:
        self._index = max(self._index - 1, -1)
        return self._index

    def press(self, key: str) -> KeyAction:
        """Apply a key press and tell the caller what to do next.

        Enter yields SELECT when an entry is highlighted and COMMIT otherwise.
        """
        if key == Key.DOWN:
            self.down()
            return KeyAction.NONE
        if key == Key.UP:
            self.up()
            return KeyAction.NONE
        if key == Key.ENTER:
            if 0 <= self._index < self._length:
                return KeyAction.SELECT
            return KeyAction.COMMIT
        if key == Key.ESCAPE:
            self._index = -1
            return KeyAction.CLOSE
        return KeyAction.NONE
