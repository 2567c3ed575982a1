# -*- coding: utf-8 -*-
"""Tests for the keyboard session."""

import random

import pytest

from src.services.keyboard import Key, KeyAction, KeyboardSession


class TestKeyboardSession:
    """Tests for KeyboardSession."""

    def test_starts_without_highlight(self):
        session = KeyboardSession()
        assert session.index == -1
        assert session.length == 0

    def test_down_clamps_at_last_entry(self):
        """Down twice on three entries highlights index 1."""
        session = KeyboardSession()
        session.reset(3)

        session.press(Key.DOWN)
        session.press(Key.DOWN)
        assert session.index == 1

        session.press(Key.DOWN)
        session.press(Key.DOWN)
        assert session.index == 2

    def test_up_clamps_at_no_highlight(self):
        session = KeyboardSession()
        session.reset(3)
        session.down()

        session.up()
        session.up()
        assert session.index == -1

    def test_empty_list_never_highlights(self):
        session = KeyboardSession()
        session.reset(0)

        assert session.down() == -1
        assert session.press(Key.ENTER) == KeyAction.COMMIT

    def test_reset_drops_highlight(self):
        session = KeyboardSession()
        session.reset(3)
        session.down()
        session.down()

        session.reset(1)
        assert session.index == -1
        assert session.length == 1

    def test_negative_length_is_treated_as_empty(self):
        session = KeyboardSession()
        session.reset(-4)
        assert session.length == 0
        assert session.down() == -1

    @pytest.mark.parametrize(
        "downs, expected",
        [
            (0, KeyAction.COMMIT),
            (1, KeyAction.SELECT),
            (3, KeyAction.SELECT),
        ],
    )
    def test_enter_action(self, downs, expected):
        """Enter selects a highlighted entry and commits otherwise."""
        session = KeyboardSession()
        session.reset(2)
        for _ in range(downs):
            session.down()
        assert session.press(Key.ENTER) == expected

    def test_escape_closes_and_resets(self):
        session = KeyboardSession()
        session.reset(2)
        session.down()

        assert session.press(Key.ESCAPE) == KeyAction.CLOSE
        assert session.index == -1

    def test_accepts_raw_key_names(self):
        """DOM key names work as plain strings."""
        session = KeyboardSession()
        session.reset(2)

        assert session.press("ArrowDown") == KeyAction.NONE
        assert session.index == 0
        assert session.press("Tab") == KeyAction.NONE
        assert session.index == 0

    def test_index_always_in_bounds(self):
        """Random key sequences never leave [-1, length)."""
        rng = random.Random(42)
        keys = [Key.DOWN, Key.UP, Key.DOWN, Key.ESCAPE]
        session = KeyboardSession()

        for _ in range(200):
            length = rng.randint(0, 5)
            session.reset(length)
            for _ in range(rng.randint(1, 15)):
                session.press(rng.choice(keys))
                assert session.index == -1 or 0 <= session.index < length
