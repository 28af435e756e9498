"""Unit tests for Todo repository helpers."""

import pytest

from api.src.repositories.todo_repo import TodoItemExistsError, conflicting_id


class TestConflictingId:
    """Test extraction of the id from unique-violation details."""

    @pytest.mark.parametrize(
        "detail, expected",
        [
            ("Key (id)=(2) already exists.", 2),
            ("Key (id)=(-9223372036854775808) already exists.", -2**63),
            ("Key (name)=(x) already exists.", None),
            (None, None),
        ],
    )
    def test_conflicting_id(self, detail, expected):
        """Test the id is read from the driver's detail text."""
        assert conflicting_id(detail) == expected

    def test_exists_error_names_the_id(self):
        """Test the conflict message names the taken id."""
        error = TodoItemExistsError(conflicting_id("Key (id)=(7) already exists."))

        assert str(error) == "Todo item 7 already exists"
        assert error.item_id == 7
