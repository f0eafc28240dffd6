"""
Тесты реестра фильтров и встроенных фильтров.
"""

import logging
from decimal import Decimal

import pytest

from lqt import filters as filters_module
from lqt.filters import BUILTIN_FILTERS, FilterRegistry, get_registry, register_filter, to_number
from lqt.values import UnresolvedPath


@pytest.fixture
def fresh_global_registry(monkeypatch):
    """Изолирует глобальный реестр от других тестов."""
    monkeypatch.setattr(filters_module, "_registry", None)
    yield get_registry()


class TestFilterRegistry:

    def test_register_and_get(self):
        registry = FilterRegistry()
        registry.register("shout", str.upper)

        assert registry.get("shout") is str.upper
        assert "shout" in registry
        assert list(registry) == ["shout"]
        assert len(registry) == 1

    def test_get_unknown_returns_none(self):
        assert FilterRegistry().get("nope") is None

    @pytest.mark.parametrize("name", ["", "1abc", "has space", "a.b", None])
    def test_invalid_names(self, name):
        with pytest.raises(ValueError, match="Invalid filter name"):
            FilterRegistry().register(name, str.upper)

    def test_non_callable(self):
        with pytest.raises(TypeError, match="must be callable"):
            FilterRegistry().register("x", 42)

    def test_overwrite_warns(self, caplog):
        registry = FilterRegistry({"x": str.upper})

        with caplog.at_level(logging.WARNING, logger="lqt.filters"):
            registry.register("x", str.lower)

        assert registry.get("x") is str.lower
        assert "overwrites" in caplog.text

    def test_layered_does_not_modify_base(self):
        base = FilterRegistry({"a": str.upper})
        layered = base.layered({"b": str.lower, "a": str.title})

        assert base.get("a") is str.upper
        assert "b" not in base
        assert layered.get("a") is str.title
        assert layered.get("b") is str.lower

    def test_global_registry_has_builtins(self, fresh_global_registry):
        for name in ("capitalize", "upcase", "downcase", "first", "plus"):
            assert name in fresh_global_registry
        assert len(fresh_global_registry) == len(BUILTIN_FILTERS)

    def test_register_filter_goes_to_global(self, fresh_global_registry):
        register_filter("reverse", lambda value: value[::-1])

        assert get_registry().get("reverse")("abc") == "cba"


class TestStringFilters:

    @pytest.mark.parametrize("value,expected", [
        ("leto atreides", "Leto Atreides"),
        ("duncan", "Duncan"),
        ("mIxEd case", "MIxEd Case"),
        ("", ""),
        (None, ""),
        (5, "5"),
    ])
    def test_capitalize(self, value, expected):
        assert BUILTIN_FILTERS["capitalize"](value) == expected

    def test_upcase_downcase(self):
        assert BUILTIN_FILTERS["upcase"]("Leto") == "LETO"
        assert BUILTIN_FILTERS["downcase"]("Duncan") == "duncan"
        assert BUILTIN_FILTERS["upcase"](True) == "TRUE"

    def test_upcase_on_object_uses_str(self, ghola_flat):
        assert BUILTIN_FILTERS["upcase"](ghola_flat) == "DUNCAN"

    @pytest.mark.parametrize("name", ["capitalize", "upcase", "downcase", "strip"])
    def test_placeholder_passes_through(self, name):
        placeholder = UnresolvedPath(("ghola", "master"))

        assert BUILTIN_FILTERS[name](placeholder) is placeholder

    def test_strip(self):
        assert BUILTIN_FILTERS["strip"]("  x  ") == "x"

    def test_append_prepend(self):
        assert BUILTIN_FILTERS["append"]("a", "b") == "ab"
        assert BUILTIN_FILTERS["prepend"]("a", "b") == "ba"
        assert BUILTIN_FILTERS["append"]("a", None) == "a"

    def test_escape(self):
        assert BUILTIN_FILTERS["escape"]("<b>&") == "&lt;b&gt;&amp;"


class TestCollectionFilters:

    def test_first_last(self):
        assert BUILTIN_FILTERS["first"](["a", "b"]) == "a"
        assert BUILTIN_FILTERS["last"](["a", "b"]) == "b"

    @pytest.mark.parametrize("value", [[], "abc", 5, None, {"a": 1}])
    def test_first_of_non_sequence_is_nil(self, value):
        assert BUILTIN_FILTERS["first"](value) is None

    @pytest.mark.parametrize("value,expected", [
        ([1, 2, 3], 3),
        ("abcd", 4),
        ({"a": 1}, 1),
        (None, 0),
        (7, 0),
    ])
    def test_size(self, value, expected):
        assert BUILTIN_FILTERS["size"](value) == expected

    def test_join(self):
        assert BUILTIN_FILTERS["join"](["a", 1, True]) == "a 1 true"
        assert BUILTIN_FILTERS["join"](["a", "b"], ", ") == "a, b"
        assert BUILTIN_FILTERS["join"]("abc", ",") == "abc"

    @pytest.mark.parametrize("value,expected", [
        (None, "x"),
        (False, "x"),
        ("", "x"),
        ([], "x"),
        (0, 0),
        ("a", "a"),
    ])
    def test_default(self, value, expected):
        assert BUILTIN_FILTERS["default"](value, "x") == expected


class TestArithmetic:

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        (2.5, 2.5),
        ("4", 4),
        (" 1.5 ", 1.5),
        ("abc", 0),
        (None, 0),
        (True, 0),
        ([1], 0),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_plus(self):
        assert BUILTIN_FILTERS["plus"](67, 1) == 68
        assert BUILTIN_FILTERS["plus"]("67", 1) == 68
        assert BUILTIN_FILTERS["plus"](1, 0.5) == 1.5
        assert BUILTIN_FILTERS["plus"](None, 2) == 2
        assert BUILTIN_FILTERS["plus"](5, "x") == 5

    def test_minus_times(self):
        assert BUILTIN_FILTERS["minus"](10, 3) == 7
        assert BUILTIN_FILTERS["times"](4, "2") == 8

    def test_decimal(self):
        assert BUILTIN_FILTERS["plus"](Decimal("1.10"), 2) == Decimal("3.10")

    def test_placeholder_passes_through(self):
        placeholder = UnresolvedPath(("a", "b"))

        assert BUILTIN_FILTERS["plus"](placeholder, 1) is placeholder
