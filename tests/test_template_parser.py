"""
Тесты парсера тегов: структура AST и ошибки разбора.
"""

import logging

import pytest

from lqt import ConfigError, LexError, ParseError, ParseErrorKind, ParseOptions, parse
from lqt.expressions import Negation
from lqt.expressions.model import Comparison, LiteralExpression, VariablePath
from lqt.nodes import (
    Assign,
    Capture,
    Conditional,
    CustomTag,
    Literal,
    Output,
    Switch,
    collect_literal_text,
    format_tree,
)
from lqt.parser import parse_template, register_tag, registered_tags


class TestStructure:

    def test_text_only_template(self):
        """Текстовый шаблон состоит из одного литерала"""
        template = parse("it's over 9000")

        assert len(template.code) == 1
        assert isinstance(template.code[0], Literal)
        assert template.code[0].text == "it's over 9000"

    def test_empty_template(self):
        assert parse("").code == ()

    def test_output_node(self):
        nodes = parse_template("hello {{ name | capitalize }}")

        assert isinstance(nodes[1], Output)
        assert nodes[1].expression == VariablePath(("name",))
        assert [call.name for call in nodes[1].filters] == ["capitalize"]

    def test_if_elseif_else(self):
        nodes = parse_template("{% if a %}x{% elseif b %}y{% elsif c %}w{% else %}z{% endif %}")

        conditional = nodes[0]
        assert isinstance(conditional, Conditional)
        assert conditional.tag == "if"
        assert len(conditional.branches) == 4
        assert conditional.branches[0].condition == VariablePath(("a",))
        assert conditional.branches[1].condition == VariablePath(("b",))
        assert conditional.branches[2].condition == VariablePath(("c",))
        assert conditional.branches[3].condition is None
        assert [b.body for b in conditional.branches] == [
            (Literal("x"),), (Literal("y"),), (Literal("w"),), (Literal("z"),)
        ]

    def test_unless_negates_condition(self):
        nodes = parse_template("{% unless x == 1 %}a{% else %}b{% endunless %}")

        conditional = nodes[0]
        assert conditional.tag == "unless"
        assert isinstance(conditional.branches[0].condition, Negation)
        assert isinstance(conditional.branches[0].condition.operand, Comparison)
        assert conditional.branches[1].condition is None

    def test_nested_blocks(self):
        nodes = parse_template("{% if a %}{% if b %}in{% endif %}{% endif %}")

        outer = nodes[0]
        inner = outer.branches[0].body[0]
        assert isinstance(inner, Conditional)
        assert inner.branches[0].body == (Literal("in"),)

    def test_case(self):
        nodes = parse_template(
            "{% case 123 %}{% when 'abc' %}w1{% when 1 or 123 %}w2{% else %}e{% endcase%}"
        )

        switch = nodes[0]
        assert isinstance(switch, Switch)
        assert switch.subject == LiteralExpression(123)
        assert switch.cases[0].values == (LiteralExpression("abc"),)
        assert switch.cases[1].values == (LiteralExpression(1), LiteralExpression(123))
        assert switch.else_body == (Literal("e"),)

    def test_case_without_else(self):
        switch = parse_template("{% case x %}{% when 1 %}a{% endcase %}")[0]

        assert switch.else_body is None

    def test_case_discards_leading_content(self):
        switch = parse_template("{% case x %}\n  {% when 1 %}a{% endcase %}")[0]

        assert len(switch.cases) == 1
        assert collect_literal_text((switch,)) == "a"

    def test_capture(self):
        nodes = parse_template("{% capture intro %}Mr.{{ name }}{% endcapture %}")

        capture = nodes[0]
        assert isinstance(capture, Capture)
        assert capture.name == "intro"
        assert capture.body[0] == Literal("Mr.")
        assert isinstance(capture.body[1], Output)

    def test_assign(self):
        assign = parse_template("{% assign x = name | upcase %}")[0]

        assert isinstance(assign, Assign)
        assert assign.name == "x"
        assert assign.filters[0].name == "upcase"

    def test_comment_produces_no_nodes(self):
        nodes = parse_template("a{% comment %}{% if %}{% comment %}x{% endcomment %}{{ }}{% endcomment %}b")

        assert nodes == (Literal("a"), Literal("b"))

    def test_raw_block_is_literal(self):
        nodes = parse_template("{% raw %}{{ not parsed }}{% endraw %}")

        assert nodes == (Literal("{{ not parsed }}"),)

    def test_custom_tag(self):
        def now(arguments, context):
            return "12:00"

        nodes = parse_template("{% now utc %}", tags={"now": now})

        assert isinstance(nodes[0], CustomTag)
        assert nodes[0].name == "now"
        assert nodes[0].arguments == "utc"
        assert nodes[0].function is now

    def test_collect_literal_text_covers_all_branches(self):
        nodes = parse_template(
            "a{% if x %}b{% else %}c{% endif %}{% case y %}{% when 1 %}d{% else %}e{% endcase %}"
            "{% capture z %}f{% endcapture %}"
        )

        assert collect_literal_text(nodes) == "abcdef"

    def test_format_tree(self):
        nodes = parse_template("{% if a == 1 %}x{% else %}{{ b | plus: 2 }}{% endif %}")
        tree = format_tree(nodes)

        assert "Conditional(if)" in tree
        assert "when a == 1:" in tree
        assert "Output(b | plus: 2)" in tree

    def test_template_dump(self):
        template = parse("{% capture x %}y{% endcapture %}")

        assert template.dump().startswith("Capture(x)")


class TestParseErrors:

    def _parse_error(self, source, **kwargs):
        with pytest.raises(ParseError) as exc_info:
            parse(source, **kwargs)
        return exc_info.value

    def test_wrong_family_closer(self):
        """if, закрытый endunless, отвергается"""
        error = self._parse_error("{% if x %}a{% endunless %}")

        assert error.kind == ParseErrorKind.UNMATCHED_TAG
        assert error.position == 11

    @pytest.mark.parametrize("source,tag", [
        ("{% if x %}abc", "if"),
        ("{% unless x %}abc", "unless"),
        ("{% case x %}{% when 1 %}abc", "case"),
        ("{% capture x %}abc", "capture"),
        ("{% comment %}abc", "comment"),
        ("{% if x %}{% else %}abc", "if"),
    ])
    def test_unclosed_block(self, source, tag):
        error = self._parse_error(source)

        assert error.kind == ParseErrorKind.UNMATCHED_TAG
        assert f"Unclosed '{tag}'" in error.message
        assert error.position == 0

    @pytest.mark.parametrize("source", [
        "{% endif %}",
        "{% else %}",
        "{% when 1 %}",
        "{% unless x %}{% elseif y %}{% endunless %}",
        "{% if x %}{% else %}{% else %}{% endif %}",
        "{% if x %}{% else %}{% elseif y %}{% endif %}",
        "{% case x %}{% else %}{% when 1 %}{% endcase %}",
    ])
    def test_misplaced_inner_tag(self, source):
        assert self._parse_error(source).kind == ParseErrorKind.UNMATCHED_TAG

    def test_unknown_tag(self):
        error = self._parse_error("{% frobnicate %}")

        assert error.kind == ParseErrorKind.UNEXPECTED_TOKEN
        assert "Unknown tag 'frobnicate'" in error.message

    def test_empty_tag(self):
        assert "Empty tag" in self._parse_error("{% %}").message

    def test_malformed_tag(self):
        assert self._parse_error("{% if(x) %}").kind == ParseErrorKind.UNEXPECTED_TOKEN

    def test_end_tag_with_arguments(self):
        error = self._parse_error("{% if x %}{% endif x %}")

        assert "takes no arguments" in error.message

    def test_raw_with_arguments(self):
        assert "takes no arguments" in self._parse_error("{% raw x %}{% endraw %}").message

    def test_unknown_filter(self):
        error = self._parse_error("{{ name | nope }}")

        assert error.kind == ParseErrorKind.MALFORMED_EXPRESSION
        assert "Unknown filter 'nope'" in error.message

    @pytest.mark.parametrize("source", [
        "{% if %}x{% endif %}",
        "{% if x == %}x{% endif %}",
        "{{ }}",
        "{{ a. }}",
        "{% capture 1x %}{% endcapture %}",
        "{% assign = 1 %}",
    ])
    def test_malformed_expression(self, source):
        assert self._parse_error(source).kind == ParseErrorKind.MALFORMED_EXPRESSION

    def test_expression_error_position_is_in_template_coordinates(self):
        error = self._parse_error("line\n{{ a | nope }}")

        assert error.position == 12
        assert (error.line, error.column) == (2, 8)

    def test_error_in_elseif_condition(self):
        error = self._parse_error("{% if a %}{% elseif == %}{% endif %}")

        assert error.position == 20

    def test_lex_error_propagates(self):
        with pytest.raises(LexError):
            parse("{% if x %}{{ x")

    def test_user_errors_share_base(self):
        from lqt import LqtUserError

        with pytest.raises(LqtUserError):
            parse("{% endif %}")

    def test_reserved_custom_tag(self):
        with pytest.raises(ConfigError, match="built in"):
            ParseOptions(tags={"if": lambda arguments, context: ""})


class TestRegisteredTags:

    @pytest.fixture(autouse=True)
    def isolated_tags(self, monkeypatch):
        """Изолирует глобальные теги от других тестов."""
        import lqt.parser

        monkeypatch.setattr(lqt.parser, "_registered_tags", {})

    def test_registered_tag_is_available_everywhere(self):
        register_tag("spice", lambda arguments, context: "melange")

        assert parse("{% spice %}").render_string() == "melange"
        assert isinstance(parse_template("{% spice %}")[0], CustomTag)

    def test_options_tags_override_registered(self):
        register_tag("spice", lambda arguments, context: "melange")
        options = ParseOptions(tags={"spice": lambda arguments, context: "sapho"})

        assert parse("{% spice %}", options).render_string() == "sapho"
        assert parse("{% spice %}").render_string() == "melange"

    def test_registered_tags_is_a_copy(self):
        register_tag("spice", lambda arguments, context: "")

        registered_tags()["other"] = lambda arguments, context: ""

        assert list(registered_tags()) == ["spice"]

    @pytest.mark.parametrize("name", ["if", "endcase", "raw"])
    def test_builtin_names_rejected(self, name):
        with pytest.raises(ValueError, match="built in"):
            register_tag(name, lambda arguments, context: "")

    @pytest.mark.parametrize("name", ["my-tag", "1x", "", None])
    def test_invalid_names_rejected(self, name):
        with pytest.raises(ValueError, match="Invalid tag name"):
            register_tag(name, lambda arguments, context: "")

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError, match="must be callable"):
            register_tag("spice", "melange")

    def test_overwrite_warns(self, caplog):
        register_tag("spice", lambda arguments, context: "a")

        with caplog.at_level(logging.WARNING, logger="lqt.parser"):
            register_tag("spice", lambda arguments, context: "b")

        assert "overwrites" in caplog.text
