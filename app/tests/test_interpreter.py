import unittest

from uci_imax_watch.errors import (
    InterpreterError,
    InterpreterMissingBinding,
    InterpreterSyntaxError,
)
from uci_imax_watch.interpreter import MAX_DEPTH, interpret

TAIL = " var times = []; var movies = {}; var days = {};"


class InterpretTests(unittest.TestCase):
    def test_plain_declarations(self) -> None:
        result = interpret('var times = [1,2]; var movies = {"a":"b"}; var days = {};')
        self.assertEqual(result, {"times": [1, 2], "movies": {"a": "b"}, "days": {}})

    def test_tolerates_formatting_changes(self) -> None:
        block = """
            // schedule
            var times = ['18:00', "21:30",];
            let movies = {
              'Dune': {id: 1, imax: true, poster: null,},
              /* trailing */
            };
            const days = {Milano_Bicocca: [{date: "2026-10-19", events: [],},],}
        """
        result = interpret(block)
        self.assertEqual(result["times"], ["18:00", "21:30"])
        self.assertEqual(result["movies"], {"Dune": {"id": 1, "imax": True, "poster": None}})
        self.assertEqual(result["days"], {"Milano_Bicocca": [{"date": "2026-10-19", "events": []}]})

    def test_statements_separated_by_newlines(self) -> None:
        result = interpret("var times = []\nvar movies = {}\ndays = {}")
        self.assertEqual(list(result), ["times", "movies", "days"])

    def test_scalar_literals(self) -> None:
        block = r"""
            var times = [-1, +2, 2.5, 0x10, 1e3, .5];
            var movies = ["aè\n", 'it\'s', "\x41\/", "\u{1F37F}", false, undefined];
            var days = {};
        """
        result = interpret(block)
        self.assertEqual(result["times"], [-1, 2, 2.5, 16, 1000.0, 0.5])
        self.assertEqual(result["movies"], ["aè\n", "it's", "A/", "\U0001F37F", False, None])

    def test_numeric_and_repeated_keys(self) -> None:
        result = interpret("var times = {1: 'a', a: 1, b: 2, a: 3}; var movies = {}; var days = {};")
        self.assertEqual(result["times"], {"1": "a", "a": 3, "b": 2})
        self.assertEqual(list(result["times"]), ["1", "a", "b"])

    def test_multiple_declarators(self) -> None:
        result = interpret("var times = [], movies = {}, days = {}, extra;")
        self.assertEqual(result, {"times": [], "movies": {}, "days": {}, "extra": None})

    def test_reference_to_earlier_binding_is_a_copy(self) -> None:
        result = interpret("var times = []; var movies = {x: [1]}; var days = {m: movies};")
        self.assertEqual(result["days"], {"m": {"x": [1]}})
        result["days"]["m"]["x"].append(2)
        self.assertEqual(result["movies"], {"x": [1]})

    def test_reference_to_undefined_name(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret("var times = []; var movies = {}; var days = later; var later = {};")

    def test_function_call_rejected(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret("var times = []; var movies = {}; var days = load(1);")

    def test_member_access_rejected(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret("var times = []; var movies = {}; var days = window.days;")

    def test_operator_rejected(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret("var times = 1 + 2; var movies = {}; var days = {};")

    def test_template_literal_rejected(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret("var times = `18:00`;" + TAIL)

    def test_control_flow_rejected(self) -> None:
        with self.assertRaises(InterpreterSyntaxError):
            interpret(TAIL + " return days;")

    def test_unterminated_constructs(self) -> None:
        for block in (
            "var times = 'open;",
            "var times = [1, 2;",
            "var times = {a: 1;",
            "var times = [1,,2];",
            "var times = /* open",
            "var times =",
        ):
            with self.subTest(block=block):
                with self.assertRaises(InterpreterSyntaxError):
                    interpret(block + TAIL)

    def test_error_position(self) -> None:
        with self.assertRaises(InterpreterSyntaxError) as ctx:
            interpret("var times = [];\nvar days = foo();")
        self.assertEqual(ctx.exception.line, 2)
        self.assertEqual(ctx.exception.column, 15)
        self.assertIn("line 2", str(ctx.exception))

    def test_missing_binding_is_distinct_from_syntax_error(self) -> None:
        with self.assertRaises(InterpreterMissingBinding) as ctx:
            interpret("var times = []; var movies = {};")
        self.assertEqual(ctx.exception.names, ["days"])
        self.assertNotIsInstance(ctx.exception, InterpreterSyntaxError)
        self.assertIsInstance(ctx.exception, InterpreterError)

    def test_unicode_identifiers(self) -> None:
        result = interpret("var città = 'Milano'; var $cfg = città; var times = []; var movies = {}; var days = {};")
        self.assertEqual(result["città"], "Milano")
        self.assertEqual(result["$cfg"], "Milano")

    def test_deep_nesting_within_limit(self) -> None:
        depth = MAX_DEPTH
        result = interpret("var times = " + "[" * depth + "]" * depth + "; var movies = {}; var days = {};")
        value = result["times"]
        for _ in range(depth - 1):
            value = value[0]
        self.assertEqual(value, [])

    def test_nesting_too_deep(self) -> None:
        cases = {
            "unbalanced": "var times = " + "[" * 5000,
            "balanced": "var times = " + "[" * 500 + "]" * 500 + ";" + TAIL,
            "objects": "var times = " + "{a: " * 500 + "1" + "}" * 500 + ";" + TAIL,
            "via reference": (
                "var inner = " + "[" * MAX_DEPTH + "]" * MAX_DEPTH + ";"
                " var times = [inner];" + TAIL
            ),
        }
        for name, block in cases.items():
            with self.subTest(name):
                with self.assertRaises(InterpreterSyntaxError) as ctx:
                    interpret(block)
                self.assertIn("nesting too deep", str(ctx.exception))

    def test_custom_required_names(self) -> None:
        self.assertEqual(interpret("var a = 1;", required=("a",)), {"a": 1})
        self.assertEqual(interpret("", required=()), {})


if __name__ == "__main__":
    unittest.main()
