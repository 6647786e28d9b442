from ..server.utils.flags import command_line, flag_name, to_flags


def test_flag_names():
    assert flag_name("output") == "--output"
    assert flag_name("outputDirectory") == "--output-directory"
    assert flag_name("bundle_namespace") == "--bundle-namespace"


def test_positional_arguments_come_first():
    args = to_flags({"_": ["src/**/*.purs", "lib/**/*.purs"], "output": "output"})

    assert args == ["src/**/*.purs", "lib/**/*.purs", "--output", "output"]


def test_lists_repeat_the_flag():
    assert to_flags({"ffi": ["a.js", "b.js"]}) == ["--ffi", "a.js", "--ffi", "b.js"]


def test_booleans():
    assert to_flags({"verboseErrors": True, "censorWarnings": False, "port": None}) == [
        "--verbose-errors"
    ]


def test_user_arguments_override_defaults():
    args = to_flags({"output": "output", **{"output": "build"}})

    assert args == ["--output", "build"]


def test_command_line_splits_wrappers():
    assert command_line("purs compile", ["--output", "out"]) == [
        "purs",
        "compile",
        "--output",
        "out",
    ]
