import re
import shlex
from typing import Any, Iterable, Mapping

__all__ = ["to_flags", "flag_name", "command_line"]


def flag_name(key: str) -> str:
    """`outputDirectory` and `output_directory` both become `--output-directory`"""
    key = re.sub(r"[A-Z]", lambda m: "-" + m.group(0).lower(), key)
    return "--" + key.replace("_", "-").lstrip("-")


def to_flags(options: Mapping[str, Any]) -> list[str]:
    args: list[str] = []

    for key, value in options.items():
        if key == "_":
            args.extend(str(v) for v in value)
            continue

        flag = flag_name(key)

        if value is None or value is False:
            continue
        elif value is True:
            args.append(flag)
        elif isinstance(value, (list, tuple)):
            for v in value:
                args.extend([flag, str(v)])
        else:
            args.extend([flag, str(value)])

    return args


def command_line(command: str, args: Iterable[str] = ()) -> list[str]:
    return [*shlex.split(command), *args]
