import argparse
import dataclasses
import sys
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union, get_args, get_origin, get_type_hints

if sys.version_info >= (3, 11):
    import tomllib
    from typing import Self
else:
    import tomli as tomllib
    from typing_extensions import Self


class ConfigClass:
    """
    Base class for dataclass configuration sections.

    Every leaf field of the dataclass (fields of nested dataclass sections included) becomes a command
    line option. The following keys of the field metadata are understood:
        help: help text of the option
        short: short option name, e.g. "-r"
        long: long option name, defaults to the field name with dashes
        positional: the field is a positional argument
        type: callable converting the command line string
        choices: allowed values

    Values are taken, in increasing order of precedence, from the field defaults, the section table of the
    TOML file given with --config, and the command line.
    """

    @classmethod
    def parse(cls, program_name: str, section: str, args: Optional[Sequence[str]] = None) -> Self:
        parser = argparse.ArgumentParser(description=program_name)
        parser.add_argument(
            "--config", default=None, help=f"TOML file to read settings from, values come from its [{section}] table"
        )
        cls.configure_parser(parser)

        namespace = vars(parser.parse_args(args))
        config_file = namespace.pop("config")

        values: Dict[str, Any] = {}
        if config_file is not None:
            try:
                values.update(load_section(config_file, section))
            except (OSError, ValueError) as e:
                # tomllib.TOMLDecodeError is a ValueError
                parser.error(f"cannot read --config {config_file}: {e}")
        values.update({key: value for key, value in namespace.items() if value is not None})

        try:
            return cls.from_dict(values)
        except (TypeError, ValueError) as e:
            parser.error(str(e))

    @classmethod
    def configure_parser(cls, parser: argparse.ArgumentParser) -> None:
        seen = set()
        for field, field_type in _leaf_fields(cls):
            if field.name in seen:
                raise TypeError(f"{cls.__name__}: option {field.name} is defined more than once")
            seen.add(field.name)
            _add_argument(parser, field, field_type)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> Self:
        return _build(cls, values)


def load_section(config_file: str, section: str) -> Dict[str, Any]:
    with open(config_file, "rb") as f:
        document = tomllib.load(f)

    table = document.get(section, {})
    if not isinstance(table, dict):
        raise ValueError(f"[{section}] in {config_file} is not a table")

    values: Dict[str, Any] = {}
    for key, value in table.items():
        # sub-tables hold the fields of nested sections, e.g. [provisioner.logging_config]
        if isinstance(value, dict):
            values.update({k.replace("-", "_"): v for k, v in value.items()})
        else:
            values[key.replace("-", "_")] = value

    return values


def _leaf_fields(cls: type) -> Iterator[Tuple[dataclasses.Field, Any]]:
    hints = get_type_hints(cls)
    for field in dataclasses.fields(cls):
        field_type = hints[field.name]
        if dataclasses.is_dataclass(field_type):
            yield from _leaf_fields(field_type)
        else:
            yield field, field_type


def _unwrap_optional(field_type: Any) -> Any:
    if get_origin(field_type) is Union:
        arguments = [argument for argument in get_args(field_type) if argument is not type(None)]
        if len(arguments) == 1:
            return arguments[0]

    return field_type


def _add_argument(parser: argparse.ArgumentParser, field: dataclasses.Field, field_type: Any) -> None:
    metadata = field.metadata
    field_type = _unwrap_optional(field_type)

    kwargs: Dict[str, Any] = {"help": metadata.get("help")}
    if "choices" in metadata:
        kwargs["choices"] = metadata["choices"]

    if metadata.get("positional", False):
        parser.add_argument(field.name, nargs="?", default=None, type=metadata.get("type", field_type), **kwargs)
        return

    names = [metadata.get("long", f"--{field.name.replace('_', '-')}")]
    if "short" in metadata:
        names.append(metadata["short"])

    if field_type is bool:
        parser.add_argument(
            *names, dest=field.name, action=argparse.BooleanOptionalAction, default=argparse.SUPPRESS, **kwargs
        )
        return

    converter = metadata.get("type", field_type)
    if not callable(converter) or get_origin(converter) is not None:
        raise TypeError(f"option {field.name} of type {field_type} needs a 'type' entry in its metadata")

    parser.add_argument(*names, dest=field.name, type=converter, default=argparse.SUPPRESS, **kwargs)


def _build(cls: type, values: Dict[str, Any]) -> Any:
    hints = get_type_hints(cls)
    kwargs: Dict[str, Any] = {}
    missing = []

    for field in dataclasses.fields(cls):
        field_type = hints[field.name]
        if dataclasses.is_dataclass(field_type):
            kwargs[field.name] = _build(field_type, values)
            continue

        if field.name in values:
            value = values[field.name]
            if get_origin(_unwrap_optional(field_type)) is tuple and isinstance(value, list):
                value = tuple(value)
            kwargs[field.name] = value
            continue

        if field.default is dataclasses.MISSING and field.default_factory is dataclasses.MISSING:
            missing.append(field.name)

    if missing:
        raise ValueError(f"missing required option(s): {', '.join(missing)}")

    return cls(**kwargs)
