"""The ``write_files`` and ``runcmd`` directives of cloud-init."""

from __future__ import annotations

import base64
import binascii
import dataclasses
import gzip
import os
import zlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import yaml

from byohagent.cmd_runner import CmdRunner
from byohagent.file_writer import FileWriter, WriteFile
from byohagent.template_parser import TemplateParser

_BASE64 = "application/base64"
_GZIP = "application/x-gzip"
_PLAIN = "text/plain"


class _FileWriting(Protocol):
    def mkdir_if_not_exists(self, dir_name: str) -> None: ...

    def write_to_file(self, file: WriteFile) -> None: ...


class _CmdRunning(Protocol):
    def run_cmd(self, cmd: str) -> None: ...


class _TemplateParsing(Protocol):
    def parse_template(self, content: str) -> str: ...


def parse_encoding_scheme(encoding: str) -> list[str]:
    """Return the decoding steps, in order, for a ``write_files`` encoding."""
    encoding = encoding.lower().strip()
    if encoding in ("gz+base64", "gzip+base64", "gz+b64", "gzip+b64"):
        return [_BASE64, _GZIP]
    if encoding in ("base64", "b64"):
        return [_BASE64]
    return [_PLAIN]


def decode_content(content: str, encodings: list[str]) -> str:
    """Apply each decoding step to ``content``.

    Bytes that are not UTF-8 are kept through surrogate escapes so that they
    are written back unchanged.
    """
    for encoding in encodings:
        if encoding == _BASE64:
            raw = content.encode("utf-8", "surrogateescape").replace(b"\r", b"").replace(b"\n", b"")
            try:
                decoded = base64.b64decode(raw, validate=True)
            except (binascii.Error, ValueError) as exc:
                raise ValueError(f"illegal base64 data: {exc}") from exc
            content = decoded.decode("utf-8", "surrogateescape")
        elif encoding == _GZIP:
            try:
                decoded = gzip.decompress(content.encode("utf-8", "surrogateescape"))
            except (OSError, EOFError, zlib.error) as exc:
                raise ValueError(f"invalid gzip data: {exc}") from exc
            content = decoded.decode("utf-8", "surrogateescape")
        elif encoding == _PLAIN:
            continue
        else:
            raise ValueError(f"Unknown bootstrap data encoding: {content!r}")
    return content


def _field(mapping: Mapping[Any, Any], name: str) -> Any:
    if name in mapping:
        return mapping[name]
    lowered = name.lower()
    for key, value in mapping.items():
        if isinstance(key, str) and key.lower() == lowered:
            return value
    return None


def _str_field(mapping: Mapping[Any, Any], name: str) -> str:
    value = _field(mapping, name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"cannot read {type(value).__name__} as string field {name!r}")
    return value


def _parse_file_entry(entry: Any) -> WriteFile:
    if entry is None:
        entry = {}
    if not isinstance(entry, Mapping):
        raise ValueError(f"write_files entry must be a mapping, got {type(entry).__name__}")
    append = _field(entry, "append")
    if append is None:
        append = False
    if not isinstance(append, bool):
        raise ValueError(f"cannot read {type(append).__name__} as boolean field 'append'")
    return WriteFile(
        path=_str_field(entry, "path"),
        encoding=_str_field(entry, "encoding"),
        owner=_str_field(entry, "owner"),
        permissions=_str_field(entry, "permissions"),
        content=_str_field(entry, "content"),
        append=append,
    )


def _parse_config(bootstrap_script: str) -> tuple[list[WriteFile], list[str]]:
    try:
        data = yaml.safe_load(bootstrap_script)
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ValueError(f"cloud-config must be a mapping, got {type(data).__name__}")

        entries = _field(data, "write_files") or []
        if not isinstance(entries, list):
            raise ValueError("write_files must be a list")
        files = [_parse_file_entry(entry) for entry in entries]

        commands = _field(data, "runCmd") or []
        if not isinstance(commands, list) or not all(isinstance(c, str) for c in commands):
            raise ValueError("runCmd must be a list of strings")
    except (yaml.YAMLError, ValueError) as exc:
        raise ValueError(f"error parsing write_files action: {bootstrap_script}") from exc
    return files, commands


@dataclass
class ScriptExecutor:
    """Runs the ``write_files`` and ``runCmd`` directives of a bootstrap script."""

    write_files_executor: _FileWriting = field(default_factory=FileWriter)
    run_cmd_executor: _CmdRunning = field(default_factory=CmdRunner)
    parse_template_executor: _TemplateParsing = field(default_factory=TemplateParser)

    def execute(self, bootstrap_script: str) -> None:
        """Parse the script, write its files, then run its commands in order."""
        files, commands = _parse_config(bootstrap_script)

        for entry in files:
            directory = os.path.normpath(os.path.dirname(entry.path) or ".")
            self.write_files_executor.mkdir_if_not_exists(directory)

            try:
                content = decode_content(entry.content, parse_encoding_scheme(entry.encoding))
            except ValueError as exc:
                raise ValueError(f"error decoding content for {entry.path}: {exc}") from exc

            try:
                content = self.parse_template_executor.parse_template(content)
            except ValueError as exc:
                raise ValueError(f"error parse template content for {entry.path}: {exc}") from exc

            self.write_files_executor.write_to_file(dataclasses.replace(entry, content=content))

        for command in commands:
            self.run_cmd_executor.run_cmd(command)