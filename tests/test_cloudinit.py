import base64
import gzip
import os
import stat
import subprocess

import pytest

from byohagent.cloudinit import ScriptExecutor, decode_content, parse_encoding_scheme
from byohagent.cmd_runner import CmdRunner
from byohagent.file_writer import FileWriter
from byohagent.template_parser import TemplateParser


class _TrackingFileWriter(FileWriter):
    """Real file writer that also keeps the file entries it was handed."""

    def __init__(self):
        super().__init__()
        self.written = []

    def write_to_file(self, file):
        self.written.append(file)
        return super().write_to_file(file)


@pytest.fixture
def writer():
    return _TrackingFileWriter()


@pytest.fixture
def executor(writer):
    return ScriptExecutor(
        write_files_executor=writer,
        run_cmd_executor=CmdRunner(),
        parse_template_executor=TemplateParser(template={"DefaultNetworkInterfaceName": "eth0"}),
    )


class _RecordingWriter:
    def __init__(self):
        self.dirs = []
        self.files = []

    def mkdir_if_not_exists(self, dir_name):
        self.dirs.append(dir_name)

    def write_to_file(self, file):
        self.files.append(file)


class _RecordingRunner:
    def __init__(self, fail_on=None):
        self.commands = []
        self.fail_on = fail_on

    def run_cmd(self, cmd):
        self.commands.append(cmd)
        if cmd == self.fail_on:
            raise subprocess.CalledProcessError(1, cmd)


class _IdentityParser:
    def parse_template(self, content):
        return content


def test_write_files_and_execute_commands(executor, writer, tmp_path):
    file_name = tmp_path / "file-1.txt"
    script = (
        "write_files:\n"
        f"- path: {file_name}\n"
        "content: some-content-1\n"
        "runCmd:\n"
        f"- echo -n ' run cmd' > {file_name}"
    )
    result = executor.execute(script)
    assert result is None
    assert [f.path for f in writer.written] == [str(file_name)]
    assert file_name.read_text() == " run cmd"


def test_write_files_with_permissions_in_append_mode(executor, writer, tmp_path):
    file_name = tmp_path / "file-2.txt"
    file_name.write_text("some-content-2")
    os.chmod(file_name, 0o644)
    script = (
        "write_files:\n"
        f"- path: {file_name}\n"
        "  permissions: '777'\n"
        "  content: some-content-append-2\n"
        "  append: true"
    )
    result = executor.execute(script)
    assert result is None
    assert [f.content for f in writer.written] == ["some-content-append-2"]
    assert file_name.read_text() == "some-content-2" + "some-content-append-2"
    assert stat.S_IMODE(os.stat(file_name).st_mode) == 0o777


def test_write_base64_content(executor, writer, tmp_path):
    file_name = tmp_path / "file-3.txt"
    encoded = base64.b64encode(b"some-content-3").decode()
    assert decode_content(encoded, parse_encoding_scheme("base64")) == "some-content-3"
    script = f"write_files:\n- path: {file_name}\n  content: {encoded}\n  encoding: base64"
    result = executor.execute(script)
    assert result is None
    assert [f.content for f in writer.written] == ["some-content-3"]
    assert file_name.read_text() == "some-content-3"


def test_write_gzip_content(executor, writer, tmp_path):
    file_name = tmp_path / "file-4.txt"
    encoded = base64.b64encode(gzip.compress(b"some-content-4")).decode()
    assert decode_content(encoded, parse_encoding_scheme("gzip+base64")) == "some-content-4"
    script = f"write_files:\n- path: {file_name}\n  encoding: gzip+base64\n  content: {encoded}"
    result = executor.execute(script)
    assert result is None
    assert [f.content for f in writer.written] == ["some-content-4"]
    assert file_name.read_text() == "some-content-4"


def test_write_template_content(executor, writer, tmp_path):
    file_name = tmp_path / "file-5.txt"
    content = "The default interface name is {{ .DefaultNetworkInterfaceName }} "
    parser = TemplateParser(template={"DefaultNetworkInterfaceName": "eth0"})
    assert parser.parse_template(content) == "The default interface name is eth0 "
    script = f"write_files:\n- path: {file_name}\n  content: {content}"
    result = executor.execute(script)
    assert result is None
    assert [f.content for f in writer.written] == ["The default interface name is eth0"]
    assert file_name.read_text() == "The default interface name is eth0"


def test_creates_missing_directory(executor, tmp_path):
    file_name = tmp_path / "x" / "y" / "f.txt"
    executor.execute(f"write_files:\n- path: {file_name}\n  content: hi")
    assert file_name.read_text() == "hi"


@pytest.mark.parametrize(
    "encoding, expected",
    [
        ("gz+base64", ["application/base64", "application/x-gzip"]),
        ("GZIP+B64", ["application/base64", "application/x-gzip"]),
        (" base64 ", ["application/base64"]),
        ("b64", ["application/base64"]),
        ("", ["text/plain"]),
        ("other", ["text/plain"]),
    ],
)
def test_parse_encoding_scheme(encoding, expected):
    assert parse_encoding_scheme(encoding) == expected


def test_decode_content_round_trip():
    encoded = base64.b64encode(gzip.compress("hello wörld".encode())).decode()
    assert decode_content(encoded, parse_encoding_scheme("gzip+base64")) == "hello wörld"


def test_decode_content_plain_is_unchanged():
    assert decode_content("as-is", ["text/plain"]) == "as-is"


def test_decode_content_unknown_encoding_raises():
    with pytest.raises(ValueError):
        decode_content("data", ["application/unknown"])


def test_decode_content_bad_base64_raises():
    with pytest.raises(ValueError):
        decode_content("not*base64", ["application/base64"])


def test_invalid_yaml_raises():
    with pytest.raises(ValueError):
        ScriptExecutor().execute("write_files: [unclosed")


def test_non_string_content_raises():
    writer = _RecordingWriter()
    executor = ScriptExecutor(writer, _RecordingRunner(), _IdentityParser())
    with pytest.raises(ValueError):
        executor.execute("write_files:\n- path: /tmp/x\n  content: 12")
    assert writer.files == []


def test_executors_called_in_order():
    writer = _RecordingWriter()
    runner = _RecordingRunner()
    executor = ScriptExecutor(writer, runner, _IdentityParser())
    script = (
        "write_files:\n"
        "- path: /etc/a/one.conf\n"
        "  content: first\n"
        "- path: /etc/b/two.conf\n"
        "  content: second\n"
        "  owner: root:root\n"
        "runcmd:\n"
        "- cmd-one\n"
        "- cmd-two"
    )
    executor.execute(script)
    assert writer.dirs == ["/etc/a", "/etc/b"]
    assert [f.path for f in writer.files] == ["/etc/a/one.conf", "/etc/b/two.conf"]
    assert [f.content for f in writer.files] == ["first", "second"]
    assert writer.files[1].owner == "root:root"
    assert runner.commands == ["cmd-one", "cmd-two"]


def test_failing_command_stops_execution():
    runner = _RecordingRunner(fail_on="bad")
    executor = ScriptExecutor(_RecordingWriter(), runner, _IdentityParser())
    with pytest.raises(subprocess.CalledProcessError):
        executor.execute("runCmd:\n- good\n- bad\n- never")
    assert runner.commands == ["good", "bad"]


def test_template_error_is_reported():
    executor = ScriptExecutor(_RecordingWriter(), _RecordingRunner(), TemplateParser(template={}))
    with pytest.raises(ValueError, match="error parse template content"):
        executor.execute("write_files:\n- path: /tmp/t.txt\n  content: '{{ if x }}'")