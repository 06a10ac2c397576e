import subprocess
from dataclasses import dataclass, field

import pytest

from byohagent.algo import BaseK8sInstaller, Ubuntu20_4K8s1_22
from byohagent.steps import ShellStep, new_apt_step


@dataclass
class RecordingOutput:
    records: list = field(default_factory=list)

    def out(self, text):
        self.records.append(("out", text))

    def err(self, text):
        self.records.append(("err", text))

    def cmd(self, text):
        self.records.append(("cmd", text))

    def desc(self, text):
        self.records.append(("desc", text))

    def msg(self, text):
        self.records.append(("msg", text))

    def kinds(self, kind):
        return [text for k, text in self.records if k == kind]


def make_installer(bundle_path=""):
    return BaseK8sInstaller(
        step_provider=Ubuntu20_4K8s1_22(),
        output_builder=RecordingOutput(),
        bundle_path=bundle_path,
    )


def test_preview_do_reports_message_and_command_only():
    installer = make_installer()
    step = ShellStep(installer=installer, desc="FIREWALL", do_cmd="ufw disable", undo_cmd="ufw enable")
    step.do()
    records = installer.output_builder.records
    assert records[0] == ("msg", "Installing: FIREWALL")
    assert records[1][0] == "cmd"
    assert records[1][1].endswith("-c ufw disable")
    assert len(records) == 2


def test_preview_undo_reports_uninstalling():
    installer = make_installer()
    step = ShellStep(installer=installer, desc="FIREWALL", do_cmd="ufw disable", undo_cmd="ufw enable")
    step.undo()
    assert installer.output_builder.kinds("msg") == ["Uninstalling: FIREWALL"]
    assert installer.output_builder.kinds("cmd")[0].endswith("-c ufw enable")


def test_real_run_captures_stdout(tmp_path):
    installer = make_installer(str(tmp_path))
    step = ShellStep(installer=installer, desc="echo", do_cmd="echo hello", undo_cmd="true")
    step.do()
    assert installer.output_builder.kinds("out") == ["hello\n"]
    assert installer.output_builder.kinds("err") == []


def test_stderr_is_reported_but_not_raised(tmp_path):
    installer = make_installer(str(tmp_path))
    step = ShellStep(installer=installer, desc="warn", do_cmd="echo oops >&2", undo_cmd="true")
    step.do()
    assert installer.output_builder.kinds("err") == ["oops\n"]


def test_failing_command_raises(tmp_path):
    installer = make_installer(str(tmp_path))
    step = ShellStep(installer=installer, desc="fail", do_cmd="true", undo_cmd="exit 3")
    with pytest.raises(subprocess.CalledProcessError) as info:
        step.undo()
    assert info.value.returncode == 3
    assert len(installer.output_builder.kinds("err")) == 1


def test_apt_step_strips_extension_for_description():
    installer = make_installer("/bundle")
    step = new_apt_step(installer, "kubectl.deb")
    assert step.desc == "kubectl"
    assert "dpkg --install '/bundle/kubectl.deb'" in step.do_cmd
    assert step.do_cmd.endswith("apt-mark hold kubectl")
    assert step.undo_cmd.startswith("dpkg --purge")
    assert step.undo_cmd.endswith("kubectl")


def test_optional_apt_step_wraps_plain_commands():
    installer = make_installer("/bundle")
    plain = new_apt_step(installer, "cri-tools.deb")
    optional = new_apt_step(installer, "cri-tools.deb", True)
    for plain_cmd, optional_cmd in [(plain.do_cmd, optional.do_cmd), (plain.undo_cmd, optional.undo_cmd)]:
        assert optional_cmd.startswith("if [ -f /bundle/cri-tools.deb ]; then ")
        assert optional_cmd.endswith("; fi")
        assert plain_cmd in optional_cmd
    assert optional.desc == plain.desc


def test_apt_step_without_bundle_path_uses_bare_file_name():
    installer = make_installer()
    step = new_apt_step(installer, "kubeadm.deb")
    assert "'kubeadm.deb'" in step.do_cmd