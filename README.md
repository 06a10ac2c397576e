# byohagent

Tools for preparing a Linux host to join a Kubernetes cluster as a
"bring your own host" node. The package:

- detects the host operating system from `hostnamectl` output,
- finds the right installer for an OS and Kubernetes version,
- downloads installation bundles into a local cache with `imgpkg`,
- installs and uninstalls the Kubernetes components step by step, rolling
  back the steps that already ran if one of them fails,
- runs the `write_files` and `runCmd` parts of cloud-init bootstrap scripts.

Supported today: Ubuntu 20.04 on x86-64 (`Ubuntu_20.04.*_x86-64`) with
Kubernetes `v1.21.*`, `v1.22.*` and `v1.23.*`.

## Installation

```
pip install .
```

Install the test extra to run the test suite:

```
pip install ".[test]"
pytest
```

## Command line

The `byoh-installer` command is meant for development and testing of the
installer:

```
byoh-installer --list-supported
byoh-installer --detect
byoh-installer --install --k8s v1.22.1 --tag <bundle-tag> --cache-path /var/lib/byoh/bundles
byoh-installer --uninstall --k8s v1.22.1 --tag <bundle-tag>
byoh-installer --preview-os-changes --os Ubuntu_20.04.1_x86-64 --k8s v1.22.1
```

- `--list-supported` lists the supported OS filters, Kubernetes versions and
  bundle names.
- `--detect` prints the detected OS in normalized form, for example
  `Ubuntu_20.04.3_x86-64`. It runs `hostnamectl`.
- `--install` and `--uninstall` work on a bundle from `--bundle-repo`
  (default `projects.registry.vmware.com`), cached under `--cache-path`
  (default `.`). Without `--os` the OS is detected and the executables
  `socat`, `ebtables`, `ethtool` and `conntrack` must be on the `PATH`;
  `--os` skips detection and these checks. With an empty `--cache-path` and
  `--os`, nothing is downloaded or run and the steps are only logged.
- `--preview-os-changes` prints the commands that an install and an
  uninstall would run for `--os`, without running them.
- `--k8s` defaults to `1.22.1`; the supported versions carry a leading `v`,
  so pass for example `--k8s v1.22.1`.

The command exits with status 1 when an operation fails.

## Library use

Preview the changes for a supported OS and Kubernetes version:

```python
from byohagent.installer import list_supported_os, list_supported_k8s, preview_changes

_, os_bundles = list_supported_os()
os_name = os_bundles[0]
k8s = list_supported_k8s(os_name)[0]
install, uninstall = preview_changes(os_name, k8s)
print(install)
```

Unsupported combinations raise `byohagent.errors.OsK8sNotSupportedError`.
All installer errors derive from `byohagent.errors.InstallerError`.

`byohagent.installer.new_installer(download_path, bundle_type, logger)`
detects the OS, runs the prechecks and returns a `K8sInstaller` whose
`install(bundle_repo, k8s_ver, tag)` and `uninstall(...)` methods download
the bundle and run the steps. `new_unchecked(...)` does the same for a given
OS without detection or prechecks.

Run a cloud-init bootstrap script:

```python
from byohagent.cloudinit import ScriptExecutor
from byohagent.cmd_runner import CmdRunner
from byohagent.file_writer import FileWriter
from byohagent.template_parser import TemplateParser

executor = ScriptExecutor(
    FileWriter(),
    CmdRunner(),
    TemplateParser({"DefaultNetworkInterfaceName": "eth0"}),
)
executor.execute(script_text)
```

File contents may be plain, `base64` or `gzip+base64` encoded. Template
placeholders such as `{{ .DefaultNetworkInterfaceName }}` are filled in
before each file is written; `permissions`, `owner` and `append` are
honoured. Commands run through `/bin/sh`.

## What this package does not do

There is no long-running host agent here: nothing registers the host with a
management cluster, watches cluster resources or handles certificate
requests. The package provides the installer, OS detection and bootstrap
script pieces only.