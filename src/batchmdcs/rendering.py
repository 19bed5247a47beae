"""
This module renders the command lines run on the Batch compute nodes.

Nodes run Windows and mount the job data share as ``M:`` before running
MATLAB, so most commands are wrapped by the ``mountShareAndExecuteCommand``
script shipped in the ``batchmdcs`` application package.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlparse

SHARE_DRIVE = "M:\\"
MOUNT_AND_EXECUTE_SCRIPT = (
    "${env:AZ_BATCH_APP_PACKAGE_BATCHMDCS#1}\\mountShareAndExecuteCommand.ps1"
)
POOL_SETUP_COMMAND = (
    'powershell.exe -executionpolicy unrestricted -command "& '
    '${env:AZ_BATCH_APP_PACKAGE_BATCHMDCS#1}\\BatchPoolInstallMDCS.ps1"'
)

NODE_MATLAB_ROOT = "%AZ_BATCH_NODE_SHARED_DIR%\\mdcs"
NODE_MPI_DIR = NODE_MATLAB_ROOT + "\\bin\\win64\\msmpi"
NODE_MPIEXEC_PATH = NODE_MPI_DIR + "\\mpiexec.exe"
NODE_SMPD_PATH = NODE_MPI_DIR + "\\smpd.exe"
MPI_PORT = "28350"

NODE_HOSTNAME_FILE = "shared/hostname.txt"
HOSTS_FILENAME = "hosts"
NODE_HOSTS_PATH = "%WinDir%\\System32\\drivers\\etc"


@dataclass(frozen=True)
class ShareMount:
    """Everything a node needs to mount the job data share."""

    share_path: str
    account_name: str
    account_key: str

    @property
    def host(self) -> str:
        """Host part of the share's UNC path (``\\\\acct.file.core.windows.net\\share``)."""
        path = self.share_path.replace("\\", "/")
        if "://" not in path:
            path = "file:" + path
        return urlparse(path).hostname or ""


def user_share_directory(user: str) -> str:
    """Location of the user's share directory once mounted on a node."""
    return SHARE_DRIVE + user


def node_matlab_executable(local_matlab_exe: str, local_matlab_root: str) -> str:
    """Translate the client's MATLAB executable path to the node install location."""
    return local_matlab_exe.replace(local_matlab_root, NODE_MATLAB_ROOT)


def mount_and_execute(mount: ShareMount, command: str) -> str:
    """Wrap a command so that it runs with the job data share mounted."""
    return (
        'powershell.exe -executionpolicy unrestricted -command "& {script} '
        "-shareHost '{host}' -account '{account}' -key '{key}' "
        "-sharePath '{path}' -command '{command}'\""
    ).format(
        script=MOUNT_AND_EXECUTE_SCRIPT,
        host=mount.host,
        account=mount.account_name,
        key=mount.account_key,
        path=mount.share_path,
        command=command,
    )


def copy_hosts_command(user: str, job_data_directory: str) -> str:
    """Command copying the published hosts file over the node's system hosts file."""
    return "copy {share}\\{job}\\{name} {dest}\\{name} /Y".format(
        share=user_share_directory(user),
        job=job_data_directory,
        name=HOSTS_FILENAME,
        dest=NODE_HOSTS_PATH,
    )


def mpi_task_command(matlab_command: str) -> str:
    """Per-instance command of a communicating job."""
    return (
        f"cmd /c {NODE_MPIEXEC_PATH} -p {MPI_PORT} "
        f"-wdir %AZ_BATCH_TASK_SHARED_DIR% {matlab_command}"
    )


def smpd_coordination_command(mount: ShareMount) -> str:
    """Coordination command starting the MPI daemon on every allocated node."""
    smpd = f"{NODE_SMPD_PATH} -p {MPI_PORT} -d"
    return f"cmd /c start {mount_and_execute(mount, smpd)}"
