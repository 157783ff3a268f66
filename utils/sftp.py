"""
SFTP Client Utilities

Uploads a staged export to the configured remote directory using password
authentication. Host keys must already be trusted (system known_hosts or the
file named by ``ftp.knownHosts``); unknown hosts are rejected.
"""

import logging
from pathlib import Path
from typing import Tuple

import paramiko
from paramiko import SFTPClient, SSHClient

from utils.config import FtpSettings
from utils.errors import TransferError
from utils.net import split_host_port

logger = logging.getLogger(__name__)


def normalize_upload_path(upload_path: str) -> str:
    """Return upload_path with exactly one leading and one trailing '/'. Empty means root."""
    if not upload_path:
        return "/"
    if not upload_path.startswith("/"):
        upload_path = "/" + upload_path
    if not upload_path.endswith("/"):
        upload_path = upload_path + "/"
    return upload_path


def build_destination(upload_path: str, filename: str) -> str:
    """Full remote path for filename under the configured upload path."""
    return normalize_upload_path(upload_path) + filename


def get_sftp_client(ftp: FtpSettings) -> Tuple[SSHClient, SFTPClient]:
    """
    Create SFTP client connection using user/password authentication.

    Returns:
        Tuple of (ssh_client, sftp_client)

    Raises:
        paramiko.AuthenticationException: If the server rejects the credentials
        paramiko.SSHException: If the host key is unknown or SSH negotiation fails
        OSError: If the server cannot be reached
    """
    host, port = split_host_port(ftp.server, ftp.port)

    ssh_client = SSHClient()
    ssh_client.load_system_host_keys()
    if ftp.known_hosts:
        ssh_client.load_host_keys(ftp.known_hosts)
    ssh_client.set_missing_host_key_policy(paramiko.RejectPolicy())

    try:
        ssh_client.connect(
            hostname=host,
            port=port,
            username=ftp.userid,
            password=ftp.password.get_secret_value(),
            timeout=ftp.timeout,
            auth_timeout=ftp.timeout,
            allow_agent=False,
            look_for_keys=False,
        )
        sftp_client = ssh_client.open_sftp()
        return ssh_client, sftp_client

    except Exception:
        ssh_client.close()
        raise


def upload_file(local_path: str | Path, filename: str, ftp: FtpSettings) -> str:
    """
    Upload a staged file to the SFTP server. Exactly one attempt is made.

    Args:
        local_path: Path to the staged local file
        filename: Remote filename (the export filename)
        ftp: SFTP server settings

    Returns:
        Remote path the file was written to

    Raises:
        TransferError: If connecting, authenticating, writing or verifying fails
    """
    local_file = Path(local_path)
    remote_path = build_destination(ftp.upload_path, filename)

    if not local_file.is_file():
        raise TransferError(
            f"Local file not found: {local_file}",
            remote_path=remote_path,
        )

    ssh_client = None
    sftp_client = None

    try:
        ssh_client, sftp_client = get_sftp_client(ftp)

        sftp_client.put(str(local_file), remote_path)

        # Verify upload by checking remote file size
        remote_stat = sftp_client.stat(remote_path)
        local_stat = local_file.stat()

        if remote_stat.st_size != local_stat.st_size:
            raise TransferError(
                f"Upload verification failed: {remote_path}",
                detail=f"size mismatch (local={local_stat.st_size}, remote={remote_stat.st_size})",
                remote_path=remote_path,
            )

    except paramiko.AuthenticationException as e:
        raise TransferError(
            f"SFTP authentication failed for user {ftp.userid}@{ftp.server}",
            detail=str(e),
            remote_path=remote_path,
        ) from e
    except (paramiko.SSHException, OSError) as e:
        raise TransferError(
            f"SFTP upload failed: {remote_path}",
            detail=f"{type(e).__name__}: {e}",
            remote_path=remote_path,
        ) from e

    finally:
        # Clean up connections
        if sftp_client:
            sftp_client.close()
        if ssh_client:
            ssh_client.close()

    logger.info("Uploaded to SFTP: remote_path=%s", remote_path)
    return remote_path
