"""Connection settings for the hypervisor API and the remote shell."""

from dataclasses import dataclass

DEFAULT_SSH_PORT = 22


@dataclass(frozen=True)
class ApiConfig:
    """Proxmox API endpoint and API token.

    ``token`` is the full ``user@realm!tokenid=secret`` string. TLS verification
    is off by default since Proxmox nodes usually serve self-signed certificates.
    """

    host: str
    token: str
    verify_tls: bool = False

    @property
    def base_url(self) -> str:
        host = self.host.rstrip("/")
        if "://" not in host:
            host = f"https://{host}"
        return f"{host}/api2/json"


@dataclass(frozen=True)
class SshCredentials:
    """Password credentials for the hypervisor node's shell."""

    host: str | None = None
    user: str | None = None
    password: str | None = None
    port: int = DEFAULT_SSH_PORT

    @property
    def complete(self) -> bool:
        """True if host, user and password are all set."""
        return bool(self.host and self.user and self.password)

    @property
    def address(self) -> str:
        """SSH address string (user@host[:port])."""
        address = f"{self.user}@{self.host}" if self.user else str(self.host)
        if self.port and self.port != DEFAULT_SSH_PORT:
            address += f":{self.port}"
        return address
