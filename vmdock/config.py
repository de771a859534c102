"""Connection and default settings: built-ins, environment, then a YAML config file."""

import os
from dataclasses import dataclass

import yaml

from vmdock.deploy.params import DEFAULT_CORES, DEFAULT_MEMORY, DEFAULT_NODE, DEFAULT_STORAGE
from vmdock.provisioning.types import DEFAULT_SSH_PORT, ApiConfig, SshCredentials
from vmdock.redact import register_secret

DEFAULT_CONFIG_FILE = "vmdock.yaml"

DEFAULTS = {
    "proxmox": {
        "host": "",
        "node": DEFAULT_NODE,
        "token": "",
        "verify_tls": False,
    },
    "ssh": {
        "host": "",
        "user": "",
        "password": "",
        "port": DEFAULT_SSH_PORT,
    },
    "defaults": {
        "memory": DEFAULT_MEMORY,
        "cores": DEFAULT_CORES,
        "storage": DEFAULT_STORAGE,
        "staging_dir": None,
    },
}

# (section, key) -> env var; config file values win over these
ENV_VARS = {
    ("proxmox", "host"): "PVE_HOST",
    ("proxmox", "node"): "PVE_NODE",
    ("proxmox", "token"): "PVE_TOKEN",
    ("ssh", "host"): "PVE_SSH_HOST",
    ("ssh", "user"): "PVE_SSH_USER",
    ("ssh", "password"): "PVE_SSH_PASSWORD",
}


def deep_merge(base, override):
    """Recursive dict merge. Override wins for scalars."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _drop_nulls(d):
    """Remove keys whose YAML value is empty (None) so lower layers still apply."""
    return {k: _drop_nulls(v) if isinstance(v, dict) else v for k, v in d.items() if v is not None}


def _section(d, name):
    section = d.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return section


def _env_overrides(environ):
    overrides = {}
    for (section, key), var in ENV_VARS.items():
        value = environ.get(var)
        if value:
            overrides.setdefault(section, {})[key] = value
    return overrides


@dataclass
class Settings:
    """Resolved settings: how to reach the hypervisor plus VM defaults."""

    api: ApiConfig
    node: str = DEFAULT_NODE
    ssh: SshCredentials | None = None
    memory: int = DEFAULT_MEMORY
    cores: int = DEFAULT_CORES
    storage: str = DEFAULT_STORAGE
    staging_dir: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "Settings":
        """Build Settings from a (post-merge) config dict."""
        pve = _section(d, "proxmox")
        api = ApiConfig(
            host=pve.get("host") or "",
            token=pve.get("token") or "",
            verify_tls=bool(pve.get("verify_tls")),
        )

        ssh_dict = _section(d, "ssh")
        ssh = SshCredentials(
            host=ssh_dict.get("host") or None,
            user=ssh_dict.get("user") or None,
            password=ssh_dict.get("password") or None,
            port=int(ssh_dict.get("port") or DEFAULT_SSH_PORT),
        )

        defaults = _section(d, "defaults")
        return cls(
            api=api,
            node=pve.get("node") or DEFAULT_NODE,
            ssh=ssh if ssh.complete else None,
            memory=int(defaults.get("memory") or DEFAULT_MEMORY),
            cores=int(defaults.get("cores") or DEFAULT_CORES),
            storage=defaults.get("storage") or DEFAULT_STORAGE,
            staging_dir=defaults.get("staging_dir") or None,
        )


def load_config(path=None, environ=None) -> Settings:
    """Load settings from built-in defaults, env vars and an optional YAML file.

    If *path* is None, ``vmdock.yaml`` in the working directory is used when
    present. An explicitly given path must exist.

    Raises:
        FileNotFoundError: an explicit *path* does not exist.
        ValueError: the file is not valid YAML, or a section is not a mapping.
    """
    environ = os.environ if environ is None else environ
    config = deep_merge(DEFAULTS, _env_overrides(environ))

    if path is None and os.path.isfile(DEFAULT_CONFIG_FILE):
        path = DEFAULT_CONFIG_FILE
    if path is not None:
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ValueError(f"Config file {path} is not valid YAML: {e}") from e
        if not isinstance(file_config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        config = deep_merge(config, _drop_nulls(file_config))

    settings = Settings.from_dict(config)
    register_secret(settings.api.token)
    if settings.ssh is not None:
        register_secret(settings.ssh.password)
    return settings
