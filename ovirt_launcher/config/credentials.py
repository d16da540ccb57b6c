from dataclasses import dataclass


@dataclass
class HypervisorCredentials:
    name: str
    url: str
    username: str
    password: str
    cluster: str = ""
    insecure: bool = False
    timeout: float = 30.0


@dataclass
class SshLauncherConfig:
    username: str
    password: str
    agent_path: str
    host: str | None = None
    port: int = 22
    agent_name: str = "agent.jar"
    agent_command: str = "java -jar agent.jar"
    max_retries: int = 5
    retry_wait: int = 30
    address_retries: int = 5
    address_wait: int = 30
    launch_timeout: int = 300


@dataclass
class NodeConfig:
    name: str
    hypervisor: str
    vm: str
    remote_fs: str
    launcher: SshLauncherConfig
    snapshot: str = ""
    wait_seconds: int = 10
    retries: int = 30
    unlock_timeout: int | None = None
