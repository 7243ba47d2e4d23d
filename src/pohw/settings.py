from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="POHW_")

    data_dir: Path = Path.home() / ".pohw"
    key_file_name: str = "keys.json"

    # Registry endpoint; all wire routes hang off api_prefix
    registry_url: str = "https://gdn.sh"
    api_prefix: str = "/pohw"

    # Timeouts (seconds) per operation class
    submit_timeout_seconds: float = 30.0
    verify_timeout_seconds: float = 10.0
    status_timeout_seconds: float = 5.0

    discovery_url: str = "https://proofofhumanwork.org/registry/nodes.json"
    extra_nodes: str = ""  # comma separated node URLs (POHW_EXTRA_NODES)

    log_level: str = "WARNING"

    def key_file(self) -> Path:
        return self.data_dir / self.key_file_name

    def extra_node_urls(self) -> list[str]:
        return [n.strip().rstrip("/") for n in self.extra_nodes.split(",") if n.strip()]


settings = Settings()
