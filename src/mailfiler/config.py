"""Configuration management for mailfiler."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

DEFAULT_DATA_DIR = Path("~/.mailfiler")


class ImapConfig(BaseModel):
    """IMAP server configuration."""

    host: str
    port: int = 993
    username: str
    password: str = Field(default="", repr=False)
    password_env: str | None = Field(
        default=None,
        description="Environment variable holding the password (used when password is empty)",
    )
    use_tls: bool = True
    timeout: int = 30
    inbox_folder: str = "INBOX"

    def get_password(self) -> str:
        """Return the password, falling back to the configured environment variable."""
        if self.password:
            return self.password
        if self.password_env:
            return os.environ.get(self.password_env, "")
        return ""


class AnalysisConfig(BaseModel):
    """Sampling sizes and rule sources for folder analysis."""

    sender_sample_size: int = Field(default=100, gt=0)
    header_sample_size: int = Field(default=20, gt=0)
    sent_sample_size: int = Field(default=200, gt=0)
    top_correspondents: int = Field(default=20, gt=0)
    data_dir: str = Field(
        default=str(DEFAULT_DATA_DIR),
        description="Directory holding user overrides such as domain_rules.yml",
    )
    domain_rules_file: str | None = Field(
        default=None,
        description="User domain rules file (default: <data_dir>/domain_rules.yml)",
    )

    def user_rules_path(self) -> Path:
        """Location of the user's domain rules override."""
        if self.domain_rules_file:
            return Path(self.domain_rules_file).expanduser()
        return Path(self.data_dir).expanduser() / "domain_rules.yml"


class FilingConfig(BaseModel):
    """Where and how messages get filed."""

    junk_folder: str = "Junk"
    list_folder: str = "Lists"
    whitelisted_emails: list[str] = Field(default_factory=list)
    whitelisted_domains: list[str] = Field(default_factory=list)
    blacklisted_emails: list[str] = Field(default_factory=list)
    list_domain_map: dict[str, str] = Field(
        default_factory=dict,
        description="Sender domain -> list folder",
    )
    sender_map: dict[str, str] = Field(
        default_factory=dict,
        description="Sender address -> folder; overrides addresses learned from list folders",
    )
    whitelist_folders: list[str] = Field(
        default_factory=list,
        description="Folders whose senders are always kept in the inbox",
    )
    list_folders: list[str] = Field(
        default_factory=list,
        description="Folders whose senders are filed back into them",
    )
    blacklist_folder: str | None = Field(
        default=None,
        description="Folder whose senders are always junked",
    )
    sent_folder: str | None = Field(
        default=None,
        description="Sent mail folder (default: detected from folder attributes and names)",
    )
    folder_sample_size: int = Field(
        default=1000,
        gt=0,
        description="Newest messages per folder read when collecting sender addresses",
    )
    dry_run: bool = False

    def sender_map_folders(self, filing: bool = False) -> list[str]:
        """Folders whose senders are mapped back to them; the list folder when none are set."""
        folders = list(self.list_folders or [self.list_folder])
        if filing:
            folders += [f for f in self.whitelist_folders if f not in folders]
        return folders


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    log_file: str | None = None
    audit_file: str | None = "audit.jsonl"


class Config(BaseModel):
    """Main configuration."""

    imap: ImapConfig
    analysis: AnalysisConfig = Field(default_factory=lambda: AnalysisConfig())
    filing: FilingConfig = Field(default_factory=lambda: FilingConfig())
    logging: LoggingConfig = Field(default_factory=lambda: LoggingConfig())


def load_config(config_path: str | Path) -> Config:
    """Load configuration from YAML file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return Config(**data)
