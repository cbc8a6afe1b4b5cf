# config.py
from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass(frozen=True)
class ProjectConfig:
    """
    Everything the job constructors need, passed explicitly.

    Secrets (registry token, GitHub token) are carried as opaque strings and
    end up in JobSpec.env untouched.
    """
    project_name: str = "kashti"
    repo_name: str = "Azure/kashti"
    default_branch_ref: str = "refs/heads/master"
    source_dir: str = "/src"

    registry: str = ""
    registry_token: str = ""
    registry_tenant: str = ""
    github_token: str = ""

    notify_context: str = "brigade"
    node_image: str = "node:8"
    build_image: str = "microsoft/azure-cli:latest"
    notify_image: str = "technosophos/github-notify:latest"
    check_run_image: str = "technosophos/brigade-github-check-run:latest"
    check_name: str = "kashti"
    check_title: str = "Lint, test and build kashti"

    def __post_init__(self):
        if not self.project_name:
            raise ValueError("project_name must be non-empty (KASHTI_PROJECT)")
        if not self.repo_name:
            raise ValueError("repo_name must be non-empty (KASHTI_REPO)")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> ProjectConfig:
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            project_name=env.get("KASHTI_PROJECT", defaults.project_name),
            repo_name=env.get("KASHTI_REPO", defaults.repo_name),
            default_branch_ref=env.get("KASHTI_DEFAULT_BRANCH", defaults.default_branch_ref),
            source_dir=env.get("KASHTI_SOURCE_DIR", defaults.source_dir),
            registry=env.get("KASHTI_ACR_NAME", ""),
            registry_token=env.get("KASHTI_ACR_TOKEN", ""),
            registry_tenant=env.get("KASHTI_ACR_TENANT", ""),
            github_token=env.get("KASHTI_GH_TOKEN", ""),
            notify_context=env.get("KASHTI_NOTIFY_CONTEXT", defaults.notify_context),
            node_image=env.get("KASHTI_NODE_IMAGE", defaults.node_image),
        )

    @classmethod
    def from_secrets(cls, repo_name: str, secrets: Mapping[str, str], **overrides) -> ProjectConfig:
        """Build a config from Brigade-style project secrets (acrName, acrToken, acrTenant, ghToken)."""
        return cls(
            repo_name=repo_name,
            registry=secrets.get("acrName", ""),
            registry_token=secrets.get("acrToken", ""),
            registry_tenant=secrets.get("acrTenant", ""),
            github_token=secrets.get("ghToken", ""),
            **overrides,
        )

    def replace(self, **changes) -> ProjectConfig:
        return dataclasses.replace(self, **changes)
