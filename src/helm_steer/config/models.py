"""Pydantic models for the plan document schema and tool settings."""

from typing import Any, Dict, Iterator, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _flag_alias(field_name: str) -> str:
    """Plan documents spell flags the way helm does (`reuse-values`)."""
    return field_name.replace("_", "-")


class FlagSet(BaseModel):
    """Flags shared by every helm lifecycle command."""

    model_config = ConfigDict(
        alias_generator=_flag_alias,
        populate_by_name=True,
        extra="forbid",
    )

    dry_run: bool = False
    namespace: str = ""
    no_hooks: bool = False
    timeout: str = ""

    @field_validator("timeout", mode="before")
    @classmethod
    def normalize_timeout(cls, v: Any) -> Any:
        """Accept a bare number of seconds as well as a helm duration."""
        if v is None:
            return ""
        if isinstance(v, bool):
            raise ValueError("timeout must be a duration or a number of seconds")
        if isinstance(v, int):
            return f"{v}s"
        return v


class InstallFlags(FlagSet):
    """Flags accepted by `helm install`."""

    ca_file: str = ""
    cert_file: str = ""
    create_namespace: bool = False
    devel: bool = False
    key_file: str = ""
    keyring: str = ""
    name_template: str = ""
    replace: bool = False
    repo: str = ""
    set: List[str] = Field(default_factory=list)
    values: List[str] = Field(default_factory=list)
    verify: bool = False
    version: str = ""
    wait: bool = False


class UpgradeFlags(FlagSet):
    """Flags accepted by `helm upgrade`."""

    ca_file: str = ""
    cert_file: str = ""
    devel: bool = False
    force: bool = False
    install: bool = False
    key_file: str = ""
    keyring: str = ""
    repo: str = ""
    reset_values: bool = False
    reuse_values: bool = False
    set: List[str] = Field(default_factory=list)
    values: List[str] = Field(default_factory=list)
    verify: bool = False
    version: str = ""
    wait: bool = False


class DeleteFlags(FlagSet):
    """Flags accepted by `helm delete`."""

    keep_history: bool = False


class RollbackFlags(FlagSet):
    """Flags accepted by `helm rollback`."""

    cleanup_on_fail: bool = False
    force: bool = False
    recreate_pods: bool = False
    wait: bool = False


class ReleaseFlags(BaseModel):
    """Per-operation flag sets of a release."""

    model_config = ConfigDict(extra="forbid")

    install: InstallFlags = Field(default_factory=InstallFlags)
    upgrade: UpgradeFlags = Field(default_factory=UpgradeFlags)
    delete: DeleteFlags = Field(default_factory=DeleteFlags)
    rollback: RollbackFlags = Field(default_factory=RollbackFlags)

    @field_validator("install", "upgrade", "delete", "rollback", mode="before")
    @classmethod
    def empty_section(cls, v: Any) -> Any:
        """An empty YAML section (`install:`) means no flags."""
        return {} if v is None else v


class ReleaseSpec(BaseModel):
    """Chart reference and command flags of a release."""

    model_config = ConfigDict(extra="forbid")

    chart: str = Field(..., min_length=1, description="Chart reference (repo/chart, path or URL)")
    flags: ReleaseFlags = Field(default_factory=ReleaseFlags)

    @field_validator("flags", mode="before")
    @classmethod
    def empty_flags(cls, v: Any) -> Any:
        return {} if v is None else v


class Release(BaseModel):
    """One deployable unit, identified by (namespace, name).

    `namespace` and `name` come from the position of the entry in the plan
    and are stamped by `Plan.conform()`.
    """

    model_config = ConfigDict(extra="forbid")

    spec: ReleaseSpec
    depends: List[str] = Field(default_factory=list, description="Same-namespace release names")
    name: str = ""
    namespace: str = ""

    @field_validator("depends", mode="before")
    @classmethod
    def empty_depends(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("depends")
    @classmethod
    def validate_depends(cls, v: List[str]) -> List[str]:
        """Validate dependency names."""
        for dep in v:
            if not dep:
                raise ValueError("Dependency names must be non-empty strings")
        return v

    @property
    def key(self) -> str:
        """Plan-wide key of the release (`namespace.name`)."""
        return f"{self.namespace}.{self.name}"

    @property
    def chart(self) -> str:
        return self.spec.chart

    @property
    def version(self) -> str:
        """Specified chart version (empty means latest)."""
        return self.spec.flags.install.version

    @property
    def namespaced_dependencies(self) -> List[str]:
        """Dependencies expressed as plan-wide keys."""
        return [f"{self.namespace}.{dep}" for dep in self.depends]

    def conform(self, namespace: str, name: str) -> None:
        """Stamp identity onto the release and scope its flags to the namespace.

        An upgrade with no version of its own targets the specified version.
        """
        self.namespace = namespace
        self.name = name

        flags = self.spec.flags
        for flag_set in (flags.install, flags.upgrade, flags.delete, flags.rollback):
            if not flag_set.namespace:
                flag_set.namespace = namespace
        if not flags.upgrade.version:
            flags.upgrade.version = flags.install.version

    def chart_label(self, version: str) -> str:
        """Chart reference followed by a version, when there is one."""
        return f"{self.chart} {version}" if version else self.chart

    def __str__(self) -> str:
        return f"{self.name} chart: {self.chart_label(self.version)} namespace: {self.namespace}"


class Plan(BaseModel):
    """Desired state: namespaces mapping release names to releases."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(..., min_length=1)
    namespaces: Dict[str, Dict[str, Release]] = Field(default_factory=dict)

    @field_validator("version", mode="before")
    @classmethod
    def stringify_version(cls, v: Any) -> Any:
        """YAML reads `version: 1` as a number."""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("namespaces", mode="before")
    @classmethod
    def empty_namespaces(cls, v: Any) -> Any:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {name: ({} if releases is None else releases) for name, releases in v.items()}
        return v

    def conform(self) -> None:
        """Apply the namespace and release names to every contained release."""
        for namespace_name, releases in self.namespaces.items():
            for release_name, release in releases.items():
                release.conform(namespace_name, release_name)

    def verify(self) -> List[Dict[str, Any]]:
        """Check plan-wide invariants the schema cannot express.

        Returns:
            List of `{loc, msg}` errors (empty if valid)
        """
        errors = []

        seen: Dict[str, str] = {}
        for namespace_name in sorted(self.namespaces):
            for release_name in sorted(self.namespaces[namespace_name]):
                if release_name in seen:
                    errors.append({
                        "loc": ["namespaces", namespace_name, release_name],
                        "msg": f"Release name '{release_name}' is already used in "
                               f"namespace '{seen[release_name]}'",
                    })
                else:
                    seen[release_name] = namespace_name

        for namespace_name in sorted(self.namespaces):
            releases = self.namespaces[namespace_name]
            for release_name in sorted(releases):
                for dep in releases[release_name].depends:
                    if dep not in releases:
                        errors.append({
                            "loc": ["namespaces", namespace_name, release_name, "depends"],
                            "msg": f"Dependency '{dep}' is not a release of namespace "
                                   f"'{namespace_name}'",
                        })

        return errors

    def releases(self, namespaces: Optional[List[str]] = None) -> Iterator[Release]:
        """Iterate releases in (namespace, name) order.

        Args:
            namespaces: Optional namespace allow-list (empty or None means all)
        """
        allowed = set(namespaces or [])
        for namespace_name in sorted(self.namespaces):
            if allowed and namespace_name not in allowed:
                continue
            releases = self.namespaces[namespace_name]
            for release_name in sorted(releases):
                yield releases[release_name]


class SteerSettings(BaseModel):
    """Tool settings read from ~/.helm-steer.yaml and the environment."""

    model_config = ConfigDict(extra="ignore")

    helm_binary: Optional[str] = Field(None, description="Path to the helm executable")
    log_level: str = Field("info", pattern="^(debug|info|warning|error)$")
    log_dir: Optional[str] = Field(None, description="Directory for JSON-lines log files")
