"""Unit tests for the Reconciler."""

from unittest.mock import MagicMock

import pytest

from helm_steer.config.parser import PlanLoader
from helm_steer.orchestrator.reconciler import Action, Reconciler, UnmanagedPolicy
from helm_steer.utils.errors import QueryError, VersionParseError


@pytest.fixture
def plan(make_entry):
    """Plan with two namespaces."""
    return PlanLoader.parse({
        "version": "1",
        "namespaces": {
            "backend": {
                "db": make_entry("bitnami/postgresql", "12.1.0"),
                "cache": make_entry("bitnami/redis", "18.0.0"),
            },
            "frontend": {
                "web": make_entry("charts/web"),
            },
        },
    })


@pytest.mark.unit
class TestReconcile:
    """Tests for Reconciler.reconcile."""

    def test_nothing_deployed_installs_everything(self, plan, fake_manager) -> None:
        """Should install every specified release."""
        result = Reconciler(fake_manager).reconcile(plan)

        assert sorted(result.changes) == ["backend.cache", "backend.db", "frontend.web"]
        assert all(c.action == Action.INSTALL for c in result.changes.values())
        assert result.unchanged == []

    def test_same_version_is_unchanged(self, plan, fake_manager, make_deployed) -> None:
        """Should leave a release alone when the deployed version matches."""
        fake_manager.deployed = [make_deployed("backend", "db", "postgresql-12.1.0", revision=4)]

        result = Reconciler(fake_manager).reconcile(plan)

        assert "backend.db" not in result.changes
        assert result.unchanged == ["backend.db"]
        assert result.get_summary()["no_op"] == 1

    def test_different_version_upgrades(self, plan, fake_manager, make_deployed) -> None:
        """Should upgrade when the deployed version differs."""
        deployed = make_deployed("backend", "db", "postgresql-12.0.3", revision=2)
        fake_manager.deployed = [deployed]

        result = Reconciler(fake_manager).reconcile(plan)

        change = result.changes["backend.db"]
        assert change.action == Action.UPGRADE
        assert change.deployed == deployed

    def test_unset_version_always_upgrades(self, plan, fake_manager, make_deployed) -> None:
        """Should upgrade a deployed release whose plan sets no version."""
        fake_manager.deployed = [make_deployed("frontend", "web", "web-3.0.0")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.changes["frontend.web"].action == Action.UPGRADE

    def test_versions_compare_semantically(self, make_entry, fake_manager, make_deployed) -> None:
        """Should treat equal versions with different spelling as equal."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {
                "short": make_entry("c/short", "1.2"),
                "pre": make_entry("c/pre", "2.0.0-rc.1"),
            }},
        })
        fake_manager.deployed = [
            make_deployed("apps", "short", "short-1.2.0"),
            make_deployed("apps", "pre", "pre-2.0.0-rc.1"),
        ]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.unchanged == ["apps.pre", "apps.short"]
        assert not result.has_changes()

    @pytest.mark.parametrize(
        "version",
        ["1.0.0-SNAPSHOT", "0.0.0-main.abc123f", "1.2.3-beta.x.7", "v1.4.0"],
    )
    def test_semver_prereleases_are_parsed(
        self, version, make_entry, fake_manager, make_deployed
    ) -> None:
        """Should accept hyphenated and dotted alphanumeric prereleases."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {"web": make_entry("c/web", version)}},
        })
        fake_manager.deployed = [make_deployed("apps", "web", f"web-{version}")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.unchanged == ["apps.web"]

    def test_distinct_prereleases_upgrade(self, make_entry, fake_manager, make_deployed) -> None:
        """Should not treat `alpha` and `a` prereleases as the same version."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {"web": make_entry("c/web", "1.0.0-alpha")}},
        })
        fake_manager.deployed = [make_deployed("apps", "web", "web-1.0.0-a")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.changes["apps.web"].action == Action.UPGRADE
        assert result.unchanged == []

    def test_prerelease_differs_from_release(self, make_entry, fake_manager, make_deployed) -> None:
        """Should upgrade from a prerelease to the final version."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {"web": make_entry("c/web", "2.0.0")}},
        })
        fake_manager.deployed = [make_deployed("apps", "web", "web-2.0.0-rc.1")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.changes["apps.web"].action == Action.UPGRADE

    def test_build_metadata_is_ignored(self, make_entry, fake_manager, make_deployed) -> None:
        """Should match versions that differ only in build metadata."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {"web": make_entry("c/web", "1.0.0")}},
        })
        fake_manager.deployed = [make_deployed("apps", "web", "web-1.0.0+build.5")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.unchanged == ["apps.web"]

    def test_invalid_deployed_version(self, plan, fake_manager, make_deployed) -> None:
        """Should raise VersionParseError for an unparsable deployed version."""
        fake_manager.deployed = [make_deployed("backend", "db", "postgresql")]

        with pytest.raises(VersionParseError) as exc_info:
            Reconciler(fake_manager).reconcile(plan)

        assert exc_info.value.context.release == "backend.db"

    def test_invalid_specified_version(self, make_entry, fake_manager, make_deployed) -> None:
        """Should raise VersionParseError for an unparsable specified version."""
        plan = PlanLoader.parse({
            "version": "1",
            "namespaces": {"apps": {"web": make_entry("c/web", "latest-stable")}},
        })
        fake_manager.deployed = [make_deployed("apps", "web", "web-1.0.0")]

        with pytest.raises(VersionParseError):
            Reconciler(fake_manager).reconcile(plan)

    def test_namespace_filter(self, plan, fake_manager, make_deployed) -> None:
        """Should only consider releases of the allowed namespaces."""
        fake_manager.deployed = [make_deployed("backend", "db", "postgresql-1.0.0")]

        result = Reconciler(fake_manager).reconcile(plan, ["frontend"])

        assert list(result.changes) == ["frontend.web"]
        assert result.unchanged == []

    def test_no_releases_skips_listing(self, plan, fake_manager) -> None:
        """Should not query the cluster when no release is in scope."""
        result = Reconciler(fake_manager).reconcile(plan, ["unknown"])

        assert not result.has_changes()
        assert fake_manager.list_calls == 0

    def test_listing_failure(self, plan) -> None:
        """Should wrap listing failures in QueryError."""
        manager = MagicMock()
        manager.list_releases.side_effect = RuntimeError("connection refused")

        with pytest.raises(QueryError, match="connection refused"):
            Reconciler(manager).reconcile(plan)


@pytest.mark.unit
class TestUnmanaged:
    """Tests for deployed releases the plan does not name."""

    def test_ignored_by_default(self, plan, fake_manager, make_deployed) -> None:
        """Should report but never act on unmanaged releases."""
        stray = make_deployed("backend", "old-worker", "worker-1.0.0", revision=3)
        fake_manager.deployed = [stray]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.unmanaged == [stray]
        assert "backend.old-worker" not in result.changes

    def test_other_namespaces_are_not_unmanaged(self, plan, fake_manager, make_deployed) -> None:
        """Should ignore releases of namespaces the plan does not name."""
        fake_manager.deployed = [make_deployed("kube-system", "coredns", "coredns-1.29.0")]

        result = Reconciler(fake_manager).reconcile(plan)

        assert result.unmanaged == []

    def test_prune_deletes(self, plan, fake_manager, make_deployed) -> None:
        """Should tag unmanaged releases for deletion when pruning."""
        stray = make_deployed("backend", "old-worker", "worker-1.0.0", revision=3)
        fake_manager.deployed = [stray]

        result = Reconciler(fake_manager, UnmanagedPolicy.PRUNE).reconcile(plan)

        change = result.changes["backend.old-worker"]
        assert change.action == Action.DELETE
        assert change.deployed == stray
        assert change.release.chart == "worker"
        assert change.release.depends == []
        assert change.release.spec.flags.delete.keep_history is True
        assert change.release.spec.flags.delete.namespace == "backend"
