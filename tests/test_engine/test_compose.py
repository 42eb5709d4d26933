"""Tests for the compose facade."""

import logging

import pytest
from unittest.mock import AsyncMock, patch

from dockhand.engine.actions import CreateContainer, EnsureContainer, NoAction, RemoveContainer, Step
from dockhand.engine.compose import Compose
from dockhand.engine.errors import ActionError, ClientError, ContainerStateError
from dockhand.engine.manifest import Manifest
from dockhand.engine.report import PlanReport
from dockhand.engine.runner import ClientRunner, DryRunner
from dockhand.models.container import ContainerState


@pytest.fixture
def manifest():
    return Manifest(
        namespace="app",
        containers={
            "db": {"image": "postgres:16"},
            "web": {"image": "nginx:1.25", "links": ["app.db"]},
        },
    )


@pytest.mark.asyncio
class TestCompose:
    """Test running a manifest."""

    async def test_creates_missing_containers(self, manifest, mock_client):
        """Test an empty host gets every container in dependency order."""
        compose = Compose(manifest, mock_client)
        plan = await compose.run()

        assert isinstance(compose.runner, ClientRunner)
        assert [type(a) for a in plan] == [CreateContainer, CreateContainer]
        created = [call.args[0].name.full_name for call in mock_client.create_container.await_args_list]
        assert created == ["app.db", "app.web"]

    async def test_lists_all_containers_for_external_refs(self, mock_client):
        """Test external references make the listing global."""
        manifest = Manifest(namespace="app", containers={"web": {"image": "x:1", "links": ["infra.db"]}})
        mock_client.list_containers.side_effect = ClientError("down")

        with pytest.raises(ClientError):
            await Compose(manifest, mock_client).run()

        mock_client.list_containers.assert_awaited_once_with(global_=True)

    async def test_second_run_is_noop(self, manifest, mock_client, container):
        """Test running against an up to date host changes nothing."""
        mock_client.list_containers.return_value = [
            container("db", image="postgres:16", running=True),
            container("web", image="nginx:1.25", links=["app.db"], running=True),
        ]

        plan = await Compose(manifest, mock_client).run()

        assert all(isinstance(a, NoAction) for a in plan)
        mock_client.create_container.assert_not_awaited()
        mock_client.remove_container.assert_not_awaited()

    async def test_copies_runtime_ids(self, manifest, mock_client, container):
        """Test expected containers take over the ids of existing ones."""
        existing = container("web", image="nginx:1.0", links=["app.db"], running=True)
        existing.runtime_id = "abc123"
        mock_client.list_containers.return_value = [
            container("db", image="postgres:16", running=True),
            existing,
        ]

        compose = Compose(manifest, mock_client)
        plan = await compose.run()

        web = next(c for c in compose.expected if c.name.name == "web")
        assert web.runtime_id == "abc123"
        assert isinstance(plan[1], Step)
        mock_client.remove_container.assert_awaited_once_with(existing)

    async def test_new_local_image_recreates(self, manifest, mock_client, container):
        """Test a rebuilt image under the same tag recreates the container."""
        db = container("db", image="postgres:16", running=True)
        db.image_id = "sha256:old"
        web = container("web", image="nginx:1.25", links=["app.db"], running=True)
        web.image_id = "sha256:web"
        mock_client.list_containers.return_value = [db, web]

        async def fetch_image_ids(containers):
            for c in containers:
                c.image_id = "sha256:new" if c.spec.image == "postgres:16" else "sha256:web"

        mock_client.fetch_image_ids.side_effect = fetch_image_ids

        compose = Compose(manifest, mock_client)
        plan = await compose.compute_plan()

        assert [c.name.full_name for c in mock_client.fetch_image_ids.await_args.args[0]] == ["app.db", "app.web"]
        assert isinstance(plan[0], Step)
        assert [type(a) for a in plan[0].actions] == [RemoveContainer, CreateContainer]
        assert plan[0].actions[0].container.image_id == "sha256:old"
        assert isinstance(plan[1], NoAction)

    async def test_same_image_id_is_noop(self, manifest, mock_client, container):
        """Test an unchanged local image keeps the container."""
        db = container("db", image="postgres:16", running=True)
        db.image_id = "sha256:same"
        mock_client.list_containers.return_value = [db]

        async def fetch_image_ids(containers):
            for c in containers:
                c.image_id = "sha256:same"

        mock_client.fetch_image_ids.side_effect = fetch_image_ids

        plan = await Compose(manifest, mock_client).compute_plan()

        assert isinstance(plan[0], NoAction)

    async def test_dry_run(self, manifest, mock_client):
        """Test a dry run only records the actions."""
        compose = Compose(manifest, mock_client, dry_run=True)
        await compose.run()

        assert isinstance(compose.runner, DryRunner)
        assert compose.runner.output == ["Creating container 'app.db'", "Creating container 'app.web'"]
        mock_client.create_container.assert_not_awaited()

    async def test_remove(self, manifest, mock_client, container):
        """Test remove mode drops every container of the namespace."""
        mock_client.list_containers.return_value = [
            container("db", running=True),
            container("web", running=True),
        ]

        plan = await Compose(manifest, mock_client, remove=True).run()

        assert [type(a) for a in plan] == [RemoveContainer, RemoveContainer]
        assert mock_client.remove_container.await_count == 2

    async def test_logs_running_containers(self, manifest, mock_client, caplog):
        """Test the final log line names the expected containers."""
        with caplog.at_level(logging.INFO, logger="dockhand.engine.compose"):
            await Compose(manifest, mock_client).run()
        assert "OK, containers are running: app.db, app.web" in caplog.text

        caplog.clear()
        with caplog.at_level(logging.INFO, logger="dockhand.engine.compose"):
            await Compose(manifest, mock_client, remove=True).run()
        assert "Nothing is running" in caplog.text

    async def test_failure_propagates(self, manifest, mock_client):
        """Test a failing action aborts the run."""
        mock_client.create_container.side_effect = ClientError("no such image")

        with pytest.raises(ActionError):
            await Compose(manifest, mock_client).run()

    async def test_write_plan(self, manifest, mock_client, container):
        """Test the report lists removed and created containers."""
        old = container("old", running=True)
        old.runtime_id = "dead"
        mock_client.list_containers.return_value = [old]

        compose = Compose(manifest, mock_client)
        await compose.run()
        report = compose.write_plan(PlanReport())

        assert report.changed
        assert [(c.id, c.name) for c in report.removed] == [("dead", "app.old")]
        assert [c.name for c in report.created] == ["app.db", "app.web"]


@pytest.mark.asyncio
class TestWait:
    """Test the check of started containers after a run."""

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_running_containers_pass(self, mock_sleep, manifest, mock_client, container):
        """Test containers still up after the wait are accepted."""
        mock_client.list_containers.side_effect = [
            [],
            [container("db", running=True), container("web", running=True)],
        ]

        await Compose(manifest, mock_client, wait=2).run()

        mock_sleep.assert_awaited_once_with(2)
        mock_client.list_containers.assert_awaited_with(global_=True)

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_died_container_fails(self, mock_sleep, manifest, mock_client, container):
        """Test a container that exited during the wait fails the run."""
        died = container("web", running=False)
        died.state = ContainerState(running=False, exit_code=137, error="killed")
        mock_client.list_containers.side_effect = [
            [],
            [container("db", running=True), died],
        ]

        with pytest.raises(ContainerStateError) as exc_info:
            await Compose(manifest, mock_client, wait=1).run()

        assert exc_info.value.exit_code == 137
        assert str(exc_info.value.container) == "app.web"

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_missing_container_fails(self, mock_sleep, manifest, mock_client, container):
        """Test a started container that vanished fails the run."""
        mock_client.list_containers.side_effect = [[], [container("db", running=True)]]

        with pytest.raises(ClientError, match="app.web does not exist"):
            await Compose(manifest, mock_client, wait=1).run()

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_run_once_containers_skipped(self, mock_sleep, mock_client):
        """Test containers meant to exit are not checked."""
        manifest = Manifest(namespace="app", containers={"job": {"image": "x:1", "state": "ran"}})

        await Compose(manifest, mock_client, wait=1).run()

        mock_sleep.assert_not_awaited()
        assert mock_client.list_containers.await_count == 1

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_no_wait_on_dry_run(self, mock_sleep, manifest, mock_client):
        """Test a dry run never waits."""
        await Compose(manifest, mock_client, dry_run=True, wait=1).run()
        mock_sleep.assert_not_awaited()

    async def test_launched(self, manifest, mock_client, container):
        """Test only created or ensured long-running containers count as launched."""
        mock_client.list_containers.return_value = [container("db", image="postgres:16", running=True)]

        compose = Compose(manifest, mock_client)
        await compose.compute_plan()

        assert [str(c) for c in compose.launched()] == ["app.web"]


@pytest.mark.asyncio
class TestRecover:
    """Test recovering managed containers of every namespace."""

    async def test_starts_stopped_containers(self, mock_client, container):
        """Test stopped containers that should run are ensured in dependency order."""
        db = container("db", running=False)
        web = container("web", links=["app.db"], running=False)
        registry = container("registry", namespace="infra", running=True)
        mock_client.list_containers.return_value = [web, db, registry]

        compose = Compose(None, mock_client)
        plan = await compose.recover()

        assert isinstance(plan[0], EnsureContainer)
        assert str(plan[0].container) == "app.db"
        assert isinstance(plan[1], EnsureContainer)
        assert str(plan[1].container) == "app.web"
        ensured = [str(call.args[0]) for call in mock_client.ensure_container.await_args_list]
        assert ensured == ["app.db", "app.web"]
        mock_client.create_container.assert_not_awaited()
        mock_client.remove_container.assert_not_awaited()

    async def test_lists_managed_and_all(self, mock_client):
        """Test managed containers are recovered against every container on the host."""
        await Compose(None, mock_client).recover()

        calls = mock_client.list_containers.await_args_list
        assert calls[0].kwargs == {}
        assert calls[1].kwargs == {"global_": True}

    async def test_healthy_host_is_noop(self, mock_client, container):
        """Test nothing runs when every container is in its desired state."""
        mock_client.list_containers.return_value = [
            container("web", running=True),
            container("job", state="ran", running=False),
        ]

        plan = await Compose(None, mock_client).recover()

        assert all(isinstance(a, NoAction) for a in plan)
        mock_client.ensure_container.assert_not_awaited()

    async def test_dry_run(self, mock_client, container):
        """Test a dry recover only records the ensure actions."""
        mock_client.list_containers.return_value = [container("web", running=False)]

        compose = Compose(None, mock_client, dry_run=True)
        await compose.recover()

        assert compose.runner.output == ["Ensuring container 'app.web'"]
        mock_client.ensure_container.assert_not_awaited()

    @patch("dockhand.engine.compose.asyncio.sleep", new_callable=AsyncMock)
    async def test_wait_after_recover(self, mock_sleep, mock_client, container):
        """Test recovered containers that die again fail the command."""
        stopped = container("web", running=False)
        mock_client.list_containers.side_effect = [[stopped], [stopped], [stopped]]

        with pytest.raises(ContainerStateError):
            await Compose(None, mock_client, wait=1).recover()

        mock_sleep.assert_awaited_once_with(1)
