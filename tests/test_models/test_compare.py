"""Tests for spec comparison."""

from dockhand.models.compare import (
    COMPARE_SKIP_FIELDS,
    comparable_fields,
    containers_equal,
    first_difference,
    specs_equal,
)
from dockhand.models.container import ContainerSpec, ContainerState


def test_skip_fields_not_compared():
    """Test skipped fields never make specs differ."""
    a = ContainerSpec(image="nginx:1", kill_timeout=10, keep_volumes=True, state="running")
    b = ContainerSpec(image="nginx:1", network_disabled=True, extends="base")
    assert specs_equal(a, b)
    assert not COMPARE_SKIP_FIELDS & set(comparable_fields())


def test_absent_equals_zero_value():
    """Test an absent field equals its zero value."""
    assert specs_equal(ContainerSpec(image="nginx:1"), ContainerSpec(image="nginx:1", dns=[], env={}))
    assert specs_equal(ContainerSpec(privileged=False), ContainerSpec())


def test_absent_differs_from_real_value():
    """Test an absent field differs from a real value."""
    assert first_difference(ContainerSpec(), ContainerSpec(privileged=True)) == "privileged"
    assert first_difference(ContainerSpec(env={"A": "1"}), ContainerSpec()) == "env"


def test_unordered_lists():
    """Test list order is ignored."""
    a = ContainerSpec(dns=["1.1.1.1", "8.8.8.8"], links=["app.a", "app.b"])
    b = ContainerSpec(dns=["8.8.8.8", "1.1.1.1"], links=["app.b", "app.a"])
    assert specs_equal(a, b)


def test_argv_order_matters():
    """Test command order matters."""
    a = ContainerSpec(cmd=["echo", "a", "b"])
    b = ContainerSpec(cmd=["echo", "b", "a"])
    assert first_difference(a, b) == "cmd"
    assert not specs_equal(ContainerSpec(entrypoint="a b"), ContainerSpec(entrypoint="b a"))


def test_image_difference():
    """Test the first differing field is named."""
    assert first_difference(ContainerSpec(image="nginx:1"), ContainerSpec(image="nginx:2")) == "image"


class TestContainersEqual:
    """Test the full container predicate."""

    def test_equal(self, container):
        """Test identical containers are equal."""
        expected = container("web")
        actual = container("web", running=True)
        assert containers_equal(expected, actual)

    def test_identity_mismatch(self, container):
        """Test different identities are never equal."""
        assert not containers_equal(container("web"), container("api"))

    def test_spec_mismatch(self, container):
        """Test a spec difference makes containers unequal."""
        assert not containers_equal(container("web", image="nginx:2"), container("web"))

    def test_image_id_mismatch(self, container):
        """Test differing image ids make containers unequal."""
        expected = container("web")
        actual = container("web")
        expected.image_id = "sha256:aaa"
        actual.image_id = "sha256:bbb"
        assert not containers_equal(expected, actual)

    def test_stopped_container_is_not_equal(self, container):
        """Test a stopped container does not satisfy a running one."""
        assert not containers_equal(container("web"), container("web", running=False))

    def test_created_state(self, container):
        """Test a created container is expected not to run."""
        expected = container("job", state="created")
        assert containers_equal(expected, container("job", running=False))
        assert not containers_equal(expected, container("job", running=True))

    def test_ran_with_failure(self, container):
        """Test a run-once container that failed is unequal."""
        expected = container("migrate", state="ran")
        actual = container("migrate")
        actual.state = ContainerState(running=False, exit_code=1)
        assert not containers_equal(expected, actual)

        actual.state = ContainerState(running=False, exit_code=0)
        assert containers_equal(expected, actual)
