import pytest

from canarysplit.manifests import load_manifests, validate
from canarysplit.rollout import promote, rollback, set_replicas
from canarysplit.split import backend_pool, expected_split


def test_promote_moves_canary_image_to_stable(manifest_dir):
    ms = load_manifests(manifest_dir)
    promoted = promote(ms)
    assert [d.name for d in promoted.deployments] == ["myapp-stable"]
    stable = promoted.deployment("myapp-stable")
    assert stable.image == "myapp:v2"
    assert stable.replicas == 3
    assert validate(promoted) == []
    assert expected_split(backend_pool(promoted)) == {"v2": 1.0}


def test_promote_does_not_mutate_input(manifest_dir):
    ms = load_manifests(manifest_dir)
    promote(ms)
    assert ms.deployment("myapp-stable").image == "myapp:v1"
    assert len(ms.deployments) == 2


def test_rollback_removes_canary(manifest_dir):
    rolled = rollback(load_manifests(manifest_dir))
    assert [d.name for d in rolled.deployments] == ["myapp-stable"]
    assert expected_split(backend_pool(rolled)) == {"v1": 1.0}


def test_unknown_deployment_raises(manifest_dir):
    ms = load_manifests(manifest_dir)
    with pytest.raises(KeyError):
        promote(ms, canary="missing")
    with pytest.raises(KeyError):
        rollback(ms, canary="missing")
    with pytest.raises(KeyError):
        set_replicas(ms, "missing", 2)


def test_set_replicas_rejects_negative(manifest_dir):
    with pytest.raises(ValueError):
        set_replicas(load_manifests(manifest_dir), "myapp-canary", -1)
