import random

import pytest

from canarysplit.manifests import load_manifests
from canarysplit.rollout import set_replicas
from canarysplit.split import NoBackends, Pod, backend_pool, expected_split, image_version, select_backend, simulate


def test_pool_contains_every_replica_of_both_versions(manifest_dir):
    pool = backend_pool(load_manifests(manifest_dir))
    assert len(pool) == 4
    assert sorted(p.version for p in pool) == ["v1", "v1", "v1", "v2"]
    assert {p.deployment for p in pool} == {"myapp-stable", "myapp-canary"}


def test_expected_split_is_replica_ratio(manifest_dir):
    pool = backend_pool(load_manifests(manifest_dir))
    assert expected_split(pool) == {"v1": 0.75, "v2": 0.25}


def test_simulation_converges_to_three_to_one(manifest_dir):
    pool = backend_pool(load_manifests(manifest_dir))
    counts = simulate(pool, 40000, seed=1234)
    assert sum(counts.values()) == 40000
    ratio = counts["v1"] / counts["v2"]
    assert 2.75 < ratio < 3.25


def test_simulation_is_reproducible_with_seed(manifest_dir):
    pool = backend_pool(load_manifests(manifest_dir))
    assert simulate(pool, 500, seed=7) == simulate(pool, 500, seed=7)


def test_ratio_follows_replica_counts(manifest_dir):
    ms = set_replicas(load_manifests(manifest_dir), "myapp-canary", 3)
    pool = backend_pool(ms)
    assert expected_split(pool) == {"v1": 0.5, "v2": 0.5}


def test_zero_canary_replicas_removes_version(manifest_dir):
    ms = set_replicas(load_manifests(manifest_dir), "myapp-canary", 0)
    assert expected_split(backend_pool(ms)) == {"v1": 1.0}


def test_select_backend_is_uniform_over_pods():
    pool = [Pod("d", "v1", "myapp:v1", i) for i in range(4)]
    rng = random.Random(0)
    seen = {select_backend(pool, rng).ordinal for _ in range(200)}
    assert seen == {0, 1, 2, 3}


def test_empty_pool_raises():
    with pytest.raises(NoBackends):
        select_backend([])
    with pytest.raises(NoBackends):
        simulate([], 10)
    assert expected_split([]) == {}


def test_negative_request_count_rejected():
    with pytest.raises(ValueError):
        simulate([Pod("d", "v1", "myapp:v1", 0)], -1)


@pytest.mark.parametrize(
    "image,version",
    [
        ("myapp:v2", "v2"),
        ("registry.local:5000/team/myapp:v1", "v1"),
        ("registry.local:5000/myapp", "latest"),
        ("myapp", "latest"),
        ("myapp:v3@sha256:abc", "v3"),
        (None, "unknown"),
    ],
)
def test_image_version(image, version):
    assert image_version(image) == version
