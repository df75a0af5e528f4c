from __future__ import annotations

import argparse
import json
import logging
import sys

from canarysplit import images, probe, rollout
from canarysplit.manifests import ManifestError, ManifestSet, dump_manifests, load_manifests, validate
from canarysplit.settings import settings
from canarysplit.split import NoBackends, backend_pool, expected_split, simulate


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _load(path: str) -> ManifestSet:
    return load_manifests(path)


def _cmd_validate(args: argparse.Namespace) -> int:
    ms = _load(args.path)
    problems = validate(ms)
    _print(
        {
            "deployments": [{"name": d.name, "replicas": d.replicas, "image": d.image} for d in ms.deployments],
            "services": [{"name": s.name, "selector": s.selector} for s in ms.services],
            "ok": not problems,
            "problems": problems,
        }
    )
    return 0 if not problems else 1


def _cmd_split(args: argparse.Namespace) -> int:
    pool = backend_pool(_load(args.path), args.service)
    _print(
        {
            "pods": len(pool),
            "expected": {v: round(f * 100, 2) for v, f in expected_split(pool).items()},
        }
    )
    return 0 if pool else 1


def _cmd_simulate(args: argparse.Namespace) -> int:
    pool = backend_pool(_load(args.path), args.service)
    counts = simulate(pool, args.requests, seed=args.seed)
    total = sum(counts.values())
    _print(
        {
            "requests": total,
            "counts": dict(sorted(counts.items())),
            "observed": {v: round(n * 100 / total, 2) for v, n in sorted(counts.items())} if total else {},
            "expected": {v: round(f * 100, 2) for v, f in expected_split(pool).items()},
        }
    )
    return 0


def _cmd_probe(args: argparse.Namespace) -> int:
    result = probe.sample(args.url, args.requests)
    _print(result.as_dict())
    return 0 if result.counts else 1


def _cmd_health(args: argparse.Namespace) -> int:
    ok, msg = probe.check_health(args.url)
    _print({"url": args.url, "healthy": ok, "message": msg})
    return 0 if ok else 1


def _cmd_build(args: argparse.Namespace) -> int:
    built = images.build_all(args.services_dir)
    _print([{"tag": b.tag, "id": b.id, "context": b.context} for b in built])
    return 0


def _cmd_promote(args: argparse.Namespace) -> int:
    print(dump_manifests(rollout.promote(_load(args.path), args.stable, args.canary)), end="")
    return 0


def _cmd_rollback(args: argparse.Namespace) -> int:
    print(dump_manifests(rollout.rollback(_load(args.path), args.canary)), end="")
    return 0


def _cmd_scale(args: argparse.Namespace) -> int:
    print(dump_manifests(rollout.set_replicas(_load(args.path), args.deployment, args.replicas)), end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Replica-ratio canary split tooling")
    p.add_argument("--log-level", default=settings.log_level, help="Logging level (default from CANARY_LOG_LEVEL)")
    sub = p.add_subparsers(dest="cmd", required=True)

    def with_path(sp: argparse.ArgumentParser) -> argparse.ArgumentParser:
        sp.add_argument("path", nargs="?", default=settings.manifest_dir, help="Manifest file or directory")
        return sp

    s_val = with_path(sub.add_parser("validate", help="Check selectors and ports across manifests"))
    s_val.set_defaults(func=_cmd_validate)

    s_split = with_path(sub.add_parser("split", help="Expected traffic share per version"))
    s_split.add_argument("--service", default=None)
    s_split.set_defaults(func=_cmd_split)

    s_sim = with_path(sub.add_parser("simulate", help="Simulate uniform load balancing over the pod pool"))
    s_sim.add_argument("--service", default=None)
    s_sim.add_argument("--requests", type=int, default=1000)
    s_sim.add_argument("--seed", type=int, default=None)
    s_sim.set_defaults(func=_cmd_simulate)

    s_probe = sub.add_parser("probe", help="Sample a live entry point and count responses per version")
    s_probe.add_argument("--url", default=settings.probe_url)
    s_probe.add_argument("--requests", type=int, default=settings.probe_requests)
    s_probe.set_defaults(func=_cmd_probe)

    s_health = sub.add_parser("health", help="Check that a responder answers GET / with its version")
    s_health.add_argument("--url", required=True)
    s_health.set_defaults(func=_cmd_health)

    s_build = sub.add_parser("build", help="Build the stable and canary images")
    s_build.add_argument("--services-dir", default=settings.services_dir)
    s_build.set_defaults(func=_cmd_build)

    s_prom = with_path(sub.add_parser("promote", help="Print manifests with the canary image promoted to stable"))
    s_prom.add_argument("--stable", default=rollout.STABLE)
    s_prom.add_argument("--canary", default=rollout.CANARY)
    s_prom.set_defaults(func=_cmd_promote)

    s_back = with_path(sub.add_parser("rollback", help="Print manifests without the canary Deployment"))
    s_back.add_argument("--canary", default=rollout.CANARY)
    s_back.set_defaults(func=_cmd_rollback)

    s_scale = with_path(sub.add_parser("scale", help="Print manifests with one Deployment rescaled"))
    s_scale.add_argument("--deployment", required=True)
    s_scale.add_argument("--replicas", type=int, required=True)
    s_scale.set_defaults(func=_cmd_scale)

    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        return args.func(args)
    except (ManifestError, NoBackends, KeyError, ValueError, FileNotFoundError, RuntimeError) as e:
        _print({"error": f"{type(e).__name__}: {e}"})
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
