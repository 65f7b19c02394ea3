"""Module entrypoint for `python -m projectile_lab`."""

from __future__ import annotations

import argparse

import numpy as np

from projectile_lab.analysis import ideal_range
from projectile_lab.challenge import ChallengeEngine, ChallengePolicy
from projectile_lab.config import PLANET_GRAVITY, PRESETS
from projectile_lab.logging_utils import configure_logging, log_key_values
from projectile_lab.session import FlightSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="projectile_lab", description="Headless projectile flights.")
    parser.add_argument("--preset", choices=sorted(PRESETS))
    parser.add_argument("--speed", type=float)
    parser.add_argument("--angle", type=float)
    gravity = parser.add_mutually_exclusive_group()
    gravity.add_argument("--gravity", type=float)
    gravity.add_argument("--planet", choices=sorted(PLANET_GRAVITY))
    parser.add_argument("--air", action="store_true", help="enable quadratic air drag")
    parser.add_argument("--thrust", type=float, default=0.0)
    parser.add_argument("--fuel", type=float, default=0.0, help="seconds of burn")
    parser.add_argument("--challenge", type=int, default=0, metavar="SHOTS", help="play a challenge round")
    parser.add_argument("--arcade", action="store_true", help="three target types, score kept across rounds")
    parser.add_argument("--seed", type=int)
    parser.add_argument("--log-level", default="INFO")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    policy = ChallengePolicy.arcade() if args.arcade else ChallengePolicy.classic()
    engine = ChallengeEngine(policy=policy, rng=np.random.default_rng(args.seed))
    session = FlightSession(challenge=engine, air_resistance=args.air)

    if args.preset:
        session.load_preset(args.preset)
    if args.air:
        session.air_resistance = True
    if args.planet:
        session.set_planet(args.planet)
    elif args.gravity is not None:
        session.gravity = args.gravity
    if args.speed is not None:
        session.speed = args.speed
    if args.angle is not None:
        session.angle = args.angle

    log_key_values(
        "projectile_lab.run",
        {
            "speed": session.speed,
            "angle": session.angle,
            "gravity": session.gravity,
            "air": session.air_resistance,
            "accelerated": session.router.accelerated_available,
        },
        prefix="setup",
    )

    if args.challenge <= 0:
        session.fire(thrust=args.thrust, fuel=args.fuel)
        session.run_to_completion()
        if not session.air_resistance and args.thrust == 0.0:
            log_key_values(
                "projectile_lab.run",
                {"ideal_range": ideal_range(session.speed, session.angle, session.gravity)},
                prefix="reference",
            )
        return 0

    info = session.start_challenge()
    log_key_values("projectile_lab.run", {"target": info.description}, prefix="challenge")
    for _ in range(args.challenge):
        session.fire(thrust=args.thrust, fuel=args.fuel)
        result = session.run_to_completion()
        log_key_values(
            "projectile_lab.run",
            {"hit": result.hit, "score": result.score, "next": engine.description},
            prefix="shot",
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
