"""porter-sim Command Line Interface.

Usage:
    porter validate <scenario.json>                  Validate scenario file
    porter run <scenario.json> [--schedule CSV]      Run simulation
    porter schema                                    Output JSON schema
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a scenario JSON file."""
    from porter_sim.models.scenario import load_scenario, resolve_schedule_path
    from pydantic import ValidationError

    path = Path(args.scenario)
    print(f"Validating: {path}")

    if not path.exists():
        print(f"ERROR: File not found: {path}", file=sys.stderr)
        return 1

    try:
        scenario = load_scenario(str(path))
        print(f"✓ Valid scenario: {scenario.name}")
        print()
        print(scenario.summary())

        schedule = resolve_schedule_path(str(path), scenario)
        if schedule is not None and not schedule.exists():
            print(f"WARNING: Schedule file not found: {schedule}", file=sys.stderr)
        return 0

    except json.JSONDecodeError as e:
        print(f"ERROR: Invalid JSON at line {e.lineno}: {e.msg}", file=sys.stderr)
        return 1

    except ValidationError as e:
        print("ERROR: Schema validation failed:", file=sys.stderr)
        for error in e.errors():
            loc = " -> ".join(str(x) for x in error["loc"])
            print(f"  {loc}: {error['msg']}", file=sys.stderr)
        return 1

    except Exception as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Run a simulation and output results."""
    from porter_sim.models.scenario import load_scenario, resolve_schedule_path
    from porter_sim.simulation.engine import SimulationEngine
    from porter_sim.analysis.kpis import compute_all_kpis, compute_dispatch_kpis

    path = Path(args.scenario)
    print(f"Loading: {path}")

    try:
        scenario = load_scenario(str(path))
        _configure_logging(args.log_level or scenario.config.log_level)

        schedule = Path(args.schedule) if args.schedule else resolve_schedule_path(str(path), scenario)

        print(f"Scenario: {scenario.name}")
        print(f"Schedule: {schedule if schedule else '(none)'}")
        print(f"Duration: {scenario.config.duration_s:g} s")
        print(f"Seed: {scenario.config.random_seed}")
        print()

        print("Running simulation...")
        engine = SimulationEngine(scenario, schedule)
        event_log = engine.run()

        print(f"Simulation complete: {len(event_log)} events logged")
        print()

        roles = {w.id: w.role.value for w in engine.workers}
        kpis = compute_dispatch_kpis(event_log, roles)
        print(kpis.summary())

        if args.output:
            output_dir = Path(args.output)
            output_dir.mkdir(parents=True, exist_ok=True)

            events_path = output_dir / "events.csv"
            event_log.to_dataframe().to_csv(events_path, index=False)
            print(f"\nEvents saved to: {events_path}")

            assignments_path = output_dir / "assignments.csv"
            event_log.assignments_to_dataframe().to_csv(assignments_path, index=False)
            print(f"Assignments saved to: {assignments_path}")

            kpis_path = output_dir / "kpis.json"
            with open(kpis_path, "w") as f:
                json.dump(compute_all_kpis(event_log, roles), f, indent=2)
            print(f"KPIs saved to: {kpis_path}")

        return 0

    except Exception as e:
        print(f"ERROR: {type(e).__name__}: {e}", file=sys.stderr)
        return 1


def cmd_schema(args: argparse.Namespace) -> int:
    """Output JSON schema for scenario files."""
    from porter_sim.models.scenario import Scenario

    schema = Scenario.model_json_schema()

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(schema, f, indent=2)
        print(f"Schema written to: {output_path}")
    else:
        print(json.dumps(schema, indent=2))

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="porter",
        description="porter-sim: hospital transport dispatch simulation",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # validate command
    p_validate = subparsers.add_parser(
        "validate",
        help="Validate a scenario JSON file",
    )
    p_validate.add_argument("scenario", help="Path to scenario JSON file")
    p_validate.set_defaults(func=cmd_validate)

    # run command
    p_run = subparsers.add_parser(
        "run",
        help="Run simulation",
    )
    p_run.add_argument("scenario", help="Path to scenario JSON file")
    p_run.add_argument(
        "--schedule", "-s",
        help="Schedule CSV (default: the scenario's schedule_file)",
    )
    p_run.add_argument(
        "--output", "-o",
        help="Output directory for results",
    )
    p_run.add_argument(
        "--log-level",
        help="Override the scenario's log level",
    )
    p_run.set_defaults(func=cmd_run)

    # schema command
    p_schema = subparsers.add_parser(
        "schema",
        help="Output JSON schema",
    )
    p_schema.add_argument(
        "--output", "-o",
        help="Output file (default: stdout)",
    )
    p_schema.set_defaults(func=cmd_schema)

    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
