#!/usr/bin/env python3
"""CLI for the Turmite Discovery engine."""

import argparse
import logging
import sys

from .config import DEFAULT_CONFIG, MAPPING_V1, with_overrides
from .eca import MAPPINGS, TRANSFORM_ORDER, apply_transforms, classify_rule, eca_to_table, rule_to_bits
from .presets import PRESETS
from .random_source import RandomStream
from .sampler import SeedSampler
from .search import RuleSearch
from .seed_pool import get_seed_pool, pool_summary
from .structure import random_rules
from .tables import RuleTable, Turn
from .validation import validate_rules

TURN_LETTERS = {Turn.LEFT: "L", Turn.RIGHT: "R", Turn.U_TURN: "U", Turn.NO_TURN: "N"}


def format_table(table: RuleTable) -> str:
    """Render a table as one line per state: color:write/turn/next."""
    lines = []
    for s in table.states:
        cells = [
            f"{c}:{r.write}{TURN_LETTERS.get(r.turn, '?')}{r.next_state}"
            for c, r in sorted(table.row(s).items())
        ]
        lines.append(f"  S{s}  " + "  ".join(cells))
    return "\n".join(lines)


def _config_from_args(args):
    config = DEFAULT_CONFIG
    if getattr(args, "attempts", None):
        config = with_overrides(config, "search", max_attempts=args.attempts)
    if getattr(args, "quick", False):
        config = with_overrides(config, "validation", warmup_steps=200, window_steps=500, tail_steps=1500)
    return config


def cmd_generate(args):
    """Generate validated rule tables."""
    search = RuleSearch(config=_config_from_args(args), seed=args.seed)
    if args.chaos:
        search.randomize_config()

    for i in range(args.count):
        result = search.run(strategy=args.strategy)
        status = "valid" if result.valid else "UNVALIDATED"
        print(f"[{i + 1}] {status} after {result.attempts} attempt(s)  "
              f"origin: {result.origin.label() or result.origin.kind}  "
              f"{result.rules.num_states} states x {result.rules.num_colors} colors")
        print(format_table(result.rules))
        if result.report.metrics is not None:
            m = result.report.metrics
            print(f"  changed={m.changed} late={m.changed_late} tail={m.changed_tail} "
                  f"painted={m.painted} colors={m.distinct_colors} regions={m.painted_regions}")
        print()


def cmd_validate(args):
    """Validate a named preset."""
    preset = PRESETS.get(args.preset)
    if preset is None:
        print(f"Unknown preset '{args.preset}'. Available: {', '.join(PRESETS)}")
        sys.exit(1)

    config = _config_from_args(args)
    report = validate_rules(preset.rules, RandomStream(args.seed), config.validation, strategy=args.spawn)
    print(f"{args.preset}: {'accepted' if report.valid else 'rejected'} at {report.stage} gate")
    if report.reason:
        print(f"  reason: {report.reason}")
    if report.metrics is not None:
        for key, value in report.metrics.to_dict().items():
            print(f"  {key:<16}{value}")


def cmd_mutate(args):
    """Print a random variant of a preset, or a fresh random table."""
    if args.max_mutations is not None and args.max_mutations < 1:
        print("--max-mutations must be at least 1")
        sys.exit(1)
    base = None
    if args.preset:
        preset = PRESETS.get(args.preset)
        if preset is None:
            print(f"Unknown preset '{args.preset}'. Available: {', '.join(PRESETS)}")
            sys.exit(1)
        base = preset.rules

    rng = RandomStream(args.seed)
    table = random_rules(rng, base, args.max_mutations, allow_structure_change=args.structure)
    print(f"{args.preset or 'random'}: {table.num_states} states x {table.num_colors} colors")
    print(format_table(table))
    if args.check:
        report = validate_rules(table, rng, _config_from_args(args).validation)
        print(f"  {'accepted' if report.valid else 'rejected'} at {report.stage} gate"
              + (f": {report.reason}" if report.reason else ""))


def cmd_eca(args):
    """Map one ECA rule to a turmite table."""
    bits = apply_transforms(rule_to_bits(args.rule), args.transform or ())
    print(f"ECA {args.rule} {args.mapping} transforms={args.transform or []}")
    print(f"  bits={''.join(str(b) for b in bits)} class hint={classify_rule(args.rule, bits)}")
    print(format_table(eca_to_table(args.rule, args.transform or (), args.mapping)))


def cmd_pool(args):
    """Summarize the seed pool and its bucket weights."""
    pool = get_seed_pool(DEFAULT_CONFIG.pool)
    summary = pool_summary(pool)
    print(f"Seed pool: {len(pool)} entries\n")
    for section, counts in summary.items():
        print(f"By {section}:")
        for key, count in sorted(counts.items(), key=lambda kv: str(kv[0])):
            print(f"  {str(key):<36}{count}")
        print()

    sampler = SeedSampler(pool, DEFAULT_CONFIG.sampler)
    print(f"{'Bucket':<52}{'Size':<8}{'P(select)':<10}")
    print("-" * 70)
    weights = sampler.relative_bucket_weights()
    for bucket in sampler.buckets:
        family, mapping = bucket.key
        print(f"{family + ' / ' + mapping:<52}{len(bucket.indices):<8}{weights.get(bucket.key, 0):<10.4f}")


def cmd_presets(args):
    """List presets."""
    for name, preset in PRESETS.items():
        print(f"{name} ({preset.rules.num_states}x{preset.rules.num_colors}): {preset.description}")
        if args.show:
            print(format_table(preset.rules))


def main():
    parser = argparse.ArgumentParser(
        description="Turmite Discovery - generate and validate turmite rule tables"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log each attempt")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    gen_parser = subparsers.add_parser("generate", help="Generate validated rule tables")
    gen_parser.add_argument("-n", "--count", type=int, default=1, help="Number of tables")
    gen_parser.add_argument("--attempts", type=int, default=None, help="Max attempts per table")
    gen_parser.add_argument("--strategy", type=str, default=None,
                            choices=["simple", "pool", "preset", "mutation", "cellular_automata",
                                     "sacred_geometry", "wolfram_style"],
                            help="Force a generation strategy")
    gen_parser.add_argument("--chaos", action="store_true", help="Use a randomized configuration")
    gen_parser.add_argument("--quick", action="store_true", help="Shorter validation windows")
    gen_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    gen_parser.set_defaults(func=cmd_generate)

    val_parser = subparsers.add_parser("validate", help="Validate a preset")
    val_parser.add_argument("preset", type=str, help="Preset name, e.g. \"Highway Builder\"")
    val_parser.add_argument("--spawn", type=str, default="center", help="Agent arrangement")
    val_parser.add_argument("--quick", action="store_true", help="Shorter validation windows")
    val_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    val_parser.set_defaults(func=cmd_validate)

    mut_parser = subparsers.add_parser("mutate", help="Random variant of a preset, or a fresh table")
    mut_parser.add_argument("preset", type=str, nargs="?", default=None,
                            help="Preset to mutate; omit for a fresh table")
    mut_parser.add_argument("--max-mutations", type=int, default=None,
                            help="Point mutation budget (default 2-10)")
    mut_parser.add_argument("--structure", action="store_true",
                            help="Allow adding or removing a state or color")
    mut_parser.add_argument("--check", action="store_true", help="Run the result through the validator")
    mut_parser.add_argument("--quick", action="store_true", help="Shorter validation windows")
    mut_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    mut_parser.set_defaults(func=cmd_mutate)

    eca_parser = subparsers.add_parser("eca",help="Map an ECA rule to a turmite")
    eca_parser.add_argument("rule", type=int, help="ECA rule number 0-255")
    eca_parser.add_argument("-m", "--mapping", type=str, default=MAPPING_V1, choices=MAPPINGS)
    eca_parser.add_argument("-t", "--transform", action="append", choices=TRANSFORM_ORDER,
                            help="Symmetry transform (repeatable)")
    eca_parser.set_defaults(func=cmd_eca)

    pool_parser = subparsers.add_parser("pool", help="Summarize the seed pool")
    pool_parser.set_defaults(func=cmd_pool)

    presets_parser = subparsers.add_parser("presets", help="List presets")
    presets_parser.add_argument("--show", action="store_true", help="Print each table")
    presets_parser.set_defaults(func=cmd_presets)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
