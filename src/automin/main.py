import argparse
import os
import sys

from automin.config import STRATEGIES, load_config
from automin.errors import AutomatonError
from automin.log import configure_logging
from automin.parsing import detect_format_from_ext, read_automaton, write_automaton
from automin.presets import PRESETS
from automin.registry import BehaviorRegistry


def build_arg_parser():
    p = argparse.ArgumentParser(
        prog="automin",
        description="Minimize a state machine (JSON/XML) by merging equivalent states.",
    )
    p.add_argument("input", nargs="?", help="Input file (.json or .xml)")
    p.add_argument("--preset", choices=sorted(PRESETS), help="Use a built-in state machine instead of a file")
    p.add_argument("-o", "--output", help="Output file (.json or .xml)")
    p.add_argument("--in-format", choices=["json", "xml"], help="Force input format (default: by extension)")
    p.add_argument("--out-format", choices=["json", "xml"], help="Force output format (default: by extension)")
    p.add_argument("--config", help="TOML file with a [minimizer] table")
    p.add_argument("--strategy", choices=STRATEGIES, help="Partition refinement strategy")
    p.add_argument("--classifier", help="accepting | none | metadata:<key>")
    p.add_argument("--max-states", type=int, help="Refuse automata larger than this (0 = no limit)")
    p.add_argument("--drop-unreachable", action="store_true", default=None, help="Prune states unreachable from the initial state")
    p.add_argument("--plot", help="Write a before/after PNG to this path")
    p.add_argument("-v", "--verbose", action="count", default=0, help="More logging (-v info, -vv debug)")
    return p


def print_summary(a, metrics):
    print(f"Minimization complete: {a.name}")
    print(f"States: {metrics.original_state_count} -> {metrics.minimized_state_count} "
          f"(ratio {metrics.reduction_ratio:.3f}, {metrics.reduction_percentage:.1f}% reduction)")
    print(f"Transitions: {metrics.original_transition_count} -> {metrics.minimized_transition_count}")
    print(f"Equivalence classes: {metrics.equivalence_class_count} "
          f"({metrics.strategy}, {metrics.iterations} iterations, {metrics.elapsed_seconds * 1000:.2f} ms)")
    for class_id, members in sorted(a.equivalence_classes().items()):
        if len(members) > 1:
            print(f"  class {class_id}: {', '.join(members)}")
    print(f"Start: {a.initial_state}")
    print(f"Accepting: {[s for s, st in a.states.items() if st.is_accepting]}")


def main(argv=None):
    args = build_arg_parser().parse_args(argv)
    if not args.input and not args.preset:
        print("Error: No input file or --preset given", file=sys.stderr)
        return 2

    try:
        config = load_config(args.config).override(
            strategy=args.strategy,
            classifier=args.classifier,
            max_states=args.max_states,
            drop_unreachable=args.drop_unreachable,
        )
    except (OSError, ValueError) as e:
        print(f"Error: bad configuration: {e}", file=sys.stderr)
        return 1
    level = config.log_level
    if args.verbose:
        level = "DEBUG" if args.verbose > 1 else "INFO"
    configure_logging(level)

    with BehaviorRegistry() as registry:
        try:
            if args.preset:
                a = PRESETS[args.preset](registry=registry)
                a.config = config
            else:
                a = read_automaton(args.input, args.in_format, registry, config)
            before = a.clone()
            metrics = a.minimize()
        except (AutomatonError, OSError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print_summary(a, metrics)

        if args.plot:
            import matplotlib

            matplotlib.use("Agg")
            from automin.visualization import plot_comparison

            plot_comparison(before, a, args.plot)
            print(f"Plot written to {args.plot}")

        out_path = args.output
        if not out_path and args.input:
            base, ext = os.path.splitext(args.input)
            chosen_ext = args.out_format or (ext.lstrip(".") if ext else "json")
            out_path = f"{base}_min.{chosen_ext}"
        if out_path:
            out_fmt = args.out_format or detect_format_from_ext(out_path)
            try:
                write_automaton(a, out_path, out_fmt)
            except OSError as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(f"Output: {out_path} ({out_fmt})")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nProgram interrupted by user")
        sys.exit(130)
