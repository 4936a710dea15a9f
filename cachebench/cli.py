"""
CLI argument parsing for the cache load-testing harness.

Commands:
    run         Load the cache, run the timed read workload and write the report.
    configview  Print the configuration a run would use, then exit.

Every workload option defaults to None on the command line so the precedence
is: command line, then --config-file, then the HarnessConfig defaults.
"""

import argparse
import sys

from dataclasses import fields

from cachebench import VERSION
from cachebench.config import (
    DEFAULT_TIER_NAME,
    Distribution,
    HarnessConfig,
    OutcomeCategory,
    ValueCopyPolicy,
    load_config,
)

HELP_MESSAGES = {
    'run': "Populate the cache, run the timed GET workload and report the results.",
    'configview': "View the final configuration based on the specified options.",
    'config_file': "Path to a YAML file with configuration values. Command line options take precedence.",
    'elements_per_thread': "Number of keys each load worker inserts. The key domain is "
                           "elements-per-thread x load-concurrency.",
    'payload_size_bytes': "Size in bytes of every value written during the load phase.",
    'load_concurrency': "Number of workers of the load phase. 1 gives a deterministic population order.",
    'test_concurrency': "Number of workers of the test phase. Defaults to the number of CPUs.",
    'test_duration_seconds': "Duration of the test phase in seconds.",
    'sampling_interval_millis': "Interval between two statistics samples, in milliseconds.",
    'sampler_initial_delay_millis': "Delay before the first statistics sample. Defaults to one interval.",
    'report_output_path': "Directory the report files are written to. No files are written when omitted.",
    'report_formats': "Report encodings to write.",
    'distribution': "Distribution of the keys read during the test phase.",
    'distribution_mean': "Mean key of the gaussian distribution. Defaults to the middle of the key domain.",
    'distribution_stdev': "Standard deviation of the gaussian distribution. Defaults to a tenth of the domain.",
    'reported_categories': "Outcome categories shown in the report. All categories are shown when omitted.",
    'tier_name': f"Cache tier polled by the statistics sampler (default: {DEFAULT_TIER_NAME}).",
    'cache_name': "Name of the cache under test.",
    'cache_capacity': "Maximum number of entries of the cache. Defaults to the key domain size.",
    'value_copy_policy': "When the cache copies values: on store, on read, both or never.",
    'seed': "Seed for key sampling and payload content. Runs are not reproducible when omitted.",
}

CONFIG_ARGS = [f.name for f in fields(HarnessConfig)]


def add_universal_arguments(parser):
    """Add arguments shared by every command."""
    standard_args = parser.add_argument_group("Standard Arguments")
    standard_args.add_argument(
        '--config-file', '-c',
        type=str,
        help=HELP_MESSAGES['config_file']
    )

    output_control = parser.add_argument_group("Output Control")
    output_control.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode"
    )
    output_control.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose mode"
    )
    output_control.add_argument(
        "--stream-log-level",
        type=str,
        default="INFO",
        help="Console log level (e.g. WARNING, STATUS, INFO)"
    )


def add_workload_arguments(parser):
    """Add the options of a run. Names map one to one onto HarnessConfig fields."""
    workload = parser.add_argument_group("Workload")
    workload.add_argument('--elements-per-thread', '-e', type=int, help=HELP_MESSAGES['elements_per_thread'])
    workload.add_argument('--payload-size-bytes', '-s', type=int, help=HELP_MESSAGES['payload_size_bytes'])
    workload.add_argument('--load-concurrency', type=int, help=HELP_MESSAGES['load_concurrency'])
    workload.add_argument('--test-concurrency', '-t', type=int, help=HELP_MESSAGES['test_concurrency'])
    workload.add_argument('--test-duration-seconds', '-d', type=float, help=HELP_MESSAGES['test_duration_seconds'])
    workload.add_argument('--distribution', choices=[d.value for d in Distribution],
                          help=HELP_MESSAGES['distribution'])
    workload.add_argument('--distribution-mean', type=int, help=HELP_MESSAGES['distribution_mean'])
    workload.add_argument('--distribution-stdev', type=int, help=HELP_MESSAGES['distribution_stdev'])
    workload.add_argument('--seed', type=int, help=HELP_MESSAGES['seed'])

    cache = parser.add_argument_group("Cache")
    cache.add_argument('--cache-name', type=str, help=HELP_MESSAGES['cache_name'])
    cache.add_argument('--cache-capacity', type=int, help=HELP_MESSAGES['cache_capacity'])
    cache.add_argument('--value-copy-policy', choices=[p.value for p in ValueCopyPolicy],
                       help=HELP_MESSAGES['value_copy_policy'])

    sampling = parser.add_argument_group("Statistics Sampling")
    sampling.add_argument('--tier-name', type=str, help=HELP_MESSAGES['tier_name'])
    sampling.add_argument('--sampling-interval-millis', type=int, help=HELP_MESSAGES['sampling_interval_millis'])
    sampling.add_argument('--sampler-initial-delay-millis', type=int,
                          help=HELP_MESSAGES['sampler_initial_delay_millis'])

    reporting = parser.add_argument_group("Reporting")
    reporting.add_argument('--report-output-path', '-o', type=str, help=HELP_MESSAGES['report_output_path'])
    reporting.add_argument('--report-formats', nargs='+', metavar='FORMAT', help=HELP_MESSAGES['report_formats'])
    reporting.add_argument('--reported-categories', nargs='+', metavar='CATEGORY',
                           choices=[c.name for c in OutcomeCategory], help=HELP_MESSAGES['reported_categories'])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cachebench", description="Load-testing harness for key/value caches")
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    sub_programs = parser.add_subparsers(dest="command", required=True)

    for command in ("run", "configview"):
        sub_parser = sub_programs.add_parser(command, description=HELP_MESSAGES[command],
                                             help=HELP_MESSAGES[command])
        add_workload_arguments(sub_parser)
        add_universal_arguments(sub_parser)

    return parser


def parse_arguments(argv=None) -> argparse.Namespace:
    """Parse command line arguments. Prints the help and exits when no command is given."""
    parser = build_parser()
    if argv is None:
        argv = sys.argv[1:]

    if not argv:
        parser.print_help(sys.stderr)
        sys.exit(1)

    return parser.parse_args(argv)


def config_overrides(args) -> dict:
    """Configuration values given on the command line, None for unset options."""
    return {name: getattr(args, name, None) for name in CONFIG_ARGS}


def build_config(args) -> HarnessConfig:
    """
    Build the HarnessConfig of a run from parsed arguments.

    Raises:
        ConfigurationError: Invalid values or an unreadable --config-file.
    """
    overrides = config_overrides(args)
    if getattr(args, 'config_file', None):
        return load_config(args.config_file, overrides)
    return HarnessConfig.from_dict(overrides)
