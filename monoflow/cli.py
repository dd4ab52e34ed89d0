"""
Command-line interface for MonoFlow
"""

import sys
from pathlib import Path
from typing import Optional

import click
import pandas as pd

from . import __version__, check_dependencies, get_info
from .config import Config, get_default_config, load_config, save_config
from .core import MonoFlowAnalysis
from .utils import (get_system_info, setup_logging, validate_environment,
                    validate_output_permissions)


# Global context for CLI
class CLIContext:
    def __init__(self):
        self.config_file: Optional[Path] = None
        self.config: Optional[Config] = None
        self.verbose: bool = False
        self.quiet: bool = False

    @property
    def log_level(self) -> str:
        return "DEBUG" if self.verbose else "WARNING" if self.quiet else "INFO"

    def get_config(self, output: Optional[str] = None) -> Config:
        config = self.config if self.config is not None else get_default_config()
        if output:
            config.output_dir = str(output)
        return config


def _fail(message: str, cli_ctx: Optional[CLIContext] = None) -> None:
    click.echo(message, err=True)
    if cli_ctx is not None and cli_ctx.verbose:
        import traceback

        traceback.print_exc()
    sys.exit(1)


@click.group()
@click.version_option(__version__)
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Enable quiet mode (minimal output)")
@click.pass_context
def main(ctx, config, verbose, quiet):
    """
    MonoFlow: RNA-seq differential expression of SLE versus control monocytes

    MonoFlow takes a featureCounts read-count table through DESeq2 modeling,
    exploratory PCA, gene symbol annotation and result plots.
    """
    cli_ctx = CLIContext()
    cli_ctx.verbose = verbose
    cli_ctx.quiet = quiet

    setup_logging(level=cli_ctx.log_level)

    if config:
        cli_ctx.config_file = Path(config)
        try:
            cli_ctx.config = load_config(cli_ctx.config_file)
        except (ValueError, FileNotFoundError) as e:
            _fail(f"Could not load configuration: {e}", cli_ctx)

    ctx.obj = cli_ctx


@main.command()
def info():
    """Show MonoFlow package information"""

    info_data = get_info()

    click.echo("=" * 50)
    click.echo(f"MonoFlow v{info_data['version']}")
    click.echo("=" * 50)
    click.echo(f"Description: {info_data['description']}")
    click.echo(f"Python version: {info_data['python_version']}")
    click.echo()

    click.echo("Available modules:")
    for module in info_data["modules"]:
        click.echo(f"  - {module}")
    click.echo()

    deps = check_dependencies()
    click.echo("Dependency status:")
    for dep, available in deps.items():
        status = "✓" if available else "✗"
        click.echo(f"  {status} {dep}")


@main.command()
@click.argument("output_file", type=click.Path())
@click.option(
    "--format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format for configuration file",
)
def init_config(output_file, format):
    """Initialize a new MonoFlow configuration file"""

    output_path = Path(output_file)
    # save_config picks the format from the suffix
    if format == "json" and output_path.suffix.lower() != ".json":
        output_path = output_path.with_suffix(".json")
    elif format == "yaml" and output_path.suffix.lower() not in (".yaml", ".yml"):
        output_path = output_path.with_suffix(".yaml")

    if output_path.exists():
        if not click.confirm(f"File {output_path} already exists. Overwrite?"):
            click.echo("Configuration initialization cancelled.")
            return

    try:
        save_config(get_default_config(), output_path)
    except OSError as e:
        _fail(f"Error creating configuration file: {e}")

    click.echo(f"Configuration file created: {output_path}")
    click.echo("Edit this file to customize your analysis parameters.")


@main.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate_config(config_file):
    """Validate a MonoFlow configuration file"""

    from .config import validate_config as validate_config_func

    try:
        config = load_config(config_file)
    except (ValueError, FileNotFoundError) as e:
        _fail(f"Configuration validation failed: {e}")

    click.echo(f"Configuration loaded successfully: {config_file}")

    issues = validate_config_func(config)

    if not issues:
        click.echo("✓ Configuration is valid")
    else:
        click.echo("Configuration issues found:")
        for issue in issues:
            click.echo(f"  ✗ {issue}")
        sys.exit(1)


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output directory to check")
def check_env(output):
    """Check MonoFlow environment and dependencies"""

    click.echo("Checking MonoFlow environment...")
    click.echo()

    system = get_system_info()
    click.echo(f"Platform: {system['platform']}")
    click.echo(f"Python: {system['python_version']} ({system['python_executable']})")
    click.echo()

    click.echo("Python dependencies:")
    for dep, version in system["packages"].items():
        status = f"✓ {dep} {version}" if version else f"✗ {dep}"
        click.echo(f"  {status}")
    click.echo()

    issues = validate_environment()

    if output and not validate_output_permissions(output):
        issues.append(f"Output directory is not writable: {output}")

    if not issues:
        click.echo("✓ Environment check passed!")
    else:
        click.echo("✗ Environment check failed:")
        for issue in issues:
            click.echo(f"  - {issue}")
        click.echo()
        click.echo("Installation suggestion: pip install monoflow")
        sys.exit(1)


@main.command()
@click.option(
    "--counts",
    type=click.Path(exists=True),
    help="featureCounts table (overrides counts_file in the configuration)",
)
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.option(
    "--steps",
    help="Comma-separated subset of steps: load,differential_analysis,exploration,annotation,visualization",
)
@click.pass_context
def run(ctx, counts, output, steps):
    """Run the complete MonoFlow analysis pipeline"""

    cli_ctx = ctx.obj
    config = cli_ctx.get_config(output)

    if not (counts or config.counts_file):
        _fail(
            "Error: No counts file. Use --counts or set counts_file in the "
            "configuration ('monoflow init-config')"
        )

    step_list = [s.strip() for s in steps.split(",")] if steps else None

    try:
        analysis = MonoFlowAnalysis(
            config=config, log_level=cli_ctx.log_level, configure_logging=False
        )

        click.echo("Starting MonoFlow analysis pipeline...")
        results = analysis.run_full_pipeline(counts_file=counts, steps=step_list)
    except Exception as e:
        _fail(f"Pipeline execution failed: {e}", cli_ctx)

    execution_times = analysis.get_execution_times()
    click.echo(f"Analysis completed. Results saved to: {analysis.output_dir}")
    click.echo(f"Total execution time: {execution_times.get('total', 0):.2f} seconds")

    for step in results:
        click.echo(f"  ✓ {step} ({execution_times.get(step, 0):.2f}s)")

    result = analysis.differential_result
    if result is not None:
        click.echo(
            f"{result.comparison_name}: {result.n_significant} significant genes "
            f"({result.n_up_regulated} up, {result.n_down_regulated} down)"
        )


@main.command()
@click.argument("counts_file", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def load(ctx, counts_file, output):
    """Load a featureCounts table and label samples by condition"""

    cli_ctx = ctx.obj
    config = cli_ctx.get_config(output)

    try:
        analysis = MonoFlowAnalysis(config, configure_logging=False)
        loaded = analysis.run_load(counts_file)
    except Exception as e:
        _fail(f"Loading counts failed: {e}", cli_ctx)

    counts = loaded["counts"]
    metadata = loaded["metadata"]
    condition_column = config.condition_config.column

    click.echo(f"Loaded {counts.shape[0]} genes x {counts.shape[1]} samples")
    for label, n in metadata[condition_column].value_counts().sort_index().items():
        click.echo(f"  {label}: {n} samples")
    for name, path in loaded["files"].items():
        click.echo(f"  {name}: {path}")


@main.command()
@click.option(
    "--counts",
    type=click.Path(exists=True),
    required=True,
    help="featureCounts table or exported count matrix",
)
@click.option("--output", "-o", type=click.Path(), help="Output directory")
@click.pass_context
def differential(ctx, counts, output):
    """Run differential analysis"""

    from .counts import build_sample_metadata, load_count_matrix

    cli_ctx = ctx.obj
    config = cli_ctx.get_config(output)

    try:
        analysis = MonoFlowAnalysis(config, configure_logging=False)
        analysis.counts = load_count_matrix(counts, require_annotation=False)
        analysis.metadata = build_sample_metadata(
            analysis.counts.columns, config.condition_config
        )

        comparison = config.differential["comparison"]
        click.echo(
            f"Running differential analysis: {comparison['treatment']} vs {comparison['control']}"
        )
        result = analysis.run_differential_analysis()
    except Exception as e:
        _fail(f"Differential analysis failed: {e}", cli_ctx)

    click.echo("Differential analysis completed:")
    click.echo(f"  Genes tested: {result.n_tested}")
    click.echo(
        f"  Significant: {result.n_significant} "
        f"({result.n_up_regulated} up, {result.n_down_regulated} down)"
    )
    click.echo(f"  Results: {result.output_files.get('results')}")


@main.command()
@click.argument("results_file", type=click.Path(exists=True))
@click.option(
    "--lookup",
    type=click.Path(exists=True),
    help="Local Ensembl id to symbol table (skips BioMart)",
)
@click.option("--output", "-o", type=click.Path(), help="Annotated output file")
@click.pass_context
def annotate(ctx, results_file, lookup, output):
    """Add gene symbols to a differential expression results table"""

    from .genomics import SymbolLookup

    cli_ctx = ctx.obj
    config = cli_ctx.get_config()
    if lookup:
        config.annotation["lookup_file"] = str(lookup)

    results_path = Path(results_file)
    output_path = (
        Path(output)
        if output
        else results_path.with_name(f"{results_path.stem}_annotated.tsv")
    )

    try:
        results = pd.read_csv(results_path, sep="\t", index_col=0)
        annotated = SymbolLookup(config).annotate(results)
    except Exception as e:
        _fail(f"Annotation failed: {e}", cli_ctx)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    annotated.to_csv(output_path, sep="\t", index_label=results.index.name or "gene_id")

    n_symbols = int(annotated["gene_symbol"].notna().sum())
    click.echo(f"Annotated {n_symbols}/{len(annotated)} genes: {output_path}")


if __name__ == "__main__":
    main()
