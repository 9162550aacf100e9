"""
powerpca: PCA from a table file.

    powerpca data.parquet                                   All numeric columns
    powerpca data.csv --columns a b c                       Selected columns
    powerpca data.csv --output scores.parquet --summary variance.csv
    powerpca data.csv --config solver.yaml --max-iter 500   YAML config + override

Stages: table → numeric matrix → z-score → covariance → decompose →
project → variance summary.
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional

import polars as pl

from powerpca.config import SolverConfig, load_config
from powerpca.flatten import projected_frame, variance_summary
from powerpca.pca import compute_pca

logger = logging.getLogger(__name__)


def read_table(path: str) -> pl.DataFrame:
    """Read CSV or parquet by extension."""
    suffix = Path(path).suffix.lower()
    if suffix == '.parquet':
        return pl.read_parquet(path)
    if suffix in ('.csv', '.txt'):
        return pl.read_csv(path)
    raise ValueError(f"Unsupported input format '{suffix}' (expected .csv or .parquet)")


def write_table(df: pl.DataFrame, path: str) -> None:
    """Write CSV or parquet by extension."""
    suffix = Path(path).suffix.lower()
    if suffix == '.parquet':
        df.write_parquet(path)
    elif suffix == '.csv':
        df.write_csv(path)
    else:
        raise ValueError(f"Unsupported output format '{suffix}' (expected .csv or .parquet)")


def select_columns(df: pl.DataFrame, columns: Optional[List[str]] = None) -> List[str]:
    """Requested columns (must exist) or every numeric column."""
    if columns:
        missing = [c for c in columns if c not in df.columns]
        if missing:
            raise ValueError(f"Columns not found: {missing}. Available: {df.columns}")
        return list(columns)
    return [name for name, dtype in df.schema.items() if dtype.is_numeric()]


def run(
    input_path: str,
    columns: Optional[List[str]] = None,
    standardize: bool = True,
    config: Optional[SolverConfig] = None,
    max_components: Optional[int] = None,
    output_path: Optional[str] = None,
    summary_path: Optional[str] = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Run PCA on a table file.

    Args:
        input_path: CSV or parquet file, one observation per row.
        columns: Feature columns. Default: all numeric columns.
        standardize: z-score columns first (off if already normalized).
        config: Solver configuration.
        max_components: Keep at most this many components.
        output_path: Where to write projected data (PC1..PCk).
        summary_path: Where to write the variance summary.
        verbose: Print the summary.

    Returns:
        compute_pca() result dict, plus 'columns'.
    """
    df = read_table(input_path)
    feature_columns = select_columns(df, columns)
    if not feature_columns:
        raise ValueError(f"No numeric columns in {input_path}")

    matrix = df.select([pl.col(c).cast(pl.Float64) for c in feature_columns]).to_numpy()
    logger.info(f"Loaded {matrix.shape[0]:,} rows x {matrix.shape[1]} columns from {input_path}")

    result = compute_pca(
        matrix,
        standardize_columns=standardize,
        max_components=max_components,
        config=config,
    )
    result['columns'] = feature_columns

    summary = variance_summary(result)

    if verbose:
        print("=" * 60)
        print("PCA (power iteration with deflation)")
        print("=" * 60)
        print(f"Rows used:   {result['n_rows']:,}")
        print(f"Features:    {result['n_features']}")
        print(f"Components:  {result['n_components']} "
              f"({result['n_discarded']} null-space directions discarded)")
        if result['n_unconverged']:
            print(f"Unconverged: {result['n_unconverged']} (best-effort eigenvectors used)")
        print()
        for row in summary.iter_rows(named=True):
            print(f"  {row['component']:>5}  eigenvalue={row['eigenvalue']:.6g}  "
                  f"explained={row['explained_ratio']:.2%}  "
                  f"cumulative={row['cumulative_variance']:.2%}")

    if output_path and result['projected'] is not None:
        write_table(projected_frame(result['projected']), output_path)
        logger.info(f"Saved projected data: {output_path}")

    if summary_path:
        write_table(summary, summary_path)
        logger.info(f"Saved variance summary: {summary_path}")

    return result


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='powerpca',
        description='PCA via power iteration with deflation.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('input', help='Path to a .csv or .parquet table')
    parser.add_argument('--columns', nargs='+', help='Feature columns (default: all numeric)')
    parser.add_argument('--no-standardize', action='store_true',
                        help='Input columns are already centered and scaled')
    parser.add_argument('--config', help='YAML solver configuration')
    parser.add_argument('--tol', type=float, help='Convergence tolerance (default 1e-5)')
    parser.add_argument('--max-iter', type=int, help='Power iteration cap (default 100)')
    parser.add_argument('--threshold', type=float, help='Null-space discard threshold (default 1e-5)')
    parser.add_argument('--workers', type=int, help='Threads for matrix-vector products')
    parser.add_argument('--components', type=int, help='Keep at most this many components')
    parser.add_argument('--output', '-o', help='Write projected data (.csv/.parquet)')
    parser.add_argument('--summary', '-s', help='Write variance summary (.csv/.parquet)')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress output')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else (logging.WARNING if args.quiet else logging.INFO)
    logging.basicConfig(level=level, format='%(levelname)s %(name)s: %(message)s')

    input_path = Path(args.input).expanduser()
    if not input_path.exists():
        print(f"Error: {input_path} does not exist")
        return 1
    config_path = Path(args.config).expanduser() if args.config else None
    if config_path is not None and not config_path.exists():
        print(f"Error: {config_path} does not exist")
        return 1

    try:
        config = load_config(config_path) if config_path is not None else SolverConfig()
        config = config.replace(
            tol=args.tol,
            max_iter=args.max_iter,
            discard_threshold=args.threshold,
            n_workers=args.workers,
        )

        run(
            str(input_path),
            columns=args.columns,
            standardize=not args.no_standardize,
            config=config,
            max_components=args.components,
            output_path=args.output,
            summary_path=args.summary,
            verbose=not args.quiet,
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
