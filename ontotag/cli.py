"""CLI for ontotag - hierarchical dictionary tagging for evidence synthesis."""

import json
import os
import sys
from pathlib import Path
from typing import Annotated, Optional

from dotenv import load_dotenv
import typer

# Load .env file if present
load_dotenv()

import pandas as pd

from ontotag.classify import evaluate_classifier, predict_labels, train_classifier
from ontotag.corpus import (
    DEFAULT_TEXT_FIELDS,
    load_config,
    load_corpus,
    load_table,
    prepare_documents,
    write_table,
)
from ontotag.dictionary import create_dictionary
from ontotag.levels import ALL_LEVELS, extract_levels, level_counts, levels_to_frame
from ontotag.models import TaggingConfig
from ontotag.resolve import fill_rows
from ontotag.tagger import tag_stats, tag_strictly
from ontotag.topics import discover_topics

app = typer.Typer(
    name="ontotag",
    help="Tag bibliographic records with terms from a hierarchical ontology.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

PATH_SEPARATOR = " > "
MULTI_PATH_SEPARATOR = " | "


def _require(path: Path, what: str) -> None:
    if not path.exists():
        typer.echo(f"Error: {what} not found: {path}", err=True)
        raise typer.Exit(1)


def _load_scheme(path: Path, no_header: bool, verbose: bool) -> dict:
    """Resolve and compile a sparse hierarchical table."""
    try:
        table = fill_rows(load_table(path, no_header=no_header))
        tree = create_dictionary(table, return_dictionary=True)
    except Exception as e:
        typer.echo(f"Error loading scheme {path}: {e}", err=True)
        raise typer.Exit(1)

    if verbose:
        typer.echo(f"Loaded scheme with {len(table)} rows, {len(tree)} top-level terms", err=True)
    return tree


def _format_result(result) -> str:
    if not result:
        return ""
    if isinstance(result[0], str):
        return PATH_SEPARATOR.join(result)
    return MULTI_PATH_SEPARATOR.join(PATH_SEPARATOR.join(path) for path in result)


@app.command()
def resolve(
    table: Annotated[
        Path,
        typer.Argument(help="Path to sparse hierarchical table (CSV/Excel)"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output CSV file (default: stdout)"),
    ] = None,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", help="Table has no header row"),
    ] = False,
):
    """Fill in missing ancestor values so every row holds its full path."""
    _require(table, "Table")

    try:
        resolved = fill_rows(load_table(table, no_header=no_header))
    except Exception as e:
        typer.echo(f"Error resolving table: {e}", err=True)
        raise typer.Exit(1)

    columns = None
    if not no_header:
        columns = [str(c) for c in load_corpus(table).columns]

    write_table(resolved, output or sys.stdout, columns=columns)
    if output:
        typer.echo(f"Resolved {len(resolved)} rows to: {output}")


@app.command(name="compile")
def compile_cmd(
    table: Annotated[
        Path,
        typer.Argument(help="Path to hierarchical table (CSV/Excel)"),
    ],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output JSON file (default: stdout)"),
    ] = None,
    flat: Annotated[
        bool,
        typer.Option("--flat", help="Write flat dictionary entries instead of the nested tree"),
    ] = False,
    no_header: Annotated[
        bool,
        typer.Option("--no-header", help="Table has no header row"),
    ] = False,
):
    """Compile a hierarchical table into a nested term dictionary (JSON)."""
    _require(table, "Table")

    try:
        resolved = fill_rows(load_table(table, no_header=no_header))
        compiled = create_dictionary(resolved, return_dictionary=not flat)
    except Exception as e:
        typer.echo(f"Error compiling dictionary: {e}", err=True)
        raise typer.Exit(1)

    if flat:
        data = [entry.model_dump() for entry in compiled]
    else:
        data = compiled

    text = json.dumps(data, indent=2)
    if output:
        output.write_text(text)
        typer.echo(f"Dictionary written to: {output}")
    else:
        typer.echo(text)


@app.command()
def tag(
    corpus: Annotated[
        Path,
        typer.Argument(help="Path to corpus CSV/Excel (one record per row)"),
    ],
    scheme: Annotated[
        Optional[Path],
        typer.Option("--scheme", "-s", help="Hierarchical table to tag with"),
    ] = None,
    config: Annotated[
        Optional[Path],
        typer.Option("--config", help="Tagging config YAML (default: $ONTOTAG_CONFIG)"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output CSV file (default: stdout)"),
    ] = None,
    allow_multiple: Annotated[
        Optional[bool],
        typer.Option("--allow-multiple/--single", help="One path per matching top-level branch"),
    ] = None,
    match: Annotated[
        Optional[str],
        typer.Option("--match", "-m", help="Term matching: substring or word"),
    ] = None,
    require_ancestors: Annotated[
        Optional[bool],
        typer.Option(
            "--require-ancestors/--any-descendant",
            help="Only search a term's children when the term itself occurs",
        ),
    ] = None,
    workers: Annotated[
        Optional[int],
        typer.Option("--workers", "-w", help="Parallel worker processes (default: $ONTOTAG_WORKERS or 1)"),
    ] = None,
    levels: Annotated[
        Optional[list[int]],
        typer.Option("--level", "-l", help="Depth to export (repeatable; default: all populated levels)"),
    ] = None,
    text_fields: Annotated[
        Optional[list[str]],
        typer.Option("--field", "-f", help="Text field to tag (repeatable)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show progress info"),
    ] = False,
):
    """Tag every record of a corpus with its deepest matching ontology path.

    Writes the corpus back with a "tags" column and one level_N column per
    exported depth.
    """
    _require(corpus, "Corpus file")

    config = config or (Path(os.environ["ONTOTAG_CONFIG"]) if os.environ.get("ONTOTAG_CONFIG") else None)
    if config:
        _require(config, "Config file")
        try:
            settings = load_config(config)
        except Exception as e:
            typer.echo(f"Error parsing config: {e}", err=True)
            raise typer.Exit(1)
    elif scheme:
        settings = TaggingConfig(scheme=str(scheme))
    else:
        typer.echo("Error: Provide --scheme or --config", err=True)
        raise typer.Exit(1)

    # Command-line flags override the config file
    if scheme:
        settings.scheme = str(scheme)
    if allow_multiple is not None:
        settings.allow_multiple = allow_multiple
    if match:
        settings.match = match
    if require_ancestors is not None:
        settings.require_ancestors = require_ancestors
    if workers is not None:
        settings.workers = workers
    elif "workers" not in settings.model_fields_set and os.environ.get("ONTOTAG_WORKERS"):
        settings.workers = int(os.environ["ONTOTAG_WORKERS"])
    if levels:
        settings.levels = levels
    if text_fields:
        settings.text_fields = text_fields

    scheme_path = Path(settings.scheme)
    _require(scheme_path, "Scheme")
    tree = _load_scheme(scheme_path, settings.no_header, verbose)

    records = load_corpus(corpus)
    docs = prepare_documents(records, settings.text_fields)

    if verbose:
        typer.echo(f"Corpus: {corpus} ({len(docs)} records)", err=True)

    # Library progress prints to stdout, which carries the CSV when no -o is given
    try:
        results = tag_strictly(
            docs,
            tree,
            allow_multiple=settings.allow_multiple,
            synonyms=settings.synonyms,
            match=settings.match,
            require_ancestors=settings.require_ancestors,
            workers=settings.workers,
            verbose=verbose and output is not None,
        )
        level_vectors = extract_levels(
            results,
            n_levels=settings.levels if settings.levels else ALL_LEVELS,
            min_count=settings.min_count,
        )
    except Exception as e:
        typer.echo(f"Error tagging corpus: {e}", err=True)
        raise typer.Exit(1)

    tagged = records.copy()
    tagged["tags"] = [_format_result(result) for result in results]
    if level_vectors:
        tagged = pd.concat([tagged, levels_to_frame(level_vectors)], axis=1)

    if verbose:
        stats_data = tag_stats(results)
        typer.echo(f"Matched: {stats_data['matched']}, Unmatched: {stats_data['unmatched']}", err=True)

    tagged.to_csv(output or sys.stdout, index=False)
    if output:
        typer.echo(f"Tagged corpus written to: {output}")


@app.command()
def stats(
    tagged: Annotated[
        Path,
        typer.Argument(help="Path to tagged corpus CSV (from tag command)"),
    ],
    top: Annotated[
        int,
        typer.Option("--top", "-n", help="Terms shown per level"),
    ] = 10,
):
    """Show term frequencies per level of a tagged corpus."""
    _require(tagged, "Tagged corpus")

    frame = pd.read_csv(tagged, dtype=str)
    level_columns = sorted(
        (c for c in frame.columns if c.startswith("level_")),
        key=lambda c: int(c.split("_", 1)[1]),
    )
    if not level_columns:
        typer.echo(f"Error: No level_N columns in {tagged}", err=True)
        raise typer.Exit(1)

    vectors = {
        int(c.split("_", 1)[1]): [None if pd.isna(v) else v for v in frame[c]]
        for c in level_columns
    }

    typer.echo("ontotag Level Summary")
    typer.echo("=" * 40)
    typer.echo(f"Total records:     {len(frame)}")

    for depth, counts in level_counts(vectors).items():
        tagged_count = sum(count for _, count in counts)
        typer.echo(f"\nLevel {depth} ({tagged_count} tagged, {len(frame) - tagged_count} untagged):")
        for term, count in counts[:top]:
            typer.echo(f"  {count:6d}  {term}")
        if len(counts) > top:
            typer.echo(f"  ... and {len(counts) - top} more")


@app.command()
def classify(
    corpus: Annotated[
        Path,
        typer.Argument(help="Path to corpus CSV with a label column (e.g. from tag command)"),
    ],
    label_column: Annotated[
        str,
        typer.Option("--label", "-l", help="Column holding known labels"),
    ] = "level_1",
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output CSV file (default: stdout)"),
    ] = None,
    text_fields: Annotated[
        Optional[list[str]],
        typer.Option("--field", "-f", help="Text field to learn from (repeatable)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show progress info"),
    ] = False,
):
    """Train on labelled records and predict labels for the unlabelled ones."""
    _require(corpus, "Corpus file")

    records = load_corpus(corpus)
    if label_column not in records.columns:
        typer.echo(f"Error: Column {label_column!r} not found in {corpus}", err=True)
        raise typer.Exit(1)

    docs = prepare_documents(records, text_fields or DEFAULT_TEXT_FIELDS)
    labels = [None if pd.isna(v) else v for v in records[label_column]]

    try:
        model = train_classifier(docs, labels, verbose=verbose)
    except Exception as e:
        typer.echo(f"Error training classifier: {e}", err=True)
        raise typer.Exit(1)

    if verbose:
        report = evaluate_classifier(model, docs, labels)
        typer.echo(f"Training accuracy: {report.accuracy:.3f} on {report.n_documents} records")

    unlabelled = [i for i, label in enumerate(labels) if label is None]
    predictions = predict_labels(model, [docs[i] for i in unlabelled])

    predicted_column = [None] * len(records)
    for i, label in zip(unlabelled, predictions):
        predicted_column[i] = label
    records[f"predicted_{label_column}"] = predicted_column

    records.to_csv(output or sys.stdout, index=False)
    if output:
        typer.echo(f"Predicted {len(unlabelled)} labels, written to: {output}")


@app.command()
def topics(
    corpus: Annotated[
        Path,
        typer.Argument(help="Path to corpus CSV/Excel"),
    ],
    n_topics: Annotated[
        int,
        typer.Option("--topics", "-k", help="Number of topics"),
    ] = 5,
    n_terms: Annotated[
        int,
        typer.Option("--terms", "-t", help="Top terms shown per topic"),
    ] = 10,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Output JSON file with topics and assignments"),
    ] = None,
    text_fields: Annotated[
        Optional[list[str]],
        typer.Option("--field", "-f", help="Text field to model (repeatable)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show progress info"),
    ] = False,
):
    """Discover topics in an untagged corpus."""
    _require(corpus, "Corpus file")

    docs = prepare_documents(load_corpus(corpus), text_fields or DEFAULT_TEXT_FIELDS)

    try:
        result = discover_topics(docs, n_topics, n_terms=n_terms, verbose=verbose)
    except Exception as e:
        typer.echo(f"Error fitting topics: {e}", err=True)
        raise typer.Exit(1)

    for topic in result.topics:
        size = sum(1 for a in result.assignments if a == topic.id)
        typer.echo(f"Topic {topic.id} ({size} records): {', '.join(topic.terms)}")

    if output:
        output.write_text(json.dumps(result.model_dump(), indent=2))
        typer.echo(f"Topics written to: {output}")


if __name__ == "__main__":
    app()
