#!/usr/bin/env python3
"""
Quick script to explore fused game events and highlight clips

Usage:
    python explore_events.py [run_directory]
    python explore_events.py runs/game1
"""

import json
import sys
from pathlib import Path

import pandas as pd


def load_events(run_dir: Path) -> pd.DataFrame | None:
    """Load events from whichever export format the run used."""
    for suffix, reader in (
        ("jsonl", lambda p: pd.read_json(p, lines=True)),
        ("csv", pd.read_csv),
        ("parquet", pd.read_parquet),
    ):
        path = run_dir / f"events.{suffix}"
        if path.exists():
            return reader(path)
    return None


def main():
    # Get run directory from args or use default
    if len(sys.argv) > 1:
        run_dir = Path(sys.argv[1])
    else:
        run_dir = Path("runs")

    df = load_events(run_dir)
    if df is None:
        print(f"Error: no events.jsonl/csv/parquet in {run_dir}")
        print("Run hoopfusion first")
        return 1

    print("=" * 60)
    print("EVENT FUSION ANALYSIS")
    print("=" * 60)

    print(f"\nRun directory: {run_dir}")
    print(f"Total events: {len(df)}")

    if df.empty:
        return 0

    # Event type breakdown
    print("\n--- Events by Type and Team ---")
    print(df.pivot_table(index="type", columns="team_id", values="id", aggfunc="count", fill_value=0))

    print("\n--- Events by Source ---")
    print(df.groupby("source").size())

    # Confidence statistics
    print("\n--- Confidence Statistics ---")
    print(df.groupby("type")["confidence"].describe())

    # Score timeline
    scores = df[df["type"] == "score"].sort_values("timestamp")
    if not scores.empty:
        print(f"\n--- Score Timeline ({len(scores)}) ---")
        totals = {"teamA": 0, "teamB": 0}
        for _, score in scores.iterrows():
            if score["team_id"] in totals:
                totals[score["team_id"]] += int(score["score_delta"])
            time_str = f"{score['timestamp']:.1f}s ({score['timestamp']/60:.1f}min)"
            print(
                f"  {time_str:15s} {score['team_id']:8s} +{int(score['score_delta'])} "
                f"({score['shot_type']}) -> {totals['teamA']}-{totals['teamB']} "
                f"confidence={score['confidence']:.2f} source={score['source']}"
            )

    # Highlights
    highlights_path = run_dir / "highlights.json"
    if highlights_path.exists():
        with open(highlights_path, "r") as f:
            clips = json.load(f)

        print(f"\n--- Highlight Clips ({len(clips)}) ---")
        for clip in clips:
            print(
                f"  {clip['start_time']:7.1f}s - {clip['end_time']:7.1f}s "
                f"({clip['duration']:.1f}s) {clip['description']}"
            )

    print("\n" + "=" * 60)
    print("RECOMMENDATIONS")
    print("=" * 60)

    fallback = df[df["source"] == "fallback"]
    if len(fallback) == len(df):
        print("\n⚠ Only fallback events were produced")
        print("  Possible reasons:")
        print("    - No ball or pose detections in the bundle")
        print("    - Ball detection timed out")
        print("  Check run_manifest.json for degraded steps")

    low_conf = df[df["confidence"] < 0.5]
    if len(low_conf) > len(df) * 0.5:
        print("\n⚠ Many low-confidence events detected")
        print(f"  {len(low_conf)}/{len(df)} events have confidence < 0.5")
        print("  Consider filtering or manual review")

    # Event timeline for visualization
    output_path = run_dir / "event_timeline.csv"
    df[["type", "team_id", "timestamp", "confidence", "source"]].sort_values("timestamp").to_csv(
        output_path, index=False
    )
    print(f"\n✓ Exported event timeline to: {output_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
