"""Example usage of the crosscheck comparison and readiness engine."""

import json
from crosscheck import (
    ComparisonEngine,
    EngineConfig,
    CategoryScore,
    ReadinessScorer,
    suggest_renames,
)

# Legacy API response (V1 system)
v1_response = {
    "id": 1042,
    "user_name": "ann",
    "status": "active",
    "score": 12,
    "closed_at": None,
    "updated_at": "2025-02-02T11:00:00Z",  # Will be ignored
    "tags": [{"label": "vip"}],
}

# Migrated API response (V2 system)
v2_response = {
    "id": 1042,
    "userName": "ann",  # Renamed field
    "status": "ACTIVE",  # Different value
    "score": "12",  # Different type
    "closed_at": "2025-03-01T00:00:00Z",  # Was null
    "updated_at": "2025-02-02T11:00:05Z",
    "tags": [],
}


def main():
    print("=" * 60)
    print("crosscheck Comparison Engine - Example")
    print("=" * 60)

    engine = ComparisonEngine(EngineConfig(ignore_paths=["$..updated_at"]))
    result = engine.compare(v1_response, v2_response, rename_map={"user_name": "userName"})

    if hasattr(result, 'structures_match'):
        print(f"\nStructures match: {result.structures_match}")
        print(f"Similarity: {result.similarity_score}%")

        print(f"\nSummary:")
        print(f"  Matches: {result.match_count}")
        print(f"  Modified: {result.modified_count}")
        print(f"  Added: {result.added_count}")
        print(f"  Removed: {result.removed_count}")
        print(f"  Type mismatches: {result.type_mismatch_count}")

        print(f"\nDifferences:")
        for diff in result.differences():
            print(f"  - [{diff.status.value}] {diff.field}")
            print(f"    V1: {diff.v1_value!r}")
            print(f"    V2: {diff.v2_value!r}")
            if diff.v2_path and diff.v2_path != diff.field:
                print(f"    Renamed to: {diff.v2_path}")

        print("\n" + "-" * 60)
        print("Full JSON Report:")
        print(json.dumps(result.to_dict(), indent=2))

    else:
        print(f"\nError: {result.error['code']}")
        print(f"Message: {result.error['message']}")
        print(f"Details: {result.error.get('details', {})}")


def example_rename_suggestions():
    """Example that pairs unmatched fields by name."""
    print("\n" + "=" * 60)
    print("Example with Rename Suggestions")
    print("=" * 60)

    suggestions = suggest_renames(["user_name", "sync_status"], ["userName", "status_v2"])
    for path, match in suggestions.matches.items():
        accepted = "accepted" if path in suggestions.accepted else "needs review"
        print(f"  {path} -> {match.matched_name} [{match.confidence.value}, {accepted}]")
        print(f"    {match.reason}")


def example_readiness():
    """Example scoring migration readiness."""
    print("\n" + "=" * 60)
    print("Example with Readiness Scoring")
    print("=" * 60)

    scorer = ReadinessScorer()
    report = scorer.score([
        CategoryScore("tables", validated=50, total=50),
        CategoryScore("functions", validated=45, total=50),
        CategoryScore("endpoints", validated=40, total=50),
        CategoryScore("references", validated=20, total=20),
    ])

    print(f"\nOverall: {report.overall}% ({report.status.value})")
    for name, rate in report.per_category.items():
        print(f"  {name}: {rate:.1f}% (weight {report.weights[name]})")
    if report.blocking:
        print(f"Blocking: {', '.join(report.blocking)}")


if __name__ == "__main__":
    main()
    example_rename_suggestions()
    example_readiness()
