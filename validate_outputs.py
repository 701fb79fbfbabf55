import json
from pathlib import Path

REQUIRED_SECTIONS = ['run_meta', 'dataset', 'single_model', 'search', 'leaderboard', 'leader', 'explanations']


def validate_metrics(output_dir):
    """Check that a run directory holds a complete ``metrics.json``.

    Returns the list of problems found (empty when the run is complete).
    """
    metrics_file = Path(output_dir) / "metrics.json"
    if not metrics_file.exists():
        print("✗ metrics.json not found")
        return ["metrics.json not found"]
    with open(metrics_file) as f:
        metrics = json.load(f)

    problems = [f"missing section {k!r}" for k in REQUIRED_SECTIONS if k not in metrics]
    leader_metrics = metrics.get('leader', {}).get('test_metrics', {})
    rmse = leader_metrics.get('rmse')
    if rmse is None or not rmse >= 0:
        problems.append("leader test rmse missing or negative")
    max_features = metrics.get('run_meta', {}).get('config', {}).get('max_explained_features')
    for rows in metrics.get('explanations', []):
        if max_features is not None and len(rows) > max_features:
            problems.append(f"explanation has {len(rows)} rows, cap is {max_features}")

    if not problems:
        print("✓ All required metrics present")
    else:
        print(f"✗ Problems: {problems}")
    return problems

# Example usage: validate_metrics('05_outputs/boston/20260101-120000')
