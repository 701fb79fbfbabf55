import os
import py_compile
import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SKIP_DIRS = {'.git', '.venv', 'venv', '05_outputs', '__pycache__', 'build'}


def _collect_sources():
    found = []
    for root, dirs, files in os.walk(PROJECT_ROOT):
        dirs[:] = [d for d in dirs if d not in SKIP_DIRS and not d.startswith('env-')]
        found.extend(os.path.join(root, f) for f in files if f.endswith('.py'))
    return sorted(found)


# Collect every project source file (tests included)
python_files = _collect_sources()


def test_sources_found():
    names = {os.path.relpath(p, PROJECT_ROOT) for p in python_files}
    assert 'orchestrator.py' in names
    assert os.path.join('components', 'explainer.py') in names


@pytest.mark.parametrize("path", python_files)
def test_python_file_compiles(path):
    """Ensure all Python files are syntactically valid."""
    py_compile.compile(path, doraise=True)
