"""Tests for API layer guardrails."""

import ast
from pathlib import Path

API_DIR = Path(__file__).resolve().parents[1] / "src" / "pagestream" / "api"

FORBIDDEN_MODULES = ["sqlalchemy", "pagestream.database", "..database"]


def _imported_modules(tree):
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            module = "." * node.level + (node.module or "")
            yield node.lineno, module


def test_api_layer_has_no_database_imports():
    """API modules work through streams and records, never the SQL layer directly."""
    violations = []
    for api_file in sorted(API_DIR.glob("*.py")):
        source = api_file.read_text(encoding="utf-8")
        tree = ast.parse(source, filename=str(api_file))
        for lineno, module in _imported_modules(tree):
            if any(module.startswith(forbidden) for forbidden in FORBIDDEN_MODULES):
                violations.append(f"{api_file.name}:{lineno} imports '{module}'")

    assert not violations, "API layer imports the storage layer:\n" + "\n".join(violations)


def test_api_layer_has_no_session_calls():
    for api_file in sorted(API_DIR.glob("*.py")):
        source = api_file.read_text(encoding="utf-8")
        for pattern in ("session.query(", "session.add(", "session.commit(", ".execute("):
            assert pattern not in source, f"{api_file.name} calls {pattern}"
