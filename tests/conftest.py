import pytest

from fix_bot.agents.code_validator import CodeValidator
from fix_bot.config import FixBotConfig
from fix_bot.github.exceptions import GitHubAPIError
from fix_bot.models import FileChange
from fix_bot.utils.cleanup_scheduler import CleanupScheduler


class FakeRepo:
    """In-memory repository implementing the content and tree accessors."""

    def __init__(self, files: dict[str, str] | None = None, tree_error: Exception | None = None):
        self.files = dict(files or {})
        self.tree_error = tree_error
        self.content_calls: list[str] = []

    def get_file_content(self, owner, repo, path, token=None, ref=None):
        self.content_calls.append(path)
        if path not in self.files:
            raise GitHubAPIError("Not Found", 404)
        return self.files[path]

    def list_paths(self, owner, repo, token=None):
        if self.tree_error is not None:
            raise self.tree_error
        return list(self.files)


@pytest.fixture
def fake_repo():
    return FakeRepo(
        {
            "src/components/LoginForm.tsx": "export function LoginForm() {\n  return null;\n}\n",
            "src/utils/auth.ts": "export const login = () => true;\n",
            "README.md": "# Demo\n",
            "package.json": '{"name": "demo"}\n',
            "node_modules/react/index.js": "module.exports = {};\n",
        }
    )


@pytest.fixture
def fix_config(tmp_path):
    return FixBotConfig(temp_root=str(tmp_path / "jobs"))


@pytest.fixture
def scheduler():
    sched = CleanupScheduler(autostart=False)
    yield sched
    sched.shutdown()


@pytest.fixture
def validator(fix_config, scheduler):
    return CodeValidator(fix_config, scheduler)


@pytest.fixture
def valid_python_change():
    return FileChange(path="pkg/app.py", content="def add(a, b):\n    return a + b\n")


@pytest.fixture
def broken_python_change():
    return FileChange(path="pkg/app.py", content="def add(a, b)\n    return a + b\n")


@pytest.fixture
def make_repo():
    """Factory for FakeRepo instances with custom files."""
    return FakeRepo
