"""Isolated execution of candidate programs.

Two gates run a candidate before it may replace the running program:

- ``run_isolated`` executes it as ``__main__`` in a separate interpreter with
  ``AD_SANDBOX_TEST=1``; a well-formed program performs its self-check and
  exits 0.
- ``evaluate_restricted`` executes it as a plain module (``__name__`` is
  ``__candidate__``) with only allow-listed builtins and importable modules.
  It is hosted in a child interpreter because CPython cannot interrupt a
  runaway thread, so the timeout would otherwise be unenforceable.

Both kill the whole process group on timeout or cancellation and leave
nothing on disk.

Neither gate is a security boundary. The restricted evaluation screens
out candidates that reach for modules the program has no business using,
but ``asyncio`` and ``autodidact`` must stay importable for the program
itself to load, and through them a candidate can still spawn processes
and touch the filesystem. Only run candidates from a model you trust as
much as the host account.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import signal
import sys
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from autodidact.config import get_eval_timeout, get_sandbox_timeout

logger = logging.getLogger(__name__)

# Everything the running program imports, plus pure helpers; not a capability filter.
ALLOWED_MODULES: tuple[str, ...] = (
    "__future__",
    "autodidact",
    "aiosqlite",
    "asyncio",
    "collections",
    "contextlib",
    "dataclasses",
    "datetime",
    "enum",
    "fastmcp",
    "functools",
    "itertools",
    "json",
    "logging",
    "math",
    "pydantic",
    "re",
    "typing",
)

ALLOWED_BUILTINS: tuple[str, ...] = (
    "__build_class__",
    "abs",
    "all",
    "any",
    "bool",
    "bytes",
    "callable",
    "classmethod",
    "dict",
    "divmod",
    "enumerate",
    "filter",
    "float",
    "frozenset",
    "hash",
    "int",
    "isinstance",
    "issubclass",
    "iter",
    "len",
    "list",
    "map",
    "max",
    "min",
    "next",
    "object",
    "print",
    "property",
    "range",
    "repr",
    "reversed",
    "round",
    "set",
    "slice",
    "sorted",
    "staticmethod",
    "str",
    "sum",
    "super",
    "tuple",
    "type",
    "zip",
    "ArithmeticError",
    "AttributeError",
    "Exception",
    "ImportError",
    "IndexError",
    "KeyError",
    "LookupError",
    "NotImplementedError",
    "RuntimeError",
    "StopAsyncIteration",
    "StopIteration",
    "TimeoutError",
    "TypeError",
    "ValueError",
)

# Runs inside the child interpreter; reads {"code", "modules", "builtins"} from stdin.
_RESTRICTED_RUNNER = """\
import builtins, json, sys
job = json.load(sys.stdin)
allowed = frozenset(job["modules"])
def guarded_import(name, globals=None, locals=None, fromlist=(), level=0):
    if level != 0 or name.partition(".")[0] not in allowed:
        raise ImportError(f"import of {name!r} is not allowed")
    return builtins.__import__(name, globals, locals, fromlist, level)
safe = {n: getattr(builtins, n) for n in job["builtins"] if hasattr(builtins, n)}
safe["__import__"] = guarded_import
namespace = {"__builtins__": safe, "__name__": "__candidate__"}
exec(compile(job["code"], "<candidate>", "exec"), namespace)
"""


@dataclass
class SandboxResult:
    """Exit status and captured output of one sandboxed execution."""

    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        """Exited 0 within the time limit."""
        return not self.timed_out and self.returncode == 0

    def describe(self) -> str:
        """One-line failure description for logs and results."""
        if self.timed_out:
            return "timed out"
        tail = self.stderr.strip().splitlines()[-1:] or ["no output"]
        return f"exit {self.returncode}: {tail[0]}"


async def _run(
    argv: Sequence[str],
    *,
    timeout: float,
    stdin: bytes | None = None,
    env: dict[str, str] | None = None,
    cwd: Path | None = None,
) -> SandboxResult:
    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=env,
        cwd=cwd,
        start_new_session=True,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(stdin), timeout=timeout)
    except TimeoutError:
        _kill_group(proc)
        await proc.wait()
        return SandboxResult(None, timed_out=True)
    except BaseException:
        _kill_group(proc)
        await proc.wait()
        raise
    return SandboxResult(proc.returncode, _decode(stdout), _decode(stderr))


def _kill_group(proc: asyncio.subprocess.Process) -> None:
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass


def _decode(data: bytes | None) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


async def run_isolated(code: str, timeout: float) -> SandboxResult:
    """Run a program as ``__main__`` in a fresh interpreter and scratch directory."""
    workdir = Path(tempfile.mkdtemp(prefix="autodidact-candidate-"))
    try:
        script = workdir / "candidate.py"
        script.write_text(code, encoding="utf-8")
        env = {**os.environ, "AD_SANDBOX_TEST": "1"}
        return await _run(
            [sys.executable, "-I", str(script)], timeout=timeout, env=env, cwd=workdir
        )
    finally:
        shutil.rmtree(workdir, ignore_errors=True)


async def evaluate_restricted(
    code: str,
    timeout: float,
    *,
    allowed_modules: Sequence[str] = ALLOWED_MODULES,
    allowed_builtins: Sequence[str] = ALLOWED_BUILTINS,
) -> SandboxResult:
    """Execute a program as a module with only allow-listed capabilities."""
    payload = json.dumps(
        {"code": code, "modules": list(allowed_modules), "builtins": list(allowed_builtins)}
    ).encode("utf-8")
    return await _run(
        [sys.executable, "-I", "-c", _RESTRICTED_RUNNER], timeout=timeout, stdin=payload
    )


class Sandbox:
    """Both execution gates with their configured time limits."""

    def __init__(
        self,
        *,
        test_timeout: float | None = None,
        eval_timeout: float | None = None,
        allowed_modules: Sequence[str] = ALLOWED_MODULES,
        allowed_builtins: Sequence[str] = ALLOWED_BUILTINS,
    ) -> None:
        """Initialize with time limits; defaults come from configuration."""
        self.test_timeout = test_timeout if test_timeout is not None else get_sandbox_timeout()
        self.eval_timeout = eval_timeout if eval_timeout is not None else get_eval_timeout()
        self.allowed_modules = tuple(allowed_modules)
        self.allowed_builtins = tuple(allowed_builtins)

    async def run_isolated(self, code: str) -> SandboxResult:
        """Self-check run as an independent process."""
        result = await run_isolated(code, self.test_timeout)
        logger.debug("Isolated run finished: %s", "ok" if result.ok else result.describe())
        return result

    async def evaluate_restricted(self, code: str) -> SandboxResult:
        """Module-level execution with allow-listed builtins and imports."""
        result = await evaluate_restricted(
            code,
            self.eval_timeout,
            allowed_modules=self.allowed_modules,
            allowed_builtins=self.allowed_builtins,
        )
        logger.debug("Restricted evaluation finished: %s", "ok" if result.ok else result.describe())
        return result
