"""KataGo analysis engine, run once per game.

The engine is treated as a pure function from request text to response text:
the whole query is written to stdin, stdin is closed, and stdout is read until
the process exits. Anything with an ``analyze(request) -> str`` method can stand
in for it, which is how tests avoid a live process.
"""

import logging
import os
import shlex
import subprocess
from typing import List, Protocol

from katreview.common.config import EngineConfig
from katreview.core.errors import EngineError, EngineTimeoutError

logger = logging.getLogger(__name__)


class AnalysisBackend(Protocol):
    def analyze(self, request: str) -> str:
        """Returns the engine's stdout for one request."""
        ...


def _tail(text: str, lines: int = 10) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


class KataGoAnalysisProcess:
    """Runs ``katago analysis`` as a single-shot subprocess."""

    def __init__(self, config: EngineConfig):
        self.config = config

    @staticmethod
    def get_engine_path(exe: str) -> str:
        """Resolve the KataGo executable, searching PATH for a bare name.

        Raises:
            EngineError: If the executable cannot be found.
        """
        exepath = os.path.dirname(exe)
        if exepath:
            if not os.path.isfile(exe):
                raise EngineError(f"KataGo executable not found: {exe}", context={"katago": exe})
            return exe
        paths = os.getenv("PATH", ".").split(os.pathsep) + ["/opt/homebrew/bin/"]
        exe_with_paths = [os.path.join(path, exe) for path in paths if os.path.isfile(os.path.join(path, exe))]
        if not exe_with_paths:
            raise EngineError(f"KataGo executable {exe} not found in PATH", context={"katago": exe})
        return exe_with_paths[0]

    def build_command(self) -> List[str]:
        """Command line for the analysis engine.

        Raises:
            EngineError: If the executable, model or config file is missing.
        """
        if self.config.altcommand:
            return shlex.split(self.config.altcommand)

        for kind, path in (("model", self.config.model), ("config", self.config.config)):
            if not path or not os.path.isfile(path):
                raise EngineError(f"KataGo {kind} file not found: {path}", context={kind: path})
        exe = self.get_engine_path(self.config.katago or "katago")
        return [
            exe,
            "analysis",
            "-model",
            self.config.model,
            "-config",
            self.config.config,
            "-analysis-threads",
            str(self.config.analysis_threads),
        ]

    def analyze(self, request: str) -> str:
        """Send one request and return everything KataGo wrote to stdout.

        Raises:
            EngineTimeoutError: If KataGo runs longer than the configured timeout.
            EngineError: If KataGo cannot be started, fails, or writes non UTF-8 output.
        """
        command = self.build_command()
        logger.debug("Starting KataGo with %s", command)
        startupinfo = None
        if hasattr(subprocess, "STARTUPINFO"):
            startupinfo = subprocess.STARTUPINFO()
            startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW  # stop command box popups on win
        try:
            completed = subprocess.run(
                command,
                input=request.encode("utf-8"),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.config.timeout,
                startupinfo=startupinfo,
            )
        except subprocess.TimeoutExpired as e:
            raise EngineTimeoutError(
                f"KataGo did not finish within {self.config.timeout}s",
                context={"command": command, "timeout": self.config.timeout},
            ) from e
        except (FileNotFoundError, PermissionError, OSError) as e:
            raise EngineError(f"Starting KataGo failed: {e}", context={"command": command}) from e

        stderr = completed.stderr.decode("utf-8", errors="replace")
        for line in stderr.splitlines():
            logger.debug("[KataGo] %s", line)
        if completed.returncode != 0:
            raise EngineError(
                f"KataGo exited with code {completed.returncode}: {_tail(stderr)}",
                context={"command": command, "returncode": completed.returncode},
            )
        try:
            output = completed.stdout.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EngineError(f"KataGo output is not valid UTF-8: {e}", context={"command": command}) from e
        logger.info("KataGo returned %d bytes", len(completed.stdout))
        return output

