import asyncio
import logging
from pathlib import Path
from typing import Optional

from .config import COMPILER, COMPILE_TIMEOUT_MS

logger = logging.getLogger(__name__)


class CompileResult:
    def __init__(self, ok: bool, stderr: str = ""):
        self.ok = ok
        self.stderr = stderr


async def compile_source(source_file: Path, exe_file: Path, cwd: Path,
                         timeout_ms: Optional[int] = None, compiler: Optional[dict] = None) -> CompileResult:
    """Compile a C++ source file. Never raises for toolchain failures."""
    compiler = compiler or COMPILER
    timeout_ms = COMPILE_TIMEOUT_MS if timeout_ms is None else timeout_ms
    cmd = [compiler["path"]] + compiler["args"] + [str(source_file), "-o", str(exe_file)]
    logger.debug("[Compiler] Compile command: %s", " ".join(cmd))

    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
    except OSError as e:
        return CompileResult(False, f"\n[spawn error] {e}")

    try:
        _, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_ms / 1000.0)
    except asyncio.TimeoutError:
        try:
            process.kill()
        except ProcessLookupError:
            pass  # already exited
        await process.wait()
        return CompileResult(False, f"\n[compile timeout after {timeout_ms} ms]")

    message = stderr.decode("utf-8", errors="replace")
    if process.returncode != 0:
        # Toolchain output stays server-side
        logger.info("[Compiler] Compile failed (exit %s): %s", process.returncode, message[:200])
        return CompileResult(False, message)
    return CompileResult(True, message)
