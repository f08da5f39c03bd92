"""
Template-to-PDF rendering.

LatexRenderer fills a Jinja2 LaTeX template, writes it into a scratch
directory and runs an external toolchain command there. The command is a
template with ``{workdir}``, ``{filename}`` and ``{name}`` placeholders, e.g.::

    pdflatex -interaction=nonstopmode -halt-on-error {filename}

``{name}`` is unique per render. When the command only starts the real work
elsewhere (a docker container), the cleanup command is run with the same
name after a timeout so the work is stopped too.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shlex
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..config import Settings
from ..errors import RenderError

logger = logging.getLogger(__name__)

_LATEX_SPECIAL = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_LATEX_PATTERN = re.compile("|".join(re.escape(ch) for ch in _LATEX_SPECIAL))


def latex_escape(value: Any) -> str:
    if value is None:
        return ""
    return _LATEX_PATTERN.sub(lambda m: _LATEX_SPECIAL[m.group(0)], str(value))


class DocumentRenderer(Protocol):
    extension: str
    content_type: str

    async def render(self, name: str, context: Dict[str, Any]) -> bytes: ...


class LatexRenderer:
    extension = "pdf"
    content_type = "application/pdf"

    cleanup_timeout = 30.0

    def __init__(
        self,
        template_path: Path,
        command: str,
        timeout: float,
        cleanup_command: Optional[str] = None,
    ) -> None:
        template_path = Path(template_path)
        self.command = command
        self.timeout = timeout
        self.cleanup_command = cleanup_command
        self.env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            block_start_string=r"\BLOCK{",
            block_end_string="}",
            variable_start_string=r"\VAR{",
            variable_end_string="}",
            comment_start_string=r"\#{",
            comment_end_string="}",
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=False,
            undefined=StrictUndefined,
            finalize=latex_escape,
        )
        self.template_name = template_path.name

    @classmethod
    def from_settings(cls, settings: Settings) -> "LatexRenderer":
        return cls(
            settings.invoice_template_path,
            settings.invoice_render_command,
            settings.invoice_render_timeout,
            settings.invoice_render_cleanup_command,
        )

    def render_source(self, context: Dict[str, Any]) -> str:
        return self.env.get_template(self.template_name).render(**context)

    async def render(self, name: str, context: Dict[str, Any]) -> bytes:
        context = dict(context)
        with tempfile.TemporaryDirectory(prefix="invoice-") as tmp:
            workdir = Path(tmp)
            context["logo_filename"] = self._stage_logo(context.pop("logo_path", None), workdir)

            source = workdir / f"{name}.tex"
            source.write_text(self.render_source(context), encoding="utf-8")

            await self._compile(workdir, source.name)

            output = source.with_suffix(f".{self.extension}")
            if not output.exists():
                raise RenderError(f"{output.name} was not generated")
            return output.read_bytes()

    def _stage_logo(self, logo_path: Any, workdir: Path) -> str:
        # the toolchain only sees workdir, so the logo is copied in under a safe name
        if not logo_path:
            return ""
        src = Path(logo_path)
        if not src.is_file():
            logger.info("logo %s not found, rendering without it", logo_path)
            return ""
        target = workdir / f"logo{src.suffix.lower()}"
        shutil.copyfile(src, target)
        return target.name

    @staticmethod
    def _argv(command: str, **fields: str) -> List[str]:
        return [part.format(**fields) for part in shlex.split(command)]

    async def _compile(self, workdir: Path, filename: str) -> None:
        name = f"redgarden-render-{uuid.uuid4().hex[:12]}"
        argv = self._argv(self.command, workdir=str(workdir), filename=filename, name=name)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=str(workdir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as exc:
            raise RenderError(f"could not start renderer {argv[0]!r}: {exc}") from exc

        try:
            output, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            await self._cleanup(name)
            raise RenderError(f"renderer timed out after {self.timeout:g}s") from None

        if proc.returncode != 0:
            tail = (output or b"").decode("utf-8", errors="replace")[-2000:]
            logger.error("renderer exited with %s:\n%s", proc.returncode, tail)
            raise RenderError(f"renderer exited with status {proc.returncode}")

    async def _cleanup(self, name: str) -> None:
        """Stop work the killed command left running, e.g. its docker container."""
        if not self.cleanup_command or "{name}" not in self.command:
            return
        argv = self._argv(self.cleanup_command, name=name)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            await asyncio.wait_for(proc.wait(), timeout=self.cleanup_timeout)
        except OSError as exc:
            logger.error("could not run renderer cleanup for %s: %s", name, exc)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            logger.error("renderer cleanup for %s timed out", name)
        else:
            if proc.returncode != 0:
                logger.warning("renderer cleanup for %s exited with %s", name, proc.returncode)
